"""
Cache Entry Layer

Typed get/set/delete over the shared key-value store, pattern deletion
by incremental SCAN, and the introspection used by the admin endpoints.

The cache is an optimization, never a source of truth: a read that hits
a store error or a corrupt entry is reported as a miss, and a failed
write is logged and dropped. Only the destructive admin operations
(stats, flush) surface store errors to their caller.
"""

from typing import Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

from loguru import logger
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError
from redis.asyncio import Redis
from redis.exceptions import ResponseError

from movie_api.cache.keys import DEFAULT_TTL_SECONDS, TTLTier, generate_key
from movie_api.clients.redis_client import STORE_ERRORS
from movie_api.core.constants import (
    DEFAULT_DELETE_BATCH_SIZE,
    DEFAULT_KEYS_LISTING_LIMIT,
    DEFAULT_SCAN_COUNT,
)
from movie_api.core.exceptions import ValidationError
from movie_api.models.responses import CacheStats
from movie_api.observability.tracing import get_tracer


T = TypeVar("T")

tracer = get_tracer(__name__)


class CacheStore:
    """
    Cache-aside storage over an injected Redis handle.

    Values cross the boundary through a pydantic TypeAdapter, so a read
    either yields a fully validated value of the expected type or a miss.

    Example:
        >>> store = CacheStore(redis)
        >>> codec = TypeAdapter(Movie)
        >>> await store.set("movie:42", movie, TTLTier.MEDIUM, codec)
        >>> await store.get("movie:42", codec)
        Movie(id='42', ...)
    """

    def __init__(
        self,
        redis: Redis,
        ttl_seconds: Optional[Dict[TTLTier, int]] = None,
        scan_count: int = DEFAULT_SCAN_COUNT,
        delete_batch_size: int = DEFAULT_DELETE_BATCH_SIZE,
    ):
        """
        Initialize the store.

        Args:
            redis: Shared async Redis handle
            ttl_seconds: Tier durations (defaults to the built-in tiers)
            scan_count: COUNT hint passed to each SCAN step
            delete_batch_size: Keys removed per UNLINK/DEL round-trip
        """
        self.redis = redis
        self.ttl_seconds = dict(DEFAULT_TTL_SECONDS)
        if ttl_seconds:
            self.ttl_seconds.update(ttl_seconds)
        self.scan_count = scan_count
        self.delete_batch_size = delete_batch_size
        self._unlink_supported = True

    generate_key = staticmethod(generate_key)

    def ttl_for(self, tier: TTLTier) -> int:
        return self.ttl_seconds[tier]

    async def get(self, key: str, codec: TypeAdapter[T]) -> Optional[T]:
        """
        Read and decode a cached value.

        Returns:
            The decoded value, or None on a miss, a store error or an
            entry that no longer matches the expected shape
        """
        try:
            raw = await self.redis.get(key)
        except STORE_ERRORS as e:
            logger.warning(f"Cache get failed for '{key}': {e}")
            return None
        except UnicodeDecodeError as e:
            # the client decodes replies, so a non UTF-8 payload fails before validation
            logger.warning(f"Discarding undecodable cache entry '{key}': {e.reason}")
            return None

        if raw is None:
            logger.debug(f"Cache miss: {key}")
            return None

        try:
            value = codec.validate_json(raw)
        except PydanticValidationError as e:
            logger.warning(f"Discarding corrupt cache entry '{key}': {e.error_count()} error(s)")
            return None

        logger.debug(f"Cache hit: {key}")
        return value

    async def set(self, key: str, value: T, tier: TTLTier, codec: TypeAdapter[T]) -> bool:
        """
        Encode and store a value with the tier's expiry.

        Returns:
            True if the value was written
        """
        try:
            payload = codec.dump_json(value)
        except PydanticSerializationError as e:
            logger.error(f"Cannot serialize value for '{key}': {e}")
            return False

        ttl = self.ttl_for(tier)
        try:
            await self.redis.set(key, payload, ex=ttl)
        except STORE_ERRORS as e:
            logger.warning(f"Cache set failed for '{key}': {e}")
            return False

        logger.debug(f"Cache set: {key} (ttl={ttl}s)")
        return True

    async def get_or_set(
        self,
        key: str,
        tier: TTLTier,
        codec: TypeAdapter[T],
        loader: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Return the cached value, or load it, cache it and return it.

        Loader errors propagate; a None result is returned but not cached.
        """
        cached = await self.get(key, codec)
        if cached is not None:
            return cached

        value = await loader()
        if value is not None:
            await self.set(key, value, tier, codec)
        return value

    async def delete(self, key: str) -> bool:
        """Remove one key; an absent key is not an error."""
        try:
            removed = await self.redis.delete(key)
        except STORE_ERRORS as e:
            logger.warning(f"Cache delete failed for '{key}': {e}")
            return False
        return bool(removed)

    async def delete_many(self, keys: Iterable[str]) -> int:
        """Remove the given keys; returns how many existed."""
        keys = list(keys)
        if not keys:
            return 0
        try:
            return await self._remove(keys)
        except STORE_ERRORS as e:
            logger.warning(f"Cache delete of {len(keys)} keys failed: {e}")
            return 0

    async def delete_by_pattern(self, pattern: str, batch_size: Optional[int] = None) -> int:
        """
        Delete every key matching a glob pattern.

        Walks the keyspace with an incremental SCAN cursor and removes
        matches in batches, so no single command blocks the store. If the
        store fails mid-walk, the keys already removed stay removed and
        their count is returned.

        Args:
            pattern: Redis glob, e.g. "favorites:user:u1:*"
            batch_size: Keys per delete round-trip

        Returns:
            Number of keys actually deleted
        """
        if not pattern:
            raise ValidationError("Cache pattern must not be empty")

        batch_size = batch_size or self.delete_batch_size
        deleted = 0
        batch: List[str] = []

        with tracer.start_as_current_span("cache.delete_by_pattern") as span:
            span.set_attribute("cache.pattern", pattern)
            try:
                async for key in self.redis.scan_iter(match=pattern, count=self.scan_count):
                    batch.append(key)
                    if len(batch) >= batch_size:
                        deleted += await self._remove(batch)
                        batch = []
                if batch:
                    deleted += await self._remove(batch)
            except (*STORE_ERRORS, UnicodeDecodeError) as e:
                logger.warning(
                    f"Pattern deletion of '{pattern}' interrupted after {deleted} keys: {e}"
                )
            span.set_attribute("cache.deleted", deleted)

        logger.debug(f"Deleted {deleted} keys matching '{pattern}'")
        return deleted

    async def _remove(self, keys: List[str]) -> int:
        if self._unlink_supported:
            try:
                return await self.redis.unlink(*keys)
            except ResponseError:
                # Servers older than 4.0 have no UNLINK
                logger.info("UNLINK not supported by the store, using DEL")
                self._unlink_supported = False
        return await self.redis.delete(*keys)

    async def keys_by_pattern(self, pattern: str, limit: int = DEFAULT_KEYS_LISTING_LIMIT) -> List[str]:
        """
        List keys matching a glob pattern, at most `limit` of them.

        Store errors propagate. A SCAN reply holding a key that is not
        UTF-8 ends the listing early with the keys gathered so far.
        """
        if not pattern:
            raise ValidationError("Cache pattern must not be empty")

        keys: List[str] = []
        try:
            async for key in self.redis.scan_iter(match=pattern, count=self.scan_count):
                keys.append(key)
                if len(keys) >= limit:
                    break
        except UnicodeDecodeError as e:
            logger.warning(f"Key listing for '{pattern}' stopped at a non UTF-8 key: {e.reason}")
        return sorted(keys)

    async def stats(self) -> CacheStats:
        """Collect store statistics. Store errors propagate."""
        info: Dict = {}
        for section in ("stats", "memory", "clients"):
            info.update(await self.redis.info(section))
        total_keys = await self.redis.dbsize()

        hits = info.get("keyspace_hits")
        misses = info.get("keyspace_misses")
        hit_rate = None
        if hits is not None and misses is not None and (hits + misses) > 0:
            hit_rate = round(hits / (hits + misses) * 100, 2)

        return CacheStats(
            total_keys=total_keys,
            used_memory=info.get("used_memory"),
            used_memory_human=info.get("used_memory_human"),
            connected_clients=info.get("connected_clients"),
            total_commands_processed=info.get("total_commands_processed"),
            keyspace_hits=hits,
            keyspace_misses=misses,
            hit_rate=hit_rate,
        )

    async def flush_all(self) -> None:
        """Drop every key in the current database. Store errors propagate."""
        await self.redis.flushdb()
        logger.warning("Cache flushed: all keys in the current database removed")

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except STORE_ERRORS as e:
            logger.warning(f"Cache ping failed: {e}")
            return False
