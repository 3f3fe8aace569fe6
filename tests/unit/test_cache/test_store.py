"""
Unit tests for the cache entry layer.

Tests typed get/set, miss semantics on store failures and corrupt
entries, pattern deletion and store statistics.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import fakeredis
import pytest
from pydantic import TypeAdapter
from redis.exceptions import ConnectionError as RedisConnectionError

from movie_api.cache.keys import TTLTier
from movie_api.cache.store import CacheStore
from movie_api.core.exceptions import ValidationError
from movie_api.models.domain import Movie


MOVIE_CODEC = TypeAdapter(Movie)
INT_LIST_CODEC = TypeAdapter(list[int])


def _movie(movie_id: str = "m1", title: str = "Alien") -> Movie:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return Movie(id=movie_id, title=title, created_at=now, updated_at=now)


def _failing_redis() -> AsyncMock:
    redis = AsyncMock()
    error = RedisConnectionError("connection refused")
    redis.get.side_effect = error
    redis.set.side_effect = error
    redis.delete.side_effect = error
    redis.unlink.side_effect = error
    redis.ping.side_effect = error
    return redis


class TestGetSet:
    """Tests for typed reads and writes."""

    @pytest.mark.asyncio
    async def test_round_trip(self, store):
        """Test that a stored model comes back equal."""
        movie = _movie()
        assert await store.set("movie:m1", movie, TTLTier.MEDIUM, MOVIE_CODEC)

        assert await store.get("movie:m1", MOVIE_CODEC) == movie

    @pytest.mark.asyncio
    async def test_missing_key_is_miss(self, store):
        """Test that an absent key reads as None."""
        assert await store.get("movie:nope", MOVIE_CODEC) is None

    @pytest.mark.asyncio
    async def test_ttl_follows_tier(self, store, redis):
        """Test that the expiry matches the declared tier."""
        await store.set("movies:list:{}", [1, 2], TTLTier.SHORT, INT_LIST_CODEC)

        ttl = await redis.ttl("movies:list:{}")
        assert 0 < ttl <= store.ttl_for(TTLTier.SHORT)

    @pytest.mark.asyncio
    async def test_custom_tier_durations(self, redis):
        """Test that configured tier durations are applied."""
        store = CacheStore(redis, ttl_seconds={TTLTier.SHORT: 7})
        await store.set("k", [1], TTLTier.SHORT, INT_LIST_CODEC)

        assert await redis.ttl("k") <= 7
        assert store.ttl_for(TTLTier.MEDIUM) == 300

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_miss(self, store, redis):
        """Test that malformed JSON reads as a miss."""
        await redis.set("movie:m1", "{not json")

        assert await store.get("movie:m1", MOVIE_CODEC) is None

    @pytest.mark.asyncio
    async def test_wrong_shape_is_miss(self, store, redis):
        """Test that valid JSON of the wrong shape reads as a miss."""
        await redis.set("movie:m1", '{"unexpected": true}')

        assert await store.get("movie:m1", MOVIE_CODEC) is None

    @pytest.mark.asyncio
    async def test_undecodable_entry_is_miss(self, store, fake_server):
        """Test that a payload that is not UTF-8 reads as a miss."""
        raw = fakeredis.FakeAsyncRedis(server=fake_server)
        await raw.set("movie:m1", b"\xff\xfe\x00garbage")

        assert await store.get("movie:m1", MOVIE_CODEC) is None
        loaded = await store.get_or_set("movie:m1", TTLTier.MEDIUM, MOVIE_CODEC, AsyncMock(return_value=_movie()))
        assert loaded == _movie()
        await raw.aclose()

    @pytest.mark.asyncio
    async def test_entry_expires_with_tier(self, redis):
        """Test that an entry reads as absent once its tier has elapsed."""
        store = CacheStore(redis, ttl_seconds={TTLTier.SHORT: 1})
        await store.set("movies:list:{}", [1, 2], TTLTier.SHORT, INT_LIST_CODEC)

        assert await store.get("movies:list:{}", INT_LIST_CODEC) == [1, 2]
        await asyncio.sleep(1.2)
        assert await store.get("movies:list:{}", INT_LIST_CODEC) is None

    @pytest.mark.asyncio
    async def test_unavailable_store_get_is_miss(self):
        """Test that a connection failure on read is a miss, not an error."""
        store = CacheStore(_failing_redis())

        assert await store.get("movie:m1", MOVIE_CODEC) is None

    @pytest.mark.asyncio
    async def test_unavailable_store_set_is_dropped(self):
        """Test that a connection failure on write returns False."""
        store = CacheStore(_failing_redis())

        assert await store.set("movie:m1", _movie(), TTLTier.MEDIUM, MOVIE_CODEC) is False

    @pytest.mark.asyncio
    async def test_unavailable_store_ping(self):
        """Test that ping reports False instead of raising."""
        assert await CacheStore(_failing_redis()).ping() is False


class TestGetOrSet:
    """Tests for the cache-aside helper."""

    @pytest.mark.asyncio
    async def test_loads_once(self, store):
        """Test that the loader runs only on the first call."""
        loader = AsyncMock(return_value=[1, 2, 3])

        first = await store.get_or_set("k", TTLTier.SHORT, INT_LIST_CODEC, loader)
        second = await store.get_or_set("k", TTLTier.SHORT, INT_LIST_CODEC, loader)

        assert first == second == [1, 2, 3]
        loader.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_none_is_not_cached(self, store, redis):
        """Test that a None result is returned but never stored."""
        loader = AsyncMock(return_value=None)

        assert await store.get_or_set("movie:x", TTLTier.MEDIUM, MOVIE_CODEC, loader) is None
        assert await redis.exists("movie:x") == 0

    @pytest.mark.asyncio
    async def test_loader_error_propagates(self, store):
        """Test that loader failures reach the caller."""
        loader = AsyncMock(side_effect=RuntimeError("db down"))

        with pytest.raises(RuntimeError):
            await store.get_or_set("k", TTLTier.SHORT, INT_LIST_CODEC, loader)

    @pytest.mark.asyncio
    async def test_unavailable_store_falls_through(self):
        """Test that reads are served by the loader when the store is down."""
        store = CacheStore(_failing_redis())
        loader = AsyncMock(return_value=[4])

        assert await store.get_or_set("k", TTLTier.SHORT, INT_LIST_CODEC, loader) == [4]


class TestDeletion:
    """Tests for single, bulk and pattern deletion."""

    @pytest.mark.asyncio
    async def test_delete_absent_key(self, store):
        """Test that deleting an absent key is not an error."""
        assert await store.delete("movie:none") is False

    @pytest.mark.asyncio
    async def test_delete_many(self, store, redis):
        """Test bulk removal counts only existing keys."""
        await redis.set("a", "1")
        await redis.set("b", "1")

        assert await store.delete_many(["a", "b", "c"]) == 2
        assert await store.delete_many([]) == 0

    @pytest.mark.asyncio
    async def test_delete_by_pattern(self, store, redis):
        """Test that only matching keys are removed."""
        await redis.set("favorites:user:u1:{}", "1")
        await redis.set('favorites:user:u1:{"page":2}', "1")
        await redis.set("favorites:user:u10:{}", "1")
        await redis.set("movie:m1", "1")

        deleted = await store.delete_by_pattern("favorites:user:u1:*")

        assert deleted == 2
        assert await redis.exists("favorites:user:u10:{}") == 1
        assert await redis.exists("movie:m1") == 1

    @pytest.mark.asyncio
    async def test_delete_by_pattern_in_batches(self, redis):
        """Test that large matches are removed across several batches."""
        store = CacheStore(redis, scan_count=1000, delete_batch_size=7)
        for i in range(50):
            await redis.set(f"movies:list:{i}", "1")

        assert await store.delete_by_pattern("movies:list:*") == 50
        assert await redis.dbsize() == 0

    @pytest.mark.asyncio
    async def test_delete_by_pattern_no_matches(self, store):
        """Test that an empty match deletes nothing."""
        assert await store.delete_by_pattern("search:*") == 0

    @pytest.mark.asyncio
    async def test_empty_pattern_rejected(self, store):
        """Test that an empty pattern is a validation error."""
        with pytest.raises(ValidationError):
            await store.delete_by_pattern("")

    @pytest.mark.asyncio
    async def test_interrupted_deletion_returns_partial_count(self, redis):
        """Test that a store failure mid-walk reports the keys already removed."""
        store = CacheStore(redis, scan_count=1000, delete_batch_size=3)
        for i in range(7):
            await redis.set(f"search:{i}", "1")
        remove = store._remove
        calls = []

        async def fail_second_batch(keys):
            calls.append(list(keys))
            if len(calls) == 2:
                raise RedisConnectionError("connection reset")
            return await remove(keys)

        store._remove = fail_second_batch

        assert await store.delete_by_pattern("search:*") == 3
        assert await redis.dbsize() == 4

    @pytest.mark.asyncio
    async def test_undecodable_key_does_not_raise(self, store, fake_server):
        """Test that a key that is not UTF-8 ends pattern walks without an error."""
        raw = fakeredis.FakeAsyncRedis(server=fake_server)
        await raw.set(b"search:\xff", b"1")

        assert await store.delete_by_pattern("search:*") == 0
        assert await store.keys_by_pattern("search:*") == []
        await raw.aclose()

    @pytest.mark.asyncio
    async def test_falls_back_to_del_without_unlink(self, redis):
        """Test that DEL is used when the store rejects UNLINK."""
        from redis.exceptions import ResponseError

        store = CacheStore(redis)
        await redis.set("movie:m1", "1")
        redis.unlink = AsyncMock(side_effect=ResponseError("unknown command 'unlink'"))

        assert await store.delete_by_pattern("movie:*") == 1
        assert await redis.exists("movie:m1") == 0


class TestIntrospection:
    """Tests for key listing, statistics and flush."""

    @pytest.mark.asyncio
    async def test_keys_by_pattern_sorted_and_limited(self, store, redis):
        """Test that listings are sorted and capped."""
        for name in ("movie:3", "movie:1", "movie:2"):
            await redis.set(name, "1")

        assert await store.keys_by_pattern("movie:*") == ["movie:1", "movie:2", "movie:3"]
        assert len(await store.keys_by_pattern("movie:*", limit=2)) == 2

    @pytest.mark.asyncio
    async def test_stats_hit_rate(self):
        """Test that the hit rate is computed from keyspace counters."""
        redis = AsyncMock()
        sections = {
            "stats": {"keyspace_hits": 3, "keyspace_misses": 1, "total_commands_processed": 10},
            "memory": {"used_memory": 2048, "used_memory_human": "2.00K"},
            "clients": {"connected_clients": 2},
        }
        redis.info.side_effect = lambda section: sections[section]
        redis.dbsize.return_value = 4

        stats = await CacheStore(redis).stats()

        assert stats.total_keys == 4
        assert stats.hit_rate == 75.0
        assert stats.used_memory_human == "2.00K"
        assert stats.connected_clients == 2

    @pytest.mark.asyncio
    async def test_stats_without_traffic(self):
        """Test that the hit rate is absent before any lookup."""
        redis = AsyncMock()
        redis.info.return_value = {"keyspace_hits": 0, "keyspace_misses": 0}
        redis.dbsize.return_value = 0

        assert (await CacheStore(redis).stats()).hit_rate is None

    @pytest.mark.asyncio
    async def test_stats_errors_propagate(self):
        """Test that statistics surface store failures."""
        redis = AsyncMock()
        redis.info.side_effect = RedisConnectionError("down")

        with pytest.raises(RedisConnectionError):
            await CacheStore(redis).stats()

    @pytest.mark.asyncio
    async def test_flush_all(self, store, redis):
        """Test that flush empties the database."""
        await redis.set("movie:1", "1")
        await store.flush_all()

        assert await redis.dbsize() == 0
