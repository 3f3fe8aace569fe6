"""
Rate Limiting Module

Sliding-window rate limiting backed by Redis sorted sets.

Each limiter key holds one sorted-set member per admitted or rejected
request, scored by its arrival time in milliseconds. A check prunes
members older than the window, counts what is left, records the current
request and refreshes the key's expiry, all inside one MULTI/EXEC
transaction. Concurrent requests for the same key are serialized by the
store, so at most `max_requests` of them are ever admitted per window.

If the store cannot be reached the request is allowed (fail open) and a
warning is logged.
"""

import inspect
import math
import secrets
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Union

from fastapi import Request, Response
from loguru import logger
from redis.asyncio import Redis

from movie_api.clients.redis_client import STORE_ERRORS
from movie_api.core.constants import (
    ANONYMOUS_USER,
    DEFAULT_API_RATE_LIMIT,
    DEFAULT_AUTH_RATE_LIMIT,
    DEFAULT_SEARCH_RATE_LIMIT,
    DEFAULT_WRITE_RATE_LIMIT,
    ERROR_AUTH_RATE_LIMIT_EXCEEDED,
    ERROR_RATE_LIMIT_EXCEEDED,
    HEADER_FORWARDED_FOR,
    HEADER_RATE_LIMIT_LIMIT,
    HEADER_RATE_LIMIT_REMAINING,
    HEADER_RATE_LIMIT_RESET,
    HEADER_REAL_IP,
    RATE_LIMIT_KEY_PREFIX,
)
from movie_api.core.exceptions import RateLimitExceeded
from movie_api.observability.tracing import get_tracer


tracer = get_tracer(__name__)

KeyFunc = Callable[[Request], str]
SkipFunc = Callable[[Request], Union[bool, Awaitable[bool]]]


@dataclass
class RateLimitResult:
    """
    Outcome of one rate-limit check.

    Attributes:
        allowed: Whether the request may proceed
        limit: Configured maximum requests per window
        remaining: Requests left in the current window after this one
        reset_at_ms: Epoch milliseconds at which the window ends
        retry_after: Seconds a rejected caller should wait
    """
    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: int
    retry_after: int

    def headers(self) -> Dict[str, str]:
        return {
            HEADER_RATE_LIMIT_LIMIT: str(self.limit),
            HEADER_RATE_LIMIT_REMAINING: str(self.remaining),
            HEADER_RATE_LIMIT_RESET: str(self.reset_at_ms),
        }


@dataclass
class RateLimitStatus:
    """Current usage of one limiter key."""
    current: int
    reset_at_ms: int


def get_client_ip(request: Request) -> str:
    """
    Best-effort caller address.

    Priority:
    1. First hop of X-Forwarded-For
    2. X-Real-IP
    3. Socket peer address
    """
    forwarded = request.headers.get(HEADER_FORWARDED_FOR)
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get(HEADER_REAL_IP)
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def get_route_path(request: Request) -> str:
    """Route template (e.g. /movies/{movie_id}) when matched, else the raw path."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def get_user_id(request: Request) -> str:
    """Authenticated caller id, set on request.state by the auth layer."""
    return getattr(request.state, "user_id", None) or ANONYMOUS_USER


class SlidingWindowRateLimiter:
    """
    Sliding-window rate limiter.

    Usable directly (`await limiter.hit(key)`) or as a FastAPI dependency,
    which derives the key from the request, sets the X-RateLimit-* headers
    and raises RateLimitExceeded when the caller is over the limit.

    Example:
        >>> limiter = SlidingWindowRateLimiter(redis, max_requests=100, window_seconds=60)
        >>> @app.get("/movies", dependencies=[Depends(limiter)])
        ... async def list_movies(): ...
    """

    def __init__(
        self,
        redis: Redis,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = RATE_LIMIT_KEY_PREFIX,
        key_func: Optional[KeyFunc] = None,
        skip: Optional[SkipFunc] = None,
        error_message: str = ERROR_RATE_LIMIT_EXCEEDED,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize rate limiter.

        Args:
            redis: Shared async Redis handle
            max_requests: Requests admitted per window
            window_seconds: Window length in seconds
            key_prefix: Prefix of every limiter key
            key_func: Derives the limiter key from a request
                (default: "{prefix}:{client_ip}:{route}")
            skip: Predicate exempting a request from limiting
            error_message: Message of the 429 body
            clock: Wall clock in seconds; injectable for tests
        """
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.redis = redis
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix
        self.key_func = key_func or self.default_key
        self.skip = skip
        self.error_message = error_message
        self.clock = clock

    def default_key(self, request: Request) -> str:
        return f"{self.key_prefix}:{get_client_ip(request)}:{get_route_path(request)}"

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    async def hit(self, key: str) -> Optional[RateLimitResult]:
        """
        Record one request against `key` and decide whether it is allowed.

        Returns:
            The check result, or None if the store could not be consulted
            (the request should then be allowed)
        """
        now_ms = self._now_ms()
        window_ms = self.window_seconds * 1000
        window_start = now_ms - window_ms
        member = f"{now_ms}-{secrets.token_hex(6)}"

        with tracer.start_as_current_span("ratelimit.check") as span:
            span.set_attribute("ratelimit.key", key)
            try:
                async with self.redis.pipeline(transaction=True) as pipe:
                    # entries scored exactly window_start have left the window
                    pipe.zremrangebyscore(key, "-inf", window_start)
                    pipe.zcard(key)
                    pipe.zadd(key, {member: now_ms})
                    pipe.expire(key, self.window_seconds)
                    results = await pipe.execute()
            except STORE_ERRORS as e:
                logger.warning(f"Rate limit check failed for '{key}', allowing request: {e}")
                span.set_attribute("ratelimit.degraded", True)
                return None

            count = int(results[1] or 0)
            allowed = count < self.max_requests
            span.set_attribute("ratelimit.allowed", allowed)

        if not allowed:
            logger.debug(f"Rate limit exceeded for '{key}': {count}/{self.max_requests}")

        return RateLimitResult(
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count - 1),
            reset_at_ms=now_ms + window_ms,
            retry_after=math.ceil(self.window_seconds),
        )

    async def _should_skip(self, request: Request) -> bool:
        if self.skip is None:
            return False
        decision = self.skip(request)
        if inspect.isawaitable(decision):
            decision = await decision
        return bool(decision)

    async def __call__(self, request: Request, response: Response) -> None:
        """
        FastAPI dependency.

        Raises:
            RateLimitExceeded: If the caller is over the limit
        """
        if await self._should_skip(request):
            return

        result = await self.hit(self.key_func(request))
        if result is None:
            return

        response.headers.update(result.headers())
        if not result.allowed:
            raise RateLimitExceeded(
                self.error_message,
                retry_after=result.retry_after,
                limit=result.limit,
                reset_at_ms=result.reset_at_ms,
            )

    async def reset(self, key: str) -> None:
        """Forget every request recorded against `key`."""
        await self.redis.delete(key)
        logger.info(f"Rate limit reset for key '{key}'")

    async def status(self, key: str) -> RateLimitStatus:
        """Requests counted in the current window and when it resets."""
        now_ms = self._now_ms()
        current = await self.redis.zcount(key, f"({now_ms - self.window_seconds * 1000}", now_ms)
        ttl = await self.redis.ttl(key)
        reset_in = ttl if ttl > 0 else self.window_seconds
        return RateLimitStatus(current=current, reset_at_ms=now_ms + reset_in * 1000)


def user_rate_limiter(
    redis: Redis,
    max_requests: int,
    window_seconds: int,
    key_prefix: str = RATE_LIMIT_KEY_PREFIX,
    **kwargs
) -> SlidingWindowRateLimiter:
    """
    Limiter keyed by the authenticated caller instead of the address.

    Unauthenticated callers share the "anonymous" bucket of each route.
    """
    def key_func(request: Request) -> str:
        return f"{key_prefix}:user:{get_user_id(request)}:{get_route_path(request)}"

    return SlidingWindowRateLimiter(
        redis,
        max_requests,
        window_seconds,
        key_prefix=key_prefix,
        key_func=key_func,
        **kwargs
    )


# Which identity each preset keys on: the caller's address or user id.
LIMITER_KEY_STRATEGY = {
    "auth": "ip",
    "api": "ip",
    "search": "ip",
    "write": "user",
}

_PRESET_DEFAULTS = {
    "auth": DEFAULT_AUTH_RATE_LIMIT,
    "api": DEFAULT_API_RATE_LIMIT,
    "search": DEFAULT_SEARCH_RATE_LIMIT,
    "write": DEFAULT_WRITE_RATE_LIMIT,
}

_PRESET_MESSAGES = {
    "auth": ERROR_AUTH_RATE_LIMIT_EXCEEDED,
}


@dataclass
class RateLimiters:
    """The pre-configured limiters, one per class of route."""
    auth: SlidingWindowRateLimiter
    api: SlidingWindowRateLimiter
    search: SlidingWindowRateLimiter
    write: SlidingWindowRateLimiter


def build_rate_limiters(
    redis: Redis,
    config_obj,
    clock: Callable[[], float] = time.time,
) -> RateLimiters:
    """
    Build the preset limiters, reading `rate_limit.<name>.max` and
    `rate_limit.<name>.window` from configuration.
    """
    limiters = {}
    for name, (default_max, default_window) in _PRESET_DEFAULTS.items():
        max_requests = config_obj.get(f'rate_limit.{name}.max', default=default_max, expected_type=int)
        window = config_obj.get(f'rate_limit.{name}.window', default=default_window, expected_type=int)
        options = dict(
            key_prefix=f"{RATE_LIMIT_KEY_PREFIX}:{name}",
            error_message=_PRESET_MESSAGES.get(name, ERROR_RATE_LIMIT_EXCEEDED),
            clock=clock,
        )
        if LIMITER_KEY_STRATEGY[name] == "user":
            limiters[name] = user_rate_limiter(redis, max_requests, window, **options)
        else:
            limiters[name] = SlidingWindowRateLimiter(redis, max_requests, window, **options)
        logger.info(f"Rate limiter '{name}': {max_requests} requests per {window}s by {LIMITER_KEY_STRATEGY[name]}")

    return RateLimiters(**limiters)
