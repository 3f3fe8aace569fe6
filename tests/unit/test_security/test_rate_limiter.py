"""
Unit tests for the sliding-window rate limiter.

Tests admission counting, window recovery, atomicity under concurrent
requests, fail-open behavior and the HTTP surface (429, headers).
"""

import asyncio
import secrets
from unittest.mock import MagicMock

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from movie_api.api.app import register_exception_handlers
from movie_api.security.rate_limiter import (
    LIMITER_KEY_STRATEGY,
    SlidingWindowRateLimiter,
    build_rate_limiters,
    user_rate_limiter,
)


def _limited_app(limiter: SlidingWindowRateLimiter) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.middleware("http")
    async def attach_user(request: Request, call_next):
        request.state.user_id = request.headers.get("X-User")
        return await call_next(request)

    @app.get("/auth/login", dependencies=[Depends(limiter)])
    async def login():
        return {"ok": True}

    return app


async def _naive_hit(redis, key: str, max_requests: int, now_ms: int, window_ms: int) -> bool:
    """Same steps as the limiter, but as separate round-trips."""
    await redis.zremrangebyscore(key, "-inf", now_ms - window_ms)
    count = await redis.zcard(key)
    await asyncio.sleep(0.01)
    await redis.zadd(key, {f"{now_ms}-{secrets.token_hex(6)}": now_ms})
    return count < max_requests


class TestSlidingWindow:
    """Tests for hit() counting."""

    @pytest.mark.asyncio
    async def test_admits_up_to_limit(self, redis, clock):
        """Test that N requests pass and request N+1 is rejected."""
        limiter = SlidingWindowRateLimiter(redis, max_requests=5, window_seconds=60, clock=clock)

        results = [await limiter.hit("k") for _ in range(6)]

        assert [r.allowed for r in results] == [True] * 5 + [False]
        assert [r.remaining for r in results] == [4, 3, 2, 1, 0, 0]
        assert results[-1].retry_after == 60
        assert results[-1].reset_at_ms == int(clock.now * 1000) + 60_000

    @pytest.mark.asyncio
    async def test_recovers_after_window(self, redis, clock):
        """Test that a request exactly one window after the first is admitted."""
        limiter = SlidingWindowRateLimiter(redis, max_requests=2, window_seconds=60, clock=clock)
        for _ in range(3):
            await limiter.hit("k")

        clock.advance(60)

        assert (await limiter.status("k")).current == 0
        assert (await limiter.hit("k")).allowed

    @pytest.mark.asyncio
    async def test_still_limited_just_inside_window(self, redis, clock):
        """Test that a request one millisecond before the window ends is rejected."""
        limiter = SlidingWindowRateLimiter(redis, max_requests=2, window_seconds=60, clock=clock)
        await limiter.hit("k")
        await limiter.hit("k")

        clock.advance(59.999)

        assert not (await limiter.hit("k")).allowed

    @pytest.mark.asyncio
    async def test_window_slides(self, redis, clock):
        """Test that only requests older than the window stop counting."""
        limiter = SlidingWindowRateLimiter(redis, max_requests=3, window_seconds=60, clock=clock)
        await limiter.hit("k")
        clock.advance(30)
        await limiter.hit("k")
        await limiter.hit("k")

        clock.advance(20)
        assert not (await limiter.hit("k")).allowed

        clock.advance(11)
        # the first request has left the window, the rejected one has not
        result = await limiter.hit("k")
        assert not result.allowed

        clock.advance(30)
        assert (await limiter.hit("k")).allowed

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, redis, clock):
        """Test that one key's traffic does not throttle another."""
        limiter = SlidingWindowRateLimiter(redis, max_requests=1, window_seconds=60, clock=clock)
        await limiter.hit("a")

        assert (await limiter.hit("b")).allowed

    @pytest.mark.asyncio
    async def test_key_expires_with_window(self, redis, clock):
        """Test that limiter keys carry the window as expiry."""
        limiter = SlidingWindowRateLimiter(redis, max_requests=1, window_seconds=60, clock=clock)
        await limiter.hit("k")

        assert 0 < await redis.ttl("k") <= 60

    @pytest.mark.asyncio
    async def test_concurrent_requests_never_exceed_limit(self, redis, clock):
        """Test that simultaneous requests admit exactly max_requests."""
        limiter = SlidingWindowRateLimiter(redis, max_requests=5, window_seconds=60, clock=clock)

        results = await asyncio.gather(*(limiter.hit("burst") for _ in range(20)))

        assert sum(r.allowed for r in results) == 5

    @pytest.mark.asyncio
    async def test_non_atomic_steps_overadmit(self, redis, clock):
        """Test that the same steps without a transaction admit too many."""
        now_ms = int(clock.now * 1000)

        admitted = await asyncio.gather(
            *(_naive_hit(redis, "naive", 5, now_ms, 60_000) for _ in range(20))
        )

        assert sum(admitted) > 5

    @pytest.mark.asyncio
    async def test_fails_open(self, clock):
        """Test that an unreachable store allows the request."""
        redis = MagicMock()
        redis.pipeline.side_effect = RedisConnectionError("connection refused")
        limiter = SlidingWindowRateLimiter(redis, max_requests=1, window_seconds=60, clock=clock)

        assert await limiter.hit("k") is None

    @pytest.mark.asyncio
    async def test_reset_and_status(self, redis, clock):
        """Test that status reports usage and reset clears it."""
        limiter = SlidingWindowRateLimiter(redis, max_requests=5, window_seconds=60, clock=clock)
        await limiter.hit("k")
        await limiter.hit("k")

        assert (await limiter.status("k")).current == 2

        await limiter.reset("k")
        assert (await limiter.status("k")).current == 0

    def test_rejects_invalid_settings(self):
        """Test that non-positive limits are refused."""
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(MagicMock(), max_requests=0, window_seconds=60)
        with pytest.raises(ValueError):
            SlidingWindowRateLimiter(MagicMock(), max_requests=1, window_seconds=0)


class TestHTTPSurface:
    """Tests for the limiter used as a route dependency."""

    def test_429_after_limit(self, make_redis, clock):
        """Test that the request over the limit gets 429 with Retry-After."""
        limiter = SlidingWindowRateLimiter(make_redis(), max_requests=5, window_seconds=60, clock=clock)

        with TestClient(_limited_app(limiter)) as client:
            statuses = [client.get("/auth/login").status_code for _ in range(5)]
            rejected = client.get("/auth/login")

        assert statuses == [200] * 5
        assert rejected.status_code == 429
        assert rejected.headers["Retry-After"] == "60"
        assert rejected.headers["X-RateLimit-Remaining"] == "0"
        assert rejected.json() == {
            "statusCode": 429,
            "error": "Too Many Requests",
            "message": limiter.error_message,
            "retryAfter": 60,
        }

    def test_headers_on_admitted_response(self, make_redis, clock):
        """Test that admitted responses carry the X-RateLimit-* headers."""
        limiter = SlidingWindowRateLimiter(make_redis(), max_requests=3, window_seconds=60, clock=clock)

        with TestClient(_limited_app(limiter)) as client:
            response = client.get("/auth/login")

        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "2"
        assert response.headers["X-RateLimit-Reset"] == str(int(clock.now * 1000) + 60_000)

    def test_forwarded_address_is_the_key(self, make_redis, clock):
        """Test that distinct X-Forwarded-For clients get separate budgets."""
        limiter = SlidingWindowRateLimiter(make_redis(), max_requests=1, window_seconds=60, clock=clock)

        with TestClient(_limited_app(limiter)) as client:
            first = client.get("/auth/login", headers={"X-Forwarded-For": "10.0.0.1, 172.16.0.1"})
            second = client.get("/auth/login", headers={"X-Forwarded-For": "10.0.0.2"})
            again = client.get("/auth/login", headers={"X-Forwarded-For": "10.0.0.1"})

        assert (first.status_code, second.status_code, again.status_code) == (200, 200, 429)

    def test_user_strategy_keys_by_user(self, make_redis, clock):
        """Test that the user limiter separates callers sharing an address."""
        redis = make_redis()
        limiter = user_rate_limiter(redis, max_requests=1, window_seconds=60, clock=clock)

        with TestClient(_limited_app(limiter)) as client:
            alice = client.get("/auth/login", headers={"X-User": "alice"})
            bob = client.get("/auth/login", headers={"X-User": "bob"})
            alice_again = client.get("/auth/login", headers={"X-User": "alice"})
            keys = client.portal.call(redis.keys, "ratelimit:user:*")

        assert (alice.status_code, bob.status_code, alice_again.status_code) == (200, 200, 429)
        assert sorted(keys) == [
            "ratelimit:user:alice:/auth/login",
            "ratelimit:user:bob:/auth/login",
        ]

    def test_skip_predicate(self, make_redis, clock):
        """Test that skipped requests are neither counted nor limited."""
        async def skip_health_checks(request):
            return request.headers.get("X-Probe") == "1"

        limiter = SlidingWindowRateLimiter(
            make_redis(), max_requests=1, window_seconds=60, skip=skip_health_checks, clock=clock
        )

        with TestClient(_limited_app(limiter)) as client:
            probes = [client.get("/auth/login", headers={"X-Probe": "1"}).status_code for _ in range(3)]
            real = client.get("/auth/login")

        assert probes == [200, 200, 200]
        assert real.status_code == 200

    def test_fail_open_over_http(self, clock):
        """Test that requests pass without headers when the store is down."""
        redis = MagicMock()
        redis.pipeline.side_effect = RedisConnectionError("connection refused")
        limiter = SlidingWindowRateLimiter(redis, max_requests=1, window_seconds=60, clock=clock)

        with TestClient(_limited_app(limiter)) as client:
            responses = [client.get("/auth/login") for _ in range(3)]

        assert [r.status_code for r in responses] == [200, 200, 200]
        assert "X-RateLimit-Limit" not in responses[0].headers


class TestPresets:
    """Tests for the configured limiter presets."""

    def test_defaults(self, config_file, clock):
        """Test the built-in preset limits and key strategies."""
        limiters = build_rate_limiters(MagicMock(), config_file("rate_limit: {}\n"), clock=clock)

        assert (limiters.auth.max_requests, limiters.auth.window_seconds) == (5, 60)
        assert (limiters.api.max_requests, limiters.api.window_seconds) == (100, 60)
        assert (limiters.search.max_requests, limiters.search.window_seconds) == (30, 60)
        assert (limiters.write.max_requests, limiters.write.window_seconds) == (10, 60)
        assert LIMITER_KEY_STRATEGY["write"] == "user"
        assert limiters.auth.key_prefix == "ratelimit:auth"

    def test_overrides(self, config_file, clock):
        """Test that rate_limit.<name>.max/window override a preset."""
        cfg = config_file("rate_limit:\n  search:\n    max: 2\n    window: 10\n")

        limiters = build_rate_limiters(MagicMock(), cfg, clock=clock)

        assert (limiters.search.max_requests, limiters.search.window_seconds) == (2, 10)
