"""
Unit tests for the retry policy and the Redis handle factory.
"""

import asyncio

import httpx
import pytest
from redis.asyncio import Redis

from movie_api.clients.redis_client import RedisSettings, close_redis_client, create_redis_client
from movie_api.clients.retry_manager import RetryConfig, RetryManager
from movie_api.core.exceptions import SearchIndexError
from movie_api.core.exceptions import TimeoutError as OperationTimeoutError


def _fast_retries(max_retries: int = 2) -> RetryManager:
    return RetryManager(RetryConfig(max_retries=max_retries, initial_backoff=0.001, max_backoff=0.001))


class TestRetryManager:
    """Tests for RetryManager."""

    def test_backoff_is_capped(self):
        """Test exponential growth up to the cap, plus bounded jitter."""
        manager = RetryManager(RetryConfig(initial_backoff=1, max_backoff=4, jitter_factor=0.1))

        assert 1 <= manager.calculate_backoff(0) <= 1.1
        assert 4 <= manager.calculate_backoff(5) <= 4.4

    def test_should_retry(self):
        """Test which errors are worth another attempt."""
        manager = RetryManager(RetryConfig(max_retries=2))

        assert manager.should_retry(0, SearchIndexError("x", status_code=503))
        assert not manager.should_retry(0, SearchIndexError("x", status_code=404))
        assert manager.should_retry(0, httpx.ConnectError("refused"))
        assert not manager.should_retry(0, ValueError("bug"))
        assert not manager.should_retry(2, httpx.ConnectError("refused"))

    @pytest.mark.asyncio
    async def test_recovers_from_transient_failure(self):
        """Test that a call succeeding on the second attempt returns."""
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise httpx.ConnectError("refused")
            return "ok"

        assert await _fast_retries().retry_async(flaky) == "ok"
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_gives_up(self):
        """Test that the last error is raised once retries run out."""
        async def down():
            raise httpx.ConnectError("refused")

        with pytest.raises(httpx.ConnectError):
            await _fast_retries(max_retries=1).retry_async(down)

    @pytest.mark.asyncio
    async def test_total_timeout(self):
        """Test that retry_with_timeout bounds the whole operation."""
        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(OperationTimeoutError):
            await _fast_retries().retry_with_timeout(slow, 0.01)


class TestRedisClient:
    """Tests for the Redis handle factory."""

    @pytest.mark.asyncio
    async def test_host_settings(self):
        """Test that host settings reach the connection pool."""
        client = create_redis_client(RedisSettings(host="cache.internal", port=6380, db=2))

        kwargs = client.connection_pool.connection_kwargs
        assert isinstance(client, Redis)
        assert (kwargs["host"], kwargs["port"], kwargs["db"]) == ("cache.internal", 6380, 2)
        assert kwargs["decode_responses"] is True
        await close_redis_client(client)

    @pytest.mark.asyncio
    async def test_url_settings(self):
        """Test that a URL takes precedence over host and port."""
        client = create_redis_client(RedisSettings(host="ignored", url="redis://cache.example:6400/1"))

        kwargs = client.connection_pool.connection_kwargs
        assert (kwargs["host"], kwargs["port"], kwargs["db"]) == ("cache.example", 6400, 1)
        await close_redis_client(client)
