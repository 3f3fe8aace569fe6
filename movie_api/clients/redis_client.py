"""
Redis Client Module

Builds the single shared key-value store handle used by the cache layer
and the rate limiter.

The handle is created once at application startup and injected into every
component; nothing in the package reaches for a module-level client.
Every command is bounded by socket timeouts and a bounded exponential
backoff retry policy, so callers never observe an unbounded hang.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

from loguru import logger
from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from movie_api.core.constants import (
    DEFAULT_REDIS_BACKOFF_BASE,
    DEFAULT_REDIS_BACKOFF_CAP,
    DEFAULT_REDIS_CONNECT_TIMEOUT,
    DEFAULT_REDIS_DB,
    DEFAULT_REDIS_HOST,
    DEFAULT_REDIS_MAX_CONNECTIONS,
    DEFAULT_REDIS_MAX_RETRIES,
    DEFAULT_REDIS_PORT,
    DEFAULT_REDIS_SOCKET_TIMEOUT,
)


# Everything a store round-trip may raise when the store is unreachable,
# slow, or answers with an error.
STORE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


@dataclass
class RedisSettings:
    """
    Connection settings for the key-value store.

    Attributes:
        host: Redis host name
        port: Redis port
        db: Database index
        password: Optional password
        url: Optional redis:// or rediss:// URL; takes precedence over host/port
        socket_timeout: Per-command socket timeout in seconds
        connect_timeout: Connection establishment timeout in seconds
        max_retries: Retries per command on connection errors and timeouts
        backoff_base: First backoff delay in seconds
        backoff_cap: Maximum backoff delay in seconds
        max_connections: Connection pool size
    """
    host: str = DEFAULT_REDIS_HOST
    port: int = DEFAULT_REDIS_PORT
    db: int = DEFAULT_REDIS_DB
    password: Optional[str] = None
    url: Optional[str] = None
    socket_timeout: float = DEFAULT_REDIS_SOCKET_TIMEOUT
    connect_timeout: float = DEFAULT_REDIS_CONNECT_TIMEOUT
    max_retries: int = DEFAULT_REDIS_MAX_RETRIES
    backoff_base: float = DEFAULT_REDIS_BACKOFF_BASE
    backoff_cap: float = DEFAULT_REDIS_BACKOFF_CAP
    max_connections: int = DEFAULT_REDIS_MAX_CONNECTIONS

    @classmethod
    def from_config(cls, config_obj) -> "RedisSettings":
        """Read the `redis.*` section of the configuration."""
        return cls(
            host=config_obj.get('redis.host', default=DEFAULT_REDIS_HOST, expected_type=str),
            port=config_obj.get('redis.port', default=DEFAULT_REDIS_PORT, expected_type=int),
            db=config_obj.get('redis.db', default=DEFAULT_REDIS_DB, expected_type=int),
            password=config_obj.get('redis.password', default=None),
            url=config_obj.get('redis.url', default=None),
            socket_timeout=config_obj.get(
                'redis.socket_timeout', default=DEFAULT_REDIS_SOCKET_TIMEOUT, expected_type=float
            ),
            connect_timeout=config_obj.get(
                'redis.connect_timeout', default=DEFAULT_REDIS_CONNECT_TIMEOUT, expected_type=float
            ),
            max_retries=config_obj.get(
                'redis.max_retries', default=DEFAULT_REDIS_MAX_RETRIES, expected_type=int
            ),
            backoff_base=config_obj.get(
                'redis.backoff_base', default=DEFAULT_REDIS_BACKOFF_BASE, expected_type=float
            ),
            backoff_cap=config_obj.get(
                'redis.backoff_cap', default=DEFAULT_REDIS_BACKOFF_CAP, expected_type=float
            ),
            max_connections=config_obj.get(
                'redis.max_connections', default=DEFAULT_REDIS_MAX_CONNECTIONS, expected_type=int
            ),
        )


def create_redis_client(settings: RedisSettings) -> Redis:
    """
    Create the shared async Redis handle.

    Args:
        settings: Connection settings

    Returns:
        Redis client with decoded string responses, bounded timeouts and a
        bounded exponential backoff retry policy

    Example:
        >>> client = create_redis_client(RedisSettings.from_config(config))
        >>> await client.ping()
    """
    retry = Retry(
        ExponentialBackoff(cap=settings.backoff_cap, base=settings.backoff_base),
        settings.max_retries,
    )
    common = dict(
        decode_responses=True,
        socket_timeout=settings.socket_timeout,
        socket_connect_timeout=settings.connect_timeout,
        retry=retry,
        retry_on_error=[RedisConnectionError, RedisTimeoutError],
        max_connections=settings.max_connections,
        health_check_interval=30,
    )

    if settings.url:
        client = Redis.from_url(settings.url, **common)
        logger.info("Redis client created from URL")
    else:
        client = Redis(
            host=settings.host,
            port=settings.port,
            db=settings.db,
            password=settings.password,
            **common,
        )
        logger.info(f"Redis client created for {settings.host}:{settings.port}/{settings.db}")

    return client


async def close_redis_client(client: Redis) -> None:
    """Close the handle and release its connection pool."""
    try:
        await client.aclose()
        logger.debug("Redis client closed")
    except STORE_ERRORS as e:
        logger.warning(f"Error while closing Redis client: {e}")
