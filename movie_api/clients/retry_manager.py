"""
Retry Manager Module

Bounded exponential backoff with jitter for calls to the search engine.
"""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, FrozenSet, Optional, TypeVar

import httpx
from loguru import logger

from movie_api.core.constants import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_INITIAL_BACKOFF,
    DEFAULT_JITTER_FACTOR,
    DEFAULT_MAX_BACKOFF,
    DEFAULT_MAX_RETRIES,
)
from movie_api.core.exceptions import TimeoutError as OperationTimeoutError


T = TypeVar('T')


@dataclass
class RetryConfig:
    """
    Configuration for retry logic.

    Attributes:
        max_retries: Maximum number of retry attempts
        initial_backoff: Initial backoff delay in seconds
        max_backoff: Maximum backoff delay in seconds
        backoff_multiplier: Multiplier for exponential backoff
        jitter_factor: Jitter factor (0.0-1.0) to add randomness
        retryable_status_codes: Upstream HTTP statuses worth another attempt
    """
    max_retries: int = DEFAULT_MAX_RETRIES
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF
    max_backoff: float = DEFAULT_MAX_BACKOFF
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    jitter_factor: float = DEFAULT_JITTER_FACTOR
    retryable_status_codes: FrozenSet[int] = field(
        default_factory=lambda: frozenset({408, 429, 500, 502, 503, 504})
    )


class RetryManager:
    """
    Retries an async operation with exponential backoff.

    An error is retried when it carries a retryable upstream status
    (`upstream_status_code`) or is a transport-level failure. Anything else
    is raised immediately.

    Example:
        >>> retry_manager = RetryManager(RetryConfig(max_retries=2))
        >>> result = await retry_manager.retry_async(fetch, doc_id)
    """

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()

    def calculate_backoff(self, attempt: int) -> float:
        """
        Backoff delay for a retry attempt (0-indexed).

        delay = min(initial * multiplier^attempt, max) * (1 + jitter * random())
        """
        delay = self.config.initial_backoff * (self.config.backoff_multiplier ** attempt)
        delay = min(delay, self.config.max_backoff)
        return delay + delay * self.config.jitter_factor * random.random()

    def should_retry(self, attempt: int, error: Exception) -> bool:
        if attempt >= self.config.max_retries:
            return False

        status_code = getattr(error, 'upstream_status_code', None)
        if status_code is not None:
            return status_code in self.config.retryable_status_codes

        return isinstance(
            error,
            (httpx.TransportError, ConnectionError, asyncio.TimeoutError, OperationTimeoutError),
        )

    async def retry_async(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Call `func` until it succeeds or retrying is no longer allowed.

        Raises:
            Exception: The last error once retries are exhausted or the
                error is not retryable
        """
        attempt = 0
        while True:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if not self.should_retry(attempt, e):
                    if attempt:
                        logger.warning(
                            f"Giving up after {attempt + 1} attempts: {type(e).__name__}: {e}"
                        )
                    raise

                delay = self.calculate_backoff(attempt)
                logger.warning(
                    f"Retry attempt {attempt + 1}/{self.config.max_retries} "
                    f"after {delay:.2f}s delay: {type(e).__name__}: {e}"
                )
                await asyncio.sleep(delay)
                attempt += 1

    async def retry_with_timeout(
        self,
        func: Callable[..., Awaitable[T]],
        timeout: float,
        *args,
        **kwargs
    ) -> T:
        """
        Like retry_async, bounded by a total timeout across all attempts.

        Raises:
            TimeoutError: If the total timeout is exceeded
        """
        try:
            return await asyncio.wait_for(
                self.retry_async(func, *args, **kwargs),
                timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                f"Operation timed out after {timeout} seconds",
                timeout_seconds=timeout
            ) from e
