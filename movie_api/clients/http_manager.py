"""
HTTP Manager Module

Owns the pooled httpx client used to reach the search engine.
"""

from typing import Optional

import httpx
from loguru import logger

from movie_api.core.constants import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    MAX_CONNECTIONS,
    MAX_KEEPALIVE_CONNECTIONS,
)


class HTTPManager:
    """
    HTTP connection manager with pooling.

    One AsyncClient is created lazily and reused across requests until
    close() is called at shutdown.

    Example:
        >>> manager = HTTPManager(base_url="http://localhost:7700")
        >>> response = await manager.client.get("/health")
        >>> await manager.close()
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        headers: Optional[dict] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize HTTP manager.

        Args:
            base_url: Prefix for relative request URLs
            timeout: Request timeout in seconds
            headers: Headers sent with every request
            transport: Custom transport (tests pass httpx.MockTransport)
        """
        self._client: Optional[httpx.AsyncClient] = None
        self._base_url = base_url
        self._headers = headers or {}
        self._transport = transport
        self._timeout = httpx.Timeout(timeout=timeout, connect=DEFAULT_CONNECT_TIMEOUT)
        self._limits = httpx.Limits(
            max_keepalive_connections=MAX_KEEPALIVE_CONNECTIONS,
            max_connections=MAX_CONNECTIONS,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            kwargs = dict(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
                limits=self._limits,
                follow_redirects=True,
            )
            if self._transport is not None:
                kwargs["transport"] = self._transport
            else:
                kwargs["http2"] = True
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def close(self):
        """Close HTTP client and cleanup resources."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.debug("HTTP client closed")
