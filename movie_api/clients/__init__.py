"""
Clients Module

Clients for external collaborators: the Redis key-value store and the
Meilisearch search engine.
"""

from .http_manager import HTTPManager
from .retry_manager import RetryManager, RetryConfig
from .redis_client import RedisSettings, create_redis_client, close_redis_client, STORE_ERRORS
from .search_client import SearchIndexClient, movie_to_document

__all__ = [
    "HTTPManager",
    "RetryManager",
    "RetryConfig",
    "RedisSettings",
    "create_redis_client",
    "close_redis_client",
    "STORE_ERRORS",
    "SearchIndexClient",
    "movie_to_document",
]
