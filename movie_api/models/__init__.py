"""
Models Module

Pydantic models for domain entities and API responses.
"""

from .domain import (
    Movie,
    MovieCreate,
    MovieUpdate,
    MovieQuery,
    SearchQuery,
    Page,
    Pagination,
    Rating,
    RatingAggregate,
    Comment,
    Favorite,
    WatchedEntry,
    WatchedStats,
    SearchResponse,
    Facets,
)

from .responses import (
    CacheStats,
    BaseResponse,
    ErrorResponse,
    RateLimitErrorResponse,
    HealthResponse,
    CacheStatsResponse,
    CacheKeysResponse,
    CacheDeleteResponse,
    ReindexResponse,
)

__all__ = [
    # Domain
    "Movie",
    "MovieCreate",
    "MovieUpdate",
    "MovieQuery",
    "SearchQuery",
    "Page",
    "Pagination",
    "Rating",
    "RatingAggregate",
    "Comment",
    "Favorite",
    "WatchedEntry",
    "WatchedStats",
    "SearchResponse",
    "Facets",
    # Responses
    "CacheStats",
    "BaseResponse",
    "ErrorResponse",
    "RateLimitErrorResponse",
    "HealthResponse",
    "CacheStatsResponse",
    "CacheKeysResponse",
    "CacheDeleteResponse",
    "ReindexResponse",
]
