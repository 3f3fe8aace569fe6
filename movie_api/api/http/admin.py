"""
Admin Routes

Cache introspection and manual invalidation for operators. Every route
requires administrator privilege and is limited by the general API
rate limiter.
"""

from fastapi import APIRouter, Depends, Query
from loguru import logger

from movie_api.api.dependencies import AppContainer, get_container
from movie_api.core.constants import DEFAULT_KEYS_LISTING_LIMIT, MAX_KEYS_LISTING_LIMIT
from movie_api.core.exceptions import ValidationError
from movie_api.models.responses import (
    CacheDeleteResponse,
    CacheKeysResponse,
    CacheStatsResponse,
    ErrorResponse,
    RateLimitErrorResponse,
    ReindexResponse,
)


def _require_pattern(pattern: str) -> str:
    if not pattern or not pattern.strip():
        raise ValidationError("Pattern parameter is required")
    return pattern


def build_admin_router(container: AppContainer) -> APIRouter:
    """
    Create the admin router, guarded and rate limited by the container's
    admin guard and API limiter.
    """
    router = APIRouter(
        prefix="/admin",
        tags=["admin"],
        dependencies=[Depends(container.admin_guard), Depends(container.limiters.api)],
        responses={
            400: {"model": ErrorResponse},
            403: {"model": ErrorResponse},
            429: {"model": RateLimitErrorResponse},
        },
    )

    @router.get("/cache/stats", response_model=CacheStatsResponse)
    async def cache_stats(app_container: AppContainer = Depends(get_container)):
        """Key count, memory usage and hit rate of the cache store."""
        stats = await app_container.cache.stats()
        return CacheStatsResponse(success=True, data=stats)

    @router.get("/cache/keys", response_model=CacheKeysResponse)
    async def cache_keys(
        pattern: str = Query(default="", description='Redis key pattern (e.g. "movie:*")'),
        limit: int = Query(default=DEFAULT_KEYS_LISTING_LIMIT, ge=1, le=MAX_KEYS_LISTING_LIMIT),
        app_container: AppContainer = Depends(get_container),
    ):
        """List cache keys matching a pattern."""
        pattern = _require_pattern(pattern)
        keys = await app_container.cache.keys_by_pattern(pattern, limit=limit)
        return CacheKeysResponse(success=True, pattern=pattern, count=len(keys), keys=keys)

    @router.delete("/cache", response_model=CacheDeleteResponse)
    async def flush_cache(app_container: AppContainer = Depends(get_container)):
        """Remove every key in the cache database."""
        await app_container.cache.flush_all()
        return CacheDeleteResponse(success=True, message="All cache has been flushed successfully")

    @router.delete("/cache/pattern", response_model=CacheDeleteResponse)
    async def delete_pattern(
        pattern: str = Query(default="", description='Redis key pattern (e.g. "movie:*")'),
        app_container: AppContainer = Depends(get_container),
    ):
        pattern = _require_pattern(pattern)
        deleted = await app_container.cache.delete_by_pattern(pattern)
        logger.warning(f"Admin deleted {deleted} keys with pattern: {pattern}")
        return CacheDeleteResponse(
            success=True,
            message=f"Successfully deleted {deleted} cache keys",
            deleted=deleted,
        )

    @router.delete("/cache/movie/{movie_id}", response_model=CacheDeleteResponse)
    async def invalidate_movie(movie_id: str, app_container: AppContainer = Depends(get_container)):
        """Purge every cached view of one movie."""
        report = await app_container.invalidation.movie_changed(movie_id)
        return CacheDeleteResponse(
            success=True,
            message=f"Successfully invalidated cache for movie {movie_id}",
            deleted=report.deleted,
        )

    @router.delete("/cache/searches", response_model=CacheDeleteResponse)
    async def invalidate_searches(app_container: AppContainer = Depends(get_container)):
        report = await app_container.invalidation.invalidate_searches()
        return CacheDeleteResponse(
            success=True,
            message="Successfully invalidated all search caches",
            deleted=report.deleted,
        )

    @router.delete("/cache/lists", response_model=CacheDeleteResponse)
    async def invalidate_lists(app_container: AppContainer = Depends(get_container)):
        report = await app_container.invalidation.invalidate_lists()
        return CacheDeleteResponse(
            success=True,
            message="Successfully invalidated all list caches",
            deleted=report.deleted,
        )

    @router.post("/search/reindex", response_model=ReindexResponse)
    async def reindex(app_container: AppContainer = Depends(get_container)):
        """Push the whole catalog to the search index, then drop cached searches."""
        indexed = await app_container.index.reindex_all(app_container.repositories.movies)
        await app_container.invalidation.invalidate_searches()
        return ReindexResponse(success=True, message=f"Reindexed {indexed} movies", indexed=indexed)

    return router
