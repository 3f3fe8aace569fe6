"""
Watched Service Module

A user's watch history and the statistics derived from it.
"""

from typing import List

from pydantic import TypeAdapter

from movie_api.cache import keys
from movie_api.cache.invalidation import InvalidationCoordinator
from movie_api.cache.store import CacheStore
from movie_api.core.constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, DEFAULT_RECENTLY_WATCHED_LIMIT
from movie_api.core.exceptions import ConflictError, MovieNotFoundError, NotFoundError
from movie_api.models.domain import Page, WatchedEntry, WatchedStats
from movie_api.repositories.base import MovieRepository, WatchedRepository


WATCHED_PAGE_CODEC = TypeAdapter(Page[WatchedEntry])
WATCHED_STATS_CODEC = TypeAdapter(WatchedStats)


class WatchedService:
    """Service for watch history operations."""

    def __init__(
        self,
        watched: WatchedRepository,
        movies: MovieRepository,
        cache: CacheStore,
        invalidation: InvalidationCoordinator,
    ):
        self.watched = watched
        self.movies = movies
        self.cache = cache
        self.invalidation = invalidation

    async def mark_watched(self, user_id: str, movie_id: str) -> WatchedEntry:
        if await self.movies.get(movie_id) is None:
            raise MovieNotFoundError(movie_id)
        if await self.watched.exists(user_id, movie_id):
            raise ConflictError("Movie is already marked as watched", details={"movie_id": movie_id})

        entry = await self.watched.add(user_id, movie_id)
        await self.invalidation.watched_changed(user_id)
        return entry

    async def unmark_watched(self, user_id: str, movie_id: str) -> None:
        if not await self.watched.remove(user_id, movie_id):
            raise NotFoundError("Movie is not marked as watched", entity="watched", entity_id=movie_id)
        await self.invalidation.watched_changed(user_id)

    async def is_watched(self, user_id: str, movie_id: str) -> bool:
        return await self.watched.exists(user_id, movie_id)

    async def get_user_watched(
        self, user_id: str, page: int = DEFAULT_PAGE, limit: int = DEFAULT_PAGE_SIZE
    ) -> Page[WatchedEntry]:
        async def load() -> Page[WatchedEntry]:
            items, total = await self.watched.list_for_user(user_id, page, limit)
            return Page[WatchedEntry].build(items, page, limit, total)

        return await self.cache.get_or_set(
            keys.USER_WATCHED.key({"page": page, "limit": limit}, user_id=user_id),
            keys.USER_WATCHED.tier,
            WATCHED_PAGE_CODEC,
            load,
        )

    async def get_user_stats(self, user_id: str) -> WatchedStats:
        async def load() -> WatchedStats:
            return WatchedStats(total_watched=await self.watched.count_for_user(user_id))

        return await self.cache.get_or_set(
            keys.USER_WATCHED_STATS.key(user_id=user_id),
            keys.USER_WATCHED_STATS.tier,
            WATCHED_STATS_CODEC,
            load,
        )

    async def get_recently_watched(
        self, user_id: str, limit: int = DEFAULT_RECENTLY_WATCHED_LIMIT
    ) -> List[WatchedEntry]:
        # Read straight from persistence; recency views are not cached
        return await self.watched.recent_for_user(user_id, limit)
