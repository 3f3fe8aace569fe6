"""
Movie Service Module

Catalog reads through the cache and catalog writes that purge it.
"""

from typing import Optional

from loguru import logger
from pydantic import TypeAdapter

from movie_api.cache import keys
from movie_api.cache.invalidation import InvalidationCoordinator
from movie_api.cache.store import CacheStore
from movie_api.core.exceptions import MovieNotFoundError
from movie_api.models.domain import Movie, MovieCreate, MovieQuery, MovieUpdate, Page
from movie_api.repositories.base import MovieRepository
from .index_service import IndexService


MOVIE_CODEC = TypeAdapter(Movie)
MOVIE_PAGE_CODEC = TypeAdapter(Page[Movie])


class MovieService:
    """
    Service for catalog operations.

    Writes follow one order: persist, purge stale cache entries, then hand
    the search document to the background index sync.

    Example:
        >>> movie = await movie_service.get_movie("42")
        >>> await movie_service.update_movie("42", MovieUpdate(title="New title"))
    """

    def __init__(
        self,
        movies: MovieRepository,
        cache: CacheStore,
        invalidation: InvalidationCoordinator,
        index: Optional[IndexService] = None,
    ):
        self.movies = movies
        self.cache = cache
        self.invalidation = invalidation
        self.index = index or IndexService(None)

    async def get_movies(self, query: MovieQuery) -> Page[Movie]:
        """Paginated catalog listing, cached per parameter set."""
        async def load() -> Page[Movie]:
            items, total = await self.movies.list_page(query)
            return Page[Movie].build(items, query.page, query.limit, total)

        return await self.cache.get_or_set(
            keys.MOVIES_LIST.key(query), keys.MOVIES_LIST.tier, MOVIE_PAGE_CODEC, load
        )

    async def get_movie(self, movie_id: str) -> Movie:
        """
        Single movie by id.

        Raises:
            MovieNotFoundError: If the id is unknown (the miss is not cached)
        """
        movie = await self.cache.get_or_set(
            keys.MOVIE.key(movie_id=movie_id),
            keys.MOVIE.tier,
            MOVIE_CODEC,
            lambda: self.movies.get(movie_id),
        )
        if movie is None:
            raise MovieNotFoundError(movie_id)
        return movie

    async def create_movie(self, data: MovieCreate) -> Movie:
        movie = await self.movies.create(data)
        await self.invalidation.movie_created()
        self.index.schedule_upsert(movie)
        logger.info(f"Movie created: {movie.id}")
        return movie

    async def update_movie(self, movie_id: str, data: MovieUpdate) -> Movie:
        movie = await self.movies.update(movie_id, data)
        if movie is None:
            raise MovieNotFoundError(movie_id)
        await self.invalidation.movie_changed(movie_id)
        self.index.schedule_upsert(movie)
        logger.info(f"Movie updated: {movie_id}")
        return movie

    async def delete_movie(self, movie_id: str) -> None:
        if not await self.movies.delete(movie_id):
            raise MovieNotFoundError(movie_id)
        await self.invalidation.movie_deleted(movie_id)
        self.index.schedule_delete(movie_id)
        logger.info(f"Movie deleted: {movie_id}")
