"""
Rating Service Module

User ratings and the per-movie aggregate derived from them.
"""

from typing import Optional

from loguru import logger
from pydantic import TypeAdapter

from movie_api.cache import keys
from movie_api.cache.invalidation import InvalidationCoordinator
from movie_api.cache.store import CacheStore
from movie_api.core.constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, MAX_RATING, MIN_RATING
from movie_api.core.exceptions import MovieNotFoundError, NotFoundError, ValidationError
from movie_api.models.domain import Page, Rating, RatingAggregate
from movie_api.repositories.base import MovieRepository, RatingRepository
from .index_service import IndexService


RATING_PAGE_CODEC = TypeAdapter(Page[Rating])


class RatingService:
    """
    Service for rating operations.

    A rating write persists the rating, recomputes the movie's average and
    count, purges every view that shows either, and finally resyncs the
    movie's search document so rating filters and sorts see the new value.
    """

    def __init__(
        self,
        ratings: RatingRepository,
        movies: MovieRepository,
        cache: CacheStore,
        invalidation: InvalidationCoordinator,
        index: Optional[IndexService] = None,
    ):
        self.ratings = ratings
        self.movies = movies
        self.cache = cache
        self.invalidation = invalidation
        self.index = index or IndexService(None)

    async def upsert_rating(self, user_id: str, movie_id: str, rating: int) -> Rating:
        """
        Create or replace the user's rating of a movie.

        Raises:
            ValidationError: If the rating is outside 1..10
            MovieNotFoundError: If the movie does not exist
        """
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(
                f"Rating must be between {MIN_RATING} and {MAX_RATING}",
                details={"rating": rating}
            )
        if await self.movies.get(movie_id) is None:
            raise MovieNotFoundError(movie_id)

        saved = await self.ratings.upsert(user_id, movie_id, rating)
        await self._after_change(user_id, movie_id)
        return saved

    async def delete_rating(self, user_id: str, movie_id: str) -> None:
        if not await self.ratings.delete(user_id, movie_id):
            raise NotFoundError("Rating not found", entity="rating", entity_id=f"{user_id}:{movie_id}")
        await self._after_change(user_id, movie_id)

    async def _after_change(self, user_id: str, movie_id: str) -> RatingAggregate:
        aggregate = await self.ratings.recompute_movie_rating(movie_id)
        await self.invalidation.rating_changed(movie_id=movie_id, user_id=user_id)

        movie = await self.movies.get(movie_id)
        if movie is not None:
            self.index.schedule_upsert(movie)

        logger.debug(
            f"Movie {movie_id} rating now {aggregate.average_rating} "
            f"over {aggregate.rating_count} ratings"
        )
        return aggregate

    async def get_rating(self, user_id: str, movie_id: str) -> Optional[Rating]:
        return await self.ratings.get(user_id, movie_id)

    async def get_movie_ratings(
        self, movie_id: str, page: int = DEFAULT_PAGE, limit: int = DEFAULT_PAGE_SIZE
    ) -> Page[Rating]:
        async def load() -> Page[Rating]:
            items, total = await self.ratings.list_for_movie(movie_id, page, limit)
            return Page[Rating].build(items, page, limit, total)

        return await self.cache.get_or_set(
            keys.MOVIE_RATINGS.key({"page": page, "limit": limit}, movie_id=movie_id),
            keys.MOVIE_RATINGS.tier,
            RATING_PAGE_CODEC,
            load,
        )

    async def get_user_ratings(
        self, user_id: str, page: int = DEFAULT_PAGE, limit: int = DEFAULT_PAGE_SIZE
    ) -> Page[Rating]:
        async def load() -> Page[Rating]:
            items, total = await self.ratings.list_for_user(user_id, page, limit)
            return Page[Rating].build(items, page, limit, total)

        return await self.cache.get_or_set(
            keys.USER_RATINGS.key({"page": page, "limit": limit}, user_id=user_id),
            keys.USER_RATINGS.tier,
            RATING_PAGE_CODEC,
            load,
        )
