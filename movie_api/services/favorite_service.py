"""
Favorite Service Module
"""

from pydantic import TypeAdapter

from movie_api.cache import keys
from movie_api.cache.invalidation import InvalidationCoordinator
from movie_api.cache.store import CacheStore
from movie_api.core.constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE
from movie_api.core.exceptions import ConflictError, MovieNotFoundError, NotFoundError
from movie_api.models.domain import Favorite, Page
from movie_api.repositories.base import FavoriteRepository, MovieRepository


FAVORITE_PAGE_CODEC = TypeAdapter(Page[Favorite])


class FavoriteService:
    """
    A user's favorite movies.

    Every page of a user's favorites is cached under that user's scope, so
    one add or remove purges all of them at once.
    """

    def __init__(
        self,
        favorites: FavoriteRepository,
        movies: MovieRepository,
        cache: CacheStore,
        invalidation: InvalidationCoordinator,
    ):
        self.favorites = favorites
        self.movies = movies
        self.cache = cache
        self.invalidation = invalidation

    async def add_favorite(self, user_id: str, movie_id: str) -> Favorite:
        """
        Raises:
            MovieNotFoundError: If the movie does not exist
            ConflictError: If the movie is already a favorite
        """
        if await self.movies.get(movie_id) is None:
            raise MovieNotFoundError(movie_id)
        if await self.favorites.exists(user_id, movie_id):
            raise ConflictError("Movie is already in favorites", details={"movie_id": movie_id})

        favorite = await self.favorites.add(user_id, movie_id)
        await self.invalidation.favorites_changed(user_id)
        return favorite

    async def remove_favorite(self, user_id: str, movie_id: str) -> None:
        if not await self.favorites.remove(user_id, movie_id):
            raise NotFoundError("Movie is not in favorites", entity="favorite", entity_id=movie_id)
        await self.invalidation.favorites_changed(user_id)

    async def is_favorite(self, user_id: str, movie_id: str) -> bool:
        return await self.favorites.exists(user_id, movie_id)

    async def get_user_favorites(
        self, user_id: str, page: int = DEFAULT_PAGE, limit: int = DEFAULT_PAGE_SIZE
    ) -> Page[Favorite]:
        async def load() -> Page[Favorite]:
            items, total = await self.favorites.list_for_user(user_id, page, limit)
            return Page[Favorite].build(items, page, limit, total)

        return await self.cache.get_or_set(
            keys.USER_FAVORITES.key({"page": page, "limit": limit}, user_id=user_id),
            keys.USER_FAVORITES.tier,
            FAVORITE_PAGE_CODEC,
            load,
        )
