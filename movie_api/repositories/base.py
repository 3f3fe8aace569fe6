"""
Persistence Contracts

Abstract repositories the services depend on. The relational store that
backs them in production lives outside this package; the in-memory
implementation in `memory.py` serves development and tests.

List methods return `(items, total)` so services can build pagination
metadata without a second round-trip.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from movie_api.models.domain import (
    Comment,
    Favorite,
    Movie,
    MovieCreate,
    MovieQuery,
    MovieUpdate,
    Rating,
    RatingAggregate,
    WatchedEntry,
)


class MovieRepository(ABC):

    @abstractmethod
    async def list_page(self, query: MovieQuery) -> Tuple[List[Movie], int]:
        ...

    @abstractmethod
    async def get(self, movie_id: str) -> Optional[Movie]:
        ...

    @abstractmethod
    async def list_all(self) -> List[Movie]:
        """Every movie, unpaginated; used to rebuild the search index."""

    @abstractmethod
    async def create(self, data: MovieCreate) -> Movie:
        ...

    @abstractmethod
    async def update(self, movie_id: str, data: MovieUpdate) -> Optional[Movie]:
        """Apply the explicitly set fields; None if the movie does not exist."""

    @abstractmethod
    async def delete(self, movie_id: str) -> bool:
        """Delete the movie and everything that references it."""


class RatingRepository(ABC):

    @abstractmethod
    async def upsert(self, user_id: str, movie_id: str, rating: int) -> Rating:
        ...

    @abstractmethod
    async def get(self, user_id: str, movie_id: str) -> Optional[Rating]:
        ...

    @abstractmethod
    async def delete(self, user_id: str, movie_id: str) -> bool:
        ...

    @abstractmethod
    async def list_for_movie(self, movie_id: str, page: int, limit: int) -> Tuple[List[Rating], int]:
        ...

    @abstractmethod
    async def list_for_user(self, user_id: str, page: int, limit: int) -> Tuple[List[Rating], int]:
        ...

    @abstractmethod
    async def recompute_movie_rating(self, movie_id: str) -> RatingAggregate:
        """
        Recalculate a movie's average and count from its ratings and
        persist them on the movie row.
        """


class CommentRepository(ABC):

    @abstractmethod
    async def create(self, user_id: str, movie_id: str, content: str) -> Comment:
        ...

    @abstractmethod
    async def get(self, comment_id: str) -> Optional[Comment]:
        ...

    @abstractmethod
    async def update(self, comment_id: str, content: str) -> Optional[Comment]:
        ...

    @abstractmethod
    async def delete(self, comment_id: str) -> bool:
        ...

    @abstractmethod
    async def list_for_movie(self, movie_id: str, page: int, limit: int) -> Tuple[List[Comment], int]:
        ...

    @abstractmethod
    async def list_for_user(self, user_id: str, page: int, limit: int) -> Tuple[List[Comment], int]:
        ...


class FavoriteRepository(ABC):

    @abstractmethod
    async def add(self, user_id: str, movie_id: str) -> Favorite:
        ...

    @abstractmethod
    async def remove(self, user_id: str, movie_id: str) -> bool:
        ...

    @abstractmethod
    async def exists(self, user_id: str, movie_id: str) -> bool:
        ...

    @abstractmethod
    async def list_for_user(self, user_id: str, page: int, limit: int) -> Tuple[List[Favorite], int]:
        """Favorites newest first, each with its movie embedded."""


class WatchedRepository(ABC):

    @abstractmethod
    async def add(self, user_id: str, movie_id: str) -> WatchedEntry:
        ...

    @abstractmethod
    async def remove(self, user_id: str, movie_id: str) -> bool:
        ...

    @abstractmethod
    async def exists(self, user_id: str, movie_id: str) -> bool:
        ...

    @abstractmethod
    async def list_for_user(self, user_id: str, page: int, limit: int) -> Tuple[List[WatchedEntry], int]:
        """Watch history newest first, each entry with its movie embedded."""

    @abstractmethod
    async def count_for_user(self, user_id: str) -> int:
        ...

    @abstractmethod
    async def recent_for_user(self, user_id: str, limit: int) -> List[WatchedEntry]:
        ...
