"""
In-Memory Repositories

Dictionary-backed implementations of the persistence contracts. All
repositories created from the same InMemoryDatabase share its tables, so
deleting a movie cascades to its ratings, comments, favorites and watch
entries the way foreign keys would.

Each repository counts its read calls in `reads`, which lets tests tell a
cache hit from a trip to persistence.
"""

import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple, TypeVar

from movie_api.core.exceptions import ConflictError
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
from .base import (
    CommentRepository,
    FavoriteRepository,
    MovieRepository,
    RatingRepository,
    WatchedRepository,
)


T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _paginate(items: List[T], page: int, limit: int) -> Tuple[List[T], int]:
    start = (page - 1) * limit
    return items[start:start + limit], len(items)


def _newest_first(rows: Iterable[T]) -> List[T]:
    # Tables are insertion-ordered, so reversing gives creation order descending
    return list(reversed(list(rows)))


@dataclass
class InMemoryDatabase:
    """Tables shared by the in-memory repositories."""

    movies: Dict[str, Movie] = field(default_factory=dict)
    ratings: Dict[Tuple[str, str], Rating] = field(default_factory=dict)
    comments: Dict[str, Comment] = field(default_factory=dict)
    favorites: Dict[Tuple[str, str], Favorite] = field(default_factory=dict)
    watched: Dict[Tuple[str, str], WatchedEntry] = field(default_factory=dict)

    def drop_movie(self, movie_id: str) -> None:
        self.movies.pop(movie_id, None)
        for table in (self.ratings, self.favorites, self.watched):
            for key in [k for k in table if k[1] == movie_id]:
                del table[key]
        for comment_id in [c.id for c in self.comments.values() if c.movie_id == movie_id]:
            del self.comments[comment_id]


class _InMemoryRepository:
    def __init__(self, db: InMemoryDatabase):
        self.db = db
        self.reads: Counter = Counter()

    def _movie(self, movie_id: str) -> Optional[Movie]:
        movie = self.db.movies.get(movie_id)
        return movie.model_copy(deep=True) if movie else None


class InMemoryMovieRepository(_InMemoryRepository, MovieRepository):

    async def list_page(self, query: MovieQuery) -> Tuple[List[Movie], int]:
        self.reads["list_page"] += 1
        sort_by = query.sort_by or "created_at"
        present = [m for m in self.db.movies.values() if getattr(m, sort_by) is not None]
        absent = [m for m in self.db.movies.values() if getattr(m, sort_by) is None]
        present.sort(key=lambda m: getattr(m, sort_by), reverse=query.order == "desc")
        page, total = _paginate(present + absent, query.page, query.limit)
        return [m.model_copy(deep=True) for m in page], total

    async def get(self, movie_id: str) -> Optional[Movie]:
        self.reads["get"] += 1
        return self._movie(movie_id)

    async def list_all(self) -> List[Movie]:
        self.reads["list_all"] += 1
        return [m.model_copy(deep=True) for m in self.db.movies.values()]

    async def create(self, data: MovieCreate) -> Movie:
        now = _now()
        movie = Movie(id=_new_id(), created_at=now, updated_at=now, **data.model_dump())
        self.db.movies[movie.id] = movie
        return movie.model_copy(deep=True)

    async def update(self, movie_id: str, data: MovieUpdate) -> Optional[Movie]:
        current = self.db.movies.get(movie_id)
        if current is None:
            return None
        changes = data.model_dump(exclude_unset=True)
        updated = Movie.model_validate({**current.model_dump(), **changes, "updated_at": _now()})
        self.db.movies[movie_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, movie_id: str) -> bool:
        if movie_id not in self.db.movies:
            return False
        self.db.drop_movie(movie_id)
        return True


class InMemoryRatingRepository(_InMemoryRepository, RatingRepository):

    async def upsert(self, user_id: str, movie_id: str, rating: int) -> Rating:
        now = _now()
        existing = self.db.ratings.get((user_id, movie_id))
        if existing:
            saved = existing.model_copy(update={"rating": rating, "updated_at": now})
        else:
            saved = Rating(
                id=_new_id(), user_id=user_id, movie_id=movie_id,
                rating=rating, created_at=now, updated_at=now,
            )
        self.db.ratings[(user_id, movie_id)] = saved
        return saved.model_copy()

    async def get(self, user_id: str, movie_id: str) -> Optional[Rating]:
        self.reads["get"] += 1
        rating = self.db.ratings.get((user_id, movie_id))
        return rating.model_copy() if rating else None

    async def delete(self, user_id: str, movie_id: str) -> bool:
        return self.db.ratings.pop((user_id, movie_id), None) is not None

    async def list_for_movie(self, movie_id: str, page: int, limit: int) -> Tuple[List[Rating], int]:
        self.reads["list_for_movie"] += 1
        rows = [r for r in self.db.ratings.values() if r.movie_id == movie_id]
        return _paginate(_newest_first(rows), page, limit)

    async def list_for_user(self, user_id: str, page: int, limit: int) -> Tuple[List[Rating], int]:
        self.reads["list_for_user"] += 1
        rows = [r for r in self.db.ratings.values() if r.user_id == user_id]
        return _paginate(_newest_first(rows), page, limit)

    async def recompute_movie_rating(self, movie_id: str) -> RatingAggregate:
        values = [r.rating for r in self.db.ratings.values() if r.movie_id == movie_id]
        aggregate = RatingAggregate(
            average_rating=round(sum(values) / len(values), 2) if values else 0.0,
            rating_count=len(values),
        )
        movie = self.db.movies.get(movie_id)
        if movie is not None:
            self.db.movies[movie_id] = movie.model_copy(update={
                "average_rating": aggregate.average_rating if values else None,
                "rating_count": aggregate.rating_count,
                "updated_at": _now(),
            })
        return aggregate


class InMemoryCommentRepository(_InMemoryRepository, CommentRepository):

    async def create(self, user_id: str, movie_id: str, content: str) -> Comment:
        now = _now()
        comment = Comment(
            id=_new_id(), user_id=user_id, movie_id=movie_id,
            content=content, created_at=now, updated_at=now,
        )
        self.db.comments[comment.id] = comment
        return comment.model_copy()

    async def get(self, comment_id: str) -> Optional[Comment]:
        self.reads["get"] += 1
        comment = self.db.comments.get(comment_id)
        return comment.model_copy() if comment else None

    async def update(self, comment_id: str, content: str) -> Optional[Comment]:
        comment = self.db.comments.get(comment_id)
        if comment is None:
            return None
        updated = comment.model_copy(update={"content": content, "updated_at": _now()})
        self.db.comments[comment_id] = updated
        return updated.model_copy()

    async def delete(self, comment_id: str) -> bool:
        return self.db.comments.pop(comment_id, None) is not None

    async def list_for_movie(self, movie_id: str, page: int, limit: int) -> Tuple[List[Comment], int]:
        self.reads["list_for_movie"] += 1
        rows = [c for c in self.db.comments.values() if c.movie_id == movie_id]
        return _paginate(_newest_first(rows), page, limit)

    async def list_for_user(self, user_id: str, page: int, limit: int) -> Tuple[List[Comment], int]:
        self.reads["list_for_user"] += 1
        rows = [c for c in self.db.comments.values() if c.user_id == user_id]
        return _paginate(_newest_first(rows), page, limit)


class InMemoryFavoriteRepository(_InMemoryRepository, FavoriteRepository):

    async def add(self, user_id: str, movie_id: str) -> Favorite:
        if (user_id, movie_id) in self.db.favorites:
            raise ConflictError(
                "Movie already in favorites",
                details={"user_id": user_id, "movie_id": movie_id}
            )
        favorite = Favorite(id=_new_id(), user_id=user_id, movie_id=movie_id, created_at=_now())
        self.db.favorites[(user_id, movie_id)] = favorite
        return favorite.model_copy()

    async def remove(self, user_id: str, movie_id: str) -> bool:
        return self.db.favorites.pop((user_id, movie_id), None) is not None

    async def exists(self, user_id: str, movie_id: str) -> bool:
        self.reads["exists"] += 1
        return (user_id, movie_id) in self.db.favorites

    async def list_for_user(self, user_id: str, page: int, limit: int) -> Tuple[List[Favorite], int]:
        self.reads["list_for_user"] += 1
        rows = [f for f in self.db.favorites.values() if f.user_id == user_id]
        page_rows, total = _paginate(_newest_first(rows), page, limit)
        return [f.model_copy(update={"movie": self._movie(f.movie_id)}) for f in page_rows], total


class InMemoryWatchedRepository(_InMemoryRepository, WatchedRepository):

    async def add(self, user_id: str, movie_id: str) -> WatchedEntry:
        if (user_id, movie_id) in self.db.watched:
            raise ConflictError(
                "Movie already marked as watched",
                details={"user_id": user_id, "movie_id": movie_id}
            )
        entry = WatchedEntry(id=_new_id(), user_id=user_id, movie_id=movie_id, watched_at=_now())
        self.db.watched[(user_id, movie_id)] = entry
        return entry.model_copy()

    async def remove(self, user_id: str, movie_id: str) -> bool:
        return self.db.watched.pop((user_id, movie_id), None) is not None

    async def exists(self, user_id: str, movie_id: str) -> bool:
        self.reads["exists"] += 1
        return (user_id, movie_id) in self.db.watched

    async def list_for_user(self, user_id: str, page: int, limit: int) -> Tuple[List[WatchedEntry], int]:
        self.reads["list_for_user"] += 1
        rows = [w for w in self.db.watched.values() if w.user_id == user_id]
        page_rows, total = _paginate(_newest_first(rows), page, limit)
        return [w.model_copy(update={"movie": self._movie(w.movie_id)}) for w in page_rows], total

    async def count_for_user(self, user_id: str) -> int:
        self.reads["count_for_user"] += 1
        return sum(1 for w in self.db.watched.values() if w.user_id == user_id)

    async def recent_for_user(self, user_id: str, limit: int) -> List[WatchedEntry]:
        self.reads["recent_for_user"] += 1
        rows, _ = await self.list_for_user(user_id, 1, limit)
        return rows


@dataclass
class InMemoryRepositories:
    """One set of repositories over a shared database."""

    db: InMemoryDatabase = field(default_factory=InMemoryDatabase)

    def __post_init__(self):
        self.movies = InMemoryMovieRepository(self.db)
        self.ratings = InMemoryRatingRepository(self.db)
        self.comments = InMemoryCommentRepository(self.db)
        self.favorites = InMemoryFavoriteRepository(self.db)
        self.watched = InMemoryWatchedRepository(self.db)
