"""
Domain Models

Pydantic models for catalog entities and the paginated views the
read-path services cache.
"""

from datetime import datetime
from typing import Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, Field

from movie_api.core.constants import (
    DEFAULT_PAGE,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    MAX_RATING,
    MIN_RATING,
)


T = TypeVar("T")


class CastMember(BaseModel):
    name: str
    character: Optional[str] = None
    order: Optional[int] = None
    image_url: Optional[str] = None


class CrewMember(BaseModel):
    name: str
    job: str
    department: Optional[str] = None
    image_url: Optional[str] = None


class Movie(BaseModel):
    """A catalog entry, including its persisted rating aggregate."""

    id: str
    title: str
    description: Optional[str] = None
    release_date: Optional[datetime] = None
    duration: Optional[int] = None
    genres: List[str] = Field(default_factory=list)
    director: Optional[str] = None
    cast: List[CastMember] = Field(default_factory=list)
    crew: List[CrewMember] = Field(default_factory=list)
    poster: Optional[str] = None
    backdrop: Optional[str] = None
    original_language: Optional[str] = None
    budget: Optional[int] = None
    revenue: Optional[int] = None
    average_rating: Optional[float] = None
    rating_count: int = 0
    created_at: datetime
    updated_at: datetime


class MovieCreate(BaseModel):
    """Fields accepted when creating a movie."""

    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    release_date: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, gt=0)
    genres: List[str] = Field(default_factory=list)
    director: Optional[str] = None
    cast: List[CastMember] = Field(default_factory=list)
    crew: List[CrewMember] = Field(default_factory=list)
    poster: Optional[str] = None
    backdrop: Optional[str] = None
    original_language: Optional[str] = None
    budget: Optional[int] = Field(default=None, ge=0)
    revenue: Optional[int] = Field(default=None, ge=0)


class MovieUpdate(BaseModel):
    """Partial update; only fields that were explicitly set are applied."""

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    release_date: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, gt=0)
    genres: Optional[List[str]] = None
    director: Optional[str] = None
    cast: Optional[List[CastMember]] = None
    crew: Optional[List[CrewMember]] = None
    poster: Optional[str] = None
    backdrop: Optional[str] = None
    original_language: Optional[str] = None
    budget: Optional[int] = Field(default=None, ge=0)
    revenue: Optional[int] = Field(default=None, ge=0)


class PageQuery(BaseModel):
    page: int = Field(default=DEFAULT_PAGE, ge=1)
    limit: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)


class MovieQuery(PageQuery):
    """Listing parameters for the movie catalog."""

    sort_by: Optional[Literal["title", "release_date", "average_rating", "created_at"]] = None
    order: Literal["asc", "desc"] = "asc"


class SearchQuery(PageQuery):
    """Full-text search parameters."""

    q: str = Field(..., min_length=1)
    genres: Optional[List[str]] = None
    min_rating: Optional[float] = Field(default=None, ge=0, le=10)
    sort: Literal["relevance", "rating:desc", "rating:asc", "date:desc", "date:asc"] = "relevance"


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class Page(BaseModel, Generic[T]):
    """One page of results plus pagination metadata."""

    data: List[T]
    pagination: Pagination

    @classmethod
    def build(cls, items: List[T], page: int, limit: int, total: int) -> "Page[T]":
        total_pages = (total + limit - 1) // limit if limit else 0
        return cls(
            data=items,
            pagination=Pagination(page=page, limit=limit, total=total, total_pages=total_pages),
        )


class Rating(BaseModel):
    id: str
    user_id: str
    movie_id: str
    rating: int = Field(..., ge=MIN_RATING, le=MAX_RATING)
    created_at: datetime
    updated_at: datetime


class RatingAggregate(BaseModel):
    average_rating: float = 0.0
    rating_count: int = 0


class Comment(BaseModel):
    id: str
    user_id: str
    movie_id: str
    content: str = Field(..., min_length=1, max_length=2000)
    created_at: datetime
    updated_at: datetime


class Favorite(BaseModel):
    id: str
    user_id: str
    movie_id: str
    created_at: datetime
    movie: Optional[Movie] = None


class WatchedEntry(BaseModel):
    id: str
    user_id: str
    movie_id: str
    watched_at: datetime
    movie: Optional[Movie] = None


class WatchedStats(BaseModel):
    total_watched: int = 0


class SearchMeta(BaseModel):
    query: str
    processing_time_ms: int = 0
    estimated_total_hits: int = 0


class SearchResponse(BaseModel):
    """Search hits as returned by the search engine, with pagination."""

    data: List[Dict]
    pagination: Pagination
    meta: SearchMeta


class Facets(BaseModel):
    genres: Dict[str, int] = Field(default_factory=dict)
    languages: Dict[str, int] = Field(default_factory=dict)
