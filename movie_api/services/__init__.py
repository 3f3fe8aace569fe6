"""
Services Module

Read-path services: cache-aside reads and writes that invalidate.
"""

from .index_service import IndexService
from .movie_service import MovieService
from .search_service import SearchService
from .rating_service import RatingService
from .comment_service import CommentService
from .favorite_service import FavoriteService
from .watched_service import WatchedService

__all__ = [
    "IndexService",
    "MovieService",
    "SearchService",
    "RatingService",
    "CommentService",
    "FavoriteService",
    "WatchedService",
]
