"""
Repositories Module

Persistence contracts and their in-memory implementation.
"""

from .base import (
    MovieRepository,
    RatingRepository,
    CommentRepository,
    FavoriteRepository,
    WatchedRepository,
)
from .memory import InMemoryDatabase, InMemoryRepositories

__all__ = [
    "MovieRepository",
    "RatingRepository",
    "CommentRepository",
    "FavoriteRepository",
    "WatchedRepository",
    "InMemoryDatabase",
    "InMemoryRepositories",
]
