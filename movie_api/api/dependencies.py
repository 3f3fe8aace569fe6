"""
Application Wiring

Builds every long-lived component once, from configuration, and hands the
same instances to whoever needs them. The container is stored on
`app.state.container` and reached from routes through `get_container`.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from fastapi import Request
from loguru import logger
from redis.asyncio import Redis

from movie_api.cache.invalidation import InvalidationCoordinator
from movie_api.cache.keys import ttl_seconds_from_config
from movie_api.cache.store import CacheStore
from movie_api.clients.redis_client import RedisSettings, close_redis_client, create_redis_client
from movie_api.clients.search_client import SearchIndexClient
from movie_api.core.constants import DEFAULT_DELETE_BATCH_SIZE, DEFAULT_SCAN_COUNT
from movie_api.repositories.memory import InMemoryRepositories
from movie_api.security.auth import AdminGuard
from movie_api.security.rate_limiter import RateLimiters, build_rate_limiters
from movie_api.services import (
    CommentService,
    FavoriteService,
    IndexService,
    MovieService,
    RatingService,
    SearchService,
    WatchedService,
)


@dataclass
class Services:
    movies: MovieService
    search: SearchService
    ratings: RatingService
    comments: CommentService
    favorites: FavoriteService
    watched: WatchedService


@dataclass
class AppContainer:
    """Long-lived components shared by every request."""

    redis: Redis
    cache: CacheStore
    invalidation: InvalidationCoordinator
    limiters: RateLimiters
    admin_guard: AdminGuard
    search_client: SearchIndexClient
    index: IndexService
    repositories: InMemoryRepositories
    services: Services = field(init=False)

    def __post_init__(self):
        repos = self.repositories
        self.services = Services(
            movies=MovieService(repos.movies, self.cache, self.invalidation, self.index),
            search=SearchService(self.search_client, self.cache),
            ratings=RatingService(repos.ratings, repos.movies, self.cache, self.invalidation, self.index),
            comments=CommentService(repos.comments, repos.movies, self.cache, self.invalidation),
            favorites=FavoriteService(repos.favorites, repos.movies, self.cache, self.invalidation),
            watched=WatchedService(repos.watched, repos.movies, self.cache, self.invalidation),
        )

    async def close(self) -> None:
        """Release connections; pending index syncs are allowed to finish first."""
        await self.index.drain()
        await self.search_client.close()
        await close_redis_client(self.redis)


def build_container(
    config_obj,
    redis: Optional[Redis] = None,
    search_client: Optional[SearchIndexClient] = None,
    repositories: Optional[InMemoryRepositories] = None,
    clock: Callable[[], float] = time.time,
) -> AppContainer:
    """
    Assemble the container from configuration.

    Args:
        config_obj: Configuration to read
        redis: Store handle to use instead of creating one
        search_client: Search client to use instead of creating one
        repositories: Persistence to use (defaults to a fresh in-memory set)
        clock: Wall clock for the rate limiters
    """
    redis = redis if redis is not None else create_redis_client(RedisSettings.from_config(config_obj))
    cache = CacheStore(
        redis,
        ttl_seconds=ttl_seconds_from_config(config_obj),
        scan_count=config_obj.get('cache.scan_count', default=DEFAULT_SCAN_COUNT, expected_type=int),
        delete_batch_size=config_obj.get(
            'cache.delete_batch_size', default=DEFAULT_DELETE_BATCH_SIZE, expected_type=int
        ),
    )
    search_client = search_client or SearchIndexClient.from_config(config_obj)

    container = AppContainer(
        redis=redis,
        cache=cache,
        invalidation=InvalidationCoordinator(cache),
        limiters=build_rate_limiters(redis, config_obj, clock=clock),
        admin_guard=AdminGuard.from_config(config_obj),
        search_client=search_client,
        index=IndexService(search_client),
        repositories=repositories or InMemoryRepositories(),
    )
    logger.debug("Application container built")
    return container


def get_container(request: Request) -> AppContainer:
    return request.app.state.container
