"""
Index Service Module

Keeps the search index in step with the catalog.

Synchronization runs in the background after a mutation has committed and
its cache entries have been purged: the caller's response never waits for
the search engine, and a failed sync is logged, not raised.
"""

import asyncio
from typing import Optional, Set

from loguru import logger

from movie_api.clients.search_client import SearchIndexClient, movie_to_document
from movie_api.models.domain import Movie
from movie_api.repositories.base import MovieRepository


class IndexService:
    """
    Background upserts and deletes against the search index.

    Example:
        >>> index_service = IndexService(search_client)
        >>> index_service.schedule_upsert(movie)
        >>> await index_service.drain()
    """

    def __init__(self, client: Optional[SearchIndexClient]):
        """
        Initialize index service.

        Args:
            client: Search index client; None disables synchronization
        """
        self.client = client
        self._pending: Set[asyncio.Task] = set()

    def schedule_upsert(self, movie: Movie) -> Optional[asyncio.Task]:
        if self.client is None:
            return None
        return self._schedule(
            self.client.upsert_documents([movie_to_document(movie)]),
            f"upsert movie {movie.id}",
        )

    def schedule_delete(self, movie_id: str) -> Optional[asyncio.Task]:
        if self.client is None:
            return None
        return self._schedule(self.client.delete_document(movie_id), f"delete movie {movie_id}")

    def _schedule(self, coro, description: str) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._pending.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._pending.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                logger.error(f"Search index sync failed ({description}): {error}")
            else:
                logger.debug(f"Search index sync done ({description})")

        task.add_done_callback(_done)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled sync to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def reindex_all(self, movies: MovieRepository) -> int:
        """
        Push every movie to the index in one request.

        Errors propagate; this runs on explicit administrator request.

        Returns:
            Number of documents sent
        """
        if self.client is None:
            return 0
        catalog = await movies.list_all()
        if catalog:
            await self.client.upsert_documents([movie_to_document(m) for m in catalog])
        logger.info(f"Reindexed {len(catalog)} movies")
        return len(catalog)
