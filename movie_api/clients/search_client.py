"""
Search Index Client Module

Client for the Meilisearch REST API: document upserts and deletes that
keep the movie index in step with the catalog, and the search calls the
search service caches.
"""

from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from movie_api.core.constants import (
    CONTENT_TYPE_JSON,
    DEFAULT_MEILISEARCH_HOST,
    DEFAULT_REQUEST_TIMEOUT,
    HEADER_AUTHORIZATION,
    HEADER_CONTENT_TYPE,
    MOVIES_INDEX,
)
from movie_api.core.exceptions import SearchIndexError
from movie_api.models.domain import Movie
from movie_api.observability.tracing import get_tracer
from .http_manager import HTTPManager
from .retry_manager import RetryManager


tracer = get_tracer(__name__)


def movie_to_document(movie: Movie) -> Dict[str, Any]:
    """
    Flatten a movie into its search document.

    Cast and crew names are copied into their own fields so the engine can
    match on them without searching nested objects.
    """
    return {
        "id": movie.id,
        "title": movie.title,
        "description": movie.description,
        "releaseDate": movie.release_date.isoformat() if movie.release_date else None,
        "duration": movie.duration,
        "genres": movie.genres,
        "director": movie.director,
        "cast": [member.model_dump(exclude_none=True) for member in movie.cast],
        "crew": [member.model_dump(exclude_none=True) for member in movie.crew],
        "poster": movie.poster,
        "backdrop": movie.backdrop,
        "originalLanguage": movie.original_language,
        "averageRating": movie.average_rating or 0,
        "ratingCount": movie.rating_count,
        "castNames": [member.name for member in movie.cast if member.name],
        "crewNames": [member.name for member in movie.crew if member.name],
    }


class SearchIndexClient:
    """
    Meilisearch index client.

    Example:
        >>> client = SearchIndexClient(host="http://localhost:7700")
        >>> await client.upsert_documents([movie_to_document(movie)])
        >>> result = await client.search("matrix", limit=10)
    """

    def __init__(
        self,
        host: str = DEFAULT_MEILISEARCH_HOST,
        api_key: Optional[str] = None,
        index: str = MOVIES_INDEX,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        retry_manager: Optional[RetryManager] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            host: Meilisearch base URL
            api_key: Bearer key, if the instance is protected
            index: Index uid holding movie documents
            timeout: Request timeout in seconds
            retry_manager: Retry policy for transient failures
            transport: Custom httpx transport (tests)
        """
        headers = {HEADER_CONTENT_TYPE: CONTENT_TYPE_JSON}
        if api_key:
            headers[HEADER_AUTHORIZATION] = f"Bearer {api_key}"

        self.index = index
        self.http = HTTPManager(
            base_url=host.rstrip("/"),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )
        self.retry_manager = retry_manager or RetryManager()

    @classmethod
    def from_config(cls, config_obj) -> "SearchIndexClient":
        return cls(
            host=config_obj.get('search.host', default=DEFAULT_MEILISEARCH_HOST, expected_type=str),
            api_key=config_obj.get('search.api_key', default=None),
            index=config_obj.get('search.index', default=MOVIES_INDEX, expected_type=str),
            timeout=config_obj.get('search.timeout', default=DEFAULT_REQUEST_TIMEOUT, expected_type=float),
        )

    async def _request(self, method: str, path: str, json: Any = None) -> Dict[str, Any]:
        async def _execute():
            response = await self.http.client.request(method, path, json=json)
            if response.status_code < 300:
                return response.json() if response.content else {}
            raise SearchIndexError(
                f"Search engine request failed: {method} {path}",
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            return await self.retry_manager.retry_async(_execute)
        except SearchIndexError:
            raise
        except httpx.HTTPError as e:
            raise SearchIndexError(
                f"Search engine unreachable: {e}",
                details={"error": str(e)}
            ) from e

    async def upsert_documents(self, documents: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Add or replace documents; returns the enqueued task descriptor."""
        with tracer.start_as_current_span("search.upsert_documents") as span:
            span.set_attribute("search.documents", len(documents))
            task = await self._request("POST", f"/indexes/{self.index}/documents", json=documents)
            logger.debug(f"Enqueued upsert of {len(documents)} documents into '{self.index}'")
            return task

    async def delete_document(self, document_id: str) -> Dict[str, Any]:
        with tracer.start_as_current_span("search.delete_document"):
            task = await self._request("DELETE", f"/indexes/{self.index}/documents/{document_id}")
            logger.debug(f"Enqueued delete of document {document_id} from '{self.index}'")
            return task

    async def search(
        self,
        query: str,
        offset: int = 0,
        limit: int = 20,
        filter: Optional[str] = None,
        sort: Optional[List[str]] = None,
        facets: Optional[List[str]] = None,
        attributes_to_retrieve: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Run a search against the movie index.

        Returns:
            Raw engine response (hits, estimatedTotalHits, processingTimeMs,
            facetDistribution when facets were requested)
        """
        body: Dict[str, Any] = {"q": query, "offset": offset, "limit": limit}
        if filter:
            body["filter"] = filter
        if sort:
            body["sort"] = sort
        if facets:
            body["facets"] = facets
        if attributes_to_retrieve:
            body["attributesToRetrieve"] = attributes_to_retrieve

        with tracer.start_as_current_span("search.query") as span:
            span.set_attribute("search.limit", limit)
            return await self._request("POST", f"/indexes/{self.index}/search", json=body)

    async def ping(self) -> bool:
        """Single health probe, without retries."""
        try:
            response = await self.http.client.get("/health")
        except httpx.HTTPError as e:
            logger.warning(f"Search engine health check failed: {e}")
            return False
        return response.status_code == 200 and response.json().get("status") == "available"

    async def close(self) -> None:
        await self.http.close()
