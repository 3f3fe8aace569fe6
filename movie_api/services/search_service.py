"""
Search Service Module

Full-text search, autocomplete suggestions and facet counts, each cached
in its own namespace.
"""

from typing import List, Optional

from pydantic import TypeAdapter

from movie_api.cache import keys
from movie_api.cache.store import CacheStore
from movie_api.clients.search_client import SearchIndexClient
from movie_api.core.constants import DEFAULT_SUGGESTION_LIMIT
from movie_api.models.domain import Facets, Pagination, SearchMeta, SearchQuery, SearchResponse


SEARCH_CODEC = TypeAdapter(SearchResponse)
SUGGESTIONS_CODEC = TypeAdapter(List[str])
FACETS_CODEC = TypeAdapter(Facets)

SORT_FIELDS = {
    "rating:desc": "averageRating:desc",
    "rating:asc": "averageRating:asc",
    "date:desc": "releaseDate:desc",
    "date:asc": "releaseDate:asc",
}


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_filter(query: SearchQuery) -> Optional[str]:
    """
    Translate query filters into the engine's filter expression.

    Example:
        >>> build_filter(SearchQuery(q="x", genres=["Drama", "Crime"], min_rating=7))
        '(genres = "Drama" OR genres = "Crime") AND averageRating >= 7.0'
    """
    clauses = []
    if query.genres:
        clauses.append("(" + " OR ".join(f"genres = {_quote(g)}" for g in query.genres) + ")")
    if query.min_rating is not None:
        clauses.append(f"averageRating >= {query.min_rating}")
    return " AND ".join(clauses) or None


def build_sort(query: SearchQuery) -> Optional[List[str]]:
    if query.sort == "relevance":
        return None
    return [SORT_FIELDS[query.sort]]


class SearchService:
    """
    Search over the movie index.

    Example:
        >>> response = await search_service.search(SearchQuery(q="matrix"))
        >>> response.pagination.total
        3
    """

    def __init__(self, client: SearchIndexClient, cache: CacheStore):
        self.client = client
        self.cache = cache

    async def search(self, query: SearchQuery) -> SearchResponse:
        async def load() -> SearchResponse:
            result = await self.client.search(
                query.q,
                offset=(query.page - 1) * query.limit,
                limit=query.limit,
                filter=build_filter(query),
                sort=build_sort(query),
                attributes_to_retrieve=["*"],
            )
            total = result.get("estimatedTotalHits") or 0
            return SearchResponse(
                data=result.get("hits", []),
                pagination=Pagination(
                    page=query.page,
                    limit=query.limit,
                    total=total,
                    total_pages=(total + query.limit - 1) // query.limit,
                ),
                meta=SearchMeta(
                    query=query.q,
                    processing_time_ms=result.get("processingTimeMs") or 0,
                    estimated_total_hits=total,
                ),
            )

        return await self.cache.get_or_set(
            keys.SEARCH_RESULTS.key(query), keys.SEARCH_RESULTS.tier, SEARCH_CODEC, load
        )

    async def suggestions(self, q: str, limit: int = DEFAULT_SUGGESTION_LIMIT) -> List[str]:
        """Titles of the best matches for a partial query."""
        async def load() -> List[str]:
            result = await self.client.search(q, limit=limit, attributes_to_retrieve=["title"])
            return [hit["title"] for hit in result.get("hits", []) if hit.get("title")]

        return await self.cache.get_or_set(
            keys.SEARCH_SUGGESTIONS.key({"q": q, "limit": limit}),
            keys.SEARCH_SUGGESTIONS.tier,
            SUGGESTIONS_CODEC,
            load,
        )

    async def facets(self) -> Facets:
        async def load() -> Facets:
            result = await self.client.search("", limit=0, facets=["genres", "originalLanguage"])
            distribution = result.get("facetDistribution") or {}
            return Facets(
                genres=distribution.get("genres", {}),
                languages=distribution.get("originalLanguage", {}),
            )

        return await self.cache.get_or_set(
            keys.SEARCH_FACETS.key(), keys.SEARCH_FACETS.tier, FACETS_CODEC, load
        )
