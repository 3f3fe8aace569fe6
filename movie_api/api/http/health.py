"""
Health Route
"""

import asyncio

from fastapi import APIRouter, Depends

from movie_api.api.dependencies import AppContainer, get_container
from movie_api.core.constants import APP_VERSION
from movie_api.models.responses import HealthResponse


router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(container: AppContainer = Depends(get_container)):
    """
    Health check endpoint.

    Reports reachability of the cache store and the search engine. Always
    answers 200 so the server itself can be told apart from its
    dependencies.
    """
    redis_ok, search_ok = await asyncio.gather(
        container.cache.ping(),
        container.search_client.ping(),
    )
    return HealthResponse(
        status="ok" if redis_ok and search_ok else "degraded",
        version=APP_VERSION,
        checks={"redis": redis_ok, "search": search_ok},
    )
