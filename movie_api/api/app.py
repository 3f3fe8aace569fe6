"""
FastAPI Application Factory

Creates and configures the FastAPI application.
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from movie_api.api.dependencies import AppContainer, build_container
from movie_api.api.http.admin import build_admin_router
from movie_api.api.http.health import router as health_router
from movie_api.core.config import config
from movie_api.core.constants import (
    APP_DESCRIPTION,
    APP_NAME,
    APP_VERSION,
    HEADER_RATE_LIMIT_LIMIT,
    HEADER_RATE_LIMIT_REMAINING,
    HEADER_RATE_LIMIT_RESET,
    HEADER_RETRY_AFTER,
    HTTP_INTERNAL_SERVER_ERROR,
)
from movie_api.core.exceptions import MovieAPIException, RateLimitExceeded
from movie_api.observability.tracing import setup_tracing


def rate_limit_headers(exc: RateLimitExceeded) -> dict:
    headers = {}
    if exc.retry_after is not None:
        headers[HEADER_RETRY_AFTER] = str(exc.retry_after)
    if exc.limit is not None:
        headers[HEADER_RATE_LIMIT_LIMIT] = str(exc.limit)
        headers[HEADER_RATE_LIMIT_REMAINING] = "0"
    if exc.reset_at_ms is not None:
        headers[HEADER_RATE_LIMIT_RESET] = str(exc.reset_at_ms)
    return headers


def create_app(container: Optional[AppContainer] = None, config_obj=None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        container: Pre-built components (tests inject fakes); built from
            configuration when omitted
        config_obj: Configuration to build from (defaults to the global one)

    Returns:
        Configured FastAPI application

    Example:
        >>> app = create_app()
        >>> uvicorn.run(app, host="0.0.0.0", port=3000)
    """
    config_obj = config_obj or config
    container = container or build_container(config_obj)

    app = FastAPI(
        title=APP_NAME,
        version=APP_VERSION,
        description=APP_DESCRIPTION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config_obj.get('server.cors_origins', default=["*"]),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            HEADER_RETRY_AFTER,
            HEADER_RATE_LIMIT_LIMIT,
            HEADER_RATE_LIMIT_REMAINING,
            HEADER_RATE_LIMIT_RESET,
        ],
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(build_admin_router(container))

    FastAPIInstrumentor.instrument_app(app)

    @app.on_event("startup")
    async def startup_event():
        """Run on application startup."""
        setup_tracing(config_obj)
        if not await container.cache.ping():
            logger.warning("Cache store unreachable at startup; serving uncached and unthrottled")
        logger.info(f"{APP_NAME} v{APP_VERSION} started")
        logger.info("API documentation available at /docs")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Run on application shutdown."""
        logger.info("Shutting down gracefully...")
        await container.close()

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Map the exception hierarchy onto HTTP responses."""

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
        """Answer 429 with Retry-After and the throttling body."""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_body(),
            headers=rate_limit_headers(exc),
        )

    @app.exception_handler(MovieAPIException)
    async def movie_api_exception_handler(request: Request, exc: MovieAPIException):
        """Handle custom exceptions."""
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__}: {exc.message}")
        else:
            logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.opt(exception=exc).error(f"Unexpected error: {exc}")
        return JSONResponse(
            status_code=HTTP_INTERNAL_SERVER_ERROR,
            content={
                "error": "InternalServerError",
                "message": "An unexpected error occurred",
                "details": {"type": type(exc).__name__}
            }
        )

