"""
Unit tests for the exception hierarchy and its HTTP mapping.
"""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from movie_api.api.app import rate_limit_headers, register_exception_handlers
from movie_api.core.exceptions import (
    ConflictError,
    MovieNotFoundError,
    RateLimitExceeded,
    SearchIndexError,
)


class TestExceptions:
    """Tests for exception payloads."""

    def test_not_found_details(self):
        """Test that the movie id is carried in the details."""
        error = MovieNotFoundError("42")

        assert error.status_code == 404
        assert error.to_dict()["error"] == "MovieNotFoundError"
        assert "42" in error.message

    def test_rate_limit_body(self):
        """Test the throttling body layout."""
        error = RateLimitExceeded("slow down", retry_after=60, limit=5, reset_at_ms=1000)

        assert error.to_body() == {
            "statusCode": 429,
            "error": "Too Many Requests",
            "message": "slow down",
            "retryAfter": 60,
        }
        assert rate_limit_headers(error) == {
            "Retry-After": "60",
            "X-RateLimit-Limit": "5",
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": "1000",
        }

    def test_search_error_keeps_upstream_status(self):
        """Test that the engine's status does not become the response status."""
        error = SearchIndexError("failed", status_code=503)

        assert error.status_code == 502
        assert error.upstream_status_code == 503


class TestHandlers:
    """Tests for the registered exception handlers."""

    def test_status_codes(self):
        """Test that each exception maps to its status."""
        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/conflict")
        async def conflict():
            raise ConflictError("exists")

        @app.get("/missing")
        async def missing():
            raise MovieNotFoundError("7")

        @app.get("/boom")
        async def boom():
            raise RuntimeError("unexpected")

        client = TestClient(app, raise_server_exceptions=False)

        assert client.get("/conflict").status_code == 409
        assert client.get("/missing").json()["error"] == "MovieNotFoundError"
        response = client.get("/boom")
        assert response.status_code == 500
        assert response.json()["error"] == "InternalServerError"
