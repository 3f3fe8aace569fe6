"""
Custom Exceptions Module

Defines the exception hierarchy for the Movie API.

All application-specific exceptions inherit from MovieAPIException
for easier error handling and filtering. Each exception carries the
HTTP status code the API layer should answer with.
"""

from typing import Optional, Dict, Any


class MovieAPIException(Exception):
    """
    Base exception for all Movie API errors.

    All custom exceptions should inherit from this class.

    Attributes:
        message: Human-readable error message
        details: Optional dictionary with additional error context
        status_code: HTTP status code used by the API exception handler
    """

    status_code: int = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize exception.

        Args:
            message: Error message
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for API responses.

        Returns:
            Dictionary with error information
        """
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(MovieAPIException):
    """
    Raised when input validation fails.

    Examples:
    - Rating outside the 1..10 range
    - Empty cache key pattern
    - Invalidation requested without the identifiers its rules need
    """

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, details)


class NotFoundError(MovieAPIException):
    """
    Raised when a requested entity does not exist.

    Attributes:
        entity: Entity kind (movie, rating, comment, ...)
        entity_id: Identifier that was looked up
    """

    status_code = 404

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[Dict] = None
    ):
        error_details = details or {}
        if entity:
            error_details['entity'] = entity
        if entity_id:
            error_details['entity_id'] = entity_id

        super().__init__(message, error_details)
        self.entity = entity
        self.entity_id = entity_id


class MovieNotFoundError(NotFoundError):
    """Raised when a movie identifier does not match any movie."""

    def __init__(self, movie_id: str):
        super().__init__(
            f"Movie with ID {movie_id} not found",
            entity="movie",
            entity_id=movie_id
        )


class ConflictError(MovieAPIException):
    """
    Raised when a mutation conflicts with existing state.

    Examples:
    - Movie already in the user's favorites
    - Movie already marked as watched
    """

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, details)


class PermissionDeniedError(MovieAPIException):
    """
    Raised when the caller may not perform an operation.

    Examples:
    - Updating somebody else's comment
    - Calling an admin endpoint without elevated privilege
    """

    status_code = 403

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, details)


class RateLimitExceeded(MovieAPIException):
    """
    Raised when rate limit is exceeded.

    Attributes:
        retry_after: Seconds to wait before retrying
        limit: Configured maximum requests for the window
        reset_at_ms: Epoch milliseconds at which the window ends
    """

    status_code = 429

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
        limit: Optional[int] = None,
        reset_at_ms: Optional[int] = None,
        details: Optional[Dict] = None
    ):
        """
        Initialize rate limit exception.

        Args:
            message: Error message
            retry_after: Seconds to wait before retrying
            limit: Maximum number of requests in the window
            reset_at_ms: Window end as epoch milliseconds
            details: Additional error details
        """
        error_details = details or {}
        if retry_after:
            error_details['retry_after'] = retry_after

        super().__init__(message, error_details)
        self.retry_after = retry_after
        self.limit = limit
        self.reset_at_ms = reset_at_ms

    def to_body(self) -> Dict[str, Any]:
        """Throttling body returned to HTTP callers."""
        return {
            "statusCode": self.status_code,
            "error": "Too Many Requests",
            "message": self.message,
            "retryAfter": self.retry_after,
        }


class ConfigurationError(MovieAPIException):
    """
    Raised when configuration is invalid or missing.

    Examples:
    - Missing required configuration value
    - Invalid configuration format
    - Configuration file not found
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        details: Optional[Dict] = None
    ):
        """
        Initialize configuration exception.

        Args:
            message: Error message
            config_key: Configuration key that caused the error
            details: Additional error details
        """
        error_details = details or {}
        if config_key:
            error_details['config_key'] = config_key

        super().__init__(message, error_details)


class SearchIndexError(MovieAPIException):
    """
    Raised when the search engine API request fails.

    Attributes:
        upstream_status_code: HTTP status code returned by the search engine
        response_body: Response body from the search engine (if available)
    """

    status_code = 502

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        details: Optional[Dict] = None
    ):
        error_details = details or {}
        if status_code:
            error_details['status_code'] = status_code
        if response_body:
            error_details['response_body'] = response_body

        super().__init__(message, error_details)
        self.upstream_status_code = status_code
        self.response_body = response_body


class TimeoutError(MovieAPIException):
    """
    Raised when operation times out.

    Examples:
    - Search engine query takes too long
    - Network connection timeout
    """

    status_code = 504

    def __init__(
        self,
        message: str = "Operation timed out",
        timeout_seconds: Optional[float] = None,
        details: Optional[Dict] = None
    ):
        error_details = details or {}
        if timeout_seconds:
            error_details['timeout_seconds'] = timeout_seconds

        super().__init__(message, error_details)
