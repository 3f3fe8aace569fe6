"""
Core Module

Provides foundational utilities including configuration management,
logging setup, custom exceptions, and application constants.
"""

from .exceptions import (
    MovieAPIException,
    ValidationError,
    NotFoundError,
    MovieNotFoundError,
    ConflictError,
    PermissionDeniedError,
    RateLimitExceeded,
    ConfigurationError,
    SearchIndexError,
)
from .config import Config, config
from .logging_config import setup_logging

__all__ = [
    "MovieAPIException",
    "ValidationError",
    "NotFoundError",
    "MovieNotFoundError",
    "ConflictError",
    "PermissionDeniedError",
    "RateLimitExceeded",
    "ConfigurationError",
    "SearchIndexError",
    "Config",
    "config",
    "setup_logging",
]
