"""
Security Module

Provides admin authorization and sliding-window rate limiting.
"""

from .auth import AdminGuard
from .rate_limiter import (
    SlidingWindowRateLimiter,
    RateLimitResult,
    RateLimitStatus,
    RateLimiters,
    build_rate_limiters,
    user_rate_limiter,
    get_client_ip,
)

__all__ = [
    "AdminGuard",
    "SlidingWindowRateLimiter",
    "RateLimitResult",
    "RateLimitStatus",
    "RateLimiters",
    "build_rate_limiters",
    "user_rate_limiter",
    "get_client_ip",
]
