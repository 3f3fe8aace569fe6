"""
Application Constants

Centralized constants used throughout the application.
"""

# Application metadata
APP_NAME = "movie-api"
APP_VERSION = "1.0.0"
APP_DESCRIPTION = "Movie catalog API - cache and throttling core"

# HTTP status codes
HTTP_INTERNAL_SERVER_ERROR = 500

# Default timeouts (seconds)
DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_CONNECT_TIMEOUT = 5

# Key-value store defaults
DEFAULT_REDIS_HOST = "localhost"
DEFAULT_REDIS_PORT = 6379
DEFAULT_REDIS_DB = 0
DEFAULT_REDIS_SOCKET_TIMEOUT = 2.0
DEFAULT_REDIS_CONNECT_TIMEOUT = 2.0
DEFAULT_REDIS_MAX_RETRIES = 3
DEFAULT_REDIS_BACKOFF_BASE = 0.05  # 50ms, doubled per attempt
DEFAULT_REDIS_BACKOFF_CAP = 2.0    # never wait more than 2s between retries
DEFAULT_REDIS_MAX_CONNECTIONS = 50

# Cache TTL tiers (seconds)
TTL_SHORT_SECONDS = 60        # volatile list views
TTL_MEDIUM_SECONDS = 300      # single entities and per-user views
TTL_LONG_SECONDS = 3600       # slow-changing aggregates (facets)
TTL_DAY_SECONDS = 86400       # near-static data

# Pattern deletion
DEFAULT_SCAN_COUNT = 100
DEFAULT_DELETE_BATCH_SIZE = 500
DEFAULT_KEYS_LISTING_LIMIT = 100
MAX_KEYS_LISTING_LIMIT = 1000

# Rate limiting presets: (max requests, window seconds)
DEFAULT_AUTH_RATE_LIMIT = (5, 60)
DEFAULT_API_RATE_LIMIT = (100, 60)
DEFAULT_SEARCH_RATE_LIMIT = (30, 60)
DEFAULT_WRITE_RATE_LIMIT = (10, 60)
RATE_LIMIT_KEY_PREFIX = "ratelimit"
ANONYMOUS_USER = "anonymous"

# Retry configuration defaults (search-index HTTP client)
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_BACKOFF = 0.5
DEFAULT_MAX_BACKOFF = 10.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0
DEFAULT_JITTER_FACTOR = 0.3

# Search index defaults
DEFAULT_MEILISEARCH_HOST = "http://localhost:7700"
MOVIES_INDEX = "movies"
DEFAULT_SUGGESTION_LIMIT = 5

# Pagination defaults
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DEFAULT_RECENTLY_WATCHED_LIMIT = 10

# Rating bounds
MIN_RATING = 1
MAX_RATING = 10

# Connection pool limits
MAX_KEEPALIVE_CONNECTIONS = 10
MAX_CONNECTIONS = 20

# HTTP headers
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_AUTHORIZATION = "Authorization"
HEADER_ADMIN_TOKEN = "X-Admin-Token"
HEADER_FORWARDED_FOR = "X-Forwarded-For"
HEADER_REAL_IP = "X-Real-IP"
HEADER_RETRY_AFTER = "Retry-After"
HEADER_RATE_LIMIT_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_LIMIT_REMAINING = "X-RateLimit-Remaining"
HEADER_RATE_LIMIT_RESET = "X-RateLimit-Reset"

# Content types
CONTENT_TYPE_JSON = "application/json"

# Roles
ROLE_ADMIN = "ADMIN"

# Error messages
ERROR_RATE_LIMIT_EXCEEDED = "Too many requests, please try again later"
ERROR_AUTH_RATE_LIMIT_EXCEEDED = "Too many authentication attempts. Please try again later."
ERROR_ADMIN_REQUIRED = "Admin access required"
