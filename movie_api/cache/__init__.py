"""
Cache Module

Key schema, typed cache store and the invalidation coordinator.
"""

from .keys import TTLTier, Namespace, generate_key, ttl_seconds_from_config
from .store import CacheStore, CacheStats
from .invalidation import (
    InvalidationCoordinator,
    InvalidationReport,
    InvalidationRule,
    MutationType,
    RULES,
    uncovered_namespaces,
)

__all__ = [
    "TTLTier",
    "Namespace",
    "generate_key",
    "ttl_seconds_from_config",
    "CacheStore",
    "CacheStats",
    "InvalidationCoordinator",
    "InvalidationReport",
    "InvalidationRule",
    "MutationType",
    "RULES",
    "uncovered_namespaces",
]
