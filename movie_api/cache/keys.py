"""
Cache Key Schema

Single source of truth for cache namespaces, their TTL tiers and the
deterministic key derivation used by every cache write site.

Key layout:
- movie:{movie_id}                       single movie (MEDIUM)
- movies:list:{params}                   paginated catalog listing (SHORT)
- search:query:{params}                  full-text search results (SHORT)
- search:suggestions:{params}            autocomplete suggestions (MEDIUM)
- search:facets                          facet distribution (LONG)
- ratings:movie:{movie_id}:{params}      ratings of a movie (MEDIUM)
- ratings:user:{user_id}:{params}        ratings by a user (MEDIUM)
- comments:movie:{movie_id}:{params}     comments on a movie (MEDIUM)
- comments:user:{user_id}:{params}       comments by a user (MEDIUM)
- favorites:user:{user_id}:{params}      a user's favorites (MEDIUM)
- watched:user:{user_id}:{params}        a user's watch history (MEDIUM)
- watched:user:{user_id}:stats           a user's watch statistics (MEDIUM)

Scoped prefixes end with ':' so the purge glob of user 'u1' never matches
the keys of user 'u10'.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel

from movie_api.core.constants import (
    TTL_DAY_SECONDS,
    TTL_LONG_SECONDS,
    TTL_MEDIUM_SECONDS,
    TTL_SHORT_SECONDS,
)


class TTLTier(str, Enum):
    """Fixed expiry classes; every cache write declares exactly one."""

    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"
    DAY = "day"


DEFAULT_TTL_SECONDS: Dict[TTLTier, int] = {
    TTLTier.SHORT: TTL_SHORT_SECONDS,
    TTLTier.MEDIUM: TTL_MEDIUM_SECONDS,
    TTLTier.LONG: TTL_LONG_SECONDS,
    TTLTier.DAY: TTL_DAY_SECONDS,
}


def ttl_seconds_from_config(config_obj) -> Dict[TTLTier, int]:
    """Resolve tier durations, letting `cache.ttl.<tier>` override the defaults."""
    return {
        tier: config_obj.get(f'cache.ttl.{tier.value}', default=seconds, expected_type=int)
        for tier, seconds in DEFAULT_TTL_SECONDS.items()
    }


Params = Union[Mapping[str, Any], BaseModel, None]


def _canonical(value: Any) -> Any:
    """Drop None entries from mappings, recursively."""
    if isinstance(value, Mapping):
        return {str(k): _canonical(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


def generate_key(prefix: str, params: Params = None) -> str:
    """
    Derive a cache key from a namespace prefix and request parameters.

    Parameters are serialized as compact JSON with keys sorted at every
    nesting level, so declaration order never changes the key. None values
    are dropped: an omitted parameter and an explicit None are the same
    request.

    Example:
        >>> generate_key("movies:list:", {"page": 1, "limit": 20})
        'movies:list:{"limit":20,"page":1}'
    """
    if isinstance(params, BaseModel):
        params = params.model_dump(mode="json")
    payload = _canonical(dict(params or {}))
    encoded = json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return f"{prefix}{encoded}"


@dataclass(frozen=True)
class Namespace:
    """
    A family of cache keys sharing a prefix and a TTL tier.

    Attributes:
        name: Stable identifier, used in logs and coverage checks
        template: Prefix template; may reference {movie_id} and {user_id}
        tier: TTL tier every write in this namespace uses
        exact: True when the rendered template is the whole key (no params)
    """

    name: str
    template: str
    tier: TTLTier
    exact: bool = False

    def prefix(self, **ids: str) -> str:
        return self.template.format(**ids)

    def key(self, params: Params = None, **ids: str) -> str:
        """Build the full key for this namespace."""
        if self.exact:
            return self.prefix(**ids)
        return generate_key(self.prefix(**ids), params)


MOVIE = Namespace("movie", "movie:{movie_id}", TTLTier.MEDIUM, exact=True)
MOVIES_LIST = Namespace("movies_list", "movies:list:", TTLTier.SHORT)
SEARCH_RESULTS = Namespace("search_results", "search:query:", TTLTier.SHORT)
SEARCH_SUGGESTIONS = Namespace("search_suggestions", "search:suggestions:", TTLTier.MEDIUM)
SEARCH_FACETS = Namespace("search_facets", "search:facets", TTLTier.LONG, exact=True)
MOVIE_RATINGS = Namespace("movie_ratings", "ratings:movie:{movie_id}:", TTLTier.MEDIUM)
USER_RATINGS = Namespace("user_ratings", "ratings:user:{user_id}:", TTLTier.MEDIUM)
MOVIE_COMMENTS = Namespace("movie_comments", "comments:movie:{movie_id}:", TTLTier.MEDIUM)
USER_COMMENTS = Namespace("user_comments", "comments:user:{user_id}:", TTLTier.MEDIUM)
USER_FAVORITES = Namespace("user_favorites", "favorites:user:{user_id}:", TTLTier.MEDIUM)
USER_WATCHED = Namespace("user_watched", "watched:user:{user_id}:", TTLTier.MEDIUM)
USER_WATCHED_STATS = Namespace(
    "user_watched_stats", "watched:user:{user_id}:stats", TTLTier.MEDIUM, exact=True
)

ALL_NAMESPACES: Tuple[Namespace, ...] = (
    MOVIE,
    MOVIES_LIST,
    SEARCH_RESULTS,
    SEARCH_SUGGESTIONS,
    SEARCH_FACETS,
    MOVIE_RATINGS,
    USER_RATINGS,
    MOVIE_COMMENTS,
    USER_COMMENTS,
    USER_FAVORITES,
    USER_WATCHED,
    USER_WATCHED_STATS,
)


def namespace_by_name(name: str) -> Optional[Namespace]:
    for namespace in ALL_NAMESPACES:
        if namespace.name == name:
            return namespace
    return None
