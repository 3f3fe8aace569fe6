"""
Invalidation Coordinator

Maps each kind of data mutation to the cache entries it makes stale and
purges them. The mapping lives in one declarative table, RULES, so the
question "which views does a rating change affect?" has a single answer.

Invalidation always runs after the persistence write has committed. It is
idempotent, and a partially failed purge is tolerated: every entry it
misses still expires with its TTL tier.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from fnmatch import fnmatchcase
from string import Formatter
from typing import Dict, List, Optional, Set, Tuple

from loguru import logger

from movie_api.cache.keys import ALL_NAMESPACES, Namespace
from movie_api.cache.store import CacheStore
from movie_api.core.exceptions import ValidationError
from movie_api.observability.tracing import get_tracer


tracer = get_tracer(__name__)


class MutationType(str, Enum):
    """Kinds of write that can stale cached views."""

    MOVIE_CREATED = "movie_created"
    MOVIE_UPDATED = "movie_updated"
    MOVIE_DELETED = "movie_deleted"
    RATING_CHANGED = "rating_changed"
    COMMENT_CHANGED = "comment_changed"
    FAVORITE_CHANGED = "favorite_changed"
    WATCHED_CHANGED = "watched_changed"
    USER_CHANGED = "user_changed"
    SEARCHES_STALE = "searches_stale"
    LISTS_STALE = "lists_stale"


_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def escape_glob(value: str) -> str:
    """Make an identifier match itself literally inside a Redis glob."""
    return _GLOB_SPECIAL.sub(r"\\\1", value)


class RuleMode(str, Enum):
    EXACT = "exact"
    PATTERN = "pattern"


@dataclass(frozen=True)
class InvalidationRule:
    """
    One purge target.

    Attributes:
        template: Key (EXACT) or glob (PATTERN); may reference {movie_id}
            and {user_id}
        mode: EXACT deletes a single key, PATTERN scans and deletes matches
    """

    template: str
    mode: RuleMode = RuleMode.PATTERN

    @property
    def placeholders(self) -> Set[str]:
        return {name for _, name, _, _ in Formatter().parse(self.template) if name}

    def render(self, **ids: str) -> str:
        if self.mode is RuleMode.PATTERN:
            ids = {name: escape_glob(value) for name, value in ids.items()}
        return self.template.format(**ids)


def exact(template: str) -> InvalidationRule:
    return InvalidationRule(template, RuleMode.EXACT)


def pattern(template: str) -> InvalidationRule:
    return InvalidationRule(template, RuleMode.PATTERN)


_ALL_LISTS = pattern("movies:list:*")
_ALL_SEARCHES = pattern("search:*")

_MOVIE_VIEWS = (
    exact("movie:{movie_id}"),
    _ALL_LISTS,
    _ALL_SEARCHES,
    pattern("comments:movie:{movie_id}:*"),
    pattern("ratings:movie:{movie_id}:*"),
)

# Per-user views may embed any movie, so deleting a movie stales them all.
_EVERY_USER_VIEW = (
    pattern("favorites:user:*"),
    pattern("watched:user:*"),
    pattern("ratings:user:*"),
    pattern("comments:user:*"),
)

RULES: Dict[MutationType, Tuple[InvalidationRule, ...]] = {
    MutationType.MOVIE_CREATED: (_ALL_LISTS, _ALL_SEARCHES),
    MutationType.MOVIE_UPDATED: _MOVIE_VIEWS,
    MutationType.MOVIE_DELETED: _MOVIE_VIEWS + _EVERY_USER_VIEW,
    MutationType.RATING_CHANGED: (
        exact("movie:{movie_id}"),
        _ALL_LISTS,
        _ALL_SEARCHES,
        pattern("ratings:movie:{movie_id}:*"),
        pattern("ratings:user:{user_id}:*"),
    ),
    MutationType.COMMENT_CHANGED: (
        exact("movie:{movie_id}"),
        pattern("comments:movie:{movie_id}:*"),
        pattern("comments:user:{user_id}:*"),
    ),
    MutationType.FAVORITE_CHANGED: (pattern("favorites:user:{user_id}:*"),),
    MutationType.WATCHED_CHANGED: (pattern("watched:user:{user_id}:*"),),
    MutationType.USER_CHANGED: (
        pattern("favorites:user:{user_id}:*"),
        pattern("watched:user:{user_id}:*"),
        pattern("ratings:user:{user_id}:*"),
        pattern("comments:user:{user_id}:*"),
    ),
    MutationType.SEARCHES_STALE: (_ALL_SEARCHES,),
    MutationType.LISTS_STALE: (_ALL_LISTS,),
}


_SAMPLE_IDS = {"movie_id": "sample-movie", "user_id": "sample-user"}


def _sample_key(namespace: Namespace) -> str:
    return namespace.key({"page": 1, "limit": 20}, **_SAMPLE_IDS)


def uncovered_namespaces(rules: Optional[Dict[MutationType, Tuple[InvalidationRule, ...]]] = None) -> Set[str]:
    """
    Names of cache namespaces that no rule can ever purge.

    A sample key is rendered for each namespace and matched against every
    rule rendered with the same sample identifiers. A non-empty result
    means some cached view could only go away through TTL expiry.
    """
    rules = RULES if rules is None else rules
    rendered = [
        rule.render(**_SAMPLE_IDS)
        for mutation_rules in rules.values()
        for rule in mutation_rules
    ]
    return {
        namespace.name
        for namespace in ALL_NAMESPACES
        if not any(fnmatchcase(_sample_key(namespace), target) for target in rendered)
    }


@dataclass
class InvalidationReport:
    """Outcome of one invalidation call."""

    mutation: MutationType
    targets: List[str] = field(default_factory=list)
    deleted: int = 0


class InvalidationCoordinator:
    """
    Applies the rule table to the cache.

    Example:
        >>> coordinator = InvalidationCoordinator(store)
        >>> await coordinator.rating_changed(movie_id="m1", user_id="u1")
        InvalidationReport(mutation=<MutationType.RATING_CHANGED: ...>, ...)
    """

    def __init__(
        self,
        store: CacheStore,
        rules: Optional[Dict[MutationType, Tuple[InvalidationRule, ...]]] = None,
    ):
        self.store = store
        self.rules = RULES if rules is None else rules

    async def invalidate(
        self,
        mutation: MutationType,
        *,
        movie_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> InvalidationReport:
        """
        Purge every entry the mutation makes stale.

        Raises:
            ValidationError: If a rule needs an identifier that was not given
        """
        ids = {"movie_id": movie_id, "user_id": user_id}
        rules = self.rules.get(mutation, ())

        for rule in rules:
            missing = sorted(name for name in rule.placeholders if not ids.get(name))
            if missing:
                raise ValidationError(
                    f"Invalidation for {mutation.value} requires {', '.join(missing)}",
                    details={"mutation": mutation.value, "missing": missing},
                )

        report = InvalidationReport(mutation=mutation)
        with tracer.start_as_current_span("cache.invalidate") as span:
            span.set_attribute("cache.mutation", mutation.value)
            for rule in rules:
                target = rule.render(**{k: v for k, v in ids.items() if v})
                report.targets.append(target)
                if rule.mode is RuleMode.EXACT:
                    report.deleted += int(await self.store.delete(target))
                else:
                    report.deleted += await self.store.delete_by_pattern(target)
            span.set_attribute("cache.deleted", report.deleted)

        logger.debug(
            f"Invalidated {mutation.value} (movie={movie_id}, user={user_id}): "
            f"{report.deleted} keys across {len(report.targets)} targets"
        )
        return report

    async def movie_created(self) -> InvalidationReport:
        return await self.invalidate(MutationType.MOVIE_CREATED)

    async def movie_changed(self, movie_id: str) -> InvalidationReport:
        return await self.invalidate(MutationType.MOVIE_UPDATED, movie_id=movie_id)

    async def movie_deleted(self, movie_id: str) -> InvalidationReport:
        return await self.invalidate(MutationType.MOVIE_DELETED, movie_id=movie_id)

    async def rating_changed(self, movie_id: str, user_id: str) -> InvalidationReport:
        return await self.invalidate(MutationType.RATING_CHANGED, movie_id=movie_id, user_id=user_id)

    async def comment_changed(self, movie_id: str, user_id: str) -> InvalidationReport:
        return await self.invalidate(MutationType.COMMENT_CHANGED, movie_id=movie_id, user_id=user_id)

    async def favorites_changed(self, user_id: str) -> InvalidationReport:
        return await self.invalidate(MutationType.FAVORITE_CHANGED, user_id=user_id)

    async def watched_changed(self, user_id: str) -> InvalidationReport:
        return await self.invalidate(MutationType.WATCHED_CHANGED, user_id=user_id)

    async def user_changed(self, user_id: str) -> InvalidationReport:
        return await self.invalidate(MutationType.USER_CHANGED, user_id=user_id)

    async def invalidate_searches(self) -> InvalidationReport:
        return await self.invalidate(MutationType.SEARCHES_STALE)

    async def invalidate_lists(self) -> InvalidationReport:
        return await self.invalidate(MutationType.LISTS_STALE)
