"""Write-triggered cache invalidation.

Every mutating campaign operation commits its database write first and then
clears the cache entries the write could have made stale. Scopes are chosen
conservatively: instead of tracking which cached queries contain a campaign,
any create/update/delete sweeps the whole ``search:*`` and ``geo:*``
namespaces. Votes only touch the campaign detail and the user-scoped lists
that embed vote counts.

Invalidation is best effort. The write has already committed, so a failing
cache store is logged and reported but never raised; stale entries then age
out through their TTL.

Example:
    scope = InvalidationScope.for_update(campaign_id, owner_id)
    report = await CacheInvalidator(store).apply(scope, InvalidationTrigger.UPDATE)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from civilyst.cache.keys import CacheKeys
from civilyst.cache.store import CacheStore
from civilyst.observability.metrics import record_cache_error, record_invalidation

logger = logging.getLogger(__name__)


class InvalidationTrigger(str, Enum):
    """Write that caused an invalidation."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    VOTE = "vote"
    MANUAL = "manual"


def _user_patterns(*user_ids: str | None) -> frozenset[str]:
    return frozenset(CacheKeys.user_pattern(uid) for uid in user_ids if uid)


_LISTING_PATTERNS = frozenset(
    {CacheKeys.namespace_pattern("search"), CacheKeys.namespace_pattern("geo")}
)


@dataclass(frozen=True)
class InvalidationScope:
    """Exact keys and glob patterns a write must clear."""

    keys: frozenset[str] = frozenset()
    patterns: frozenset[str] = frozenset()

    def __or__(self, other: InvalidationScope) -> InvalidationScope:
        return InvalidationScope(
            keys=self.keys | other.keys,
            patterns=self.patterns | other.patterns,
        )

    @property
    def is_empty(self) -> bool:
        return not self.keys and not self.patterns

    @classmethod
    def for_create(cls, creator_id: str | None = None) -> InvalidationScope:
        """A new campaign can appear in any search or geo result set."""
        return cls(patterns=_LISTING_PATTERNS | _user_patterns(creator_id))

    @classmethod
    def for_update(cls, campaign_id: str, owner_id: str | None = None) -> InvalidationScope:
        """Any field change may affect visibility, ranking or placement."""
        return cls(
            keys=frozenset({CacheKeys.campaign(campaign_id)}),
            patterns=_LISTING_PATTERNS | _user_patterns(owner_id),
        )

    @classmethod
    def for_delete(cls, campaign_id: str, owner_id: str | None = None) -> InvalidationScope:
        return cls.for_update(campaign_id, owner_id)

    @classmethod
    def for_vote(
        cls,
        campaign_id: str,
        voter_id: str,
        owner_id: str | None = None,
    ) -> InvalidationScope:
        """Vote counts live in the detail view and in user-scoped lists."""
        return cls(
            keys=frozenset({CacheKeys.campaign(campaign_id)}),
            patterns=_user_patterns(voter_id, owner_id),
        )


@dataclass
class InvalidationReport:
    """Outcome of applying a scope."""

    deleted: int = 0
    failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class CacheInvalidator:
    """Applies invalidation scopes to a cache store."""

    def __init__(self, store: CacheStore):
        self.store = store

    async def apply(
        self,
        scope: InvalidationScope,
        trigger: InvalidationTrigger = InvalidationTrigger.MANUAL,
    ) -> InvalidationReport:
        """Delete exact keys, then sweep patterns.

        Each step runs even if an earlier one failed, so one unreachable
        operation does not leave the rest of the scope stale.
        """
        report = InvalidationReport()

        if scope.keys:
            keys = sorted(scope.keys)
            try:
                report.deleted += await self.store.delete(*keys)
            except Exception as e:
                record_cache_error("delete")
                report.failures.extend(keys)
                logger.warning(
                    f"Cache invalidation failed for keys {keys}: {e}",
                    extra={"trigger": trigger.value},
                )

        for pattern in sorted(scope.patterns):
            try:
                report.deleted += await self.store.delete_pattern(pattern)
            except Exception as e:
                record_cache_error("sweep")
                report.failures.append(pattern)
                logger.warning(
                    f"Cache sweep failed for {pattern}: {e}",
                    extra={"trigger": trigger.value},
                )

        record_invalidation(trigger.value, report.deleted)
        logger.debug(
            f"Invalidated {report.deleted} cache entries ({trigger.value})",
            extra={"trigger": trigger.value},
        )
        return report
