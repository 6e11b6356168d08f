"""Monthly fair-use admission per owner and subscription tier.

Admission reserves one unit of the relevant counter up front, atomically
where the store supports it (increment unless already at the limit), so
two concurrent requests can never both take the last slot.  Stores
without an atomic increment fall back to read-then-increment.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from src.config.tiers import (
    ANALYSES_FIELD,
    FIELD_LABELS,
    PODCAST_ANALYSES_FIELD,
    UserTier,
    current_period,
    get_limit,
    normalize_tier,
)
from src.interfaces.content_store import IContentStore
from src.models.content import ContentType
from src.utils.errors import DatastoreError
from src.utils.logging import get_logger


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


def usage_field_for(content_type: ContentType) -> str:
    """Podcasts draw on their own (smaller) allowance."""
    if content_type is ContentType.PODCAST:
        return PODCAST_ANALYSES_FIELD
    return ANALYSES_FIELD


@dataclass(frozen=True)
class Admission:
    """Outcome of one reservation attempt.

    ``count`` is the counter value after the reservation, or the value
    that blocked it.  ``limit`` is ``None`` for unlimited tiers.
    """

    allowed: bool
    tier: UserTier
    field: str
    limit: int | None = None
    count: int | None = None

    @property
    def denial_message(self) -> str:
        label = FIELD_LABELS.get(self.field, self.field)
        return (
            f"Monthly {label} limit reached ({self.limit}). "
            "Upgrade your plan for more."
        )


class UsageAdmission:
    """Looks up an owner's tier and reserves usage against its limits.

    Parameters
    ----------
    store:
        Holds tiers and usage counters.
    clock:
        Returns the current UTC datetime; decides the usage period.
    """

    def __init__(
        self,
        store: IContentStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._clock = clock
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def tier_for(self, owner: str) -> UserTier:
        """Return *owner*'s tier; lookup failures count as free."""
        try:
            raw = await self._store.get_user_tier(owner)
        except DatastoreError as exc:
            self._logger.warning("tier_lookup_failed", owner=owner, error=exc.message)
            return UserTier.FREE
        return normalize_tier(raw)

    async def reserve(
        self,
        owner: str,
        content_type: ContentType,
        tier: UserTier | None = None,
    ) -> Admission:
        """Reserve one analysis for *owner*.

        Unlimited tiers are admitted without touching the counters.  A
        store failure admits the request; it is logged so a broken counter
        never blocks every user.
        """
        if tier is None:
            tier = await self.tier_for(owner)
        field = usage_field_for(content_type)
        limit = get_limit(tier, field)
        if limit is None:
            return Admission(allowed=True, tier=tier, field=field)

        period = current_period(self._clock())
        try:
            count = await self._reserve(owner, period, field, limit)
        except DatastoreError as exc:
            self._logger.error(
                "usage_reservation_failed", owner=owner, field=field, error=exc.message
            )
            return Admission(allowed=True, tier=tier, field=field, limit=limit)

        if count < 0:
            self._logger.info("usage_limit_reached", owner=owner, field=field, limit=limit)
            return Admission(allowed=False, tier=tier, field=field, limit=limit, count=limit)
        return Admission(allowed=True, tier=tier, field=field, limit=limit, count=count)

    async def _reserve(self, owner: str, period: str, field: str, limit: int) -> int:
        try:
            return await self._store.increment_usage_if_allowed(owner, period, field, limit)
        except NotImplementedError:
            pass
        current = await self._store.get_usage_count(owner, period, field)
        if current >= limit:
            return -1
        return await self._store.increment_usage(owner, period, field)
