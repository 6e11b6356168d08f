"""Subscription tiers and their monthly usage limits.

Limits are keyed by the usage counter field they gate.  ``None`` means
unlimited.  Periods are calendar months in UTC, formatted ``YYYY-MM``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum


class UserTier(str, Enum):  # noqa: UP042
    FREE = "free"
    STARTER = "starter"
    PRO = "pro"


ANALYSES_FIELD = "analyses_count"
PODCAST_ANALYSES_FIELD = "podcast_analyses_count"

TIER_LIMITS: dict[UserTier, dict[str, int | None]] = {
    UserTier.FREE: {ANALYSES_FIELD: 5, PODCAST_ANALYSES_FIELD: 2},
    UserTier.STARTER: {ANALYSES_FIELD: 50, PODCAST_ANALYSES_FIELD: 20},
    UserTier.PRO: {ANALYSES_FIELD: None, PODCAST_ANALYSES_FIELD: None},
}

# Human-readable label used in "Monthly {label} limit reached" messages.
FIELD_LABELS: dict[str, str] = {
    ANALYSES_FIELD: "analysis",
    PODCAST_ANALYSES_FIELD: "podcast analysis",
}


def normalize_tier(tier: str | None) -> UserTier:
    """Map a stored tier string onto :class:`UserTier`; unknown values are free."""
    try:
        return UserTier(tier) if tier else UserTier.FREE
    except ValueError:
        return UserTier.FREE


def get_limit(tier: UserTier, field: str) -> int | None:
    return TIER_LIMITS[tier].get(field)


def tier_allows_multi_language(tier: UserTier) -> bool:
    return tier in (UserTier.STARTER, UserTier.PRO)


def current_period(now: datetime | None = None) -> str:
    """Return the usage period for *now* (default: current UTC time)."""
    now = now or datetime.now(tz=timezone.utc)  # noqa: UP017
    return f"{now.year:04d}-{now.month:02d}"
