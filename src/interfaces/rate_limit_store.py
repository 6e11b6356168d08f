"""Abstract base class for shared fixed-window rate-limit counters.

A shared store (Redis) keeps limits consistent across processes.  When
none is configured, or it errors, the rate limiter falls back to its own
per-process table.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: RedisRateLimitStore (src/providers/rate_limit/)
class IRateLimitStore(ABC):
    """Contract for a distributed fixed-window counter."""

    @abstractmethod
    async def hit(self, key: str, window_ms: int) -> tuple[int, int]:
        """Count one request against *key*'s current window.

        The window starts on the first hit and lasts *window_ms*.

        Returns
        -------
        tuple[int, int]
            The count in the current window (including this hit) and the
            milliseconds until the window resets.

        Raises
        ------
        src.utils.errors.ProviderUnavailableError
            If the store cannot be reached.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
