"""Fixed-window rate limiting with a shared store and a per-process fallback.

When an :class:`IRateLimitStore` (Redis) is configured, limits are
enforced there so every worker sees the same counters.  Without one, or
whenever it errors, a per-process ``{count, reset_at}`` table is used.
The table evicts expired windows every 1000 calls, or sooner once it
holds more than 10,000 identifiers.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from src.interfaces.rate_limit_store import IRateLimitStore
from src.utils.errors import ProviderUnavailableError
from src.utils.logging import get_logger

EVICTION_INTERVAL_CALLS = 1000
MAX_ENTRIES = 10_000


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_in: int  # milliseconds until the window resets


@dataclass
class _Window:
    count: int
    reset_at: float  # clock seconds


class RateLimiter:
    """Checks requests against a fixed window per identifier.

    Parameters
    ----------
    store:
        Optional shared counter store.  ``None`` means per-process only.
    clock:
        Time source in seconds; injectable for tests.
    """

    def __init__(
        self,
        store: IRateLimitStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._calls = 0
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def __len__(self) -> int:
        return len(self._windows)

    async def check(
        self, identifier: str, max_requests: int = 100, window_ms: int = 60_000
    ) -> RateLimitResult:
        """Count one request for *identifier* and say whether it is allowed."""
        if self._store is not None:
            try:
                count, reset_in = await self._store.hit(identifier, window_ms)
            except ProviderUnavailableError as exc:
                self._logger.warning(
                    "rate_limit_store_unavailable",
                    store=self._store.get_provider_name(),
                    error=exc.message,
                )
            else:
                return RateLimitResult(
                    allowed=count <= max_requests,
                    remaining=max(0, max_requests - count),
                    reset_in=reset_in,
                )
        return self._check_in_memory(identifier, max_requests, window_ms)

    def _check_in_memory(
        self, identifier: str, max_requests: int, window_ms: int
    ) -> RateLimitResult:
        now = self._clock()
        self._calls += 1
        if self._calls % EVICTION_INTERVAL_CALLS == 0 or len(self._windows) > MAX_ENTRIES:
            self._evict_expired(now)

        window = self._windows.get(identifier)
        if window is None or now > window.reset_at:
            self._windows[identifier] = _Window(count=1, reset_at=now + window_ms / 1000)
            return RateLimitResult(allowed=True, remaining=max_requests - 1, reset_in=window_ms)

        reset_in = int((window.reset_at - now) * 1000)
        if window.count >= max_requests:
            return RateLimitResult(allowed=False, remaining=0, reset_in=reset_in)

        window.count += 1
        return RateLimitResult(
            allowed=True, remaining=max_requests - window.count, reset_in=reset_in
        )

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in expired:
            del self._windows[key]
