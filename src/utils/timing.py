"""Stopwatch and deadline helpers.

The clock is injectable so tests can drive elapsed time deterministically
instead of sleeping.
"""

from __future__ import annotations

import time
from collections.abc import Callable


class Stopwatch:
    """Measures elapsed wall-clock time from construction.

    Parameters
    ----------
    clock:
        Monotonic time source in seconds.  Defaults to ``time.monotonic``.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._started = clock()

    def elapsed(self) -> float:
        """Seconds since the stopwatch started."""
        return self._clock() - self._started

    def elapsed_ms(self) -> int:
        return int(self.elapsed() * 1000)

    def remaining(self, budget_seconds: float) -> float:
        """Seconds left in *budget_seconds*, never negative."""
        return max(0.0, budget_seconds - self.elapsed())

    def expired(self, budget_seconds: float) -> bool:
        return self.elapsed() >= budget_seconds
