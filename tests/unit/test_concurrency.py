"""Unit tests for the join helpers and the stopwatch."""

from __future__ import annotations

import asyncio

import pytest

from src.utils.concurrency import race_with_deadline, settle_all, throttled_gather
from src.utils.timing import Stopwatch


async def _value(value: object, delay: float = 0.0) -> object:
    await asyncio.sleep(delay)
    return value


async def _fail(message: str) -> object:
    raise ValueError(message)


# ======================================================================
# throttled_gather
# ======================================================================


class TestThrottledGather:
    @pytest.mark.asyncio
    async def test_preserves_order(self) -> None:
        results = await throttled_gather(
            [_value("a", 0.02), _value("b"), _value("c", 0.01)],
            semaphore=asyncio.Semaphore(2),
        )
        assert results == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_returns_exceptions_in_place(self) -> None:
        results = await throttled_gather(
            [_value(1), _fail("x")], semaphore=asyncio.Semaphore(5)
        )
        assert results[0] == 1
        assert isinstance(results[1], ValueError)

    @pytest.mark.asyncio
    async def test_concurrency_bounded_by_semaphore(self) -> None:
        active = 0
        peak = 0

        async def _tracked() -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        await throttled_gather([_tracked() for _ in range(8)], semaphore=asyncio.Semaphore(3))
        assert peak == 3


# ======================================================================
# settle_all
# ======================================================================


class TestSettleAll:
    @pytest.mark.asyncio
    async def test_failure_does_not_cancel_siblings(self) -> None:
        settled = await settle_all({"ok": _value("done", 0.01), "bad": _fail("boom")})
        assert settled["ok"].ok
        assert settled["ok"].value == "done"
        assert not settled["bad"].ok
        assert isinstance(settled["bad"].error, ValueError)

    @pytest.mark.asyncio
    async def test_deadline_marks_pending_branches(self) -> None:
        settled = await settle_all({"fast": _value(1), "slow": _value(2, 5.0)}, timeout=0.05)
        assert settled["fast"].ok
        assert settled["slow"].timed_out
        assert settled["slow"].value is None

    @pytest.mark.asyncio
    async def test_keeps_input_order(self) -> None:
        settled = await settle_all({"b": _value(1), "a": _value(2)})
        assert list(settled) == ["b", "a"]

    @pytest.mark.asyncio
    async def test_empty_mapping(self) -> None:
        assert await settle_all({}) == {}


# ======================================================================
# race_with_deadline
# ======================================================================


class TestRaceWithDeadline:
    @pytest.mark.asyncio
    async def test_defaults_replace_failed_and_slow_branches(self) -> None:
        resolved = await race_with_deadline(
            {"tone": _value("casual"), "web": _value("ctx", 5.0), "prefs": _fail("db")},
            defaults={"tone": "neutral", "web": None, "prefs": ""},
            timeout=0.05,
        )
        assert resolved == {"tone": "casual", "web": None, "prefs": ""}


# ======================================================================
# Stopwatch
# ======================================================================


class TestStopwatch:
    def test_elapsed_and_remaining(self) -> None:
        now = [100.0]
        watch = Stopwatch(clock=lambda: now[0])
        now[0] = 103.5
        assert watch.elapsed() == pytest.approx(3.5)
        assert watch.elapsed_ms() == 3500
        assert watch.remaining(10.0) == pytest.approx(6.5)
        assert not watch.expired(10.0)

    def test_remaining_never_negative(self) -> None:
        now = [0.0]
        watch = Stopwatch(clock=lambda: now[0])
        now[0] = 20.0
        assert watch.remaining(10.0) == 0.0
        assert watch.expired(10.0)

    def test_expired_at_exact_budget(self) -> None:
        now = [0.0]
        watch = Stopwatch(clock=lambda: now[0])
        now[0] = 10.0
        assert watch.expired(10.0)
