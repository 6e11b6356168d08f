"""Shared concurrency primitives for the content pipeline.

Three join disciplines are exposed:

1. **throttled_gather** -- ``asyncio.gather`` with every awaitable wrapped
   in a semaphore acquire/release.  Used for the per-topic and per-claim
   web searches so a burst of queries stays under the search vendor's
   rate limit.

2. **settle_all** -- a fault-tolerant join for section generation.  Every
   task runs to completion (or to the deadline); one task's exception is
   captured in its :class:`Settled` record and never cancels the others.

3. **race_with_deadline** -- best-effort join for enrichment.  Whatever
   has finished when the shared deadline elapses is used; everything else
   is cancelled and replaced by its caller-supplied default.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog

from src.utils.logging import get_logger

_T = TypeVar("_T")

# Shared across all pipeline runs in the process: at most 5 concurrent
# search calls regardless of how many content items are being processed.
_SEARCH_SEMAPHORE = asyncio.Semaphore(5)

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with optional semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Optional semaphore for concurrency control.  Defaults to the
        module-level ``_SEARCH_SEMAPHORE``.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """
    if semaphore is None:
        semaphore = _SEARCH_SEMAPHORE

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


@dataclass(frozen=True)
class Settled(Generic[_T]):
    """Outcome of one branch of a :func:`settle_all` join.

    Exactly one of ``value`` / ``error`` is meaningful: ``ok`` is ``True``
    when the branch returned normally.  ``timed_out`` marks branches that
    were cancelled because the join's deadline elapsed.
    """

    name: str
    value: _T | None = None
    error: BaseException | None = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out


async def settle_all(
    awaitables: Mapping[str, Awaitable[Any]],
    timeout: float | None = None,
) -> dict[str, Settled[Any]]:
    """Run named awaitables concurrently and capture every outcome.

    Unlike ``asyncio.gather`` without ``return_exceptions``, a failing
    branch never cancels its siblings.  When *timeout* elapses, branches
    still running are cancelled and reported with ``timed_out=True``.

    Parameters
    ----------
    awaitables:
        Mapping of branch name to coroutine/awaitable.
    timeout:
        Optional shared deadline in seconds for the whole join.

    Returns
    -------
    dict[str, Settled]
        One record per input name, in input order.
    """
    tasks = {name: asyncio.ensure_future(aw) for name, aw in awaitables.items()}
    if not tasks:
        return {}

    done, pending = await asyncio.wait(tasks.values(), timeout=timeout)
    for task in pending:
        task.cancel()
    if pending:
        # Let cancellations propagate so no task outlives the join.
        await asyncio.gather(*pending, return_exceptions=True)

    results: dict[str, Settled[Any]] = {}
    for name, task in tasks.items():
        if task in pending:
            results[name] = Settled(name=name, timed_out=True)
        elif task.cancelled():
            results[name] = Settled(name=name, error=asyncio.CancelledError())
        elif task.exception() is not None:
            results[name] = Settled(name=name, error=task.exception())
        else:
            results[name] = Settled(name=name, value=task.result())
    return results


async def race_with_deadline(
    awaitables: Mapping[str, Awaitable[Any]],
    defaults: Mapping[str, Any],
    timeout: float,
) -> dict[str, Any]:
    """Best-effort join: completed results, defaults for everything else.

    A branch that raises or has not finished by *timeout* contributes its
    entry from *defaults*.  Failures are logged, never raised.
    """
    settled = await settle_all(awaitables, timeout=timeout)
    resolved: dict[str, Any] = {}
    for name, outcome in settled.items():
        if outcome.ok:
            resolved[name] = outcome.value
            continue
        if outcome.timed_out:
            _logger.warning("deadline_branch_timed_out", branch=name, timeout=timeout)
        else:
            _logger.warning(
                "deadline_branch_failed",
                branch=name,
                error=str(outcome.error)[:200],
            )
        resolved[name] = defaults.get(name)
    return resolved
