"""Discriminated acquisition results and the shared retry loop.

Adapters never raise for content problems.  They return either
:class:`Acquired` wrapped in :class:`Ok`, or a :class:`Failure` that
already carries the taxonomy category, so the orchestrator branches on
structure (``result.ok``) rather than on error strings.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal, TypeVar, Union

import structlog

from src.utils.error_classifier import AcquisitionSubtype, ErrorCategory, classify_error
from src.utils.errors import AcquisitionError, ProviderError

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

_BASE_DELAY_SECONDS = 1.0
_MAX_DELAY_SECONDS = 4.0


@dataclass(frozen=True)
class Acquired:
    """Text and metadata produced by an acquisition adapter.

    ``text`` is ``None`` only when the content went to asynchronous
    transcription; ``transcript_id`` then identifies the job.
    """

    text: str | None
    title: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    transcript_id: str | None = None

    @property
    def pending_transcription(self) -> bool:
        return self.text is None and self.transcript_id is not None


@dataclass(frozen=True)
class Ok:
    value: Acquired
    ok: Literal[True] = True


@dataclass(frozen=True)
class Failure:
    """A classified acquisition failure.

    ``detail`` is the raw vendor message (logged, never shown).
    ``user_message`` overrides the taxonomy's generic message when the
    adapter has something actionable to say.
    """

    category: ErrorCategory
    subtype: AcquisitionSubtype | None = None
    retryable: bool = False
    detail: str = ""
    user_message: str | None = None
    ok: Literal[False] = False

    @classmethod
    def from_error(
        cls,
        exc: Exception,
        subtype: AcquisitionSubtype,
        user_message: str | None = None,
    ) -> Failure:
        """Classify *exc*; unrecognised errors fall back to *subtype*."""
        detail = str(exc)
        category, classified_subtype = classify_error(detail)
        if category is ErrorCategory.UNKNOWN:
            category, classified_subtype = ErrorCategory.ACQUISITION_FAILED, subtype
        elif category is ErrorCategory.ACQUISITION_FAILED and classified_subtype is None:
            classified_subtype = subtype
        retryable = exc.retryable if isinstance(exc, ProviderError) else False
        return cls(
            category=category,
            subtype=classified_subtype,
            retryable=retryable,
            detail=detail,
            user_message=user_message,
        )


AcquisitionResult = Union[Ok, Failure]


def backoff_delay(attempt: int) -> float:
    """Delay before retry number *attempt* (1-based): 1s, 2s, 4s, 4s, ..."""
    return min(_BASE_DELAY_SECONDS * 2 ** (attempt - 1), _MAX_DELAY_SECONDS)


async def fetch_with_retry(
    operation: Callable[[], Awaitable[_T]],
    *,
    label: str,
    attempts: int = 3,
    timeout: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> _T:
    """Run *operation* with bounded exponential backoff.

    Non-retryable :class:`ProviderError` (4xx) short-circuits at once.
    Each attempt carries its own *timeout*, independent of the loop.

    Raises
    ------
    ProviderError
        The last error once attempts are exhausted or a non-retryable
        error occurs.
    """
    last_error: ProviderError | None = None
    for attempt in range(1, attempts + 1):
        try:
            if timeout is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.TimeoutError as exc:  # noqa: UP041
            last_error = AcquisitionError(message=f"{label} timed out after {timeout:.0f}s")
            last_error.__cause__ = exc
        except ProviderError as exc:
            last_error = exc
            if not exc.retryable:
                logger.warning(
                    "acquisition_non_retryable",
                    operation=label,
                    attempt=attempt,
                    status_code=exc.status_code,
                    error=exc.message,
                )
                raise

        if attempt < attempts:
            delay = backoff_delay(attempt)
            logger.warning(
                "acquisition_retry",
                operation=label,
                attempt=attempt,
                delay=delay,
                error=last_error.message,
            )
            await sleep(delay)

    logger.error("acquisition_exhausted", operation=label, attempts=attempts)
    if last_error is None:
        raise AcquisitionError(message=f"{label} was not attempted (attempts={attempts})")
    raise last_error
