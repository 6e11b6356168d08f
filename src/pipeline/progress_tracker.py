"""Per-content pipeline stage tracking with listener notification.

Records the current :class:`PipelineStage` for each content id and
broadcasts every transition to callbacks registered for that id.
Listeners are keyed by content id so concurrent runs never see each
other's updates.

    ContentPipeline ──advance()──→ StageTracker ──callback()──→ status endpoint
                                                 ──callback()──→ (any other listener)

A listener that raises is logged and skipped; it can never stall or fail
a pipeline run.  Both sync and async callbacks are accepted.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog

from src.models.pipeline import PipelineStage
from src.utils.logging import get_logger

TERMINAL_STAGES = frozenset(
    {
        PipelineStage.FINALIZED,
        PipelineStage.REFUSED,
        PipelineStage.PARTIAL,
        PipelineStage.TRANSCRIBING,
    }
)


@dataclass
class _StageStatus:
    stage: PipelineStage = PipelineStage.PENDING
    message: str = ""
    history: list[PipelineStage] = field(default_factory=list)


class StageTracker:
    """Tracks and broadcasts the stage of each pipeline run."""

    def __init__(self) -> None:
        self._statuses: dict[str, _StageStatus] = {}
        self._listeners: dict[str, list[Callable]] = {}
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def advance(self, content_id: str, stage: PipelineStage, message: str = "") -> None:
        """Record *stage* for *content_id* and notify its listeners."""
        status = self._statuses.setdefault(content_id, _StageStatus())
        status.stage = stage
        status.message = message
        status.history.append(stage)

        self._logger.debug(
            "stage_update", content_id=content_id, stage=stage.value, message=message
        )
        await self._notify_listeners(content_id, stage, message)

    def reset(self, content_id: str) -> None:
        """Forget the history of *content_id* before a new run."""
        self._statuses.pop(content_id, None)

    def register_listener(self, content_id: str, callback: Callable) -> None:
        """Register ``callback(content_id, stage, message)`` for *content_id*."""
        listeners = self._listeners.setdefault(content_id, [])
        if callback not in listeners:
            listeners.append(callback)

    def unregister_listener(self, content_id: str, callback: Callable) -> None:
        listeners = self._listeners.get(content_id, [])
        if callback in listeners:
            listeners.remove(callback)

    def get_stage(self, content_id: str) -> PipelineStage:
        status = self._statuses.get(content_id)
        return status.stage if status else PipelineStage.PENDING

    def get_history(self, content_id: str) -> list[PipelineStage]:
        status = self._statuses.get(content_id)
        return list(status.history) if status else []

    def get_status(self, content_id: str) -> dict:
        """Return ``stage``, ``message`` and ``finished`` for *content_id*."""
        status = self._statuses.get(content_id) or _StageStatus()
        return {
            "stage": status.stage.value,
            "message": status.message,
            "finished": status.stage in TERMINAL_STAGES,
        }

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(
        self, content_id: str, stage: PipelineStage, message: str
    ) -> None:
        for callback in list(self._listeners.get(content_id, [])):
            try:
                result = callback(content_id, stage, message)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    content_id=content_id,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
