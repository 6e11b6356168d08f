"""AssemblyAI transcription provider with speaker diarization.

# ─── ASYNC TRANSCRIPTION ────────────────────────────────────────────
#
# Transcription is two-phase:
#
#   1. submit()  — POST the audio URL with ``speaker_labels`` and a
#                  ``webhook_url``; AssemblyAI answers with a job id.
#   2. callback  — AssemblyAI POSTs ``{transcript_id, status}`` to the
#                  webhook when done.  The webhook body carries no
#                  transcript, so the pipeline calls fetch() to read
#                  the utterances.
#
# fetch() doubles as the polling fallback when a webhook never arrives.
# Billing is per second of audio.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.interfaces.transcription_provider import (
    ITranscriptionProvider,
    TranscriptionResult,
    Utterance,
)
from src.utils.errors import AcquisitionError

logger = structlog.get_logger(logger_name=__name__)

_API_URL = "https://api.assemblyai.com/v2/transcript"
_TIMEOUT_SECONDS = 30.0


class AssemblyAITranscriptionProvider(ITranscriptionProvider):
    """Speech-to-text via AssemblyAI.

    Parameters
    ----------
    api_key:
        AssemblyAI API key, sent as the ``Authorization`` header.
    http_client:
        Optional shared ``httpx.AsyncClient``.
    """

    def __init__(self, api_key: str, http_client: httpx.AsyncClient | None = None) -> None:
        self._api_key = api_key
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(_TIMEOUT_SECONDS)
        )

    async def submit(self, audio_url: str, callback_url: str | None = None) -> str:
        body: dict[str, Any] = {
            "audio_url": audio_url,
            "speaker_labels": True,
            "language_detection": True,
        }
        if callback_url:
            body["webhook_url"] = callback_url

        data = await self._request("POST", _API_URL, json=body)
        transcript_id = data.get("id")
        if not transcript_id:
            raise AcquisitionError(
                message="AssemblyAI did not return a transcript id",
                provider_name=self.get_provider_name(),
            )
        logger.info("transcription_submitted", transcript_id=transcript_id)
        return str(transcript_id)

    async def fetch(self, transcript_id: str) -> TranscriptionResult:
        data = await self._request("GET", f"{_API_URL}/{transcript_id}")
        return self._to_result(data, transcript_id)

    def parse_callback(self, payload: dict) -> TranscriptionResult:
        return self._to_result(payload, str(payload.get("transcript_id") or payload.get("id") or ""))

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(
                method, url, headers={"Authorization": self._api_key}, **kwargs
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise AcquisitionError(
                message=f"AssemblyAI request failed ({exc.response.status_code})",
                provider_name=self.get_provider_name(),
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise AcquisitionError(
                message=f"AssemblyAI request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except ValueError as exc:
            raise AcquisitionError(
                message="AssemblyAI returned a malformed response body",
                provider_name=self.get_provider_name(),
            ) from exc

    @staticmethod
    def _to_result(data: dict[str, Any], transcript_id: str) -> TranscriptionResult:
        utterances = [
            Utterance(
                speaker=str(u.get("speaker", "")),
                text=str(u.get("text", "")),
                start_ms=int(u.get("start", 0)),
            )
            for u in data.get("utterances") or []
        ]
        duration = data.get("audio_duration")
        return TranscriptionResult(
            transcript_id=transcript_id,
            status=str(data.get("status", "processing")),
            utterances=utterances,
            text=data.get("text"),
            duration_seconds=round(duration) if duration else None,
            error=data.get("error"),
        )

    def get_provider_name(self) -> str:
        return "assemblyai"

    def is_available(self) -> bool:
        return bool(self._api_key)
