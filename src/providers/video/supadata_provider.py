"""Supadata video provider: YouTube metadata and time-coded transcripts.

One HTTP request per call.  Retrying is the acquisition adapter's job;
this provider only reports whether a failure is worth retrying (via the
HTTP status on :class:`AcquisitionError`).
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.interfaces.video_provider import IVideoProvider, TranscriptChunk, VideoMetadata
from src.utils.errors import AcquisitionError

logger = structlog.get_logger(logger_name=__name__)

_BASE_URL = "https://api.supadata.ai/v1/youtube"
_METADATA_TIMEOUT = 30.0
_TRANSCRIPT_TIMEOUT = 60.0


class SupadataVideoProvider(IVideoProvider):
    """Video metadata/transcript lookups through the Supadata API."""

    def __init__(self, api_key: str, http_client: httpx.AsyncClient | None = None) -> None:
        self._api_key = api_key
        self._client = http_client or httpx.AsyncClient()

    async def get_metadata(self, url: str) -> VideoMetadata:
        data = await self._get_json("video", {"id": url}, _METADATA_TIMEOUT, "metadata")
        channel = data.get("channel") or {}
        return VideoMetadata(
            title=data.get("title"),
            author=channel.get("name"),
            description=data.get("description"),
            duration=data.get("duration"),
            view_count=data.get("viewCount"),
            like_count=data.get("likeCount"),
            upload_date=data.get("uploadDate"),
            thumbnail_url=data.get("thumbnail"),
            tags=list(data.get("tags") or []),
        )

    async def get_transcript(self, url: str) -> list[TranscriptChunk] | str:
        data = await self._get_json("transcript", {"url": url}, _TRANSCRIPT_TIMEOUT, "transcript")
        content = data.get("content")
        if isinstance(content, list):
            return [
                TranscriptChunk(text=chunk.get("text", ""), offset_ms=int(chunk.get("offset", 0)))
                for chunk in content
                if isinstance(chunk, dict)
            ]
        if isinstance(content, str) and content.strip():
            return content
        raise AcquisitionError(
            message="Video transcript was empty",
            provider_name=self.get_provider_name(),
            retryable=False,
        )

    async def _get_json(
        self, path: str, params: dict[str, str], timeout: float, operation: str
    ) -> dict[str, Any]:
        try:
            response = await self._client.get(
                f"{_BASE_URL}/{path}",
                params=params,
                headers={"x-api-key": self._api_key},
                timeout=timeout,
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise AcquisitionError(
                message=f"Video {operation} request timed out",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            logger.error(
                "supadata_request_failed",
                operation=operation,
                status_code=exc.response.status_code,
                response_text=exc.response.text,
            )
            raise AcquisitionError(
                message=f"Video {operation} could not be retrieved",
                provider_name=self.get_provider_name(),
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise AcquisitionError(
                message=f"Video {operation} request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if "application/json" not in response.headers.get("content-type", ""):
            raise AcquisitionError(
                message=f"Video {operation} response was invalid",
                provider_name=self.get_provider_name(),
                retryable=False,
            )
        return response.json()

    def get_provider_name(self) -> str:
        return "supadata"

    def is_available(self) -> bool:
        return bool(self._api_key)
