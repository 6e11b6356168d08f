"""Video acquisition: metadata, music pre-screen, then transcript.

Music videos and concerts have no meaningful spoken content, so the
metadata is scored for music signals first and such videos are rejected
before the (slow) transcript fetch.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable

import structlog

from src.interfaces.video_provider import IVideoProvider, VideoMetadata
from src.services.acquisition.result import (
    Acquired,
    AcquisitionResult,
    Failure,
    Ok,
    fetch_with_retry,
)
from src.services.transcript_formatter import group_transcript_chunks
from src.utils.error_classifier import AcquisitionSubtype, ErrorCategory
from src.utils.errors import ProviderError
from src.utils.logging import get_logger

_METADATA_TIMEOUT = 30.0
_TRANSCRIPT_TIMEOUT = 60.0
_ATTEMPTS = 3
_MUSIC_THRESHOLD = 3

_MUSIC_TITLE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bofficial\s+(music\s+)?video\b",
        r"\bofficial\s+audio\b",
        r"\bofficial\s+lyric\s+video\b",
        r"\blyrics?\s+video\b",
        r"\blive\s+(concert|performance|session|show)\b",
        r"\bfull\s+(album|concert|set)\b",
        r"\bmix\s*(?:tape|set)\b",
        r"\b(?:dj|lo-?fi|chill)\s+mix\b",
        r"\bmusic\s+video\b",
        r"\bvisualizer\b",
        r"\baudio\s*(?:only)?\b.*\b(?:ft|feat)\b",
        r"\b(?:ft|feat)\.?\s+",
        r"\[\s*(?:official|lyrics?|audio|mv|m/v)\s*\]",
        r"\(\s*(?:official|lyrics?|audio|mv|m/v)\s*\)",
    )
]

_MUSIC_TAGS = frozenset(
    {
        "music", "music video", "official video", "official music video",
        "official audio", "lyrics", "lyric video", "concert", "live concert",
        "live performance", "live music", "album", "full album", "mixtape",
        "hip hop", "rap", "r&b", "pop music", "rock music", "jazz",
        "electronic music", "edm", "classical music", "country music",
        "reggae", "gospel", "k-pop", "latin music",
    }
)

_MUSIC_DESCRIPTION_PATTERNS = [
    re.compile(r"\bofficial\s+(music\s+)?video\b", re.IGNORECASE),
    re.compile(r"\bstream\s+(/\s*)?download\b", re.IGNORECASE),
    re.compile(
        r"\bavailable\s+(?:now\s+)?on\s+(?:spotify|apple\s+music|itunes|tidal|deezer|amazon\s+music)\b",
        re.IGNORECASE,
    ),
    re.compile(r"(?:℗|©)\s*\d{4}\b"),
    re.compile(r"\brecords?\b.*\b(?:distributed|released)\b", re.IGNORECASE),
    re.compile(r"\bproduced\s+by\b", re.IGNORECASE),
    re.compile(r"\bwritten\s+by\b.*\bcomposed\s+by\b", re.IGNORECASE),
]

_MUSIC_CHANNEL_KEYWORDS = ("vevo", "records", "music", "entertainment")
_FEATURING_RE = re.compile(r"\b(?:ft|feat)\.?\s+", re.IGNORECASE)


def music_signal_score(metadata: VideoMetadata) -> int:
    """Score how strongly *metadata* suggests a music video.

    Title patterns are worth 2, tags and description 1 or 2 depending on
    how many match, a music-label channel 1, and "feat." in the title 1
    more when anything else already matched.
    """
    title = metadata.title or ""
    description = metadata.description or ""
    signals = 0

    if any(p.search(title) for p in _MUSIC_TITLE_PATTERNS):
        signals += 2

    tag_hits = sum(1 for tag in metadata.tags if tag.lower() in _MUSIC_TAGS)
    if tag_hits >= 2:
        signals += 2
    elif tag_hits == 1:
        signals += 1

    description_hits = sum(1 for p in _MUSIC_DESCRIPTION_PATTERNS if p.search(description))
    if description_hits >= 2:
        signals += 2
    elif description_hits == 1:
        signals += 1

    channel = (metadata.author or "").lower()
    if any(keyword in channel for keyword in _MUSIC_CHANNEL_KEYWORDS):
        signals += 1

    if _FEATURING_RE.search(title) and signals >= 1:
        signals += 1

    return signals


def is_music_content(metadata: VideoMetadata) -> bool:
    return music_signal_score(metadata) >= _MUSIC_THRESHOLD


class VideoAcquirer:
    """Fetches video metadata and a grouped transcript."""

    def __init__(
        self,
        provider: IVideoProvider,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self._sleep = sleep
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def acquire(self, url: str) -> AcquisitionResult:
        try:
            metadata = await fetch_with_retry(
                lambda: self._provider.get_metadata(url),
                label="video metadata",
                attempts=_ATTEMPTS,
                timeout=_METADATA_TIMEOUT,
                sleep=self._sleep,
            )
        except ProviderError as exc:
            return Failure.from_error(exc, AcquisitionSubtype.METADATA_FAILED)

        if is_music_content(metadata):
            self._logger.info("music_content_rejected", url=url, title=metadata.title)
            return Failure(
                category=ErrorCategory.MUSIC_OR_NONSPEECH_CONTENT,
                detail="music content detected from metadata",
            )

        try:
            transcript = await fetch_with_retry(
                lambda: self._provider.get_transcript(url),
                label="video transcript",
                attempts=_ATTEMPTS,
                timeout=_TRANSCRIPT_TIMEOUT,
                sleep=self._sleep,
            )
        except ProviderError as exc:
            return Failure.from_error(exc, AcquisitionSubtype.TRANSCRIPT_FAILED)

        text = transcript if isinstance(transcript, str) else group_transcript_chunks(transcript)
        if not text.strip():
            return Failure(
                category=ErrorCategory.ACQUISITION_FAILED,
                subtype=AcquisitionSubtype.TRANSCRIPT_FAILED,
                detail="empty transcript",
            )

        return Ok(
            Acquired(
                text=text,
                title=metadata.title,
                metadata={
                    "author": metadata.author,
                    "description": metadata.description,
                    "duration": metadata.duration,
                    "view_count": metadata.view_count,
                    "like_count": metadata.like_count,
                    "upload_date": metadata.upload_date,
                    "thumbnail_url": metadata.thumbnail_url,
                    "tags": list(metadata.tags),
                },
            )
        )
