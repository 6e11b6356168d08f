"""Abstract base class for video metadata and transcript providers.

The transcript comes back as time-coded chunks; grouping them into
readable fixed-duration paragraphs is done by the acquisition adapter,
not the provider.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class VideoMetadata:
    """Structured metadata for a single video."""

    title: str | None = None
    author: str | None = None
    description: str | None = None
    duration: int | None = None  # seconds
    view_count: int | None = None
    like_count: int | None = None
    upload_date: str | None = None
    thumbnail_url: str | None = None
    tags: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class TranscriptChunk:
    """One caption segment; ``offset_ms`` is its start time in the video."""

    text: str
    offset_ms: int


# Concrete implementation: SupadataVideoProvider (src/providers/video/)
class IVideoProvider(ABC):
    """Contract for services that describe and transcribe online videos."""

    @abstractmethod
    async def get_metadata(self, url: str) -> VideoMetadata:
        """Return metadata for the video at *url*.

        Raises
        ------
        src.utils.errors.AcquisitionError
            If the lookup fails; ``status_code`` is set for HTTP errors.
        """

    @abstractmethod
    async def get_transcript(self, url: str) -> list[TranscriptChunk] | str:
        """Return the time-coded transcript, or plain text if the service
        has no timing information for this video.

        Raises
        ------
        src.utils.errors.AcquisitionError
            If the transcript is unavailable.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
