"""Abstract base class for asynchronous audio transcription providers.

Transcription is submit-then-wait: :meth:`submit` returns a tracking id
immediately, and the finished transcript arrives later through a webhook
callback.  :meth:`fetch` is the polling fallback when the callback never
arrives.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Utterance:
    """One diarized utterance; ``start_ms`` is its start time in the audio."""

    speaker: str
    text: str
    start_ms: int


@dataclass(frozen=True)
class TranscriptionResult:
    """State of a transcription job.

    ``status`` is one of ``"queued"``, ``"processing"``, ``"completed"``
    or ``"error"``.
    """

    transcript_id: str
    status: str
    utterances: list[Utterance] = field(default_factory=list)
    text: str | None = None
    duration_seconds: int | None = None
    error: str | None = None

    @property
    def is_finished(self) -> bool:
        return self.status in ("completed", "error")


# Concrete implementation: AssemblyAITranscriptionProvider
# (src/providers/transcription/)
class ITranscriptionProvider(ABC):
    """Contract for speech-to-text services with speaker diarization."""

    @abstractmethod
    async def submit(self, audio_url: str, callback_url: str | None = None) -> str:
        """Queue *audio_url* for transcription and return the tracking id.

        Raises
        ------
        src.utils.errors.AcquisitionError
            If the job could not be submitted.
        """

    @abstractmethod
    async def fetch(self, transcript_id: str) -> TranscriptionResult:
        """Return the current state of a previously submitted job."""

    @abstractmethod
    def parse_callback(self, payload: dict) -> TranscriptionResult:
        """Turn a webhook payload into a :class:`TranscriptionResult`."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
