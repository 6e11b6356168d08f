"""Turn time-coded transcripts into readable text.

Video captions arrive as many short chunks; they are grouped into
30-second paragraphs prefixed with ``[m:ss]``.  Diarized podcast
utterances become one ``[m:ss] Speaker X: text`` line each.
"""

from __future__ import annotations

from src.interfaces.transcription_provider import Utterance
from src.interfaces.video_provider import TranscriptChunk

INTERVAL_MS = 30_000


def format_timestamp(ms: int) -> str:
    """``m:ss``, or ``h:mm:ss`` once the offset passes an hour."""
    total_seconds = max(0, ms) // 1000
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def group_transcript_chunks(chunks: list[TranscriptChunk], interval_ms: int = INTERVAL_MS) -> str:
    groups: dict[int, list[str]] = {}
    for chunk in chunks:
        start = (chunk.offset_ms // interval_ms) * interval_ms
        groups.setdefault(start, []).append(chunk.text)
    return "\n\n".join(
        f"[{format_timestamp(start)}] {' '.join(groups[start])}" for start in sorted(groups)
    )


def format_utterances(utterances: list[Utterance]) -> tuple[str, int]:
    """Return the formatted transcript and the number of distinct speakers."""
    speakers: set[str] = set()
    lines: list[str] = []
    for utterance in utterances:
        speakers.add(utterance.speaker)
        lines.append(
            f"[{format_timestamp(utterance.start_ms)}] Speaker {utterance.speaker}: {utterance.text}"
        )
    return "\n\n".join(lines), len(speakers)
