"""Unit tests for transcript formatting helpers."""

from __future__ import annotations

import pytest

from src.interfaces.transcription_provider import Utterance
from src.interfaces.video_provider import TranscriptChunk
from src.services.transcript_formatter import (
    format_timestamp,
    format_utterances,
    group_transcript_chunks,
)


class TestFormatTimestamp:
    @pytest.mark.parametrize(
        ("ms", "expected"),
        [(0, "0:00"), (65_000, "1:05"), (3_725_000, "1:02:05"), (-10, "0:00")],
    )
    def test_format(self, ms: int, expected: str) -> None:
        assert format_timestamp(ms) == expected


class TestGroupTranscriptChunks:
    def test_groups_by_thirty_seconds(self) -> None:
        chunks = [
            TranscriptChunk(text="one", offset_ms=0),
            TranscriptChunk(text="two", offset_ms=29_999),
            TranscriptChunk(text="three", offset_ms=30_000),
            TranscriptChunk(text="four", offset_ms=95_000),
        ]
        assert group_transcript_chunks(chunks) == (
            "[0:00] one two\n\n[0:30] three\n\n[1:30] four"
        )

    def test_out_of_order_chunks_sorted_by_bucket(self) -> None:
        chunks = [
            TranscriptChunk(text="later", offset_ms=40_000),
            TranscriptChunk(text="first", offset_ms=1_000),
        ]
        assert group_transcript_chunks(chunks) == "[0:00] first\n\n[0:30] later"

    def test_empty(self) -> None:
        assert group_transcript_chunks([]) == ""


class TestFormatUtterances:
    def test_lines_and_speaker_count(self) -> None:
        text, speakers = format_utterances(
            [
                Utterance(speaker="A", text="Hello.", start_ms=0),
                Utterance(speaker="B", text="Hi there.", start_ms=4_000),
                Utterance(speaker="A", text="Welcome.", start_ms=61_000),
            ]
        )
        assert text == (
            "[0:00] Speaker A: Hello.\n\n"
            "[0:04] Speaker B: Hi there.\n\n"
            "[1:01] Speaker A: Welcome."
        )
        assert speakers == 2
