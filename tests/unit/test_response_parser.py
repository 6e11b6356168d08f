"""Unit tests for lenient JSON parsing and section decoding."""

from __future__ import annotations

import json

import pytest

from src.models.sections import (
    ActionItemsSection,
    AutoTagsSection,
    RefusalPayload,
    SectionType,
    TextSection,
    TriageSection,
    TruthCheckSection,
)
from src.services.response_parser import decode_section, parse_json_lenient
from src.utils.errors import ResponseParseError, SectionDecodeError


# ======================================================================
# parse_json_lenient
# ======================================================================


class TestParseJsonLenient:
    def test_direct(self) -> None:
        assert parse_json_lenient('{"a": 1}') == {"a": 1}

    def test_fenced_block(self) -> None:
        text = 'Here you go:\n```json\n{"tags": ["x"]}\n```\nThanks'
        assert parse_json_lenient(text) == {"tags": ["x"]}

    def test_balanced_substring_after_prose(self) -> None:
        text = 'Sure! {"a": {"b": "has } brace"}} trailing words'
        assert parse_json_lenient(text) == {"a": {"b": "has } brace"}}

    def test_array_substring(self) -> None:
        assert parse_json_lenient("result: [1, 2, 3] done") == [1, 2, 3]

    def test_repairs_truncated_object(self) -> None:
        text = '{"overall_rating": "Mixed", "strengths": ["one", "tw'
        assert parse_json_lenient(text) == {"overall_rating": "Mixed", "strengths": ["one", "tw"]}

    def test_repairs_trailing_comma(self) -> None:
        assert parse_json_lenient('{"a": [1, 2,') == {"a": [1, 2]}

    @pytest.mark.parametrize("text", ["", "   ", "no json at all"])
    def test_unparseable_raises(self, text: str) -> None:
        with pytest.raises(ResponseParseError):
            parse_json_lenient(text)


# ======================================================================
# decode_section
# ======================================================================


class TestDecodeSection:
    def test_text_section(self) -> None:
        payload = decode_section(SectionType.BRIEF_OVERVIEW, "  An overview.  ")
        assert payload == TextSection(text="An overview.")

    def test_empty_output_raises(self) -> None:
        with pytest.raises(SectionDecodeError) as exc_info:
            decode_section(SectionType.DETAILED_SUMMARY, "   ")
        assert exc_info.value.section == "detailed_summary"

    def test_refusal_prefix(self) -> None:
        payload = decode_section(SectionType.BRIEF_OVERVIEW, "CONTENT_REFUSED: violent content")
        assert payload == RefusalPayload(reason="violent content")

    def test_refusal_prefix_without_reason(self) -> None:
        payload = decode_section(SectionType.TRIAGE, "CONTENT_REFUSED:")
        assert isinstance(payload, RefusalPayload)
        assert payload.reason == "AI refused to analyze this content"

    def test_refused_json_object(self) -> None:
        payload = decode_section(SectionType.TRUTH_CHECK, '{"refused": true, "reason": "policy"}')
        assert payload == RefusalPayload(reason="policy")

    def test_triage(self) -> None:
        raw = json.dumps({"quality_score": 8, "content_category": " Music ", "extra": 1})
        payload = decode_section(SectionType.TRIAGE, raw)
        assert isinstance(payload, TriageSection)
        assert payload.quality_score == 8
        assert payload.is_non_informational

    def test_triage_out_of_range_fails_closed(self) -> None:
        with pytest.raises(SectionDecodeError):
            decode_section(SectionType.TRIAGE, '{"quality_score": 42}')

    def test_truth_check_requires_known_rating(self) -> None:
        with pytest.raises(SectionDecodeError):
            decode_section(SectionType.TRUTH_CHECK, '{"overall_rating": "Great"}')

    def test_truth_check_claim_sources_coerced(self) -> None:
        raw = json.dumps(
            {
                "overall_rating": "Accurate",
                "claims": [
                    {
                        "exact_text": "x",
                        "sources": ["https://a.example", {"url": "https://b.example"}, 3],
                    }
                ],
            }
        )
        payload = decode_section(SectionType.TRUTH_CHECK, raw)
        assert isinstance(payload, TruthCheckSection)
        assert payload.claims[0].sources == ["https://a.example", "https://b.example"]

    def test_action_items_from_wrapped_object(self) -> None:
        raw = '```json\n{"action_items": [{"title": "Read the report"}]}\n```'
        payload = decode_section(SectionType.ACTION_ITEMS, raw)
        assert isinstance(payload, ActionItemsSection)
        assert payload.items[0].title == "Read the report"

    def test_action_items_from_bare_list(self) -> None:
        payload = decode_section(SectionType.ACTION_ITEMS, '[{"title": "Call"}]')
        assert isinstance(payload, ActionItemsSection)
        assert len(payload.items) == 1

    def test_auto_tags_cleaned(self) -> None:
        raw = json.dumps({"tags": ["Urban-Planning", "urban planning", "", 5, "a", "b", "c", "d"]})
        payload = decode_section(SectionType.AUTO_TAGS, raw)
        assert isinstance(payload, AutoTagsSection)
        assert payload.tags == ["urban planning", "a", "b", "c", "d"]

    def test_non_object_for_object_section_raises(self) -> None:
        with pytest.raises(SectionDecodeError):
            decode_section(SectionType.TRIAGE, "[1, 2]")

    def test_unparseable_json_section_raises(self) -> None:
        with pytest.raises(SectionDecodeError) as exc_info:
            decode_section(SectionType.AUTO_TAGS, "not json")
        assert exc_info.value.section == "auto_tags"
