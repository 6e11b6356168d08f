"""Unit tests for the exception hierarchy and the error classifier."""

from __future__ import annotations

import pytest

from src.utils.error_classifier import (
    POLICY_SENTINEL,
    AcquisitionSubtype,
    ErrorCategory,
    classify_error,
    failure_sentinel,
    is_failure_sentinel,
    user_friendly_message,
)
from src.utils.errors import (
    AcquisitionError,
    ContentLensError,
    LLMError,
    PodcastResolutionError,
    ProcessContentError,
    ProviderError,
    RateLimitError,
    SectionDecodeError,
)


# ======================================================================
# Exception hierarchy
# ======================================================================


class TestErrors:
    def test_str_prefixes_provider_name(self) -> None:
        err = ContentLensError("boom", provider_name="openai")
        assert str(err) == "[openai] boom"

    def test_str_without_provider(self) -> None:
        assert str(ContentLensError("boom")) == "boom"

    def test_defaults_allow_bare_construction(self) -> None:
        err = RateLimitError()
        assert err.status_code == 429
        assert err.retryable is True

    @pytest.mark.parametrize(
        ("status", "expected"),
        [(None, True), (429, True), (500, True), (503, True), (400, False), (404, False)],
    )
    def test_retryable_derived_from_status(self, status: int | None, expected: bool) -> None:
        assert ProviderError(status_code=status).retryable is expected

    def test_explicit_retryable_wins(self) -> None:
        assert LLMError(status_code=503, retryable=False).retryable is False

    def test_podcast_resolution_never_retryable(self) -> None:
        err = PodcastResolutionError()
        assert err.retryable is False
        assert isinstance(err, ProviderError)

    def test_section_decode_error_carries_section(self) -> None:
        err = SectionDecodeError("bad", section="triage")
        assert err.section == "triage"

    def test_acquisition_error_is_provider_error(self) -> None:
        err = AcquisitionError("scrape failed", status_code=403)
        assert isinstance(err, ProviderError)
        assert err.retryable is False

    def test_process_content_error_fields(self) -> None:
        err = ProcessContentError("limit", 403, upgrade_required=True, tier="free")
        assert err.status_code == 403
        assert err.upgrade_required is True
        assert err.tier == "free"


# ======================================================================
# classify_error
# ======================================================================


class TestClassifyError:
    @pytest.mark.parametrize(
        ("message", "category", "subtype"),
        [
            ("HTTP 429 Too Many Requests", ErrorCategory.RATE_LIMITED, None),
            ("Request timed out after 30s", ErrorCategory.TIMEOUT, None),
            ("Detected music content", ErrorCategory.MUSIC_OR_NONSPEECH_CONTENT, None),
            ("Video is private", ErrorCategory.CONTENT_UNAVAILABLE, None),
            ("404 not found", ErrorCategory.CONTENT_UNAVAILABLE, None),
            (
                "Firecrawl returned nothing",
                ErrorCategory.ACQUISITION_FAILED,
                AcquisitionSubtype.SCRAPE_FAILED,
            ),
            ("Transcription job errored", ErrorCategory.TRANSCRIPTION_FAILED, None),
            (
                "Transcript fetch failed",
                ErrorCategory.ACQUISITION_FAILED,
                AcquisitionSubtype.TRANSCRIPT_FAILED,
            ),
            (
                "metadata request failed",
                ErrorCategory.ACQUISITION_FAILED,
                AcquisitionSubtype.METADATA_FAILED,
            ),
            (
                "No RSS enclosure",
                ErrorCategory.ACQUISITION_FAILED,
                AcquisitionSubtype.AUDIO_RESOLUTION_FAILED,
            ),
            ("AI analysis failed after multiple attempts", ErrorCategory.AI_ANALYSIS_FAILED, None),
            ("something odd", ErrorCategory.UNKNOWN, None),
        ],
    )
    def test_keyword_mapping(
        self,
        message: str,
        category: ErrorCategory,
        subtype: AcquisitionSubtype | None,
    ) -> None:
        assert classify_error(message) == (category, subtype)

    def test_rate_limit_wins_over_vendor_keyword(self) -> None:
        assert classify_error("firecrawl: rate limit")[0] is ErrorCategory.RATE_LIMITED

    def test_timeout_wins_over_transcript(self) -> None:
        assert classify_error("transcript request timeout")[0] is ErrorCategory.TIMEOUT


# ======================================================================
# user_friendly_message / sentinels
# ======================================================================


class TestUserFriendlyMessage:
    def test_acquisition_default_mentions_paywall(self) -> None:
        msg = user_friendly_message("ARTICLE", ErrorCategory.ACQUISITION_FAILED)
        assert msg == (
            "We couldn't extract the article content. It may be behind a login or paywall."
        )

    def test_policy_message(self) -> None:
        msg = user_friendly_message("VIDEO", ErrorCategory.CONTENT_POLICY_VIOLATION)
        assert msg == "This content could not be processed due to our content policy."

    def test_label_substitution(self) -> None:
        msg = user_friendly_message("podcast", ErrorCategory.CONTENT_UNAVAILABLE)
        assert "podcast" in msg

    def test_unknown_type_uses_generic_label(self) -> None:
        msg = user_friendly_message("weird", ErrorCategory.UNKNOWN)
        assert "content" in msg

    def test_never_echoes_vendor_text(self) -> None:
        category, subtype = classify_error("Firecrawl 502 upstream: secret-token-abc")
        msg = user_friendly_message("ARTICLE", category, subtype)
        assert "secret-token-abc" not in msg


class TestFailureSentinel:
    def test_with_subtype(self) -> None:
        sentinel = failure_sentinel(
            "article", ErrorCategory.ACQUISITION_FAILED, AcquisitionSubtype.SCRAPE_FAILED
        )
        assert sentinel == "PROCESSING_FAILED::ARTICLE::ACQUISITION_FAILED/SCRAPE_FAILED"

    def test_subtype_ignored_for_other_categories(self) -> None:
        sentinel = failure_sentinel(
            "TRANSCRIPTION", ErrorCategory.TRANSCRIPTION_FAILED, AcquisitionSubtype.SCRAPE_FAILED
        )
        assert sentinel == "PROCESSING_FAILED::TRANSCRIPTION::TRANSCRIPTION_FAILED"

    def test_is_failure_sentinel(self) -> None:
        assert is_failure_sentinel(POLICY_SENTINEL)
        assert not is_failure_sentinel("ordinary text")
        assert not is_failure_sentinel(None)
        assert not is_failure_sentinel("")
