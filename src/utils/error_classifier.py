"""Closed error taxonomy and vendor-error classification.

Every raw vendor error is mapped onto :class:`ErrorCategory` before it is
persisted on a content item or shown to a user.  Raw vendor text never
leaves this module in a user-facing string.

Failure sentinels are written into a content item's text field so later
readers can tell "no usable text" apart from "not fetched yet":

    PROCESSING_FAILED::ARTICLE::ACQUISITION_FAILED/SCRAPE_FAILED
    PROCESSING_FAILED::TRANSCRIPTION::TRANSCRIPTION_FAILED
    PROCESSING_FAILED::CONTENT_POLICY_VIOLATION
"""

from __future__ import annotations

from enum import Enum

SENTINEL_PREFIX = "PROCESSING_FAILED::"
POLICY_SENTINEL = f"{SENTINEL_PREFIX}CONTENT_POLICY_VIOLATION"


class ErrorCategory(str, Enum):  # noqa: UP042
    """The closed set of failure categories."""

    ACQUISITION_FAILED = "ACQUISITION_FAILED"
    TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
    CONTENT_POLICY_VIOLATION = "CONTENT_POLICY_VIOLATION"
    MUSIC_OR_NONSPEECH_CONTENT = "MUSIC_OR_NONSPEECH_CONTENT"
    RATE_LIMITED = "RATE_LIMITED"
    TIMEOUT = "TIMEOUT"
    CONTENT_UNAVAILABLE = "CONTENT_UNAVAILABLE"
    AI_ANALYSIS_FAILED = "AI_ANALYSIS_FAILED"
    UNKNOWN = "UNKNOWN"


class AcquisitionSubtype(str, Enum):  # noqa: UP042
    """Which acquisition step failed."""

    SCRAPE_FAILED = "SCRAPE_FAILED"
    TRANSCRIPT_FAILED = "TRANSCRIPT_FAILED"
    METADATA_FAILED = "METADATA_FAILED"
    AUDIO_RESOLUTION_FAILED = "AUDIO_RESOLUTION_FAILED"


def classify_error(
    raw_message: str,
) -> tuple[ErrorCategory, AcquisitionSubtype | None]:
    """Map a raw vendor error message onto the closed taxonomy.

    Keyword order matters: rate limiting and timeouts win over the
    vendor-specific keywords, and "transcription" is checked before its
    prefix "transcript".

    Returns
    -------
    tuple[ErrorCategory, AcquisitionSubtype | None]
        The category, plus the acquisition subtype when the category is
        ``ACQUISITION_FAILED``.
    """
    msg = raw_message.lower()

    if "429" in msg or "rate limit" in msg or "limit-exceeded" in msg or "too many" in msg:
        return ErrorCategory.RATE_LIMITED, None
    if "timeout" in msg or "timed out" in msg or "aborted" in msg:
        return ErrorCategory.TIMEOUT, None
    if "music" in msg or "non-speech" in msg or "nonspeech" in msg:
        return ErrorCategory.MUSIC_OR_NONSPEECH_CONTENT, None
    if (
        "unavailable" in msg
        or "not found" in msg
        or "private" in msg
        or "restricted" in msg
    ):
        return ErrorCategory.CONTENT_UNAVAILABLE, None
    if "firecrawl" in msg or "scrape" in msg or "article content" in msg:
        return ErrorCategory.ACQUISITION_FAILED, AcquisitionSubtype.SCRAPE_FAILED
    if "transcription" in msg:
        return ErrorCategory.TRANSCRIPTION_FAILED, None
    if "transcript" in msg:
        return ErrorCategory.ACQUISITION_FAILED, AcquisitionSubtype.TRANSCRIPT_FAILED
    if "metadata" in msg:
        return ErrorCategory.ACQUISITION_FAILED, AcquisitionSubtype.METADATA_FAILED
    if "audio" in msg or "rss" in msg or "podcast" in msg:
        return ErrorCategory.ACQUISITION_FAILED, AcquisitionSubtype.AUDIO_RESOLUTION_FAILED
    if "ai analysis" in msg or "analysis service" in msg or "completion" in msg:
        return ErrorCategory.AI_ANALYSIS_FAILED, None
    return ErrorCategory.UNKNOWN, None


_TYPE_LABELS = {
    "VIDEO": "video",
    "ARTICLE": "article",
    "PODCAST": "podcast",
    "DOCUMENT": "document",
    "SOCIAL_POST": "post",
    "TRANSCRIPTION": "podcast",
}


def user_friendly_message(
    content_type: str,
    category: ErrorCategory,
    subtype: AcquisitionSubtype | None = None,
) -> str:
    """Return a message that is safe to show to the end user."""
    label = _TYPE_LABELS.get(content_type.upper(), "content")

    if category is ErrorCategory.ACQUISITION_FAILED:
        if subtype is AcquisitionSubtype.TRANSCRIPT_FAILED:
            return f"We couldn't retrieve the transcript. The {label} may not have captions available."
        if subtype is AcquisitionSubtype.METADATA_FAILED:
            return f"We couldn't access this {label}'s details. It may be private or unavailable."
        if subtype is AcquisitionSubtype.AUDIO_RESOLUTION_FAILED:
            return f"We couldn't find a playable audio file for this {label}."
        return f"We couldn't extract the {label} content. It may be behind a login or paywall."

    messages = {
        ErrorCategory.TRANSCRIPTION_FAILED: (
            "Transcription failed. The audio may be too short or in an unsupported format."
        ),
        ErrorCategory.CONTENT_POLICY_VIOLATION: (
            "This content could not be processed due to our content policy."
        ),
        ErrorCategory.MUSIC_OR_NONSPEECH_CONTENT: (
            f"This {label} appears to be music or has no spoken content to analyze."
        ),
        ErrorCategory.RATE_LIMITED: (
            "Our service is temporarily busy. Please try again in a few minutes."
        ),
        ErrorCategory.TIMEOUT: "Processing took too long. Please try again.",
        ErrorCategory.CONTENT_UNAVAILABLE: (
            f"This {label} appears to be unavailable or restricted."
        ),
        ErrorCategory.AI_ANALYSIS_FAILED: (
            "Our analysis service encountered an error. Please try regenerating."
        ),
    }
    return messages.get(
        category, f"Something went wrong processing this {label}. Please try again."
    )


def failure_sentinel(
    content_type: str,
    category: ErrorCategory,
    subtype: AcquisitionSubtype | None = None,
) -> str:
    """Build the ``PROCESSING_FAILED::{TYPE}::{CATEGORY}`` marker."""
    rendered = category.value
    if category is ErrorCategory.ACQUISITION_FAILED and subtype is not None:
        rendered = f"{category.value}/{subtype.value}"
    return f"{SENTINEL_PREFIX}{content_type.upper()}::{rendered}"


def is_failure_sentinel(text: str | None) -> bool:
    """Return ``True`` if *text* is a failure marker rather than real content."""
    return bool(text) and text.startswith(SENTINEL_PREFIX)  # type: ignore[union-attr]
