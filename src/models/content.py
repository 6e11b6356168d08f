"""Domain models for content items, analysis results and their side records.

All models are Pydantic v2 with ``frozen=True``; updates produce new
instances via ``model_copy(update={...})`` and are written back through
:class:`~src.interfaces.content_store.IContentStore`.

Lifecycle overview:
    ContentItem       created on ingestion; text/metadata filled in by the
                      acquisition adapters; never deleted by the pipeline.
    AnalysisResult    one per (content_id, language); sections are merged
                      in one at a time as they finish.
    Claim             derived from the truth-check section; replaced
                      wholesale on every regeneration.
    DomainStat        per-domain counters, only ever accumulated.
    UsagePeriodCounter per-owner, per-month counters gating feature use.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class ContentType(str, Enum):  # noqa: UP042
    """The kinds of external content the pipeline can ingest."""

    VIDEO = "video"
    ARTICLE = "article"
    PODCAST = "podcast"
    DOCUMENT = "document"
    SOCIAL_POST = "social_post"


class ProcessingStatus(str, Enum):  # noqa: UP042
    """Lifecycle of an :class:`AnalysisResult`.

    Status only moves forward:
        pending → transcribing | partial → complete | refused
    A forced regeneration is the one path that resets it.
    """

    PENDING = "pending"
    TRANSCRIBING = "transcribing"
    PARTIAL = "partial"
    COMPLETE = "complete"
    REFUSED = "refused"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    def can_advance_to(self, target: ProcessingStatus) -> bool:
        """Return ``True`` if moving from this status to *target* is forward."""
        if self in (ProcessingStatus.COMPLETE, ProcessingStatus.REFUSED):
            return target is self
        return target.rank >= self.rank


_STATUS_RANK = {
    ProcessingStatus.PENDING: 0,
    ProcessingStatus.TRANSCRIBING: 1,
    ProcessingStatus.PARTIAL: 1,
    ProcessingStatus.COMPLETE: 2,
    ProcessingStatus.REFUSED: 2,
}


class ContentItem(BaseModel):
    """A piece of external content owned by one user.

    ``raw_text`` holds the acquired text, or a failure sentinel
    (``PROCESSING_FAILED::...``) when acquisition failed.  ``metadata``
    carries the type-specific structured fields (author, duration,
    view_count, like_count, upload_date, description, thumbnail_url).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    url: str
    type: ContentType
    owner: str
    raw_text: str | None = None
    title: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    analysis_language: str = "en"
    regeneration_count: int = 0
    detected_tone: str | None = None
    transcript_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class AnalysisResult(BaseModel):
    """The report for one content item in one language.

    ``sections`` maps a section type value to its stored payload (the
    ``model_dump`` of the decoded section model).
    """

    model_config = ConfigDict(frozen=True)

    content_id: str
    language: str = "en"
    status: ProcessingStatus = ProcessingStatus.PENDING
    sections: dict[str, Any] = Field(default_factory=dict)
    model_name: str | None = None
    updated_at: datetime = Field(default_factory=_utcnow)


class Claim(BaseModel):
    """A single verified (or disputed) claim extracted from a truth check."""

    model_config = ConfigDict(frozen=True)

    content_id: str
    owner: str
    text: str
    normalized_text: str
    status: str
    severity: str | None = None
    sources: list[str] = Field(default_factory=list)


class DomainStat(BaseModel):
    """Aggregate accuracy counters for one source domain."""

    model_config = ConfigDict(frozen=True)

    domain: str
    total_analyses: int = 0
    rating_counts: dict[str, int] = Field(default_factory=dict)
    quality_score_sum: float = 0.0
    quality_score_count: int = 0

    @property
    def average_quality(self) -> float | None:
        if not self.quality_score_count:
            return None
        return self.quality_score_sum / self.quality_score_count

    @property
    def questionable_count(self) -> int:
        return self.rating_counts.get("Questionable", 0) + self.rating_counts.get(
            "Unreliable", 0
        )


class UsagePeriodCounter(BaseModel):
    """Per-owner counters for one billing period (``YYYY-MM``)."""

    model_config = ConfigDict(frozen=True)

    owner: str
    period: str
    counts: dict[str, int] = Field(default_factory=dict)


class PromptDefinition(BaseModel):
    """A stored prompt template for one section (or helper) type.

    ``user_content_template`` contains ``{{PLACEHOLDER}}`` markers that the
    section generator substitutes.  ``model`` may be empty, in which case
    the provider's default model is used.
    """

    model_config = ConfigDict(frozen=True)

    prompt_type: str
    system_content: str
    user_content_template: str
    model: str = ""
    temperature: float = 0.3
    max_tokens: int = 2000
    expect_json: bool = False
    use_web_search: bool = False
    max_retries: int = 3


class AnalysisMode(str, Enum):  # noqa: UP042
    LEARN = "learn"
    APPLY = "apply"
    EVALUATE = "evaluate"
    DISCOVER = "discover"
    CREATE = "create"


class ExpertiseLevel(str, Enum):  # noqa: UP042
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    EXPERT = "expert"


class AnalysisPreferences(BaseModel):
    """Per-user knobs that tune how sections are written and scored."""

    model_config = ConfigDict(frozen=True)

    analysis_mode: AnalysisMode = AnalysisMode.APPLY
    expertise_level: ExpertiseLevel = ExpertiseLevel.INTERMEDIATE
    focus_areas: list[str] = Field(default_factory=lambda: ["takeaways", "accuracy"])
    is_active: bool = True


class ContentFlag(BaseModel):
    """A moderation flag raised against a content item."""

    model_config = ConfigDict(frozen=True)

    source: str  # url_screening | keyword_screening | profanity_screening | ai_refusal
    severity: str  # critical | high | medium
    categories: list[str] = Field(default_factory=list)
    reason: str = ""

    @property
    def blocking(self) -> bool:
        return self.severity in ("critical", "high")


class FlagRecord(BaseModel):
    """A persisted moderation flag with the evidence needed for review."""

    model_config = ConfigDict(frozen=True)

    content_id: str | None
    owner: str | None
    url: str
    content_type: str | None
    flag: ContentFlag
    content_hash: str | None = None
    text_preview: str | None = None
    status: str = "pending"
    created_at: datetime = Field(default_factory=_utcnow)
