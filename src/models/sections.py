"""Report section types and their validated payload models.

Model output is decoded (see :mod:`src.services.response_parser`) into a
tagged union keyed by ``kind``.  Decoding is fail-closed: anything that
does not validate raises :class:`~src.utils.errors.SectionDecodeError`
and never flows downstream as an untyped dict.

Section → payload model:
    brief_overview    TextSection
    triage            TriageSection
    truth_check       TruthCheckSection
    action_items      ActionItemsSection
    detailed_summary  TextSection
    auto_tags         AutoTagsSection
    (any JSON section) RefusalPayload when the model declines the content
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SectionType(str, Enum):  # noqa: UP042
    BRIEF_OVERVIEW = "brief_overview"
    TRIAGE = "triage"
    TRUTH_CHECK = "truth_check"
    ACTION_ITEMS = "action_items"
    DETAILED_SUMMARY = "detailed_summary"
    AUTO_TAGS = "auto_tags"

    @property
    def expects_json(self) -> bool:
        return self not in (SectionType.BRIEF_OVERVIEW, SectionType.DETAILED_SUMMARY)


# The three sections that get one extra retry pass when they fail.
CRITICAL_SECTIONS: tuple[SectionType, ...] = (
    SectionType.BRIEF_OVERVIEW,
    SectionType.TRIAGE,
    SectionType.DETAILED_SUMMARY,
)

# Triage categories for which truth-check and action items are discarded.
NON_INFORMATIONAL_CATEGORIES = frozenset({"music", "entertainment"})

OVERALL_RATINGS = ("Accurate", "Mostly Accurate", "Mixed", "Questionable", "Unreliable")


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class SourceLink(_Payload):
    url: str
    title: str = ""


class TextSection(_Payload):
    kind: Literal["text"] = "text"
    text: str = Field(min_length=1)


class TriageSection(_Payload):
    kind: Literal["triage"] = "triage"
    quality_score: int = Field(ge=1, le=10)
    worth_your_time: str = ""
    target_audience: list[str] = Field(default_factory=list)
    content_density: str = ""
    estimated_value: str | None = None
    # -1 marks "not applicable" for music/entertainment content.
    signal_noise_score: int = Field(default=0, ge=-1, le=3)
    content_category: str = "other"

    @field_validator("content_category")
    @classmethod
    def _lower_category(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def is_non_informational(self) -> bool:
        return self.content_category in NON_INFORMATIONAL_CATEGORIES


class TruthIssue(_Payload):
    type: str = "unverified"
    claim_or_issue: str
    assessment: str = ""
    severity: str = "medium"
    sources: list[SourceLink] = Field(default_factory=list)


class TruthClaim(_Payload):
    exact_text: str
    status: str = "unverified"
    severity: str | None = None
    sources: list[str] = Field(default_factory=list)

    @field_validator("sources", mode="before")
    @classmethod
    def _coerce_sources(cls, value: Any) -> list[str]:
        # Models return either bare URLs or {url, title} objects.
        if not isinstance(value, list):
            return []
        urls: list[str] = []
        for item in value:
            if isinstance(item, str) and item:
                urls.append(item)
            elif isinstance(item, dict) and item.get("url"):
                urls.append(str(item["url"]))
        return urls


class TruthCheckSection(_Payload):
    kind: Literal["truth_check"] = "truth_check"
    overall_rating: Literal["Accurate", "Mostly Accurate", "Mixed", "Questionable", "Unreliable"]
    issues: list[TruthIssue] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    sources_quality: str = ""
    claims: list[TruthClaim] = Field(default_factory=list)
    references: list[SourceLink] = Field(default_factory=list)


class ActionItem(_Payload):
    title: str
    description: str = ""
    priority: str | None = None
    category: str | None = None


class ActionItemsSection(_Payload):
    kind: Literal["action_items"] = "action_items"
    items: list[ActionItem] = Field(default_factory=list)


class AutoTagsSection(_Payload):
    kind: Literal["auto_tags"] = "auto_tags"
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        cleaned: list[str] = []
        for tag in value:
            if not isinstance(tag, str):
                continue
            tag = tag.lower().strip().replace("-", " ")
            if 0 < len(tag) <= 50 and tag not in cleaned:
                cleaned.append(tag)
        return cleaned[:5]


class RefusalPayload(_Payload):
    """The model declined to analyze the content."""

    kind: Literal["refusal"] = "refusal"
    reason: str = "AI refused to analyze this content"


SectionPayload = Annotated[
    Union[
        TextSection,
        TriageSection,
        TruthCheckSection,
        ActionItemsSection,
        AutoTagsSection,
        RefusalPayload,
    ],
    Field(discriminator="kind"),
]

