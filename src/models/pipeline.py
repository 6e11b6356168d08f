"""Request, result and stage models for the content-processing pipeline.

Architecture note:
    ``ProcessRequest`` is what the entry layer hands the orchestrator;
    ``ProcessResult`` is what it gets back.  Failures that the caller must
    map to an HTTP status raise
    :class:`~src.utils.errors.ProcessContentError` instead.

    ``PipelineStage`` is the state machine the orchestrator walks for one
    content item.  The stage tracker (src/pipeline/progress_tracker.py)
    records the current stage per content id.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.models.content import AnalysisPreferences


class PipelineStage(str, Enum):  # noqa: UP042
    """Stages of one pipeline run.

        PENDING → FETCHED → MODERATED → ENRICHED → GENERATED → FINALIZED

    with the terminal side exits REFUSED (moderation block), PARTIAL
    (deadline elapsed or acquisition failed) and TRANSCRIBING (waiting on
    the asynchronous transcription callback).
    """

    PENDING = "PENDING"
    FETCHED = "FETCHED"
    MODERATED = "MODERATED"
    ENRICHED = "ENRICHED"
    GENERATED = "GENERATED"
    FINALIZED = "FINALIZED"
    REFUSED = "REFUSED"
    PARTIAL = "PARTIAL"
    TRANSCRIBING = "TRANSCRIBING"


class ProcessRequest(BaseModel):
    """Input to :meth:`ContentPipeline.process`."""

    model_config = ConfigDict(frozen=True)

    content_id: str
    owner_id: str | None = None
    language: str = "en"
    force_regenerate: bool = False
    skip_acquisition: bool = False


class ProcessResult(BaseModel):
    """Outcome of one pipeline run.

    ``success`` is ``False`` only for recoverable content problems (the
    caller responds 200 with a failure flag); access and configuration
    failures raise instead.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    content_id: str
    cached: bool = False
    sections_generated: list[str] = Field(default_factory=list)
    language: str = "en"
    message: str = ""
    warnings: list[str] = Field(default_factory=list)
    transcript_id: str | None = None
    stage: PipelineStage = PipelineStage.PENDING


class EnrichmentContext(BaseModel):
    """Advisory context gathered before section generation.

    Every field has a neutral default so a failed or timed-out enrichment
    branch simply leaves its field empty.
    """

    model_config = ConfigDict(frozen=True)

    web_context: str = ""
    claim_context: str = ""
    tone_label: str = "neutral"
    tone_directive: str = (
        "The content uses a standard informational tone. "
        "Write your analysis in a clear, neutral voice."
    )
    domain_credibility: str = ""
    preference_block: str = ""
    preferences: AnalysisPreferences | None = None
    # URL -> title for every search result returned during enrichment;
    # the citation gate only keeps references found here.
    available_sources: dict[str, str] = Field(default_factory=dict)

    @property
    def has_web_context(self) -> bool:
        return bool(self.web_context or self.claim_context)

    def without_web_search(self) -> EnrichmentContext:
        """Copy used by the self-heal pass, which skips web evidence."""
        return self.model_copy(
            update={"web_context": "", "claim_context": "", "available_sources": {}}
        )
