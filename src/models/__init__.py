"""ContentLens domain models, re-exported for convenience.

Other parts of the codebase can import from ``src.models`` directly
(e.g. ``from src.models import ContentItem``).

The models are organized across three submodules by domain concern:
    - content.py   — Content items, analysis results, claims, domain
                     stats, usage counters, prompt definitions, flags
    - sections.py  — Section types and the validated payload union
    - pipeline.py  — Pipeline request/result, stages, enrichment context
"""

from __future__ import annotations

from src.models.content import (
    AnalysisMode,
    AnalysisPreferences,
    AnalysisResult,
    Claim,
    ContentFlag,
    ContentItem,
    ContentType,
    DomainStat,
    ExpertiseLevel,
    FlagRecord,
    ProcessingStatus,
    PromptDefinition,
    UsagePeriodCounter,
)
from src.models.pipeline import (
    EnrichmentContext,
    PipelineStage,
    ProcessRequest,
    ProcessResult,
)
from src.models.sections import (
    CRITICAL_SECTIONS,
    ActionItem,
    ActionItemsSection,
    AutoTagsSection,
    RefusalPayload,
    SectionType,
    SourceLink,
    TextSection,
    TriageSection,
    TruthCheckSection,
    TruthClaim,
    TruthIssue,
)

__all__ = [
    "CRITICAL_SECTIONS",
    "ActionItem",
    "ActionItemsSection",
    "AnalysisMode",
    "AnalysisPreferences",
    "AnalysisResult",
    "AutoTagsSection",
    "Claim",
    "ContentFlag",
    "ContentItem",
    "ContentType",
    "DomainStat",
    "EnrichmentContext",
    "ExpertiseLevel",
    "FlagRecord",
    "PipelineStage",
    "ProcessRequest",
    "ProcessResult",
    "ProcessingStatus",
    "PromptDefinition",
    "RefusalPayload",
    "SectionType",
    "SourceLink",
    "TextSection",
    "TriageSection",
    "TruthCheckSection",
    "TruthClaim",
    "TruthIssue",
    "UsagePeriodCounter",
]
