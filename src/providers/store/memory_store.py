"""In-memory content store.

Backs the pipeline in development and in the integration tests.  Every
method body runs without an ``await`` between read and write, so on a
single event loop each operation is atomic, including
:meth:`increment_usage_if_allowed`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog

from src.interfaces.content_store import IContentStore
from src.models.content import (
    AnalysisPreferences,
    AnalysisResult,
    Claim,
    ContentItem,
    ContentType,
    DomainStat,
    FlagRecord,
    ProcessingStatus,
    PromptDefinition,
)
from src.utils.error_classifier import is_failure_sentinel
from src.utils.errors import DatastoreError

logger = structlog.get_logger(logger_name=__name__)


class MemoryContentStore(IContentStore):
    """Dictionary-backed :class:`IContentStore`.

    Parameters
    ----------
    prompts:
        Prompt definitions to seed, usually loaded from
        ``config/prompts.yaml``.
    """

    def __init__(self, prompts: list[PromptDefinition] | None = None) -> None:
        self._content: dict[str, ContentItem] = {}
        self._analyses: dict[tuple[str, str], AnalysisResult] = {}
        self._claims: dict[str, list[Claim]] = {}
        self._domains: dict[str, DomainStat] = {}
        self._prompts: dict[str, PromptDefinition] = {p.prompt_type: p for p in prompts or []}
        self._preferences: dict[str, AnalysisPreferences] = {}
        self._tiers: dict[str, str] = {}
        self._usage: dict[tuple[str, str, str], int] = {}
        self._flags: list[FlagRecord] = []

    # ------------------------------------------------------------------
    # Seeding helpers (not part of IContentStore)
    # ------------------------------------------------------------------

    def set_prompt(self, prompt: PromptDefinition) -> None:
        self._prompts[prompt.prompt_type] = prompt

    def set_user_preferences(self, owner: str, preferences: AnalysisPreferences) -> None:
        self._preferences[owner] = preferences

    def set_user_tier(self, owner: str, tier: str) -> None:
        self._tiers[owner] = tier

    @property
    def flags(self) -> list[FlagRecord]:
        return list(self._flags)

    # ------------------------------------------------------------------
    # Content items
    # ------------------------------------------------------------------

    async def save_content(self, item: ContentItem) -> ContentItem:
        self._content[item.id] = item
        return item

    async def get_content(self, content_id: str) -> ContentItem | None:
        return self._content.get(content_id)

    async def update_content(self, content_id: str, **fields: Any) -> ContentItem:
        current = self._content.get(content_id)
        if current is None:
            raise DatastoreError(
                message=f"Content {content_id} not found",
                provider_name=self.get_provider_name(),
            )
        updated = current.model_copy(update=fields)
        self._content[content_id] = updated
        return updated

    async def find_content_by_transcript_id(self, transcript_id: str) -> ContentItem | None:
        for item in self._content.values():
            if item.transcript_id == transcript_id:
                return item
        return None

    async def find_cache_candidates(
        self,
        url: str,
        content_type: ContentType,
        exclude_owner: str,
        newer_than: datetime,
        limit: int = 5,
    ) -> list[ContentItem]:
        matches = [
            item
            for item in self._content.values()
            if item.url == url
            and item.type == content_type
            and item.owner != exclude_owner
            and item.created_at > newer_than
            and item.raw_text
            and not is_failure_sentinel(item.raw_text)
        ]
        matches.sort(key=lambda item: item.created_at, reverse=True)
        return matches[:limit]

    # ------------------------------------------------------------------
    # Analysis results
    # ------------------------------------------------------------------

    async def get_analysis(self, content_id: str, language: str) -> AnalysisResult | None:
        return self._analyses.get((content_id, language))

    async def upsert_analysis(
        self,
        content_id: str,
        language: str,
        sections: dict[str, Any] | None = None,
        status: ProcessingStatus | None = None,
        model_name: str | None = None,
        reset: bool = False,
    ) -> AnalysisResult:
        key = (content_id, language)
        current = self._analyses.get(key) or AnalysisResult(
            content_id=content_id, language=language
        )

        update: dict[str, Any] = {"updated_at": datetime.now(tz=timezone.utc)}  # noqa: UP017
        if sections:
            update["sections"] = {**current.sections, **sections}
        if status is not None:
            if reset or current.status.can_advance_to(status):
                update["status"] = status
            else:
                logger.debug(
                    "status_regression_ignored",
                    content_id=content_id,
                    current=current.status.value,
                    requested=status.value,
                )
        if model_name:
            update["model_name"] = model_name

        result = current.model_copy(update=update)
        self._analyses[key] = result
        return result

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    async def delete_claims(self, content_id: str) -> None:
        self._claims.pop(content_id, None)

    async def insert_claims(self, claims: list[Claim]) -> None:
        for claim in claims:
            self._claims.setdefault(claim.content_id, []).append(claim)

    async def list_claims(self, content_id: str) -> list[Claim]:
        return list(self._claims.get(content_id, []))

    # ------------------------------------------------------------------
    # Domain statistics
    # ------------------------------------------------------------------

    async def get_domain_stat(self, domain: str) -> DomainStat | None:
        return self._domains.get(domain)

    async def record_domain_analysis(
        self,
        domain: str,
        rating: str | None = None,
        quality_score: float | None = None,
    ) -> DomainStat:
        current = self._domains.get(domain) or DomainStat(domain=domain)
        counts = dict(current.rating_counts)
        if rating:
            counts[rating] = counts.get(rating, 0) + 1
        updated = current.model_copy(
            update={
                "total_analyses": current.total_analyses + 1,
                "rating_counts": counts,
                "quality_score_sum": current.quality_score_sum + (quality_score or 0.0),
                "quality_score_count": current.quality_score_count
                + (1 if quality_score is not None else 0),
            }
        )
        self._domains[domain] = updated
        return updated

    # ------------------------------------------------------------------
    # Prompts / users
    # ------------------------------------------------------------------

    async def get_prompt(self, prompt_type: str) -> PromptDefinition | None:
        return self._prompts.get(prompt_type)

    async def get_user_preferences(self, owner: str) -> AnalysisPreferences | None:
        return self._preferences.get(owner)

    async def get_user_tier(self, owner: str) -> str | None:
        return self._tiers.get(owner)

    # ------------------------------------------------------------------
    # Usage counters
    # ------------------------------------------------------------------

    async def increment_usage_if_allowed(
        self, owner: str, period: str, field: str, limit: int
    ) -> int:
        key = (owner, period, field)
        current = self._usage.get(key, 0)
        if current >= limit:
            return -1
        self._usage[key] = current + 1
        return current + 1

    async def get_usage_count(self, owner: str, period: str, field: str) -> int:
        return self._usage.get((owner, period, field), 0)

    async def increment_usage(self, owner: str, period: str, field: str) -> int:
        key = (owner, period, field)
        self._usage[key] = self._usage.get(key, 0) + 1
        return self._usage[key]

    # ------------------------------------------------------------------
    # Moderation
    # ------------------------------------------------------------------

    async def record_flag(self, record: FlagRecord) -> None:
        self._flags.append(record)
        logger.info(
            "content_flag_recorded",
            content_id=record.content_id,
            severity=record.flag.severity,
            categories=record.flag.categories,
        )

    def get_provider_name(self) -> str:
        return "memory"
