"""Abstract base class for the relational datastore behind the pipeline.

The pipeline only needs a narrow, column-projected slice of the database:
point lookups by id, upsert-on-conflict keyed by ``(content_id,
language)``, delete-by-parent for claims, and an atomic
increment-with-ceiling for usage counters.  Schema and migrations are
owned elsewhere; implementations create their tables if missing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

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


# Concrete implementations: MemoryContentStore, SQLiteContentStore
# (src/providers/store/)
class IContentStore(ABC):
    """Contract for persistence used by the content pipeline."""

    # ------------------------------------------------------------------
    # Content items
    # ------------------------------------------------------------------

    @abstractmethod
    async def save_content(self, item: ContentItem) -> ContentItem:
        """Insert or replace a content item (used on ingestion)."""

    @abstractmethod
    async def get_content(self, content_id: str) -> ContentItem | None:
        """Return the content item with *content_id*, or ``None``."""

    @abstractmethod
    async def update_content(self, content_id: str, **fields: Any) -> ContentItem:
        """Update the given columns of a content item and return it.

        Raises
        ------
        src.utils.errors.DatastoreError
            If the item does not exist or the write fails.
        """

    @abstractmethod
    async def find_content_by_transcript_id(self, transcript_id: str) -> ContentItem | None:
        """Return the content item awaiting transcription job *transcript_id*."""

    @abstractmethod
    async def find_cache_candidates(
        self,
        url: str,
        content_type: ContentType,
        exclude_owner: str,
        newer_than: datetime,
        limit: int = 5,
    ) -> list[ContentItem]:
        """Return other owners' items for *url* with usable text, newest first.

        Only rows created strictly after *newer_than* whose text is
        non-empty and not a failure sentinel qualify.
        """

    # ------------------------------------------------------------------
    # Analysis results
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_analysis(self, content_id: str, language: str) -> AnalysisResult | None:
        """Return the analysis for ``(content_id, language)``, or ``None``."""

    @abstractmethod
    async def upsert_analysis(
        self,
        content_id: str,
        language: str,
        sections: dict[str, Any] | None = None,
        status: ProcessingStatus | None = None,
        model_name: str | None = None,
        reset: bool = False,
    ) -> AnalysisResult:
        """Create or update the analysis row for ``(content_id, language)``.

        *sections* are merged into the stored sections (section-level
        upsert).  A *status* that would move backwards is ignored unless
        *reset* is set, in which case the status is written as given.
        """

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    @abstractmethod
    async def delete_claims(self, content_id: str) -> None:
        """Delete every claim belonging to *content_id*."""

    @abstractmethod
    async def insert_claims(self, claims: list[Claim]) -> None:
        """Insert *claims*."""

    @abstractmethod
    async def list_claims(self, content_id: str) -> list[Claim]:
        """Return the claims belonging to *content_id*."""

    # ------------------------------------------------------------------
    # Domain statistics
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_domain_stat(self, domain: str) -> DomainStat | None:
        """Return the accumulated statistics for *domain*, or ``None``."""

    @abstractmethod
    async def record_domain_analysis(
        self,
        domain: str,
        rating: str | None = None,
        quality_score: float | None = None,
    ) -> DomainStat:
        """Atomically add one analysis outcome to *domain*'s counters."""

    # ------------------------------------------------------------------
    # Prompts / users
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_prompt(self, prompt_type: str) -> PromptDefinition | None:
        """Return the active prompt definition for *prompt_type*."""

    @abstractmethod
    async def get_user_preferences(self, owner: str) -> AnalysisPreferences | None:
        """Return *owner*'s analysis preferences, or ``None``."""

    @abstractmethod
    async def get_user_tier(self, owner: str) -> str | None:
        """Return *owner*'s subscription tier string, or ``None``."""

    # ------------------------------------------------------------------
    # Usage counters
    # ------------------------------------------------------------------

    @abstractmethod
    async def increment_usage_if_allowed(
        self, owner: str, period: str, field: str, limit: int
    ) -> int:
        """Atomically increment a usage counter unless it is at *limit*.

        Returns
        -------
        int
            The new count, or ``-1`` if the counter was already at the limit.

        Raises
        ------
        NotImplementedError
            If the backend has no atomic increment; callers fall back to
            :meth:`get_usage_count` + :meth:`increment_usage`.
        """

    @abstractmethod
    async def get_usage_count(self, owner: str, period: str, field: str) -> int:
        """Return the current value of a usage counter (0 if absent)."""

    @abstractmethod
    async def increment_usage(self, owner: str, period: str, field: str) -> int:
        """Increment a usage counter unconditionally and return the new value."""

    # ------------------------------------------------------------------
    # Moderation
    # ------------------------------------------------------------------

    @abstractmethod
    async def record_flag(self, record: FlagRecord) -> None:
        """Persist a moderation flag for later review."""
