"""Cross-tenant reuse of prior analyses of the same URL.

When another owner already processed the same normalized URL recently,
the pipeline can skip acquisition (text-only hit) or skip everything
(full hit).  Staleness windows depend on how fast the content type
changes: posts and articles are short-lived, audio, video and documents
are effectively immutable.

    lookup()      → CacheHit(kind="full" | "text_only") or None
    clone_full()  → copies text, metadata, tags, sections and claims
    clone_text()  → copies text and metadata only

A clone that fails to write returns ``False`` so the caller falls
through to the normal pipeline.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal

import structlog

from src.interfaces.content_store import IContentStore
from src.models.content import AnalysisResult, ContentItem, ContentType, ProcessingStatus
from src.utils.errors import DatastoreError
from src.utils.logging import get_logger

STALENESS_DAYS: dict[ContentType, int] = {
    ContentType.ARTICLE: 3,
    ContentType.SOCIAL_POST: 3,
    ContentType.VIDEO: 14,
    ContentType.PODCAST: 14,
    ContentType.DOCUMENT: 30,
}
DEFAULT_STALENESS_DAYS = 7
MAX_CANDIDATES = 5

# Pseudo-URLs for uploads are private to their owner.
_PRIVATE_PREFIXES = ("pdf://", "file://", "upload://", "blob:")


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


@dataclass(frozen=True)
class CacheHit:
    """A reusable prior result.

    ``analysis`` is set only for full hits.
    """

    kind: Literal["full", "text_only"]
    source: ContentItem
    analysis: AnalysisResult | None = None


def staleness_window(content_type: ContentType) -> timedelta:
    return timedelta(days=STALENESS_DAYS.get(content_type, DEFAULT_STALENESS_DAYS))


def is_cacheable_url(url: str) -> bool:
    """Return ``False`` for upload pseudo-URLs and empty URLs."""
    lowered = url.strip().lower()
    return bool(lowered) and not lowered.startswith(_PRIVATE_PREFIXES)


class CrossTenantCache:
    """Finds and clones other owners' analyses of the same URL.

    Parameters
    ----------
    store:
        The content store queried for candidates and written on clone.
    clock:
        Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: IContentStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._clock = clock
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def lookup(self, item: ContentItem, language: str) -> CacheHit | None:
        """Return the best reusable result for *item* in *language*.

        A full hit is the newest candidate whose analysis in *language* is
        complete.  Otherwise the newest candidate gives a text-only hit.
        Store errors are logged and treated as a miss.
        """
        if not is_cacheable_url(item.url):
            return None

        newer_than = self._clock() - staleness_window(item.type)
        try:
            candidates = await self._store.find_cache_candidates(
                url=item.url,
                content_type=item.type,
                exclude_owner=item.owner,
                newer_than=newer_than,
                limit=MAX_CANDIDATES,
            )
            if not candidates:
                return None

            for candidate in candidates:
                analysis = await self._store.get_analysis(candidate.id, language)
                if analysis is not None and analysis.status is ProcessingStatus.COMPLETE:
                    self._logger.info(
                        "cache_full_hit",
                        content_id=item.id,
                        source_id=candidate.id,
                        language=language,
                    )
                    return CacheHit(kind="full", source=candidate, analysis=analysis)
        except DatastoreError as exc:
            self._logger.warning("cache_lookup_failed", content_id=item.id, error=exc.message)
            return None

        self._logger.info("cache_text_hit", content_id=item.id, source_id=candidates[0].id)
        return CacheHit(kind="text_only", source=candidates[0])

    async def clone_full(self, item: ContentItem, hit: CacheHit, language: str) -> bool:
        """Copy the cached item and its analysis onto *item*.

        Status is written last so a partially cloned item never looks
        complete.
        """
        if hit.analysis is None:
            return False
        source = hit.source
        try:
            await self._store.update_content(
                item.id,
                **self._metadata_payload(source),
                raw_text=source.raw_text,
                detected_tone=source.detected_tone,
                tags=list(source.tags),
                analysis_language=language,
            )
            await self._clone_claims(source, item)
            await self._store.upsert_analysis(
                item.id,
                language,
                sections=dict(hit.analysis.sections),
                model_name=hit.analysis.model_name,
            )
            await self._store.upsert_analysis(
                item.id, language, status=ProcessingStatus.COMPLETE
            )
        except DatastoreError as exc:
            self._logger.warning(
                "cache_clone_failed",
                content_id=item.id,
                source_id=source.id,
                error=exc.message,
            )
            return False
        return True

    async def clone_text(self, item: ContentItem, hit: CacheHit) -> ContentItem | None:
        """Copy acquired text and metadata onto *item*; ``None`` on failure."""
        source = hit.source
        try:
            return await self._store.update_content(
                item.id,
                **self._metadata_payload(source),
                raw_text=source.raw_text,
                detected_tone=source.detected_tone,
            )
        except DatastoreError as exc:
            self._logger.warning("cache_text_copy_failed", content_id=item.id, error=exc.message)
            return None

    async def _clone_claims(self, source: ContentItem, target: ContentItem) -> None:
        claims = await self._store.list_claims(source.id)
        if not claims:
            return
        await self._store.delete_claims(target.id)
        await self._store.insert_claims(
            [
                claim.model_copy(update={"content_id": target.id, "owner": target.owner})
                for claim in claims
            ]
        )

    @staticmethod
    def _metadata_payload(source: ContentItem) -> dict:
        payload: dict = {"metadata": dict(source.metadata)}
        if source.title:
            payload["title"] = source.title
        return payload
