"""Side records derived from a finished analysis: claims and domain stats.

Both are best-effort.  A failure here is logged and never fails the run,
because the report sections are already persisted.
"""

from __future__ import annotations

import structlog

from src.interfaces.content_store import IContentStore
from src.models.content import Claim, ContentItem
from src.models.sections import TriageSection, TruthCheckSection
from src.utils.errors import DatastoreError
from src.utils.logging import get_logger
from src.utils.text_normalizer import extract_domain, normalize_claim_text


def claims_from_truth_check(item: ContentItem, truth_check: TruthCheckSection) -> list[Claim]:
    """Build claim rows from the section's claims, then from its issues.

    An issue's type becomes the claim status and its source URLs the
    claim sources.
    """
    rows: list[Claim] = []
    for claim in truth_check.claims:
        if not claim.exact_text:
            continue
        rows.append(
            Claim(
                content_id=item.id,
                owner=item.owner,
                text=claim.exact_text,
                normalized_text=normalize_claim_text(claim.exact_text),
                status=claim.status,
                severity=claim.severity,
                sources=list(claim.sources),
            )
        )
    for issue in truth_check.issues:
        if not issue.claim_or_issue:
            continue
        rows.append(
            Claim(
                content_id=item.id,
                owner=item.owner,
                text=issue.claim_or_issue,
                normalized_text=normalize_claim_text(issue.claim_or_issue),
                status=issue.type,
                severity=issue.severity,
                sources=[source.url for source in issue.sources],
            )
        )
    return rows


class AnalysisPostProcessor:
    """Writes claims and domain statistics for a completed analysis."""

    def __init__(self, store: IContentStore) -> None:
        self._store = store
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def replace_claims(self, item: ContentItem, truth_check: TruthCheckSection) -> int:
        """Delete the item's claims and insert fresh ones; returns the count inserted."""
        rows = claims_from_truth_check(item, truth_check)
        try:
            await self._store.delete_claims(item.id)
            if rows:
                await self._store.insert_claims(rows)
        except DatastoreError as exc:
            self._logger.warning("claims_persist_failed", content_id=item.id, error=exc.message)
            return 0
        return len(rows)

    async def record_domain_stats(
        self,
        url: str,
        triage: TriageSection | None,
        truth_check: TruthCheckSection | None = None,
    ) -> None:
        """Add one analysis outcome to the URL's domain counters."""
        domain = extract_domain(url)
        if not domain or triage is None:
            return
        try:
            await self._store.record_domain_analysis(
                domain,
                rating=truth_check.overall_rating if truth_check else None,
                quality_score=float(triage.quality_score),
            )
        except DatastoreError as exc:
            self._logger.warning("domain_stats_failed", domain=domain, error=exc.message)
