"""Runs every enrichment branch concurrently under one shared deadline.

Branches (each independently optional):

    web          topic search context             → web_context
    claims       targeted claim verification      → claim_context
    tone         tone label + writing directive   → tone_label / tone_directive
    preferences  owner's analysis preferences     → preference_block
    domain       source-domain credibility        → domain_credibility

A branch that fails or misses the deadline contributes its neutral
default; the phase itself never fails.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.interfaces.content_store import IContentStore
from src.interfaces.web_search_provider import IWebSearchProvider, WebSearchResponse
from src.models.content import AnalysisPreferences, ContentItem
from src.models.pipeline import EnrichmentContext
from src.services.enrichment.claim_search import ClaimSearchContext, ClaimSearchService
from src.services.enrichment.domain_credibility import (
    DomainCredibilityService,
    is_entertainment_url,
)
from src.services.enrichment.preferences import build_preference_block
from src.services.enrichment.search_cache import RequestSearchCache
from src.services.enrichment.tone import NEUTRAL_TONE, ToneDetector, ToneResult
from src.services.enrichment.web_context import WebContextBuilder, WebSearchContext
from src.utils.concurrency import race_with_deadline
from src.utils.errors import DatastoreError
from src.utils.logging import get_logger

WEB_CONTEXT_INPUT_CHARS = 10_000
CLAIM_INPUT_CHARS = 15_000


def collect_sources(searches: list[WebSearchResponse]) -> dict[str, str]:
    """URL → title for every result that has both."""
    sources: dict[str, str] = {}
    for search in searches:
        for result in search.results:
            if result.url and result.title:
                sources.setdefault(result.url, result.title)
    return sources


class EnrichmentService:
    """Gathers advisory context before section generation.

    Parameters
    ----------
    store:
        Used for preference and domain-statistics lookups.
    search_provider:
        ``None`` disables both search branches.
    web_context, claim_search, tone:
        The LLM-backed enrichment helpers.
    """

    def __init__(
        self,
        store: IContentStore,
        search_provider: IWebSearchProvider | None,
        web_context: WebContextBuilder,
        claim_search: ClaimSearchService,
        tone: ToneDetector,
    ) -> None:
        self._store = store
        self._search_provider = search_provider
        self._web_context = web_context
        self._claim_search = claim_search
        self._tone = tone
        self._domain = DomainCredibilityService(store)
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def enrich(
        self,
        item: ContentItem,
        text: str,
        timeout: float,
        web_search: bool = True,
    ) -> EnrichmentContext:
        """Return the enrichment context for *item*'s acquired *text*.

        A fresh :class:`RequestSearchCache` is created per call and
        dropped on return.
        """
        branches: dict[str, Any] = {
            "tone": self._tone.detect(text, item.title, item.type.value),
            "preferences": self._load_preferences(item.owner),
            "domain": self._domain.warning_for(item.url),
        }
        if web_search and self._search_provider is not None:
            cache = RequestSearchCache(self._search_provider)
            branches["web"] = self._web_context.build(text[:WEB_CONTEXT_INPUT_CHARS], cache)
            if not is_entertainment_url(item.url):
                branches["claims"] = self._claim_search.build(text[:CLAIM_INPUT_CHARS], cache)

        defaults: dict[str, Any] = {
            "web": None,
            "claims": None,
            "tone": NEUTRAL_TONE,
            "preferences": None,
            "domain": "",
        }
        resolved = await race_with_deadline(branches, defaults, timeout=timeout)

        web: WebSearchContext | None = resolved.get("web")
        claims: ClaimSearchContext | None = resolved.get("claims")
        tone: ToneResult = resolved.get("tone") or NEUTRAL_TONE
        preferences: AnalysisPreferences | None = resolved.get("preferences")

        searches: list[WebSearchResponse] = []
        if web is not None:
            searches.extend(web.searches)
        if claims is not None:
            searches.extend(claims.searches)

        context = EnrichmentContext(
            web_context=web.formatted if web else "",
            claim_context=claims.formatted if claims else "",
            tone_label=tone.label,
            tone_directive=tone.directive,
            domain_credibility=resolved.get("domain") or "",
            preference_block=build_preference_block(preferences),
            preferences=preferences,
            available_sources=collect_sources(searches),
        )
        self._logger.info(
            "enrichment_complete",
            content_id=item.id,
            web_context=bool(context.web_context),
            claim_context=bool(context.claim_context),
            tone=context.tone_label,
            sources=len(context.available_sources),
        )
        return context

    async def _load_preferences(self, owner: str) -> AnalysisPreferences | None:
        try:
            return await self._store.get_user_preferences(owner)
        except DatastoreError as exc:
            self._logger.warning("preferences_lookup_failed", error=exc.message)
            return None
