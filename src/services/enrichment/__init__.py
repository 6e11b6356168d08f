"""Advisory, time-boxed context gathered before section generation."""

from src.services.enrichment.claim_search import ClaimSearchService, claim_budget
from src.services.enrichment.domain_credibility import (
    DomainCredibilityService,
    is_entertainment_url,
)
from src.services.enrichment.preferences import build_preference_block
from src.services.enrichment.search_cache import RequestSearchCache
from src.services.enrichment.service import EnrichmentService
from src.services.enrichment.tone import NEUTRAL_TONE, ToneDetector, ToneResult
from src.services.enrichment.web_context import WebContextBuilder, topic_count

__all__ = [
    "NEUTRAL_TONE",
    "ClaimSearchService",
    "DomainCredibilityService",
    "EnrichmentService",
    "RequestSearchCache",
    "ToneDetector",
    "ToneResult",
    "WebContextBuilder",
    "build_preference_block",
    "claim_budget",
    "is_entertainment_url",
    "topic_count",
]
