"""DuckDuckGo web-search provider implementing IWebSearchProvider.

Keyless fallback used when no Tavily key is configured.  DuckDuckGo has
no synthesized answer, so responses only carry ranked results.  The
library's ``DDGS`` client is synchronous and runs via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio

import structlog
from duckduckgo_search import DDGS

from src.interfaces.web_search_provider import (
    IWebSearchProvider,
    SearchResult,
    WebSearchResponse,
)
from src.utils.errors import SearchError

logger = structlog.get_logger(logger_name=__name__)


class DuckDuckGoSearchProvider(IWebSearchProvider):
    """DuckDuckGo web-search provider (free, no API key)."""

    def __init__(self) -> None:
        logger.info("duckduckgo_provider_initialized")

    async def search(self, query: str, max_results: int = 3) -> WebSearchResponse:
        """Execute a DuckDuckGo text search."""
        try:
            raw_results = await asyncio.to_thread(self._sync_search, query, max_results)
        except Exception as exc:  # noqa: BLE001
            raise SearchError(
                message=f"DuckDuckGo search failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        results = [
            SearchResult(
                title=item.get("title", ""),
                url=item.get("href", item.get("url", "")),
                snippet=item.get("body") or "",
            )
            for item in raw_results or []
        ]
        logger.debug("duckduckgo_search_complete", query=query, result_count=len(results))
        return WebSearchResponse(query=query, results=[r for r in results if r.url])

    @staticmethod
    def _sync_search(query: str, max_results: int) -> list[dict]:
        """Run the synchronous DDGS search (called via to_thread)."""
        with DDGS() as ddgs:
            return list(ddgs.text(query, max_results=max_results))

    def get_provider_name(self) -> str:
        return "duckduckgo"

    def is_available(self) -> bool:
        """DuckDuckGo is always available (no API key required)."""
        return True
