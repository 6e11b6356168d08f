"""Request-scoped web-search cache.

One instance lives for exactly one pipeline run and is discarded with
it, so search results never leak between owners.  Overlapping queries
from topic search and claim search ("EU AI act 2024" vs "eu ai act
2024?") collapse to a single vendor call, including when both branches
ask at the same time: the second caller awaits the first one's
in-flight task.
"""

from __future__ import annotations

import asyncio

import structlog

from src.interfaces.web_search_provider import IWebSearchProvider, WebSearchResponse
from src.utils.errors import SearchError
from src.utils.logging import get_logger
from src.utils.text_normalizer import normalize_query


class RequestSearchCache:
    """Memoizes :meth:`IWebSearchProvider.search` for one pipeline run."""

    def __init__(self, provider: IWebSearchProvider, max_results: int = 3) -> None:
        self._provider = provider
        self._max_results = max_results
        self._entries: dict[str, asyncio.Task[WebSearchResponse | None]] = {}
        self.api_calls = 0
        self.cache_hits = 0
        self._logger: structlog.BoundLogger = get_logger(__name__)

    def __contains__(self, query: str) -> bool:
        return normalize_query(query) in self._entries

    async def search(self, query: str) -> WebSearchResponse | None:
        """Return the response for *query*, calling the provider at most once.

        Failed searches are cached as ``None`` so a failing query is not
        retried within the same run.  A caller cancelled by its deadline
        does not cancel the shared lookup other callers are waiting on.
        """
        key = normalize_query(query)
        task = self._entries.get(key)
        if task is None:
            self.api_calls += 1
            task = asyncio.ensure_future(self._fetch(query))
            self._entries[key] = task
        else:
            self.cache_hits += 1
        return await asyncio.shield(task)

    async def _fetch(self, query: str) -> WebSearchResponse | None:
        try:
            return await self._provider.search(query, max_results=self._max_results)
        except SearchError as exc:
            self._logger.warning("web_search_failed", query=query, error=exc.message)
            return None
