"""Tavily web-search provider implementing IWebSearchProvider.

Tavily returns an optional synthesized answer alongside ranked results,
which makes it the preferred grounding source for section generation.
Transient failures (HTTP 429 / 5xx / network) are retried with a short
exponential backoff; any other 4xx fails immediately.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import httpx
import structlog

from src.interfaces.web_search_provider import (
    IWebSearchProvider,
    SearchResult,
    WebSearchResponse,
)
from src.utils.errors import SearchError

logger = structlog.get_logger(logger_name=__name__)

_API_URL = "https://api.tavily.com/search"
_TIMEOUT_SECONDS = 15.0
_MAX_RETRIES = 2
_MAX_CONTENT_CHARS = 500


class TavilySearchProvider(IWebSearchProvider):
    """Web search backed by the Tavily API.

    Parameters
    ----------
    api_key:
        Tavily API key.
    http_client:
        Optional shared ``httpx.AsyncClient``; one is created if omitted.
    sleep:
        Awaitable sleep used between retries (injected by tests).
    """

    def __init__(
        self,
        api_key: str,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._api_key = api_key
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(_TIMEOUT_SECONDS)
        )
        self._sleep = sleep

    async def search(self, query: str, max_results: int = 3) -> WebSearchResponse:
        """POST *query* to Tavily, retrying transient failures."""
        payload = {
            "api_key": self._api_key,
            "query": query,
            "search_depth": "basic",
            "include_answer": True,
            "max_results": max_results,
        }

        last_error: SearchError | None = None
        for attempt in range(_MAX_RETRIES + 1):
            try:
                response = await self._client.post(_API_URL, json=payload)
                response.raise_for_status()
                return self._parse(query, response.json())
            except httpx.HTTPStatusError as exc:
                last_error = SearchError(
                    message=f"Tavily returned HTTP {exc.response.status_code}",
                    provider_name=self.get_provider_name(),
                    status_code=exc.response.status_code,
                )
            except httpx.HTTPError as exc:
                last_error = SearchError(
                    message=f"Tavily request failed: {exc}",
                    provider_name=self.get_provider_name(),
                )
            except ValueError as exc:
                raise SearchError(
                    message="Tavily returned a malformed response body",
                    provider_name=self.get_provider_name(),
                ) from exc

            if not last_error.retryable or attempt == _MAX_RETRIES:
                break
            delay = min(2.0**attempt, 4.0)
            logger.warning(
                "tavily_search_retry",
                query=query,
                attempt=attempt + 1,
                delay=delay,
                error=last_error.message,
            )
            await self._sleep(delay)

        assert last_error is not None
        raise last_error

    @staticmethod
    def _parse(query: str, body: dict) -> WebSearchResponse:
        results = [
            SearchResult(
                title=item.get("title") or "",
                url=item.get("url") or "",
                snippet=(item.get("content") or "")[:_MAX_CONTENT_CHARS],
            )
            for item in body.get("results") or []
            if item.get("url")
        ]
        logger.debug("tavily_search_complete", query=query, result_count=len(results))
        return WebSearchResponse(query=query, answer=body.get("answer") or None, results=results)

    def get_provider_name(self) -> str:
        return "tavily"

    def is_available(self) -> bool:
        return bool(self._api_key)
