"""Abstract base class for web-search service providers.

Defines the contract for the live web searches that ground section
generation: topic searches for general context and targeted searches for
individual claims.  Implementations wrap Tavily (answer + results) or
DuckDuckGo (results only).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SearchResult:
    """A single web-search result.

    Attributes
    ----------
    title:
        The page title as returned by the search engine.
    url:
        The canonical URL of the result page.
    snippet:
        A text excerpt from the result page, possibly empty.
    """

    title: str
    url: str
    snippet: str = ""


@dataclass(frozen=True)
class WebSearchResponse:
    """Response for one query: an optional synthesized answer plus ranked results."""

    query: str
    answer: str | None = None
    results: list[SearchResult] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.results and not self.answer


# Concrete implementations: TavilySearchProvider, DuckDuckGoSearchProvider
# (src/providers/search/)
class IWebSearchProvider(ABC):
    """Contract for web-search services used during enrichment."""

    @abstractmethod
    async def search(self, query: str, max_results: int = 3) -> WebSearchResponse:
        """Execute a web search and return the top results.

        Parameters
        ----------
        query:
            The search query string.
        max_results:
            Maximum number of results to return.

        Returns
        -------
        WebSearchResponse
            The synthesized answer (if the provider offers one) and zero
            or more results ordered by relevance.

        Raises
        ------
        src.utils.errors.SearchError
            If the search API call fails after the provider's own retries.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this search provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
