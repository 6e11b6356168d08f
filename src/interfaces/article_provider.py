"""Abstract base class for article-extraction service providers.

Defines the contract for turning a web page URL into readable text.
Implementations wrap the Firecrawl scrape API or a local httpx +
trafilatura scraper.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ArticleContent:
    """Extracted content from a web page.

    Attributes
    ----------
    title:
        The article's headline or page title.
    text:
        The main body text (markdown or plain text).
    description:
        The page's meta description, if any.
    thumbnail_url:
        The page's preview image (og:image), if any.
    author:
        The article author if identifiable.
    url:
        The source URL the content was extracted from.
    """

    title: str
    text: str
    description: str | None = None
    thumbnail_url: str | None = None
    author: str | None = None
    url: str = ""


class IArticleProvider(ABC):
    """Contract for services that extract readable content from web URLs."""

    @abstractmethod
    async def extract_content(self, url: str) -> ArticleContent | None:
        """Fetch and extract readable content from *url*.

        Parameters
        ----------
        url:
            The web page URL to extract content from.

        Returns
        -------
        ArticleContent or None
            The extracted content, or ``None`` if the page had no
            extractable text.

        Raises
        ------
        src.utils.errors.AcquisitionError
            If the fetch fails.  ``status_code`` is set for HTTP errors so
            the caller can stop retrying on 4xx.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
