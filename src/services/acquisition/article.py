"""Article, social-post and document acquisition.

Social posts on x.com / twitter.com are tried through the fixupx and
fxtwitter mirrors first, because those render the post server-side;
the original URL is the last resort.  Documents are uploaded with their
text already extracted, so they pass through unless a fetchable URL is
all there is.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from urllib.parse import urlsplit, urlunsplit

import structlog

from src.interfaces.article_provider import ArticleContent, IArticleProvider
from src.models.content import ContentItem
from src.services.acquisition.result import (
    Acquired,
    AcquisitionResult,
    Failure,
    Ok,
    fetch_with_retry,
)
from src.utils.error_classifier import (
    AcquisitionSubtype,
    ErrorCategory,
    is_failure_sentinel,
)
from src.utils.errors import AcquisitionError, ProviderError
from src.utils.logging import get_logger

_SCRAPE_TIMEOUT = 30.0
_SCRAPE_ATTEMPTS = 4
_MIN_SOCIAL_TEXT = 20
_SOCIAL_HOSTS = frozenset({"x.com", "twitter.com", "www.x.com", "www.twitter.com"})
_SOCIAL_MIRRORS = ("fixupx.com", "fxtwitter.com")


def social_fallback_urls(url: str) -> list[str]:
    """Mirror URLs to try for an X/Twitter post, ending with *url* itself."""
    parts = urlsplit(url)
    candidates: list[str] = []
    if parts.hostname in _SOCIAL_HOSTS:
        candidates = [urlunsplit(parts._replace(netloc=mirror)) for mirror in _SOCIAL_MIRRORS]
    candidates.append(url)
    return candidates


def _to_acquired(article: ArticleContent) -> Acquired:
    return Acquired(
        text=article.text,
        title=article.title or None,
        metadata={
            "description": article.description,
            "thumbnail_url": article.thumbnail_url,
            "author": article.author,
        },
    )


class ArticleAcquirer:
    """Scrapes readable text through an :class:`IArticleProvider`."""

    def __init__(
        self,
        provider: IArticleProvider,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self._sleep = sleep
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def _scrape(self, url: str) -> ArticleContent:
        article = await fetch_with_retry(
            lambda: self._provider.extract_content(url),
            label="article scrape",
            attempts=_SCRAPE_ATTEMPTS,
            timeout=_SCRAPE_TIMEOUT,
            sleep=self._sleep,
        )
        if article is None or not article.text.strip():
            raise AcquisitionError(
                message="Article content could not be extracted",
                provider_name=self._provider.get_provider_name(),
                retryable=False,
            )
        return article

    async def acquire_article(self, url: str) -> AcquisitionResult:
        try:
            article = await self._scrape(url)
        except ProviderError as exc:
            return Failure.from_error(exc, AcquisitionSubtype.SCRAPE_FAILED)
        return Ok(_to_acquired(article))

    async def acquire_social_post(self, url: str) -> AcquisitionResult:
        for candidate in social_fallback_urls(url):
            host = urlsplit(candidate).hostname
            try:
                article = await self._scrape(candidate)
            except ProviderError as exc:
                self._logger.warning("social_source_failed", host=host, error=exc.message)
                continue
            if len(article.text) > _MIN_SOCIAL_TEXT:
                return Ok(_to_acquired(article))
            self._logger.warning("social_source_empty", host=host)

        return Failure(
            category=ErrorCategory.ACQUISITION_FAILED,
            subtype=AcquisitionSubtype.SCRAPE_FAILED,
            detail="Could not retrieve post content from any source",
        )

    async def acquire_document(self, item: ContentItem) -> AcquisitionResult:
        text = item.raw_text or ""
        if text.strip() and not is_failure_sentinel(text):
            return Ok(Acquired(text=text, title=item.title, metadata=dict(item.metadata)))
        if urlsplit(item.url).scheme in ("http", "https"):
            return await self.acquire_article(item.url)
        return Failure(
            category=ErrorCategory.ACQUISITION_FAILED,
            subtype=AcquisitionSubtype.SCRAPE_FAILED,
            detail="uploaded document has no extracted text",
        )
