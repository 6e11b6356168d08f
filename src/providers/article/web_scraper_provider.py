"""Web scraper article provider using httpx and trafilatura.

Fetches the page with httpx, extracts the main text with trafilatura and
reads title/description/image/author from the same HTML via
``trafilatura.extract_metadata``.  Selected by main.py when no Firecrawl
key is configured.
"""

from __future__ import annotations

import httpx
import structlog
import trafilatura

from src.interfaces.article_provider import ArticleContent, IArticleProvider
from src.utils.errors import AcquisitionError

logger = structlog.get_logger(logger_name=__name__)

_TIMEOUT_SECONDS = 30.0
_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; ContentLens/0.1)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


class WebScraperProvider(IArticleProvider):
    """Local article extraction: no credentials, no JavaScript rendering."""

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(_TIMEOUT_SECONDS),
            headers=_HEADERS,
            follow_redirects=True,
        )

    async def extract_content(self, url: str) -> ArticleContent | None:
        html = await self._fetch(url)
        text = trafilatura.extract(html, include_comments=False, include_tables=True)
        if not text:
            logger.warning("trafilatura_extraction_empty", url=url)
            return None

        meta = trafilatura.extract_metadata(html, default_url=url)
        logger.info("article_extracted", url=url, provider="web_scraper", text_length=len(text))
        return ArticleContent(
            title=(meta.title if meta else None) or "",
            text=text,
            description=(meta.description if meta else None) or None,
            thumbnail_url=(meta.image if meta else None) or None,
            author=(meta.author if meta else None) or None,
            url=url,
        )

    async def _fetch(self, url: str) -> str:
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise AcquisitionError(
                message=f"Timeout fetching {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise AcquisitionError(
                message=f"HTTP {exc.response.status_code} for {url}",
                provider_name=self.get_provider_name(),
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise AcquisitionError(
                message=f"HTTP error fetching {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return response.text

    def is_available(self) -> bool:
        return True

    def get_provider_name(self) -> str:
        return "web_scraper"
