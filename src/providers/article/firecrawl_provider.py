"""Firecrawl article provider using the hosted scrape API.

Firecrawl renders JavaScript and returns clean markdown plus page
metadata, so it copes with pages the local scraper cannot read.
"""

from __future__ import annotations

import httpx
import structlog

from src.interfaces.article_provider import ArticleContent, IArticleProvider
from src.utils.errors import AcquisitionError

logger = structlog.get_logger(logger_name=__name__)

_API_URL = "https://api.firecrawl.dev/v1/scrape"
_TIMEOUT_SECONDS = 30.0


class FirecrawlProvider(IArticleProvider):
    """Article extraction backed by the Firecrawl ``/v1/scrape`` endpoint."""

    def __init__(self, api_key: str, http_client: httpx.AsyncClient | None = None) -> None:
        self._api_key = api_key
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(_TIMEOUT_SECONDS)
        )

    async def extract_content(self, url: str) -> ArticleContent | None:
        """Scrape *url* as markdown (main content only)."""
        try:
            response = await self._client.post(
                _API_URL,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={"url": url, "formats": ["markdown"], "onlyMainContent": True},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            raise AcquisitionError(
                message=f"Firecrawl scrape timed out for {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise AcquisitionError(
                message=f"Firecrawl scrape failed: HTTP {exc.response.status_code}",
                provider_name=self.get_provider_name(),
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise AcquisitionError(
                message=f"Firecrawl scrape failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except ValueError as exc:
            raise AcquisitionError(
                message="Firecrawl returned a malformed response body",
                provider_name=self.get_provider_name(),
            ) from exc

        if not body.get("success", True):
            raise AcquisitionError(
                message=f"Firecrawl scrape failed: {body.get('error', 'unknown error')}",
                provider_name=self.get_provider_name(),
            )

        data = body.get("data") or {}
        text = (data.get("markdown") or "").strip()
        if not text:
            logger.warning("firecrawl_extraction_empty", url=url)
            return None

        metadata = data.get("metadata") or {}
        logger.info("article_extracted", url=url, provider="firecrawl", text_length=len(text))
        return ArticleContent(
            title=metadata.get("title") or metadata.get("ogTitle") or "",
            text=text,
            description=metadata.get("description") or metadata.get("ogDescription"),
            thumbnail_url=metadata.get("ogImage"),
            author=metadata.get("author"),
            url=url,
        )

    def is_available(self) -> bool:
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "firecrawl"
