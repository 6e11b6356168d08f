"""Article extraction providers.

Two implementations of IArticleProvider:
    1. FirecrawlProvider  — hosted scraper that renders JavaScript and
       returns markdown.  Preferred when FIRECRAWL_API_KEY is set.
    2. WebScraperProvider — local httpx + trafilatura extraction, always
       available.
"""

from src.providers.article.firecrawl_provider import FirecrawlProvider
from src.providers.article.web_scraper_provider import WebScraperProvider

__all__ = ["FirecrawlProvider", "WebScraperProvider"]
