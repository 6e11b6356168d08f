"""Web-search provider implementations.

TavilySearchProvider is preferred (answer + results); DuckDuckGoSearchProvider
is the keyless fallback selected by main.py when no Tavily key is set.
"""

from src.providers.search.duckduckgo_provider import DuckDuckGoSearchProvider
from src.providers.search.tavily_provider import TavilySearchProvider

__all__ = ["DuckDuckGoSearchProvider", "TavilySearchProvider"]
