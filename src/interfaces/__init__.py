"""Public interface definitions for all external service providers.

Every external API or service in the ContentLens pipeline is accessed
exclusively through the abstract base classes defined in this package.
Concrete adapters implement these interfaces and are injected at
construction time by ``src/main.py``.

ADAPTER PATTERN:
    Business logic calls ``llm_provider.complete(...)`` where
    ``llm_provider`` is any object implementing ``ILLMProvider``, instead
    of calling a vendor SDK directly.  Swapping vendors means changing one
    factory in main.py, and unit tests inject mocks built with
    ``MagicMock(spec=ILLMProvider)``.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────────
    ILLMProvider               →  OpenAILLMProvider, AnthropicLLMProvider
    IWebSearchProvider         →  TavilySearchProvider, DuckDuckGoSearchProvider
    IArticleProvider           →  FirecrawlProvider, WebScraperProvider
    IVideoProvider             →  SupadataVideoProvider
    ITranscriptionProvider     →  AssemblyAITranscriptionProvider
    IContentStore              →  MemoryContentStore, SQLiteContentStore
    IRateLimitStore            →  RedisRateLimitStore
"""

from src.interfaces.article_provider import ArticleContent, IArticleProvider
from src.interfaces.content_store import IContentStore
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.rate_limit_store import IRateLimitStore
from src.interfaces.transcription_provider import (
    ITranscriptionProvider,
    TranscriptionResult,
    Utterance,
)
from src.interfaces.video_provider import IVideoProvider, TranscriptChunk, VideoMetadata
from src.interfaces.web_search_provider import IWebSearchProvider, SearchResult, WebSearchResponse

__all__ = [
    "ArticleContent",
    "IArticleProvider",
    "IContentStore",
    "ILLMProvider",
    "IRateLimitStore",
    "ITranscriptionProvider",
    "IVideoProvider",
    "IWebSearchProvider",
    "SearchResult",
    "TranscriptChunk",
    "TranscriptionResult",
    "Utterance",
    "VideoMetadata",
    "WebSearchResponse",
]
