"""ContentLens dependency-injection entry point.

Wires concrete providers and services into a :class:`ContentPipeline`.
Loads configuration from ``.env`` and ``config/config.yaml`` and
configures structured logging.  This module is the only place that
chooses concrete implementations; everything below it depends on the
interfaces in ``src/interfaces``.

Typical use from an entry layer::

    pipeline = await create_pipeline()
    result = await pipeline.process(ProcessRequest(content_id="abc", owner_id="u1"))
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from src.config.loader import load_config, load_prompt_definitions
from src.config.settings import Settings
from src.interfaces.article_provider import IArticleProvider
from src.interfaces.content_store import IContentStore
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.transcription_provider import ITranscriptionProvider
from src.interfaces.web_search_provider import IWebSearchProvider
from src.models.content import PromptDefinition
from src.pipeline.orchestrator import ContentPipeline, PipelineOptions
from src.pipeline.progress_tracker import StageTracker
from src.providers.article.firecrawl_provider import FirecrawlProvider
from src.providers.article.web_scraper_provider import WebScraperProvider
from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.rate_limit.redis_store import RedisRateLimitStore
from src.providers.search.duckduckgo_provider import DuckDuckGoSearchProvider
from src.providers.search.tavily_provider import TavilySearchProvider
from src.providers.store.memory_store import MemoryContentStore
from src.providers.store.sqlite_store import SQLiteContentStore
from src.providers.transcription.assemblyai_provider import AssemblyAITranscriptionProvider
from src.providers.video.supadata_provider import SupadataVideoProvider
from src.services.acquisition import (
    AcquisitionService,
    ArticleAcquirer,
    PodcastAcquirer,
    PodcastAudioResolver,
    VideoAcquirer,
)
from src.services.content_cache import CrossTenantCache
from src.services.enrichment import (
    ClaimSearchService,
    EnrichmentService,
    ToneDetector,
    WebContextBuilder,
)
from src.services.moderation import ContentModerator
from src.services.post_processing import AnalysisPostProcessor
from src.services.prompt_cache import PromptTemplateCache
from src.services.rate_limiter import RateLimiter
from src.services.section_generator import SectionGenerator
from src.services.usage import UsageAdmission
from src.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Select the LLM provider from the configured API keys.

    Priority order: OpenAI-compatible gateway -> Anthropic.
    """
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    return AnthropicLLMProvider(settings=app_settings)


def _build_search_provider(
    app_settings: Settings, http_client: httpx.AsyncClient
) -> IWebSearchProvider:
    """Tavily when a key is set, otherwise keyless DuckDuckGo."""
    if app_settings.tavily_api_key:
        return TavilySearchProvider(api_key=app_settings.tavily_api_key, http_client=http_client)
    return DuckDuckGoSearchProvider()


def _build_article_provider(
    app_settings: Settings, http_client: httpx.AsyncClient
) -> IArticleProvider:
    if app_settings.firecrawl_api_key:
        return FirecrawlProvider(api_key=app_settings.firecrawl_api_key, http_client=http_client)
    return WebScraperProvider()


def _build_transcriber(
    app_settings: Settings, http_client: httpx.AsyncClient
) -> ITranscriptionProvider | None:
    if not app_settings.assemblyai_api_key:
        return None
    return AssemblyAITranscriptionProvider(
        api_key=app_settings.assemblyai_api_key, http_client=http_client
    )


def load_prompts(path: str) -> list[PromptDefinition]:
    """Validate the raw prompt definitions in *path*."""
    return [PromptDefinition.model_validate(raw) for raw in load_prompt_definitions(path)]


def build_store(
    app_settings: Settings, prompts: list[PromptDefinition] | None = None
) -> IContentStore:
    """Return the configured content store; SQLite still needs ``initialize()``."""
    if app_settings.store_backend == "sqlite":
        return SQLiteContentStore(db_path=app_settings.sqlite_db_path, prompts=prompts)
    return MemoryContentStore(prompts=prompts)


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_pipeline(
    custom_settings: Settings | None = None,
    store: IContentStore | None = None,
    overrides: dict[str, Any] | None = None,
) -> ContentPipeline:
    """Construct every provider and service and return the pipeline.

    Parameters
    ----------
    custom_settings:
        Settings to use instead of the environment-derived defaults.
    store:
        Content store to use; built from settings when omitted.
    overrides:
        Named components (``llm``, ``search``, ``article``, ``video``,
        ``transcriber``) that replace the configured providers.
    """
    app_settings = custom_settings or Settings()
    config = load_config(settings=app_settings)
    overrides = overrides or {}
    pipeline_cfg = config.get("pipeline", {})
    cache_cfg = config.get("prompt_cache", {})
    rate_cfg = config.get("rate_limit", {})

    http_client = httpx.AsyncClient(timeout=30.0, follow_redirects=True)

    if store is None:
        store = build_store(app_settings, load_prompts(app_settings.prompts_path))

    llm: ILLMProvider = overrides.get("llm") or _build_llm_provider(app_settings)
    search = overrides.get("search") or _build_search_provider(app_settings, http_client)
    article = overrides.get("article") or _build_article_provider(app_settings, http_client)
    transcriber = overrides.get("transcriber") or _build_transcriber(app_settings, http_client)
    video = overrides.get("video")
    if video is None and app_settings.supadata_api_key:
        video = SupadataVideoProvider(api_key=app_settings.supadata_api_key, http_client=http_client)

    prompts = PromptTemplateCache(
        store,
        ttl=cache_cfg.get("ttl_seconds", 300),
        max_size=cache_cfg.get("max_size", 64),
    )

    acquisition = AcquisitionService(
        article=ArticleAcquirer(article),
        video=VideoAcquirer(video) if video is not None else None,
        podcast=(
            PodcastAcquirer(
                PodcastAudioResolver(http_client=http_client),
                transcriber,
                callback_url=app_settings.transcription_webhook_url,
            )
            if transcriber is not None
            else None
        ),
    )

    enrichment = EnrichmentService(
        store=store,
        search_provider=search,
        web_context=WebContextBuilder(llm, prompts),
        claim_search=ClaimSearchService(llm, prompts),
        tone=ToneDetector(llm, prompts),
    )

    rate_store = RedisRateLimitStore(app_settings.redis_url) if app_settings.redis_url else None

    options = PipelineOptions(
        pipeline_timeout=pipeline_cfg.get("timeout_seconds", 240.0),
        enrichment_timeout=pipeline_cfg.get("enrichment_timeout_seconds", 20.0),
        missing_credentials=tuple(app_settings.get_missing_required()),
        rate_limit_requests=rate_cfg.get("requests", 30),
        rate_limit_window_seconds=rate_cfg.get("window_seconds", 60),
    )

    pipeline = ContentPipeline(
        store=store,
        acquisition=acquisition,
        cache=CrossTenantCache(store),
        moderator=ContentModerator(
            store, check_profanity=config.get("moderation", {}).get("profanity", True)
        ),
        enrichment=enrichment,
        generator=SectionGenerator(
            llm, prompts, call_timeout=pipeline_cfg.get("ai_call_timeout_seconds", 120.0)
        ),
        post_processor=AnalysisPostProcessor(store),
        usage=UsageAdmission(store),
        tracker=StageTracker(),
        transcriber=transcriber,
        rate_limiter=RateLimiter(rate_store),
        options=options,
    )

    _logger.info(
        "pipeline_built",
        llm=llm.get_provider_name(),
        search=search.get_provider_name(),
        article=article.get_provider_name(),
        video=video.get_provider_name() if video is not None else None,
        transcription=transcriber.get_provider_name() if transcriber is not None else None,
        store=app_settings.store_backend,
        rate_limit_backend="redis" if rate_store is not None else "memory",
    )
    return pipeline


async def create_pipeline(custom_settings: Settings | None = None) -> ContentPipeline:
    """Configure logging, initialize the store and build the pipeline."""
    app_settings = custom_settings or Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )
    store = build_store(app_settings, load_prompts(app_settings.prompts_path))
    if isinstance(store, SQLiteContentStore):
        await store.initialize()
    return build_pipeline(app_settings, store=store)
