"""General web-search context for section prompts.

The model first picks the key topics of the content (``keyword_extraction``
prompt), then each topic is searched once through the request-scoped
cache.  The results are rendered as a markdown block that the overview,
triage, summary and truth-check prompts receive as ``{{WEB_CONTEXT}}``.

Topic count scales with text length: a tweet gets one search, a short
article two, anything longer three.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import structlog

from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.web_search_provider import WebSearchResponse
from src.services.enrichment.base import complete_json, fill_template
from src.services.enrichment.search_cache import RequestSearchCache
from src.services.prompt_cache import PromptTemplateCache
from src.services.prompt_safety import sanitize_for_prompt, wrap_user_content
from src.utils.concurrency import throttled_gather
from src.utils.errors import LLMError, ResponseParseError
from src.utils.logging import get_logger
from src.utils.text_normalizer import normalize_query

TOPIC_EXTRACTION_TIMEOUT_SECONDS = 10.0
_TOPIC_INPUT_CHARS = 5000


@dataclass(frozen=True)
class WebSearchContext:
    searches: list[WebSearchResponse] = field(default_factory=list)
    formatted: str = ""


def topic_count(text: str) -> int:
    if len(text) < 500:
        return 1
    if len(text) < 2000:
        return 2
    return 3


def dedupe_topics(topics: list[str]) -> list[str]:
    """Drop topics whose normalized query was already seen, keeping order."""
    seen: set[str] = set()
    unique: list[str] = []
    for topic in topics:
        key = normalize_query(topic)
        if key not in seen:
            seen.add(key)
            unique.append(topic)
    return unique


def format_web_context(searches: list[WebSearchResponse]) -> str:
    lines = [
        "\n\n---",
        "## REAL-TIME WEB VERIFICATION CONTEXT",
        "The following information was retrieved from web searches to help verify claims:",
        "",
    ]
    for search in searches:
        lines.append(f'### Search: "{search.query}"')
        if search.answer:
            lines.append(f"**Summary:** {search.answer}")
        for result in search.results:
            lines.append(f"- [{result.title}]({result.url})")
            if result.snippet:
                lines.append(f"  {result.snippet[:200]}...")
        lines.append("")
    lines.append("---")
    lines.append(
        "Use this web context to verify claims. "
        "If something conflicts with web results, note the discrepancy."
    )
    lines.append("")
    return "\n".join(lines)


class WebContextBuilder:
    """Extracts topics with the LLM and searches each one."""

    def __init__(self, llm: ILLMProvider, prompts: PromptTemplateCache) -> None:
        self._llm = llm
        self._prompts = prompts
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def extract_topics(self, text: str, max_topics: int) -> list[str]:
        """Return up to *max_topics* search topics; empty on any failure."""
        prompt = await self._prompts.get("keyword_extraction")
        if prompt is None:
            return []

        sanitized = sanitize_for_prompt(text[:_TOPIC_INPUT_CHARS], context="keyword-extraction")
        user_content = fill_template(
            prompt.user_content_template, CONTENT=wrap_user_content(sanitized)
        )
        try:
            parsed = await complete_json(
                self._llm, prompt, user_content, TOPIC_EXTRACTION_TIMEOUT_SECONDS
            )
        except (asyncio.TimeoutError, LLMError, ResponseParseError) as exc:  # noqa: UP041
            self._logger.warning("topic_extraction_failed", error=str(exc))
            return []

        if isinstance(parsed, dict):
            parsed = parsed.get("queries", parsed.get("topics", []))
        if not isinstance(parsed, list):
            return []
        return [t for t in parsed[:max_topics] if isinstance(t, str) and len(t) > 2]

    async def build(self, text: str, cache: RequestSearchCache) -> WebSearchContext | None:
        """Search the content's key topics; ``None`` when nothing was found."""
        topics = dedupe_topics(await self.extract_topics(text, topic_count(text)))
        if not topics:
            return None

        responses = await throttled_gather([cache.search(topic) for topic in topics])
        searches = [
            r for r in responses if isinstance(r, WebSearchResponse) and r.results
        ]
        if not searches:
            return None

        self._logger.info(
            "web_context_built",
            topics=len(topics),
            searches=len(searches),
            api_calls=cache.api_calls,
            cache_hits=cache.cache_hits,
        )
        return WebSearchContext(searches=searches, formatted=format_web_context(searches))
