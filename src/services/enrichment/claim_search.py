"""Targeted verification of individual factual claims.

The model extracts a handful of checkable claims (versions, statistics,
dates, prices) with an English search query for each; every query is
searched and the results are rendered as a block the truth-check prompt
receives as ``{{CLAIM_CONTEXT}}``.

The claim budget scales with text length and short texts skip the step
entirely:

    < 500 chars   0 (skipped)
    < 2000        2
    < 8000        3
    otherwise     5
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone

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

CLAIM_EXTRACTION_TIMEOUT_SECONDS = 10.0
MIN_CLAIM_TEXT_CHARS = 100
_CLAIM_INPUT_CHARS = 10_000


@dataclass(frozen=True)
class VerifiableClaim:
    claim: str
    search_query: str


@dataclass(frozen=True)
class ClaimSearchContext:
    claims: list[VerifiableClaim] = field(default_factory=list)
    searches: list[WebSearchResponse] = field(default_factory=list)
    formatted: str = ""


def claim_budget(text: str) -> int:
    if len(text) < 500:
        return 0
    if len(text) < 2000:
        return 2
    if len(text) < 8000:
        return 3
    return 5


def format_claim_context(
    claims: list[VerifiableClaim], searches: list[WebSearchResponse]
) -> str:
    lines = [
        "\n\n---",
        "## TARGETED CLAIM VERIFICATION RESULTS",
        "CRITICAL: These search results reflect CURRENT real-time information as of today.",
        "If these web results contradict your training data, ALWAYS trust these web search "
        "results over your training data.",
        "",
    ]
    for claim, search in zip(claims, searches):
        lines.append(f'### Claim: "{claim.claim}"')
        lines.append(f'**Search Query:** "{claim.search_query}"')
        if search.results:
            if search.answer:
                lines.append(f"**Web Answer:** {search.answer}")
            for result in search.results:
                lines.append(f"- [{result.title}]({result.url})")
                if result.snippet:
                    lines.append(f"  {result.snippet[:300]}")
        else:
            lines.append("_No web results found for this claim._")
        lines.append("")
    lines.append("---")
    lines.append(
        "Use the claim verification results above to check the accuracy of ALL claims "
        "in the content."
    )
    lines.append(
        "If a claim is contradicted by these web results, mark it as inaccurate and cite "
        "the web source."
    )
    lines.append("")
    return "\n".join(lines)


class ClaimSearchService:
    """Extracts verifiable claims and searches each one."""

    def __init__(self, llm: ILLMProvider, prompts: PromptTemplateCache) -> None:
        self._llm = llm
        self._prompts = prompts
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def extract_claims(self, text: str, max_claims: int) -> list[VerifiableClaim]:
        """Return up to *max_claims* claims; empty on any failure."""
        if max_claims <= 0 or len(text.strip()) < MIN_CLAIM_TEXT_CHARS:
            return []
        prompt = await self._prompts.get("claim_extraction")
        if prompt is None:
            return []

        sanitized = sanitize_for_prompt(text[:_CLAIM_INPUT_CHARS], context="claim-extraction")
        user_content = fill_template(
            prompt.user_content_template,
            MAX_CLAIMS=str(max_claims),
            YEAR=str(datetime.now(tz=timezone.utc).year),  # noqa: UP017
            CONTENT=wrap_user_content(sanitized),
        )
        try:
            parsed = await complete_json(
                self._llm, prompt, user_content, CLAIM_EXTRACTION_TIMEOUT_SECONDS
            )
        except (asyncio.TimeoutError, LLMError, ResponseParseError) as exc:  # noqa: UP041
            self._logger.warning("claim_extraction_failed", error=str(exc))
            return []

        if isinstance(parsed, dict):
            if parsed.get("refused") is True:
                self._logger.warning("claim_extraction_refused")
                return []
            parsed = parsed.get("claims", [])
        if not isinstance(parsed, list):
            return []

        claims: list[VerifiableClaim] = []
        for entry in parsed[:max_claims]:
            if (
                isinstance(entry, dict)
                and isinstance(entry.get("claim"), str)
                and isinstance(entry.get("search_query"), str)
            ):
                claims.append(
                    VerifiableClaim(claim=entry["claim"], search_query=entry["search_query"])
                )
        return claims

    async def build(self, text: str, cache: RequestSearchCache) -> ClaimSearchContext | None:
        """Verify the content's claims; ``None`` when skipped or nothing was found."""
        claims = await self.extract_claims(text, claim_budget(text))
        if not claims:
            return None

        responses = await throttled_gather([cache.search(c.search_query) for c in claims])
        matched: list[VerifiableClaim] = []
        searches: list[WebSearchResponse] = []
        for claim, response in zip(claims, responses):
            if isinstance(response, WebSearchResponse):
                matched.append(claim)
                searches.append(response)
        if not searches:
            return None

        self._logger.info("claim_context_built", claims=len(matched))
        return ClaimSearchContext(
            claims=matched,
            searches=searches,
            formatted=format_claim_context(matched, searches),
        )
