"""Generates one report section with bounded, status-aware retries.

Each section is rendered from its stored prompt template, sent to the
LLM, and decoded into its typed payload (see
:func:`src.services.response_parser.decode_section`).

Retry policy per attempt ``a`` (1-based):

    HTTP 429                          wait 10s * 2^(a-1), retry
    5xx / network / timeout           wait  5s * 2^(a-1), retry
    empty output / undecodable JSON   wait  5s * 2^(a-1), retry
    any other 4xx                     fail immediately

There is never a wait after the final attempt.  Failures surface as
generic messages; raw vendor text only reaches the log.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from src.interfaces.llm_provider import ILLMProvider
from src.models.content import PromptDefinition
from src.models.pipeline import EnrichmentContext
from src.models.sections import SectionType
from src.services.enrichment.base import fill_template
from src.services.enrichment.tone import NEUTRAL_TONE_DIRECTIVE
from src.services.prompt_cache import PromptTemplateCache
from src.services.prompt_safety import (
    INSTRUCTION_ANCHOR,
    detect_output_leakage,
    sanitize_for_prompt,
    wrap_user_content,
)
from src.services.response_parser import decode_section
from src.utils.errors import LLMError, PipelineError, ProviderError, SectionDecodeError
from src.utils.logging import get_logger
from src.utils.timing import Stopwatch

# Characters of source text each section sees.
SOURCE_CAPS: dict[SectionType, int] = {
    SectionType.BRIEF_OVERVIEW: 8_000,
    SectionType.TRIAGE: 10_000,
    SectionType.TRUTH_CHECK: 20_000,
    SectionType.ACTION_ITEMS: 15_000,
    SectionType.DETAILED_SUMMARY: 30_000,
    SectionType.AUTO_TAGS: 10_000,
}

# Caps applied on top of the prompt's own max_retries.
MAX_ATTEMPTS: dict[SectionType, int] = {SectionType.AUTO_TAGS: 2}

RATE_LIMIT_BASE_DELAY = 10.0
TRANSIENT_BASE_DELAY = 5.0
TRUTH_CHECK_CONTEXT_CHARS = 8_000

SERVICE_ERROR_MESSAGE = "AI analysis service returned an error"
INVALID_RESPONSE_MESSAGE = "AI analysis returned an invalid response"
EXHAUSTED_MESSAGE = "AI analysis failed after multiple attempts"

CITATION_INSTRUCTION = (
    "\n\nIMPORTANT: For each issue you identify, include a \"sources\" array with citation "
    "objects containing \"url\" and \"title\" for verification. Use URLs from the web "
    "verification context above when available. Format: \"sources\": [{\"url\": "
    "\"https://...\", \"title\": \"Source Title\"}]. If no source URL is available for an "
    "issue, omit the sources field for that issue."
)


def retry_delay(status_code: int | None, attempt: int) -> float:
    """Seconds to wait after failed attempt *attempt*."""
    base = RATE_LIMIT_BASE_DELAY if status_code == 429 else TRANSIENT_BASE_DELAY
    return base * 2 ** (attempt - 1)


@dataclass(frozen=True)
class SectionContext:
    """Everything a section prompt is rendered with, apart from the text.

    ``web_context`` is appended after the template only when the prompt
    has ``use_web_search`` set.
    """

    content_type: str
    language_directive: str = "Write your analysis in English."
    tone_directive: str = NEUTRAL_TONE_DIRECTIVE
    preference_block: str = ""
    metadata_block: str = ""
    type_instructions: str = ""
    web_context: str = ""


def evidence_for(section: SectionType, enrichment: EnrichmentContext) -> str:
    """Pick the web evidence block *section* receives.

    Truth check gets the credibility warning, topic context and claim
    context combined (capped) plus a citation instruction.  Auto tags
    get none.
    """
    if section is SectionType.AUTO_TAGS:
        return ""
    if section is not SectionType.TRUTH_CHECK:
        return enrichment.web_context
    combined = ""
    if enrichment.domain_credibility:
        combined = enrichment.domain_credibility + "\n\n"
    combined += enrichment.web_context + enrichment.claim_context
    combined = combined[:TRUTH_CHECK_CONTEXT_CHARS]
    return combined + CITATION_INSTRUCTION if combined else ""


class SectionGenerator:
    """Renders, calls and decodes one section at a time.

    Parameters
    ----------
    llm:
        Completion provider.
    prompts:
        Shared prompt template cache.
    call_timeout:
        Per-attempt timeout in seconds.
    sleep:
        Awaitable sleep used between attempts; tests inject a recorder.
    """

    def __init__(
        self,
        llm: ILLMProvider,
        prompts: PromptTemplateCache,
        call_timeout: float = 120.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._llm = llm
        self._prompts = prompts
        self._call_timeout = call_timeout
        self._sleep = sleep
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def model_name(self) -> str:
        return self._llm.get_provider_name()

    def render(
        self, prompt: PromptDefinition, section: SectionType, text: str, context: SectionContext
    ) -> str:
        sanitized = sanitize_for_prompt(
            text[: SOURCE_CAPS[section]], context=f"analysis-{section.value}"
        )
        user_content = fill_template(
            prompt.user_content_template,
            TONE=context.tone_directive or NEUTRAL_TONE_DIRECTIVE,
            LANGUAGE=context.language_directive,
            USER_PREFERENCES=context.preference_block,
            METADATA=context.metadata_block,
            TYPE_INSTRUCTIONS=context.type_instructions,
            CONTENT=wrap_user_content(sanitized),
            TYPE=context.content_type,
        )
        if context.web_context and prompt.use_web_search:
            user_content += context.web_context
        return user_content + INSTRUCTION_ANCHOR

    async def generate(
        self, section: SectionType, text: str, context: SectionContext
    ) -> Any:
        """Return the decoded payload for *section*.

        Raises
        ------
        PipelineError
            If no prompt is configured for the section.
        LLMError
            On a non-retryable service error or once attempts run out.
        SectionDecodeError
            If the final attempt's output could not be decoded.
        """
        prompt = await self._prompts.get(section.value)
        if prompt is None:
            raise PipelineError(message=f"Prompt not found for type: {section.value}")

        user_prompt = self.render(prompt, section, text, context)
        attempts = max(1, min(prompt.max_retries, MAX_ATTEMPTS.get(section, prompt.max_retries)))
        last_decode_error: SectionDecodeError | None = None

        for attempt in range(1, attempts + 1):
            watch = Stopwatch()
            status_code: int | None = None
            last_decode_error = None
            try:
                raw = await asyncio.wait_for(
                    self._llm.complete(
                        system_prompt=prompt.system_content,
                        user_prompt=user_prompt,
                        temperature=prompt.temperature,
                        max_tokens=prompt.max_tokens,
                        json_mode=prompt.expect_json,
                        model=prompt.model or None,
                    ),
                    timeout=self._call_timeout,
                )
            except asyncio.TimeoutError:  # noqa: UP041
                self._logger.warning(
                    "section_attempt_timed_out",
                    section=section.value,
                    attempt=attempt,
                    timeout=self._call_timeout,
                )
            except ProviderError as exc:
                status_code = exc.status_code
                self._logger.warning(
                    "section_attempt_failed",
                    section=section.value,
                    attempt=attempt,
                    status_code=status_code,
                    error=exc.message,
                )
                if not exc.retryable:
                    raise LLMError(
                        message=SERVICE_ERROR_MESSAGE,
                        provider_name=exc.provider_name,
                        status_code=status_code,
                        retryable=False,
                    ) from exc
            else:
                if raw and raw.strip():
                    detect_output_leakage(raw, section.value)
                    try:
                        payload = decode_section(section, raw)
                    except SectionDecodeError as exc:
                        last_decode_error = exc
                        self._logger.warning(
                            "section_decode_failed",
                            section=section.value,
                            attempt=attempt,
                            error=exc.message,
                        )
                    else:
                        self._logger.info(
                            "section_generated",
                            section=section.value,
                            attempt=attempt,
                            elapsed_ms=watch.elapsed_ms(),
                        )
                        return payload
                else:
                    self._logger.warning(
                        "section_empty_response", section=section.value, attempt=attempt
                    )

            if attempt < attempts:
                await self._sleep(retry_delay(status_code, attempt))

        self._logger.error("section_exhausted", section=section.value, attempts=attempts)
        if last_decode_error is not None:
            raise SectionDecodeError(
                message=INVALID_RESPONSE_MESSAGE, section=section.value
            ) from last_decode_error
        raise LLMError(message=EXHAUSTED_MESSAGE, provider_name=self.model_name)
