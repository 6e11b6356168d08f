"""Tone detection.

Labels the content's voice (satirical, promotional, academic, ...) and
returns a directive telling the section prompts how to write about it.
Any failure yields the neutral tone.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from src.interfaces.llm_provider import ILLMProvider
from src.services.enrichment.base import complete_json, fill_template
from src.services.prompt_cache import PromptTemplateCache
from src.services.prompt_safety import sanitize_for_prompt, wrap_user_content
from src.utils.errors import LLMError, ResponseParseError
from src.utils.logging import get_logger

TONE_TIMEOUT_SECONDS = 10.0
NEUTRAL_TONE_LABEL = "neutral"
NEUTRAL_TONE_DIRECTIVE = (
    "The content uses a standard informational tone. "
    "Write your analysis in a clear, neutral voice."
)


@dataclass(frozen=True)
class ToneResult:
    label: str = NEUTRAL_TONE_LABEL
    directive: str = NEUTRAL_TONE_DIRECTIVE

    @property
    def is_neutral(self) -> bool:
        return self.label == NEUTRAL_TONE_LABEL


NEUTRAL_TONE = ToneResult()


def tone_sample(text: str) -> str:
    """First 2000 chars, plus the middle 1000 (> 6000) and last 1000 (> 4000).

    Sampling three places catches a tone shift between a formal intro
    and a sarcastic body.
    """
    segments = [text[:2000]]
    if len(text) > 6000:
        mid = len(text) // 2
        segments.append(text[mid - 500 : mid + 500])
    if len(text) > 4000:
        segments.append(text[-1000:])
    return "\n\n---\n\n".join(segments)


class ToneDetector:
    def __init__(self, llm: ILLMProvider, prompts: PromptTemplateCache) -> None:
        self._llm = llm
        self._prompts = prompts
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def detect(self, text: str, title: str | None, content_type: str) -> ToneResult:
        prompt = await self._prompts.get("tone_detection")
        if prompt is None:
            return NEUTRAL_TONE

        sample = sanitize_for_prompt(tone_sample(text), context="tone-detection")
        clean_title = sanitize_for_prompt(title, max_length=500, context="tone-detection-title")
        user_content = fill_template(
            prompt.user_content_template,
            TITLE_LINE=f"Title: {clean_title}\n" if clean_title else "",
            TYPE=content_type,
            CONTENT=wrap_user_content(sample),
        )
        try:
            parsed = await complete_json(self._llm, prompt, user_content, TONE_TIMEOUT_SECONDS)
        except (asyncio.TimeoutError, LLMError, ResponseParseError) as exc:  # noqa: UP041
            self._logger.warning("tone_detection_failed", error=str(exc))
            return NEUTRAL_TONE

        if not isinstance(parsed, dict):
            return NEUTRAL_TONE
        label = parsed.get("tone_label")
        directive = parsed.get("tone_directive")
        if not isinstance(label, str) or not isinstance(directive, str):
            return NEUTRAL_TONE
        if not label.strip() or not directive.strip():
            return NEUTRAL_TONE
        return ToneResult(label=label.strip(), directive=directive.strip())
