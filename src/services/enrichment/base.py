"""Shared helper for the small JSON-mode LLM calls made during enrichment."""

from __future__ import annotations

import asyncio
from typing import Any

from src.interfaces.llm_provider import ILLMProvider
from src.models.content import PromptDefinition
from src.services.prompt_safety import INSTRUCTION_ANCHOR
from src.services.response_parser import parse_json_lenient


async def complete_json(
    llm: ILLMProvider,
    prompt: PromptDefinition,
    user_content: str,
    timeout: float,
) -> Any:
    """Run *prompt* in JSON mode and return the parsed response.

    *user_content* must already hold sanitized, wrapped text; the
    instruction anchor is appended here.

    Raises
    ------
    asyncio.TimeoutError
        If the call exceeds *timeout* seconds.
    src.utils.errors.LLMError
        If the provider call fails.
    src.utils.errors.ResponseParseError
        If the response holds no JSON.
    """
    raw = await asyncio.wait_for(
        llm.complete(
            system_prompt=prompt.system_content,
            user_prompt=user_content + INSTRUCTION_ANCHOR,
            temperature=prompt.temperature,
            max_tokens=prompt.max_tokens,
            json_mode=True,
            model=prompt.model or None,
        ),
        timeout=timeout,
    )
    return parse_json_lenient(raw)


def fill_template(template: str, **values: str) -> str:
    """Replace each ``{{KEY}}`` marker with its value."""
    for key, value in values.items():
        template = template.replace("{{" + key + "}}", value)
    return template
