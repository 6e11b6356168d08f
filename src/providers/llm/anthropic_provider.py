"""Anthropic LLM provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.

Key differences from the OpenAI adapter:
    - Uses Anthropic's Messages API (not chat.completions)
    - System prompt is a separate parameter, not a message in the list
    - There is no JSON response mode; ``json_mode`` adds an instruction to
      the system prompt and the lenient parser handles the rest
    - Response content is a list of blocks, so text blocks are joined
"""

from __future__ import annotations

from typing import Any

import anthropic
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
from src.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "claude-sonnet-4-20250514"
_JSON_INSTRUCTION = "\n\nRespond with a single valid JSON object and nothing else."


class AnthropicLLMProvider(ILLMProvider):
    """LLM provider backed by the Anthropic Claude API.

    Prompt definitions name OpenAI-style model ids, so ``model`` is only
    honoured when it looks like a Claude model; otherwise the configured
    default is used.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.anthropic_api_key
        self._client = anthropic.AsyncAnthropic(
            api_key=self._api_key,
            timeout=settings.ai_call_timeout_seconds,
            max_retries=0,
        )
        self._model = settings.anthropic_model or _DEFAULT_MODEL

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        json_mode: bool = False,
        model: str | None = None,
        top_p: float | None = None,
    ) -> str:
        """Generate a text completion via the Anthropic Messages API."""
        model_name = model if model and model.startswith("claude") else self._model
        request: dict[str, Any] = {
            "model": model_name,
            "max_tokens": max_tokens,
            "system": system_prompt + (_JSON_INSTRUCTION if json_mode else ""),
            "messages": [{"role": "user", "content": user_prompt}],
            "temperature": temperature,
        }
        if top_p is not None:
            request["top_p"] = top_p

        try:
            response = await self._client.messages.create(**request)
        except anthropic.APITimeoutError as exc:
            raise LLMError(
                message="Anthropic request timed out",
                provider_name=self.get_provider_name(),
            ) from exc
        except anthropic.APIStatusError as exc:
            raise LLMError(
                message=f"Anthropic API error {exc.status_code}: {exc.message}",
                provider_name=self.get_provider_name(),
                status_code=exc.status_code,
            ) from exc
        except anthropic.APIError as exc:
            raise LLMError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise LLMError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "anthropic_completion",
            model=model_name,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return "\n".join(text_blocks)

    def is_available(self) -> bool:
        """Return ``True`` if an Anthropic API key is configured."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        return "anthropic"
