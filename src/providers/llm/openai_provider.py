"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
When a custom ``openai_base_url`` is configured (OpenRouter, TogetherAI,
Fireworks, ...), the client points at that URL instead of the default
OpenAI endpoint, and the model named in each prompt definition is passed
through unchanged.

Vendor errors are wrapped in :class:`LLMError` carrying the HTTP status
code, so the section generator can tell 429 (long backoff), other 4xx
(stop) and 5xx (retry) apart without parsing messages.
"""

from __future__ import annotations

from typing import Any

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
from src.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible chat completions API.

    Uses ``gpt-4o-mini`` by default; a prompt definition's ``model`` or the
    ``openai_text_model`` setting overrides it.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        # Per-request timeout; the connect budget is kept short so a dead
        # gateway fails fast and the retry loop gets another attempt.
        self._timeout_seconds = settings.ai_call_timeout_seconds
        client_kwargs: dict[str, Any] = {
            "api_key": self._api_key,
            "timeout": openai.Timeout(self._timeout_seconds, connect=5.0),
            # Retries are owned by the section generator's backoff policy.
            "max_retries": 0,
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._default_model = settings.openai_text_model or "gpt-4o-mini"
        self._provider_label = (
            "openai-compatible" if settings.openai_base_url else "openai"
        )

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
        """Generate a completion via the chat completions API."""
        model_name = model or self._default_model
        request: dict[str, Any] = {
            "model": model_name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if top_p is not None:
            request["top_p"] = top_p
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**request)
        except openai.APITimeoutError as exc:
            raise LLMError(
                message=f"{self._provider_label} timed out after {self._timeout_seconds:.0f}s",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIStatusError as exc:
            raise LLMError(
                message=f"{self._provider_label} API error {exc.status_code}: {exc.message}",
                provider_name=self.get_provider_name(),
                status_code=exc.status_code,
            ) from exc
        except openai.APIError as exc:
            # Connection errors and other transport failures carry no status.
            raise LLMError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_completion",
            model=model_name,
            provider=self._provider_label,
            json_mode=json_mode,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        """Return 'openai' or 'openai-compatible' depending on configuration."""
        return self._provider_label
