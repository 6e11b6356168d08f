"""Abstract base class for LLM service providers.

Defines the contract for any large-language-model backend used for
section generation, topic/claim extraction and tone detection.
Implementations wrap an OpenAI-compatible chat API or the Anthropic
Messages API.  The adapter pattern keeps every call site provider-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider
# Located in: src/providers/llm/
class ILLMProvider(ABC):
    """Contract for LLM services used throughout the ContentLens pipeline."""

    @abstractmethod
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
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the actual request or data.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.
        json_mode:
            Ask the provider to constrain output to a JSON object where
            supported.  Output is still not guaranteed to be well-formed.
        model:
            Model identifier; ``None`` selects the provider default.
        top_p:
            Optional nucleus-sampling cutoff.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        src.utils.errors.LLMError
            If the API call fails or returns an empty response.  The
            error carries the HTTP ``status_code`` when the vendor sent
            one, so callers can branch on 429 / 4xx / 5xx.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this LLM provider.

        Example return values: ``"openai"``, ``"openai-compatible"``, ``"anthropic"``.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Implementations should verify that credentials are present without
        making a full inference call.
        """
