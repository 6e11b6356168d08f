"""LLM provider adapters.

Two concrete implementations of ILLMProvider (src/interfaces/llm_provider.py):
    - OpenAILLMProvider    — OpenAI or any OpenAI-compatible gateway
    - AnthropicLLMProvider — Claude via the Messages API

main.py picks the provider whose API key is configured (OpenAI first).
"""

from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OpenAILLMProvider"]
