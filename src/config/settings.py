"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Settings are read from TWO sources (in priority order):
#
#   1. **Environment variables** — e.g., OPENAI_API_KEY=sk-abc123
#   2. **.env file** — key=value lines in the project root .env file
#
# Field `tavily_api_key` maps to env var `TAVILY_API_KEY`.
#
# Defaults apply when neither source sets a field.  An empty string
# means "not configured": main.py skips providers whose key is empty.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ContentLens application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === LLM Providers ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible gateway (OpenRouter, TogetherAI, ...)
    openai_text_model: str = ""  # Fallback model when a prompt definition names none
    anthropic_api_key: str = ""
    anthropic_model: str = ""

    # === Web Search ===
    tavily_api_key: str = ""

    # === Article Scraping ===
    firecrawl_api_key: str = ""

    # === Video ===
    supadata_api_key: str = ""

    # === Audio Transcription ===
    assemblyai_api_key: str = ""
    transcription_webhook_url: str = ""

    # === Storage ===
    store_backend: str = "memory"  # "memory" or "sqlite"
    sqlite_db_path: str = "data/contentlens.db"
    prompts_path: str = "config/prompts.yaml"

    # === Rate Limiting ===
    redis_url: str = ""  # Empty = per-process in-memory counters
    rate_limit_requests: int = 30
    rate_limit_window_seconds: int = 60

    # === Pipeline Timeouts (seconds) ===
    pipeline_timeout_seconds: float = 240.0
    enrichment_timeout_seconds: float = 20.0
    ai_call_timeout_seconds: float = 120.0

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return the LLM provider names that have non-empty API keys configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        return providers

    def get_missing_required(self) -> list[str]:
        """Return the names of credentials the pipeline cannot run without.

        An LLM key is mandatory.  Web search falls back to DuckDuckGo, so
        a missing Tavily key is not fatal.
        """
        missing: list[str] = []
        if not self.get_available_llm_providers():
            missing.append("OPENAI_API_KEY or ANTHROPIC_API_KEY")
        return missing
