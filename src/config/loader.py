"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  — Static pipeline defaults checked into the repo
#   2. .env file           — Local developer overrides (not committed)
#   3. Environment vars    — Set at deploy time
#
# load_config() reads the YAML file first, then deep-merges the
# environment-derived values on top.
#
# Prompt definitions live in a separate file (config/prompts.yaml) and
# are loaded by load_prompt_definitions(); they seed the in-memory store
# and the SQLite store's prompt table.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from src.config.settings import Settings
from src.utils.errors import ConfigurationError


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Settings instance to merge; a fresh one is built if omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    yaml_config = _read_yaml(Path(path))

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "llm": {
            "available_providers": settings.get_available_llm_providers(),
        },
        "pipeline": {
            "timeout_seconds": settings.pipeline_timeout_seconds,
            "enrichment_timeout_seconds": settings.enrichment_timeout_seconds,
            "ai_call_timeout_seconds": settings.ai_call_timeout_seconds,
        },
        "rate_limit": {
            "requests": settings.rate_limit_requests,
            "window_seconds": settings.rate_limit_window_seconds,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def load_prompt_definitions(path: str = "config/prompts.yaml") -> list[dict[str, Any]]:
    """Read the prompt definitions file.

    Returns a list of raw dicts, one per prompt type; validation happens
    when they are turned into :class:`~src.models.content.PromptDefinition`.

    Raises
    ------
    ConfigurationError
        If the file is missing or does not contain a ``prompts`` list.
    """
    prompts_path = Path(path)
    if not prompts_path.exists():
        raise ConfigurationError(message=f"Prompt definitions not found at {path}")
    data = _read_yaml(prompts_path)
    prompts = data.get("prompts")
    if not isinstance(prompts, list):
        raise ConfigurationError(message=f"{path} must contain a 'prompts' list")
    return prompts


def _read_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
