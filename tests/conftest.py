"""Shared pytest fixtures for the ContentLens test suite."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config.settings import Settings
from src.interfaces.article_provider import ArticleContent, IArticleProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.web_search_provider import (
    IWebSearchProvider,
    SearchResult,
    WebSearchResponse,
)
from src.main import load_prompts
from src.models.content import ContentItem, ContentType, PromptDefinition
from src.providers.store.memory_store import MemoryContentStore

PROJECT_ROOT = Path(__file__).parent.parent

EVIDENCE_URL = "https://evidence.example.org/report"
EVIDENCE_TITLE = "Independent report"

ARTICLE_TEXT = (
    "City council approved a new cycling network on Tuesday. The plan adds forty "
    "kilometres of protected lanes over three years and is funded by a regional "
    "transport grant. Critics argue the budget estimate is optimistic, while "
    "supporters point to lower accident rates in neighbouring towns. "
) * 8

DEFAULT_RESPONSES: dict[str, Any] = {
    "brief_overview": "The council approved a three-year cycling network expansion.",
    "triage": json.dumps(
        {
            "quality_score": 7,
            "worth_your_time": "Yes, for local readers.",
            "target_audience": ["residents"],
            "content_density": "medium",
            "signal_noise_score": 2,
            "content_category": "news",
        }
    ),
    "truth_check": json.dumps(
        {
            "overall_rating": "Mostly Accurate",
            "issues": [
                {
                    "type": "misleading",
                    "claim_or_issue": "Accident rates fell in neighbouring towns",
                    "assessment": "Partly supported [1], contradicted by [3].",
                    "severity": "medium",
                    "sources": [
                        {"url": EVIDENCE_URL, "title": ""},
                        {"url": "https://invented.example.com/fake"},
                    ],
                }
            ],
            "strengths": ["Cites the grant"],
            "sources_quality": "fair",
            "claims": [
                {
                    "exact_text": "The plan adds forty kilometres of lanes!",
                    "status": "verified",
                    "sources": [EVIDENCE_URL],
                }
            ],
            "references": [{"url": "https://invented.example.com/other", "title": "Other"}],
        }
    ),
    "action_items": json.dumps(
        {"action_items": [{"title": "Attend the public consultation", "priority": "low"}]}
    ),
    "detailed_summary": "## Summary\n\nThe council approved the network.",
    "auto_tags": json.dumps({"tags": ["Cycling", "urban-planning", "local news"]}),
    "keyword_extraction": json.dumps({"queries": ["city cycling network grant"]}),
    "claim_extraction": json.dumps(
        {"claims": [{"claim": "Accident rates fell", "search_query": "accident rates cycling"}]}
    ),
    "tone_detection": json.dumps(
        {"tone_label": "neutral", "tone_directive": "Write in a neutral voice."}
    ),
}


def _settings(**overrides: Any) -> Settings:
    """Settings isolated from the developer's .env file."""
    values: dict[str, Any] = {"openai_api_key": "test-key"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class ScriptedLLM(ILLMProvider):
    """LLM double that answers by prompt type.

    The prompt type is recognised from the system prompt.  A response may
    be a string, an exception instance (raised), a callable taking the
    user prompt, or a list consumed one entry per call.
    """

    def __init__(
        self,
        prompts: list[PromptDefinition],
        responses: dict[str, Any] | None = None,
    ) -> None:
        self._by_system = {p.system_content: p.prompt_type for p in prompts}
        self.responses: dict[str, Any] = {**DEFAULT_RESPONSES, **(responses or {})}
        self.calls: list[tuple[str, str]] = []

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
        prompt_type = self.prompt_type_of(system_prompt)
        self.calls.append((prompt_type, user_prompt))
        response = self.responses.get(prompt_type, "")
        if isinstance(response, list):
            response = response.pop(0) if response else ""
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(user_prompt)
        return response

    def prompt_type_of(self, system_prompt: str) -> str:
        return self._by_system.get(system_prompt, "unknown")

    def calls_for(self, prompt_type: str) -> list[str]:
        return [user for kind, user in self.calls if kind == prompt_type]

    def get_provider_name(self) -> str:
        return "scripted"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def prompt_definitions() -> list[PromptDefinition]:
    return load_prompts(str(PROJECT_ROOT / "config" / "prompts.yaml"))


@pytest.fixture
def memory_store(prompt_definitions: list[PromptDefinition]) -> MemoryContentStore:
    return MemoryContentStore(prompts=prompt_definitions)


@pytest.fixture
def scripted_llm(prompt_definitions: list[PromptDefinition]) -> ScriptedLLM:
    return ScriptedLLM(prompt_definitions)


@pytest.fixture
def make_item() -> Callable[..., ContentItem]:
    """Factory for content items with sensible article defaults."""

    def _make(**overrides: Any) -> ContentItem:
        values: dict[str, Any] = {
            "id": "content-1",
            "url": "https://news.example.com/cycling-plan",
            "type": ContentType.ARTICLE,
            "owner": "owner-a",
        }
        values.update(overrides)
        return ContentItem(**values)

    return _make


@pytest.fixture
def mock_search_provider() -> MagicMock:
    """IWebSearchProvider returning one evidence result for any query."""
    mock = MagicMock(spec=IWebSearchProvider)

    async def _search(query: str, max_results: int = 3) -> WebSearchResponse:
        return WebSearchResponse(
            query=query,
            answer="Accident rates fell by a fifth.",
            results=[
                SearchResult(
                    title=EVIDENCE_TITLE,
                    url=EVIDENCE_URL,
                    snippet="Regional accident statistics for 2020 to 2024.",
                )
            ],
        )

    mock.search = AsyncMock(side_effect=_search)
    mock.get_provider_name.return_value = "fake-search"
    mock.is_available.return_value = True
    return mock


@pytest.fixture
def mock_article_provider() -> MagicMock:
    mock = MagicMock(spec=IArticleProvider)
    mock.extract_content = AsyncMock(
        return_value=ArticleContent(
            title="Council approves cycling network",
            text=ARTICLE_TEXT,
            author="Jane Reporter",
            description="Forty kilometres of new lanes.",
        )
    )
    mock.get_provider_name.return_value = "fake-article"
    mock.is_available.return_value = True
    return mock


@pytest.fixture
def recorded_sleep() -> tuple[list[float], Callable[[float], Any]]:
    """An awaitable sleep that records delays instead of waiting."""
    delays: list[float] = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    return delays, _sleep
