"""End-to-end tests for ContentPipeline on the in-memory store.

The LLM is scripted per prompt type, search and scraping are fakes, and
every sleep and clock is injected so nothing waits on wall-clock time.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config.tiers import ANALYSES_FIELD, current_period
from src.interfaces.article_provider import ArticleContent
from src.interfaces.transcription_provider import (
    ITranscriptionProvider,
    TranscriptionResult,
    Utterance,
)
from src.models.content import ContentItem, ContentType, ProcessingStatus
from src.models.pipeline import PipelineStage, ProcessRequest
from src.models.sections import SectionType
from src.pipeline.orchestrator import (
    BLOCKED_MESSAGE,
    CACHED_MESSAGE,
    PARTIAL_MESSAGE,
    TRANSCRIBING_MESSAGE,
    ContentPipeline,
    PipelineOptions,
)
from src.pipeline.progress_tracker import StageTracker
from src.providers.store.memory_store import MemoryContentStore
from src.services.acquisition import (
    AcquisitionService,
    ArticleAcquirer,
    PodcastAcquirer,
    PodcastAudioResolver,
)
from src.services.content_cache import CrossTenantCache
from src.services.enrichment import (
    ClaimSearchService,
    EnrichmentService,
    ToneDetector,
    WebContextBuilder,
)
from src.services.moderation import ContentModerator
from src.services.paywall import SHORT_ARTICLE_WARNING
from src.services.post_processing import AnalysisPostProcessor
from src.services.prompt_cache import PromptTemplateCache
from src.services.rate_limiter import RateLimiter
from src.services.section_generator import SectionGenerator
from src.services.usage import UsageAdmission
from src.utils.error_classifier import POLICY_SENTINEL
from src.utils.errors import LLMError, ProcessContentError, RateLimitError
from tests.conftest import EVIDENCE_URL, ScriptedLLM

ALL_SECTIONS = {section.value for section in SectionType}


class _Clock:
    """Settable monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _build(
    store: MemoryContentStore,
    llm: ScriptedLLM,
    search: Any,
    article: Any,
    sleep: Any,
    clock: _Clock | None = None,
    transcriber: Any = None,
    resolver: Any = None,
    rate_limiter: RateLimiter | None = None,
    options: PipelineOptions | None = None,
) -> ContentPipeline:
    prompts = PromptTemplateCache(store)
    podcast = (
        PodcastAcquirer(resolver, transcriber, callback_url="https://hooks.example/transcripts")
        if transcriber is not None and resolver is not None
        else None
    )
    return ContentPipeline(
        store=store,
        acquisition=AcquisitionService(
            article=ArticleAcquirer(article, sleep=sleep), podcast=podcast
        ),
        cache=CrossTenantCache(store),
        moderator=ContentModerator(store, check_profanity=False),
        enrichment=EnrichmentService(
            store=store,
            search_provider=search,
            web_context=WebContextBuilder(llm, prompts),
            claim_search=ClaimSearchService(llm, prompts),
            tone=ToneDetector(llm, prompts),
        ),
        generator=SectionGenerator(llm, prompts, sleep=sleep),
        post_processor=AnalysisPostProcessor(store),
        usage=UsageAdmission(store),
        tracker=StageTracker(),
        transcriber=transcriber,
        rate_limiter=rate_limiter,
        options=options,
        clock=clock or _Clock(),
    )


@pytest.fixture()
def pipeline_parts(
    memory_store: MemoryContentStore,
    scripted_llm: ScriptedLLM,
    mock_search_provider: MagicMock,
    mock_article_provider: MagicMock,
    recorded_sleep: tuple[list[float], Any],
) -> dict[str, Any]:
    delays, sleep = recorded_sleep
    return {
        "store": memory_store,
        "llm": scripted_llm,
        "search": mock_search_provider,
        "article": mock_article_provider,
        "sleep": sleep,
        "delays": delays,
    }


def _pipeline(parts: dict[str, Any], **kwargs: Any) -> ContentPipeline:
    return _build(
        parts["store"], parts["llm"], parts["search"], parts["article"], parts["sleep"], **kwargs
    )


# ======================================================================
# Happy path
# ======================================================================


class TestFullRun:
    @pytest.mark.asyncio
    async def test_article_produces_all_sections(self, pipeline_parts, make_item) -> None:
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        result = await pipeline.process(ProcessRequest(content_id="content-1", owner_id="owner-a"))
        await pipeline.drain_background()

        assert result.success is True
        assert result.stage is PipelineStage.FINALIZED
        assert result.cached is False
        assert set(result.sections_generated) == ALL_SECTIONS
        analysis = await store.get_analysis("content-1", "en")
        assert analysis.status is ProcessingStatus.COMPLETE
        assert analysis.model_name == "scripted"
        assert set(analysis.sections) == ALL_SECTIONS

    @pytest.mark.asyncio
    async def test_content_updated_with_text_title_and_tags(self, pipeline_parts, make_item) -> None:
        store = pipeline_parts["store"]
        await store.save_content(make_item(title="Processing: link"))
        pipeline = _pipeline(pipeline_parts)

        await pipeline.process(ProcessRequest(content_id="content-1"))
        await pipeline.drain_background()

        item = await store.get_content("content-1")
        assert item.raw_text.startswith("City council approved")
        assert item.title == "Council approves cycling network"
        assert item.metadata["author"] == "Jane Reporter"
        assert item.tags == ["cycling", "urban planning", "local news"]
        assert item.analysis_language == "en"

    @pytest.mark.asyncio
    async def test_stage_history(self, pipeline_parts, make_item) -> None:
        await pipeline_parts["store"].save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        await pipeline.process(ProcessRequest(content_id="content-1"))

        assert pipeline.tracker.get_history("content-1") == [
            PipelineStage.FETCHED,
            PipelineStage.MODERATED,
            PipelineStage.ENRICHED,
            PipelineStage.GENERATED,
            PipelineStage.FINALIZED,
        ]
        assert pipeline.tracker.get_status("content-1")["finished"] is True

    @pytest.mark.asyncio
    async def test_truth_check_references_are_gated(self, pipeline_parts, make_item) -> None:
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        await pipeline.process(ProcessRequest(content_id="content-1"))

        truth = (await store.get_analysis("content-1", "en")).sections["truth_check"]
        assert [ref["url"] for ref in truth["references"]] == [EVIDENCE_URL]
        assessment = truth["issues"][0]["assessment"]
        assert "[1]" in assessment
        assert "[3]" not in assessment

    @pytest.mark.asyncio
    async def test_truth_check_prompt_receives_web_evidence(self, pipeline_parts, make_item) -> None:
        await pipeline_parts["store"].save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        await pipeline.process(ProcessRequest(content_id="content-1"))

        (prompt,) = pipeline_parts["llm"].calls_for("truth_check")
        assert "REAL-TIME WEB VERIFICATION CONTEXT" in prompt
        assert "TARGETED CLAIM VERIFICATION RESULTS" in prompt
        (tags_prompt,) = pipeline_parts["llm"].calls_for("auto_tags")
        assert "REAL-TIME WEB VERIFICATION CONTEXT" not in tags_prompt

    @pytest.mark.asyncio
    async def test_claims_and_domain_stats_recorded(self, pipeline_parts, make_item) -> None:
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        await pipeline.process(ProcessRequest(content_id="content-1"))

        claims = await store.list_claims("content-1")
        assert len(claims) == 2
        assert claims[0].normalized_text == "the plan adds forty kilometres of lanes"
        assert claims[1].status == "misleading"
        assert claims[1].sources == [EVIDENCE_URL]
        stat = await store.get_domain_stat("news.example.com")
        assert stat.total_analyses == 1
        assert stat.rating_counts == {"Mostly Accurate": 1}
        assert stat.average_quality == 7.0

    @pytest.mark.asyncio
    async def test_detected_tone_is_persisted(self, pipeline_parts, make_item) -> None:
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        pipeline_parts["llm"].responses["tone_detection"] = json.dumps(
            {"tone_label": "alarmist", "tone_directive": "Stay calm and measured."}
        )
        pipeline = _pipeline(pipeline_parts)

        await pipeline.process(ProcessRequest(content_id="content-1"))
        await pipeline.drain_background()

        assert (await store.get_content("content-1")).detected_tone == "alarmist"

    @pytest.mark.asyncio
    async def test_neutral_tone_is_not_written(self, pipeline_parts, make_item) -> None:
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        await pipeline.process(ProcessRequest(content_id="content-1"))
        await pipeline.drain_background()

        assert (await store.get_content("content-1")).detected_tone is None


# ======================================================================
# Idempotency and regeneration
# ======================================================================


class TestRegeneration:
    @pytest.mark.asyncio
    async def test_forced_rerun_is_idempotent(self, pipeline_parts, make_item) -> None:
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        await pipeline.process(ProcessRequest(content_id="content-1"))
        first = await store.get_analysis("content-1", "en")
        second_result = await pipeline.process(
            ProcessRequest(content_id="content-1", force_regenerate=True)
        )
        second = await store.get_analysis("content-1", "en")

        assert second_result.success is True
        assert set(second.sections) == set(first.sections)
        assert second.sections["triage"] == first.sections["triage"]
        assert second.status is ProcessingStatus.COMPLETE
        assert len(await store.list_claims("content-1")) == 2
        assert (await store.get_content("content-1")).regeneration_count == 1

    @pytest.mark.asyncio
    async def test_unforced_rerun_skips_acquisition(self, pipeline_parts, make_item) -> None:
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        await pipeline.process(ProcessRequest(content_id="content-1"))
        await pipeline.process(ProcessRequest(content_id="content-1"))

        assert pipeline_parts["article"].extract_content.await_count == 1


# ======================================================================
# Partial failure, retries and self-heal
# ======================================================================


class TestSectionFailures:
    @pytest.mark.asyncio
    async def test_two_of_six_failing_still_completes(self, pipeline_parts, make_item) -> None:
        store = pipeline_parts["store"]
        llm = pipeline_parts["llm"]
        llm.responses["action_items"] = LLMError("bad request", status_code=400)
        llm.responses["auto_tags"] = ["not json at all", "still not json"]
        await store.save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        result = await pipeline.process(ProcessRequest(content_id="content-1"))

        assert result.success is True
        assert set(result.sections_generated) == ALL_SECTIONS - {"action_items", "auto_tags"}
        analysis = await store.get_analysis("content-1", "en")
        assert analysis.status is ProcessingStatus.COMPLETE
        assert "action_items" not in analysis.sections
        assert "auto_tags" not in analysis.sections
        assert len(llm.calls_for("action_items")) == 1
        assert len(llm.calls_for("auto_tags")) == 2

    @pytest.mark.asyncio
    async def test_backoff_waits_follow_status(self, pipeline_parts, make_item) -> None:
        llm = pipeline_parts["llm"]
        valid = llm.responses["triage"]
        llm.responses["triage"] = [RateLimitError(), LLMError("upstream", status_code=503), valid]
        await pipeline_parts["store"].save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        result = await pipeline.process(ProcessRequest(content_id="content-1"))

        assert "triage" in result.sections_generated
        assert pipeline_parts["delays"] == [10.0, 10.0]

    @pytest.mark.asyncio
    async def test_failed_critical_section_is_healed_without_web(
        self, pipeline_parts, make_item
    ) -> None:
        llm = pipeline_parts["llm"]
        llm.responses["brief_overview"] = [
            LLMError("bad request", status_code=400),
            "Healed overview.",
        ]
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        result = await pipeline.process(ProcessRequest(content_id="content-1"))

        assert "brief_overview" in result.sections_generated
        first, retry = llm.calls_for("brief_overview")
        assert "REAL-TIME WEB VERIFICATION CONTEXT" in first
        assert "REAL-TIME WEB VERIFICATION CONTEXT" not in retry
        analysis = await store.get_analysis("content-1", "en")
        assert analysis.sections["brief_overview"]["text"] == "Healed overview."

    @pytest.mark.asyncio
    async def test_non_informational_skips_truth_check(self, pipeline_parts, make_item) -> None:
        llm = pipeline_parts["llm"]
        llm.responses["triage"] = json.dumps({"quality_score": 6, "content_category": "Music"})
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        result = await pipeline.process(ProcessRequest(content_id="content-1"))

        assert "truth_check" not in result.sections_generated
        assert "action_items" not in result.sections_generated
        assert await store.list_claims("content-1") == []

    @pytest.mark.asyncio
    async def test_model_refusal_is_flagged_not_stored(self, pipeline_parts, make_item) -> None:
        llm = pipeline_parts["llm"]
        llm.responses["detailed_summary"] = "CONTENT_REFUSED: describes weapon construction"
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        result = await pipeline.process(ProcessRequest(content_id="content-1"))

        assert "detailed_summary" not in result.sections_generated
        flag = store.flags[-1].flag
        assert flag.source == "ai_refusal"
        assert flag.categories == ["weapons"]


# ======================================================================
# Acquisition outcomes
# ======================================================================


class TestAcquisition:
    @pytest.mark.asyncio
    async def test_fifty_char_article_gets_warning_and_triage(
        self, pipeline_parts, make_item
    ) -> None:
        text = "Short note on the cycling plan and its budget ok."
        pipeline_parts["article"].extract_content = AsyncMock(
            return_value=ArticleContent(title="Short", text=text)
        )
        await pipeline_parts["store"].save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        result = await pipeline.process(ProcessRequest(content_id="content-1"))

        assert result.success is True
        assert result.warnings == [SHORT_ARTICLE_WARNING]
        assert "triage" in result.sections_generated
        assert pipeline_parts["llm"].calls_for("claim_extraction") == []

    @pytest.mark.asyncio
    async def test_scrape_failure_writes_sentinel(self, pipeline_parts, make_item) -> None:
        pipeline_parts["article"].extract_content = AsyncMock(return_value=None)
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        result = await pipeline.process(ProcessRequest(content_id="content-1"))

        assert result.success is False
        assert result.stage is PipelineStage.PARTIAL
        assert "couldn't extract the article content" in result.message
        item = await store.get_content("content-1")
        assert item.raw_text == "PROCESSING_FAILED::ARTICLE::ACQUISITION_FAILED/SCRAPE_FAILED"
        assert await store.get_analysis("content-1", "en") is None
        assert pipeline_parts["llm"].calls == []


# ======================================================================
# Admission
# ======================================================================


class TestAdmission:
    @pytest.mark.asyncio
    async def test_unknown_content_is_404(self, pipeline_parts) -> None:
        pipeline = _pipeline(pipeline_parts)
        with pytest.raises(ProcessContentError) as exc_info:
            await pipeline.process(ProcessRequest(content_id="missing"))
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_other_owner_is_403(self, pipeline_parts, make_item) -> None:
        await pipeline_parts["store"].save_content(make_item())
        pipeline = _pipeline(pipeline_parts)
        with pytest.raises(ProcessContentError) as exc_info:
            await pipeline.process(ProcessRequest(content_id="content-1", owner_id="intruder"))
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_credentials_is_500(self, pipeline_parts, make_item) -> None:
        await pipeline_parts["store"].save_content(make_item())
        pipeline = _pipeline(
            pipeline_parts, options=PipelineOptions(missing_credentials=("OPENAI_API_KEY",))
        )
        with pytest.raises(ProcessContentError) as exc_info:
            await pipeline.process(ProcessRequest(content_id="content-1"))
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_unsupported_language_is_400(self, pipeline_parts, make_item) -> None:
        await pipeline_parts["store"].save_content(make_item())
        pipeline = _pipeline(pipeline_parts)
        with pytest.raises(ProcessContentError) as exc_info:
            await pipeline.process(ProcessRequest(content_id="content-1", language="xx"))
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_free_tier_cannot_use_other_languages(self, pipeline_parts, make_item) -> None:
        await pipeline_parts["store"].save_content(make_item())
        pipeline = _pipeline(pipeline_parts)
        with pytest.raises(ProcessContentError) as exc_info:
            await pipeline.process(ProcessRequest(content_id="content-1", language="fr"))
        assert exc_info.value.status_code == 403
        assert exc_info.value.upgrade_required is True
        assert exc_info.value.tier == "free"

    @pytest.mark.asyncio
    async def test_starter_tier_analyzes_in_french(self, pipeline_parts, make_item) -> None:
        store = pipeline_parts["store"]
        store.set_user_tier("owner-a", "starter")
        await store.save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        result = await pipeline.process(ProcessRequest(content_id="content-1", language="fr"))

        assert result.language == "fr"
        assert (await store.get_analysis("content-1", "fr")).status is ProcessingStatus.COMPLETE
        (prompt,) = pipeline_parts["llm"].calls_for("brief_overview")
        assert "French" in prompt

    @pytest.mark.asyncio
    async def test_quota_exhausted_is_403_and_force_bypasses(
        self, pipeline_parts, make_item
    ) -> None:
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        for _ in range(5):
            await store.increment_usage("owner-a", current_period(), ANALYSES_FIELD)
        pipeline = _pipeline(pipeline_parts)

        with pytest.raises(ProcessContentError) as exc_info:
            await pipeline.process(ProcessRequest(content_id="content-1"))
        assert exc_info.value.status_code == 403
        assert exc_info.value.upgrade_required is True
        assert "Monthly analysis limit reached (5)" in exc_info.value.message

        result = await pipeline.process(
            ProcessRequest(content_id="content-1", force_regenerate=True)
        )
        assert result.success is True
        assert await store.get_usage_count("owner-a", current_period(), ANALYSES_FIELD) == 5

    @pytest.mark.asyncio
    async def test_successful_run_charges_one_analysis(self, pipeline_parts, make_item) -> None:
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        pipeline = _pipeline(pipeline_parts)

        await pipeline.process(ProcessRequest(content_id="content-1"))

        assert await store.get_usage_count("owner-a", current_period(), ANALYSES_FIELD) == 1

    @pytest.mark.asyncio
    async def test_rate_limiter_denial_is_429(self, pipeline_parts, make_item) -> None:
        store = pipeline_parts["store"]
        store.set_user_tier("owner-a", "pro")
        await store.save_content(make_item())
        pipeline = _pipeline(
            pipeline_parts,
            rate_limiter=RateLimiter(),
            options=PipelineOptions(rate_limit_requests=1),
        )

        await pipeline.process(ProcessRequest(content_id="content-1"))
        with pytest.raises(ProcessContentError) as exc_info:
            await pipeline.process(ProcessRequest(content_id="content-1"))
        assert exc_info.value.status_code == 429


# ======================================================================
# Moderation
# ======================================================================


class TestModeration:
    @pytest.mark.asyncio
    async def test_blocked_content_is_refused_then_short_circuits(
        self, pipeline_parts, make_item
    ) -> None:
        text = (
            "This guide explains how to synthesize sarin at home using common equipment. "
            "Step one covers the precursors."
        )
        store = pipeline_parts["store"]
        await store.save_content(make_item(raw_text=text))
        pipeline = _pipeline(pipeline_parts)

        result = await pipeline.process(ProcessRequest(content_id="content-1"))

        assert result.success is False
        assert result.stage is PipelineStage.REFUSED
        assert result.message == BLOCKED_MESSAGE
        assert (await store.get_content("content-1")).raw_text == POLICY_SENTINEL
        analysis = await store.get_analysis("content-1", "en")
        assert analysis.status is ProcessingStatus.REFUSED
        assert pipeline_parts["llm"].calls == []

        again = await pipeline.process(ProcessRequest(content_id="content-1"))
        assert again.success is False
        assert again.stage is PipelineStage.REFUSED
        assert "content policy" in again.message
        assert pipeline_parts["llm"].calls == []


# ======================================================================
# Cross-tenant cache
# ======================================================================


class TestCrossTenantCache:
    @pytest.mark.asyncio
    async def test_full_hit_serves_cached_analysis(self, pipeline_parts, make_item) -> None:
        store = pipeline_parts["store"]
        await store.save_content(make_item(id="source", owner="owner-b"))
        pipeline = _pipeline(pipeline_parts)
        store.set_user_tier("owner-b", "pro")
        await pipeline.process(ProcessRequest(content_id="source"))
        calls_before = len(pipeline_parts["llm"].calls)

        await store.save_content(make_item(id="mine", owner="owner-a"))
        result = await pipeline.process(ProcessRequest(content_id="mine"))

        assert result.cached is True
        assert result.message == CACHED_MESSAGE
        assert set(result.sections_generated) == ALL_SECTIONS
        assert len(pipeline_parts["llm"].calls) == calls_before
        assert len(await store.list_claims("mine")) == 2
        mine = await store.get_analysis("mine", "en")
        assert mine.status is ProcessingStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_text_only_hit_skips_acquisition_and_web_search(
        self, pipeline_parts, make_item
    ) -> None:
        store = pipeline_parts["store"]
        await store.save_content(
            make_item(id="source", owner="owner-b", raw_text="Cached article text. " * 30)
        )
        await store.save_content(make_item(id="mine", owner="owner-a"))
        pipeline = _pipeline(pipeline_parts)

        result = await pipeline.process(ProcessRequest(content_id="mine"))

        assert result.success is True
        assert result.cached is False
        assert (await store.get_content("mine")).raw_text.startswith("Cached article text.")
        pipeline_parts["article"].extract_content.assert_not_awaited()
        pipeline_parts["search"].search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_candidate_is_ignored(self, pipeline_parts, make_item) -> None:
        store = pipeline_parts["store"]
        stale = datetime.now(tz=timezone.utc) - timedelta(days=4)  # noqa: UP017
        await store.save_content(
            make_item(id="source", owner="owner-b", raw_text="Old text. " * 30, created_at=stale)
        )
        await store.save_content(make_item(id="mine", owner="owner-a"))
        pipeline = _pipeline(pipeline_parts)

        await pipeline.process(ProcessRequest(content_id="mine"))

        pipeline_parts["article"].extract_content.assert_awaited_once()


# ======================================================================
# Deadline
# ======================================================================


class TestDeadline:
    @pytest.mark.asyncio
    async def test_budget_exhausted_after_enrichment_is_partial(
        self, pipeline_parts, make_item
    ) -> None:
        clock = _Clock()
        llm = pipeline_parts["llm"]
        tone = llm.responses["tone_detection"]

        def _slow_tone(prompt: str) -> str:
            clock.now = 500.0
            return tone

        llm.responses["tone_detection"] = _slow_tone
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        pipeline = _pipeline(pipeline_parts, clock=clock)

        result = await pipeline.process(ProcessRequest(content_id="content-1"))

        assert result.success is True
        assert result.stage is PipelineStage.PARTIAL
        assert result.message == PARTIAL_MESSAGE
        assert llm.calls_for("triage") == []
        analysis = await store.get_analysis("content-1", "en")
        assert analysis.status is ProcessingStatus.PARTIAL

    @pytest.mark.asyncio
    async def test_budget_exhausted_during_generation_keeps_finished_sections(
        self, pipeline_parts, make_item
    ) -> None:
        clock = _Clock()
        llm = pipeline_parts["llm"]
        scripted_complete = llm.complete

        async def _complete(system_prompt: str, user_prompt: str, **kwargs: Any) -> str:
            if llm.prompt_type_of(system_prompt) == "detailed_summary":
                clock.now = 500.0
                await asyncio.Event().wait()
            return await scripted_complete(system_prompt, user_prompt, **kwargs)

        llm.complete = _complete
        store = pipeline_parts["store"]
        await store.save_content(make_item())
        pipeline = _pipeline(
            pipeline_parts, clock=clock, options=PipelineOptions(pipeline_timeout=0.2)
        )

        result = await pipeline.process(ProcessRequest(content_id="content-1"))

        assert result.stage is PipelineStage.PARTIAL
        assert result.message == PARTIAL_MESSAGE
        assert "triage" in result.sections_generated
        assert "brief_overview" in result.sections_generated
        assert "detailed_summary" not in result.sections_generated
        analysis = await store.get_analysis("content-1", "en")
        assert analysis.status is ProcessingStatus.PARTIAL
        assert "triage" in analysis.sections
        assert "detailed_summary" not in analysis.sections


# ======================================================================
# Podcast transcription lifecycle
# ======================================================================


class TestTranscription:
    @pytest.fixture()
    def transcriber(self) -> MagicMock:
        mock = MagicMock(spec=ITranscriptionProvider)
        mock.submit = AsyncMock(return_value="tx-1")
        mock.fetch = AsyncMock()
        mock.get_provider_name.return_value = "fake-transcriber"
        return mock

    @pytest.fixture()
    def resolver(self) -> MagicMock:
        mock = MagicMock(spec=PodcastAudioResolver)
        mock.resolve = AsyncMock(return_value="https://cdn.example.com/episode.mp3")
        return mock

    @staticmethod
    def _podcast(make_item) -> ContentItem:
        return make_item(
            id="pod-1", url="https://podcasts.example.com/show/ep-7", type=ContentType.PODCAST
        )

    @pytest.mark.asyncio
    async def test_submission_marks_transcribing(
        self, pipeline_parts, make_item, transcriber, resolver
    ) -> None:
        store = pipeline_parts["store"]
        await store.save_content(self._podcast(make_item))
        pipeline = _pipeline(pipeline_parts, transcriber=transcriber, resolver=resolver)

        result = await pipeline.process(ProcessRequest(content_id="pod-1"))

        assert result.success is True
        assert result.stage is PipelineStage.TRANSCRIBING
        assert result.transcript_id == "tx-1"
        assert result.message == TRANSCRIBING_MESSAGE
        transcriber.submit.assert_awaited_once_with(
            "https://cdn.example.com/episode.mp3", "https://hooks.example/transcripts"
        )
        item = await store.get_content("pod-1")
        assert item.transcript_id == "tx-1"
        assert item.metadata["audio_url"] == "https://cdn.example.com/episode.mp3"
        analysis = await store.get_analysis("pod-1", "en")
        assert analysis.status is ProcessingStatus.TRANSCRIBING

    @pytest.mark.asyncio
    async def test_callback_completes_analysis(
        self, pipeline_parts, make_item, transcriber, resolver
    ) -> None:
        store = pipeline_parts["store"]
        await store.save_content(self._podcast(make_item))
        pipeline = _pipeline(pipeline_parts, transcriber=transcriber, resolver=resolver)
        await pipeline.process(ProcessRequest(content_id="pod-1"))
        transcriber.parse_callback.return_value = TranscriptionResult(
            transcript_id="tx-1",
            status="completed",
            utterances=[
                Utterance(speaker="A", text="Welcome to the show about city cycling.", start_ms=0),
                Utterance(speaker="B", text="Thanks, glad to talk about the new lanes.", start_ms=65_000),
            ],
            duration_seconds=1800,
        )

        result = await pipeline.complete_transcription({"transcript_id": "tx-1"})

        assert result.success is True
        assert result.stage is PipelineStage.FINALIZED
        item = await store.get_content("pod-1")
        assert item.raw_text.startswith("[0:00] Speaker A: Welcome")
        assert "[1:05] Speaker B:" in item.raw_text
        assert item.metadata["duration"] == 1800
        analysis = await store.get_analysis("pod-1", "en")
        assert analysis.status is ProcessingStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_failed_transcription_writes_sentinel(
        self, pipeline_parts, make_item, transcriber, resolver
    ) -> None:
        store = pipeline_parts["store"]
        await store.save_content(self._podcast(make_item))
        pipeline = _pipeline(pipeline_parts, transcriber=transcriber, resolver=resolver)
        await pipeline.process(ProcessRequest(content_id="pod-1"))
        transcriber.parse_callback.return_value = TranscriptionResult(
            transcript_id="tx-1", status="error", error="audio too short"
        )

        result = await pipeline.complete_transcription({"transcript_id": "tx-1"})

        assert result.success is False
        assert result.stage is PipelineStage.PARTIAL
        item = await store.get_content("pod-1")
        assert item.raw_text == "PROCESSING_FAILED::TRANSCRIPTION::TRANSCRIPTION_FAILED"
        analysis = await store.get_analysis("pod-1", "en")
        assert analysis.status is ProcessingStatus.PARTIAL

    @pytest.mark.asyncio
    async def test_unknown_transcript_is_404(
        self, pipeline_parts, transcriber, resolver
    ) -> None:
        pipeline = _pipeline(pipeline_parts, transcriber=transcriber, resolver=resolver)
        transcriber.parse_callback.return_value = TranscriptionResult(
            transcript_id="nope", status="completed"
        )
        with pytest.raises(ProcessContentError) as exc_info:
            await pipeline.complete_transcription({"transcript_id": "nope"})
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_poll_reports_pending(
        self, pipeline_parts, make_item, transcriber, resolver
    ) -> None:
        store = pipeline_parts["store"]
        await store.save_content(self._podcast(make_item))
        pipeline = _pipeline(pipeline_parts, transcriber=transcriber, resolver=resolver)
        await pipeline.process(ProcessRequest(content_id="pod-1"))
        transcriber.fetch.return_value = TranscriptionResult(
            transcript_id="tx-1", status="processing"
        )

        result = await pipeline.poll_transcription("pod-1")

        assert result.stage is PipelineStage.TRANSCRIBING
        transcriber.fetch.assert_awaited_once_with("tx-1")
