"""Central orchestrator for the content-processing pipeline.

Sequences admission, cross-tenant caching, acquisition, moderation,
enrichment, parallel section generation, post-processing and self-heal
for one content item, under one global time budget.

    process(request)
      │  admission: credentials → content → ownership → rate → language → quota
      ▼
    cache ── full hit ──────────────────────────────────────────► FINALIZED (cached)
      │ text-only hit (no web search)
      ▼
    acquire ── failure ─────────────────────────────────────────► PARTIAL
      │ ── podcast submitted ───────────────────────────────────► TRANSCRIBING
      ▼ FETCHED
    moderate ── blocked ────────────────────────────────────────► REFUSED
      ▼ MODERATED
    enrich (best effort, shared deadline)
      ▼ ENRICHED ── pipeline deadline elapsed ──────────────────► PARTIAL
    generate six sections (settle-all, each persisted when done)
      ▼ GENERATED ── pipeline deadline elapsed ─────────────────► PARTIAL
    post-process (truth check gate, refusals, domain stats, claims)
    self-heal failed critical sections once
      ▼
    FINALIZED

Every collaborator is injected; the orchestrator never constructs one.
Side writes that must not delay the response (detected tone, analysis
language) run as background tasks; :meth:`ContentPipeline.drain_background`
awaits them.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from functools import partial
from typing import Any

import structlog
from pydantic import BaseModel, ValidationError

from src.config.languages import is_supported_language, language_directive
from src.config.tiers import tier_allows_multi_language
from src.interfaces.content_store import IContentStore
from src.interfaces.transcription_provider import ITranscriptionProvider, TranscriptionResult
from src.models.content import ContentItem, ContentType, ProcessingStatus
from src.models.pipeline import EnrichmentContext, PipelineStage, ProcessRequest, ProcessResult
from src.models.sections import (
    CRITICAL_SECTIONS,
    ActionItemsSection,
    AutoTagsSection,
    RefusalPayload,
    SectionType,
    TriageSection,
    TruthCheckSection,
)
from src.pipeline.progress_tracker import StageTracker
from src.services.acquisition import AcquisitionService, Failure
from src.services.citation_gate import apply_citation_gate
from src.services.content_cache import CacheHit, CrossTenantCache
from src.services.content_metadata import build_metadata_block, build_type_instructions
from src.services.enrichment import EnrichmentService, is_entertainment_url
from src.services.moderation import ContentModerator, detect_ai_refusal
from src.services.paywall import paywall_warning
from src.services.post_processing import AnalysisPostProcessor
from src.services.rate_limiter import RateLimiter
from src.services.section_generator import SectionContext, SectionGenerator, evidence_for
from src.services.transcript_formatter import format_utterances
from src.services.usage import UsageAdmission
from src.utils.concurrency import settle_all
from src.utils.error_classifier import (
    POLICY_SENTINEL,
    ErrorCategory,
    failure_sentinel,
    is_failure_sentinel,
    user_friendly_message,
)
from src.utils.errors import DatastoreError, ProcessContentError
from src.utils.logging import get_logger
from src.utils.timing import Stopwatch

REFUSED_OVERVIEW = "This content could not be analyzed because it may violate our content policy."
BLOCKED_MESSAGE = "This content cannot be analyzed because it may contain prohibited material."
SUCCESS_MESSAGE = "Content processed successfully."
CACHED_MESSAGE = "Content analysis served from cache."
PARTIAL_MESSAGE = "Content partially processed (timeout)."
NO_TEXT_MESSAGE = "Content processed, but no valid text found for summary."
TRANSCRIBING_MESSAGE = (
    "Podcast transcription started. Analysis will begin when transcription completes."
)
TRANSCRIPTION_PENDING_MESSAGE = "Transcription still in progress."

_PLACEHOLDER_TITLE_PREFIXES = ("Processing:", "Analyzing:")

# Sections whose results are held back until triage has been seen.
_DEFERRED_SECTIONS = (SectionType.TRUTH_CHECK, SectionType.ACTION_ITEMS)
# Sections checked for model refusals after generation.
_REFUSAL_CHECKED = (
    SectionType.BRIEF_OVERVIEW,
    SectionType.TRIAGE,
    SectionType.DETAILED_SUMMARY,
    SectionType.TRUTH_CHECK,
)


@dataclass(frozen=True)
class PipelineOptions:
    """Budgets and admission knobs, usually built from :class:`Settings`.

    ``missing_credentials`` lists required credentials that are not
    configured; any entry makes every run fail with a 500.
    """

    pipeline_timeout: float = 240.0
    enrichment_timeout: float = 20.0
    missing_credentials: tuple[str, ...] = ()
    rate_limit_requests: int = 30
    rate_limit_window_seconds: int = 60


def needs_title_fix(title: str | None) -> bool:
    return not title or title.startswith(_PLACEHOLDER_TITLE_PREFIXES)


def _stored_section(sections: dict[str, Any], section: SectionType, model: type[BaseModel]) -> Any:
    raw = sections.get(section.value)
    if raw is None:
        return None
    try:
        return model.model_validate(raw)
    except ValidationError:
        return None


class ContentPipeline:
    """Runs the analysis pipeline for one content item at a time.

    Parameters
    ----------
    store:
        Content, analysis and side-record persistence.
    acquisition:
        Routes items to their acquisition adapter.
    cache:
        Cross-tenant result cache.
    moderator:
        Pre-analysis screening and flag persistence.
    enrichment:
        Web, claim, tone, preference and domain context.
    generator:
        Per-section prompt rendering, retries and decoding.
    post_processor:
        Claims and domain statistics.
    usage:
        Tier lookup and monthly quota reservation.
    tracker:
        Stage tracking for status listeners.
    transcriber:
        Needed only for :meth:`poll_transcription` and callbacks.
    rate_limiter:
        Optional per-owner request limiter.
    options:
        Time budgets and admission settings.
    clock:
        Monotonic time source for the pipeline deadline.
    """

    def __init__(
        self,
        store: IContentStore,
        acquisition: AcquisitionService,
        cache: CrossTenantCache,
        moderator: ContentModerator,
        enrichment: EnrichmentService,
        generator: SectionGenerator,
        post_processor: AnalysisPostProcessor,
        usage: UsageAdmission,
        tracker: StageTracker | None = None,
        transcriber: ITranscriptionProvider | None = None,
        rate_limiter: RateLimiter | None = None,
        options: PipelineOptions | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._acquisition = acquisition
        self._cache = cache
        self._moderator = moderator
        self._enrichment = enrichment
        self._generator = generator
        self._post = post_processor
        self._usage = usage
        self._tracker = tracker or StageTracker()
        self._transcriber = transcriber
        self._rate_limiter = rate_limiter
        self._options = options or PipelineOptions()
        self._clock = clock
        self._background: set[asyncio.Future[Any]] = set()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def tracker(self) -> StageTracker:
        return self._tracker

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def process(self, request: ProcessRequest) -> ProcessResult:
        """Analyze one content item.

        Raises
        ------
        ProcessContentError
            500 for missing configuration, 404 for unknown content, 400
            for an unsupported language, 403 for ownership, tier or
            quota denial, 429 when the rate limiter denies.
        """
        watch = Stopwatch(self._clock)
        if self._options.missing_credentials:
            self._logger.error(
                "pipeline_misconfigured", missing=list(self._options.missing_credentials)
            )
            raise ProcessContentError("Server configuration error: Missing API keys.", 500)

        item = await self._load_content(request.content_id)
        with structlog.contextvars.bound_contextvars(content_id=item.id, owner=item.owner):
            await self._admit(item, request)
            if item.raw_text == POLICY_SENTINEL and not request.force_regenerate:
                self._logger.info("refused_content_short_circuit")
                return self._result(
                    item,
                    request.language,
                    PipelineStage.REFUSED,
                    success=False,
                    message=user_friendly_message(
                        item.type.value, ErrorCategory.CONTENT_POLICY_VIOLATION
                    ),
                )
            if not request.force_regenerate:
                await self._reserve_usage(item)

            self._tracker.reset(item.id)
            self._logger.info(
                "pipeline_started",
                content_type=item.type.value,
                language=request.language,
                force=request.force_regenerate,
            )
            return await self._run(item, request, watch)

    async def complete_transcription(self, payload: dict) -> ProcessResult:
        """Handle a transcription webhook and continue the analysis.

        Raises
        ------
        ProcessContentError
            500 if no transcriber is configured, 400 for a payload without
            a transcript id or for a non-podcast item, 404 for an unknown
            transcript id.
        """
        transcriber = self._require_transcriber()
        result = transcriber.parse_callback(payload)
        if not result.transcript_id:
            raise ProcessContentError("Missing transcript_id", 400)

        try:
            item = await self._store.find_content_by_transcript_id(result.transcript_id)
        except DatastoreError as exc:
            self._logger.error("transcript_lookup_failed", error=exc.message)
            item = None
        if item is None:
            raise ProcessContentError("Unknown transcript_id", 404)
        if item.type is not ContentType.PODCAST:
            raise ProcessContentError("Content is not a podcast", 400)

        with structlog.contextvars.bound_contextvars(content_id=item.id, owner=item.owner):
            return await self._finish_transcription(item, result)

    async def poll_transcription(self, content_id: str) -> ProcessResult:
        """Polling fallback for a transcription whose callback never arrived."""
        transcriber = self._require_transcriber()
        item = await self._load_content(content_id)
        if not item.transcript_id:
            raise ProcessContentError("No transcription in progress for this content.", 400)

        with structlog.contextvars.bound_contextvars(content_id=item.id, owner=item.owner):
            result = await transcriber.fetch(item.transcript_id)
            if not result.is_finished:
                return self._result(
                    item,
                    item.analysis_language,
                    PipelineStage.TRANSCRIBING,
                    message=TRANSCRIPTION_PENDING_MESSAGE,
                    transcript_id=item.transcript_id,
                )
            return await self._finish_transcription(item, result)

    async def drain_background(self) -> None:
        """Wait for every pending background side write."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    async def _load_content(self, content_id: str) -> ContentItem:
        try:
            item = await self._store.get_content(content_id)
        except DatastoreError as exc:
            self._logger.error("content_fetch_failed", content_id=content_id, error=exc.message)
            item = None
        if item is None:
            raise ProcessContentError("Content not found", 404)
        return item

    async def _admit(self, item: ContentItem, request: ProcessRequest) -> None:
        if request.owner_id and item.owner != request.owner_id:
            raise ProcessContentError("Access denied", 403)

        if self._rate_limiter is not None:
            limit = await self._rate_limiter.check(
                f"process:{item.owner}",
                self._options.rate_limit_requests,
                self._options.rate_limit_window_seconds * 1000,
            )
            if not limit.allowed:
                raise ProcessContentError("Too many requests. Please try again later.", 429)

        if not is_supported_language(request.language):
            raise ProcessContentError(f"Unsupported language: {request.language}", 400)
        if request.language != "en":
            tier = await self._usage.tier_for(item.owner)
            if not tier_allows_multi_language(tier):
                raise ProcessContentError(
                    "Multi-language analysis requires a Starter plan or higher.",
                    403,
                    upgrade_required=True,
                    tier=tier.value,
                )

    async def _reserve_usage(self, item: ContentItem) -> None:
        admission = await self._usage.reserve(item.owner, item.type)
        if not admission.allowed:
            raise ProcessContentError(
                admission.denial_message,
                403,
                upgrade_required=True,
                tier=admission.tier.value,
            )

    # ------------------------------------------------------------------
    # Pipeline body
    # ------------------------------------------------------------------

    async def _run(self, item: ContentItem, request: ProcessRequest, watch: Stopwatch) -> ProcessResult:
        language = request.language
        web_search = True

        if request.force_regenerate:
            item = await self._reset_for_regeneration(item, language)
        else:
            hit = await self._cache.lookup(item, language)
            if hit is not None and hit.kind == "full":
                cached = await self._serve_cached(item, hit, language)
                if cached is not None:
                    return cached
            elif hit is not None:
                copied = await self._cache.clone_text(item, hit)
                if copied is not None:
                    item = copied
                    web_search = False

        if not request.skip_acquisition and self._needs_acquisition(item, request):
            acquired = await self._acquire(item, language)
            if isinstance(acquired, ProcessResult):
                return acquired
            item = acquired
        await self._tracker.advance(item.id, PipelineStage.FETCHED)

        if not item.raw_text or is_failure_sentinel(item.raw_text):
            self._logger.warning("no_valid_text", reason=(item.raw_text or "")[:80])
            return self._result(item, language, PipelineStage.FINALIZED, message=NO_TEXT_MESSAGE)

        return await self._analyze(item, language, watch, web_search=web_search)

    async def _analyze(
        self,
        item: ContentItem,
        language: str,
        watch: Stopwatch,
        web_search: bool = True,
    ) -> ProcessResult:
        text = item.raw_text or ""
        await self._store.upsert_analysis(item.id, language, status=ProcessingStatus.PENDING)

        screening = await self._moderator.screen(item, text)
        if screening.blocked:
            return await self._refuse(item, language)
        await self._tracker.advance(item.id, PipelineStage.MODERATED)

        warnings: list[str] = []
        warning = paywall_warning(item.url, text, item.type)
        if warning:
            warnings.append(warning)

        enrichment = await self._enrichment.enrich(
            item,
            text,
            timeout=min(
                self._options.enrichment_timeout,
                watch.remaining(self._options.pipeline_timeout),
            ),
            web_search=web_search,
        )
        if enrichment.tone_label != "neutral":
            self._spawn(
                self._store.update_content(item.id, detected_tone=enrichment.tone_label),
                "detected_tone",
            )
        await self._tracker.advance(item.id, PipelineStage.ENRICHED)

        generated: list[str] = []
        if watch.expired(self._options.pipeline_timeout):
            return await self._partial(item, language, generated, warnings, "after_enrichment")

        category = "entertainment" if is_entertainment_url(item.url) else None
        base = SectionContext(
            content_type=item.type.value,
            language_directive=language_directive(language),
            tone_directive=enrichment.tone_directive,
            preference_block=enrichment.preference_block,
            metadata_block=build_metadata_block(item),
            type_instructions=build_type_instructions(item, category),
        )
        payloads, failed = await self._generate_all(
            item, language, text, base, enrichment, generated, watch
        )
        await self._tracker.advance(item.id, PipelineStage.GENERATED)

        if watch.expired(self._options.pipeline_timeout):
            return await self._partial(item, language, generated, warnings, "after_generation")

        triage = payloads.get(SectionType.TRIAGE)
        triage = triage if isinstance(triage, TriageSection) else None
        truth_check = await self._finish_deferred(
            item, language, payloads, failed, triage, enrichment, generated
        )
        await self._record_refusals(item, text, payloads)
        await self._post.record_domain_stats(item.url, triage, truth_check)
        if truth_check is not None:
            await self._post.replace_claims(item, truth_check)

        await self._self_heal(item, language, text, base, failed, truth_check, generated, watch)

        await self._store.upsert_analysis(
            item.id,
            language,
            status=ProcessingStatus.COMPLETE,
            model_name=self._generator.model_name,
        )
        self._spawn(
            self._store.update_content(item.id, analysis_language=language), "analysis_language"
        )
        await self._tracker.advance(item.id, PipelineStage.FINALIZED)
        self._logger.info(
            "pipeline_complete",
            sections=generated,
            failed=[section.value for section in failed],
            elapsed_ms=watch.elapsed_ms(),
        )
        return self._result(
            item,
            language,
            PipelineStage.FINALIZED,
            message=SUCCESS_MESSAGE,
            sections=generated,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Cache / regeneration / acquisition
    # ------------------------------------------------------------------

    async def _serve_cached(
        self, item: ContentItem, hit: CacheHit, language: str
    ) -> ProcessResult | None:
        if not await self._cache.clone_full(item, hit, language) or hit.analysis is None:
            self._logger.warning("cache_clone_fallback")
            return None
        sections = hit.analysis.sections
        await self._post.record_domain_stats(
            item.url,
            _stored_section(sections, SectionType.TRIAGE, TriageSection),
            _stored_section(sections, SectionType.TRUTH_CHECK, TruthCheckSection),
        )
        await self._tracker.advance(item.id, PipelineStage.FINALIZED, CACHED_MESSAGE)
        return self._result(
            item,
            language,
            PipelineStage.FINALIZED,
            message=CACHED_MESSAGE,
            sections=[s.value for s in SectionType if sections.get(s.value) is not None],
            cached=True,
        )

    async def _reset_for_regeneration(self, item: ContentItem, language: str) -> ContentItem:
        await self._store.upsert_analysis(
            item.id, language, status=ProcessingStatus.PENDING, reset=True
        )
        try:
            return await self._store.update_content(
                item.id, regeneration_count=item.regeneration_count + 1
            )
        except DatastoreError as exc:
            self._logger.warning("regeneration_count_failed", error=exc.message)
            return item

    @staticmethod
    def _needs_acquisition(item: ContentItem, request: ProcessRequest) -> bool:
        return (
            request.force_regenerate
            or not item.raw_text
            or is_failure_sentinel(item.raw_text)
        )

    async def _acquire(self, item: ContentItem, language: str) -> ContentItem | ProcessResult:
        outcome = await self._acquisition.acquire(item)
        if isinstance(outcome, Failure):
            return await self._acquisition_failed(item, language, outcome)

        acquired = outcome.value
        updates: dict[str, Any] = {"metadata": {**item.metadata, **acquired.metadata}}
        if acquired.title and needs_title_fix(item.title):
            updates["title"] = acquired.title

        if acquired.pending_transcription:
            await self._store.update_content(
                item.id,
                **updates,
                transcript_id=acquired.transcript_id,
                analysis_language=language,
            )
            await self._store.upsert_analysis(
                item.id, language, status=ProcessingStatus.TRANSCRIBING
            )
            await self._tracker.advance(item.id, PipelineStage.TRANSCRIBING, TRANSCRIBING_MESSAGE)
            self._logger.info("transcription_submitted", transcript_id=acquired.transcript_id)
            return self._result(
                item,
                language,
                PipelineStage.TRANSCRIBING,
                message=TRANSCRIBING_MESSAGE,
                transcript_id=acquired.transcript_id,
            )

        return await self._store.update_content(item.id, **updates, raw_text=acquired.text)

    async def _acquisition_failed(
        self, item: ContentItem, language: str, failure: Failure
    ) -> ProcessResult:
        self._logger.error(
            "acquisition_failed",
            category=failure.category.value,
            subtype=failure.subtype.value if failure.subtype else None,
            error=failure.detail,
        )
        sentinel = failure_sentinel(item.type.value, failure.category, failure.subtype)
        await self._write_failure(item, language, sentinel)
        message = failure.user_message or user_friendly_message(
            item.type.value, failure.category, failure.subtype
        )
        await self._tracker.advance(item.id, PipelineStage.PARTIAL, message)
        return self._result(item, language, PipelineStage.PARTIAL, success=False, message=message)

    async def _finish_transcription(
        self, item: ContentItem, result: TranscriptionResult
    ) -> ProcessResult:
        language = item.analysis_language
        text = ""
        if result.status == "completed":
            text = format_utterances(result.utterances)[0] if result.utterances else ""
            text = text or (result.text or "").strip()

        if not text:
            self._logger.error(
                "transcription_failed", status=result.status, error=result.error or "empty"
            )
            sentinel = failure_sentinel("TRANSCRIPTION", ErrorCategory.TRANSCRIPTION_FAILED)
            await self._write_failure(item, language, sentinel, mark_partial=True)
            message = user_friendly_message(item.type.value, ErrorCategory.TRANSCRIPTION_FAILED)
            await self._tracker.advance(item.id, PipelineStage.PARTIAL, message)
            return self._result(
                item, language, PipelineStage.PARTIAL, success=False, message=message
            )

        metadata = dict(item.metadata)
        if result.duration_seconds:
            metadata["duration"] = result.duration_seconds
        item = await self._store.update_content(item.id, raw_text=text, metadata=metadata)
        self._logger.info("transcription_complete", chars=len(text))
        await self._tracker.advance(item.id, PipelineStage.FETCHED)
        return await self._analyze(item, language, Stopwatch(self._clock))

    async def _write_failure(
        self, item: ContentItem, language: str, sentinel: str, mark_partial: bool = False
    ) -> None:
        # Analysis rows exist only once generation was attempted; acquisition
        # failures leave just the content sentinel.
        try:
            await self._store.update_content(item.id, raw_text=sentinel)
            if mark_partial:
                await self._store.upsert_analysis(
                    item.id, language, status=ProcessingStatus.PARTIAL
                )
        except DatastoreError as exc:
            self._logger.error("failure_sentinel_write_failed", error=exc.message)

    # ------------------------------------------------------------------
    # Terminal side exits
    # ------------------------------------------------------------------

    async def _refuse(self, item: ContentItem, language: str) -> ProcessResult:
        await self._store.update_content(item.id, raw_text=POLICY_SENTINEL)
        await self._store.upsert_analysis(
            item.id,
            language,
            sections={SectionType.BRIEF_OVERVIEW.value: {"kind": "text", "text": REFUSED_OVERVIEW}},
            status=ProcessingStatus.REFUSED,
        )
        await self._tracker.advance(item.id, PipelineStage.REFUSED, BLOCKED_MESSAGE)
        return self._result(
            item, language, PipelineStage.REFUSED, success=False, message=BLOCKED_MESSAGE
        )

    async def _partial(
        self,
        item: ContentItem,
        language: str,
        generated: list[str],
        warnings: list[str],
        checkpoint: str,
    ) -> ProcessResult:
        self._logger.warning("pipeline_deadline_elapsed", checkpoint=checkpoint)
        await self._store.upsert_analysis(item.id, language, status=ProcessingStatus.PARTIAL)
        await self._tracker.advance(item.id, PipelineStage.PARTIAL, PARTIAL_MESSAGE)
        return self._result(
            item,
            language,
            PipelineStage.PARTIAL,
            message=PARTIAL_MESSAGE,
            sections=generated,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Section generation
    # ------------------------------------------------------------------

    async def _generate_all(
        self,
        item: ContentItem,
        language: str,
        text: str,
        base: SectionContext,
        enrichment: EnrichmentContext,
        generated: list[str],
        watch: Stopwatch,
    ) -> tuple[dict[SectionType, Any], list[SectionType]]:
        branches = {
            section.value: self._produce(
                item,
                language,
                section,
                text,
                _with_evidence(base, evidence_for(section, enrichment)),
                generated,
                persist=section not in _DEFERRED_SECTIONS,
            )
            for section in SectionType
        }
        settled = await settle_all(
            branches, timeout=watch.remaining(self._options.pipeline_timeout)
        )

        payloads: dict[SectionType, Any] = {}
        failed: list[SectionType] = []
        for name, outcome in settled.items():
            section = SectionType(name)
            if outcome.ok:
                payloads[section] = outcome.value
                continue
            failed.append(section)
            self._logger.warning(
                "section_failed",
                section=name,
                timed_out=outcome.timed_out,
                error=str(outcome.error) if outcome.error else None,
            )
        return payloads, failed

    async def _produce(
        self,
        item: ContentItem,
        language: str,
        section: SectionType,
        text: str,
        context: SectionContext,
        generated: list[str],
        persist: bool = True,
    ) -> Any:
        """Generate *section*; persist it immediately unless deferred."""
        payload = await self._generator.generate(section, text, context)
        if not persist or isinstance(payload, RefusalPayload):
            return payload
        await self._persist_section(item, language, section, payload, generated)
        return payload

    async def _persist_section(
        self,
        item: ContentItem,
        language: str,
        section: SectionType,
        payload: BaseModel,
        generated: list[str],
    ) -> None:
        if isinstance(payload, AutoTagsSection):
            if not payload.tags:
                self._logger.warning("auto_tags_empty")
                return
            await self._store.update_content(item.id, tags=list(payload.tags))
        await self._store.upsert_analysis(
            item.id,
            language,
            sections={section.value: payload.model_dump()},
            model_name=self._generator.model_name,
        )
        generated.append(section.value)

    async def _finish_deferred(
        self,
        item: ContentItem,
        language: str,
        payloads: dict[SectionType, Any],
        failed: list[SectionType],
        triage: TriageSection | None,
        enrichment: EnrichmentContext,
        generated: list[str],
    ) -> TruthCheckSection | None:
        """Gate and persist truth check and action items; returns the stored truth check."""
        if triage is not None and triage.is_non_informational:
            self._logger.info("truth_check_skipped", category=triage.content_category)
            return None

        truth_check = payloads.get(SectionType.TRUTH_CHECK)
        stored: TruthCheckSection | None = None
        if isinstance(truth_check, TruthCheckSection):
            gated = apply_citation_gate(truth_check, enrichment.available_sources)
            try:
                await self._persist_section(
                    item, language, SectionType.TRUTH_CHECK, gated, generated
                )
                stored = gated
            except DatastoreError as exc:
                self._logger.error("section_persist_failed", section="truth_check", error=exc.message)
        if stored is None and SectionType.TRUTH_CHECK not in failed:
            if not isinstance(truth_check, RefusalPayload):
                failed.append(SectionType.TRUTH_CHECK)

        action_items = payloads.get(SectionType.ACTION_ITEMS)
        if isinstance(action_items, ActionItemsSection):
            try:
                await self._persist_section(
                    item, language, SectionType.ACTION_ITEMS, action_items, generated
                )
            except DatastoreError as exc:
                self._logger.error(
                    "section_persist_failed", section="action_items", error=exc.message
                )
        return stored

    async def _record_refusals(
        self, item: ContentItem, text: str, payloads: dict[SectionType, Any]
    ) -> None:
        for section in _REFUSAL_CHECKED:
            flag = detect_ai_refusal(payloads.get(section))
            if flag is None:
                continue
            self._logger.warning("ai_refusal", section=section.value, reason=flag.reason)
            await self._moderator.record(item, flag, text)

    async def _self_heal(
        self,
        item: ContentItem,
        language: str,
        text: str,
        base: SectionContext,
        failed: list[SectionType],
        truth_check: TruthCheckSection | None,
        generated: list[str],
        watch: Stopwatch,
    ) -> None:
        """Retry each failed critical section once, without web evidence."""
        retry = [section for section in CRITICAL_SECTIONS if section in failed]
        if not retry:
            return
        remaining = watch.remaining(self._options.pipeline_timeout)
        if remaining <= 0:
            self._logger.warning("self_heal_skipped", sections=[s.value for s in retry])
            return

        context = SectionContext(
            content_type=base.content_type,
            language_directive=base.language_directive,
            tone_directive=base.tone_directive,
        )
        self._logger.info("self_heal_started", sections=[s.value for s in retry])
        settled = await settle_all(
            {
                section.value: self._produce(item, language, section, text, context, generated)
                for section in retry
            },
            timeout=remaining,
        )
        for name, outcome in settled.items():
            if not outcome.ok:
                self._logger.warning("self_heal_failed", section=name)
                continue
            if isinstance(outcome.value, TriageSection):
                await self._post.record_domain_stats(item.url, outcome.value, truth_check)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_transcriber(self) -> ITranscriptionProvider:
        if self._transcriber is None:
            raise ProcessContentError("Podcast transcription is not configured.", 500)
        return self._transcriber

    def _spawn(self, coro: Coroutine[Any, Any, Any], label: str) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(partial(self._background_done, label))

    def _background_done(self, label: str, task: asyncio.Future[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.warning("background_write_failed", task=label, error=str(exc))

    @staticmethod
    def _result(
        item: ContentItem,
        language: str,
        stage: PipelineStage,
        success: bool = True,
        message: str = "",
        sections: list[str] | None = None,
        warnings: list[str] | None = None,
        cached: bool = False,
        transcript_id: str | None = None,
    ) -> ProcessResult:
        return ProcessResult(
            success=success,
            content_id=item.id,
            cached=cached,
            sections_generated=list(sections or []),
            language=language,
            message=message,
            warnings=list(warnings or []),
            transcript_id=transcript_id,
            stage=stage,
        )


def _with_evidence(base: SectionContext, web_context: str) -> SectionContext:
    return SectionContext(
        content_type=base.content_type,
        language_directive=base.language_directive,
        tone_directive=base.tone_directive,
        preference_block=base.preference_block,
        metadata_block=base.metadata_block,
        type_instructions=base.type_instructions,
        web_context=web_context,
    )
