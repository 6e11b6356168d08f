"""Podcast acquisition: find a playable audio URL, then queue transcription.

Audio resolution is an ordered list of strategies, each answering
``can_handle(url)`` cheaply and ``resolve(context)`` with an audio URL or
``None``.  The resolver walks the list until one succeeds or the shared
deadline elapses:

    1. spotify          — no public audio; raises an actionable error
    2. direct_audio     — URL already ends in an audio extension
    3. url_rewrite      — Dropbox / Google Drive share links (no network)
    4. apple_podcasts   — iTunes lookup → feed → fuzzy episode match
    5. rss_feed         — URL is itself a feed → fuzzy episode match
    6. audio_tag        — <audio src> / <source src> on the page
    7. og_audio         — <meta property="og:audio">
    8. audio_link       — <a href> pointing at an audio file
    9. linked_feed      — <link rel="alternate" type="application/rss+xml">
   10. head_sniff       — HEAD request answers with an audio/* content type

Strategies 6–9 share one page fetch through the context.
"""

from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from urllib.parse import parse_qs, urlencode, urljoin, urlsplit, urlunsplit

import httpx
import structlog
from bs4 import BeautifulSoup

from src.interfaces.transcription_provider import ITranscriptionProvider
from src.models.content import ContentItem
from src.services.acquisition.feeds import EpisodeHint, match_episode, parse_feed
from src.services.acquisition.result import Acquired, AcquisitionResult, Failure, Ok
from src.utils.error_classifier import AcquisitionSubtype, ErrorCategory
from src.utils.errors import PodcastResolutionError, ProviderError
from src.utils.logging import get_logger

_FETCH_TIMEOUT = 10.0
_WATERFALL_TIMEOUT = 45.0
_AUDIO_EXTENSIONS = (".mp3", ".m4a", ".aac", ".wav", ".ogg", ".oga", ".opus", ".flac")
_FEED_HOST_MARKERS = (
    "feeds.",
    "anchor.fm",
    "feeds.buzzsprout.com",
    "feeds.transistor.fm",
    "feeds.megaphone.fm",
    "feeds.simplecast.com",
    "feeds.libsyn.com",
    "feeds.acast.com",
    "feeds.podbean.com",
)
_APPLE_ID_RE = re.compile(r"/id(\d+)")
_DRIVE_FILE_RE = re.compile(r"/file/d/([^/]+)")

SPOTIFY_MESSAGE = (
    "Spotify doesn't expose RSS feeds publicly. Paste the podcast's RSS feed URL "
    "instead, or use an Apple Podcasts link."
)
NOT_FOUND_MESSAGE = (
    "We couldn't find a playable audio file for this podcast. Paste the episode's "
    "direct audio URL or the podcast's RSS feed URL instead."
)


def _host(url: str) -> str:
    host = (urlsplit(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def has_audio_extension(url: str) -> bool:
    return urlsplit(url).path.lower().endswith(_AUDIO_EXTENSIONS)


def looks_like_feed(url: str) -> bool:
    path = urlsplit(url).path.lower()
    lowered = url.lower()
    return (
        path.endswith((".xml", ".rss", ".atom"))
        or "/feed" in path
        or "/rss" in path
        or any(marker in lowered for marker in _FEED_HOST_MARKERS)
    )


class ResolutionContext:
    """Per-request state shared by the strategies (URL, hint, page cache)."""

    def __init__(self, url: str, hint: EpisodeHint, client: httpx.AsyncClient) -> None:
        self.url = url
        self.hint = hint
        self.client = client
        self._page: BeautifulSoup | None = None
        self._page_fetched = False

    async def get_text(self, url: str) -> str:
        response = await self.client.get(url, timeout=_FETCH_TIMEOUT, follow_redirects=True)
        response.raise_for_status()
        return response.text

    async def page(self) -> BeautifulSoup | None:
        """The parsed HTML of :attr:`url`, fetched at most once."""
        if not self._page_fetched:
            self._page_fetched = True
            try:
                self._page = BeautifulSoup(await self.get_text(self.url), "html.parser")
            except httpx.HTTPError:
                self._page = None
        return self._page

    async def episode_from_feed(self, feed_url: str) -> str | None:
        episode = match_episode(parse_feed(await self.get_text(feed_url)), self.hint)
        return episode.audio_url if episode else None


class AudioStrategy(ABC):
    """One way of turning a podcast URL into a playable audio URL."""

    name: str = "strategy"

    @abstractmethod
    def can_handle(self, url: str) -> bool:
        """Cheap check, no network."""

    @abstractmethod
    async def resolve(self, context: ResolutionContext) -> str | None:
        """Return an audio URL, or ``None`` to let the next strategy try."""


class SpotifyStrategy(AudioStrategy):
    name = "spotify"

    def can_handle(self, url: str) -> bool:
        return _host(url) in ("open.spotify.com", "spotify.com")

    async def resolve(self, context: ResolutionContext) -> str | None:
        raise PodcastResolutionError(message=SPOTIFY_MESSAGE, provider_name="spotify")


class DirectAudioStrategy(AudioStrategy):
    name = "direct_audio"

    def can_handle(self, url: str) -> bool:
        return has_audio_extension(url)

    async def resolve(self, context: ResolutionContext) -> str | None:
        return context.url


class UrlRewriteStrategy(AudioStrategy):
    name = "url_rewrite"

    def can_handle(self, url: str) -> bool:
        return _host(url) in ("dropbox.com", "drive.google.com")

    async def resolve(self, context: ResolutionContext) -> str | None:
        parts = urlsplit(context.url)
        if _host(context.url) == "dropbox.com":
            query = parse_qs(parts.query)
            query["dl"] = ["1"]
            return urlunsplit(parts._replace(query=urlencode(query, doseq=True)))
        match = _DRIVE_FILE_RE.search(parts.path)
        if match:
            return f"https://drive.google.com/uc?export=download&id={match.group(1)}"
        return None


class ApplePodcastsStrategy(AudioStrategy):
    name = "apple_podcasts"
    _LOOKUP_URL = "https://itunes.apple.com/lookup"

    def can_handle(self, url: str) -> bool:
        return _host(url) in ("podcasts.apple.com", "itunes.apple.com") and bool(
            _APPLE_ID_RE.search(urlsplit(url).path)
        )

    async def resolve(self, context: ResolutionContext) -> str | None:
        podcast_id = _APPLE_ID_RE.search(urlsplit(context.url).path).group(1)  # type: ignore[union-attr]
        response = await context.client.get(
            self._LOOKUP_URL,
            params={"id": podcast_id, "entity": "podcast"},
            timeout=_FETCH_TIMEOUT,
        )
        response.raise_for_status()
        results = response.json().get("results") or []
        feed_url = results[0].get("feedUrl") if results else None
        if not feed_url:
            return None
        return await context.episode_from_feed(feed_url)


class RssFeedStrategy(AudioStrategy):
    name = "rss_feed"

    def can_handle(self, url: str) -> bool:
        return looks_like_feed(url)

    async def resolve(self, context: ResolutionContext) -> str | None:
        return await context.episode_from_feed(context.url)


class AudioTagStrategy(AudioStrategy):
    name = "audio_tag"

    def can_handle(self, url: str) -> bool:
        return True

    async def resolve(self, context: ResolutionContext) -> str | None:
        page = await context.page()
        if page is None:
            return None
        for audio in page.find_all("audio"):
            src = audio.get("src")
            if not src:
                source = audio.find("source", src=True)
                src = source.get("src") if source else None
            if src:
                return urljoin(context.url, src)
        return None


class OgAudioStrategy(AudioStrategy):
    name = "og_audio"
    _PROPERTIES = ("og:audio", "og:audio:url", "og:audio:secure_url")

    def can_handle(self, url: str) -> bool:
        return True

    async def resolve(self, context: ResolutionContext) -> str | None:
        page = await context.page()
        if page is None:
            return None
        for prop in self._PROPERTIES:
            meta = page.find("meta", attrs={"property": prop})
            if meta and meta.get("content"):
                return urljoin(context.url, meta["content"])
        return None


class AudioLinkStrategy(AudioStrategy):
    name = "audio_link"

    def can_handle(self, url: str) -> bool:
        return True

    async def resolve(self, context: ResolutionContext) -> str | None:
        page = await context.page()
        if page is None:
            return None
        for anchor in page.find_all("a", href=True):
            href = urljoin(context.url, anchor["href"])
            if has_audio_extension(href):
                return href
        return None


class LinkedFeedStrategy(AudioStrategy):
    name = "linked_feed"
    _FEED_TYPES = ("application/rss+xml", "application/atom+xml")

    def can_handle(self, url: str) -> bool:
        return True

    async def resolve(self, context: ResolutionContext) -> str | None:
        page = await context.page()
        if page is None:
            return None
        for link in page.find_all("link", href=True):
            if (link.get("type") or "").lower() in self._FEED_TYPES:
                audio = await context.episode_from_feed(urljoin(context.url, link["href"]))
                if audio:
                    return audio
        return None


class HeadSniffStrategy(AudioStrategy):
    name = "head_sniff"

    def can_handle(self, url: str) -> bool:
        return True

    async def resolve(self, context: ResolutionContext) -> str | None:
        response = await context.client.head(
            context.url, timeout=_FETCH_TIMEOUT, follow_redirects=True
        )
        content_type = response.headers.get("content-type", "").lower()
        if response.is_success and content_type.startswith("audio/"):
            return str(response.url)
        return None


def default_strategies() -> list[AudioStrategy]:
    return [
        SpotifyStrategy(),
        DirectAudioStrategy(),
        UrlRewriteStrategy(),
        ApplePodcastsStrategy(),
        RssFeedStrategy(),
        AudioTagStrategy(),
        OgAudioStrategy(),
        AudioLinkStrategy(),
        LinkedFeedStrategy(),
        HeadSniffStrategy(),
    ]


class PodcastAudioResolver:
    """Runs the strategy waterfall under one shared deadline."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        strategies: list[AudioStrategy] | None = None,
        timeout: float = _WATERFALL_TIMEOUT,
    ) -> None:
        self._client = http_client or httpx.AsyncClient(
            headers={"User-Agent": "Mozilla/5.0 (compatible; ContentLens/0.1)"}
        )
        self._strategies = strategies if strategies is not None else default_strategies()
        self._timeout = timeout
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def resolve(self, url: str, hint: EpisodeHint | None = None) -> str:
        """Return a playable audio URL for *url*.

        Raises
        ------
        PodcastResolutionError
            If no strategy finds audio before the deadline, or a strategy
            knows the platform never exposes audio.
        """
        context = ResolutionContext(url, hint or EpisodeHint(), self._client)
        try:
            audio_url = await asyncio.wait_for(self._run(context), timeout=self._timeout)
        except asyncio.TimeoutError as exc:  # noqa: UP041
            self._logger.warning("podcast_resolution_timed_out", url=url, timeout=self._timeout)
            raise PodcastResolutionError(message=NOT_FOUND_MESSAGE) from exc

        if audio_url is None:
            raise PodcastResolutionError(message=NOT_FOUND_MESSAGE)
        return audio_url

    async def _run(self, context: ResolutionContext) -> str | None:
        for strategy in self._strategies:
            if not strategy.can_handle(context.url):
                continue
            try:
                audio_url = await strategy.resolve(context)
            except PodcastResolutionError:
                raise
            except (httpx.HTTPError, ValueError, KeyError) as exc:
                self._logger.debug(
                    "podcast_strategy_failed", strategy=strategy.name, error=str(exc)
                )
                continue
            if audio_url:
                self._logger.info(
                    "podcast_audio_resolved", strategy=strategy.name, url=context.url
                )
                return audio_url
        return None


def episode_hint_for(item: ContentItem) -> EpisodeHint:
    """Build the matching hint from what the item already knows."""
    title = item.title
    if not title and _host(item.url) == "podcasts.apple.com":
        # /us/podcast/<episode-slug>/id123?i=456
        segments = [s for s in urlsplit(item.url).path.split("/") if s]
        if len(segments) >= 3 and segments[1] == "podcast":
            title = segments[2].replace("-", " ")
    duration = item.metadata.get("duration")
    return EpisodeHint(
        title=title,
        duration_seconds=int(duration) if isinstance(duration, (int, float)) else None,
    )


class PodcastAcquirer:
    """Resolves audio and submits it for asynchronous transcription."""

    def __init__(
        self,
        resolver: PodcastAudioResolver,
        transcriber: ITranscriptionProvider,
        callback_url: str | None = None,
    ) -> None:
        self._resolver = resolver
        self._transcriber = transcriber
        self._callback_url = callback_url or None
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def acquire(self, item: ContentItem) -> AcquisitionResult:
        try:
            audio_url = await self._resolver.resolve(item.url, episode_hint_for(item))
        except PodcastResolutionError as exc:
            return Failure(
                category=ErrorCategory.ACQUISITION_FAILED,
                subtype=AcquisitionSubtype.AUDIO_RESOLUTION_FAILED,
                detail=exc.message,
                user_message=exc.message,
            )

        try:
            transcript_id = await self._transcriber.submit(audio_url, self._callback_url)
        except ProviderError as exc:
            self._logger.error("transcription_submit_failed", error=exc.message)
            return Failure(
                category=ErrorCategory.TRANSCRIPTION_FAILED,
                retryable=exc.retryable,
                detail=exc.message,
            )
        if not transcript_id:
            return Failure(
                category=ErrorCategory.TRANSCRIPTION_FAILED,
                detail="transcription returned no id",
            )

        return Ok(
            Acquired(
                text=None,
                title=item.title,
                metadata={**item.metadata, "audio_url": audio_url},
                transcript_id=transcript_id,
            )
        )
