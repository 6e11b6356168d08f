"""Unit tests for podcast feed parsing and the audio-resolution waterfall.

HTTP is served by ``httpx.MockTransport`` so every strategy runs its real
request/parse path without touching the network.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.interfaces.transcription_provider import ITranscriptionProvider
from src.models.content import ContentItem, ContentType
from src.services.acquisition import Failure, Ok, PodcastAcquirer, PodcastAudioResolver
from src.services.acquisition.feeds import (
    EpisodeHint,
    FeedEpisode,
    match_episode,
    parse_duration,
    parse_feed,
    score_episode,
)
from src.services.acquisition.podcast import (
    NOT_FOUND_MESSAGE,
    SPOTIFY_MESSAGE,
    AudioStrategy,
    ResolutionContext,
    episode_hint_for,
    has_audio_extension,
    looks_like_feed,
)
from src.utils.error_classifier import AcquisitionSubtype, ErrorCategory
from src.utils.errors import AcquisitionError, PodcastResolutionError

FEED_URL = "https://feeds.example.com/show.xml"
PAGE_URL = "https://show.example/episodes/2"

RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd">
  <channel>
    <title>City Talk</title>
    <item>
      <title>Episode 2: Bikes in the City</title>
      <enclosure url="https://cdn.example/ep2.mp3" type="audio/mpeg" length="1"/>
      <itunes:duration>45:00</itunes:duration>
      <pubDate>Tue, 10 Mar 2026 08:00:00 +0000</pubDate>
    </item>
    <item>
      <title>Episode 1: Trains and Trams</title>
      <link>https://cdn.example/ep1.mp3</link>
      <itunes:duration>1:02:03</itunes:duration>
    </item>
    <item>
      <title>No audio at all</title>
    </item>
  </channel>
</rss>
"""

ATOM_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <title>Atom episode</title>
    <link rel="alternate" href="https://show.example/atom-ep"/>
    <link rel="enclosure" href="https://cdn.example/atom.m4a"/>
    <published>2026-03-01T10:00:00Z</published>
  </entry>
</feed>
"""


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


def _page_handler(html: str, head_type: str = "text/html") -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "HEAD":
            return httpx.Response(200, headers={"content-type": head_type})
        if str(request.url) == PAGE_URL:
            return httpx.Response(200, text=html, headers={"content-type": "text/html"})
        if str(request.url) == "https://show.example/feed.xml":
            return httpx.Response(200, text=RSS_FEED)
        return httpx.Response(404)

    return handler


# ======================================================================
# Feed parsing / matching
# ======================================================================


class TestParseDuration:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("1:02:03", 3723), ("12:30", 750), ("90", 90), (" 45 ", 45), ("abc", None),
         ("1:2:3:4", None), ("", None), (None, None)],
    )
    def test_parse(self, value: str | None, expected: int | None) -> None:
        assert parse_duration(value) == expected


class TestParseFeed:
    def test_rss_items(self) -> None:
        episodes = parse_feed(RSS_FEED)
        assert [e.audio_url for e in episodes] == [
            "https://cdn.example/ep2.mp3",
            "https://cdn.example/ep1.mp3",
        ]
        assert episodes[0].duration_seconds == 2700
        assert episodes[0].published == datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc)  # noqa: UP017
        assert episodes[1].duration_seconds == 3723
        assert episodes[1].published is None

    def test_atom_prefers_enclosure(self) -> None:
        episodes = parse_feed(ATOM_FEED)
        assert len(episodes) == 1
        assert episodes[0].audio_url == "https://cdn.example/atom.m4a"
        assert episodes[0].title == "Atom episode"
        assert episodes[0].published is not None


class TestMatchEpisode:
    @pytest.fixture()
    def episodes(self) -> list[FeedEpisode]:
        return parse_feed(RSS_FEED)

    def test_empty_feed(self) -> None:
        assert match_episode([], EpisodeHint(title="x")) is None

    def test_no_title_takes_newest(self, episodes: list[FeedEpisode]) -> None:
        assert match_episode(episodes, EpisodeHint()) is episodes[0]

    def test_title_match(self, episodes: list[FeedEpisode]) -> None:
        match = match_episode(episodes, EpisodeHint(title="Trains and Trams"))
        assert match is not None
        assert match.audio_url == "https://cdn.example/ep1.mp3"

    def test_below_threshold(self, episodes: list[FeedEpisode]) -> None:
        assert match_episode(episodes, EpisodeHint(title="Opera reviews weekly")) is None

    def test_date_and_duration_add_to_title_score(self) -> None:
        published = datetime(2026, 3, 10, tzinfo=timezone.utc)  # noqa: UP017
        episode = FeedEpisode(
            title="Bikes", audio_url="a", published=published, duration_seconds=600
        )
        exact = EpisodeHint(title="Bikes", published=published, duration_seconds=600)
        assert score_episode(episode, exact) == pytest.approx(1.0)

        far = EpisodeHint(
            title="Bikes", published=published + timedelta(days=60), duration_seconds=300
        )
        assert score_episode(episode, far) == pytest.approx(0.6 + 0.15 * 0.5)


# ======================================================================
# URL helpers / hints
# ======================================================================


class TestUrlHelpers:
    def test_has_audio_extension(self) -> None:
        assert has_audio_extension("https://cdn.example/ep.MP3?token=1")
        assert not has_audio_extension("https://cdn.example/ep.html")

    @pytest.mark.parametrize(
        "url",
        [FEED_URL, "https://anchor.fm/s/abc/podcast/rss", "https://blog.example/feed"],
    )
    def test_looks_like_feed(self, url: str) -> None:
        assert looks_like_feed(url)

    def test_page_is_not_feed(self) -> None:
        assert not looks_like_feed(PAGE_URL)

    def test_hint_from_apple_slug(self) -> None:
        item = ContentItem(
            id="p",
            url="https://podcasts.apple.com/us/podcast/bikes-in-the-city/id123?i=9",
            type=ContentType.PODCAST,
            owner="u",
            metadata={"duration": 1800.0},
        )
        hint = episode_hint_for(item)
        assert hint.title == "bikes in the city"
        assert hint.duration_seconds == 1800

    def test_hint_prefers_item_title(self) -> None:
        item = ContentItem(
            id="p", url="https://podcasts.apple.com/us/podcast/slug/id1",
            type=ContentType.PODCAST, owner="u", title="Real Title",
        )
        assert episode_hint_for(item).title == "Real Title"


# ======================================================================
# Resolution waterfall
# ======================================================================


class TestPodcastAudioResolver:
    @pytest.mark.asyncio
    async def test_spotify_raises_actionable_error(self) -> None:
        resolver = PodcastAudioResolver(_client(_no_network))
        with pytest.raises(PodcastResolutionError) as exc_info:
            await resolver.resolve("https://open.spotify.com/episode/abc")
        assert exc_info.value.message == SPOTIFY_MESSAGE
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_direct_audio_needs_no_request(self) -> None:
        resolver = PodcastAudioResolver(_client(_no_network))
        url = "https://cdn.example/show/ep.mp3"
        assert await resolver.resolve(url) == url

    @pytest.mark.asyncio
    async def test_dropbox_rewrite(self) -> None:
        resolver = PodcastAudioResolver(_client(_no_network))
        resolved = await resolver.resolve("https://www.dropbox.com/s/abc/episode?dl=0")
        assert resolved == "https://www.dropbox.com/s/abc/episode?dl=1"

    @pytest.mark.asyncio
    async def test_drive_rewrite(self) -> None:
        resolver = PodcastAudioResolver(_client(_no_network))
        resolved = await resolver.resolve("https://drive.google.com/file/d/XYZ/view?usp=sharing")
        assert resolved == "https://drive.google.com/uc?export=download&id=XYZ"

    @pytest.mark.asyncio
    async def test_apple_lookup_then_feed_match(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.host)
            if request.url.host == "itunes.apple.com":
                assert request.url.params["id"] == "123"
                assert request.url.params["entity"] == "podcast"
                return httpx.Response(200, json={"results": [{"feedUrl": FEED_URL}]})
            if str(request.url) == FEED_URL:
                return httpx.Response(200, text=RSS_FEED)
            return httpx.Response(404)

        resolver = PodcastAudioResolver(_client(handler))
        resolved = await resolver.resolve(
            "https://podcasts.apple.com/us/podcast/bikes-in-the-city/id123",
            EpisodeHint(title="bikes in the city"),
        )
        assert resolved == "https://cdn.example/ep2.mp3"
        assert seen == ["itunes.apple.com", "feeds.example.com"]

    @pytest.mark.asyncio
    async def test_feed_url_without_hint_takes_newest(self) -> None:
        resolver = PodcastAudioResolver(
            _client(lambda request: httpx.Response(200, text=RSS_FEED))
        )
        assert await resolver.resolve(FEED_URL) == "https://cdn.example/ep2.mp3"

    @pytest.mark.asyncio
    async def test_audio_tag_source(self) -> None:
        html = '<html><audio controls><source src="/media/ep2.mp3"></audio></html>'
        resolver = PodcastAudioResolver(_client(_page_handler(html)))
        assert await resolver.resolve(PAGE_URL) == "https://show.example/media/ep2.mp3"

    @pytest.mark.asyncio
    async def test_og_audio(self) -> None:
        html = '<html><head><meta property="og:audio" content="https://cdn.example/og.mp3"></head></html>'
        resolver = PodcastAudioResolver(_client(_page_handler(html)))
        assert await resolver.resolve(PAGE_URL) == "https://cdn.example/og.mp3"

    @pytest.mark.asyncio
    async def test_audio_link(self) -> None:
        html = '<html><a href="/about">About</a><a href="files/ep.m4a">Download</a></html>'
        resolver = PodcastAudioResolver(_client(_page_handler(html)))
        assert await resolver.resolve(PAGE_URL) == "https://show.example/episodes/files/ep.m4a"

    @pytest.mark.asyncio
    async def test_linked_feed(self) -> None:
        html = (
            '<html><head><link rel="alternate" type="application/rss+xml" '
            'href="/feed.xml"></head></html>'
        )
        resolver = PodcastAudioResolver(_client(_page_handler(html)))
        resolved = await resolver.resolve(PAGE_URL, EpisodeHint(title="Trains and Trams"))
        assert resolved == "https://cdn.example/ep1.mp3"

    @pytest.mark.asyncio
    async def test_head_sniff(self) -> None:
        resolver = PodcastAudioResolver(
            _client(_page_handler("<html></html>", head_type="audio/mpeg"))
        )
        assert await resolver.resolve(PAGE_URL) == PAGE_URL

    @pytest.mark.asyncio
    async def test_nothing_found(self) -> None:
        resolver = PodcastAudioResolver(_client(_page_handler("<html></html>")))
        with pytest.raises(PodcastResolutionError) as exc_info:
            await resolver.resolve(PAGE_URL)
        assert exc_info.value.message == NOT_FOUND_MESSAGE

    @pytest.mark.asyncio
    async def test_page_fetch_errors_fall_through(self) -> None:
        resolver = PodcastAudioResolver(_client(lambda request: httpx.Response(500)))
        with pytest.raises(PodcastResolutionError):
            await resolver.resolve(PAGE_URL)

    @pytest.mark.asyncio
    async def test_failing_strategy_is_skipped(self) -> None:
        class Broken(AudioStrategy):
            name = "broken"

            def can_handle(self, url: str) -> bool:
                return True

            async def resolve(self, context: ResolutionContext) -> str | None:
                raise ValueError("bad markup")

        class Fixed(AudioStrategy):
            name = "fixed"

            def can_handle(self, url: str) -> bool:
                return True

            async def resolve(self, context: ResolutionContext) -> str | None:
                return "https://cdn.example/fixed.mp3"

        resolver = PodcastAudioResolver(_client(_no_network), strategies=[Broken(), Fixed()])
        assert await resolver.resolve(PAGE_URL) == "https://cdn.example/fixed.mp3"

    @pytest.mark.asyncio
    async def test_shared_deadline(self) -> None:
        class Slow(AudioStrategy):
            name = "slow"

            def can_handle(self, url: str) -> bool:
                return True

            async def resolve(self, context: ResolutionContext) -> str | None:
                await asyncio.sleep(5)
                return None

        resolver = PodcastAudioResolver(_client(_no_network), strategies=[Slow()], timeout=0.01)
        with pytest.raises(PodcastResolutionError) as exc_info:
            await resolver.resolve(PAGE_URL)
        assert exc_info.value.message == NOT_FOUND_MESSAGE


# ======================================================================
# PodcastAcquirer
# ======================================================================


class TestPodcastAcquirer:
    @pytest.fixture()
    def resolver(self) -> MagicMock:
        mock = MagicMock(spec=PodcastAudioResolver)
        mock.resolve = AsyncMock(return_value="https://cdn.example/ep2.mp3")
        return mock

    @pytest.fixture()
    def transcriber(self) -> MagicMock:
        mock = MagicMock(spec=ITranscriptionProvider)
        mock.submit = AsyncMock(return_value="tx-42")
        return mock

    @pytest.fixture()
    def item(self) -> ContentItem:
        return ContentItem(
            id="p", url=FEED_URL, type=ContentType.PODCAST, owner="u",
            title="Bikes in the City", metadata={"show": "City Talk"},
        )

    @pytest.mark.asyncio
    async def test_queues_transcription(
        self, resolver: MagicMock, transcriber: MagicMock, item: ContentItem
    ) -> None:
        acquirer = PodcastAcquirer(resolver, transcriber, callback_url="https://hooks.example/t")
        result = await acquirer.acquire(item)

        assert isinstance(result, Ok)
        assert result.value.text is None
        assert result.value.pending_transcription
        assert result.value.transcript_id == "tx-42"
        assert result.value.metadata == {
            "show": "City Talk",
            "audio_url": "https://cdn.example/ep2.mp3",
        }
        transcriber.submit.assert_awaited_once_with(
            "https://cdn.example/ep2.mp3", "https://hooks.example/t"
        )

    @pytest.mark.asyncio
    async def test_resolution_failure_carries_user_message(
        self, resolver: MagicMock, transcriber: MagicMock, item: ContentItem
    ) -> None:
        resolver.resolve.side_effect = PodcastResolutionError(message=SPOTIFY_MESSAGE)
        result = await PodcastAcquirer(resolver, transcriber).acquire(item)

        assert isinstance(result, Failure)
        assert result.category is ErrorCategory.ACQUISITION_FAILED
        assert result.subtype is AcquisitionSubtype.AUDIO_RESOLUTION_FAILED
        assert result.user_message == SPOTIFY_MESSAGE
        transcriber.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_submit_failure(
        self, resolver: MagicMock, transcriber: MagicMock, item: ContentItem
    ) -> None:
        transcriber.submit.side_effect = AcquisitionError("upstream down", status_code=503)
        result = await PodcastAcquirer(resolver, transcriber).acquire(item)

        assert isinstance(result, Failure)
        assert result.category is ErrorCategory.TRANSCRIPTION_FAILED
        assert result.retryable is True

    @pytest.mark.asyncio
    async def test_empty_transcript_id(
        self, resolver: MagicMock, transcriber: MagicMock, item: ContentItem
    ) -> None:
        transcriber.submit.return_value = ""
        result = await PodcastAcquirer(resolver, transcriber).acquire(item)
        assert isinstance(result, Failure)
        assert result.category is ErrorCategory.TRANSCRIPTION_FAILED
