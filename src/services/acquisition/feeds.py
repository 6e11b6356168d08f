"""RSS 2.0 / Atom podcast feed parsing and episode matching.

Episodes prefer the enclosure URL (the audio file) over the page link.
Matching scores each episode against what is known about the requested
one: title similarity carries most of the weight, publish-date and
duration proximity break ties between similarly named episodes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from bs4 import BeautifulSoup

from src.utils.text_normalizer import title_similarity

MATCH_THRESHOLD = 0.6
_TITLE_WEIGHT = 0.6
_DATE_WEIGHT = 0.25
_DURATION_WEIGHT = 0.15
_DATE_WINDOW_DAYS = 30.0


@dataclass(frozen=True)
class FeedEpisode:
    title: str
    audio_url: str
    published: datetime | None = None
    duration_seconds: int | None = None


@dataclass(frozen=True)
class EpisodeHint:
    """What the caller knows about the episode it wants."""

    title: str | None = None
    published: datetime | None = None
    duration_seconds: int | None = None


def parse_duration(value: str | None) -> int | None:
    """Parse ``HH:MM:SS``, ``MM:SS`` or plain seconds."""
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        parts = [int(p) for p in value.split(":")]
    except ValueError:
        return None
    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    if len(parts) == 2:
        return parts[0] * 60 + parts[1]
    return None


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    value = value.strip()
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)  # noqa: UP017
    return parsed


def parse_feed(xml: str) -> list[FeedEpisode]:
    """Return the episodes of an RSS or Atom feed, in feed order."""
    soup = BeautifulSoup(xml, "xml")
    episodes: list[FeedEpisode] = []

    for item in soup.find_all("item"):
        enclosure = item.find("enclosure")
        url = enclosure.get("url") if enclosure else None
        if not url and item.find("link"):
            url = item.find("link").get_text(strip=True)
        if not url:
            continue
        title_tag = item.find("title")
        duration_tag = item.find("duration")  # itunes:duration
        pub_tag = item.find("pubDate")
        episodes.append(
            FeedEpisode(
                title=title_tag.get_text(strip=True) if title_tag else "Untitled Episode",
                audio_url=url.strip(),
                published=_parse_date(pub_tag.get_text() if pub_tag else None),
                duration_seconds=parse_duration(duration_tag.get_text() if duration_tag else None),
            )
        )

    for entry in soup.find_all("entry"):
        link = entry.find("link", rel="enclosure") or entry.find("link")
        url = link.get("href") if link else None
        if not url:
            continue
        title_tag = entry.find("title")
        date_tag = entry.find("published") or entry.find("updated")
        episodes.append(
            FeedEpisode(
                title=title_tag.get_text(strip=True) if title_tag else "Untitled Episode",
                audio_url=url.strip(),
                published=_parse_date(date_tag.get_text() if date_tag else None),
            )
        )

    return episodes


def score_episode(episode: FeedEpisode, hint: EpisodeHint) -> float:
    """Weighted 0..1 match score of *episode* against *hint*."""
    score = _TITLE_WEIGHT * title_similarity(episode.title, hint.title or "")

    if episode.published and hint.published:
        days_apart = abs((episode.published - hint.published).total_seconds()) / 86400
        score += _DATE_WEIGHT * max(0.0, 1.0 - days_apart / _DATE_WINDOW_DAYS)

    if episode.duration_seconds and hint.duration_seconds:
        longest = max(episode.duration_seconds, hint.duration_seconds)
        diff = abs(episode.duration_seconds - hint.duration_seconds)
        score += _DURATION_WEIGHT * (1.0 - diff / longest)

    return score


def match_episode(episodes: list[FeedEpisode], hint: EpisodeHint) -> FeedEpisode | None:
    """Best-scoring episode at or above the threshold.

    Without a title to match on, the newest episode (first in the feed)
    is returned.
    """
    if not episodes:
        return None
    if not hint.title:
        return episodes[0]
    best = max(episodes, key=lambda ep: score_episode(ep, hint))
    return best if score_episode(best, hint) >= MATCH_THRESHOLD else None
