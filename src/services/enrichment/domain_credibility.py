"""Source-domain track record.

Past truth-check ratings are accumulated per domain.  When a domain has
been rated Questionable or Unreliable in more than 30% of at least three
prior analyses, the truth-check prompt gets a credibility warning.
"""

from __future__ import annotations

import structlog

from src.interfaces.content_store import IContentStore
from src.utils.errors import DatastoreError
from src.utils.logging import get_logger
from src.utils.text_normalizer import extract_domain

MIN_ANALYSES_FOR_WARNING = 3
UNRELIABLE_RATIO_THRESHOLD = 0.3

# Music and entertainment platforms have no factual claims worth searching.
ENTERTAINMENT_DOMAINS = frozenset(
    {
        "open.spotify.com",
        "spotify.com",
        "music.youtube.com",
        "music.apple.com",
        "soundcloud.com",
        "tidal.com",
        "deezer.com",
        "bandcamp.com",
        "pandora.com",
        "audiomack.com",
        "genius.com",
        "azlyrics.com",
        "lyrics.com",
        "vimeo.com",
    }
)


def is_entertainment_url(url: str) -> bool:
    domain = extract_domain(url)
    return domain is not None and domain in ENTERTAINMENT_DOMAINS


class DomainCredibilityService:
    def __init__(self, store: IContentStore) -> None:
        self._store = store
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def warning_for(self, url: str) -> str:
        """Return the credibility warning for *url*'s domain, or ``""``."""
        domain = extract_domain(url)
        if not domain:
            return ""
        try:
            stat = await self._store.get_domain_stat(domain)
        except DatastoreError as exc:
            self._logger.warning("domain_stat_lookup_failed", domain=domain, error=exc.message)
            return ""
        if stat is None or stat.total_analyses < MIN_ANALYSES_FOR_WARNING:
            return ""

        ratio = stat.questionable_count / stat.total_analyses
        if ratio <= UNRELIABLE_RATIO_THRESHOLD:
            return ""

        average = stat.average_quality
        average_text = f"{average:.1f}" if average is not None else "N/A"
        return (
            "## Source Credibility Warning\n"
            f"This content is from {domain}, which has been rated \"Questionable\" or "
            f"\"Unreliable\" in {round(ratio * 100)}% of {stat.total_analyses} previous "
            f"analyses (avg quality score: {average_text}/10). "
            "Apply extra scrutiny to factual claims from this source."
        )
