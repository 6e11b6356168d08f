"""Warn when scraped article text is probably a paywall preview."""

from __future__ import annotations

from src.models.content import ContentType
from src.utils.text_normalizer import extract_domain

PAYWALLED_DOMAINS = frozenset(
    {
        "nytimes.com",
        "wsj.com",
        "washingtonpost.com",
        "ft.com",
        "economist.com",
        "bloomberg.com",
        "barrons.com",
        "telegraph.co.uk",
        "thetimes.co.uk",
        "latimes.com",
        "bostonglobe.com",
        "theatlantic.com",
        "newyorker.com",
        "wired.com",
        "hbr.org",
        "businessinsider.com",
        "seekingalpha.com",
        "theathletic.com",
        "theinformation.com",
        "stratechery.com",
    }
)

SHORT_PAYWALL_TEXT_CHARS = 2000
SHORT_ARTICLE_TEXT_CHARS = 500

PREVIEW_WARNING = (
    "This content is from a paywalled source. The analysis is based on the publicly "
    "available preview, which may not include the full article."
)
SHORT_ARTICLE_WARNING = (
    "The scraped content is shorter than expected. This may be due to a paywall, login "
    "wall, or content that requires JavaScript to render. The analysis may be incomplete."
)
SUBSCRIPTION_WARNING = (
    "This content is from a source that sometimes requires a subscription. If the "
    "analysis seems incomplete, the full article may be behind a paywall."
)


def is_paywalled_domain(url: str) -> bool:
    domain = extract_domain(url)
    if not domain:
        return False
    return any(domain == known or domain.endswith("." + known) for known in PAYWALLED_DOMAINS)


def paywall_warning(url: str, text: str | None, content_type: ContentType) -> str | None:
    """Return a user-facing warning when *text* looks truncated by a paywall.

    Videos and documents are never checked.
    """
    if content_type in (ContentType.VIDEO, ContentType.DOCUMENT):
        return None
    length = len((text or "").strip())
    known = is_paywalled_domain(url)
    if known and length < SHORT_PAYWALL_TEXT_CHARS:
        return PREVIEW_WARNING
    if content_type is ContentType.ARTICLE and length < SHORT_ARTICLE_TEXT_CHARS:
        return SHORT_ARTICLE_WARNING
    if known:
        return SUBSCRIPTION_WARNING
    return None
