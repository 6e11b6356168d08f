"""Text normalization utilities for URLs, queries, claims and titles.

This module handles four distinct normalization concerns:

1. **URL normalization** -- canonical form used as the cross-tenant cache
   key, so "https://WWW.Example.com/a/?utm_source=x#top" and
   "https://example.com/a" are the same item.

2. **Search query normalization** -- the key for the request-scoped web
   search cache; near-duplicate queries collapse to one search call.

3. **Claim normalization** -- lower-case alphanumeric text stored next to
   each verified claim so claims can be matched across content items.

4. **Title similarity** -- rapidfuzz scoring used to match podcast
   episodes in a feed against the episode the user asked for.
"""

from __future__ import annotations

import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from rapidfuzz import fuzz

# Query parameters that never change which document a URL points at.
_TRACKING_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "fbclid",
        "gclid",
        "mc_cid",
        "mc_eid",
        "ref",
        "si",
    }
)


def normalize_url(url: str) -> str:
    """Return the canonical form of *url* used for cache lookups.

    Lower-cases scheme and host, drops ``www.``, the fragment, tracking
    parameters and a trailing slash on the path.  Non-HTTP pseudo-URLs
    (``pdf://``, ``file://``) are returned stripped but otherwise intact.
    """
    url = url.strip()
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        return url

    host = parts.netloc.lower()
    if host.startswith("www."):
        host = host[4:]
    path = parts.path.rstrip("/") or ""
    query_pairs = [
        (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k.lower() not in _TRACKING_PARAMS
    ]
    query = urlencode(sorted(query_pairs))
    return urlunsplit(("https", host, path, query, ""))


def extract_domain(url: str) -> str | None:
    """Return the host of *url* without a leading ``www.``, or ``None``."""
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    host = host.lower()
    return host[4:] if host.startswith("www.") else host


def normalize_query(query: str) -> str:
    """Lower-case, collapse whitespace and strip trailing punctuation."""
    normalized = re.sub(r"\s+", " ", query.lower().strip())
    return re.sub(r"[?.!,]+$", "", normalized).strip()


def normalize_claim_text(text: str) -> str:
    """Reduce a claim to lower-case alphanumerics and single spaces."""
    lowered = re.sub(r"[^a-z0-9\s]", "", text.lower())
    return re.sub(r"\s+", " ", lowered).strip()


def title_similarity(left: str, right: str) -> float:
    """Return a 0.0--1.0 similarity between two titles.

    Uses rapidfuzz ``token_set_ratio`` so an episode title embedded in a
    longer page title ("Ep. 42: The Title | Show Name") still scores high.
    """
    if not left or not right:
        return 0.0
    return fuzz.token_set_ratio(left.lower(), right.lower()) / 100.0


def truncate(text: str, limit: int) -> str:
    """Return at most *limit* characters of *text*."""
    return text if len(text) <= limit else text[:limit]
