"""Keeps truth-check citations honest.

A model can invent plausible-looking URLs.  Only URLs that a real search
call returned during enrichment survive into the stored references, issue
sources and claim sources, and inline ``[N]`` markers that no longer point at a reference are removed
from issue assessments.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from src.models.sections import SourceLink, TruthCheckSection, TruthIssue

_CITATION_RE = re.compile(r"\[(\d+)\]")
_WHITESPACE_RUN_RE = re.compile(r"\s{2,}")


def _hostname(url: str) -> str:
    try:
        return urlsplit(url).hostname or url
    except ValueError:
        return url


def normalize_issue_sources(sources: list[SourceLink]) -> list[SourceLink]:
    """Drop URL-less entries, default titles to the hostname, de-duplicate."""
    seen: set[str] = set()
    cleaned: list[SourceLink] = []
    for source in sources:
        if not source.url or source.url in seen:
            continue
        seen.add(source.url)
        cleaned.append(SourceLink(url=source.url, title=source.title or _hostname(source.url)))
    return cleaned


def strip_invalid_citations(text: str, reference_count: int) -> str:
    """Remove ``[N]`` markers outside ``1..reference_count``."""

    def _keep(match: re.Match[str]) -> str:
        number = int(match.group(1))
        return match.group(0) if 1 <= number <= reference_count else ""

    stripped = _CITATION_RE.sub(_keep, text)
    return _WHITESPACE_RUN_RE.sub(" ", stripped).strip()


def apply_citation_gate(
    truth_check: TruthCheckSection, available_sources: dict[str, str]
) -> TruthCheckSection:
    """Return a copy of *truth_check* restricted to *available_sources*.

    Parameters
    ----------
    truth_check:
        The decoded truth-check section.
    available_sources:
        URL to title for every search result seen during enrichment.

    References are the model's own references followed by the issue
    sources, keeping only available URLs, each at most once.  Issue and
    claim sources are filtered the same way so unverified URLs never
    reach stored claims.  Marker stripping always runs, so with no
    surviving references every ``[N]`` is removed.
    """
    issues = [
        issue.model_copy(
            update={
                "sources": [
                    source
                    for source in normalize_issue_sources(issue.sources)
                    if source.url in available_sources
                ]
            }
        )
        for issue in truth_check.issues
    ]
    claims = [
        claim.model_copy(
            update={"sources": [url for url in claim.sources if url in available_sources]}
        )
        for claim in truth_check.claims
    ]

    seen: set[str] = set()
    references: list[SourceLink] = []
    candidates = [*truth_check.references, *(s for issue in issues for s in issue.sources)]
    for candidate in candidates:
        if not candidate.url or candidate.url in seen:
            continue
        seen.add(candidate.url)
        if candidate.url in available_sources:
            title = candidate.title or available_sources[candidate.url] or candidate.url
            references.append(SourceLink(url=candidate.url, title=title))

    gated: list[TruthIssue] = [
        issue.model_copy(
            update={"assessment": strip_invalid_citations(issue.assessment, len(references))}
        )
        if issue.assessment
        else issue
        for issue in issues
    ]
    return truth_check.model_copy(
        update={"issues": gated, "claims": claims, "references": references}
    )
