"""Prompt blocks describing the content itself.

Two blocks are built from data the pipeline already holds (no extra
API calls):

``{{METADATA}}``
    Type, title, creator, length, engagement and source domain, so the
    model can weigh creator credibility and content depth.
``{{TYPE_INSTRUCTIONS}}``
    What to focus on for this kind of content: timestamps and clickbait
    for videos, speaker attribution for podcasts, sourcing for articles,
    brevity for posts, structure for documents.  Music and entertainment
    content gets its own guidance.
"""

from __future__ import annotations

import re

from src.models.content import ContentItem, ContentType
from src.utils.text_normalizer import extract_domain

_SPEAKER_RE = re.compile(r"\bSpeaker ([A-Z])\b")

_TYPE_LABELS = {
    ContentType.VIDEO: "YouTube Video",
    ContentType.PODCAST: "Podcast Episode",
    ContentType.ARTICLE: "Article",
    ContentType.SOCIAL_POST: "X (Twitter) Post",
    ContentType.DOCUMENT: "Document",
}

_TYPE_INSTRUCTIONS: dict[str, list[str]] = {
    "video": [
        "Reference timestamps in [MM:SS] format when citing specific claims or key moments.",
        "Compare the video title against the actual content; flag clickbait if the title "
        "is misleading.",
        "Note whether this is a conversation, interview, or monologue format.",
        "Consider creator credibility signals: channel size, engagement ratio, and track record.",
    ],
    "podcast": [
        "Attribute claims to specific speakers (Speaker A, Speaker B, etc.) when identifiable.",
        "Note agreements and disagreements between speakers.",
        "Identify host vs. guest dynamics: who is being interviewed, who is the expert.",
        "Flag claims where speakers contradict each other.",
    ],
    "article": [
        "Consider the publication source's credibility and potential editorial bias.",
        "Check whether the article cites primary sources vs. other articles or no sources at all.",
        "Flag opinion presented as fact; look for hedging language or lack thereof.",
        "Note the publication date. Older articles may contain outdated information.",
        "If the content appears truncated, note the possible paywall limitation.",
    ],
    "social_post": [
        "This is short-form content. Adjust your analysis depth accordingly.",
        "Claims in tweets/posts are often unsourced; verify with extra scrutiny.",
        "Note whether this appears to be a standalone post or part of a thread.",
        "Be concise in your analysis and match the brevity of the content.",
    ],
    "document": [
        "Expect structured content with sections, headers, and potentially references.",
        "Evaluate citation quality: peer-reviewed sources vs. no citations.",
        "Note the document's purpose: research paper, whitepaper, legal document, or manual.",
        "Prioritize the abstract/executive summary and conclusions for key takeaways.",
    ],
    "music": [
        "This is music/entertainment content. Focus on describing the content rather than "
        "fact-checking.",
        "Skip action items. They are not applicable to music content.",
        "For triage, rate enjoyment and production value rather than informational value.",
        "Do not apply signal_noise_score for informational value; set it to -1 to indicate "
        "not applicable.",
    ],
    "entertainment": [
        "This is entertainment content. Focus on describing the content and its "
        "entertainment value.",
        "Fact-checking and action items are less applicable; only include them if genuinely "
        "relevant.",
        "For triage, rate entertainment value and production quality rather than "
        "informational density.",
        "Adjust your analysis depth. Entertainment content does not need the same rigor as "
        "news or research.",
    ],
}


def format_duration(seconds: int) -> str:
    """125 → "2m", 7500 → "2h 5m", 45 → "45s"."""
    if seconds < 60:
        return f"{seconds}s"
    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60
    if hours:
        return f"{hours}h {minutes}m" if minutes else f"{hours}h"
    return f"{minutes}m"


def format_count(count: int) -> str:
    """1200 → "1.2K", 3200000 → "3.2M"."""
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}".removesuffix(".0") + "M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}".removesuffix(".0") + "K"
    return str(count)


def count_speakers(transcript: str) -> int:
    """Count distinct diarized speakers ("Speaker A", "Speaker B", ...)."""
    return len(set(_SPEAKER_RE.findall(transcript)))


def _excerpt(text: str, limit: int = 200) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _as_int(value: object) -> int | None:
    try:
        return int(value) if value is not None else None  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return None


def build_metadata_block(item: ContentItem) -> str:
    """Return the ``## Content Metadata`` block, or ``""`` if only the type is known."""
    meta = item.metadata
    lines = ["## Content Metadata", f"- Type: {_TYPE_LABELS[item.type]}"]
    if item.title:
        lines.append(f"- Title: {item.title}")

    duration = _as_int(meta.get("duration"))
    description = meta.get("description") or ""

    if item.type is ContentType.VIDEO:
        if meta.get("author"):
            lines.append(f"- Channel: {meta['author']}")
        if duration:
            hint = " (long-form)" if duration > 1800 else " (short-form)" if duration < 120 else ""
            lines.append(f"- Duration: {format_duration(duration)}{hint}")
        views = _as_int(meta.get("view_count"))
        likes = _as_int(meta.get("like_count"))
        if views:
            engagement = ""
            if likes:
                ratio = likes / views * 100
                if ratio > 5:
                    engagement = " (high engagement)"
                elif ratio > 2:
                    engagement = " (good engagement)"
            like_text = f" | Likes: {format_count(likes)}" if likes else ""
            lines.append(f"- Views: {format_count(views)}{like_text}{engagement}")
        if meta.get("upload_date"):
            lines.append(f"- Published: {meta['upload_date']}")
        if description:
            lines.append(f"- Description: {_excerpt(description)}")
    elif item.type is ContentType.PODCAST:
        if duration:
            lines.append(f"- Duration: {format_duration(duration)}")
        speakers = count_speakers(item.raw_text or "")
        if speakers:
            layout = (
                "monologue"
                if speakers == 1
                else "interview/dialogue" if speakers == 2 else "panel discussion"
            )
            lines.append(f"- Speakers: {speakers} ({layout})")
    elif item.type is ContentType.ARTICLE:
        domain = extract_domain(item.url)
        if domain:
            lines.append(f"- Source: {domain}")
        if description:
            lines.append(f"- Description: {_excerpt(description)}")
    elif item.type is ContentType.SOCIAL_POST:
        lines.append("- Format: Short-form social media post")
    elif item.type is ContentType.DOCUMENT:
        domain = extract_domain(item.url)
        if domain:
            lines.append(f"- Source: {domain}")

    return "\n".join(lines) if len(lines) > 2 else ""


def build_type_instructions(item: ContentItem, category: str | None = None) -> str:
    """Return the ``## Type-Specific Analysis Instructions`` block.

    *category* (``"music"`` or ``"entertainment"``) replaces the
    per-type guidance when the content is known not to be informational.
    """
    key = category if category in ("music", "entertainment") else item.type.value
    lines = list(_TYPE_INSTRUCTIONS[key])

    duration = _as_int(item.metadata.get("duration"))
    if key == "video" and duration:
        if duration > 1800:
            lines.append(
                "This is a long-form video (>30 min). Focus on key segments and note pacing issues."
            )
        elif duration < 60:
            lines.append(
                "This is a short-form video. The core claim is what matters; short videos "
                "often oversimplify."
            )
    if key == "podcast" and count_speakers(item.raw_text or "") >= 2:
        lines.append(
            "For this interview/discussion: evaluate the quality of questions asked, "
            "not just answers given."
        )

    return "## Type-Specific Analysis Instructions\n" + "\n".join(f"- {line}" for line in lines)
