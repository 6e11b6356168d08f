"""Content moderation: screening before analysis and refusal detection after.

Layers:

1. **URL screening**: onion/darknet hosts.
2. **Keyword screening**: multi-word co-occurrence patterns for
   prohibited instructional or distributional content (not news about
   these topics).  Only the first 50K characters are scanned and each
   category set is flagged once.
3. **Profanity screening**: advisory, medium severity, via
   ``better_profanity``.  Never blocks.
4. **AI refusal detection**: a generated section that came back as a
   refusal is flagged after generation.

Content is blocked when any flag is critical or high.  Every flag is
persisted with a sha256 hash of the text and a 500-character preview.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

import structlog

from src.interfaces.content_store import IContentStore
from src.models.content import ContentFlag, ContentItem, FlagRecord
from src.models.sections import RefusalPayload
from src.utils.errors import DatastoreError
from src.utils.logging import get_logger

MIN_SCREEN_CHARS = 50
MAX_SCAN_CHARS = 50_000
PREVIEW_CHARS = 500


@dataclass(frozen=True)
class _Pattern:
    pattern: re.Pattern[str]
    categories: tuple[str, ...]
    severity: str
    reason: str


_BLOCKED_HOST_PATTERNS: list[tuple[re.Pattern[str], tuple[str, ...], str]] = [
    (re.compile(r"\.onion\.", re.I), ("csam", "trafficking"), "critical"),
    (re.compile(r"(?:darknet|deepweb|hidden.wiki)", re.I), ("csam", "trafficking"), "critical"),
]

_KEYWORD_PATTERNS: list[_Pattern] = [
    _Pattern(
        re.compile(
            r"\b(?:child|minor|underage|pre-?teen|infant)\b[\s\S]{0,200}"
            r"\b(?:exploit|abuse|nude|naked|porn|sexual|molest|groom)\b",
            re.I,
        ),
        ("csam",),
        "critical",
        "Content contains child exploitation indicators",
    ),
    _Pattern(
        re.compile(
            r"\b(?:exploit|abuse|nude|naked|porn|sexual|molest|groom)\b[\s\S]{0,200}"
            r"\b(?:child|minor|underage|pre-?teen|infant)\b",
            re.I,
        ),
        ("csam",),
        "critical",
        "Content contains child exploitation indicators",
    ),
    _Pattern(
        re.compile(
            r"\b(?:cp\s+(?:link|download|share|collection|trade)|"
            r"pizza\s+cheese\s+(?:link|download|share))\b",
            re.I,
        ),
        ("csam",),
        "critical",
        "Content contains known CSAM distribution terminology",
    ),
    _Pattern(
        re.compile(
            r"\b(?:synthesiz|manufactur|produc|creat|mak)\w*\b[\s\S]{0,150}"
            r"\b(?:sarin|vx\s+gas|nerve\s+agent|ricin|anthrax|botulinum|mustard\s+gas|"
            r"chlorine\s+gas)\b",
            re.I,
        ),
        ("weapons",),
        "high",
        "Content contains chemical/biological weapon manufacturing instructions",
    ),
    _Pattern(
        re.compile(
            r"\b(?:sarin|vx\s+gas|nerve\s+agent|ricin|anthrax|botulinum)\b[\s\S]{0,150}"
            r"\b(?:synthesiz|manufactur|produc|creat|mak|prepar)\w*\b",
            re.I,
        ),
        ("weapons",),
        "high",
        "Content contains chemical/biological weapon manufacturing instructions",
    ),
    _Pattern(
        re.compile(
            r"\b(?:improv\w*\s+explosive|pipe\s+bomb|pressure\s+cooker\s+bomb|"
            r"detonat\w*\s+mechanism)\b[\s\S]{0,200}"
            r"\b(?:build|construct|assembl|wir|connect|timer)\b",
            re.I,
        ),
        ("weapons", "terrorism"),
        "high",
        "Content contains explosive device construction instructions",
    ),
    _Pattern(
        re.compile(
            r"\b(?:jihad|martyrdom\s+operation|caliphate)\b[\s\S]{0,200}"
            r"\b(?:recruit|join|travel|train|attack\s+plan|target)\b",
            re.I,
        ),
        ("terrorism",),
        "high",
        "Content contains terrorism recruitment or operational planning",
    ),
    _Pattern(
        re.compile(
            r"\b(?:traffick|smuggl)\w*\b[\s\S]{0,200}"
            r"\b(?:person|human|women|girl|boy|child|minor)\b[\s\S]{0,200}"
            r"\b(?:price|cost|buy|sell|deliver|transport|route)\b",
            re.I,
        ),
        ("trafficking",),
        "high",
        "Content contains human trafficking facilitation indicators",
    ),
]

_REFUSAL_PREFIX = "CONTENT_REFUSED:"


@dataclass(frozen=True)
class ScreeningResult:
    blocked: bool
    flags: list[ContentFlag] = field(default_factory=list)


def screen_url(url: str) -> ContentFlag | None:
    try:
        host = (urlsplit(url).hostname or "").lower()
    except ValueError:
        return None
    if not host:
        return None
    for pattern, categories, severity in _BLOCKED_HOST_PATTERNS:
        if pattern.search(host):
            return ContentFlag(
                source="url_screening",
                severity=severity,
                categories=list(categories),
                reason=f"URL matches blocked domain pattern: {host}",
            )
    return None


def screen_text(text: str | None) -> list[ContentFlag]:
    if not text or len(text) < MIN_SCREEN_CHARS:
        return []
    sample = text[:MAX_SCAN_CHARS].lower()
    flags: list[ContentFlag] = []
    seen: set[tuple[str, ...]] = set()
    for entry in _KEYWORD_PATTERNS:
        if entry.categories in seen or not entry.pattern.search(sample):
            continue
        seen.add(entry.categories)
        flags.append(
            ContentFlag(
                source="keyword_screening",
                severity=entry.severity,
                categories=list(entry.categories),
                reason=entry.reason,
            )
        )
    return flags


def screen_profanity(text: str | None) -> ContentFlag | None:
    """Advisory flag when *text* contains profanity; never blocking."""
    if not text or len(text) < MIN_SCREEN_CHARS:
        return None
    # Imported lazily: loading the word list costs ~100ms.
    from better_profanity import profanity

    if not profanity.contains_profanity(text[:MAX_SCAN_CHARS]):
        return None
    return ContentFlag(
        source="profanity_screening",
        severity="medium",
        categories=["profanity"],
        reason="Content contains profanity",
    )


def infer_categories(reason: str) -> list[str]:
    lower = reason.lower()
    categories: list[str] = []
    if any(word in lower for word in ("child", "csam", "minor", "exploitation")):
        categories.append("csam")
    if any(word in lower for word in ("terror", "bomb", "attack")):
        categories.append("terrorism")
    if any(word in lower for word in ("weapon", "explosive", "chemical", "biological")):
        categories.append("weapons")
    if "traffick" in lower:
        categories.append("trafficking")
    return categories or ["terrorism"]


def detect_ai_refusal(section: Any) -> ContentFlag | None:
    """Return a flag if a generated *section* is a model refusal.

    Accepts a decoded :class:`RefusalPayload`, a ``{"refused": true}``
    mapping or a ``CONTENT_REFUSED:`` string.
    """
    reason: str | None = None
    if isinstance(section, RefusalPayload):
        reason = section.reason
    elif isinstance(section, dict) and section.get("refused") is True:
        reason = str(section.get("reason") or "AI refused to analyze this content")
    elif isinstance(section, str) and section.startswith(_REFUSAL_PREFIX):
        reason = section[len(_REFUSAL_PREFIX):].strip()
    if reason is None:
        return None
    return ContentFlag(
        source="ai_refusal",
        severity="high",
        categories=infer_categories(reason),
        reason=reason,
    )


def hash_content(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class ContentModerator:
    """Screens content and persists every flag it raises.

    Parameters
    ----------
    store:
        Where flags are recorded for review.
    check_profanity:
        Turn the advisory profanity layer on or off.
    """

    def __init__(self, store: IContentStore, check_profanity: bool = True) -> None:
        self._store = store
        self._check_profanity = check_profanity
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def screen(self, item: ContentItem, text: str | None) -> ScreeningResult:
        flags: list[ContentFlag] = []
        url_flag = screen_url(item.url)
        if url_flag is not None:
            flags.append(url_flag)
        flags.extend(screen_text(text))
        if self._check_profanity:
            profanity_flag = screen_profanity(text)
            if profanity_flag is not None:
                flags.append(profanity_flag)

        for flag in flags:
            await self.record(item, flag, text)

        blocked = any(flag.blocking for flag in flags)
        if blocked:
            self._logger.warning(
                "content_blocked",
                content_id=item.id,
                reasons=[flag.reason for flag in flags if flag.blocking],
            )
        return ScreeningResult(blocked=blocked, flags=flags)

    async def record(self, item: ContentItem, flag: ContentFlag, text: str | None) -> None:
        """Persist *flag*; a store failure is logged and never raised."""
        record = FlagRecord(
            content_id=item.id,
            owner=item.owner,
            url=item.url,
            content_type=item.type.value,
            flag=flag,
            content_hash=hash_content(text) if text else None,
            text_preview=text[:PREVIEW_CHARS] if text else None,
        )
        try:
            await self._store.record_flag(record)
        except DatastoreError as exc:
            self._logger.error("flag_persist_failed", content_id=item.id, error=exc.message)
