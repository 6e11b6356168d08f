"""SQLite-backed content store.

Persists content items, analyses, claims, domain statistics, prompts,
user profiles, usage counters and moderation flags to a local SQLite
database (default ``data/contentlens.db``).  Uses ``aiosqlite`` for async
I/O and ``ON CONFLICT`` upserts so repeated writes are idempotent.

JSON-shaped columns (metadata, tags, sections, rating counts) are stored
as TEXT and decoded on read.  Timestamps are ISO-8601 strings in UTC, so
string comparison orders them correctly.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.content_store import IContentStore
from src.models.content import (
    AnalysisPreferences,
    AnalysisResult,
    Claim,
    ContentItem,
    ContentType,
    DomainStat,
    FlagRecord,
    ProcessingStatus,
    PromptDefinition,
)
from src.utils.error_classifier import SENTINEL_PREFIX
from src.utils.errors import DatastoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/contentlens.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS content_items (
    id                  TEXT PRIMARY KEY,
    url                 TEXT NOT NULL,
    type                TEXT NOT NULL,
    owner               TEXT NOT NULL,
    raw_text            TEXT,
    title               TEXT,
    metadata            TEXT NOT NULL DEFAULT '{}',
    tags                TEXT NOT NULL DEFAULT '[]',
    analysis_language   TEXT NOT NULL DEFAULT 'en',
    regeneration_count  INTEGER NOT NULL DEFAULT 0,
    detected_tone       TEXT,
    transcript_id       TEXT,
    created_at          TEXT NOT NULL
);""",
    """\
CREATE TABLE IF NOT EXISTS analyses (
    content_id  TEXT NOT NULL,
    language    TEXT NOT NULL,
    status      TEXT NOT NULL,
    sections    TEXT NOT NULL DEFAULT '{}',
    model_name  TEXT,
    updated_at  TEXT NOT NULL,
    PRIMARY KEY (content_id, language)
);""",
    """\
CREATE TABLE IF NOT EXISTS claims (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    content_id       TEXT NOT NULL,
    owner            TEXT NOT NULL,
    text             TEXT NOT NULL,
    normalized_text  TEXT NOT NULL,
    status           TEXT NOT NULL,
    severity         TEXT,
    sources          TEXT NOT NULL DEFAULT '[]'
);""",
    """\
CREATE TABLE IF NOT EXISTS domain_stats (
    domain               TEXT PRIMARY KEY,
    total_analyses       INTEGER NOT NULL DEFAULT 0,
    rating_counts        TEXT NOT NULL DEFAULT '{}',
    quality_score_sum    REAL NOT NULL DEFAULT 0,
    quality_score_count  INTEGER NOT NULL DEFAULT 0
);""",
    """\
CREATE TABLE IF NOT EXISTS prompts (
    prompt_type  TEXT PRIMARY KEY,
    definition   TEXT NOT NULL
);""",
    """\
CREATE TABLE IF NOT EXISTS user_profiles (
    owner        TEXT PRIMARY KEY,
    tier         TEXT,
    preferences  TEXT
);""",
    """\
CREATE TABLE IF NOT EXISTS usage_counters (
    owner   TEXT NOT NULL,
    period  TEXT NOT NULL,
    field   TEXT NOT NULL,
    count   INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (owner, period, field)
);""",
    """\
CREATE TABLE IF NOT EXISTS content_flags (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    content_id    TEXT,
    owner         TEXT,
    url           TEXT NOT NULL,
    content_type  TEXT,
    source        TEXT NOT NULL,
    severity      TEXT NOT NULL,
    categories    TEXT NOT NULL DEFAULT '[]',
    reason        TEXT,
    content_hash  TEXT,
    text_preview  TEXT,
    status        TEXT NOT NULL DEFAULT 'pending',
    created_at    TEXT NOT NULL
);""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_content_url ON content_items(url, type);",
    "CREATE INDEX IF NOT EXISTS idx_content_transcript ON content_items(transcript_id);",
    "CREATE INDEX IF NOT EXISTS idx_claims_content ON claims(content_id);",
]

_UPSERT_CONTENT_SQL = """\
INSERT INTO content_items (id, url, type, owner, raw_text, title, metadata, tags,
                           analysis_language, regeneration_count, detected_tone,
                           transcript_id, created_at)
VALUES (:id, :url, :type, :owner, :raw_text, :title, :metadata, :tags,
        :analysis_language, :regeneration_count, :detected_tone,
        :transcript_id, :created_at)
ON CONFLICT(id) DO UPDATE SET
    url = excluded.url, type = excluded.type, owner = excluded.owner,
    raw_text = excluded.raw_text, title = excluded.title,
    metadata = excluded.metadata, tags = excluded.tags,
    analysis_language = excluded.analysis_language,
    regeneration_count = excluded.regeneration_count,
    detected_tone = excluded.detected_tone,
    transcript_id = excluded.transcript_id;
"""

_UPSERT_ANALYSIS_SQL = """\
INSERT INTO analyses (content_id, language, status, sections, model_name, updated_at)
VALUES (?, ?, ?, ?, ?, ?)
ON CONFLICT(content_id, language) DO UPDATE SET
    status = excluded.status,
    sections = excluded.sections,
    model_name = excluded.model_name,
    updated_at = excluded.updated_at;
"""

_INCREMENT_IF_ALLOWED_SQL = """\
INSERT INTO usage_counters (owner, period, field, count)
VALUES (?, ?, ?, 1)
ON CONFLICT(owner, period, field) DO UPDATE SET count = count + 1
WHERE usage_counters.count < ?
RETURNING count;
"""

_INCREMENT_SQL = """\
INSERT INTO usage_counters (owner, period, field, count)
VALUES (?, ?, ?, 1)
ON CONFLICT(owner, period, field) DO UPDATE SET count = count + 1
RETURNING count;
"""

_CONTENT_COLUMNS = frozenset(
    {
        "url",
        "type",
        "owner",
        "raw_text",
        "title",
        "metadata",
        "tags",
        "analysis_language",
        "regeneration_count",
        "detected_tone",
        "transcript_id",
    }
)


def _now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()  # noqa: UP017


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)  # noqa: UP017
    return value.astimezone(timezone.utc).isoformat()  # noqa: UP017


def _encode_column(name: str, value: Any) -> Any:
    if name in ("metadata", "tags"):
        return json.dumps(value)
    if name == "type" and isinstance(value, ContentType):
        return value.value
    return value


def _row_to_content(row: aiosqlite.Row) -> ContentItem:
    data = dict(row)
    data["metadata"] = json.loads(data["metadata"] or "{}")
    data["tags"] = json.loads(data["tags"] or "[]")
    return ContentItem.model_validate(data)


def _row_to_analysis(row: aiosqlite.Row) -> AnalysisResult:
    data = dict(row)
    data["sections"] = json.loads(data["sections"] or "{}")
    return AnalysisResult.model_validate(data)


class SQLiteContentStore(IContentStore):
    """SQLite persistence for the content pipeline.

    Call :meth:`initialize` once before use; it creates the tables and
    seeds any prompt definitions passed in.
    """

    def __init__(
        self,
        db_path: str | Path = _DEFAULT_DB_PATH,
        prompts: list[PromptDefinition] | None = None,
    ) -> None:
        self._db_path = Path(db_path)
        self._seed_prompts = prompts or []

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection; driver errors surface as :class:`DatastoreError`."""
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                yield db
        except sqlite3.Error as exc:
            logger.warning("sqlite_operation_failed", path=str(self._db_path), error=str(exc))
            raise DatastoreError(
                message=f"SQLite operation failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist, then seed prompts."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            for prompt in self._seed_prompts:
                await db.execute(
                    "INSERT INTO prompts (prompt_type, definition) VALUES (?, ?) "
                    "ON CONFLICT(prompt_type) DO UPDATE SET definition = excluded.definition",
                    (prompt.prompt_type, prompt.model_dump_json()),
                )
            await db.commit()
        logger.info(
            "content_db_initialized",
            path=str(self._db_path),
            prompts_seeded=len(self._seed_prompts),
        )

    # ------------------------------------------------------------------
    # Content items
    # ------------------------------------------------------------------

    async def save_content(self, item: ContentItem) -> ContentItem:
        params = {name: _encode_column(name, getattr(item, name)) for name in _CONTENT_COLUMNS}
        params["id"] = item.id
        params["created_at"] = _iso(item.created_at)
        async with self._connect() as db:
            await db.execute(_UPSERT_CONTENT_SQL, params)
            await db.commit()
        return item

    async def get_content(self, content_id: str) -> ContentItem | None:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM content_items WHERE id = ?", (content_id,))
            row = await cursor.fetchone()
        return _row_to_content(row) if row else None

    async def update_content(self, content_id: str, **fields: Any) -> ContentItem:
        unknown = set(fields) - _CONTENT_COLUMNS
        if unknown:
            raise DatastoreError(
                message=f"Unknown content columns: {sorted(unknown)}",
                provider_name=self.get_provider_name(),
            )
        if fields:
            assignments = ", ".join(f"{name} = ?" for name in fields)
            values = [_encode_column(name, value) for name, value in fields.items()]
            async with self._connect() as db:
                cursor = await db.execute(
                    f"UPDATE content_items SET {assignments} WHERE id = ?",  # noqa: S608
                    (*values, content_id),
                )
                await db.commit()
                if cursor.rowcount == 0:
                    raise DatastoreError(
                        message=f"Content {content_id} not found",
                        provider_name=self.get_provider_name(),
                    )

        item = await self.get_content(content_id)
        if item is None:
            raise DatastoreError(
                message=f"Content {content_id} not found",
                provider_name=self.get_provider_name(),
            )
        return item

    async def find_content_by_transcript_id(self, transcript_id: str) -> ContentItem | None:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM content_items WHERE transcript_id = ? LIMIT 1",
                (transcript_id,),
            )
            row = await cursor.fetchone()
        return _row_to_content(row) if row else None

    async def find_cache_candidates(
        self,
        url: str,
        content_type: ContentType,
        exclude_owner: str,
        newer_than: datetime,
        limit: int = 5,
    ) -> list[ContentItem]:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM content_items "
                "WHERE url = ? AND type = ? AND owner != ? AND created_at > ? "
                "AND raw_text IS NOT NULL AND raw_text != '' "
                "AND raw_text NOT LIKE ? "
                "ORDER BY created_at DESC LIMIT ?",
                (
                    url,
                    content_type.value,
                    exclude_owner,
                    _iso(newer_than),
                    f"{SENTINEL_PREFIX}%",
                    limit,
                ),
            )
            rows = await cursor.fetchall()
        return [_row_to_content(r) for r in rows]

    # ------------------------------------------------------------------
    # Analysis results
    # ------------------------------------------------------------------

    async def get_analysis(self, content_id: str, language: str) -> AnalysisResult | None:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM analyses WHERE content_id = ? AND language = ?",
                (content_id, language),
            )
            row = await cursor.fetchone()
        return _row_to_analysis(row) if row else None

    async def upsert_analysis(
        self,
        content_id: str,
        language: str,
        sections: dict[str, Any] | None = None,
        status: ProcessingStatus | None = None,
        model_name: str | None = None,
        reset: bool = False,
    ) -> AnalysisResult:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            # Read-merge-write under a write lock so concurrent section
            # writes for the same row never drop each other's keys.
            await db.execute("BEGIN IMMEDIATE")
            cursor = await db.execute(
                "SELECT * FROM analyses WHERE content_id = ? AND language = ?",
                (content_id, language),
            )
            row = await cursor.fetchone()
            current = (
                _row_to_analysis(row)
                if row
                else AnalysisResult(content_id=content_id, language=language)
            )

            merged_sections = {**current.sections, **(sections or {})}
            new_status = current.status
            if status is not None and (reset or current.status.can_advance_to(status)):
                new_status = status
            new_model = model_name or current.model_name
            updated_at = _now_iso()

            await db.execute(
                _UPSERT_ANALYSIS_SQL,
                (
                    content_id,
                    language,
                    new_status.value,
                    json.dumps(merged_sections),
                    new_model,
                    updated_at,
                ),
            )
            await db.commit()

        return AnalysisResult(
            content_id=content_id,
            language=language,
            status=new_status,
            sections=merged_sections,
            model_name=new_model,
            updated_at=datetime.fromisoformat(updated_at),
        )

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    async def delete_claims(self, content_id: str) -> None:
        async with self._connect() as db:
            await db.execute("DELETE FROM claims WHERE content_id = ?", (content_id,))
            await db.commit()

    async def insert_claims(self, claims: list[Claim]) -> None:
        if not claims:
            return
        async with self._connect() as db:
            await db.executemany(
                "INSERT INTO claims (content_id, owner, text, normalized_text, status, "
                "severity, sources) VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        c.content_id,
                        c.owner,
                        c.text,
                        c.normalized_text,
                        c.status,
                        c.severity,
                        json.dumps(c.sources),
                    )
                    for c in claims
                ],
            )
            await db.commit()

    async def list_claims(self, content_id: str) -> list[Claim]:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT content_id, owner, text, normalized_text, status, severity, sources "
                "FROM claims WHERE content_id = ? ORDER BY id",
                (content_id,),
            )
            rows = await cursor.fetchall()
        claims: list[Claim] = []
        for row in rows:
            data = dict(row)
            data["sources"] = json.loads(data["sources"] or "[]")
            claims.append(Claim.model_validate(data))
        return claims

    # ------------------------------------------------------------------
    # Domain statistics
    # ------------------------------------------------------------------

    async def get_domain_stat(self, domain: str) -> DomainStat | None:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM domain_stats WHERE domain = ?", (domain,))
            row = await cursor.fetchone()
        if row is None:
            return None
        data = dict(row)
        data["rating_counts"] = json.loads(data["rating_counts"] or "{}")
        return DomainStat.model_validate(data)

    async def record_domain_analysis(
        self,
        domain: str,
        rating: str | None = None,
        quality_score: float | None = None,
    ) -> DomainStat:
        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            await db.execute(
                "INSERT INTO domain_stats (domain) VALUES (?) ON CONFLICT(domain) DO NOTHING",
                (domain,),
            )
            await db.execute(
                "UPDATE domain_stats SET "
                "total_analyses = total_analyses + 1, "
                "quality_score_sum = quality_score_sum + ?, "
                "quality_score_count = quality_score_count + ? "
                "WHERE domain = ?",
                (quality_score or 0.0, 1 if quality_score is not None else 0, domain),
            )
            if rating:
                # json_set keeps the histogram update inside the same transaction.
                await db.execute(
                    "UPDATE domain_stats SET rating_counts = json_set(rating_counts, ?, "
                    "COALESCE(json_extract(rating_counts, ?), 0) + 1) WHERE domain = ?",
                    (f'$."{rating}"', f'$."{rating}"', domain),
                )
            await db.commit()

        stat = await self.get_domain_stat(domain)
        if stat is None:
            raise DatastoreError(
                message=f"Domain stat {domain} missing after update",
                provider_name=self.get_provider_name(),
            )
        return stat

    # ------------------------------------------------------------------
    # Prompts / users
    # ------------------------------------------------------------------

    async def get_prompt(self, prompt_type: str) -> PromptDefinition | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT definition FROM prompts WHERE prompt_type = ?", (prompt_type,)
            )
            row = await cursor.fetchone()
        return PromptDefinition.model_validate_json(row[0]) if row else None

    async def get_user_preferences(self, owner: str) -> AnalysisPreferences | None:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT preferences FROM user_profiles WHERE owner = ?", (owner,)
            )
            row = await cursor.fetchone()
        if not row or not row[0]:
            return None
        return AnalysisPreferences.model_validate_json(row[0])

    async def get_user_tier(self, owner: str) -> str | None:
        async with self._connect() as db:
            cursor = await db.execute("SELECT tier FROM user_profiles WHERE owner = ?", (owner,))
            row = await cursor.fetchone()
        return row[0] if row else None

    async def set_user_profile(
        self,
        owner: str,
        tier: str | None = None,
        preferences: AnalysisPreferences | None = None,
    ) -> None:
        """Create or replace *owner*'s profile row (seeding helper)."""
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO user_profiles (owner, tier, preferences) VALUES (?, ?, ?) "
                "ON CONFLICT(owner) DO UPDATE SET tier = excluded.tier, "
                "preferences = excluded.preferences",
                (owner, tier, preferences.model_dump_json() if preferences else None),
            )
            await db.commit()

    # ------------------------------------------------------------------
    # Usage counters
    # ------------------------------------------------------------------

    async def increment_usage_if_allowed(
        self, owner: str, period: str, field: str, limit: int
    ) -> int:
        if limit <= 0:
            return -1
        async with self._connect() as db:
            cursor = await db.execute(_INCREMENT_IF_ALLOWED_SQL, (owner, period, field, limit))
            row = await cursor.fetchone()
            await db.commit()
        return int(row[0]) if row else -1

    async def get_usage_count(self, owner: str, period: str, field: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT count FROM usage_counters WHERE owner = ? AND period = ? AND field = ?",
                (owner, period, field),
            )
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def increment_usage(self, owner: str, period: str, field: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute(_INCREMENT_SQL, (owner, period, field))
            row = await cursor.fetchone()
            await db.commit()
        return int(row[0])

    # ------------------------------------------------------------------
    # Moderation
    # ------------------------------------------------------------------

    async def record_flag(self, record: FlagRecord) -> None:
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO content_flags (content_id, owner, url, content_type, source, "
                "severity, categories, reason, content_hash, text_preview, status, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.content_id,
                    record.owner,
                    record.url,
                    record.content_type,
                    record.flag.source,
                    record.flag.severity,
                    json.dumps(record.flag.categories),
                    record.flag.reason,
                    record.content_hash,
                    record.text_preview,
                    record.status,
                    _iso(record.created_at),
                ),
            )
            await db.commit()
        logger.info(
            "content_flag_recorded",
            content_id=record.content_id,
            severity=record.flag.severity,
        )

    def get_provider_name(self) -> str:
        return "sqlite"
