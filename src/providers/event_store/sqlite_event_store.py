"""SQLite-backed event metadata store.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Providers (concrete adapter implementing IEventStore).
# Database: ``data/events.db`` -- events, participants, users, documents,
#           assets and stories for every event.
#
# Timestamps are stored as fixed-width UTC strings
# (``YYYY-MM-DDTHH:MM:SS.ffffffZ``) so lexical comparison in SQL matches
# chronological order; the expiry sweep relies on that for
# ``end_time <= ?``.
#
# Uses ``aiosqlite`` for async I/O and ``PRAGMA journal_mode=WAL`` for
# concurrent read safety.  Each method opens its own connection.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.event_store import IEventStore
from src.models.event import (
    Asset,
    Document,
    Event,
    EventStatus,
    Participant,
    Story,
    StoryKind,
    User,
)

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/events.db")
_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

# ── Schema DDL ────────────────────────────────────────────────────────

_CREATE_EVENTS_TABLE = """\
CREATE TABLE IF NOT EXISTS events (
    event_id    TEXT PRIMARY KEY,
    host_id     TEXT NOT NULL,
    name        TEXT NOT NULL DEFAULT '',
    start_time  TEXT NOT NULL,
    end_time    TEXT NOT NULL,
    status      TEXT NOT NULL DEFAULT 'active'
);
"""

_CREATE_PARTICIPANTS_TABLE = """\
CREATE TABLE IF NOT EXISTS participants (
    event_id  TEXT NOT NULL,
    user_id   TEXT NOT NULL,
    role      TEXT NOT NULL DEFAULT 'attendee',
    PRIMARY KEY (event_id, user_id)
);
"""

_CREATE_USERS_TABLE = """\
CREATE TABLE IF NOT EXISTS users (
    user_id          TEXT PRIMARY KEY,
    display_name     TEXT NOT NULL DEFAULT '',
    active_event_id  TEXT,
    event_role       TEXT
);
"""

_CREATE_DOCUMENTS_TABLE = """\
CREATE TABLE IF NOT EXISTS documents (
    document_id   TEXT NOT NULL,
    event_id      TEXT NOT NULL,
    name          TEXT NOT NULL,
    storage_path  TEXT NOT NULL,
    PRIMARY KEY (event_id, document_id)
);
"""

_CREATE_ASSETS_TABLE = """\
CREATE TABLE IF NOT EXISTS assets (
    storage_path  TEXT PRIMARY KEY,
    event_id      TEXT NOT NULL,
    embedded      INTEGER NOT NULL DEFAULT 0,
    chunks        INTEGER NOT NULL DEFAULT 0,
    updated_at    TEXT NOT NULL
);
"""

_CREATE_STORIES_TABLE = """\
CREATE TABLE IF NOT EXISTS stories (
    story_id    TEXT PRIMARY KEY,
    event_id    TEXT NOT NULL,
    kind        TEXT NOT NULL DEFAULT 'story',
    author_id   TEXT NOT NULL DEFAULT '',
    image_path  TEXT,
    created_at  TEXT
);
"""

_CREATE_INDICES = [
    "CREATE INDEX IF NOT EXISTS idx_events_end_time ON events(end_time);",
    "CREATE INDEX IF NOT EXISTS idx_documents_event ON documents(event_id);",
    "CREATE INDEX IF NOT EXISTS idx_assets_event ON assets(event_id);",
    "CREATE INDEX IF NOT EXISTS idx_stories_event ON stories(event_id, kind);",
]

# ── DML ───────────────────────────────────────────────────────────────

_UPSERT_EVENT = """\
INSERT OR REPLACE INTO events (event_id, host_id, name, start_time, end_time, status)
VALUES (?, ?, ?, ?, ?, ?);
"""

_UPSERT_PARTICIPANT = """\
INSERT OR REPLACE INTO participants (event_id, user_id, role) VALUES (?, ?, ?);
"""

_UPSERT_USER = """\
INSERT OR REPLACE INTO users (user_id, display_name, active_event_id, event_role)
VALUES (?, ?, ?, ?);
"""

_UPSERT_DOCUMENT = """\
INSERT OR REPLACE INTO documents (document_id, event_id, name, storage_path)
VALUES (?, ?, ?, ?);
"""

_UPSERT_ASSET = """\
INSERT INTO assets (storage_path, event_id, embedded, chunks, updated_at)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(storage_path)
DO UPDATE SET event_id = excluded.event_id,
              embedded = excluded.embedded,
              chunks = excluded.chunks,
              updated_at = excluded.updated_at;
"""

_UPSERT_STORY = """\
INSERT OR REPLACE INTO stories (story_id, event_id, kind, author_id, image_path, created_at)
VALUES (?, ?, ?, ?, ?, ?);
"""


def _to_db(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_TS_FORMAT)


def _from_db(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class SQLiteEventStore(IEventStore):
    """SQLite-backed persistence for every event-owned record."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create all tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            for ddl in (
                _CREATE_EVENTS_TABLE,
                _CREATE_PARTICIPANTS_TABLE,
                _CREATE_USERS_TABLE,
                _CREATE_DOCUMENTS_TABLE,
                _CREATE_ASSETS_TABLE,
                _CREATE_STORIES_TABLE,
            ):
                await db.execute(ddl)
            for idx_sql in _CREATE_INDICES:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("event_db_initialized", path=str(self._db_path))

    def get_provider_name(self) -> str:
        return "sqlite_events"

    # ── Internal helpers ───────────────────────────────────────────────

    async def _fetch_all(self, query: str, params: tuple | list = ()) -> list[dict[str, Any]]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def _fetch_one(self, query: str, params: tuple | list = ()) -> dict[str, Any] | None:
        rows = await self._fetch_all(query, params)
        return rows[0] if rows else None

    async def _execute(self, query: str, params: tuple | list = ()) -> int:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(query, params)
            await db.commit()
            return cursor.rowcount

    async def _delete_in(self, table: str, column: str, values: list[str]) -> int:
        if not values:
            return 0
        query = f"DELETE FROM {table} WHERE {column} IN ({_placeholders(len(values))});"
        return await self._execute(query, values)

    # ── Events ─────────────────────────────────────────────────────────

    async def get_event(self, event_id: str) -> Event | None:
        row = await self._fetch_one("SELECT * FROM events WHERE event_id = ?;", (event_id,))
        return self._row_to_event(row) if row else None

    async def save_event(self, event: Event) -> None:
        await self._execute(_UPSERT_EVENT, (
            event.event_id,
            event.host_id,
            event.name,
            _to_db(event.start_time),
            _to_db(event.end_time),
            event.status.value,
        ))

    async def list_events_ended_before(self, cutoff: datetime) -> list[Event]:
        rows = await self._fetch_all(
            "SELECT * FROM events WHERE end_time <= ? OR status != 'active' "
            "ORDER BY end_time ASC;",
            (_to_db(cutoff),),
        )
        return [self._row_to_event(r) for r in rows]

    async def list_events_ended_after(self, cutoff: datetime) -> list[Event]:
        rows = await self._fetch_all(
            "SELECT * FROM events WHERE end_time > ? AND status = 'active' "
            "ORDER BY end_time ASC;",
            (_to_db(cutoff),),
        )
        return [self._row_to_event(r) for r in rows]

    async def delete_event(self, event_id: str) -> bool:
        deleted = await self._execute("DELETE FROM events WHERE event_id = ?;", (event_id,))
        return deleted > 0

    # ── Participants & users ───────────────────────────────────────────

    async def get_participant(self, event_id: str, user_id: str) -> Participant | None:
        row = await self._fetch_one(
            "SELECT * FROM participants WHERE event_id = ? AND user_id = ?;",
            (event_id, user_id),
        )
        return Participant(**row) if row else None

    async def save_participant(self, participant: Participant) -> None:
        await self._execute(
            _UPSERT_PARTICIPANT,
            (participant.event_id, participant.user_id, participant.role),
        )

    async def list_participants(self, event_id: str) -> list[Participant]:
        rows = await self._fetch_all(
            "SELECT * FROM participants WHERE event_id = ? ORDER BY user_id;", (event_id,)
        )
        return [Participant(**r) for r in rows]

    async def delete_participants(self, event_id: str, user_ids: list[str]) -> int:
        if not user_ids:
            return 0
        query = (
            "DELETE FROM participants WHERE event_id = ? "
            f"AND user_id IN ({_placeholders(len(user_ids))});"
        )
        return await self._execute(query, [event_id, *user_ids])

    async def get_user(self, user_id: str) -> User | None:
        row = await self._fetch_one("SELECT * FROM users WHERE user_id = ?;", (user_id,))
        return User(**row) if row else None

    async def save_user(self, user: User) -> None:
        await self._execute(
            _UPSERT_USER,
            (user.user_id, user.display_name, user.active_event_id, user.event_role),
        )

    async def clear_user_event_fields(self, event_id: str, user_ids: list[str]) -> int:
        if not user_ids:
            return 0
        query = (
            "UPDATE users SET active_event_id = NULL, event_role = NULL "
            f"WHERE active_event_id = ? AND user_id IN ({_placeholders(len(user_ids))});"
        )
        return await self._execute(query, [event_id, *user_ids])

    # ── Documents & assets ─────────────────────────────────────────────

    async def get_document(self, event_id: str, document_id: str) -> Document | None:
        row = await self._fetch_one(
            "SELECT * FROM documents WHERE event_id = ? AND document_id = ?;",
            (event_id, document_id),
        )
        return Document(**row) if row else None

    async def save_document(self, document: Document) -> None:
        await self._execute(_UPSERT_DOCUMENT, (
            document.document_id,
            document.event_id,
            document.name,
            document.storage_path,
        ))

    async def list_documents(self, event_id: str) -> list[Document]:
        rows = await self._fetch_all(
            "SELECT * FROM documents WHERE event_id = ? ORDER BY document_id;", (event_id,)
        )
        return [Document(**r) for r in rows]

    async def delete_documents(self, event_id: str, document_ids: list[str]) -> int:
        if not document_ids:
            return 0
        query = (
            "DELETE FROM documents WHERE event_id = ? "
            f"AND document_id IN ({_placeholders(len(document_ids))});"
        )
        return await self._execute(query, [event_id, *document_ids])

    async def get_asset(self, storage_path: str) -> Asset | None:
        row = await self._fetch_one(
            "SELECT * FROM assets WHERE storage_path = ?;", (storage_path,)
        )
        return self._row_to_asset(row) if row else None

    async def upsert_asset(self, asset: Asset) -> None:
        await self._execute(_UPSERT_ASSET, (
            asset.storage_path,
            asset.event_id,
            int(asset.embedded),
            asset.chunk_count,
            _to_db(asset.updated_at),
        ))
        logger.debug(
            "asset_recorded",
            storage_path=asset.storage_path,
            embedded=asset.embedded,
            chunks=asset.chunk_count,
        )

    async def list_assets(self, event_id: str) -> list[Asset]:
        rows = await self._fetch_all(
            "SELECT * FROM assets WHERE event_id = ? ORDER BY storage_path;", (event_id,)
        )
        return [self._row_to_asset(r) for r in rows]

    async def delete_assets(self, storage_paths: list[str]) -> int:
        return await self._delete_in("assets", "storage_path", storage_paths)

    # ── Stories ────────────────────────────────────────────────────────

    async def save_story(self, story: Story) -> None:
        await self._execute(_UPSERT_STORY, (
            story.story_id,
            story.event_id,
            story.kind.value,
            story.author_id,
            story.image_path,
            _to_db(story.created_at),
        ))

    async def list_stories(self, event_id: str, kind: StoryKind | None = None) -> list[Story]:
        if kind is None:
            rows = await self._fetch_all(
                "SELECT * FROM stories WHERE event_id = ? ORDER BY story_id;", (event_id,)
            )
        else:
            rows = await self._fetch_all(
                "SELECT * FROM stories WHERE event_id = ? AND kind = ? ORDER BY story_id;",
                (event_id, kind.value),
            )
        return [self._row_to_story(r) for r in rows]

    async def delete_stories(self, story_ids: list[str]) -> int:
        return await self._delete_in("stories", "story_id", story_ids)

    # ── Row mappers ────────────────────────────────────────────────────

    @staticmethod
    def _row_to_event(row: dict[str, Any]) -> Event:
        return Event(
            event_id=row["event_id"],
            host_id=row["host_id"],
            name=row["name"],
            start_time=_from_db(row["start_time"]),
            end_time=_from_db(row["end_time"]),
            status=EventStatus(row["status"]),
        )

    @staticmethod
    def _row_to_asset(row: dict[str, Any]) -> Asset:
        return Asset(
            storage_path=row["storage_path"],
            event_id=row["event_id"],
            embedded=bool(row["embedded"]),
            chunk_count=row["chunks"],
            updated_at=_from_db(row["updated_at"]),
        )

    @staticmethod
    def _row_to_story(row: dict[str, Any]) -> Story:
        return Story(
            story_id=row["story_id"],
            event_id=row["event_id"],
            kind=StoryKind(row["kind"]),
            author_id=row["author_id"],
            image_path=row["image_path"],
            created_at=_from_db(row["created_at"]),
        )
