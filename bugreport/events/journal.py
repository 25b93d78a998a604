"""SQLite outbox storage for undelivered report events."""

import json
import logging
import time
from pathlib import Path

import aiosqlite

from bugreport.events.models import ReportEvent
from bugreport.events.outbox import FlushResult, Sender, flush_outbox

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS outbox (
    id          TEXT    PRIMARY KEY,
    payload     TEXT    NOT NULL,
    created_at  REAL    NOT NULL
);
"""


class SqliteOutbox:
    """SQLite-backed outbox. One connection per instance; the event id is the row key."""

    def __init__(self, db_path: Path | str, busy_timeout: int = 5000) -> None:
        self._db_path = Path(db_path)
        self._busy_timeout = busy_timeout
        self._conn: aiosqlite.Connection | None = None

    async def _ensure_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = await aiosqlite.connect(str(self._db_path))
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.execute("PRAGMA synchronous=FULL")
            await self._conn.execute(f"PRAGMA busy_timeout={self._busy_timeout}")
            await self._conn.executescript(_SCHEMA)
            await self._conn.commit()
        return self._conn

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def enqueue(self, event: ReportEvent) -> bool:
        """Insert or replace the row for event.id. Returns False on storage errors."""
        try:
            body = json.dumps(event.to_dict(), ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            logger.exception("Event %s is not serializable; dropped", event.id)
            return False
        try:
            conn = await self._ensure_conn()
            await conn.execute(
                "INSERT OR REPLACE INTO outbox (id, payload, created_at) VALUES (?, ?, ?)",
                (event.id, body, time.time()),
            )
            await conn.commit()
        except (aiosqlite.Error, OSError) as e:
            logger.warning("Outbox enqueue failed for %s: %s", event.id, e)
            return False
        return True

    async def pending(self) -> list[ReportEvent]:
        """Stored events ordered by id. Rows that fail to parse are deleted."""
        try:
            conn = await self._ensure_conn()
            cursor = await conn.execute("SELECT id, payload FROM outbox ORDER BY id")
            rows = await cursor.fetchall()
        except (aiosqlite.Error, OSError) as e:
            logger.warning("Outbox read failed: %s", e)
            return []
        events: list[ReportEvent] = []
        corrupt: list[str] = []
        for row_id, payload in rows:
            try:
                events.append(ReportEvent.from_json(payload, row_id))
            except (ValueError, TypeError, KeyError) as e:
                logger.warning("Deleting corrupt outbox row %s: %s", row_id, e)
                corrupt.append(row_id)
        if corrupt:
            placeholders = ",".join("?" * len(corrupt))
            try:
                await conn.execute(f"DELETE FROM outbox WHERE id IN ({placeholders})", corrupt)
                await conn.commit()
            except aiosqlite.Error as e:
                logger.warning("Outbox cleanup of corrupt rows failed: %s", e)
        return events

    async def ack(self, event_id: str) -> None:
        try:
            conn = await self._ensure_conn()
            await conn.execute("DELETE FROM outbox WHERE id = ?", (event_id,))
            await conn.commit()
        except (aiosqlite.Error, OSError) as e:
            logger.warning("Outbox ack failed for %s: %s", event_id, e)

    async def flush_with(self, reporter: Sender) -> FlushResult:
        return await flush_outbox(self, reporter)

    async def size(self) -> int:
        conn = await self._ensure_conn()
        cursor = await conn.execute("SELECT COUNT(*) FROM outbox")
        row = await cursor.fetchone()
        return int(row[0]) if row else 0
