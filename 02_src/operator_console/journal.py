"""Durable local journal for experiment sessions (SQLite)."""

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import aiosqlite

from dashboard_bridge.config import PathLike
from dashboard_bridge.logging_config import get_logger

from .config import resolve_journal_path
from .errors import StorageCorrupted
from .models import ExperimentEvent, ExperimentSession, LogBuffer, SessionState, to_line

logger = get_logger(__name__)

EXPECTED_COLUMNS = {
    "sessions": {"session_id", "descriptor", "state", "watermark", "acked_summary"},
    "events": {"session_id", "seq", "payload"},
}


@dataclass
class JournalEntry:
    """One session as read back from the journal."""

    session: ExperimentSession
    state: SessionState
    buffer: LogBuffer


class IJournal(Protocol):
    """Local persistence for sessions, their events and sync progress."""

    async def init(self) -> None:
        """Open the journal and create tables."""
        ...

    async def close(self) -> None:
        """Close the journal."""
        ...

    async def save_session(self, session: ExperimentSession, state: SessionState) -> None:
        """Insert or update a session descriptor and its state."""
        ...

    async def append_event(self, event: ExperimentEvent) -> None:
        """Persist one event."""
        ...

    async def set_watermark(
        self, session_id: str, watermark: int, acked_summary: str | None
    ) -> None:
        """Record sync progress for a session."""
        ...

    async def load_sessions(self) -> list[JournalEntry]:
        """Read every journaled session back."""
        ...

    async def delete_session(self, session_id: str) -> None:
        """Forget a session and its events."""
        ...

    async def clear(self) -> None:
        """Remove everything."""
        ...


class Journal:
    """SQLite journal, namespaced by session id."""

    def __init__(self, db_path: PathLike | None = None):
        self._db_path = resolve_journal_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Open the journal.

        A file that is not a SQLite database, or one whose tables do not
        match the journal schema, is discarded and recreated.
        """
        try:
            await self._open()
            await self._check_schema()
        except (sqlite3.DatabaseError, StorageCorrupted) as e:
            await self._reset(e)

    async def _reset(self, reason: Exception) -> None:
        logger.warning("Journal %s is unusable (%s), starting clean", self._db_path, reason)
        await self.close()
        if self._db_path != ":memory:":
            Path(self._db_path).unlink(missing_ok=True)
        await self._open()

    async def _check_schema(self) -> None:
        conn = self._require()
        for table, expected in EXPECTED_COLUMNS.items():
            cursor = await conn.execute(f"PRAGMA table_info({table})")
            columns = {row[1] for row in await cursor.fetchall()}
            missing = expected - columns
            if missing:
                raise StorageCorrupted(
                    f"table {table} lacks columns {', '.join(sorted(missing))}"
                )

    async def _open(self) -> None:
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)

        # Read and execute schema
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close the journal."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Journal not initialized")
        return self._conn

    async def save_session(self, session: ExperimentSession, state: SessionState) -> None:
        """Insert or update a session descriptor and its state."""
        conn = self._require()
        await conn.execute(
            """
            INSERT INTO sessions (session_id, descriptor, state)
            VALUES (?, ?, ?)
            ON CONFLICT(session_id) DO UPDATE SET
                descriptor = excluded.descriptor,
                state = excluded.state,
                updated_at = CURRENT_TIMESTAMP
            """,
            (session.session_id, json.dumps(session.to_dict()), state.value),
        )
        await conn.commit()

    async def append_event(self, event: ExperimentEvent) -> None:
        """Persist one event."""
        conn = self._require()
        await conn.execute(
            "INSERT INTO events (session_id, seq, payload) VALUES (?, ?, ?)",
            (event.session_id, event.seq, to_line(event.to_record())),
        )
        await conn.commit()

    async def set_watermark(
        self, session_id: str, watermark: int, acked_summary: str | None
    ) -> None:
        """Record sync progress for a session."""
        conn = self._require()
        await conn.execute(
            """
            UPDATE sessions
            SET watermark = MAX(watermark, ?), acked_summary = ?, updated_at = CURRENT_TIMESTAMP
            WHERE session_id = ?
            """,
            (watermark, acked_summary, session_id),
        )
        await conn.commit()

    async def load_sessions(self) -> list[JournalEntry]:
        """Read every journaled session back, oldest first.

        A session whose rows cannot be parsed is dropped from the journal
        and omitted from the result. If the tables themselves cannot be
        read, the journal starts clean.
        """
        try:
            session_rows, event_rows = await self._read_rows()
        except sqlite3.DatabaseError as e:
            await self._reset(StorageCorrupted(f"unreadable tables: {e}"))
            return []

        payloads: dict[str, list[tuple[int, str]]] = {}
        for session_id, seq, payload in event_rows:
            payloads.setdefault(session_id, []).append((seq, payload))

        entries = []
        for session_id, descriptor, state, watermark, acked_summary in session_rows:
            try:
                entry = self._parse_entry(
                    descriptor, state, watermark, acked_summary, payloads.get(session_id, [])
                )
            except StorageCorrupted as e:
                logger.warning("Discarding journaled session %s: %s", session_id, e)
                await self.delete_session(session_id)
                continue
            entries.append(entry)

        entries.sort(key=lambda entry: entry.session.start_time)
        return entries

    async def _read_rows(self) -> tuple[list, list]:
        conn = self._require()
        cursor = await conn.execute(
            "SELECT session_id, descriptor, state, watermark, acked_summary FROM sessions"
        )
        session_rows = await cursor.fetchall()
        cursor = await conn.execute(
            "SELECT session_id, seq, payload FROM events ORDER BY session_id, seq"
        )
        event_rows = await cursor.fetchall()
        return list(session_rows), list(event_rows)

    @staticmethod
    def _parse_entry(
        descriptor: str,
        state: str,
        watermark: int,
        acked_summary: str | None,
        payloads: list[tuple[int, str]],
    ) -> JournalEntry:
        try:
            session = ExperimentSession.from_dict(json.loads(descriptor))
            events = [ExperimentEvent.from_record(json.loads(p)) for _, p in payloads]
            parsed_state = SessionState(state)
        except (ValueError, KeyError, TypeError) as e:
            raise StorageCorrupted(f"unreadable row: {e}") from e

        # Event sequence must be gapless from zero
        if [event.seq for event in events] != list(range(len(events))):
            raise StorageCorrupted("event sequence has gaps")
        try:
            buffer = LogBuffer(events, watermark, acked_summary)
        except ValueError as e:
            raise StorageCorrupted(str(e)) from e
        return JournalEntry(session=session, state=parsed_state, buffer=buffer)

    async def delete_session(self, session_id: str) -> None:
        """Forget a session and its events."""
        conn = self._require()
        await conn.execute("DELETE FROM events WHERE session_id = ?", (session_id,))
        await conn.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))
        await conn.commit()

    async def clear(self) -> None:
        """Remove everything."""
        conn = self._require()
        await conn.execute("DELETE FROM events")
        await conn.execute("DELETE FROM sessions")
        await conn.commit()
