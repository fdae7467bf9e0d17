"""File-backed experiment log store, one NDJSON file per session."""

import asyncio
import json
import os
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from ..errors import AppendUnsupported, InvalidRequest, LogNotFound
from ..files import atomic_write_text
from ..logging_config import get_logger
from ..models import LogFileInfo

logger = get_logger(__name__)

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")
SUMMARY_TYPE = "session_summary"


class ILogStore(Protocol):
    """Durable per-session experiment logs."""

    async def append(self, session_id: str, records: str) -> dict:
        """Merge new records onto the session's file."""
        ...

    async def save(self, session_id: str, full_log: str) -> dict:
        """Idempotent full resend of a session's log."""
        ...

    async def list(self) -> list[LogFileInfo]:
        """Metadata for every stored session."""
        ...

    def path_for(self, session_id: str) -> Path:
        """Path of an existing session file."""
        ...


def canonical(record: dict) -> str:
    return json.dumps(record, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def parse_records(text: str) -> list[dict]:
    """Parse newline-delimited JSON objects; blank lines are ignored."""
    records = []
    for number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except ValueError as e:
            raise InvalidRequest(f"Line {number} is not valid JSON: {e}") from e
        if not isinstance(record, dict):
            raise InvalidRequest(f"Line {number} is not a JSON object")
        records.append(record)
    return records


def _parse_time(value) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class LogStore:
    """Per-session NDJSON files with merge-by-sessionId semantics.

    Both append and save merge: the newest summary record replaces the
    stored one (always line 1) and event records are added unless an
    identical record is already on file. Resending the same records is a
    no-op, so at-least-once delivery never corrupts a file.

    File work runs in a worker thread under a per-session lock; the lock
    entry is dropped once no merge for that session is running or waiting.
    """

    def __init__(self, logs_dir: str | Path, append_enabled: bool = True):
        self._logs_dir = Path(logs_dir)
        self._append_enabled = append_enabled
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @property
    def logs_dir(self) -> Path:
        return self._logs_dir

    @property
    def locked_sessions(self) -> int:
        """Sessions with a merge running or waiting."""
        return len(self._locks)

    async def init(self) -> None:
        """Create the logs directory."""
        self._logs_dir.mkdir(parents=True, exist_ok=True)

    def _file(self, session_id: str) -> Path:
        if (
            not isinstance(session_id, str)
            or not SESSION_ID_PATTERN.match(session_id)
            or session_id in (".", "..")
        ):
            raise InvalidRequest(f"Invalid sessionId: {session_id!r}")
        return self._logs_dir / f"{session_id}.jsonl"

    def path_for(self, session_id: str) -> Path:
        path = self._file(session_id)
        if not path.is_file():
            raise LogNotFound(f"Log file for {session_id} not found")
        return path

    async def append(self, session_id: str, records: str) -> dict:
        """Incremental append of new records."""
        if not self._append_enabled:
            raise AppendUnsupported("Incremental append is disabled on this store")
        return await self._merge(session_id, records)

    async def save(self, session_id: str, full_log: str) -> dict:
        """Full resend; merges with what is already stored."""
        return await self._merge(session_id, full_log)

    async def read(self, session_id: str) -> str:
        """Raw content of a session file."""
        path = self.path_for(session_id)
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    @asynccontextmanager
    async def _session_lock(self, session_id: str):
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if not self._lock_users[session_id]:
                del self._lock_users[session_id]
                del self._locks[session_id]

    async def _merge(self, session_id: str, text: str) -> dict:
        path = self._file(session_id)
        if not isinstance(text, str) or not text.strip():
            raise InvalidRequest("Missing logs")

        incoming = parse_records(text)
        for record in incoming:
            owner = record.get("session_id")
            if owner is not None and owner != session_id:
                raise InvalidRequest(
                    f"Record for session {owner!r} sent to {session_id!r}"
                )

        async with self._session_lock(session_id):
            added, total = await asyncio.to_thread(self._merge_file, path, incoming)

        logger.info("Merged %d new records into %s (%d total)", added, path.name, total)
        return {"path": str(path), "added": added, "records": total}

    def _merge_file(self, path: Path, incoming: list[dict]) -> tuple[int, int]:
        """Read, merge and atomically rewrite one session file. Runs in a thread."""
        summary, events = self._load(path)
        seen = {key for key, _ in events}
        added = 0

        for record in incoming:
            if record.get("type") == SUMMARY_TYPE:
                summary = json.dumps(record, ensure_ascii=False)
                continue
            key = canonical(record)
            if key in seen:
                continue
            seen.add(key)
            events.append((key, json.dumps(record, ensure_ascii=False)))
            added += 1

        lines = ([summary] if summary else []) + [line for _, line in events]
        atomic_write_text(path, "\n".join(lines) + "\n")
        return added, len(lines)

    def _load(self, path: Path) -> tuple[str | None, list[tuple[str, str]]]:
        """Existing summary line and (dedupe key, line) pairs for events."""
        if not path.exists():
            return None, []

        summary = None
        events = []
        for line in path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except ValueError:
                # Keep unreadable lines verbatim rather than drop them
                logger.warning("Unparsable line in %s kept as-is", path.name)
                events.append((line, line))
                continue
            if isinstance(record, dict) and record.get("type") == SUMMARY_TYPE:
                summary = line
            elif isinstance(record, dict):
                events.append((canonical(record), line))
            else:
                events.append((line, line))
        return summary, events

    @staticmethod
    def _created(path: Path, stats: os.stat_result) -> datetime:
        """Session start from the summary line; files are rewritten on every merge."""
        with path.open(encoding="utf-8") as handle:
            first = handle.readline()
        try:
            record = json.loads(first)
        except ValueError:
            record = None
        if isinstance(record, dict) and record.get("type") == SUMMARY_TYPE:
            started = _parse_time(record.get("start_time"))
            if started is not None:
                return started
        created = getattr(stats, "st_birthtime", stats.st_mtime)
        return datetime.fromtimestamp(created, tz=timezone.utc)

    def _scan(self) -> list[LogFileInfo]:
        if not self._logs_dir.exists():
            return []

        files = []
        for path in self._logs_dir.glob("*.jsonl"):
            stats = path.stat()
            files.append(
                LogFileInfo(
                    name=path.name,
                    session_id=path.stem,
                    created=self._created(path, stats),
                    modified=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
                    size=stats.st_size,
                )
            )
        files.sort(key=lambda f: f.created, reverse=True)
        return files

    async def list(self) -> list[LogFileInfo]:
        """Stored sessions, newest first."""
        return await asyncio.to_thread(self._scan)
