"""Experiment session data models."""

import json
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

_ID_ALPHABET = string.ascii_lowercase + string.digits


class SessionState(str, Enum):
    """Lifecycle of the console's current session."""

    IDLE = "idle"
    ACTIVE = "active"
    ENDED = "ended"  # stopped, not yet fully persisted


def new_session_id() -> str:
    """Millisecond timestamp plus a random suffix."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(5))
    return f"exp_{int(time.time() * 1000)}_{suffix}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExperimentSession:
    """Descriptor of one experiment session."""

    session_id: str
    start_time: datetime
    end_time: datetime | None = None
    name: str | None = None
    operator_id: str | None = None
    notes: str | None = None

    def duration_seconds(self, now: datetime | None = None) -> float:
        end = self.end_time or now or utcnow()
        return (end - self.start_time).total_seconds()

    def summary_record(self, event_count: int) -> dict:
        return {
            "type": "session_summary",
            "session_id": self.session_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "experiment_name": self.name,
            "operator_id": self.operator_id,
            "notes": self.notes,
            "event_count": event_count,
            "duration_seconds": self.duration_seconds() if self.end_time else None,
        }

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "name": self.name,
            "operator_id": self.operator_id,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExperimentSession":
        return cls(
            session_id=data["session_id"],
            start_time=datetime.fromisoformat(data["start_time"]),
            end_time=datetime.fromisoformat(data["end_time"]) if data.get("end_time") else None,
            name=data.get("name"),
            operator_id=data.get("operator_id"),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class ExperimentEvent:
    """One operator-logged event. Ordered by seq, not by timestamp."""

    seq: int
    session_id: str
    timestamp: datetime
    event_type: str
    action: str
    details: dict = field(default_factory=dict)
    operator_id: str | None = None

    def to_record(self) -> dict:
        record: dict[str, Any] = {
            "type": "event",
            "session_id": self.session_id,
            "seq": self.seq,
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type,
            "action": self.action,
            "details": self.details,
        }
        if self.operator_id:
            record["operator_id"] = self.operator_id
        return record

    @classmethod
    def from_record(cls, record: dict) -> "ExperimentEvent":
        return cls(
            seq=int(record["seq"]),
            session_id=record["session_id"],
            timestamp=datetime.fromisoformat(record["timestamp"]),
            event_type=record["event_type"],
            action=record["action"],
            details=dict(record.get("details") or {}),
            operator_id=record.get("operator_id"),
        )


def to_line(record: dict) -> str:
    return json.dumps(record, ensure_ascii=False, default=str)


class LogBuffer:
    """Ordered events plus the count already acknowledged by the log store.

    0 <= watermark <= len(events) always holds and the watermark never
    moves backwards.
    """

    def __init__(
        self,
        events: list[ExperimentEvent] | None = None,
        watermark: int = 0,
        acked_summary: str | None = None,
    ):
        self._events = list(events or [])
        if not 0 <= watermark <= len(self._events):
            raise ValueError(f"watermark {watermark} outside 0..{len(self._events)}")
        self._watermark = watermark
        # Summary line last acknowledged by the store
        self.acked_summary = acked_summary

    def __len__(self) -> int:
        return len(self._events)

    @property
    def watermark(self) -> int:
        return self._watermark

    @property
    def fully_acknowledged(self) -> bool:
        return self._watermark == len(self._events)

    def append(self, event: ExperimentEvent) -> None:
        self._events.append(event)

    def get_all(self) -> list[ExperimentEvent]:
        return self._events.copy()

    def pending(self, upto: int | None = None) -> list[ExperimentEvent]:
        """Events after the watermark, optionally capped at index upto."""
        end = len(self._events) if upto is None else upto
        return self._events[self._watermark:end]

    def acknowledge(self, count: int) -> None:
        """Advance the watermark to count; never backwards."""
        if count > len(self._events):
            raise ValueError(f"cannot acknowledge {count} of {len(self._events)} events")
        if count > self._watermark:
            self._watermark = count
