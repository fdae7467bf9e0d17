"""Core data models for the dashboard bridge."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any


class ActionStatus(IntEnum):
    """Goal status codes of the remote action protocol."""

    UNKNOWN = 0
    ACCEPTED = 1
    EXECUTING = 2
    CANCELING = 3
    SUCCEEDED = 4
    CANCELED = 5
    ABORTED = 6

    @classmethod
    def coerce(cls, value: Any) -> "ActionStatus":
        """Map a raw status code to the enum, UNKNOWN for anything else."""
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (
            ActionStatus.SUCCEEDED,
            ActionStatus.CANCELED,
            ActionStatus.ABORTED,
        )


@dataclass
class ActionResult:
    """Normalized outcome of one action invocation."""

    status: ActionStatus
    result: dict = field(default_factory=dict)  # JSON-safe payload

    @property
    def success(self) -> bool:
        """Succeeded status OR an explicit ``success: true`` in the payload.

        Some remote handlers finish with a non-Succeeded status but report
        success inside their result message, so both signals are honoured.
        The payload check is a strict ``is True``, not truthiness.
        """
        return self.status == ActionStatus.SUCCEEDED or self.result.get("success") is True

    def to_dict(self) -> dict:
        return {
            "status": int(self.status),
            "status_name": self.status.name.lower(),
            "success": self.success,
            "result": self.result,
        }


class RecordingState(str, Enum):
    """Recording slot state."""

    IDLE = "idle"
    RECORDING = "recording"


@dataclass
class RecordingHandle:
    """The single external bulk-recording process."""

    session_label: str
    output_path: str
    topics: list[str]
    pid: int | None = None
    state: RecordingState = RecordingState.IDLE
    started_at: datetime | None = None


@dataclass
class LogFileInfo:
    """Metadata of one stored session log."""

    name: str
    session_id: str
    created: datetime
    modified: datetime
    size: int

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "sessionId": self.session_id,
            "created": self.created.isoformat(),
            "modified": self.modified.isoformat(),
            "size": self.size,
        }
