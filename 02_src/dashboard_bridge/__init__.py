"""Robot dashboard bridge: action gateway, recording control, log store."""

from .actions import ActionGateway, ActionTypeRegistry, ActionTypeSpec, RosbridgeTransport
from .app import Application, IApplication
from .errors import BridgeError
from .log_store import ILogStore, LogStore
from .models import (
    ActionResult,
    ActionStatus,
    LogFileInfo,
    RecordingHandle,
    RecordingState,
)
from .recording import IRecordingController, RecordingController
from .robots import RobotConfig, RobotConfigStore

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "ActionResult",
    "ActionStatus",
    "LogFileInfo",
    "RecordingHandle",
    "RecordingState",
    "RobotConfig",
    # Components
    "ActionGateway",
    "ActionTypeRegistry",
    "ActionTypeSpec",
    "RosbridgeTransport",
    "IRecordingController",
    "RecordingController",
    "ILogStore",
    "LogStore",
    "RobotConfigStore",
    # Errors
    "BridgeError",
]
