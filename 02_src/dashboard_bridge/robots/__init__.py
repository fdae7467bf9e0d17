"""Robot capability descriptors."""

from .descriptor import (
    BUILTIN_ROBOTS,
    CAPABILITY_BINDINGS,
    Capabilities,
    MovementParams,
    RobotConfig,
    RobotTopics,
)
from .store import RobotConfigStore

__all__ = [
    "BUILTIN_ROBOTS",
    "CAPABILITY_BINDINGS",
    "Capabilities",
    "MovementParams",
    "RobotConfig",
    "RobotTopics",
    "RobotConfigStore",
]
