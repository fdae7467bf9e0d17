"""Explicit registry of action types the gateway can drive."""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

from ..errors import ActionTypeUnresolvable, ConfigurationError
from ..logging_config import get_logger

logger = get_logger(__name__)

INTERFACE_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*/action/[A-Za-z][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class ActionTypeSpec:
    """Goal/result shape and transport binding of one action type."""

    tag: str  # short tag used by callers, e.g. "ArmMove"
    interface: str  # remote interface name, e.g. "pkg/action/Name"
    transport: str = "rosbridge"
    goal_schema: dict[str, str] = field(default_factory=dict, hash=False)
    result_schema: dict[str, str] = field(default_factory=dict, hash=False)

    def to_dict(self) -> dict:
        return {
            "tag": self.tag,
            "interface": self.interface,
            "transport": self.transport,
            "goal": dict(self.goal_schema),
            "result": dict(self.result_schema),
        }


BUILTIN_ACTION_TYPES: tuple[ActionTypeSpec, ...] = (
    ActionTypeSpec(
        tag="RobotMove",
        interface="robomaster_hri_msgs/action/MoveRobotWorldRef",
        goal_schema={"x": "float64", "y": "float64", "theta": "float64",
                     "linear_speed": "float64", "angular_speed": "float64"},
        result_schema={"success": "bool", "message": "string"},
    ),
    ActionTypeSpec(
        tag="ArmMove",
        interface="robomaster_hri_msgs/action/MoveArmPose",
        goal_schema={"pose": "int8"},
        result_schema={"success": "bool", "message": "string"},
    ),
    ActionTypeSpec(
        tag="Gripper",
        interface="robomaster_msgs/action/GripperControl",
        goal_schema={"target_state": "uint8", "power": "float32"},
        result_schema={},
    ),
    ActionTypeSpec(
        tag="FollowJointTrajectory",
        interface="control_msgs/action/FollowJointTrajectory",
        goal_schema={"trajectory": "trajectory_msgs/JointTrajectory"},
        result_schema={"error_code": "int32", "error_string": "string"},
    ),
)


class ActionTypeRegistry:
    """Maps action-type tags to their specs.

    A spec can be looked up by its short tag or by its full interface name.
    Unknown tags raise ActionTypeUnresolvable; nothing is discovered at
    call time.
    """

    def __init__(self, specs: Iterable[ActionTypeSpec] = BUILTIN_ACTION_TYPES):
        self._by_tag: dict[str, ActionTypeSpec] = {}
        self._by_interface: dict[str, ActionTypeSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: ActionTypeSpec) -> None:
        """Register a spec. Conflicting redefinitions are rejected."""
        if not spec.tag or not spec.tag.strip():
            raise ConfigurationError("Action type tag must be non-empty")
        if not INTERFACE_PATTERN.match(spec.interface):
            raise ConfigurationError(
                f"Action type {spec.tag}: invalid interface name {spec.interface!r}"
            )

        existing = self._by_tag.get(spec.tag)
        if existing is not None and existing != spec:
            raise ConfigurationError(f"Action type {spec.tag} registered twice")

        self._by_tag[spec.tag] = spec
        # First registration wins for the interface alias
        self._by_interface.setdefault(spec.interface, spec)

    def resolve(self, tag: str) -> ActionTypeSpec:
        """Resolve a tag (or interface name) to its spec."""
        spec = self._by_tag.get(tag) or self._by_interface.get(tag)
        if spec is None:
            raise ActionTypeUnresolvable(f"Unknown action type: {tag}")
        return spec

    def validate(self, transports: Iterable[str]) -> None:
        """Check every spec binds to an available transport."""
        available = set(transports)
        for spec in self._by_tag.values():
            if spec.transport not in available:
                raise ConfigurationError(
                    f"Action type {spec.tag} is bound to unknown transport "
                    f"{spec.transport!r} (available: {sorted(available)})"
                )

    def load_file(self, path: str | Path) -> int:
        """Register extra action types declared in a JSON file.

        The file holds a list of objects with ``tag``, ``interface`` and
        optional ``transport``, ``goal`` and ``result`` field maps.
        Returns the number of specs registered.
        """
        try:
            entries = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot read action types file {path}: {e}") from e

        if not isinstance(entries, list):
            raise ConfigurationError(f"Action types file {path} must contain a list")

        count = 0
        for entry in entries:
            if not isinstance(entry, dict):
                raise ConfigurationError(f"Invalid action type entry: {entry!r}")
            try:
                spec = ActionTypeSpec(
                    tag=str(entry["tag"]),
                    interface=str(entry["interface"]),
                    transport=str(entry.get("transport", "rosbridge")),
                    goal_schema=dict(entry.get("goal") or {}),
                    result_schema=dict(entry.get("result") or {}),
                )
            except KeyError as e:
                raise ConfigurationError(f"Action type entry missing {e}") from e
            self.register(spec)
            count += 1

        logger.info("Loaded %d action types from %s", count, path)
        return count

    def __iter__(self) -> Iterator[ActionTypeSpec]:
        return iter(self._by_tag.values())

    def __len__(self) -> int:
        return len(self._by_tag)

    def __contains__(self, tag: object) -> bool:
        return tag in self._by_tag or tag in self._by_interface
