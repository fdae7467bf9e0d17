"""Event category helpers for common operator actions."""

from enum import Enum
from typing import Any

from .models import ExperimentEvent
from .session import ISessionManager


class EventCategory(str, Enum):
    """event_type values written by the console."""

    MOVEMENT = "movement"
    ARM_CONTROL = "arm_control"
    LED_CONTROL = "led_control"
    SOUND_CONTROL = "sound_control"
    GRIPPER_CONTROL = "gripper_control"
    MACRO = "macro"
    SYSTEM = "system"


class ExperimentLogger:
    """Thin wrapper that tags events with their category."""

    def __init__(self, manager: ISessionManager, operator_id: str | None = None):
        self._manager = manager
        self._operator_id = operator_id

    async def log(
        self,
        category: EventCategory | str,
        action: str,
        details: dict[str, Any] | None = None,
    ) -> ExperimentEvent:
        event_type = category.value if isinstance(category, EventCategory) else category
        return await self._manager.log_event(
            event_type, action, details, operator_id=self._operator_id
        )

    async def movement(self, action: str, details: dict[str, Any] | None = None) -> ExperimentEvent:
        return await self.log(EventCategory.MOVEMENT, action, details)

    async def arm(self, action: str, details: dict[str, Any] | None = None) -> ExperimentEvent:
        return await self.log(EventCategory.ARM_CONTROL, action, details)

    async def led(self, action: str, details: dict[str, Any] | None = None) -> ExperimentEvent:
        return await self.log(EventCategory.LED_CONTROL, action, details)

    async def sound(self, action: str, details: dict[str, Any] | None = None) -> ExperimentEvent:
        return await self.log(EventCategory.SOUND_CONTROL, action, details)

    async def gripper(self, action: str, details: dict[str, Any] | None = None) -> ExperimentEvent:
        return await self.log(EventCategory.GRIPPER_CONTROL, action, details)

    async def macro(self, action: str, details: dict[str, Any] | None = None) -> ExperimentEvent:
        return await self.log(EventCategory.MACRO, action, details)

    async def system(self, action: str, details: dict[str, Any] | None = None) -> ExperimentEvent:
        return await self.log(EventCategory.SYSTEM, action, details)
