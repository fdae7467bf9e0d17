"""Action gateway module."""

from .gateway import ActionClient, ActionGateway, IActionGateway
from .registry import BUILTIN_ACTION_TYPES, ActionTypeRegistry, ActionTypeSpec
from .serialization import to_json_safe
from .transport import IActionTransport, RawActionResult, RosbridgeTransport

__all__ = [
    "ActionClient",
    "ActionGateway",
    "IActionGateway",
    "BUILTIN_ACTION_TYPES",
    "ActionTypeRegistry",
    "ActionTypeSpec",
    "to_json_safe",
    "IActionTransport",
    "RawActionResult",
    "RosbridgeTransport",
]
