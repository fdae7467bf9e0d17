"""Conversion of remote result payloads into plain JSON-safe data."""

import dataclasses
import math
from typing import Any

_DROP = object()


def to_json_safe(value: Any) -> dict:
    """Normalize a result payload to a JSON-safe dict.

    Non-dict payloads are wrapped as ``{"value": ...}``. Values that cannot
    be represented (transport wrappers, handles, callables) are dropped.
    """
    converted = _convert(value)
    if converted is _DROP or converted is None:
        return {}
    if isinstance(converted, dict):
        return converted
    return {"value": converted}


def _convert(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value

    if isinstance(value, float):
        return value if math.isfinite(value) else None

    if isinstance(value, (bytes, bytearray)):
        # uint8[] arrays arrive as raw bytes from some transports
        return list(value)

    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            converted = _convert(item)
            if converted is not _DROP:
                out[str(key)] = converted
        return out

    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_convert(item) for item in value]
        return [None if item is _DROP else item for item in items]

    if hasattr(value, "model_dump"):
        return _convert(value.model_dump())

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _convert(dataclasses.asdict(value))

    return _DROP
