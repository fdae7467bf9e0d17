"""Tests for result payload normalization."""

import math
from dataclasses import dataclass

from pydantic import BaseModel

from dashboard_bridge.actions import to_json_safe


@dataclass
class Pose:
    x: float
    y: float


class Reply(BaseModel):
    success: bool
    message: str


class TestToJsonSafe:
    """Tests for to_json_safe()."""

    def test_plain_dict_unchanged(self):
        """Test that plain JSON data passes through."""
        payload = {"success": True, "message": "done", "codes": [1, 2]}
        assert to_json_safe(payload) == payload

    def test_none_is_empty(self):
        """Test that a missing payload becomes an empty dict."""
        assert to_json_safe(None) == {}

    def test_scalar_wrapped(self):
        """Test that non-dict payloads are wrapped."""
        assert to_json_safe(3) == {"value": 3}
        assert to_json_safe([1, 2]) == {"value": [1, 2]}

    def test_non_finite_floats(self):
        """Test that NaN and infinity become null."""
        result = to_json_safe({"a": math.nan, "b": math.inf, "c": 1.5})
        assert result == {"a": None, "b": None, "c": 1.5}

    def test_bytes_become_int_list(self):
        """Test that uint8 arrays are expanded."""
        assert to_json_safe({"data": b"\x01\x02"}) == {"data": [1, 2]}

    def test_nested_models(self):
        """Test that dataclasses and pydantic models are converted."""
        result = to_json_safe({"pose": Pose(1.0, 2.0), "reply": Reply(success=True, message="ok")})
        assert result == {"pose": {"x": 1.0, "y": 2.0}, "reply": {"success": True, "message": "ok"}}

    def test_unrepresentable_values_dropped(self):
        """Test that handles and callables are dropped."""
        result = to_json_safe({"ok": 1, "handle": object(), "cb": print, "items": [object(), 2]})
        assert result == {"ok": 1, "items": [None, 2]}

    def test_non_string_keys(self):
        """Test that keys are stringified."""
        assert to_json_safe({1: "a"}) == {"1": "a"}
