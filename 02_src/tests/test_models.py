"""Tests for data models."""

from datetime import datetime, timedelta, timezone

import pytest

from dashboard_bridge.models import ActionResult, ActionStatus
from operator_console.models import (
    ExperimentEvent,
    ExperimentSession,
    LogBuffer,
    new_session_id,
)

START = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def make_event(seq: int) -> ExperimentEvent:
    return ExperimentEvent(
        seq=seq,
        session_id="exp_1_abcde",
        timestamp=START + timedelta(seconds=seq),
        event_type="movement",
        action="forward",
    )


class TestActionStatus:
    """Tests for ActionStatus."""

    def test_coerce(self):
        assert ActionStatus.coerce(4) is ActionStatus.SUCCEEDED
        assert ActionStatus.coerce("6") is ActionStatus.ABORTED
        assert ActionStatus.coerce(None) is ActionStatus.UNKNOWN
        assert ActionStatus.coerce(99) is ActionStatus.UNKNOWN

    def test_terminal(self):
        assert ActionStatus.CANCELED.is_terminal
        assert not ActionStatus.EXECUTING.is_terminal

    def test_success_rule(self):
        """Test success from either status or payload."""
        assert ActionResult(ActionStatus.SUCCEEDED).success
        assert ActionResult(ActionStatus.ABORTED, {"success": True}).success
        assert not ActionResult(ActionStatus.ABORTED, {"success": "yes"}).success


class TestExperimentSession:
    """Tests for ExperimentSession."""

    def test_session_id_unique(self):
        ids = {new_session_id() for _ in range(50)}
        assert len(ids) == 50

    def test_summary_record(self):
        """Test summary fields for an ended session."""
        session = ExperimentSession("exp_1_abcde", START, START + timedelta(seconds=90), name="t1")
        record = session.summary_record(event_count=3)

        assert record["type"] == "session_summary"
        assert record["experiment_name"] == "t1"
        assert record["event_count"] == 3
        assert record["duration_seconds"] == 90.0

    def test_summary_of_running_session(self):
        """Test that a running session reports no end or duration."""
        record = ExperimentSession("exp_1_abcde", START).summary_record(0)
        assert record["end_time"] is None
        assert record["duration_seconds"] is None

    def test_dict_round_trip(self):
        session = ExperimentSession("exp_1_abcde", START, notes="n")
        assert ExperimentSession.from_dict(session.to_dict()) == session


class TestExperimentEvent:
    """Tests for ExperimentEvent."""

    def test_record_round_trip(self):
        event = make_event(2)
        assert ExperimentEvent.from_record(event.to_record()) == event

    def test_operator_only_when_set(self):
        assert "operator_id" not in make_event(0).to_record()


class TestLogBuffer:
    """Tests for LogBuffer."""

    def test_pending_after_watermark(self):
        buffer = LogBuffer([make_event(i) for i in range(4)], watermark=1)
        assert [e.seq for e in buffer.pending()] == [1, 2, 3]
        assert [e.seq for e in buffer.pending(upto=3)] == [1, 2]

    def test_acknowledge_never_moves_back(self):
        buffer = LogBuffer([make_event(i) for i in range(3)])
        buffer.acknowledge(2)
        buffer.acknowledge(1)
        assert buffer.watermark == 2

    def test_acknowledge_beyond_length(self):
        buffer = LogBuffer([make_event(0)])
        with pytest.raises(ValueError):
            buffer.acknowledge(2)

    def test_invalid_initial_watermark(self):
        with pytest.raises(ValueError):
            LogBuffer([], watermark=1)

    def test_fully_acknowledged(self):
        buffer = LogBuffer([make_event(0)])
        assert not buffer.fully_acknowledged
        buffer.acknowledge(1)
        assert buffer.fully_acknowledged
