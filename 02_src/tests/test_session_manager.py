"""Tests for SessionManager."""

import asyncio
import json
import re

import pytest
import pytest_asyncio

from conftest import InProcessLogClient
from operator_console import EventCategory, ExperimentLogger
from operator_console.errors import SessionStateError, SyncFailed
from operator_console.journal import Journal
from operator_console.models import SessionState
from operator_console.session import SessionManager


@pytest_asyncio.fixture
async def manager(journal, log_client):
    """Session manager whose timer never fires during a test."""
    sm = SessionManager(journal, log_client, sync_interval=3600)
    yield sm
    await sm.close()


def stored_records(log_store, session_id) -> list[dict]:
    text = log_store.path_for(session_id).read_text()
    return [json.loads(line) for line in text.splitlines() if line.strip()]


def stored_seqs(log_store, session_id) -> list[int]:
    return [r["seq"] for r in stored_records(log_store, session_id) if r["type"] == "event"]


async def crash(manager: SessionManager) -> None:
    """Drop a manager without stopping its session."""
    await manager._stop_timer()
    await manager._journal.close()


class TestSessionLifecycle:
    """Tests for start_session(), log_event() and stop_session()."""

    async def test_start_session(self, manager, journal):
        """Test that a started session is active and journaled."""
        session_id = await manager.start_session("trial1", operator_id="op1", notes="warmup")

        assert re.fullmatch(r"exp_\d+_[a-z0-9]{5}", session_id)
        assert manager.state is SessionState.ACTIVE
        [entry] = await journal.load_sessions()
        assert entry.session.session_id == session_id
        assert entry.session.name == "trial1"
        assert entry.state is SessionState.ACTIVE

    async def test_start_while_active(self, manager):
        """Test that only one session can be active."""
        await manager.start_session("trial1")
        with pytest.raises(SessionStateError):
            await manager.start_session("trial2")

    async def test_log_without_session(self, manager):
        """Test that logging requires an active session."""
        with pytest.raises(SessionStateError):
            await manager.log_event("movement", "forward")

    async def test_log_event_persists_immediately(self, manager, journal):
        """Test that events are journaled before log_event returns."""
        await manager.start_session("trial1")
        for i in range(3):
            event = await manager.log_event("movement", "forward", {"step": i})
            assert event.seq == i

        [entry] = await journal.load_sessions()
        assert [e.details["step"] for e in entry.buffer.get_all()] == [0, 1, 2]

    async def test_stop_session_syncs_and_goes_idle(self, manager, journal, log_store):
        """Test that a clean stop persists everything and frees the journal."""
        session_id = await manager.start_session("trial1")
        await manager.log_event("movement", "forward")

        session = await manager.stop_session()

        assert session.end_time is not None
        assert manager.state is SessionState.IDLE
        assert await journal.load_sessions() == []
        records = stored_records(log_store, session_id)
        assert records[0]["type"] == "session_summary"
        assert records[0]["end_time"] is not None
        assert records[0]["event_count"] == 1

    async def test_stop_without_session(self, manager):
        """Test that stop requires an active session."""
        with pytest.raises(SessionStateError):
            await manager.stop_session()

    async def test_log_after_stop_rejected(self, manager):
        """Test that an ended session is read-only."""
        await manager.start_session("trial1")
        await manager.stop_session()
        with pytest.raises(SessionStateError):
            await manager.log_event("movement", "forward")

    async def test_session_info_and_export(self, manager):
        """Test inspection of the current session."""
        assert manager.session_info() is None
        await manager.start_session("trial1", operator_id="op1")
        await manager.log_event("movement", "forward")
        await manager.log_event("system", "panic")

        info = manager.session_info()
        assert info["state"] == "active"
        assert info["event_count"] == 2
        assert info["pending"] == 2

        lines = manager.export_jsonl().strip().splitlines()
        assert len(lines) == 3
        assert json.loads(lines[0])["experiment_name"] == "trial1"

    async def test_clear_requires_inactive(self, manager):
        """Test that clear refuses to drop an active session."""
        await manager.start_session("trial1")
        with pytest.raises(SessionStateError):
            await manager.clear()
        await manager.stop_session()
        await manager.clear()
        assert manager.session is None


class TestSynchronize:
    """Tests for synchronize()."""

    async def test_incremental_append(self, manager, log_client, log_store):
        """Test that only events after the watermark are sent."""
        session_id = await manager.start_session("trial1")
        await manager.log_event("movement", "forward")
        await manager.log_event("movement", "back")
        assert await manager.synchronize() is True
        assert manager.watermark == 2

        await manager.log_event("movement", "left")
        assert await manager.synchronize() is True

        last_call = log_client.calls[-1]
        assert last_call[0] == "append"
        sent = [json.loads(line) for line in last_call[2].splitlines()]
        assert sent[0]["type"] == "session_summary"
        assert [r["seq"] for r in sent[1:]] == [2]
        assert stored_seqs(log_store, session_id) == [0, 1, 2]

    async def test_nothing_new_sends_nothing(self, manager, log_client):
        """Test that a repeated sync without changes is a no-op."""
        await manager.start_session("trial1")
        await manager.log_event("movement", "forward")
        await manager.synchronize()
        calls = len(log_client.calls)

        assert await manager.synchronize() is True
        assert len(log_client.calls) == calls

    async def test_failure_keeps_watermark(self, manager, log_client, log_store):
        """Test that a failed sync leaves everything pending."""
        session_id = await manager.start_session("trial1")
        await manager.log_event("movement", "forward")
        log_client.fail = True

        assert await manager.synchronize() is False
        assert manager.watermark == 0

        log_client.fail = False
        assert await manager.synchronize() is True
        assert manager.watermark == 1
        assert stored_seqs(log_store, session_id) == [0]

    async def test_full_resend_fallback(self, manager, log_client, log_store):
        """Test that an append-less store gets the full log instead."""
        log_client.append_supported = False
        session_id = await manager.start_session("trial1")
        await manager.log_event("movement", "forward")
        await manager.log_event("movement", "back")

        assert await manager.synchronize() is True

        assert [c[0] for c in log_client.calls] == ["append", "save"]
        assert manager.watermark == 2
        assert stored_seqs(log_store, session_id) == [0, 1]

    async def test_watermark_monotonic(self, manager, log_client):
        """Test that the watermark only moves forward across mixed outcomes."""
        await manager.start_session("trial1")
        seen = [manager.watermark]
        for i in range(6):
            await manager.log_event("movement", f"step{i}")
            log_client.fail = i % 2 == 1
            await manager.synchronize()
            seen.append(manager.watermark)

        assert seen == sorted(seen)
        assert all(0 <= w <= len(manager.events) for w in seen)

    async def test_no_loss_under_failures(self, manager, log_client, log_store):
        """Test that every event arrives exactly once after recovery."""
        session_id = await manager.start_session("trial1")
        for i in range(10):
            await manager.log_event("movement", f"step{i}")
            log_client.fail = i % 3 == 0
            await manager.synchronize()

        log_client.fail = False
        await manager.stop_session()

        assert stored_seqs(log_store, session_id) == list(range(10))

    async def test_resend_after_lost_ack_is_harmless(self, manager, log_client, log_store):
        """Test that a store write without acknowledgement is not duplicated."""
        session_id = await manager.start_session("trial1")
        await manager.log_event("movement", "forward")

        original_append = log_client.append

        async def append_then_fail(sid, logs):
            await original_append(sid, logs)
            raise SyncFailed("response lost")

        log_client.append = append_then_fail
        assert await manager.synchronize() is False
        log_client.append = original_append
        assert await manager.synchronize() is True

        assert stored_seqs(log_store, session_id) == [0]

    async def test_sync_never_overlaps(self, journal, log_store):
        """Test that concurrent synchronize calls run one at a time."""

        class SlowClient(InProcessLogClient):
            in_flight = 0
            peak = 0

            async def append(self, session_id, logs):
                SlowClient.in_flight += 1
                SlowClient.peak = max(SlowClient.peak, SlowClient.in_flight)
                await asyncio.sleep(0.05)
                SlowClient.in_flight -= 1
                return await super().append(session_id, logs)

        manager = SessionManager(journal, SlowClient(log_store), sync_interval=3600)
        session_id = await manager.start_session("trial1")
        await manager.log_event("movement", "step0")

        await asyncio.gather(
            manager.synchronize(),
            manager.log_event("movement", "step1"),
            manager.synchronize(),
            manager.log_event("movement", "step2"),
            manager.synchronize(),
        )

        assert SlowClient.peak == 1
        assert [e.seq for e in manager.events] == [0, 1, 2]
        await manager.stop_session()
        assert stored_seqs(log_store, session_id) == [0, 1, 2]
        await manager.close()

    async def test_concurrent_log_events_get_distinct_seq(self, manager):
        """Test that racing log_event calls never share a seq."""
        await manager.start_session("trial1")
        events = await asyncio.gather(
            *(manager.log_event("movement", f"step{i}") for i in range(5))
        )
        assert sorted(e.seq for e in events) == [0, 1, 2, 3, 4]


class TestRecovery:
    """Tests for restore() and flush_ended()."""

    async def test_restart_restores_active_session(self, tmp_path, log_store):
        """Test that a crash loses neither events nor sync progress."""
        path = tmp_path / "console.db"
        journal = Journal(path)
        await journal.init()
        first = SessionManager(journal, InProcessLogClient(log_store), sync_interval=3600)

        session_id = await first.start_session("trial1")
        await first.log_event("movement", "forward")
        await first.log_event("movement", "back")
        await first.synchronize()
        await first.log_event("movement", "left")
        await crash(first)

        reopened = Journal(path)
        await reopened.init()
        second = SessionManager(reopened, InProcessLogClient(log_store), sync_interval=3600)
        restored = await second.restore()

        assert restored.session_id == session_id
        assert second.state is SessionState.ACTIVE
        assert [e.action for e in second.events] == ["forward", "back", "left"]
        assert second.watermark == 2

        await second.log_event("movement", "right")
        await second.stop_session()
        assert stored_seqs(log_store, session_id) == [0, 1, 2, 3]
        await second.close()

    async def test_restore_empty_journal(self, manager):
        """Test that a fresh journal restores nothing."""
        assert await manager.restore() is None
        assert manager.state is SessionState.IDLE

    async def test_ended_session_retried_until_persisted(self, manager, log_client, journal, log_store):
        """Test that a stop during an outage finishes later."""
        session_id = await manager.start_session("trial1")
        await manager.log_event("movement", "forward")
        log_client.fail = True

        await manager.stop_session()
        assert manager.state is SessionState.ENDED
        [entry] = await journal.load_sessions()
        assert entry.state is SessionState.ENDED

        log_client.fail = False
        assert await manager.synchronize() is True
        assert manager.state is SessionState.IDLE
        assert await journal.load_sessions() == []
        assert stored_records(log_store, session_id)[0]["end_time"] is not None

    async def test_restore_ended_session_flushes(self, tmp_path, log_store):
        """Test that an ended-but-unsynced session is finished after restart."""
        path = tmp_path / "console.db"
        journal = Journal(path)
        await journal.init()
        failing = InProcessLogClient(log_store, fail=True)
        first = SessionManager(journal, failing, sync_interval=3600)
        session_id = await first.start_session("trial1")
        await first.log_event("movement", "forward")
        await first.stop_session()
        await crash(first)

        reopened = Journal(path)
        await reopened.init()
        second = SessionManager(reopened, InProcessLogClient(log_store), sync_interval=3600)
        await second.restore()

        assert second.state is SessionState.IDLE
        assert stored_seqs(log_store, session_id) == [0]
        await second.close()

    async def test_flush_ended_previous_session(self, manager, log_client, log_store):
        """Test that a pending ended session is drained after a new start."""
        first_id = await manager.start_session("trial1")
        await manager.log_event("movement", "forward")
        log_client.fail = True
        await manager.stop_session()

        second_id = await manager.start_session("trial2")
        log_client.fail = False
        assert await manager.flush_ended() == 1

        assert stored_seqs(log_store, first_id) == [0]
        assert manager.session.session_id == second_id
        assert manager.state is SessionState.ACTIVE


class TestPeriodicSync:
    """Tests for the sync timer."""

    async def test_timer_synchronizes(self, journal, log_client, log_store):
        """Test that pending events are pushed without explicit calls."""
        manager = SessionManager(journal, log_client, sync_interval=0.05)
        session_id = await manager.start_session("trial1")
        await manager.log_event("movement", "forward")

        for _ in range(40):
            if manager.watermark == 1:
                break
            await asyncio.sleep(0.05)

        assert manager.watermark == 1
        assert stored_seqs(log_store, session_id) == [0]
        await manager.stop_session()
        await manager.close()

    async def test_timer_stops_with_session(self, journal, log_client):
        """Test that no timer is left after stop."""
        manager = SessionManager(journal, log_client, sync_interval=0.05)
        await manager.start_session("trial1")
        await manager.stop_session()
        assert manager._timer is None
        await manager.close()


class TestExperimentLogger:
    """Tests for the category helpers."""

    async def test_category_helpers(self, manager):
        """Test that helpers tag events with their category."""
        await manager.start_session("trial1")
        logger = ExperimentLogger(manager, operator_id="op7")

        await logger.movement("forward", {"speed": 1})
        await logger.arm("open_box")
        await logger.gripper("close")
        await logger.led("red")
        await logger.sound("beep")
        await logger.macro("greeting")
        await logger.system("panic")

        assert [e.event_type for e in manager.events] == [
            "movement",
            "arm_control",
            "gripper_control",
            "led_control",
            "sound_control",
            "macro",
            "system",
        ]
        assert manager.events[0].to_record()["operator_id"] == "op7"

    async def test_custom_category(self, manager):
        """Test logging with an explicit category value."""
        await manager.start_session("trial1")
        event = await ExperimentLogger(manager).log(EventCategory.MACRO, "dance")
        assert event.event_type == "macro"
