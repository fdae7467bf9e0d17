"""Experiment session manager: local journal first, log store second."""

import asyncio
from typing import Any, Protocol

from dashboard_bridge.logging_config import get_logger

from .config import sync_interval as configured_sync_interval
from .errors import SessionStateError, SyncFailed, SyncUnsupported
from .journal import IJournal
from .log_client import ILogStoreClient
from .models import (
    ExperimentEvent,
    ExperimentSession,
    LogBuffer,
    SessionState,
    new_session_id,
    to_line,
    utcnow,
)

logger = get_logger(__name__)


class ISessionManager(Protocol):
    """Owns the experiment session lifecycle and its log."""

    async def start_session(
        self,
        name: str | None = None,
        operator_id: str | None = None,
        notes: str | None = None,
    ) -> str:
        """Begin a session; returns its id."""
        ...

    async def log_event(
        self,
        event_type: str,
        action: str,
        details: dict[str, Any] | None = None,
        operator_id: str | None = None,
    ) -> ExperimentEvent:
        """Record an event in the active session."""
        ...

    async def synchronize(self) -> bool:
        """Push unacknowledged records to the log store."""
        ...

    async def stop_session(self) -> ExperimentSession:
        """End the active session."""
        ...


def render_jsonl(session: ExperimentSession, events: list[ExperimentEvent]) -> str:
    """Full log rendering: summary line then events in seq order."""
    lines = [to_line(session.summary_record(len(events)))]
    lines.extend(to_line(event.to_record()) for event in events)
    return "\n".join(lines) + "\n"


class SessionManager:
    """Single-session manager for the operator console.

    Every event is written to the journal before log_event returns, so a
    crash loses nothing that was acknowledged to the caller. The log store
    is updated by synchronize(), on a timer and when a session stops.
    """

    def __init__(
        self,
        journal: IJournal,
        client: ILogStoreClient,
        sync_interval: float | None = None,
    ):
        self._journal = journal
        self._client = client
        self._sync_interval = (
            sync_interval if sync_interval is not None else configured_sync_interval()
        )

        self._session: ExperimentSession | None = None
        self._buffer = LogBuffer()
        self._state = SessionState.IDLE

        self._append_lock = asyncio.Lock()
        self._sync_lock = asyncio.Lock()
        self._timer: asyncio.Task | None = None
        self._ticks: set[asyncio.Task] = set()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> ExperimentSession | None:
        return self._session

    @property
    def watermark(self) -> int:
        return self._buffer.watermark

    @property
    def events(self) -> list[ExperimentEvent]:
        return self._buffer.get_all()

    @property
    def is_syncing(self) -> bool:
        return self._sync_lock.locked()

    # Lifecycle

    async def restore(self) -> ExperimentSession | None:
        """Rebuild state from the journal after a restart.

        The newest active session becomes current again. Without one, the
        newest ended-but-unsynced session is current in the Ended state.
        Other ended sessions are flushed best-effort.
        """
        entries = await self._journal.load_sessions()
        active = [e for e in entries if e.state is SessionState.ACTIVE]
        ended = [e for e in entries if e.state is SessionState.ENDED]

        # Only one session may be active; older leftovers are closed out
        for stale in active[:-1]:
            stale.session.end_time = stale.session.end_time or utcnow()
            await self._journal.save_session(stale.session, SessionState.ENDED)
            logger.warning(f"Closed stale active session {stale.session.session_id}")

        current = active[-1] if active else (ended[-1] if ended else None)
        if current is None:
            await self.flush_ended()
            return None

        self._session = current.session
        self._buffer = current.buffer
        self._state = current.state
        logger.info(
            f"Restored session {current.session.session_id} "
            f"({current.state.value}, {len(current.buffer)} events, "
            f"watermark {current.buffer.watermark})"
        )

        if self._state is SessionState.ACTIVE:
            self._start_timer()
        else:
            await self.synchronize()
        await self.flush_ended()
        return self._session

    async def start_session(
        self,
        name: str | None = None,
        operator_id: str | None = None,
        notes: str | None = None,
    ) -> str:
        """Begin a session; the descriptor is durable before this returns."""
        if self._state is SessionState.ACTIVE:
            raise SessionStateError(
                f"Session {self._session.session_id} is already active"
            )

        session = ExperimentSession(
            session_id=new_session_id(),
            start_time=utcnow(),
            name=name,
            operator_id=operator_id,
            notes=notes,
        )
        await self._journal.save_session(session, SessionState.ACTIVE)

        # A previous Ended session stays in the journal until flushed
        self._session = session
        self._buffer = LogBuffer()
        self._state = SessionState.ACTIVE
        self._start_timer()

        logger.info(
            f"Session {session.session_id} started",
            extra={"context": {"experiment": name}},
        )
        return session.session_id

    async def log_event(
        self,
        event_type: str,
        action: str,
        details: dict[str, Any] | None = None,
        operator_id: str | None = None,
    ) -> ExperimentEvent:
        """Record an event; durable before this returns."""
        # seq is assigned and journaled under one lock so it stays gapless
        async with self._append_lock:
            if self._state is not SessionState.ACTIVE or self._session is None:
                raise SessionStateError("No active session")
            event = ExperimentEvent(
                seq=len(self._buffer),
                session_id=self._session.session_id,
                timestamp=utcnow(),
                event_type=event_type,
                action=action,
                details=dict(details or {}),
                operator_id=operator_id,
            )
            await self._journal.append_event(event)
            self._buffer.append(event)
        return event

    async def stop_session(self) -> ExperimentSession:
        """End the active session and attempt a final synchronize.

        The session is Ended whether or not the final sync succeeds; it
        moves to Idle once the store holds every record.
        """
        if self._state is not SessionState.ACTIVE or self._session is None:
            raise SessionStateError("No active session")

        await self._stop_timer()
        session = self._session
        async with self._append_lock:
            if self._state is not SessionState.ACTIVE:
                raise SessionStateError("Session already stopped")
            session.end_time = utcnow()
            self._state = SessionState.ENDED
            await self._journal.save_session(session, SessionState.ENDED)

        if await self.synchronize():
            logger.info(
                f"Session {session.session_id} stopped after "
                f"{session.duration_seconds():.1f}s with {len(self._buffer)} events"
            )
        else:
            logger.warning(
                f"Session {session.session_id} stopped; final sync pending"
            )
        return session

    async def clear(self) -> None:
        """Forget the retained session. Unsynced records stay journaled."""
        if self._state is SessionState.ACTIVE:
            raise SessionStateError("Cannot clear an active session")
        self._session = None
        self._buffer = LogBuffer()
        self._state = SessionState.IDLE

    async def close(self) -> None:
        """Stop the timer, let an in-flight synchronize finish, release resources."""
        await self._stop_timer()
        if self._ticks:
            await asyncio.gather(*self._ticks, return_exceptions=True)
        await self._client.close()
        await self._journal.close()

    # Synchronization

    async def synchronize(self) -> bool:
        """Push the current session's unacknowledged records to the store.

        Returns True when the store holds everything logged so far. Never
        runs concurrently with itself.
        """
        async with self._sync_lock:
            session, buffer = self._session, self._buffer
            if session is None:
                return True
            synced = await self._sync_buffer(session, buffer)

            if (
                synced
                and self._session is session
                and self._state is SessionState.ENDED
                and buffer.fully_acknowledged
            ):
                await self._journal.delete_session(session.session_id)
                self._state = SessionState.IDLE
                logger.info(f"Session {session.session_id} fully persisted")
            return synced

    async def flush_ended(self) -> int:
        """Drain ended sessions left in the journal. Returns how many finished."""
        current_id = self._session.session_id if self._session else None
        flushed = 0
        for entry in await self._journal.load_sessions():
            if entry.state is not SessionState.ENDED:
                continue
            if entry.session.session_id == current_id:
                continue
            async with self._sync_lock:
                synced = await self._sync_buffer(entry.session, entry.buffer)
            if synced and entry.buffer.fully_acknowledged:
                await self._journal.delete_session(entry.session.session_id)
                flushed += 1
        if flushed:
            logger.info(f"Flushed {flushed} ended session(s)")
        return flushed

    async def _sync_buffer(self, session: ExperimentSession, buffer: LogBuffer) -> bool:
        """One sync attempt for one session. Caller holds the sync lock."""
        # Events logged while awaiting the store wait for the next round
        target = len(buffer)
        pending = buffer.pending(target)
        summary = to_line(session.summary_record(target))
        if not pending and summary == buffer.acked_summary:
            return True

        try:
            try:
                lines = [summary] + [to_line(event.to_record()) for event in pending]
                await self._client.append(session.session_id, "\n".join(lines) + "\n")
            except SyncUnsupported as e:
                logger.info(
                    f"Incremental append unavailable ({e}), resending full log "
                    f"for {session.session_id}"
                )
                full = render_jsonl(session, buffer.get_all()[:target])
                await self._client.save(session.session_id, full)
        except SyncFailed as e:
            logger.warning(f"Synchronize of {session.session_id} failed: {e}")
            return False
        except Exception as e:
            logger.error(
                f"Unexpected error synchronizing {session.session_id}: {e}", exc_info=True
            )
            return False

        buffer.acknowledge(target)
        buffer.acked_summary = summary
        await self._journal.set_watermark(session.session_id, buffer.watermark, summary)
        logger.debug(
            f"Synchronized {session.session_id}: {len(pending)} event(s), "
            f"watermark {buffer.watermark}"
        )
        return True

    # Periodic timer

    def _start_timer(self) -> None:
        if self._timer is None or self._timer.done():
            self._timer = asyncio.create_task(self._sync_timer())

    async def _stop_timer(self) -> None:
        if self._timer:
            self._timer.cancel()
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
            self._timer = None

    async def _sync_timer(self) -> None:
        """Background timer for periodic synchronization."""
        while self._state is SessionState.ACTIVE:
            try:
                await asyncio.sleep(self._sync_interval)

                if self._sync_lock.locked():
                    logger.debug("Previous synchronize still running, skipping tick")
                    continue

                # Shielded so that stopping the timer never aborts a request
                tick = asyncio.create_task(self._tick())
                self._ticks.add(tick)
                tick.add_done_callback(self._ticks.discard)
                await asyncio.shield(tick)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Sync timer error: {e}", exc_info=True)

    async def _tick(self) -> None:
        await self.synchronize()
        await self.flush_ended()

    # Inspection

    def session_info(self) -> dict | None:
        """Current (or last) session with live counters."""
        if self._session is None:
            return None
        info = self._session.to_dict()
        info.update(
            state=self._state.value,
            event_count=len(self._buffer),
            watermark=self._buffer.watermark,
            pending=len(self._buffer) - self._buffer.watermark,
            duration_seconds=self._session.duration_seconds(),
        )
        return info

    def export_jsonl(self) -> str:
        """Render the current session's full log locally."""
        if self._session is None:
            raise SessionStateError("No session to export")
        return render_jsonl(self._session, self._buffer.get_all())
