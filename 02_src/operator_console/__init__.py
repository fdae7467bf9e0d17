"""Operator console: experiment sessions journaled locally, synced to the bridge."""

from dashboard_bridge.logging_config import setup_console_logging

from .config import console_log_path
from .errors import (
    ConsoleError,
    SessionStateError,
    StorageCorrupted,
    SyncFailed,
    SyncUnsupported,
)
from .events import EventCategory, ExperimentLogger
from .journal import IJournal, Journal, JournalEntry
from .log_client import ILogStoreClient, LogStoreClient
from .models import ExperimentEvent, ExperimentSession, LogBuffer, SessionState
from .session import ISessionManager, SessionManager, render_jsonl


async def open_console(
    journal_path: str | None = None,
    base_url: str | None = None,
    sync_interval: float | None = None,
    configure_logging: bool = True,
) -> SessionManager:
    """Open the journal, connect to the bridge and restore any session.

    Logging goes to 04_logs/console.log (CONSOLE_LOG_FILE) and stderr unless
    the caller configures logging itself.
    """
    if configure_logging:
        setup_console_logging(console_log_path())
    journal = Journal(journal_path)
    await journal.init()
    manager = SessionManager(journal, LogStoreClient(base_url), sync_interval)
    await manager.restore()
    return manager


__all__ = [
    "open_console",
    # Models
    "ExperimentEvent",
    "ExperimentSession",
    "LogBuffer",
    "SessionState",
    "EventCategory",
    # Components
    "IJournal",
    "Journal",
    "JournalEntry",
    "ILogStoreClient",
    "LogStoreClient",
    "ISessionManager",
    "SessionManager",
    "ExperimentLogger",
    "render_jsonl",
    # Errors
    "ConsoleError",
    "SessionStateError",
    "StorageCorrupted",
    "SyncFailed",
    "SyncUnsupported",
]
