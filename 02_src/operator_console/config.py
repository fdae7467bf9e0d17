"""Operator console configuration."""

import os

from dashboard_bridge.config import DATA_DIR, LOGS_DIR, PathLike, env_float, resolve_path

DEFAULT_JOURNAL_PATH = DATA_DIR / "console_journal.db"
DEFAULT_CONSOLE_LOG_PATH = LOGS_DIR / "console.log"
DEFAULT_BRIDGE_URL = "http://localhost:4000"
DEFAULT_SYNC_INTERVAL = 5.0
DEFAULT_REQUEST_TIMEOUT = 10.0


def resolve_journal_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve CONSOLE_JOURNAL_PATH to an absolute path."""
    env_value = env_value or os.getenv("CONSOLE_JOURNAL_PATH")
    if str(env_value) == ":memory:":
        return ":memory:"
    return resolve_path(env_value, DEFAULT_JOURNAL_PATH)


def console_log_path() -> PathLike:
    return resolve_path(os.getenv("CONSOLE_LOG_FILE"), DEFAULT_CONSOLE_LOG_PATH)


def bridge_url() -> str:
    return os.getenv("BRIDGE_URL", DEFAULT_BRIDGE_URL).rstrip("/")


def sync_interval() -> float:
    return env_float("CONSOLE_SYNC_INTERVAL", DEFAULT_SYNC_INTERVAL)


def request_timeout() -> float:
    return env_float("CONSOLE_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)
