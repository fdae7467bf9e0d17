"""Structured logging for the dashboard bridge and the operator console.

Both processes log JSON lines to a rotating file under 04_logs/. The bridge
also keeps the external recorder's own output in a separate plain-text file,
since it is the first place to look when a recording comes out empty.
"""

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH, DEFAULT_RECORDER_LOG_PATH, PathLike

RECORDER_LOGGER = "dashboard_bridge.recorder"

ROTATE_BYTES = 10 * 1024 * 1024
ROTATE_BACKUPS = 5


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    `component` is the top-level package the record came from, so bridge and
    console lines can share a collector. Anything passed as
    ``extra={"context": {...}}`` is carried under `context`.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name.split(".", 1)[0],
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        return json.dumps(entry, default=str)


def _file_handler(path: PathLike, formatter: str) -> dict:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "filename": str(path),
        "maxBytes": ROTATE_BYTES,
        "backupCount": ROTATE_BACKUPS,
        "formatter": formatter,
        "encoding": "utf-8",
    }


def _configure(
    log_level: str | None,
    handlers: dict,
    root_handlers: list[str],
    loggers: dict | None = None,
) -> None:
    level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": "dashboard_bridge.logging_config.JSONFormatter"},
                "plain": {"format": "%(asctime)s %(levelname)s %(message)s"},
            },
            "handlers": handlers,
            "loggers": loggers or {},
            "root": {
                "level": level,
                "handlers": root_handlers,
            },
        }
    )


def setup_logging(
    log_level: str | None = None,
    log_file: PathLike | None = None,
    recorder_log_file: PathLike | None = None,
) -> None:
    """
    Setup logging for the bridge service.

    Args:
        log_level: Log level name. Defaults to LOG_LEVEL env var or INFO.
        log_file: JSON log file. Defaults to 04_logs/app.log.
        recorder_log_file: Plain-text copy of the recorder's stdout/stderr.
                           Defaults to 04_logs/recorder.log.
    """
    _configure(
        log_level,
        handlers={
            "file": _file_handler(log_file or DEFAULT_LOG_PATH, "json"),
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
            "recorder": _file_handler(
                recorder_log_file or DEFAULT_RECORDER_LOG_PATH, "plain"
            ),
        },
        root_handlers=["file", "console"],
        # Recorder lines still reach app.log through the root logger
        loggers={RECORDER_LOGGER: {"handlers": ["recorder"], "propagate": True}},
    )


def setup_console_logging(log_file: PathLike, log_level: str | None = None) -> None:
    """Setup logging for the operator console: JSON file plus stderr.

    stdout is left to the console's own output.
    """
    _configure(
        log_level,
        handlers={
            "file": _file_handler(log_file, "json"),
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stderr",
            },
        },
        root_handlers=["file", "stderr"],
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
