"""Project-level configuration and path helpers."""

import logging
import os
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_EXPERIMENT_LOGS_DIR = DATA_DIR / "experiment_logs"
DEFAULT_EXPERIMENT_BAGS_DIR = DATA_DIR / "experiment_bags"
DEFAULT_ROBOT_CONFIGS_DIR = DATA_DIR / "robots"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"
DEFAULT_RECORDER_LOG_PATH = LOGS_DIR / "recorder.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

DEFAULT_ROSBRIDGE_URL = "ws://localhost:9090"
DEFAULT_DISCOVERY_TIMEOUT = 5.0
DEFAULT_RESULT_TIMEOUT = 30.0
DEFAULT_BAG_COMMAND = "ros2 bag record"
DEFAULT_SETTLE_SECONDS = 2.0
DEFAULT_KILL_TIMEOUT = 5.0

PathLike = Union[str, Path]


def resolve_path(env_value: PathLike | None, default: Path) -> Path:
    """Resolve a configured path to an absolute path under the project root."""
    if not env_value:
        return default

    candidate = Path(env_value).expanduser()
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def env_float(name: str, default: float) -> float:
    """Read a float from the environment, falling back to the default."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            "Invalid value for %s: %r, using %s", name, raw, default
        )
        return default


def env_bool(name: str, default: bool) -> bool:
    """Read a boolean flag from the environment."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def env_list(name: str, default: list[str]) -> list[str]:
    """Read a comma-separated list from the environment."""
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]
