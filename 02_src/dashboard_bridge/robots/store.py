"""File-backed store of custom robot configurations."""

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..errors import RobotConfigError, RobotConfigNotFound
from ..files import atomic_write_text
from ..logging_config import get_logger
from .descriptor import BUILTIN_ROBOTS, RobotConfig

logger = get_logger(__name__)

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class RobotConfigStore:
    """Built-in descriptors plus JSON files under configs_dir."""

    def __init__(self, configs_dir: str | Path, builtins: dict[str, RobotConfig] | None = None):
        self._configs_dir = Path(configs_dir)
        self._builtins = dict(BUILTIN_ROBOTS if builtins is None else builtins)

    def _file(self, name: str) -> Path:
        if not NAME_PATTERN.match(name or ""):
            raise RobotConfigError(
                "Config name can only contain letters, numbers, underscores, and hyphens"
            )
        return self._configs_dir / f"{name}.json"

    def list(self) -> list[dict]:
        """Summaries, built-ins first, then alphabetical."""
        entries = []
        for config in self._builtins.values():
            entries.append(
                {
                    "name": config.name,
                    "displayName": config.display_name,
                    "description": config.description,
                    "created": None,
                    "modified": None,
                    "size": len(json.dumps(config.to_json_dict())),
                    "isBuiltIn": True,
                }
            )

        if self._configs_dir.exists():
            for path in self._configs_dir.glob("*.json"):
                if path.stem in self._builtins:
                    continue
                try:
                    config = self._load(path)
                except RobotConfigError as e:
                    logger.error("Error parsing config file %s: %s", path.name, e)
                    continue
                stats = path.stat()
                created = getattr(stats, "st_birthtime", stats.st_ctime)
                entries.append(
                    {
                        "name": path.stem,
                        "displayName": config.display_name or path.stem,
                        "description": config.description,
                        "created": datetime.fromtimestamp(created, tz=timezone.utc).isoformat(),
                        "modified": datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc).isoformat(),
                        "size": stats.st_size,
                        "isBuiltIn": False,
                    }
                )

        entries.sort(key=lambda e: (not e["isBuiltIn"], e["name"]))
        return entries

    def get(self, name: str) -> RobotConfig:
        if name in self._builtins:
            return self._builtins[name]
        path = self._file(name)
        if not path.is_file():
            raise RobotConfigNotFound("Robot configuration not found")
        return self._load(path)

    def save(self, data: Any) -> RobotConfig:
        """Validate and persist a custom configuration."""
        if not isinstance(data, dict) or not data.get("name"):
            raise RobotConfigError("Missing config or config.name")

        name = str(data["name"])
        path = self._file(name)
        if name in self._builtins:
            raise RobotConfigError("Cannot overwrite built-in robot configurations")

        config = self._parse(data)
        violations = config.contract_violations()
        if violations:
            raise RobotConfigError("; ".join(violations))

        atomic_write_text(path, json.dumps(config.to_json_dict(), indent=2))
        logger.info("Robot configuration saved: %s", name)
        return config

    def delete(self, name: str) -> None:
        if name in self._builtins:
            raise RobotConfigError("Cannot delete built-in robot configurations")
        path = self._file(name)
        if not path.is_file():
            raise RobotConfigNotFound("Robot configuration not found")
        path.unlink()
        logger.info("Robot configuration deleted: %s", name)

    def _load(self, path: Path) -> RobotConfig:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise RobotConfigError(f"Unreadable config {path.name}: {e}") from e
        return self._parse(data)

    @staticmethod
    def _parse(data: Any) -> RobotConfig:
        try:
            return RobotConfig.model_validate(data)
        except ValidationError as e:
            raise RobotConfigError(f"Invalid robot configuration: {e.error_count()} errors") from e
