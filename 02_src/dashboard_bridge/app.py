"""Application bootstrap and lifecycle management."""

import os
from typing import Protocol

from .actions import ActionGateway, ActionTypeRegistry, IActionTransport, RosbridgeTransport
from .config import (
    DEFAULT_BAG_COMMAND,
    DEFAULT_DISCOVERY_TIMEOUT,
    DEFAULT_EXPERIMENT_BAGS_DIR,
    DEFAULT_EXPERIMENT_LOGS_DIR,
    DEFAULT_KILL_TIMEOUT,
    DEFAULT_RESULT_TIMEOUT,
    DEFAULT_ROBOT_CONFIGS_DIR,
    DEFAULT_ROSBRIDGE_URL,
    DEFAULT_SETTLE_SECONDS,
    env_bool,
    env_float,
    resolve_path,
)
from .log_store import ILogStore, LogStore
from .logging_config import get_logger
from .recording import RecordingController
from .robots import RobotConfigStore

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...


class Application:
    """Main application bootstrap.

    Constructor arguments override the environment; anything left as None
    is read from the environment (see config.py for defaults).
    """

    def __init__(
        self,
        logs_dir: str | None = None,
        bags_dir: str | None = None,
        robot_configs_dir: str | None = None,
        transports: dict[str, IActionTransport] | None = None,
        registry: ActionTypeRegistry | None = None,
        recorder_command: str | list[str] | None = None,
        settle_seconds: float | None = None,
        discovery_timeout: float | None = None,
        result_timeout: float | None = None,
        append_enabled: bool | None = None,
    ):
        self._logs_dir = resolve_path(
            logs_dir or os.getenv("EXPERIMENT_LOGS_DIR"), DEFAULT_EXPERIMENT_LOGS_DIR
        )
        self._bags_dir = resolve_path(
            bags_dir or os.getenv("EXPERIMENT_BAGS_DIR"), DEFAULT_EXPERIMENT_BAGS_DIR
        )
        self._robot_configs_dir = resolve_path(
            robot_configs_dir or os.getenv("ROBOT_CONFIGS_DIR"), DEFAULT_ROBOT_CONFIGS_DIR
        )
        self._transport_overrides = transports
        self._registry_override = registry
        self._recorder_command = recorder_command or os.getenv(
            "BAG_RECORD_COMMAND", DEFAULT_BAG_COMMAND
        )
        self._settle_seconds = (
            settle_seconds
            if settle_seconds is not None
            else env_float("BAG_SETTLE_SECONDS", DEFAULT_SETTLE_SECONDS)
        )
        self._discovery_timeout = (
            discovery_timeout
            if discovery_timeout is not None
            else env_float("ACTION_DISCOVERY_TIMEOUT", DEFAULT_DISCOVERY_TIMEOUT)
        )
        self._result_timeout = (
            result_timeout
            if result_timeout is not None
            else env_float("ACTION_RESULT_TIMEOUT", DEFAULT_RESULT_TIMEOUT)
        )
        self._append_enabled = (
            append_enabled
            if append_enabled is not None
            else env_bool("LOG_STORE_APPEND_ENABLED", True)
        )

        # Components (will be initialized in start())
        self._log_store: LogStore | None = None
        self._recorder: RecordingController | None = None
        self._robots: RobotConfigStore | None = None
        self._transports: dict[str, IActionTransport] = {}
        self._gateway: ActionGateway | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Log store (no dependencies)
        self._log_store = LogStore(self._logs_dir, append_enabled=self._append_enabled)
        await self._log_store.init()
        logger.info("Log store initialized at %s", self._logs_dir)

        # 2. Recording controller
        self._recorder = RecordingController(
            bags_dir=self._bags_dir,
            command=self._recorder_command,
            settle_seconds=self._settle_seconds,
            kill_timeout=env_float("BAG_KILL_TIMEOUT", DEFAULT_KILL_TIMEOUT),
        )
        logger.info("Recording controller initialized")

        # 3. Robot descriptors
        self._robots = RobotConfigStore(self._robot_configs_dir)

        # 4. Action types + transports, validated together before serving
        registry = self._registry_override or ActionTypeRegistry()
        types_file = os.getenv("ACTION_TYPES_FILE")
        if types_file and self._registry_override is None:
            registry.load_file(types_file)

        if self._transport_overrides is not None:
            self._transports = dict(self._transport_overrides)
        else:
            self._transports = {
                RosbridgeTransport.name: RosbridgeTransport(
                    os.getenv("ROSBRIDGE_URL", DEFAULT_ROSBRIDGE_URL)
                )
            }

        # 5. Gateway (depends on registry + transports)
        self._gateway = ActionGateway(
            registry=registry,
            transports=self._transports,
            discovery_timeout=self._discovery_timeout,
            result_timeout=self._result_timeout,
        )
        logger.info(
            "Action gateway initialized with %d action types over %s",
            len(registry),
            ", ".join(sorted(self._transports)),
        )
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        for name, transport in self._transports.items():
            try:
                await transport.close()
            except Exception as e:
                logger.error("Error closing transport %s: %s", name, e)
        self._gateway = None

        if self._recorder:
            await self._recorder.shutdown()
            logger.info("Recording controller stopped")

    @property
    def started(self) -> bool:
        return self._gateway is not None

    @property
    def gateway(self) -> ActionGateway:
        """Get action gateway instance."""
        if not self._gateway:
            raise RuntimeError("Application not started")
        return self._gateway

    @property
    def recorder(self) -> RecordingController:
        """Get recording controller instance."""
        if not self._recorder:
            raise RuntimeError("Application not started")
        return self._recorder

    @property
    def log_store(self) -> ILogStore:
        """Get log store instance."""
        if not self._log_store:
            raise RuntimeError("Application not started")
        return self._log_store

    @property
    def robots(self) -> RobotConfigStore:
        """Get robot configuration store."""
        if not self._robots:
            raise RuntimeError("Application not started")
        return self._robots
