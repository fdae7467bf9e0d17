"""Recording controller for the external bulk-sensor recorder."""

import asyncio
import logging
import re
import shlex
import signal
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, Sequence

from ..config import DEFAULT_BAG_COMMAND, DEFAULT_KILL_TIMEOUT, DEFAULT_SETTLE_SECONDS
from ..errors import (
    InvalidRequest,
    NoActiveRecording,
    RecordingAlreadyActive,
    RecordingProcessError,
)
from ..logging_config import RECORDER_LOGGER, get_logger
from ..models import RecordingHandle, RecordingState

logger = get_logger(__name__)
recorder_output = get_logger(RECORDER_LOGGER)

DEFAULT_TOPICS = [
    "/robomaster/cmd_vel",
    "/robomaster/cmd_wheels",
    "/robomaster/cmd_arm",
    "/robomaster/mov_arm_pose",
    "/robomaster/gripper",
    "/robomaster/leds/color",
    "/robomaster/leds/effect",
    "/robomaster/cmd_sound",
    "/robomaster/panic",
    "/robomaster/state",
    "/robomaster/odom",
    "/robomaster/joint_states",
    "/robomaster/imu",
    "/robomaster/battery",
    "/robomaster/pose_world_ref",
    "/tf",
    "/tf_static",
    "/rosout",
    "/experiment/event",
]


class IRecordingController(Protocol):
    """Exclusive control of the external recording process."""

    async def start(
        self,
        session_label: str | None = None,
        topics: Sequence[str] | None = None,
        output_path: str | None = None,
    ) -> RecordingHandle:
        """Launch the recorder. Fails if one is already running."""
        ...

    async def stop(self) -> dict:
        """Gracefully stop the recorder and return its output path."""
        ...

    def status(self) -> dict:
        """Current slot state. Never fails."""
        ...


def sanitize_label(label: str | None) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9_-]+", "_", (label or "").strip()).strip("_")
    return cleaned or "session"


def _timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"


class RecordingController:
    """Owns the single recording slot.

    start() and stop() run under one lock, so at most one recorder is ever
    launched. A recorder that exits on its own is noticed by the exit
    watcher (and by status()) and the slot goes back to idle.
    """

    def __init__(
        self,
        bags_dir: str | Path,
        command: str | Sequence[str] = DEFAULT_BAG_COMMAND,
        default_topics: Sequence[str] | None = None,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
        kill_timeout: float = DEFAULT_KILL_TIMEOUT,
    ):
        self._bags_dir = Path(bags_dir)
        self._command = shlex.split(command) if isinstance(command, str) else list(command)
        self._default_topics = list(default_topics or DEFAULT_TOPICS)
        self._settle_seconds = settle_seconds
        self._kill_timeout = kill_timeout

        self._lock = asyncio.Lock()
        self._handle: RecordingHandle | None = None
        self._process: asyncio.subprocess.Process | None = None
        self._stopping: asyncio.subprocess.Process | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def default_topics(self) -> list[str]:
        return list(self._default_topics)

    @property
    def handle(self) -> RecordingHandle | None:
        self._reap()
        return self._handle

    async def start(
        self,
        session_label: str | None = None,
        topics: Sequence[str] | None = None,
        output_path: str | None = None,
    ) -> RecordingHandle:
        """Launch the recorder bound to topics (defaults if omitted)."""
        async with self._lock:
            self._reap()
            if self._handle is not None:
                raise RecordingAlreadyActive("Bag recording already in progress")

            topic_list = list(topics) if topics else list(self._default_topics)
            if any(not isinstance(t, str) or not t.strip() for t in topic_list):
                raise InvalidRequest("topics must be non-empty strings")

            label = sanitize_label(session_label)
            if output_path:
                path = Path(output_path).expanduser()
                if not path.is_absolute():
                    path = self._bags_dir / path
            else:
                path = self._bags_dir / f"{label}_{_timestamp()}"
            path.parent.mkdir(parents=True, exist_ok=True)

            argv = [*self._command, "-o", str(path), *topic_list]
            logger.info("Starting bag recording to %s", path)
            logger.info("Recording topics: %s", ", ".join(topic_list))

            try:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise RecordingProcessError(f"Cannot launch recorder: {e}") from e

            handle = RecordingHandle(
                session_label=label,
                output_path=str(path),
                topics=topic_list,
                pid=process.pid,
                state=RecordingState.RECORDING,
                started_at=datetime.now(timezone.utc),
            )
            self._handle = handle
            self._process = process

            self._spawn(self._forward(process.pid, process.stdout, logging.INFO))
            self._spawn(self._forward(process.pid, process.stderr, logging.WARNING))
            self._spawn(self._watch_exit(process))
            return handle

    async def stop(self) -> dict:
        """Send SIGINT, wait out the settle interval, release the slot."""
        async with self._lock:
            self._reap()
            if self._handle is None or self._process is None:
                raise NoActiveRecording("No bag recording in progress")

            handle, process = self._handle, self._process
            self._stopping = process
            logger.info("Stopping bag recording (pid %s)", process.pid)

            try:
                process.send_signal(signal.SIGINT)
            except ProcessLookupError:
                logger.info("Recorder already exited")

            try:
                await asyncio.wait_for(process.wait(), timeout=self._settle_seconds)
            except asyncio.TimeoutError:
                logger.warning(
                    "Recorder still running %.1fs after SIGINT, terminating",
                    self._settle_seconds,
                )
                await self._terminate(process)

            self._release()
            handle.state = RecordingState.IDLE
            return {"path": handle.output_path}

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM, then SIGKILL if the recorder outlives the kill timeout."""
        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=self._kill_timeout)
        except ProcessLookupError:
            return
        except asyncio.TimeoutError:
            logger.warning(
                "Recorder (pid %s) ignored SIGTERM, killing", process.pid
            )
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()

    def status(self) -> dict:
        """Pure read of the slot."""
        self._reap()
        handle = self._handle
        return {
            "recording": handle is not None,
            "path": handle.output_path if handle else None,
            "pid": handle.pid if handle else None,
        }

    async def shutdown(self) -> None:
        """Stop an active recording and drop background tasks."""
        if self.status()["recording"]:
            try:
                await self.stop()
            except NoActiveRecording:
                pass
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _reap(self) -> None:
        """Release the slot if the recorder died without stop()."""
        process = self._process
        if process is None or process is self._stopping:
            return
        if process.returncode is not None:
            logger.warning(
                "Recorder (pid %s) exited unexpectedly with code %s",
                process.pid,
                process.returncode,
            )
            if self._handle is not None:
                self._handle.state = RecordingState.IDLE
            self._release()

    def _release(self) -> None:
        self._handle = None
        self._process = None
        self._stopping = None

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _watch_exit(self, process: asyncio.subprocess.Process) -> None:
        code = await process.wait()
        if process is self._process:
            self._reap()
        else:
            logger.info("Bag recording process exited with code %s", code)

    async def _forward(
        self, pid: int, stream: asyncio.StreamReader | None, level: int
    ) -> None:
        if stream is None:
            return
        async for line in stream:
            text = line.decode(errors="replace").rstrip()
            if text:
                recorder_output.log(level, text, extra={"context": {"pid": pid}})
