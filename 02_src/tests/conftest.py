"""Pytest configuration and fixtures."""

import asyncio
import sys
import textwrap
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dashboard_bridge.actions import RawActionResult  # noqa: E402
from dashboard_bridge.errors import AppendUnsupported  # noqa: E402
from operator_console.errors import SyncFailed, SyncUnsupported  # noqa: E402


class FakeActionTransport:
    """In-memory action transport with scripted servers and results."""

    name = "rosbridge"

    def __init__(self, servers=None, results=None, delay: float = 0.0):
        self.servers = set(servers or [])
        self.results = dict(results or {})
        self.delay = delay
        self.goals: list[tuple[str, str, dict]] = []
        self.closed = False

    async def wait_for_server(self, action_name: str, timeout: float) -> bool:
        if action_name in self.servers:
            return True
        await asyncio.sleep(timeout)
        return False

    async def send_goal(self, action_name, interface, goal, timeout) -> RawActionResult:
        self.goals.append((action_name, interface, goal))
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.results.get(action_name, RawActionResult(4, {"success": True}))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True


class InProcessLogClient:
    """Log store client that calls a LogStore directly, with failure switches."""

    def __init__(self, store, fail: bool = False, append_supported: bool = True):
        self.store = store
        self.fail = fail
        self.append_supported = append_supported
        self.calls: list[tuple[str, str, str]] = []
        self.closed = False

    async def append(self, session_id: str, logs: str) -> dict:
        self.calls.append(("append", session_id, logs))
        if self.fail:
            raise SyncFailed("store unreachable")
        if not self.append_supported:
            raise SyncUnsupported("append not offered")
        try:
            return await self.store.append(session_id, logs)
        except AppendUnsupported as e:
            raise SyncUnsupported(str(e)) from e

    async def save(self, session_id: str, logs: str) -> dict:
        self.calls.append(("save", session_id, logs))
        if self.fail:
            raise SyncFailed("store unreachable")
        return await self.store.save(session_id, logs)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_transport():
    """Action transport where /arm_action is up and succeeds."""
    return FakeActionTransport(servers={"/arm_action"})


@pytest_asyncio.fixture
async def log_store(tmp_path):
    """Create file-backed log store in a temp dir."""
    from dashboard_bridge.log_store import LogStore

    store = LogStore(tmp_path / "experiment_logs")
    await store.init()
    return store


@pytest.fixture
def log_client(log_store):
    """In-process client on top of the log store."""
    return InProcessLogClient(log_store)


@pytest_asyncio.fixture
async def journal(tmp_path):
    """Create journal on a temp file."""
    from operator_console.journal import Journal

    jr = Journal(tmp_path / "journal.db")
    await jr.init()
    yield jr
    await jr.close()


@pytest.fixture
def recorder_script(tmp_path):
    """A stand-in recorder that runs until SIGINT."""
    script = tmp_path / "fake_recorder.py"
    script.write_text(
        textwrap.dedent(
            """
            import pathlib
            import signal
            import sys
            import time

            out = sys.argv[sys.argv.index("-o") + 1]
            pathlib.Path(out).mkdir(parents=True, exist_ok=True)

            def stop(*_):
                print("recorder stopping", flush=True)
                sys.exit(0)

            signal.signal(signal.SIGINT, stop)
            print("recorder started", flush=True)
            while True:
                time.sleep(0.05)
            """
        )
    )
    return [sys.executable, str(script)]


@pytest.fixture
def crashing_recorder(tmp_path):
    """A stand-in recorder that exits immediately with an error."""
    script = tmp_path / "crashing_recorder.py"
    script.write_text("import sys\nprint('no such topic', file=sys.stderr)\nsys.exit(3)\n")
    return [sys.executable, str(script)]


@pytest.fixture
def bridge_app(tmp_path, fake_transport, recorder_script):
    """Application wired to temp dirs, a fake transport and fake recorder."""
    from dashboard_bridge.app import Application

    return Application(
        logs_dir=str(tmp_path / "logs"),
        bags_dir=str(tmp_path / "bags"),
        robot_configs_dir=str(tmp_path / "robots"),
        transports={"rosbridge": fake_transport},
        recorder_command=recorder_script,
        settle_seconds=2.0,
        discovery_timeout=0.2,
        result_timeout=1.0,
    )


@pytest.fixture
def client(bridge_app):
    """FastAPI TestClient with lifespan running."""
    from fastapi.testclient import TestClient

    from dashboard_bridge.api import create_fastapi_app

    with TestClient(create_fastapi_app(bridge_app)) as test_client:
        yield test_client


@pytest.fixture
def stubborn_recorder(tmp_path):
    """A stand-in recorder that ignores SIGINT and SIGTERM; returns (argv, ready marker)."""
    ready = tmp_path / "stubborn.ready"
    script = tmp_path / "stubborn_recorder.py"
    script.write_text(
        textwrap.dedent(
            f"""
            import pathlib
            import signal
            import time

            signal.signal(signal.SIGINT, signal.SIG_IGN)
            signal.signal(signal.SIGTERM, signal.SIG_IGN)
            pathlib.Path({str(ready)!r}).touch()
            while True:
                time.sleep(0.05)
            """
        )
    )
    return [sys.executable, str(script)], ready
