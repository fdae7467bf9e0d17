"""Transports that carry action goals to remote handlers."""

import asyncio
import itertools
import json
from dataclasses import dataclass
from typing import Any, Protocol

import websockets

from ..errors import ActionTimeout, TransportError
from ..logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class RawActionResult:
    """Terminal status and payload as reported by a transport."""

    status: int | None
    values: Any


class IActionTransport(Protocol):
    """Carries goals to remote action handlers."""

    name: str

    async def wait_for_server(self, action_name: str, timeout: float) -> bool:
        """Wait until a handler is reachable under action_name. False on timeout."""
        ...

    async def send_goal(
        self, action_name: str, interface: str, goal: dict, timeout: float
    ) -> RawActionResult:
        """Submit a goal and wait for its terminal result."""
        ...

    async def close(self) -> None:
        """Release connections."""
        ...


def normalize_action_name(name: str) -> str:
    name = name.strip()
    return name if name.startswith("/") else f"/{name}"


class RosbridgeTransport:
    """rosbridge v2 protocol over a single shared websocket.

    Discovery polls the rosapi action-server listing; goals go out as
    ``send_action_goal`` and complete on the matching ``action_result``.
    Responses are matched to requests by id, so any number of calls can be
    in flight on the one connection.
    """

    name = "rosbridge"

    ACTION_SERVERS_SERVICE = "/rosapi/action_servers"
    ACTION_SERVERS_TYPE = "rosapi_msgs/srv/GetActionServers"

    def __init__(
        self,
        url: str,
        connect_timeout: float = 3.0,
        poll_interval: float = 0.5,
    ):
        self._url = url
        self._connect_timeout = connect_timeout
        self._poll_interval = poll_interval
        self._ws: Any = None
        self._reader: asyncio.Task | None = None
        self._pending: dict[str, asyncio.Future] = {}
        self._connect_lock = asyncio.Lock()
        self._ids = itertools.count(1)

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def _ensure_connected(self) -> Any:
        async with self._connect_lock:
            if self._ws is not None:
                return self._ws

            try:
                ws = await websockets.connect(
                    self._url,
                    open_timeout=self._connect_timeout,
                    max_size=None,
                )
            except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
                raise TransportError(f"Cannot connect to rosbridge at {self._url}: {e}") from e

            logger.info("Connected to rosbridge at %s", self._url)
            self._ws = ws
            self._reader = asyncio.create_task(self._read_loop(ws))
            return ws

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                try:
                    message = json.loads(raw)
                except ValueError:
                    logger.warning("Dropping non-JSON rosbridge frame")
                    continue
                self._dispatch(message)
        except websockets.exceptions.ConnectionClosed as e:
            logger.warning("rosbridge connection closed: %s", e)
        finally:
            if self._ws is ws:
                self._ws = None
            for request_id, future in list(self._pending.items()):
                if not future.done():
                    future.set_exception(TransportError("rosbridge connection lost"))
                self._pending.pop(request_id, None)

    def _dispatch(self, message: dict) -> None:
        op = message.get("op")
        if op in ("service_response", "action_result"):
            future = self._pending.get(message.get("id"))
            if future is not None and not future.done():
                future.set_result(message)
        elif op == "action_feedback":
            logger.debug("Feedback for %s: %s", message.get("action"), message.get("values"))
        elif op == "status":
            logger.info("rosbridge status (%s): %s", message.get("level"), message.get("msg"))

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}:{next(self._ids)}"

    async def _request(self, payload: dict, timeout: float) -> dict:
        """Send one request and wait for the response carrying its id."""
        ws = await self._ensure_connected()
        request_id = payload["id"]
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await ws.send(json.dumps(payload))
            return await asyncio.wait_for(future, timeout)
        except websockets.exceptions.ConnectionClosed as e:
            raise TransportError(f"rosbridge connection lost: {e}") from e
        finally:
            self._pending.pop(request_id, None)

    async def wait_for_server(self, action_name: str, timeout: float) -> bool:
        """Poll the rosapi listing until action_name shows up or time runs out."""
        target = normalize_action_name(action_name)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return False

            try:
                response = await self._request(
                    {
                        "op": "call_service",
                        "id": self._next_id("call_service"),
                        "service": self.ACTION_SERVERS_SERVICE,
                        "type": self.ACTION_SERVERS_TYPE,
                        "args": {},
                    },
                    timeout=remaining,
                )
            except asyncio.TimeoutError:
                return False

            values = response.get("values") or {}
            servers = values.get("action_servers") or [] if isinstance(values, dict) else []
            if target in {normalize_action_name(s) for s in servers if isinstance(s, str)}:
                return True

            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            await asyncio.sleep(min(self._poll_interval, remaining))

    async def send_goal(
        self, action_name: str, interface: str, goal: dict, timeout: float
    ) -> RawActionResult:
        """Submit a goal; cancel it (best effort) if no result arrives in time."""
        action = normalize_action_name(action_name)
        request_id = self._next_id("send_action_goal")
        payload = {
            "op": "send_action_goal",
            "id": request_id,
            "action": action,
            "action_type": interface,
            "args": goal,
            "feedback": False,
        }

        try:
            message = await self._request(payload, timeout)
        except asyncio.TimeoutError:
            await self._cancel(action, request_id)
            raise ActionTimeout(
                f"No result from {action} within {timeout:.1f}s"
            ) from None

        status = message.get("status")
        if status is None:
            # Older bridges only report the boolean call outcome
            status = 4 if message.get("result") else 6
        return RawActionResult(status=status, values=message.get("values"))

    async def _cancel(self, action: str, request_id: str) -> None:
        ws = self._ws
        if ws is None:
            return
        try:
            await ws.send(
                json.dumps({"op": "cancel_action_goal", "id": request_id, "action": action})
            )
            logger.info("Cancel requested for %s (%s)", action, request_id)
        except websockets.exceptions.WebSocketException as e:
            logger.warning("Cancel of %s failed: %s", action, e)

    async def close(self) -> None:
        ws = self._ws
        self._ws = None
        if ws is not None:
            await ws.close()
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
