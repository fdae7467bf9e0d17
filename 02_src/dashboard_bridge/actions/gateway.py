"""Action gateway: loosely-typed requests in, normalized results out."""

import time
from typing import Any, Mapping, Protocol

from ..config import DEFAULT_DISCOVERY_TIMEOUT, DEFAULT_RESULT_TIMEOUT
from ..errors import ActionServerUnavailable, InvalidRequest
from ..logging_config import get_logger
from ..models import ActionResult, ActionStatus
from .registry import ActionTypeRegistry, ActionTypeSpec
from .serialization import to_json_safe
from .transport import IActionTransport, RawActionResult

logger = get_logger(__name__)


class IActionGateway(Protocol):
    """Submits goals to remote action handlers."""

    async def submit_action(
        self, action_name: str, action_type: str, goal: Any
    ) -> ActionResult:
        """Resolve, discover, submit and await a terminal result."""
        ...


class ActionClient:
    """A transport bound to one (action type, action name) pair."""

    def __init__(self, spec: ActionTypeSpec, action_name: str, transport: IActionTransport):
        self.spec = spec
        self.action_name = action_name
        self._transport = transport

    async def wait_for_server(self, timeout: float) -> bool:
        return await self._transport.wait_for_server(self.action_name, timeout)

    async def send_goal(self, goal: dict, timeout: float) -> RawActionResult:
        return await self._transport.send_goal(
            self.action_name, self.spec.interface, goal, timeout
        )


class ActionGateway:
    """Stateless-per-call gateway in front of the action transports.

    Calls are independent: nothing is serialized or deduplicated, and no
    error is retried here. The only shared state is the client cache.
    """

    def __init__(
        self,
        registry: ActionTypeRegistry,
        transports: Mapping[str, IActionTransport],
        discovery_timeout: float = DEFAULT_DISCOVERY_TIMEOUT,
        result_timeout: float = DEFAULT_RESULT_TIMEOUT,
    ):
        self._registry = registry
        self._transports = dict(transports)
        self._discovery_timeout = discovery_timeout
        self._result_timeout = result_timeout
        self._clients: dict[tuple[str, str], ActionClient] = {}

        self._registry.validate(self._transports.keys())

    @property
    def registry(self) -> ActionTypeRegistry:
        return self._registry

    def _client_for(self, spec: ActionTypeSpec, action_name: str) -> ActionClient:
        key = (spec.tag, action_name)
        client = self._clients.get(key)
        if client is None:
            client = ActionClient(spec, action_name, self._transports[spec.transport])
            self._clients[key] = client
        return client

    async def submit_action(
        self, action_name: str, action_type: str, goal: Any
    ) -> ActionResult:
        """Submit one goal and wait for its terminal result.

        Raises:
            InvalidRequest: empty action name or non-object goal.
            ActionTypeUnresolvable: action_type is not registered.
            ActionServerUnavailable: no handler within the discovery timeout.
            ActionTimeout: no terminal result within the result timeout.
            TransportError: the transport failed.
        """
        if not isinstance(action_name, str) or not action_name.strip():
            raise InvalidRequest("actionName must be a non-empty string")
        if not isinstance(action_type, str) or not action_type.strip():
            raise InvalidRequest("actionType must be a non-empty string")
        if not isinstance(goal, dict):
            raise InvalidRequest("goal must be an object")

        spec = self._registry.resolve(action_type.strip())
        client = self._client_for(spec, action_name.strip())

        logger.info("Waiting for server %s (%s)", client.action_name, spec.interface)
        started = time.monotonic()
        if not await client.wait_for_server(self._discovery_timeout):
            raise ActionServerUnavailable(
                f"Action server {client.action_name} ({spec.interface}) not available"
            )

        logger.info("Server found, sending goal to %s", client.action_name)
        raw = await client.send_goal(goal, self._result_timeout)

        result = ActionResult(
            status=ActionStatus.coerce(raw.status),
            result=to_json_safe(raw.values),
        )
        logger.info(
            "Action %s finished with %s (success=%s) in %.2fs",
            client.action_name,
            result.status.name,
            result.success,
            time.monotonic() - started,
        )
        return result
