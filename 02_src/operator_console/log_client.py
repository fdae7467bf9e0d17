"""HTTP client for the bridge's experiment log store."""

from typing import Protocol

import httpx

from dashboard_bridge.logging_config import get_logger

from .config import bridge_url, request_timeout
from .errors import SyncFailed, SyncUnsupported

logger = get_logger(__name__)

APPEND_UNSUPPORTED = "append_unsupported"


class ILogStoreClient(Protocol):
    """Remote log store as seen from the console."""

    async def append(self, session_id: str, logs: str) -> dict:
        """Merge JSONL lines into the stored log."""
        ...

    async def save(self, session_id: str, logs: str) -> dict:
        """Replace the stored log with a full rendering."""
        ...

    async def close(self) -> None:
        ...


def _error_code(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("code") if isinstance(body, dict) else None


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text[:200]


def _ack_body(response: httpx.Response) -> dict:
    """Body of a 2xx acknowledgement; the status alone is the acknowledgement."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def append_unsupported(response: httpx.Response) -> bool:
    """Whether a failed append means the store has no append capability.

    An explicit append_unsupported code, or a 404/405/501 that carries no
    error code at all (the route does not exist on an older bridge).
    """
    if response.status_code not in (404, 405, 501):
        return False
    code = _error_code(response)
    return code == APPEND_UNSUPPORTED or code is None


class LogStoreClient:
    """Talks to /experiment/logs/* on the bridge."""

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ):
        self._base_url = (base_url or bridge_url()).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else request_timeout()
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _post(self, path: str, session_id: str, logs: str) -> httpx.Response:
        try:
            return await self._client.post(
                f"{self._base_url}{path}",
                json={"sessionId": session_id, "logs": logs},
            )
        except httpx.HTTPError as e:
            raise SyncFailed(f"{path} unreachable: {e}") from e

    async def append(self, session_id: str, logs: str) -> dict:
        """Merge JSONL lines into the stored log.

        Raises SyncUnsupported when the store cannot append, SyncFailed on
        any other failure.
        """
        response = await self._post("/experiment/logs/append", session_id, logs)
        if response.is_success:
            return _ack_body(response)
        if append_unsupported(response):
            raise SyncUnsupported(_error_text(response))
        raise SyncFailed(f"append returned {response.status_code}: {_error_text(response)}")

    async def save(self, session_id: str, logs: str) -> dict:
        """Replace the stored log with a full rendering."""
        response = await self._post("/experiment/logs/save", session_id, logs)
        if response.is_success:
            return _ack_body(response)
        raise SyncFailed(f"save returned {response.status_code}: {_error_text(response)}")

    async def list(self) -> list[dict]:
        """List stored session logs, newest first."""
        try:
            response = await self._client.get(f"{self._base_url}/experiment/logs/list")
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SyncFailed(f"list failed: {e}") from e
        try:
            return response.json().get("files", [])
        except (ValueError, AttributeError) as e:
            raise SyncFailed(f"list returned an unreadable body: {e}") from e

    async def download(self, session_id: str) -> str:
        """Fetch a stored session log as JSONL text."""
        try:
            response = await self._client.get(
                f"{self._base_url}/experiment/logs/download/{session_id}"
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SyncFailed(f"download of {session_id} failed: {e}") from e
        return response.text

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
