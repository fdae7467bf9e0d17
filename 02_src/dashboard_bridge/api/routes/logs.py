"""Experiment log store routes."""

from typing import Any

from fastapi import APIRouter
from fastapi.responses import FileResponse
from pydantic import BaseModel

from ...app import Application
from ...errors import InvalidRequest


class LogsRequest(BaseModel):
    """Request model for append and save."""

    sessionId: Any = None
    logs: Any = None


def _unpack(request: LogsRequest) -> tuple[str, str]:
    if not isinstance(request.sessionId, str) or not request.sessionId:
        raise InvalidRequest("Missing sessionId or logs")
    if not isinstance(request.logs, str) or not request.logs.strip():
        raise InvalidRequest("Missing sessionId or logs")
    return request.sessionId, request.logs


def create_logs_router(app: Application) -> APIRouter:
    """Create logs router."""
    router = APIRouter(prefix="/experiment/logs", tags=["logs"])

    @router.post("/append")
    async def append_logs(request: LogsRequest) -> dict:
        """Incrementally append records to a session log."""
        session_id, logs = _unpack(request)
        merged = await app.log_store.append(session_id, logs)
        return {"success": True, **merged}

    @router.post("/save")
    async def save_logs(request: LogsRequest) -> dict:
        """Full resend of a session log."""
        session_id, logs = _unpack(request)
        merged = await app.log_store.save(session_id, logs)
        return {"success": True, "message": "Logs saved successfully", **merged}

    @router.get("/list")
    async def list_logs() -> dict:
        """List stored session logs, newest first."""
        files = await app.log_store.list()
        return {"files": [f.to_dict() for f in files]}

    @router.get("/download/{session_id}")
    async def download_log(session_id: str) -> FileResponse:
        """Stream a session log file."""
        path = app.log_store.path_for(session_id)
        return FileResponse(
            path,
            media_type="application/x-ndjson",
            filename=f"experiment_{session_id}.jsonl",
        )

    return router
