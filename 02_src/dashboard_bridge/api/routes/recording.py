"""Bag recording routes."""

from fastapi import APIRouter
from pydantic import BaseModel

from ...app import Application


class BagStartRequest(BaseModel):
    """Request model for starting a recording."""

    topics: list[str] | None = None
    outputPath: str | None = None
    sessionName: str | None = None


def create_recording_router(app: Application) -> APIRouter:
    """Create recording router."""
    router = APIRouter(prefix="/bag", tags=["recording"])

    @router.post("/start")
    async def start_recording(request: BagStartRequest | None = None) -> dict:
        """Start the external recorder."""
        request = request or BagStartRequest()
        handle = await app.recorder.start(
            session_label=request.sessionName,
            topics=request.topics,
            output_path=request.outputPath,
        )
        return {
            "success": True,
            "message": "Bag recording started",
            "path": handle.output_path,
            "topics": handle.topics,
        }

    @router.post("/stop")
    async def stop_recording() -> dict:
        """Stop the external recorder."""
        stopped = await app.recorder.stop()
        return {
            "success": True,
            "message": "Bag recording stopped",
            "path": stopped["path"],
        }

    @router.get("/status")
    async def recording_status() -> dict:
        """Current recording status."""
        return app.recorder.status()

    return router
