"""Service health routes."""

from fastapi import APIRouter

from ...app import Application


def create_control_router(app: Application) -> APIRouter:
    """Create control router."""
    router = APIRouter(tags=["control"])

    @router.get("/health")
    async def health() -> dict:
        """Liveness plus a summary of the exclusive resources."""
        recording = app.recorder.status()["recording"] if app.started else False
        return {"status": "ok" if app.started else "starting", "recording": recording}

    return router
