"""Action gateway routes."""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from ...app import Application


class GenericActionRequest(BaseModel):
    """Loosely-typed action request; the gateway validates it."""

    actionName: Any = None
    actionType: Any = None
    goal: Any = None


def create_actions_router(app: Application) -> APIRouter:
    """Create actions router."""
    router = APIRouter(tags=["actions"])

    @router.post("/generic-action")
    async def generic_action(request: GenericActionRequest) -> dict:
        """Submit a goal to a remote action handler and await its result."""
        result = await app.gateway.submit_action(
            request.actionName, request.actionType, request.goal
        )
        return result.to_dict()

    @router.get("/action-types")
    async def list_action_types() -> dict:
        """List registered action types."""
        return {"actionTypes": [spec.to_dict() for spec in app.gateway.registry]}

    return router
