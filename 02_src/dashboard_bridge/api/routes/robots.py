"""Robot configuration routes.

The store reads and writes files, so each call runs in a worker thread.
"""

import asyncio
from typing import Any

from fastapi import APIRouter, Body

from ...app import Application


def create_robots_router(app: Application) -> APIRouter:
    """Create robot configuration router."""
    router = APIRouter(prefix="/robot/configs", tags=["robots"])

    @router.get("/list")
    async def list_configs() -> dict:
        """List robot configurations, built-ins first."""
        return {"configs": await asyncio.to_thread(app.robots.list)}

    @router.post("/save")
    async def save_config(config: Any = Body(None)) -> dict:
        """Save a custom robot configuration."""
        saved = await asyncio.to_thread(app.robots.save, config)
        return {
            "success": True,
            "message": f"Robot configuration '{saved.display_name or saved.name}' saved successfully",
            "name": saved.name,
            "availableCapabilities": saved.available_capabilities(),
        }

    @router.get("/{config_name}")
    async def get_config(config_name: str) -> dict:
        """Get one robot configuration."""
        config = await asyncio.to_thread(app.robots.get, config_name)
        return config.to_json_dict()

    @router.delete("/{config_name}")
    async def delete_config(config_name: str) -> dict:
        """Delete a custom robot configuration."""
        await asyncio.to_thread(app.robots.delete, config_name)
        return {
            "success": True,
            "message": f"Robot configuration '{config_name}' deleted successfully",
        }

    return router
