"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..app import Application
from ..config import env_list
from ..errors import BridgeError, InvalidRequest
from ..logging_config import get_logger
from .routes import actions, control, logs, recording, robots

logger = get_logger(__name__)


# Global application instance
_app: Application | None = None


def get_app() -> Application:
    """Get the global application instance."""
    global _app
    if not _app:
        _app = Application()
    return _app


def error_response(status_code: int, message: str, code: str | None = None) -> JSONResponse:
    content = {"error": message}
    if code:
        content["code"] = code
    return JSONResponse(status_code=status_code, content=content)


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    application = application or get_app()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        await application.start()
        yield
        await application.stop()

    fastapi_app = FastAPI(
        title="Robot Dashboard Bridge",
        description="Action gateway, recording control and experiment log store",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Dashboard is served from other hosts on the lab network
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=env_list("CORS_ORIGINS", ["*"]),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @fastapi_app.exception_handler(BridgeError)
    async def handle_bridge_error(request: Request, exc: BridgeError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
        return error_response(exc.status_code, exc.message, exc.code)

    @fastapi_app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return error_response(
            InvalidRequest.status_code, "Malformed request body", InvalidRequest.code
        )

    @fastapi_app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "%s %s crashed: %s", request.method, request.url.path, exc, exc_info=exc
        )
        return error_response(500, str(exc) or exc.__class__.__name__)

    fastapi_app.include_router(actions.create_actions_router(application))
    fastapi_app.include_router(recording.create_recording_router(application))
    fastapi_app.include_router(logs.create_logs_router(application))
    fastapi_app.include_router(robots.create_robots_router(application))
    fastapi_app.include_router(control.create_control_router(application))

    return fastapi_app
