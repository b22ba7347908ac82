"""Quill - FastAPI Application

Local HTTP bridge between a desktop front-end and the streaming task manager.
"""

import traceback
import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.agent import router as agent_router
from .api.health import router as health_router
from .core.config import Settings, get_settings_instance
from .core.exceptions import QuillException
from .core.http_client import HTTPClientManager
from .core.logging import get_logger, setup_logging
from .services.notification_hub import NotificationHub
from .services.task_manager import TaskManager
from .services.task_registry import TaskRegistry

# Registers the built-in stream producers
from . import providers  # noqa: F401

logger = get_logger(__name__)


def generate_error_id() -> str:
    """Generate a unique error ID for tracking."""
    return f"ERR-{uuid.uuid4().hex[:8].upper()}"


def get_request_context(request: Request) -> dict[str, Any]:
    """Extract relevant context from request for error logging."""
    return {
        "method": request.method,
        "path": request.url.path,
        "query_params": dict(request.query_params),
        "client_host": request.client.host if request.client else None,
    }


def build_lifespan(settings: Settings, client: Optional[httpx.AsyncClient]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create the hub, registry and task manager; tear them down on exit."""
        setup_logging(settings)
        logger.info(f"Starting {settings.app_name} {settings.version}")

        client_manager = None
        http_client = client
        if http_client is None:
            client_manager = HTTPClientManager(settings)
            http_client = await client_manager.get_client()

        hub = NotificationHub(
            max_queue_size=settings.stream_queue_size, retained_tasks=settings.stream_retained_tasks
        )
        manager = TaskManager(http_client, hub.publish, settings=settings, registry=TaskRegistry())
        app.state.notification_hub = hub
        app.state.task_manager = manager

        try:
            yield
        finally:
            logger.info(f"Shutting down {settings.app_name}")
            await manager.shutdown()
            if client_manager is not None:
                await client_manager.close()

    return lifespan


def setup_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Register handlers that turn exceptions into the JSON error envelope."""

    @app.exception_handler(QuillException)
    async def quill_exception_handler(request: Request, exc: QuillException):
        error_id = generate_error_id() if exc.status_code >= 500 else None

        if exc.status_code >= 500:
            logger.error(
                "Quill server error",
                extra={
                    "error_id": error_id,
                    "error_code": exc.error_code,
                    "error_message": exc.message,
                    "request_context": get_request_context(request),
                },
            )
        else:
            logger.warning(
                "Quill client error",
                extra={
                    "error_code": exc.error_code,
                    "error_message": exc.message,
                    "request_context": get_request_context(request),
                },
            )

        error_response = {
            "error": {
                "code": exc.error_code,
                "message": exc.message,
                "details": exc.details,
            }
        }
        if error_id:
            error_response["error"]["error_id"] = error_id

        return JSONResponse(status_code=exc.status_code, content=error_response)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        error_id = generate_error_id()
        include_traceback = settings.debug or settings.environment == "development"

        logger.error(
            "Unhandled exception",
            extra={"error_id": error_id, "request_context": get_request_context(request)},
            exc_info=exc,
        )

        error_response: dict[str, Any] = {
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "Internal server error",
                "error_id": error_id,
                "details": {},
            }
        }
        if include_traceback:
            error_response["error"]["details"] = {
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
                "traceback": traceback.format_exception(exc),
            }

        return JSONResponse(status_code=500, content=error_response)


def create_app(settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``client`` replaces the pooled HTTP client; the caller then owns its
    lifetime.
    """
    settings = settings or get_settings_instance()
    app = FastAPI(
        title=settings.app_name,
        description="Quill streaming prompt bridge",
        version=settings.version,
        debug=settings.debug,
        lifespan=build_lifespan(settings, client),
    )

    # The front-end is served from a local origin (file:// or a dev server)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app, settings)
    app.include_router(agent_router)
    app.include_router(health_router)
    return app


def run() -> None:
    """Console entry point: serve the bridge with uvicorn."""
    settings = get_settings_instance()
    setup_logging(settings)
    uvicorn.run(
        "quill.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
