"""
FastAPI application factory for the notifications gateway.

This module creates the main FastAPI app with:
- Notification service lifecycle management
- CORS configuration
- Routing error to HTTP status mapping
- Notifications API routes
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from notifications.routing import __version__
from notifications.routing.config import HttpConfig, StorageConfig
from notifications.routing.errors import (
    NotFoundError,
    RoutingError,
    StorageError,
    StorageTimeoutError,
    ValidationError,
)
from notifications.routing.service import NotificationService

from .config import Settings
from .routes import router

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[RoutingError], int]] = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (StorageTimeoutError, 504),
    (StorageError, 503),
]


def _error_response(error: RoutingError, status: int) -> JSONResponse:
    return JSONResponse({"error": error.message, "error_code": error.code}, status_code=status)


def _status_for(error: RoutingError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 500


def create_app(
    service: NotificationService | None = None,
    storage: StorageConfig | None = None,
    http: HttpConfig | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Prebuilt service; built from ``storage`` at startup when omitted
        storage: Storage configuration (defaults to environment)
        http: HTTP configuration for CORS (defaults to environment)
    """
    settings = Settings()
    http = http or HttpConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage notification service lifecycle."""
        notification_service = service or NotificationService.from_config(
            storage or StorageConfig.from_env()
        )
        await notification_service.start()
        app.state.service = notification_service
        app.state.settings = settings

        yield

        logger.info("Notifications gateway stopped")

    app = FastAPI(
        title=settings.title,
        description=(
            "Behavior groups, default endpoints and removal impact of notification routing."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(http.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(RoutingError)
    async def routing_error_handler(request: Request, exc: RoutingError) -> JSONResponse:
        status = _status_for(exc)
        if status >= 500:
            logger.error(
                f"HTTP handler error: {exc.message}",
                extra={"error_code": exc.code, "path": request.url.path},
            )
        return _error_response(exc, status)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"HTTP handler error: {exc}", exc_info=True)
        return JSONResponse({"error": str(exc), "error_code": "INTERNAL"}, status_code=500)

    app.include_router(router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health(request: Request):
        result = await request.app.state.service.health()
        status = 200 if result["healthy"] else 503
        return JSONResponse({**result, "service": "notifications"}, status_code=status)

    return app


# Default app instance
app = create_app()
