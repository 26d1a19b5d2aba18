"""
Notifications HTTP gateway.

FastAPI application exposing the routing core under
``/api/notifications/v1.0/notifications``. The tenant is read from the
``X-Tenant-ID`` header; authentication happens upstream.

Usage:
    uvicorn notifications.gateway.app:app --port 8080
"""

from .app import create_app

__all__ = ["create_app"]
