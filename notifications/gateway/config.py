"""
Configuration for the notifications HTTP gateway.

Uses pydantic-settings for environment variable loading. Storage, bind
address and logging come from ServerConfig; only HTTP surface details live here.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Gateway configuration loaded from environment."""

    api_prefix: str = Field(
        default="/api/notifications/v1.0",
        description="Prefix of the notifications API",
    )
    title: str = Field(default="Notifications", description="OpenAPI title")
    tenant_header: str = Field(default="X-Tenant-ID", description="Header carrying the tenant")

    # Pagination defaults
    default_page_size: int = Field(default=100, description="Items per page when no limit is given")
    max_page_size: int = Field(default=500, description="Larger requested limits are capped to this")

    model_config = {"env_prefix": "GATEWAY_"}
