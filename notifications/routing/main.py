"""
Notification routing server - Main entry point.

This module starts the HTTP gateway over the routing core:
- Loads ServerConfig from the environment
- Configures logging
- Serves notifications.gateway with uvicorn

Usage:
    python -m notifications.routing.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - Configuration errors stop the process before anything binds
    - The schema is created during application startup, before requests are served
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn

from notifications.gateway.app import create_app

from .config import ServerConfig

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    config.log_config()

    app = create_app(storage=config.storage, http=config.http)

    logger.info(f"Starting notifications gateway on {config.http.host}:{config.http.port}")
    uvicorn.run(
        app,
        host=config.http.host,
        port=config.http.port,
        log_config=None,
        log_level=config.observability.log_level.lower(),
    )


if __name__ == "__main__":
    main()
