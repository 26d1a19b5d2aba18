"""
Unit tests for the NotificationService facade and logging setup.
"""

import logging

import json_log_formatter
import pytest

from notifications.routing.config import ObservabilityConfig, ServerConfig, StorageConfig
from notifications.routing.main import setup_logging
from notifications.routing.service import NotificationService


class TestNotificationService:
    """Tests for NotificationService."""

    @pytest.mark.asyncio
    async def test_from_config_and_health(self, data_dir):
        """A service built from config starts and reports healthy."""
        service = NotificationService.from_config(
            StorageConfig(data_dir=data_dir, db_name="svc.db", wal_mode=False)
        )

        await service.start()
        result = await service.health()

        assert service.store.db_path.name == "svc.db"
        assert result == {"healthy": True, "bundles": 0}

    @pytest.mark.asyncio
    async def test_components_share_store(self, store):
        """Every component works against the same store."""
        service = NotificationService(store)

        assert service.defaults.store is store
        assert service.impact.defaults is service.defaults
        assert service.mute.store is store

    @pytest.mark.asyncio
    async def test_health_reports_timeout(self, store):
        """A missed deadline makes the service unhealthy."""
        result = await NotificationService(store).health(timeout=0)

        assert result["healthy"] is False
        assert result["error_code"] == "STORAGE_TIMEOUT"


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self):
        """JSON format installs the JSON formatter."""
        setup_logging(ServerConfig(observability=ObservabilityConfig("DEBUG", "json")))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_text_format(self):
        """Text format uses a plain formatter."""
        setup_logging(ServerConfig(observability=ObservabilityConfig("WARNING", "text")))

        formatter = logging.getLogger().handlers[0].formatter
        assert not isinstance(formatter, json_log_formatter.JSONFormatter)
