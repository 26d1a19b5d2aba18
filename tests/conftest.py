"""
Shared fixtures for notification routing tests.

Every test gets its own SQLite file in a temporary directory and a small
catalog: one bundle, one application and three event types.
"""

import tempfile
from dataclasses import dataclass

import pytest
import pytest_asyncio

from notifications.routing.models import Application, Bundle, EventType
from notifications.routing.store import AssociationStore


@dataclass
class Catalog:
    bundle: Bundle
    application: Application
    et1: EventType
    et2: EventType
    et3: EventType


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest_asyncio.fixture
async def store(data_dir):
    """Create an initialized association store."""
    store = AssociationStore(data_dir, wal_mode=False)
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def catalog(store):
    """Seed one bundle, one application and three event types."""
    bundle = await store.create_bundle("rhel", "Red Hat Enterprise Linux")
    application = await store.create_application(bundle.id, "policies", "Policies")
    et1 = await store.create_event_type(application.id, "et-1", "Event type 1")
    et2 = await store.create_event_type(application.id, "et-2", "Event type 2")
    et3 = await store.create_event_type(application.id, "et-3", "Event type 3")
    return Catalog(bundle=bundle, application=application, et1=et1, et2=et2, et3=et3)
