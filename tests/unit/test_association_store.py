"""
Unit tests for the SQLite association store.

Tests cover:
- Catalog seeding and lookups
- Endpoint creation and lazy properties
- Behavior group action replacement (ordering, atomicity)
- Tenant isolation
- Deadlines and lock timeouts
"""

import asyncio
import sqlite3
import time

import pytest

from notifications.routing.errors import (
    NotFoundError,
    StorageTimeoutError,
    ValidationError,
)
from notifications.routing.models import EndpointType
from notifications.routing.store import AssociationStore


class TestCatalog:
    """Tests for the read-only catalog."""

    @pytest.mark.asyncio
    async def test_event_types_embed_application(self, store, catalog):
        """Event types come back with their application."""
        event_types = await store.get_event_types()

        assert [et.name for et in event_types] == ["et-1", "et-2", "et-3"]
        assert event_types[0].application.id == catalog.application.id
        assert event_types[0].application.bundle_id == catalog.bundle.id

    @pytest.mark.asyncio
    async def test_event_types_filtered_by_bundle(self, store, catalog):
        """Unknown bundle filter yields nothing."""
        other = await store.create_bundle("openshift", "OpenShift")

        assert len(await store.get_event_types(bundle_id=catalog.bundle.id)) == 3
        assert await store.get_event_types(bundle_id=other.id) == []

    @pytest.mark.asyncio
    async def test_event_types_pagination(self, store, catalog):
        """Limit and offset page through event types."""
        page = await store.get_event_types(limit=2, offset=1)

        assert [et.id for et in page] == [catalog.et2.id, catalog.et3.id]

    @pytest.mark.asyncio
    async def test_applications_by_bundle_name(self, store, catalog):
        """Applications can be restricted to a bundle by name."""
        assert [a.name for a in await store.get_applications("rhel")] == ["policies"]
        assert await store.get_applications("unknown") == []


class TestEndpoints:
    """Tests for endpoint storage."""

    @pytest.mark.asyncio
    async def test_get_endpoint_without_properties(self, store):
        """Single reads do not load properties."""
        created = await store.create_endpoint(
            "acct_1",
            "ops-webhook",
            EndpointType.WEBHOOK,
            properties={"url": "https://example.com/hook"},
        )

        fetched = await store.get_endpoint("acct_1", created.id)

        assert fetched is not None
        assert fetched.type == EndpointType.WEBHOOK
        assert fetched.properties is None

    @pytest.mark.asyncio
    async def test_load_endpoint_properties(self, store):
        """Properties are filled in place on request."""
        created = await store.create_endpoint(
            "acct_1", "hook", EndpointType.WEBHOOK, properties={"url": "https://a"}
        )
        fetched = await store.get_endpoint("acct_1", created.id)

        await store.load_endpoint_properties([fetched])

        assert fetched.properties == {"url": "https://a"}

    @pytest.mark.asyncio
    async def test_endpoint_invisible_to_other_tenant(self, store):
        """An endpoint cannot be read from another tenant."""
        created = await store.create_endpoint("acct_1", "hook", EndpointType.WEBHOOK)

        assert await store.get_endpoint("acct_2", created.id) is None


class TestBehaviorGroupActions:
    """Tests for action list replacement."""

    @pytest.mark.asyncio
    async def test_replace_assigns_dense_positions(self, store, catalog):
        """Positions follow input order starting at zero."""
        group = await store.create_behavior_group("acct_1", catalog.bundle.id, "Ops")
        e1 = await store.create_endpoint("acct_1", "e1", EndpointType.WEBHOOK)
        e2 = await store.create_endpoint("acct_1", "e2", EndpointType.EMAIL_SUBSCRIPTION)

        assert await store.replace_behavior_group_actions("acct_1", group.id, [e2.id, e1.id])

        actions = await store.get_behavior_group_actions("acct_1", group.id)
        assert [(a.endpoint.id, a.position) for a in actions] == [(e2.id, 0), (e1.id, 1)]

    @pytest.mark.asyncio
    async def test_replace_unknown_group_returns_false(self, store):
        """Missing behavior group is reported, not raised."""
        assert await store.replace_behavior_group_actions("acct_1", "missing", []) is False

    @pytest.mark.asyncio
    async def test_replace_with_foreign_endpoint_rolls_back(self, store, catalog):
        """An endpoint of another tenant aborts the whole replace."""
        group = await store.create_behavior_group("acct_1", catalog.bundle.id, "Ops")
        e1 = await store.create_endpoint("acct_1", "e1", EndpointType.WEBHOOK)
        foreign = await store.create_endpoint("acct_2", "foreign", EndpointType.WEBHOOK)
        await store.replace_behavior_group_actions("acct_1", group.id, [e1.id])

        with pytest.raises(ValidationError) as exc_info:
            await store.replace_behavior_group_actions("acct_1", group.id, [foreign.id])

        assert exc_info.value.errors == [foreign.id]
        actions = await store.get_behavior_group_actions("acct_1", group.id)
        assert [a.endpoint.id for a in actions] == [e1.id]

    @pytest.mark.asyncio
    async def test_create_group_unknown_bundle(self, store):
        """Creating a group in an unknown bundle raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await store.create_behavior_group("acct_1", "no-such-bundle", "Ops")

    @pytest.mark.asyncio
    async def test_delete_group_cascades_but_keeps_endpoints(self, store, catalog):
        """Deleting a group removes its actions and links only."""
        group = await store.create_behavior_group("acct_1", catalog.bundle.id, "Ops")
        e1 = await store.create_endpoint("acct_1", "e1", EndpointType.WEBHOOK)
        await store.replace_behavior_group_actions("acct_1", group.id, [e1.id])
        await store.link_event_type_behavior_group("acct_1", catalog.et1.id, group.id)

        assert await store.delete_behavior_group("acct_1", group.id)

        assert await store.get_behavior_group_actions("acct_1", group.id) == []
        assert await store.event_types_linked_through_actions("acct_1", e1.id) == []
        assert await store.get_endpoint("acct_1", e1.id) is not None

    @pytest.mark.asyncio
    async def test_group_of_other_tenant_is_invisible(self, store, catalog):
        """Another tenant cannot read, rename or delete a group."""
        group = await store.create_behavior_group("acct_1", catalog.bundle.id, "Ops")

        assert await store.get_behavior_group("acct_2", group.id) is None
        assert await store.update_behavior_group("acct_2", group.id, "Renamed") is False
        assert await store.delete_behavior_group("acct_2", group.id) is False


class TestEventTypeLinks:
    """Tests for the two link relations."""

    @pytest.mark.asyncio
    async def test_link_through_actions_is_distinct(self, store, catalog):
        """An event type reached through two groups is listed once."""
        e1 = await store.create_endpoint("acct_1", "e1", EndpointType.WEBHOOK)
        for name in ("A", "B"):
            group = await store.create_behavior_group("acct_1", catalog.bundle.id, name)
            await store.replace_behavior_group_actions("acct_1", group.id, [e1.id])
            await store.link_event_type_behavior_group("acct_1", catalog.et1.id, group.id)

        affected = await store.event_types_linked_through_actions("acct_1", e1.id)

        assert [et.id for et in affected] == [catalog.et1.id]

    @pytest.mark.asyncio
    async def test_legacy_link_requires_tenant_endpoint(self, store, catalog):
        """Linking a foreign endpoint does nothing."""
        foreign = await store.create_endpoint("acct_2", "foreign", EndpointType.WEBHOOK)

        linked = await store.link_event_type_endpoint("acct_1", foreign.id, catalog.et1.id)

        assert linked is False
        assert await store.event_types_linked_to_endpoint("acct_1", foreign.id) == []

    @pytest.mark.asyncio
    async def test_delete_links_keeps_other_tenants(self, store, catalog):
        """Removing a tenant's links leaves other tenants' groups linked."""
        mine = await store.create_behavior_group("acct_1", catalog.bundle.id, "Mine")
        theirs = await store.create_behavior_group("acct_2", catalog.bundle.id, "Theirs")
        await store.link_event_type_behavior_group("acct_1", catalog.et1.id, mine.id)
        await store.link_event_type_behavior_group("acct_2", catalog.et1.id, theirs.id)

        assert await store.delete_event_type_behavior_group_links("acct_1", catalog.et1.id)

        assert await store.find_behavior_groups_by_event_type("acct_1", catalog.et1.id) == []
        remaining = await store.find_behavior_groups_by_event_type("acct_2", catalog.et1.id)
        assert [g.id for g in remaining] == [theirs.id]


class TestDeadlines:
    """Tests for storage timeouts."""

    @pytest.mark.asyncio
    async def test_elapsed_deadline_raises_timeout(self, store):
        """A zero deadline cannot be met."""
        with pytest.raises(StorageTimeoutError) as exc_info:
            await store.get_bundles(timeout=0)

        assert exc_info.value.code == "STORAGE_TIMEOUT"
        assert exc_info.value.operation == "get_bundles"

    @pytest.mark.asyncio
    async def test_locked_database_raises_timeout(self, data_dir):
        """A writer blocked past the busy timeout gets StorageTimeoutError."""
        store = AssociationStore(data_dir, wal_mode=False, busy_timeout_ms=50)
        await store.initialize()
        endpoint = await store.create_endpoint("acct_1", "e1", EndpointType.WEBHOOK)

        holder = sqlite3.connect(str(store.db_path), isolation_level=None)
        try:
            holder.execute("BEGIN IMMEDIATE")
            with pytest.raises(StorageTimeoutError):
                await store.add_default_member("acct_1", endpoint.id)
        finally:
            holder.execute("ROLLBACK")
            holder.close()

        assert await store.is_default_member("acct_1", endpoint.id) is False

    @pytest.mark.asyncio
    async def test_timed_out_replace_leaves_actions_unchanged(self, store, catalog):
        """A replace that misses its deadline never lands, even once the lock frees up."""
        group = await store.create_behavior_group("acct_1", catalog.bundle.id, "Ops")
        e1 = await store.create_endpoint("acct_1", "e1", EndpointType.WEBHOOK)
        e2 = await store.create_endpoint("acct_1", "e2", EndpointType.WEBHOOK)
        await store.replace_behavior_group_actions("acct_1", group.id, [e1.id])

        holder = sqlite3.connect(str(store.db_path), isolation_level=None)
        try:
            holder.execute("BEGIN IMMEDIATE")
            with pytest.raises(StorageTimeoutError):
                await store.replace_behavior_group_actions(
                    "acct_1", group.id, [e2.id, e1.id], timeout=0.2
                )
        finally:
            holder.execute("ROLLBACK")
            holder.close()

        await asyncio.sleep(0.3)

        actions = await store.get_behavior_group_actions("acct_1", group.id)
        assert [(a.endpoint.id, a.position) for a in actions] == [(e1.id, 0)]

    @pytest.mark.asyncio
    async def test_slow_transaction_rolls_back_after_deadline(self, store):
        """Work that overruns its deadline is not committed."""

        def work(conn):
            with store._transaction(conn):
                conn.execute(
                    "INSERT INTO bundles (id, name, display_name, created) VALUES (?, ?, ?, ?)",
                    ("late", "late", "Late", 0),
                )
                time.sleep(0.3)

        with pytest.raises(StorageTimeoutError) as exc_info:
            await store._run("slow_insert", work, timeout=0.1)

        assert exc_info.value.operation == "slow_insert"

        await asyncio.sleep(0.4)

        assert "late" not in [bundle.id for bundle in await store.get_bundles()]

    @pytest.mark.asyncio
    async def test_commit_within_deadline_succeeds(self, store):
        """A generous deadline does not get in the way of writes."""
        bundle = await store.create_bundle("insights", "Insights", timeout=5.0)

        assert bundle.id in [b.id for b in await store.get_bundles(timeout=5.0)]
