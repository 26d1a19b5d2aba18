"""
Unit tests for ImpactResolver.

Tests cover:
- Behavior group removal impact
- Legacy endpoint removal impact (direct + default endpoints)
- Behavior group endpoint removal impact
"""

import pytest

from notifications.routing.core import DefaultEndpointRegistry, ImpactResolver
from notifications.routing.models import EndpointType


class TestImpactResolver:
    """Tests for ImpactResolver."""

    @pytest.fixture
    def registry(self, store):
        return DefaultEndpointRegistry(store)

    @pytest.fixture
    def resolver(self, store, registry):
        return ImpactResolver(store, registry)

    @pytest.mark.asyncio
    async def test_group_without_links(self, resolver, store, catalog):
        """A behavior group with no links affects nothing."""
        group = await store.create_behavior_group("acct_1", catalog.bundle.id, "Ops")

        assert await resolver.affected_by_behavior_group_removal("acct_1", group.id) == []

    @pytest.mark.asyncio
    async def test_group_with_links(self, resolver, store, catalog):
        """Linked event types are returned for the owning tenant only."""
        group = await store.create_behavior_group("acct_1", catalog.bundle.id, "Ops")
        await store.link_event_type_behavior_group("acct_1", catalog.et2.id, group.id)
        await store.link_event_type_behavior_group("acct_1", catalog.et1.id, group.id)

        affected = await resolver.affected_by_behavior_group_removal("acct_1", group.id)

        assert [et.id for et in affected] == [catalog.et1.id, catalog.et2.id]
        assert await resolver.affected_by_behavior_group_removal("acct_2", group.id) == []

    @pytest.mark.asyncio
    async def test_unknown_identifiers(self, resolver, catalog):
        """Unknown identifiers yield empty results."""
        assert await resolver.affected_by_behavior_group_removal("acct_1", "missing") == []
        assert await resolver.affected_by_endpoint_removal("acct_1", "missing") == []
        assert (
            await resolver.affected_by_endpoint_removal_through_behavior_groups("acct_1", "missing")
            == []
        )

    @pytest.mark.asyncio
    async def test_endpoint_neither_default_nor_linked(self, resolver, registry, store, catalog):
        """An unlinked non-default endpoint affects nothing."""
        d1 = await store.create_endpoint("acct_1", "d1", EndpointType.DEFAULT)
        lonely = await store.create_endpoint("acct_1", "lonely", EndpointType.WEBHOOK)
        await registry.add("acct_1", d1.id)
        await store.link_event_type_endpoint("acct_1", d1.id, catalog.et1.id)

        assert await resolver.affected_by_endpoint_removal("acct_1", lonely.id) == []

    @pytest.mark.asyncio
    async def test_default_endpoint_scenario(self, resolver, registry, store, catalog):
        """Direct and indirect streams are concatenated without deduplication."""
        d1 = await store.create_endpoint("acct_1", "d1", EndpointType.DEFAULT)
        e9 = await store.create_endpoint("acct_1", "e9", EndpointType.WEBHOOK)
        await registry.add("acct_1", d1.id)
        await store.link_event_type_endpoint("acct_1", d1.id, catalog.et1.id)
        await store.link_event_type_endpoint("acct_1", d1.id, catalog.et2.id)
        await store.link_event_type_endpoint("acct_1", e9.id, catalog.et3.id)

        affected_d1 = await resolver.affected_by_endpoint_removal("acct_1", d1.id)

        assert len(affected_d1) == 4
        assert {et.id for et in affected_d1} == {catalog.et1.id, catalog.et2.id}
        assert [et.id for et in affected_d1] == [
            catalog.et1.id,
            catalog.et2.id,
            catalog.et1.id,
            catalog.et2.id,
        ]

        affected_e9 = await resolver.affected_by_endpoint_removal("acct_1", e9.id)
        assert [et.id for et in affected_e9] == [catalog.et3.id]

    @pytest.mark.asyncio
    async def test_indirect_stream_walks_every_default(self, resolver, registry, store, catalog):
        """Each default endpoint contributes its own event types."""
        d1 = await store.create_endpoint("acct_1", "d1", EndpointType.DEFAULT)
        d2 = await store.create_endpoint("acct_1", "d2", EndpointType.DEFAULT)
        await registry.add("acct_1", d1.id)
        await registry.add("acct_1", d2.id)
        await store.link_event_type_endpoint("acct_1", d2.id, catalog.et3.id)

        affected = await resolver.affected_by_endpoint_removal("acct_1", d1.id)

        assert [et.id for et in affected] == [catalog.et3.id]

    @pytest.mark.asyncio
    async def test_deduplicate_is_opt_in(self, resolver, registry, store, catalog):
        """Deduplication keeps first occurrences in order."""
        d1 = await store.create_endpoint("acct_1", "d1", EndpointType.DEFAULT)
        await registry.add("acct_1", d1.id)
        await store.link_event_type_endpoint("acct_1", d1.id, catalog.et1.id)
        await store.link_event_type_endpoint("acct_1", d1.id, catalog.et2.id)

        affected = await resolver.affected_by_endpoint_removal("acct_1", d1.id, deduplicate=True)

        assert [et.id for et in affected] == [catalog.et1.id, catalog.et2.id]

    @pytest.mark.asyncio
    async def test_other_tenant_defaults_ignored(self, resolver, registry, store, catalog):
        """Default endpoints of another tenant never contribute."""
        d1 = await store.create_endpoint("acct_2", "d1", EndpointType.DEFAULT)
        await registry.add("acct_2", d1.id)
        await store.link_event_type_endpoint("acct_2", d1.id, catalog.et1.id)

        assert await resolver.affected_by_endpoint_removal("acct_1", d1.id) == []

    @pytest.mark.asyncio
    async def test_removal_through_behavior_groups(self, resolver, store, catalog):
        """Event types of every group containing the endpoint are listed once."""
        e1 = await store.create_endpoint("acct_1", "e1", EndpointType.WEBHOOK)
        e2 = await store.create_endpoint("acct_1", "e2", EndpointType.WEBHOOK)
        first = await store.create_behavior_group("acct_1", catalog.bundle.id, "First")
        second = await store.create_behavior_group("acct_1", catalog.bundle.id, "Second")
        await store.replace_behavior_group_actions("acct_1", first.id, [e1.id])
        await store.replace_behavior_group_actions("acct_1", second.id, [e2.id, e1.id])
        await store.link_event_type_behavior_group("acct_1", catalog.et1.id, first.id)
        await store.link_event_type_behavior_group("acct_1", catalog.et1.id, second.id)
        await store.link_event_type_behavior_group("acct_1", catalog.et3.id, second.id)

        affected = await resolver.affected_by_endpoint_removal_through_behavior_groups(
            "acct_1", e1.id
        )

        assert [et.id for et in affected] == [catalog.et1.id, catalog.et3.id]
