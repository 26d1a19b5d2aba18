"""
Impact resolution for removal confirmation screens.

Before an endpoint or a behavior group is removed, the UI lists the event
types whose notifications would change. Two link models coexist while the
migration to behavior groups is running, so endpoint removal has two answers:

- Legacy: event types linked directly to the endpoint, followed by the event
  types of the default endpoints when the endpoint is itself a default member.
- Behavior groups: event types linked to any behavior group whose actions
  contain the endpoint.

Invariants:
    - Unknown identifiers produce an empty result, never an error
    - The legacy result is the concatenation of two streams, direct first,
      without deduplication unless the caller explicitly asks for it
    - The default membership check is repeated once per default endpoint, so
      indirect event types appear once per default endpoint of the tenant

How to change safely:
    - The duplicated indirect entries are observable output; changing the
      default of ``deduplicate`` is a behavior change for API clients
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from ..models import EventType
from ..store import AssociationStore
from .defaults import DefaultEndpointRegistry

logger = logging.getLogger(__name__)


class ImpactResolver:
    """Computes the event types affected by an endpoint or behavior group removal."""

    def __init__(
        self,
        store: AssociationStore,
        defaults: DefaultEndpointRegistry | None = None,
    ) -> None:
        self.store = store
        self.defaults = defaults or DefaultEndpointRegistry(store)

    async def affected_by_behavior_group_removal(
        self,
        tenant_id: str,
        behavior_group_id: str,
        timeout: float | None = None,
    ) -> list[EventType]:
        return await self.store.event_types_linked_to_behavior_group(
            tenant_id, behavior_group_id, timeout=timeout
        )

    async def affected_by_endpoint_removal(
        self,
        tenant_id: str,
        endpoint_id: str,
        deduplicate: bool = False,
        timeout: float | None = None,
    ) -> list[EventType]:
        """Event types affected by removing an endpoint, legacy link model.

        Args:
            tenant_id: Tenant identifier
            endpoint_id: Endpoint about to be removed
            deduplicate: Keep only the first occurrence of each event type

        Returns:
            Direct event types followed by indirect ones, duplicates included
            unless ``deduplicate`` is set
        """
        affected: list[EventType] = []
        async for event_type in self._direct(tenant_id, endpoint_id, timeout):
            affected.append(event_type)
        async for event_type in self._indirect(tenant_id, endpoint_id, timeout):
            affected.append(event_type)

        if deduplicate:
            unique: dict[str, EventType] = {}
            for event_type in affected:
                unique.setdefault(event_type.id, event_type)
            affected = list(unique.values())

        logger.debug(
            "Resolved event types affected by endpoint removal",
            extra={
                "tenant_id": tenant_id,
                "endpoint_id": endpoint_id,
                "affected": len(affected),
                "deduplicated": deduplicate,
            },
        )
        return affected

    async def affected_by_endpoint_removal_through_behavior_groups(
        self,
        tenant_id: str,
        endpoint_id: str,
        timeout: float | None = None,
    ) -> list[EventType]:
        """Event types affected by removing an endpoint, behavior group model."""
        return await self.store.event_types_linked_through_actions(
            tenant_id, endpoint_id, timeout=timeout
        )

    async def _direct(
        self,
        tenant_id: str,
        endpoint_id: str,
        timeout: float | None,
    ) -> AsyncIterator[EventType]:
        for event_type in await self.store.event_types_linked_to_endpoint(
            tenant_id, endpoint_id, timeout=timeout
        ):
            yield event_type

    async def _indirect(
        self,
        tenant_id: str,
        endpoint_id: str,
        timeout: float | None,
    ) -> AsyncIterator[EventType]:
        for default_endpoint in await self.defaults.list_defaults(tenant_id, timeout=timeout):
            if not await self.defaults.is_default(tenant_id, endpoint_id, timeout=timeout):
                continue
            for event_type in await self.store.event_types_linked_to_endpoint(
                tenant_id, default_endpoint.id, timeout=timeout
            ):
                yield event_type
