"""
Legacy default endpoint registry.

Default endpoints are the fallback channels of the pre behavior group model:
they receive every event type that is not otherwise configured. Membership is
a plain per-tenant set, independent of behavior group membership.

Invariants:
    - add() and remove() are idempotent
    - An endpoint can only join the default set of its own tenant
"""

from __future__ import annotations

import logging

from ..models import Endpoint
from ..store import AssociationStore

logger = logging.getLogger(__name__)


class DefaultEndpointRegistry:
    """Per-tenant set of default endpoints."""

    def __init__(self, store: AssociationStore) -> None:
        self.store = store

    async def list_defaults(self, tenant_id: str, timeout: float | None = None) -> list[Endpoint]:
        """Members of the tenant's default set, in the order they were added."""
        return await self.store.list_default_endpoints(tenant_id, timeout=timeout)

    async def is_default(
        self,
        tenant_id: str,
        endpoint_id: str,
        timeout: float | None = None,
    ) -> bool:
        return await self.store.is_default_member(tenant_id, endpoint_id, timeout=timeout)

    async def add(self, tenant_id: str, endpoint_id: str, timeout: float | None = None) -> bool:
        """Add an endpoint to the default set.

        Returns:
            True if the endpoint is a member afterwards (already present included),
            False if the endpoint does not exist in the tenant
        """
        added = await self.store.add_default_member(tenant_id, endpoint_id, timeout=timeout)
        if not added:
            logger.debug(
                "Endpoint not found, default set unchanged",
                extra={"tenant_id": tenant_id, "endpoint_id": endpoint_id},
            )
        return added

    async def remove(self, tenant_id: str, endpoint_id: str, timeout: float | None = None) -> None:
        """Remove an endpoint from the default set. Removing a non-member is a no-op."""
        removed = await self.store.remove_default_member(tenant_id, endpoint_id, timeout=timeout)
        logger.debug(
            "Removed endpoint from defaults",
            extra={"tenant_id": tenant_id, "endpoint_id": endpoint_id, "was_member": removed},
        )
