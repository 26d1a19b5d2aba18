"""
Event type muting.

Muting an event type silences it by dropping every link between the event
type and the tenant's behavior groups in one statement. Behavior groups,
endpoints, legacy links and default memberships are left alone.
"""

from __future__ import annotations

import logging

from ..store import AssociationStore

logger = logging.getLogger(__name__)


class MuteController:
    """Removes all behavior group associations of an event type."""

    def __init__(self, store: AssociationStore) -> None:
        self.store = store

    async def mute(self, tenant_id: str, event_type_id: str, timeout: float | None = None) -> bool:
        """Mute an event type for one tenant.

        Returns:
            True if at least one behavior group was linked before the call
        """
        muted = await self.store.delete_event_type_behavior_group_links(
            tenant_id, event_type_id, timeout=timeout
        )
        logger.debug(
            "Muted event type",
            extra={"tenant_id": tenant_id, "event_type_id": event_type_id, "had_links": muted},
        )
        return muted
