"""
Behavior group lifecycle and event type linking.

Action lists are not edited here; see ActionListManager.
"""

from __future__ import annotations

import logging

from ..errors import ValidationError
from ..models import BehaviorGroup, Endpoint
from ..store import AssociationStore

logger = logging.getLogger(__name__)


def _clean_display_name(display_name: str | None) -> str:
    if display_name is None or not display_name.strip():
        raise ValidationError(
            "The behavior group display name must not be blank", field_name="display_name"
        )
    return display_name.strip()


class BehaviorGroupService:
    """Create, rename, delete and look up behavior groups."""

    def __init__(self, store: AssociationStore) -> None:
        self.store = store

    async def create(
        self,
        tenant_id: str,
        bundle_id: str,
        display_name: str | None,
        timeout: float | None = None,
    ) -> BehaviorGroup:
        """Create an empty behavior group in a bundle.

        Raises:
            ValidationError: If the display name is blank
            NotFoundError: If the bundle does not exist
        """
        group = await self.store.create_behavior_group(
            tenant_id, bundle_id, _clean_display_name(display_name), timeout=timeout
        )
        logger.info(
            "Created behavior group",
            extra={"tenant_id": tenant_id, "behavior_group_id": group.id, "bundle_id": bundle_id},
        )
        return group

    async def update(
        self,
        tenant_id: str,
        behavior_group_id: str,
        display_name: str | None,
        timeout: float | None = None,
    ) -> bool:
        return await self.store.update_behavior_group(
            tenant_id, behavior_group_id, _clean_display_name(display_name), timeout=timeout
        )

    async def delete(
        self,
        tenant_id: str,
        behavior_group_id: str,
        timeout: float | None = None,
    ) -> bool:
        deleted = await self.store.delete_behavior_group(
            tenant_id, behavior_group_id, timeout=timeout
        )
        if deleted:
            logger.info(
                "Deleted behavior group",
                extra={"tenant_id": tenant_id, "behavior_group_id": behavior_group_id},
            )
        return deleted

    async def find_by_bundle(
        self,
        tenant_id: str,
        bundle_id: str,
        timeout: float | None = None,
    ) -> list[BehaviorGroup]:
        """Behavior groups of a bundle with actions and endpoint properties loaded."""
        groups = await self.store.find_behavior_groups_by_bundle(
            tenant_id, bundle_id, timeout=timeout
        )
        endpoints: list[Endpoint] = [
            action.endpoint for group in groups for action in (group.actions or [])
        ]
        await self.store.load_endpoint_properties(endpoints, timeout=timeout)
        return groups

    async def find_by_event_type(
        self,
        tenant_id: str,
        event_type_id: str,
        limit: int = 100,
        offset: int = 0,
        timeout: float | None = None,
    ) -> list[BehaviorGroup]:
        return await self.store.find_behavior_groups_by_event_type(
            tenant_id, event_type_id, limit=limit, offset=offset, timeout=timeout
        )

    async def link_event_type(
        self,
        tenant_id: str,
        event_type_id: str,
        behavior_group_id: str,
        timeout: float | None = None,
    ) -> bool:
        return await self.store.link_event_type_behavior_group(
            tenant_id, event_type_id, behavior_group_id, timeout=timeout
        )

    async def unlink_event_type(
        self,
        tenant_id: str,
        event_type_id: str,
        behavior_group_id: str,
        timeout: float | None = None,
    ) -> bool:
        return await self.store.unlink_event_type_behavior_group(
            tenant_id, event_type_id, behavior_group_id, timeout=timeout
        )
