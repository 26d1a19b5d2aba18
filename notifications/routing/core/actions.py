"""
Behavior group action lists and legacy event type links.

The action list of a behavior group is the ordered set of endpoints notified
when one of the group's event types fires. It is only ever rewritten as a
whole: the caller sends the complete new list and the store swaps it in a
single transaction. There is no in-place diffing.

Invariants:
    - Input is validated before any storage call
    - An endpoint appears at most once per behavior group
    - Positions are dense 0..n-1 after a successful replace
    - A failed replace leaves the previous list untouched

How to change safely:
    - Keep validation ahead of storage; malformed payloads must not reach SQLite
    - Do not collapse duplicates silently; callers rely on the rejection
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ..errors import ValidationError
from ..models import BehaviorGroupAction, Endpoint
from ..store import AssociationStore

logger = logging.getLogger(__name__)


def validate_endpoint_ids(endpoint_ids: Sequence[str | None]) -> list[str]:
    """Check an action list payload.

    Args:
        endpoint_ids: Endpoint identifiers in delivery order

    Returns:
        The identifiers as a list of strings

    Raises:
        ValidationError: If an identifier is empty or appears more than once
    """
    if isinstance(endpoint_ids, str):
        raise ValidationError(
            "The endpoints identifiers must be a list", field_name="endpoint_ids"
        )

    ids: list[str] = []
    seen: set[str] = set()
    duplicates: list[str] = []

    for endpoint_id in endpoint_ids:
        if endpoint_id is None or not str(endpoint_id).strip():
            raise ValidationError(
                "The endpoints identifiers list should not contain empty values",
                field_name="endpoint_ids",
            )
        endpoint_id = str(endpoint_id)
        if endpoint_id in seen:
            duplicates.append(endpoint_id)
        seen.add(endpoint_id)
        ids.append(endpoint_id)

    if duplicates:
        raise ValidationError(
            "The endpoints identifiers list should not contain duplicates",
            field_name="endpoint_ids",
            errors=duplicates,
        )

    return ids


class ActionListManager:
    """Owns the ordered action lists of behavior groups.

    Also carries the legacy event type <-> endpoint link toggles, which are
    plain set membership with no ordering.

    Example:
        >>> manager = ActionListManager(store)
        >>> await manager.replace_actions("acct_1", group.id, [webhook.id, email.id])
        True
    """

    def __init__(self, store: AssociationStore) -> None:
        self.store = store

    async def replace_actions(
        self,
        tenant_id: str,
        behavior_group_id: str,
        endpoint_ids: Sequence[str | None],
        timeout: float | None = None,
    ) -> bool:
        """Replace the whole action list of a behavior group.

        Args:
            tenant_id: Tenant identifier
            behavior_group_id: Behavior group identifier
            endpoint_ids: Endpoint identifiers in delivery order

        Returns:
            True if the list was replaced, False if the behavior group does not
            exist in the tenant

        Raises:
            ValidationError: Empty or duplicate identifiers, or an endpoint
                outside the tenant
            StorageError: Persistence failure (previous list intact)
        """
        ids = validate_endpoint_ids(endpoint_ids)
        updated = await self.store.replace_behavior_group_actions(
            tenant_id, behavior_group_id, ids, timeout=timeout
        )
        if not updated:
            logger.info(
                "Behavior group not found, actions not replaced",
                extra={"tenant_id": tenant_id, "behavior_group_id": behavior_group_id},
            )
        return updated

    async def get_actions(
        self,
        tenant_id: str,
        behavior_group_id: str,
        timeout: float | None = None,
    ) -> list[BehaviorGroupAction]:
        return await self.store.get_behavior_group_actions(
            tenant_id, behavior_group_id, timeout=timeout
        )

    async def link_event(
        self,
        tenant_id: str,
        endpoint_id: str,
        event_type_id: str,
        timeout: float | None = None,
    ) -> bool:
        """Link an endpoint to an event type (legacy model).

        Returns:
            False if the endpoint is not in the tenant or the event type is unknown
        """
        linked = await self.store.link_event_type_endpoint(
            tenant_id, endpoint_id, event_type_id, timeout=timeout
        )
        logger.debug(
            "Linked endpoint to event type",
            extra={
                "tenant_id": tenant_id,
                "endpoint_id": endpoint_id,
                "event_type_id": event_type_id,
                "linked": linked,
            },
        )
        return linked

    async def unlink_event(
        self,
        tenant_id: str,
        endpoint_id: str,
        event_type_id: str,
        timeout: float | None = None,
    ) -> bool:
        """Unlink an endpoint from an event type (legacy model).

        Returns:
            True if a link existed
        """
        return await self.store.unlink_event_type_endpoint(
            tenant_id, endpoint_id, event_type_id, timeout=timeout
        )

    async def linked_endpoints(
        self,
        tenant_id: str,
        event_type_id: str,
        limit: int = 100,
        offset: int = 0,
        timeout: float | None = None,
    ) -> list[Endpoint]:
        """Endpoints linked to an event type through the legacy link table."""
        return await self.store.endpoints_linked_to_event_type(
            tenant_id, event_type_id, limit=limit, offset=offset, timeout=timeout
        )
