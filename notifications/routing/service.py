"""
Notification service facade.

Wires the routing components around one AssociationStore. The HTTP gateway
only talks to this class, so every boundary operation has a single entry
point that receives the tenant explicitly.

Invariants:
    - All components share the same store instance
    - The facade adds no state of its own
"""

from __future__ import annotations

import logging
from typing import Any

from .config import StorageConfig
from .core import (
    ActionListManager,
    BehaviorGroupService,
    CatalogQueries,
    DefaultEndpointRegistry,
    ImpactResolver,
    MuteController,
)
from .errors import StorageError
from .store import AssociationStore

logger = logging.getLogger(__name__)


class NotificationService:
    """Entry point for notification routing operations.

    Attributes:
        store: Shared association store
        defaults: Legacy default endpoint registry
        actions: Behavior group action lists and legacy links
        impact: Removal impact resolver
        mute: Event type muting
        behavior_groups: Behavior group lifecycle
        catalog: Read-only catalog lookups

    Example:
        >>> service = NotificationService.from_config(StorageConfig.from_env())
        >>> await service.start()
        >>> await service.impact.affected_by_endpoint_removal("acct_1", endpoint_id)
    """

    def __init__(self, store: AssociationStore) -> None:
        self.store = store
        self.defaults = DefaultEndpointRegistry(store)
        self.actions = ActionListManager(store)
        self.impact = ImpactResolver(store, self.defaults)
        self.mute = MuteController(store)
        self.behavior_groups = BehaviorGroupService(store)
        self.catalog = CatalogQueries(store)

    @classmethod
    def from_config(cls, config: StorageConfig) -> NotificationService:
        store = AssociationStore(
            data_dir=config.data_dir,
            db_name=config.db_name,
            wal_mode=config.wal_mode,
            busy_timeout_ms=config.busy_timeout_ms,
            operation_timeout=config.operation_timeout,
        )
        return cls(store)

    async def start(self) -> None:
        """Create the schema if needed."""
        await self.store.initialize()
        logger.info("Notification service started", extra={"db_path": str(self.store.db_path)})

    async def health(self, timeout: float = 2.0) -> dict[str, Any]:
        """Check that the database answers within ``timeout`` seconds."""
        try:
            bundles = await self.store.get_bundles(timeout=timeout)
        except StorageError as e:
            logger.warning(f"Health check failed: {e}")
            return {"healthy": False, "error": e.message, "error_code": e.code}
        return {"healthy": True, "bundles": len(bundles)}
