"""
Routing core - association and impact resolution engine.

This module handles:
- Legacy default endpoint membership (DefaultEndpointRegistry)
- Ordered behavior group action lists and legacy links (ActionListManager)
- Removal impact computation across both link models (ImpactResolver)
- Event type muting (MuteController)
- Behavior group lifecycle and catalog lookups

Invariants:
    - Components hold no state between calls besides their store
    - The tenant is always an explicit argument
    - Storage failures are propagated unchanged; nothing is retried here
"""

from .actions import ActionListManager, validate_endpoint_ids
from .behavior_groups import BehaviorGroupService
from .catalog import CatalogQueries
from .defaults import DefaultEndpointRegistry
from .impact import ImpactResolver
from .mute import MuteController

__all__ = [
    "ActionListManager",
    "BehaviorGroupService",
    "CatalogQueries",
    "DefaultEndpointRegistry",
    "ImpactResolver",
    "MuteController",
    "validate_endpoint_ids",
]
