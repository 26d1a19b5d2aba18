"""
Notification routing server - behavior groups, default endpoints and impact resolution.

This package implements the association engine that sits between organizational
events and the notification channels ("endpoints") that receive them:
- Behavior groups: ordered lists of endpoint actions linked to event types
- Legacy default endpoints: fallback channels for unconfigured event types
- Legacy event type -> endpoint links, kept alive during the migration
- Impact resolution for removal confirmation screens

Architecture:
    ┌─────────────┐     ┌─────────────────┐     ┌──────────────────────┐
    │   Gateway   │────▶│ NotificationSvc │────▶│ ImpactResolver       │
    │  (FastAPI)  │     │    (facade)     │     │ ActionListManager    │
    └─────────────┘     └─────────────────┘     │ DefaultEndpointReg.  │
                                                │ MuteController       │
                                                └──────────┬───────────┘
                                                           │
                                                           ▼
                                                ┌──────────────────────┐
                                                │  AssociationStore    │
                                                │      (SQLite)        │
                                                └──────────────────────┘

Invariants:
    - Every operation takes the tenant (account id) as an explicit parameter
    - No query ever returns rows belonging to another tenant
    - Multi-row writes are all-or-nothing
    - Legacy and behavior-group link tables stay independent

How to change safely:
    - New link models get their own table; do not merge into existing ones
    - Keep the legacy impact resolution output stable (duplicates included)
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
