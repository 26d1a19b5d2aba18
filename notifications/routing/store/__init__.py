"""
Persistence for notification routing.

The association store is the only component that touches SQLite. The routing
core talks to it through async methods that take the tenant as their first
argument and accept an optional per-call timeout.
"""

from .association_store import AssociationStore

__all__ = ["AssociationStore"]
