"""
Domain types for notification routing.

Catalog types (Bundle, Application, EventType) are global and read-only here.
Everything else is owned by exactly one tenant (account).

Invariants:
    - Endpoint properties are only populated when explicitly loaded
    - BehaviorGroup.actions is ordered by position, dense from 0
    - Identifiers are UUID strings
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class EndpointType(Enum):
    """Endpoint variants."""

    WEBHOOK = "webhook"
    EMAIL_SUBSCRIPTION = "email_subscription"
    DEFAULT = "default"
    CAMEL = "camel"

    @classmethod
    def from_str(cls, value: str) -> EndpointType:
        """Convert string representation to EndpointType.

        Raises:
            ValueError: If value is not a valid endpoint type
        """
        for kind in cls:
            if kind.value == value.lower():
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid endpoint type '{value}'. Valid types: {valid}")


@dataclass(frozen=True)
class Bundle:
    id: str
    name: str
    display_name: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "display_name": self.display_name}


@dataclass(frozen=True)
class Application:
    id: str
    bundle_id: str
    name: str
    display_name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "bundle_id": self.bundle_id,
            "name": self.name,
            "display_name": self.display_name,
        }


@dataclass(frozen=True)
class EventType:
    """An event type and the application it belongs to.

    Attributes:
        id: Event type identifier
        name: Machine name, unique within the application
        display_name: Human readable name
        application: Owning application
        description: Optional description
    """

    id: str
    name: str
    display_name: str
    application: Application
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "application_id": self.application.id,
            "application": self.application.to_dict(),
        }


@dataclass
class Endpoint:
    """A notification channel owned by a tenant.

    Attributes:
        id: Endpoint identifier
        account_id: Owning tenant
        name: Endpoint name
        type: Endpoint variant
        enabled: Whether the endpoint receives notifications
        description: Optional description
        created: Creation timestamp (Unix ms)
        properties: Type specific payload, None until loaded
    """

    id: str
    account_id: str
    name: str
    type: EndpointType
    enabled: bool = True
    description: str | None = None
    created: int | None = None
    properties: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "enabled": self.enabled,
            "created": self.created,
        }
        if self.properties is not None:
            data["properties"] = self.properties
        return data


@dataclass
class BehaviorGroupAction:
    """One delivery target of a behavior group."""

    behavior_group_id: str
    endpoint: Endpoint
    position: int
    created: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "behavior_group_id": self.behavior_group_id,
            "endpoint": self.endpoint.to_dict(),
            "position": self.position,
            "created": self.created,
        }


@dataclass
class BehaviorGroup:
    """A named, ordered list of actions that can be linked to event types."""

    id: str
    account_id: str
    bundle_id: str
    display_name: str
    created: int | None = None
    actions: list[BehaviorGroupAction] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "bundle_id": self.bundle_id,
            "display_name": self.display_name,
            "created": self.created,
        }
        if self.actions is not None:
            data["actions"] = [action.to_dict() for action in self.actions]
        return data


@dataclass(frozen=True)
class Facet:
    """Thin (id, name, display name) triple used to build UI filters."""

    id: str
    name: str
    display_name: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "displayName": self.display_name}

