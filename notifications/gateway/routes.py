"""
API routes for the notifications gateway.

Maps the notifications REST surface onto NotificationService. Handlers do
no business logic: they extract the tenant, call one facade operation and
serialize the result. Routing errors are turned into HTTP responses by the
exception handlers registered in app.py.

Invariants:
    - Every route requires the tenant header
    - Absence is reported the way the core reports it (empty list, False, 404
      only for action replacement)
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request, Response
from pydantic import BaseModel, Field

from notifications.routing.errors import ValidationError
from notifications.routing.service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


# --- Request Models ---


class BehaviorGroupCreateRequest(BaseModel):
    """Request to create a behavior group."""

    bundle_id: str = Field(..., alias="bundleId", description="Owning bundle ID")
    display_name: str | None = Field(None, alias="displayName", description="Display name")

    model_config = {"populate_by_name": True}


class BehaviorGroupUpdateRequest(BaseModel):
    """Request to rename a behavior group."""

    display_name: str | None = Field(None, alias="displayName", description="New display name")

    model_config = {"populate_by_name": True}


# --- Dependencies ---


def get_service(request: Request) -> NotificationService:
    """Get notification service from app state."""
    return request.app.state.service


def get_tenant_id(request: Request) -> str:
    """Get tenant ID from the tenant header."""
    header = request.app.state.settings.tenant_header
    tenant = request.headers.get(header)
    if not tenant or not tenant.strip():
        raise ValidationError(f"{header} header is required", field_name=header)
    return tenant.strip()


def get_page(
    request: Request,
    offset: int = Query(0, ge=0, description="Pagination offset"),
    limit: int | None = Query(None, ge=1, description="Page size"),
) -> tuple[int, int]:
    """Get offset and limit, applying the configured default and maximum page size."""
    settings = request.app.state.settings
    if limit is None:
        limit = settings.default_page_size
    return offset, min(limit, settings.max_page_size)


def _dump(items: list[Any]) -> list[dict[str, Any]]:
    return [item.to_dict() for item in items]


# --- Event Types ---


@router.get("/eventTypes")
async def get_event_types(
    application_ids: list[str] | None = Query(None, alias="applicationIds"),
    bundle_id: str | None = Query(None, alias="bundleId"),
    page: tuple[int, int] = Depends(get_page),
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Retrieve all event types, optionally filtered by bundle or applications."""
    offset, limit = page
    event_types = await service.catalog.event_types(
        application_ids=application_ids, bundle_id=bundle_id, limit=limit, offset=offset
    )
    return _dump(event_types)


@router.get("/eventTypes/affectedByRemovalOfEndpoint/{endpoint_id}")
async def get_event_types_affected_by_endpoint(
    endpoint_id: str,
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """
    Event types affected by removing an endpoint (legacy links).

    Direct links come first, followed by the event types of the default
    endpoints when the endpoint is a default member. Duplicates are kept.
    """
    return _dump(await service.impact.affected_by_endpoint_removal(tenant_id, endpoint_id))


@router.get("/bg/eventTypes/affectedByRemovalOfEndpoint/{endpoint_id}")
async def get_event_types_affected_by_endpoint_through_behavior_groups(
    endpoint_id: str,
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Event types affected by removing an endpoint (behavior group actions)."""
    event_types = await service.impact.affected_by_endpoint_removal_through_behavior_groups(
        tenant_id, endpoint_id
    )
    return _dump(event_types)


@router.get("/eventTypes/affectedByRemovalOfBehaviorGroup/{behavior_group_id}")
async def get_event_types_affected_by_behavior_group(
    behavior_group_id: str,
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Event types linked to a behavior group about to be removed."""
    event_types = await service.impact.affected_by_behavior_group_removal(
        tenant_id, behavior_group_id
    )
    return _dump(event_types)


# Registered before the legacy unlink route, so an endpoint id of "mute" cannot be unlinked
@router.delete("/eventTypes/{event_type_id}/mute")
async def mute_event_type(
    event_type_id: str,
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
) -> bool:
    """Remove every behavior group from an event type."""
    return await service.mute.mute(tenant_id, event_type_id)


@router.get("/eventTypes/{event_type_id}/behaviorGroups")
async def get_linked_behavior_groups(
    event_type_id: str,
    page: tuple[int, int] = Depends(get_page),
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Behavior groups linked to an event type."""
    offset, limit = page
    groups = await service.behavior_groups.find_by_event_type(
        tenant_id, event_type_id, limit=limit, offset=offset
    )
    return _dump(groups)


@router.put("/eventTypes/{event_type_id}/behaviorGroups/{behavior_group_id}")
async def link_behavior_group_to_event_type(
    event_type_id: str,
    behavior_group_id: str,
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Link a behavior group to an event type."""
    await service.behavior_groups.link_event_type(tenant_id, event_type_id, behavior_group_id)
    return Response(status_code=200)


@router.delete("/eventTypes/{event_type_id}/behaviorGroups/{behavior_group_id}", status_code=204)
async def unlink_behavior_group_from_event_type(
    event_type_id: str,
    behavior_group_id: str,
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Remove a behavior group from an event type."""
    await service.behavior_groups.unlink_event_type(tenant_id, event_type_id, behavior_group_id)
    return Response(status_code=204)


@router.put("/eventTypes/{event_type_id}/{endpoint_id}")
async def link_endpoint_to_event_type(
    event_type_id: str,
    endpoint_id: str,
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Link an endpoint to an event type (legacy)."""
    await service.actions.link_event(tenant_id, endpoint_id, event_type_id)
    return Response(status_code=200)


# Shadowed by the mute route for the literal segment "mute"
@router.delete("/eventTypes/{event_type_id}/{endpoint_id}", status_code=204)
async def unlink_endpoint_from_event_type(
    event_type_id: str,
    endpoint_id: str,
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Remove an endpoint from an event type (legacy)."""
    await service.actions.unlink_event(tenant_id, endpoint_id, event_type_id)
    return Response(status_code=204)


@router.get("/eventTypes/{event_type_id}")
async def get_linked_endpoints(
    event_type_id: str,
    page: tuple[int, int] = Depends(get_page),
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Endpoints linked to an event type (legacy)."""
    offset, limit = page
    endpoints = await service.actions.linked_endpoints(
        tenant_id, event_type_id, limit=limit, offset=offset
    )
    return _dump(endpoints)


# --- Default Endpoints ---


@router.get("/defaults")
async def get_default_endpoints(
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Endpoints of the tenant's default set."""
    return _dump(await service.defaults.list_defaults(tenant_id))


@router.put("/defaults/{endpoint_id}")
async def add_endpoint_to_defaults(
    endpoint_id: str,
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Add an endpoint to the default set."""
    await service.defaults.add(tenant_id, endpoint_id)
    return Response(status_code=200)


@router.delete("/defaults/{endpoint_id}", status_code=204)
async def delete_endpoint_from_defaults(
    endpoint_id: str,
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Remove an endpoint from the default set."""
    await service.defaults.remove(tenant_id, endpoint_id)
    return Response(status_code=204)


# --- Facets ---


@router.get("/facets/applications")
async def get_application_facets(
    bundle_name: str | None = Query(None, alias="bundleName"),
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Applications as facets, optionally restricted to one bundle."""
    return _dump(await service.catalog.application_facets(bundle_name))


@router.get("/facets/bundles")
async def get_bundle_facets(
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Bundles as facets."""
    return _dump(await service.catalog.bundle_facets())


# --- Behavior Groups ---


@router.post("/behaviorGroups")
async def create_behavior_group(
    request: BehaviorGroupCreateRequest,
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Create an empty behavior group."""
    group = await service.behavior_groups.create(
        tenant_id, request.bundle_id, request.display_name
    )
    return group.to_dict()


@router.put("/behaviorGroups/{behavior_group_id}/actions")
async def update_behavior_group_actions(
    behavior_group_id: str,
    endpoint_ids: list[str | None] = Body(...),
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """
    Replace the whole action list of a behavior group.

    The body is the ordered list of endpoint IDs. Returns 404 when the
    behavior group does not exist, 400 on empty or duplicate IDs.
    """
    updated = await service.actions.replace_actions(tenant_id, behavior_group_id, endpoint_ids)
    if not updated:
        return Response(status_code=404)
    return Response(status_code=200)


@router.put("/behaviorGroups/{behavior_group_id}")
async def update_behavior_group(
    behavior_group_id: str,
    request: BehaviorGroupUpdateRequest,
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
) -> bool:
    """Rename a behavior group."""
    return await service.behavior_groups.update(
        tenant_id, behavior_group_id, request.display_name
    )


@router.delete("/behaviorGroups/{behavior_group_id}")
async def delete_behavior_group(
    behavior_group_id: str,
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
) -> bool:
    """Delete a behavior group with its actions and event type links."""
    return await service.behavior_groups.delete(tenant_id, behavior_group_id)


@router.get("/bundles/{bundle_id}/behaviorGroups")
async def find_behavior_groups_by_bundle(
    bundle_id: str,
    service: NotificationService = Depends(get_service),
    tenant_id: str = Depends(get_tenant_id),
):
    """Behavior groups of a bundle, with their actions and endpoint properties."""
    return _dump(await service.behavior_groups.find_by_bundle(tenant_id, bundle_id))
