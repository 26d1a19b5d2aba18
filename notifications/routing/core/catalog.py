"""Read-only catalog lookups used to build UI filters."""

from __future__ import annotations

from collections.abc import Sequence

from ..models import EventType, Facet
from ..store import AssociationStore


class CatalogQueries:
    def __init__(self, store: AssociationStore) -> None:
        self.store = store

    async def event_types(
        self,
        application_ids: Sequence[str] | None = None,
        bundle_id: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[EventType]:
        return await self.store.get_event_types(
            application_ids=application_ids, bundle_id=bundle_id, limit=limit, offset=offset
        )

    async def application_facets(self, bundle_name: str | None = None) -> list[Facet]:
        applications = await self.store.get_applications(bundle_name=bundle_name)
        return [Facet(id=a.id, name=a.name, display_name=a.display_name) for a in applications]

    async def bundle_facets(self) -> list[Facet]:
        bundles = await self.store.get_bundles()
        return [Facet(id=b.id, name=b.name, display_name=b.display_name) for b in bundles]
