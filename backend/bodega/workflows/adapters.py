"""Bodega WMS - Database-backed implementations of the workflow ports."""
from sqlalchemy.ext.asyncio import AsyncSession

from bodega.models.dispatch import AssignmentStatus
from bodega.schemas.dispatch import DispatchLogCreate, DispatchLogResponse
from bodega.schemas.inventory import InventoryUnitCreate
from bodega.schemas.workflow import ContainerOption, CreatedUnit, LocationOption
from bodega.services.dispatch_service import DispatchService
from bodega.services.inventory_service import InventoryService
from bodega.services.item_location_service import ItemLocationService
from bodega.services.location_service import LocationService, render_location_path


class SqlDispatchStore:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_containers(self) -> list[ContainerOption]:
        return [ContainerOption(id=c.id, name=c.name) for c in await DispatchService.list_containers(self.db)]

    async def get_next_document_in_container(self, container_id: int, current_document_id: str) -> str | None:
        return await DispatchService.get_next_document_in_container(self.db, container_id, current_document_id)

    async def move_assignment_to_container(self, document_id: str, target_container_id: int) -> None:
        await DispatchService.move_assignment_to_container(self.db, document_id, target_container_id)

    async def update_assignment_status(self, document_id: str, status: AssignmentStatus) -> None:
        await DispatchService.update_assignment_status(self.db, document_id, status)

    async def log_dispatch(self, log: DispatchLogCreate) -> dict:
        entry = await DispatchService.log_dispatch(self.db, log)
        return DispatchLogResponse.model_validate(entry).model_dump(mode="json")


class SqlLocationDirectory:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_suggested_locations(self, product_id: str) -> list[LocationOption]:
        assignments = await ItemLocationService.get_item_locations(self.db, product_id)
        if not assignments:
            return []
        locations = await LocationService.get_locations(self.db)
        by_id = {loc.id: loc for loc in locations}
        options: list[LocationOption] = []
        for location_id in dict.fromkeys(a.location_id for a in assignments):
            loc = by_id.get(location_id)
            if loc is not None:
                options.append(
                    LocationOption(id=loc.id, code=loc.code, path=render_location_path(loc.id, locations))
                )
        return options

    async def get_location(self, location_id: int) -> LocationOption | None:
        locations = await LocationService.get_locations(self.db)
        loc = next((l for l in locations if l.id == location_id), None)
        if loc is None:
            return None
        return LocationOption(id=loc.id, code=loc.code, path=render_location_path(loc.id, locations))

    async def get_location_path(self, location_id: int | None) -> str:
        return render_location_path(location_id, await LocationService.get_locations(self.db))


class SqlUnitRegistry:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_inventory_unit(self, unit: InventoryUnitCreate, created_by: str) -> CreatedUnit:
        return CreatedUnit.model_validate(await InventoryService.add_inventory_unit(self.db, unit, created_by))

    async def assign_item_to_location(
        self, item_id: str, location_id: int, client_id: str | None, updated_by: str
    ) -> None:
        await ItemLocationService.assign_item_to_location(self.db, item_id, location_id, client_id, updated_by)
