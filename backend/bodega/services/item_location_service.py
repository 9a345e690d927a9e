"""Bodega WMS - ItemLocationService: default/suggested placements per product."""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bodega.core.exceptions import NotFoundError
from bodega.db.base import utcnow
from bodega.models.location import ItemLocation
from bodega.services.location_service import LocationService

logger = logging.getLogger(__name__)


class ItemLocationService:

    @staticmethod
    async def get_item_locations(db: AsyncSession, item_id: str) -> list[ItemLocation]:
        result = await db.execute(
            select(ItemLocation).where(ItemLocation.item_id == item_id).order_by(ItemLocation.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_all_item_locations(db: AsyncSession) -> list[ItemLocation]:
        result = await db.execute(select(ItemLocation).order_by(ItemLocation.item_id, ItemLocation.id))
        return list(result.scalars().all())

    @staticmethod
    async def assign_item_to_location(
        db: AsyncSession,
        item_id: str,
        location_id: int,
        client_id: str | None,
        updated_by: str,
    ) -> ItemLocation:
        """Upsert on (item_id, location_id, client_id); an existing row only gets its audit fields refreshed."""
        await LocationService.get_location(db, location_id)

        q = select(ItemLocation).where(
            ItemLocation.item_id == item_id,
            ItemLocation.location_id == location_id,
        )
        # NULL client ids never collide in a UNIQUE index, so match them explicitly
        if client_id is None:
            q = q.where(ItemLocation.client_id.is_(None))
        else:
            q = q.where(ItemLocation.client_id == client_id)
        existing = (await db.execute(q)).scalar_one_or_none()

        if existing is not None:
            existing.updated_by = updated_by
            existing.updated_at = utcnow()
            await db.flush()
            return existing

        assignment = ItemLocation(
            item_id=item_id,
            location_id=location_id,
            client_id=client_id,
            updated_by=updated_by,
            updated_at=utcnow(),
        )
        db.add(assignment)
        await db.flush()
        await db.refresh(assignment)
        logger.info("Item %s assigned to location %s (client=%s)", item_id, location_id, client_id)
        return assignment

    @staticmethod
    async def unassign_item_from_location(db: AsyncSession, id: int) -> None:
        assignment = await db.get(ItemLocation, id)
        if assignment is None:
            raise NotFoundError(f"Asignación {id} no encontrada.")
        await db.delete(assignment)
        await db.flush()
        logger.info("Item location mapping with ID %s was removed.", id)
