"""Bodega WMS - InventoryService: labeled inventory units, movements and simple-mode stock."""
import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bodega.core.exceptions import InventoryUnitNotFoundError, ValidationError
from bodega.db.base import utcnow
from bodega.models.inventory import InventoryLevel, InventoryUnit, Movement
from bodega.schemas.inventory import InventoryUnitCreate
from bodega.services.location_service import LocationService
from bodega.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

UNIT_NUMBER_WIDTH = 5


def format_unit_code(prefix: str, number: int) -> str:
    """U + 42 -> U00042. Numbers wider than the pad keep all their digits."""
    return f"{prefix}{number:0{UNIT_NUMBER_WIDTH}d}"


class InventoryService:
    """Inventory units get their code from the warehouse_config counter, inside the insert's transaction."""

    @staticmethod
    async def add_inventory_unit(db: AsyncSession, body: InventoryUnitCreate, created_by: str) -> InventoryUnit:
        if body.location_id is not None:
            await LocationService.get_location(db, body.location_id)
        if body.quantity <= 0:
            raise ValidationError("La cantidad debe ser mayor a cero.")

        # claim first: the UPDATE takes the write lock before anything else is read
        number = await SettingsService.claim_unit_number(db)
        prefix = (await SettingsService.get_settings(db)).unit_prefix

        unit = InventoryUnit(
            unit_code=format_unit_code(prefix, number),
            product_id=body.product_id,
            human_readable_id=body.human_readable_id or None,
            document_id=body.document_id or None,
            location_id=body.location_id,
            quantity=body.quantity,
            notes=body.notes,
            created_at=utcnow(),
            created_by=created_by,
        )
        db.add(unit)
        await db.flush()
        await db.refresh(unit)
        logger.info("Inventory unit %s created for product %s by %s", unit.unit_code, unit.product_id, created_by)
        return unit

    @staticmethod
    async def list_inventory_units(db: AsyncSession, limit: int = 100) -> list[InventoryUnit]:
        result = await db.execute(
            select(InventoryUnit).order_by(InventoryUnit.created_at.desc(), InventoryUnit.id.desc()).limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_inventory_unit_by_id(db: AsyncSession, query: str | int) -> InventoryUnit | None:
        """
        Look up a unit by code or numeric id.

        The query is upper-cased; when it starts with the configured prefix it is
        a unit code, otherwise it must be a plain integer id.
        """
        term = str(query).strip().upper()
        if not term:
            return None
        prefix = (await SettingsService.get_settings(db)).unit_prefix.upper()
        if term.startswith(prefix):
            result = await db.execute(select(InventoryUnit).where(func.upper(InventoryUnit.unit_code) == term))
            return result.scalar_one_or_none()
        if not term.isdigit():
            return None
        return await db.get(InventoryUnit, int(term))

    @staticmethod
    async def delete_inventory_unit(db: AsyncSession, id: int) -> None:
        unit = await db.get(InventoryUnit, id)
        if unit is None:
            raise InventoryUnitNotFoundError(f"Unidad {id} no encontrada.", unit_id=id)
        await db.delete(unit)
        await db.flush()
        logger.info("Inventory unit %s (%s) deleted", unit.unit_code, id)

    @staticmethod
    async def move_inventory_unit(
        db: AsyncSession,
        id: int,
        location_id: int,
        user_id: str,
        notes: str | None = None,
    ) -> InventoryUnit:
        """Relocate a unit and append a movement row."""
        unit = await db.get(InventoryUnit, id)
        if unit is None:
            raise InventoryUnitNotFoundError(f"Unidad {id} no encontrada.", unit_id=id)
        await LocationService.get_location(db, location_id)

        previous = unit.location_id
        unit.location_id = location_id
        await InventoryService.log_movement(
            db,
            item_id=unit.product_id,
            quantity=unit.quantity,
            from_location_id=previous,
            to_location_id=location_id,
            user_id=user_id,
            notes=notes or f"Unidad {unit.unit_code} reubicada.",
        )
        await db.refresh(unit)
        return unit

    @staticmethod
    async def log_movement(
        db: AsyncSession,
        item_id: str,
        quantity: Decimal,
        from_location_id: int | None,
        to_location_id: int | None,
        user_id: str,
        notes: str | None = None,
    ) -> Movement:
        movement = Movement(
            item_id=item_id,
            quantity=quantity,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            timestamp=utcnow(),
            user_id=user_id,
            notes=notes,
        )
        db.add(movement)
        await db.flush()
        return movement

    @staticmethod
    async def get_movements(db: AsyncSession, item_id: str | None = None) -> list[Movement]:
        q = select(Movement).order_by(Movement.timestamp.desc(), Movement.id.desc())
        if item_id:
            q = q.where(Movement.item_id == item_id)
        result = await db.execute(q)
        return list(result.scalars().all())

    # ── Simple-mode stock (quantity per item and location, no labels) ────────

    @staticmethod
    async def get_inventory_for_item(db: AsyncSession, item_id: str) -> list[InventoryLevel]:
        result = await db.execute(
            select(InventoryLevel).where(InventoryLevel.item_id == item_id).order_by(InventoryLevel.location_id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def update_inventory(
        db: AsyncSession,
        item_id: str,
        location_id: int,
        quantity: Decimal,
        updated_by: str,
    ) -> InventoryLevel:
        """Set (not add) the counted quantity of item_id at location_id."""
        if quantity < 0:
            raise ValidationError("La cantidad no puede ser negativa.")
        await LocationService.get_location(db, location_id)

        result = await db.execute(
            select(InventoryLevel).where(
                InventoryLevel.item_id == item_id,
                InventoryLevel.location_id == location_id,
            )
        )
        level = result.scalar_one_or_none()
        if level is None:
            level = InventoryLevel(item_id=item_id, location_id=location_id)
            db.add(level)
        level.quantity = quantity
        level.updated_by = updated_by
        level.last_updated = utcnow()
        await db.flush()
        await db.refresh(level)
        return level
