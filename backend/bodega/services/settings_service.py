"""Bodega WMS - Warehouse settings stored in the warehouse_config key/value table."""
import json
import logging

from sqlalchemy import Integer, Text, cast, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bodega.core.exceptions import ValidationError
from bodega.models.config import (
    CONFIG_DISPATCH_EMAILS,
    CONFIG_LOCATION_LEVELS,
    CONFIG_NEXT_UNIT_NUMBER,
    CONFIG_UNIT_PREFIX,
    WarehouseConfig,
)
from bodega.models.location import LocationType
from bodega.schemas.location import LocationLevel
from bodega.schemas.settings import WarehouseSettings, WarehouseSettingsUpdate

logger = logging.getLogger(__name__)

DEFAULT_UNIT_PREFIX = "U"

DEFAULT_LOCATION_LEVELS = [
    LocationLevel(type=LocationType.BUILDING, name="Edificio"),
    LocationLevel(type=LocationType.ZONE, name="Zona"),
    LocationLevel(type=LocationType.RACK, name="Rack"),
    LocationLevel(type=LocationType.SHELF, name="Estante"),
    LocationLevel(type=LocationType.BIN, name="Casilla"),
]


def _default_rows() -> dict[str, str]:
    return {
        CONFIG_UNIT_PREFIX: DEFAULT_UNIT_PREFIX,
        CONFIG_NEXT_UNIT_NUMBER: "1",
        CONFIG_LOCATION_LEVELS: json.dumps([lvl.model_dump(mode="json") for lvl in DEFAULT_LOCATION_LEVELS]),
        CONFIG_DISPATCH_EMAILS: "",
    }


class SettingsService:
    """Read/write warehouse configuration and hand out unit numbers."""

    @staticmethod
    async def seed_defaults(db: AsyncSession) -> None:
        """Insert any missing config key with its default value."""
        result = await db.execute(select(WarehouseConfig.key))
        existing = set(result.scalars().all())
        for key, value in _default_rows().items():
            if key not in existing:
                db.add(WarehouseConfig(key=key, value=value))
                logger.info("Seeded warehouse_config key %s", key)
        await db.flush()

    @staticmethod
    async def get_settings(db: AsyncSession) -> WarehouseSettings:
        # the counter is bumped by a bulk UPDATE, so identity-map rows may be stale
        result = await db.execute(select(WarehouseConfig).execution_options(populate_existing=True))
        rows = {row.key: row.value for row in result.scalars().all()}
        values = {**_default_rows(), **{k: v for k, v in rows.items() if v is not None}}

        try:
            levels = [LocationLevel.model_validate(lvl) for lvl in json.loads(values[CONFIG_LOCATION_LEVELS])]
        except (ValueError, TypeError):
            logger.warning("Invalid location_levels in warehouse_config, using defaults")
            levels = list(DEFAULT_LOCATION_LEVELS)

        try:
            next_number = int(values[CONFIG_NEXT_UNIT_NUMBER])
        except ValueError:
            next_number = 1

        return WarehouseSettings(
            unit_prefix=values[CONFIG_UNIT_PREFIX] or DEFAULT_UNIT_PREFIX,
            next_unit_number=next_number,
            location_levels=levels,
            dispatch_notification_emails=values[CONFIG_DISPATCH_EMAILS],
        )

    @staticmethod
    async def save_settings(db: AsyncSession, changes: WarehouseSettingsUpdate) -> WarehouseSettings:
        """Persist editable keys. The unit counter is never written from here."""
        updates: dict[str, str] = {}
        if changes.unit_prefix is not None:
            updates[CONFIG_UNIT_PREFIX] = changes.unit_prefix.strip().upper()
        if changes.location_levels is not None:
            if not changes.location_levels:
                raise ValidationError("Debe existir al menos un nivel de ubicación.")
            updates[CONFIG_LOCATION_LEVELS] = json.dumps(
                [lvl.model_dump(mode="json") for lvl in changes.location_levels]
            )
        if changes.dispatch_notification_emails is not None:
            updates[CONFIG_DISPATCH_EMAILS] = changes.dispatch_notification_emails

        for key, value in updates.items():
            row = await db.get(WarehouseConfig, key)
            if row is None:
                db.add(WarehouseConfig(key=key, value=value))
            else:
                row.value = value
        await db.flush()
        logger.info("Warehouse settings updated: %s", ", ".join(sorted(updates)) or "nothing")
        return await SettingsService.get_settings(db)

    @staticmethod
    async def claim_unit_number(db: AsyncSession) -> int:
        """
        Atomically take the next unit number.

        A single UPDATE ... RETURNING increments the counter, so two sessions can
        never read the same value: the second one blocks on the row (PostgreSQL)
        or the database write lock (SQLite) until the first commits.
        """
        stmt = (
            update(WarehouseConfig)
            .where(WarehouseConfig.key == CONFIG_NEXT_UNIT_NUMBER)
            .values(value=cast(cast(WarehouseConfig.value, Integer) + 1, Text))
            .returning(WarehouseConfig.value)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        new_value = result.scalar_one_or_none()
        if new_value is None:
            # counter row missing: start the sequence at 1
            db.add(WarehouseConfig(key=CONFIG_NEXT_UNIT_NUMBER, value="2"))
            await db.flush()
            return 1
        return int(new_value) - 1

    @staticmethod
    async def get_notification_recipients(db: AsyncSession) -> list[str]:
        settings = await SettingsService.get_settings(db)
        return settings.notification_recipients
