"""
Bodega WMS - Startup schema self-audit.

Compares the live database against the column manifest the code expects and
logs what is missing or unexpected. It never alters the schema.
"""
import logging

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

EXPECTED_COLUMNS: dict[str, set[str]] = {
    "locations": {
        "id", "name", "code", "type", "parent_id",
        "is_locked", "locked_by", "locked_by_user_id", "locked_at",
    },
    "item_locations": {"id", "item_id", "location_id", "client_id", "updated_by", "updated_at"},
    "inventory_units": {
        "id", "unit_code", "product_id", "human_readable_id", "document_id",
        "location_id", "quantity", "notes", "created_at", "created_by",
    },
    "inventory": {"id", "item_id", "location_id", "quantity", "last_updated", "updated_by"},
    "movements": {
        "id", "item_id", "quantity", "from_location_id", "to_location_id", "timestamp", "user_id", "notes",
    },
    "warehouse_config": {"key", "value"},
    "dispatch_logs": {
        "id", "document_id", "document_type", "verified_at", "verified_by_user_id",
        "verified_by_user_name", "items", "notes", "vehicle_plate", "driver_name",
    },
    "dispatch_containers": {
        "id", "name", "created_by", "created_at", "is_locked", "locked_by", "locked_by_user_id", "locked_at",
    },
    "dispatch_assignments": {
        "id", "container_id", "document_id", "document_type", "document_date", "client_id",
        "client_name", "assigned_by", "assigned_at", "sort_order", "status",
    },
}


class SchemaReport:

    def __init__(self):
        self.missing_tables: list[str] = []
        self.missing_columns: dict[str, list[str]] = {}
        self.extra_columns: dict[str, list[str]] = {}

    @property
    def is_clean(self) -> bool:
        return not (self.missing_tables or self.missing_columns)


def _inspect_columns(sync_conn) -> dict[str, set[str]]:
    inspector = inspect(sync_conn)
    return {
        table: {col["name"] for col in inspector.get_columns(table)}
        for table in inspector.get_table_names()
    }


async def audit_schema(engine: AsyncEngine, expected: dict[str, set[str]] | None = None) -> SchemaReport:
    expected = expected or EXPECTED_COLUMNS
    async with engine.connect() as conn:
        actual = await conn.run_sync(_inspect_columns)

    report = SchemaReport()
    for table, columns in expected.items():
        if table not in actual:
            report.missing_tables.append(table)
            logger.error("Schema audit: table %s is missing", table)
            continue
        missing = sorted(columns - actual[table])
        extra = sorted(actual[table] - columns)
        if missing:
            report.missing_columns[table] = missing
            logger.error("Schema audit: %s is missing columns %s", table, ", ".join(missing))
        if extra:
            report.extra_columns[table] = extra
            logger.warning("Schema audit: %s has unexpected columns %s", table, ", ".join(extra))

    if report.is_clean:
        logger.info("Schema audit passed (%d tables)", len(expected))
    return report
