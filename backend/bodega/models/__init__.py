"""Bodega WMS - SQLAlchemy models."""
from bodega.models.config import WarehouseConfig
from bodega.models.dispatch import (
    AssignmentStatus,
    DispatchAssignment,
    DispatchContainer,
    DispatchLog,
    DocumentType,
)
from bodega.models.inventory import InventoryLevel, InventoryUnit, Movement
from bodega.models.location import ItemLocation, Location, LocationType

__all__ = [
    "Location", "LocationType", "ItemLocation",
    "InventoryUnit", "InventoryLevel", "Movement",
    "WarehouseConfig",
    "DispatchLog", "DispatchContainer", "DispatchAssignment", "AssignmentStatus", "DocumentType",
]
