"""Bodega WMS - Inventory unit, movement and stock level schemas."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class InventoryUnitCreate(BaseModel):
    product_id: str = Field(min_length=1)
    human_readable_id: str | None = None
    document_id: str | None = None
    location_id: int | None = None
    quantity: Decimal = Decimal("1")
    notes: str | None = None


class InventoryUnitResponse(BaseModel):
    id: int
    unit_code: str
    product_id: str
    human_readable_id: str | None
    document_id: str | None
    location_id: int | None
    quantity: Decimal
    notes: str | None
    created_at: datetime | None
    created_by: str

    model_config = {"from_attributes": True}


class UnitMoveRequest(BaseModel):
    location_id: int
    notes: str | None = None


class MovementResponse(BaseModel):
    id: int
    item_id: str
    quantity: Decimal
    from_location_id: int | None
    to_location_id: int | None
    timestamp: datetime | None
    user_id: str
    notes: str | None

    model_config = {"from_attributes": True}


class InventoryLevelUpdate(BaseModel):
    item_id: str = Field(min_length=1)
    location_id: int
    quantity: Decimal = Field(ge=0)


class InventoryLevelResponse(BaseModel):
    id: int
    item_id: str
    location_id: int
    quantity: Decimal
    last_updated: datetime | None
    updated_by: str | None

    model_config = {"from_attributes": True}
