"""Bodega WMS - Location, lock and item-location schemas."""
from datetime import datetime
from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, Field

from bodega.models.location import LocationType


class LockEntityType(str, Enum):
    LOCATION = "location"
    CONTAINER = "container"


class LocationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=100)
    type: LocationType
    parent_id: int | None = None


class LocationUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    code: str | None = Field(default=None, min_length=1, max_length=100)
    type: LocationType | None = None
    parent_id: int | None = None
    clear_parent: bool = False  # parent_id=None alone means "unchanged"


class LocationResponse(BaseModel):
    id: int
    name: str
    code: str
    type: str
    parent_id: int | None
    is_locked: bool
    locked_by: str | None = None
    locked_by_user_id: str | None = None
    locked_at: datetime | None = None

    model_config = {"from_attributes": True}


class LocationPathResponse(BaseModel):
    id: int
    code: str
    type: str
    path: str


class RackTemplate(BaseModel):
    """Generates rack > level > position > depth with derived codes."""

    mode: Literal["template"] = "template"
    name: str = Field(min_length=1)
    prefix: str = Field(min_length=1)
    parent_id: int | None = None
    levels: int = Field(ge=0, le=26)
    positions: int = Field(ge=0, le=99)
    depth: int = Field(ge=0, le=2)


class RackClone(BaseModel):
    mode: Literal["clone"] = "clone"
    source_rack_id: int
    new_name: str = Field(min_length=1)
    new_prefix: str = Field(min_length=1)


BulkLocationLayout = Union[RackTemplate, RackClone]


class BulkLocationRequest(BaseModel):
    layout: BulkLocationLayout = Field(discriminator="mode")


class LocationLevel(BaseModel):
    type: LocationType
    name: str


class LockRequest(BaseModel):
    ids: list[int] = Field(min_length=1)
    entity_type: LockEntityType = LockEntityType.LOCATION


class LockResult(BaseModel):
    locked: bool
    locked_by: str | None = None


class ActiveLock(BaseModel):
    id: int
    entity_type: LockEntityType
    label: str
    locked_by: str | None
    locked_by_user_id: str | None
    locked_at: datetime | None


class ItemLocationCreate(BaseModel):
    item_id: str = Field(min_length=1)
    location_id: int
    client_id: str | None = None


class ItemLocationResponse(BaseModel):
    id: int
    item_id: str
    location_id: int
    client_id: str | None
    updated_by: str | None
    updated_at: datetime | None

    model_config = {"from_attributes": True}
