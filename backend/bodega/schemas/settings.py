"""Bodega WMS - Warehouse settings schemas."""
from pydantic import BaseModel, Field

from bodega.schemas.location import LocationLevel


class WarehouseSettings(BaseModel):
    unit_prefix: str = "U"
    next_unit_number: int = 1
    location_levels: list[LocationLevel] = []
    dispatch_notification_emails: str = ""

    @property
    def notification_recipients(self) -> list[str]:
        return [e.strip() for e in self.dispatch_notification_emails.split(",") if e.strip()]


class WarehouseSettingsUpdate(BaseModel):
    unit_prefix: str | None = Field(default=None, min_length=1, max_length=10)
    location_levels: list[LocationLevel] | None = None
    dispatch_notification_emails: str | None = None
