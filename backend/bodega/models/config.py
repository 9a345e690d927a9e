"""Bodega WMS - Key/value warehouse configuration."""
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bodega.db.base import Base

CONFIG_UNIT_PREFIX = "unit_prefix"
CONFIG_NEXT_UNIT_NUMBER = "next_unit_number"
CONFIG_LOCATION_LEVELS = "location_levels"
CONFIG_DISPATCH_EMAILS = "dispatch_notification_emails"


class WarehouseConfig(Base):
    __tablename__ = "warehouse_config"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
