"""Bodega WMS - Dispatch log, container and assignment models."""
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bodega.db.base import Base, utcnow

JsonType = JSON().with_variant(JSONB(), "postgresql")


class AssignmentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    DISCREPANCY = "discrepancy"
    COMPLETED = "completed"


class DocumentType(str, Enum):
    FACTURA = "Factura"
    PEDIDO = "Pedido"
    REMISION = "Remisión"

    @classmethod
    def from_erp_code(cls, code: str | None) -> "DocumentType":
        """ERP TIPO_DOCUMENTO: F = invoice, R = delivery note, anything else = order."""
        if code == "F":
            return cls.FACTURA
        if code == "R":
            return cls.REMISION
        return cls.PEDIDO


class DispatchLog(Base):
    """Append-only audit record, one per finalize (or move) action."""

    __tablename__ = "dispatch_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    document_type: Mapped[str] = mapped_column(String(20), nullable=False)
    verified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    verified_by_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    verified_by_user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    items: Mapped[list[dict[str, Any]]] = mapped_column(JsonType, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    vehicle_plate: Mapped[str | None] = mapped_column(String(50), nullable=True)
    driver_name: Mapped[str | None] = mapped_column(String(255), nullable=True)


class DispatchContainer(Base):
    """Named, lockable batch (route) of documents to dispatch together."""

    __tablename__ = "dispatch_containers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    locked_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    assignments: Mapped[list["DispatchAssignment"]] = relationship(
        "DispatchAssignment", back_populates="container", cascade="all, delete-orphan"
    )


class DispatchAssignment(Base):
    """Binds one ERP document to one container."""

    __tablename__ = "dispatch_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    container_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("dispatch_containers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    document_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True, unique=True)
    document_type: Mapped[str] = mapped_column(String(20), nullable=False)
    document_date: Mapped[str] = mapped_column(String(50), nullable=False)
    client_id: Mapped[str] = mapped_column(String(100), nullable=False)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    assigned_by: Mapped[str] = mapped_column(String(255), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=AssignmentStatus.PENDING.value)

    container: Mapped["DispatchContainer"] = relationship("DispatchContainer", back_populates="assignments")
