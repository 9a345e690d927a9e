"""Bodega WMS - Dispatch container, assignment and log schemas."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from bodega.models.dispatch import AssignmentStatus, DocumentType


class ContainerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)


class ContainerResponse(BaseModel):
    id: int
    name: str
    created_by: str
    created_at: datetime | None
    is_locked: bool
    locked_by: str | None = None
    locked_by_user_id: str | None = None
    locked_at: datetime | None = None

    model_config = {"from_attributes": True}


class DocumentRef(BaseModel):
    """Document being routed into a container (from an ERP search result)."""

    document_id: str
    document_type: DocumentType
    document_date: str
    client_id: str
    client_name: str


class AssignDocumentsRequest(BaseModel):
    documents: list[DocumentRef] = Field(min_length=1)


class AssignmentResponse(BaseModel):
    id: int
    container_id: int
    document_id: str
    document_type: str
    document_date: str
    client_id: str
    client_name: str
    assigned_by: str
    assigned_at: datetime | None
    sort_order: int
    status: AssignmentStatus

    model_config = {"from_attributes": True}


class AssignmentOrderRequest(BaseModel):
    document_ids: list[str]


class AssignmentMoveRequest(BaseModel):
    target_container_id: int


class AssignmentStatusUpdate(BaseModel):
    status: AssignmentStatus


class DispatchLogCreate(BaseModel):
    document_id: str
    document_type: DocumentType
    verified_by_user_id: str
    verified_by_user_name: str
    items: list[dict[str, Any]]
    notes: str | None = None
    vehicle_plate: str | None = None
    driver_name: str | None = None


class DispatchLogResponse(BaseModel):
    id: int
    document_id: str
    document_type: str
    verified_at: datetime | None
    verified_by_user_id: str
    verified_by_user_name: str
    items: list[dict[str, Any]]
    notes: str | None
    vehicle_plate: str | None
    driver_name: str | None

    model_config = {"from_attributes": True}
