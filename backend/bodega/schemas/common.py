"""Bodega WMS - Common response envelope."""
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Meta(BaseModel):
    """Pagination and metadata."""

    page: int = 1
    page_size: int = 50
    total_count: int | None = None


class ApiError(BaseModel):
    code: str
    message: str
    title: str | None = None
    field_errors: list[dict] = []


class ApiResponse(BaseModel, Generic[T]):
    """Standard response envelope: {data, error, meta}."""

    data: T | None = None
    error: ApiError | None = None
    meta: Meta | None = None
