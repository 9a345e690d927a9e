"""Bodega WMS - Item-location (default placement) endpoints."""
from fastapi import APIRouter, Depends, Query, status

from bodega.api.deps import (
    PERM_ITEM_ASSIGNMENT,
    PERM_WAREHOUSE_ACCESS,
    CurrentUser,
    DbSession,
    require_permission,
)
from bodega.schemas.common import ApiResponse
from bodega.schemas.location import ItemLocationCreate, ItemLocationResponse
from bodega.services.item_location_service import ItemLocationService

router = APIRouter()


@router.get("", response_model=ApiResponse[list[ItemLocationResponse]])
async def list_item_locations(
    db: DbSession,
    item_id: str | None = Query(None, description="Only placements of this product"),
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    if item_id:
        rows = await ItemLocationService.get_item_locations(db, item_id)
    else:
        rows = await ItemLocationService.get_all_item_locations(db)
    return ApiResponse(data=[ItemLocationResponse.model_validate(r) for r in rows])


@router.post("", response_model=ApiResponse[ItemLocationResponse], status_code=status.HTTP_201_CREATED)
async def assign_item_to_location(
    body: ItemLocationCreate,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_ITEM_ASSIGNMENT)),
):
    row = await ItemLocationService.assign_item_to_location(
        db, body.item_id, body.location_id, body.client_id, user.name
    )
    return ApiResponse(data=ItemLocationResponse.model_validate(row))


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
async def unassign_item_from_location(
    id: int,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_ITEM_ASSIGNMENT)),
):
    await ItemLocationService.unassign_item_from_location(db, id)
