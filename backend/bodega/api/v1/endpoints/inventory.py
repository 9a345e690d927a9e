"""Bodega WMS - Simple-mode stock endpoints (quantity per item and location)."""
from fastapi import APIRouter, Depends

from bodega.api.deps import (
    PERM_INVENTORY_UPDATE,
    PERM_WAREHOUSE_ACCESS,
    CurrentUser,
    DbSession,
    require_permission,
)
from bodega.schemas.common import ApiResponse
from bodega.schemas.inventory import InventoryLevelResponse, InventoryLevelUpdate
from bodega.services.inventory_service import InventoryService

router = APIRouter()


@router.get("/{item_id}", response_model=ApiResponse[list[InventoryLevelResponse]])
async def get_inventory_for_item(
    item_id: str,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    rows = await InventoryService.get_inventory_for_item(db, item_id)
    return ApiResponse(data=[InventoryLevelResponse.model_validate(r) for r in rows])


@router.put("", response_model=ApiResponse[InventoryLevelResponse])
async def update_inventory(
    body: InventoryLevelUpdate,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_INVENTORY_UPDATE)),
):
    """Set the counted quantity (absolute, not a delta)."""
    level = await InventoryService.update_inventory(db, body.item_id, body.location_id, body.quantity, user.name)
    return ApiResponse(data=InventoryLevelResponse.model_validate(level))
