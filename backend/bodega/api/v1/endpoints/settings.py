"""Bodega WMS - Warehouse settings endpoints."""
from fastapi import APIRouter, Depends

from bodega.api.deps import (
    PERM_SETTINGS_MANAGE,
    PERM_WAREHOUSE_ACCESS,
    CurrentUser,
    DbSession,
    require_permission,
)
from bodega.schemas.common import ApiResponse
from bodega.schemas.settings import WarehouseSettings, WarehouseSettingsUpdate
from bodega.services.settings_service import SettingsService

router = APIRouter()


@router.get("", response_model=ApiResponse[WarehouseSettings])
async def get_settings(
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    return ApiResponse(data=await SettingsService.get_settings(db))


@router.put("", response_model=ApiResponse[WarehouseSettings])
async def save_settings(
    body: WarehouseSettingsUpdate,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_SETTINGS_MANAGE)),
):
    return ApiResponse(data=await SettingsService.save_settings(db, body))
