"""Bodega WMS - Advisory lock endpoints (locations and dispatch containers)."""
from fastapi import APIRouter, Depends

from bodega.api.deps import (
    PERM_LOCKS_FORCE_RELEASE,
    PERM_WAREHOUSE_ACCESS,
    CurrentUser,
    DbSession,
    require_permission,
)
from bodega.schemas.common import ApiResponse
from bodega.schemas.location import ActiveLock, LockEntityType, LockRequest, LockResult
from bodega.services.lock_service import LockService

router = APIRouter()


@router.get("", response_model=ApiResponse[list[ActiveLock]])
async def list_active_locks(
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    return ApiResponse(data=await LockService.get_active_locks(db))


@router.post("/lock", response_model=ApiResponse[LockResult])
async def lock_entities(
    body: LockRequest,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    """locked=False (with the holder's name) when another user holds any of them."""
    result = await LockService.lock_entities(db, body.ids, body.entity_type, str(user.id), user.name)
    return ApiResponse(data=result)


@router.post("/release", response_model=ApiResponse[int])
async def release_locks(
    body: LockRequest,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    return ApiResponse(data=await LockService.release_locks(db, body.ids, body.entity_type, str(user.id)))


@router.post("/{entity_type}/{id}/force-release", response_model=ApiResponse[bool])
async def force_release_lock(
    entity_type: LockEntityType,
    id: int,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_LOCKS_FORCE_RELEASE)),
):
    return ApiResponse(data=await LockService.force_release_lock(db, id, entity_type))
