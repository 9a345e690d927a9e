"""Bodega WMS - Location tree endpoints."""
from fastapi import APIRouter, Depends, Query, status

from bodega.api.deps import (
    PERM_LOCATIONS_MANAGE,
    PERM_WAREHOUSE_ACCESS,
    CurrentUser,
    DbSession,
    require_permission,
)
from bodega.schemas.common import ApiResponse, Meta
from bodega.schemas.location import (
    BulkLocationRequest,
    LocationCreate,
    LocationPathResponse,
    LocationResponse,
    LocationUpdate,
)
from bodega.services.location_service import LocationService

router = APIRouter()


@router.get("", response_model=ApiResponse[list[LocationResponse]])
async def list_locations(
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    """Whole tree as a flat list (parent_id links)."""
    items = await LocationService.get_locations(db)
    return ApiResponse(
        data=[LocationResponse.model_validate(i) for i in items],
        meta=Meta(page_size=len(items), total_count=len(items)),
    )


@router.get("/selectable", response_model=ApiResponse[list[LocationPathResponse]])
async def search_selectable_locations(
    db: DbSession,
    q: str = Query("", description="Path substring; '*' or empty lists every leaf"),
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    """Leaf locations (no children) with their rendered path."""
    matches = await LocationService.search_locations_by_path(db, q)
    return ApiResponse(
        data=[LocationPathResponse(id=loc.id, code=loc.code, type=loc.type, path=path) for loc, path in matches]
    )


@router.post("", response_model=ApiResponse[LocationResponse], status_code=status.HTTP_201_CREATED)
async def create_location(
    body: LocationCreate,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_LOCATIONS_MANAGE)),
):
    loc = await LocationService.add_location(db, body)
    return ApiResponse(data=LocationResponse.model_validate(loc))


@router.post("/bulk", response_model=ApiResponse[list[LocationResponse]], status_code=status.HTTP_201_CREATED)
async def create_bulk_locations(
    body: BulkLocationRequest,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_LOCATIONS_MANAGE)),
):
    """Rack template or rack clone, all-or-nothing."""
    created = await LocationService.add_bulk_locations(db, body.layout)
    return ApiResponse(data=[LocationResponse.model_validate(loc) for loc in created])


@router.get("/children", response_model=ApiResponse[list[LocationResponse]])
async def list_child_locations(
    db: DbSession,
    parent_id: list[int] = Query(...),
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    children = await LocationService.get_child_locations(db, parent_id)
    return ApiResponse(data=[LocationResponse.model_validate(c) for c in children])


@router.get("/{id}", response_model=ApiResponse[LocationResponse])
async def get_location(
    id: int,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    return ApiResponse(data=LocationResponse.model_validate(await LocationService.get_location(db, id)))


@router.get("/{id}/path", response_model=ApiResponse[str])
async def get_location_path(
    id: int,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    """Full path (Edificio > Zona > Rack > ...) for a location."""
    await LocationService.get_location(db, id)
    return ApiResponse(data=await LocationService.get_location_path(db, id))


@router.patch("/{id}", response_model=ApiResponse[LocationResponse])
async def update_location(
    id: int,
    body: LocationUpdate,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_LOCATIONS_MANAGE)),
):
    loc = await LocationService.update_location(db, id, body)
    return ApiResponse(data=LocationResponse.model_validate(loc))


@router.delete("/{id}", response_model=ApiResponse[list[int]])
async def delete_location(
    id: int,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_LOCATIONS_MANAGE)),
):
    """Delete a node and its subtree. 409 when anything stored references them."""
    return ApiResponse(data=await LocationService.delete_location(db, id))
