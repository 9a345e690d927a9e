"""Bodega WMS - Inventory unit endpoints."""
import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response

from bodega.api.deps import (
    PERM_UNITS_MANAGE,
    PERM_WAREHOUSE_ACCESS,
    CurrentUser,
    DbSession,
    get_catalog_client,
    require_permission,
)
from bodega.core.exceptions import CatalogUnavailableError, InventoryUnitNotFoundError
from bodega.schemas.common import ApiResponse
from bodega.schemas.inventory import InventoryUnitCreate, InventoryUnitResponse, MovementResponse, UnitMoveRequest
from bodega.services.catalog_client import CatalogClient
from bodega.services.inventory_service import InventoryService
from bodega.services.label_service import LabelRenderer
from bodega.services.location_service import LocationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=ApiResponse[list[InventoryUnitResponse]])
async def list_units(
    db: DbSession,
    limit: int = Query(100, ge=1, le=1000),
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    """Most recently created first."""
    units = await InventoryService.list_inventory_units(db, limit=limit)
    return ApiResponse(data=[InventoryUnitResponse.model_validate(u) for u in units])


@router.get("/movements", response_model=ApiResponse[list[MovementResponse]])
async def list_movements(
    db: DbSession,
    item_id: str | None = None,
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    rows = await InventoryService.get_movements(db, item_id)
    return ApiResponse(data=[MovementResponse.model_validate(m) for m in rows])


@router.get("/lookup/{query}", response_model=ApiResponse[InventoryUnitResponse])
async def lookup_unit(
    query: str,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    """Scan lookup: a unit code (prefix + number) or a numeric id."""
    unit = await InventoryService.get_inventory_unit_by_id(db, query)
    if unit is None:
        raise InventoryUnitNotFoundError(f"No se encontró la unidad '{query}'.", query=query)
    return ApiResponse(data=InventoryUnitResponse.model_validate(unit))


@router.post("", response_model=ApiResponse[InventoryUnitResponse], status_code=status.HTTP_201_CREATED)
async def create_unit(
    body: InventoryUnitCreate,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_UNITS_MANAGE)),
):
    unit = await InventoryService.add_inventory_unit(db, body, user.name)
    return ApiResponse(data=InventoryUnitResponse.model_validate(unit))


@router.post("/{id}/move", response_model=ApiResponse[InventoryUnitResponse])
async def move_unit(
    id: int,
    body: UnitMoveRequest,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_UNITS_MANAGE)),
):
    unit = await InventoryService.move_inventory_unit(db, id, body.location_id, str(user.id), body.notes)
    return ApiResponse(data=InventoryUnitResponse.model_validate(unit))


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_unit(
    id: int,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_UNITS_MANAGE)),
):
    await InventoryService.delete_inventory_unit(db, id)


@router.get("/{id}/label", responses={200: {"content": {"application/pdf": {}}}})
async def print_unit_label(
    id: int,
    db: DbSession,
    catalog: CatalogClient = Depends(get_catalog_client),
    user: CurrentUser = Depends(require_permission(PERM_WAREHOUSE_ACCESS)),
):
    """Reprint the 4x3 label of an existing unit."""
    unit = await InventoryService.get_inventory_unit_by_id(db, id)
    if unit is None:
        raise InventoryUnitNotFoundError(f"No se encontró la unidad {id}.", id=id)
    try:
        product = await catalog.get_product(unit.product_id)
    except CatalogUnavailableError as exc:
        logger.warning("Label for %s printed without description: %s", unit.unit_code, exc.message)
        product = None

    pdf = LabelRenderer().render(
        unit_code=unit.unit_code,
        product_id=unit.product_id,
        description=product.description if product else "Descripción no disponible",
        human_readable_id=unit.human_readable_id,
        document_id=unit.document_id,
        location_path=await LocationService.get_location_path(db, unit.location_id),
        created_by=unit.created_by,
    )
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="etiqueta_unidad_{unit.unit_code}.pdf"'},
    )
