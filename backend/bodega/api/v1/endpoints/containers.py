"""Bodega WMS - Dispatch center: containers (routes) and their document assignments."""
from fastapi import APIRouter, Depends, Query, status

from bodega.api.deps import (
    PERM_DISPATCH_CENTER,
    CurrentUser,
    DbSession,
    get_erp_client,
    require_permission,
)
from bodega.schemas.common import ApiResponse
from bodega.schemas.dispatch import (
    AssignDocumentsRequest,
    AssignmentMoveRequest,
    AssignmentOrderRequest,
    AssignmentResponse,
    AssignmentStatusUpdate,
    ContainerCreate,
    ContainerResponse,
)
from bodega.schemas.external import ErpDocumentSummary
from bodega.services.dispatch_service import DispatchService
from bodega.services.erp_client import ErpClient

router = APIRouter()


@router.get("", response_model=ApiResponse[list[ContainerResponse]])
async def list_containers(
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_DISPATCH_CENTER)),
):
    containers = await DispatchService.list_containers(db)
    return ApiResponse(data=[ContainerResponse.model_validate(c) for c in containers])


@router.post("", response_model=ApiResponse[ContainerResponse], status_code=status.HTTP_201_CREATED)
async def create_container(
    body: ContainerCreate,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_DISPATCH_CENTER)),
):
    container = await DispatchService.create_container(db, body.name, user.name)
    return ApiResponse(data=ContainerResponse.model_validate(container))


@router.get("/documents/search", response_model=ApiResponse[list[ErpDocumentSummary]])
async def search_documents(
    q: str = Query(..., min_length=3),
    erp: ErpClient = Depends(get_erp_client),
    user: CurrentUser = Depends(require_permission(PERM_DISPATCH_CENTER)),
):
    """ERP documents to classify into containers."""
    return ApiResponse(data=await erp.search_documents(q))


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_container(
    id: int,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_DISPATCH_CENTER)),
):
    await DispatchService.delete_container(db, id)


@router.get("/{id}/assignments", response_model=ApiResponse[list[AssignmentResponse]])
async def list_assignments(
    id: int,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_DISPATCH_CENTER)),
):
    """Ordered by sort_order."""
    rows = await DispatchService.get_assignments_for_container(db, id)
    return ApiResponse(data=[AssignmentResponse.model_validate(r) for r in rows])


@router.post("/{id}/assignments", response_model=ApiResponse[list[AssignmentResponse]])
async def assign_documents(
    id: int,
    body: AssignDocumentsRequest,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_DISPATCH_CENTER)),
):
    rows = await DispatchService.assign_documents_to_container(db, id, body.documents, user.name)
    return ApiResponse(data=[AssignmentResponse.model_validate(r) for r in rows])


@router.put("/{id}/assignments/order", status_code=status.HTTP_204_NO_CONTENT)
async def reorder_assignments(
    id: int,
    body: AssignmentOrderRequest,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_DISPATCH_CENTER)),
):
    await DispatchService.update_assignment_order(db, id, body.document_ids)


@router.post("/{id}/assignments/reset", status_code=status.HTTP_204_NO_CONTENT)
async def reset_assignments(
    id: int,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_DISPATCH_CENTER)),
):
    """Every document in the container goes back to pending."""
    await DispatchService.reset_container_assignments(db, id)


@router.delete("/{id}/assignments", status_code=status.HTTP_204_NO_CONTENT)
async def unassign_all(
    id: int,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_DISPATCH_CENTER)),
):
    await DispatchService.unassign_all_from_container(db, id)


@router.get("/{id}/next", response_model=ApiResponse[str | None])
async def get_next_document(
    id: int,
    db: DbSession,
    current: str = Query(...),
    user: CurrentUser = Depends(require_permission(PERM_DISPATCH_CENTER)),
):
    """First pending document after `current`, or null when the route is done."""
    return ApiResponse(data=await DispatchService.get_next_document_in_container(db, id, current))


@router.post("/assignments/{document_id}/move", response_model=ApiResponse[AssignmentResponse])
async def move_assignment(
    document_id: str,
    body: AssignmentMoveRequest,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_DISPATCH_CENTER)),
):
    row = await DispatchService.move_assignment_to_container(db, document_id, body.target_container_id)
    return ApiResponse(data=AssignmentResponse.model_validate(row))


@router.patch("/assignments/{document_id}/status", response_model=ApiResponse[AssignmentResponse | None])
async def update_assignment_status(
    document_id: str,
    body: AssignmentStatusUpdate,
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_DISPATCH_CENTER)),
):
    row = await DispatchService.update_assignment_status(db, document_id, body.status)
    return ApiResponse(data=AssignmentResponse.model_validate(row) if row else None)
