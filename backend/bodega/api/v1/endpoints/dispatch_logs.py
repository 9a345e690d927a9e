"""Bodega WMS - Dispatch log (read-only; entries are written by the dispatch check)."""
from fastapi import APIRouter, Depends, Query

from bodega.api.deps import PERM_DISPATCH_LOGS_READ, CurrentUser, DbSession, require_permission
from bodega.schemas.common import ApiResponse, Meta
from bodega.schemas.dispatch import DispatchLogResponse
from bodega.services.dispatch_service import DispatchService

router = APIRouter()


@router.get("", response_model=ApiResponse[list[DispatchLogResponse]])
async def list_dispatch_logs(
    db: DbSession,
    document_id: str | None = None,
    limit: int = Query(200, ge=1, le=1000),
    user: CurrentUser = Depends(require_permission(PERM_DISPATCH_LOGS_READ)),
):
    """Newest first."""
    logs = await DispatchService.get_dispatch_logs(db, document_id=document_id, limit=limit)
    return ApiResponse(
        data=[DispatchLogResponse.model_validate(entry) for entry in logs],
        meta=Meta(page_size=limit, total_count=len(logs)),
    )
