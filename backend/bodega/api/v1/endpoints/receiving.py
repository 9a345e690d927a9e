"""Bodega WMS - Receiving wizard endpoints."""
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, Response

from bodega.api.deps import (
    PERM_RECEIVING_USE,
    CurrentUser,
    DbSession,
    get_catalog_client,
    get_session_store,
    require_permission,
)
from bodega.core.responses import success_response
from bodega.schemas.common import ApiResponse
from bodega.schemas.external import ProductInfo
from bodega.schemas.location import LocationPathResponse
from bodega.schemas.workflow import (
    LocationChoiceRequest,
    ReceivingDetailsRequest,
    ReceivingState,
    ReceivingView,
    SelectProductRequest,
)
from bodega.services.catalog_client import CatalogClient
from bodega.services.label_service import LabelRenderer
from bodega.services.location_service import LocationService
from bodega.workflows.adapters import SqlLocationDirectory, SqlUnitRegistry
from bodega.workflows.ports import CollectingFeedback
from bodega.workflows.receiving import ReceivingWorkflow
from bodega.workflows.session_store import WorkflowSessionStore

router = APIRouter()

SESSION_KIND = "receiving"


class ReceivingSession:

    def __init__(self, workflow: ReceivingWorkflow, feedback: CollectingFeedback, store: WorkflowSessionStore):
        self.workflow = workflow
        self.feedback = feedback
        self.store = store

    async def save(self) -> ReceivingView:
        await self.store.save(SESSION_KIND, str(self.workflow.actor.id), self.workflow.state)
        return ReceivingView(state=self.workflow.state, toasts=self.feedback.toasts)

    async def respond(self) -> ApiResponse[ReceivingView]:
        return ApiResponse(data=await self.save())


async def get_receiving_session(
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_RECEIVING_USE)),
    sessions: WorkflowSessionStore = Depends(get_session_store),
    catalog: CatalogClient = Depends(get_catalog_client),
) -> AsyncGenerator[ReceivingSession, None]:
    async with sessions.command_lock(SESSION_KIND, str(user.id)):
        feedback = CollectingFeedback()
        state = await sessions.load(SESSION_KIND, str(user.id), ReceivingState)
        workflow = ReceivingWorkflow(
            state,
            user,
            catalog=catalog,
            locations=SqlLocationDirectory(db),
            units=SqlUnitRegistry(db),
            labels=LabelRenderer(),
            feedback=feedback,
        )
        yield ReceivingSession(workflow, feedback, sessions)


@router.get("", response_model=ApiResponse[ReceivingView])
async def get_state(session: ReceivingSession = Depends(get_receiving_session)):
    return await session.respond()


@router.get("/products", response_model=ApiResponse[list[ProductInfo]])
async def search_products(
    q: str = Query(""),
    catalog: CatalogClient = Depends(get_catalog_client),
    user: CurrentUser = Depends(require_permission(PERM_RECEIVING_USE)),
):
    return ApiResponse(data=await catalog.search_products(q))


@router.get("/locations", response_model=ApiResponse[list[LocationPathResponse]])
async def search_locations(
    db: DbSession,
    q: str = Query(""),
    user: CurrentUser = Depends(require_permission(PERM_RECEIVING_USE)),
):
    """Selectable (leaf) locations whose path contains q."""
    matches = await LocationService.search_locations_by_path(db, q)
    return ApiResponse(
        data=[LocationPathResponse(id=loc.id, code=loc.code, type=loc.type, path=path) for loc, path in matches]
    )


@router.post("/product", response_model=ApiResponse[ReceivingView])
async def select_product(body: SelectProductRequest, session: ReceivingSession = Depends(get_receiving_session)):
    await session.workflow.select_product(body.product_id)
    return await session.respond()


@router.post("/suggested-location", response_model=ApiResponse[ReceivingView])
async def use_suggested_location(
    body: LocationChoiceRequest,
    session: ReceivingSession = Depends(get_receiving_session),
):
    await session.workflow.use_suggested_location(body.location_id)
    return await session.respond()


@router.post("/new-location", response_model=ApiResponse[ReceivingView])
async def assign_new_location(session: ReceivingSession = Depends(get_receiving_session)):
    await session.workflow.assign_new_location()
    return await session.respond()


@router.put("/location", response_model=ApiResponse[ReceivingView])
async def select_location(body: LocationChoiceRequest, session: ReceivingSession = Depends(get_receiving_session)):
    await session.workflow.select_location(body.location_id)
    return await session.respond()


@router.put("/details", response_model=ApiResponse[ReceivingView])
async def set_details(body: ReceivingDetailsRequest, session: ReceivingSession = Depends(get_receiving_session)):
    """Only the fields present in the body are changed."""
    workflow = session.workflow
    if body.quantity is not None:
        await workflow.set_quantity(body.quantity)
    if body.human_readable_id is not None:
        await workflow.set_human_readable_id(body.human_readable_id)
    if body.document_id is not None:
        await workflow.set_document_id(body.document_id)
    if body.save_as_default is not None:
        await workflow.set_save_as_default(body.save_as_default)
    return await session.respond()


@router.post("/confirm", response_model=ApiResponse[ReceivingView])
async def confirm_and_register(session: ReceivingSession = Depends(get_receiving_session)):
    await session.workflow.confirm_and_register()
    return await session.respond()


@router.post("/back", response_model=ApiResponse[ReceivingView])
async def go_back(session: ReceivingSession = Depends(get_receiving_session)):
    await session.workflow.go_back()
    return await session.respond()


@router.post("/reset", response_model=ApiResponse[ReceivingView])
async def reset(session: ReceivingSession = Depends(get_receiving_session)):
    await session.workflow.reset()
    return await session.respond()


@router.get("/label", responses={200: {"content": {"application/pdf": {}}}})
async def print_label(session: ReceivingSession = Depends(get_receiving_session)):
    """PDF label for the unit just registered; 409 with the view when it cannot be drawn."""
    pdf = await session.workflow.print_label()
    view = await session.save()
    if pdf is None:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=success_response(view.model_dump(mode="json")),
        )
    unit_code = session.workflow.state.last_created_unit.unit_code
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="etiqueta_unidad_{unit_code}.pdf"'},
    )
