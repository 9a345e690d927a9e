"""
Bodega WMS - Dispatch check endpoints.

Each request rebuilds the workflow around the operator's stored snapshot,
runs one command and stores the new snapshot. The response always carries the
full view so the client can redraw from it.
"""
import base64
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, Query

from bodega.api.deps import (
    PERM_DISPATCH_CHECK_USE,
    CurrentUser,
    DbSession,
    get_catalog_client,
    get_email_service,
    get_erp_client,
    get_notifier,
    get_preference_store,
    get_session_store,
    require_permission,
)
from bodega.schemas.common import ApiResponse
from bodega.schemas.workflow import (
    DispatchCheckState,
    DispatchCheckView,
    DocumentOption,
    EmailOptionsRequest,
    FinalizeRequest,
    ManualQuantityRequest,
    MoveDocumentRequest,
    PromptResolution,
    ScanRequest,
    SelectDocumentRequest,
    StartDispatchRequest,
    StrictModeRequest,
)
from bodega.services.catalog_client import CatalogClient
from bodega.services.document_renderer import DispatchMailer, ReceiptRenderer
from bodega.services.email_service import EmailService
from bodega.services.erp_client import ErpClient
from bodega.services.notification_service import NotificationService
from bodega.workflows.adapters import SqlDispatchStore
from bodega.workflows.dispatch_check import DispatchCheckWorkflow
from bodega.workflows.ports import CollectingFeedback
from bodega.workflows.session_store import RedisPreferenceStore, WorkflowSessionStore

router = APIRouter()

SESSION_KIND = "dispatch_check"


class DispatchCheckSession:
    """One request's worth of workflow plus the store it came from."""

    def __init__(self, workflow: DispatchCheckWorkflow, feedback: CollectingFeedback, store: WorkflowSessionStore):
        self.workflow = workflow
        self.feedback = feedback
        self.store = store

    async def respond(self) -> ApiResponse[DispatchCheckView]:
        workflow = self.workflow
        await self.store.save(SESSION_KIND, str(workflow.actor.id), workflow.state)
        pdf = workflow.receipt_pdf
        return ApiResponse(
            data=DispatchCheckView(
                state=workflow.state,
                progress=workflow.progress,
                is_verification_complete=workflow.is_verification_complete,
                has_discrepancy=workflow.has_discrepancy,
                toasts=self.feedback.toasts,
                receipt_pdf_base64=base64.b64encode(pdf).decode("ascii") if pdf else None,
            )
        )


async def get_dispatch_session(
    db: DbSession,
    user: CurrentUser = Depends(require_permission(PERM_DISPATCH_CHECK_USE)),
    sessions: WorkflowSessionStore = Depends(get_session_store),
    preferences: RedisPreferenceStore = Depends(get_preference_store),
    erp: ErpClient = Depends(get_erp_client),
    catalog: CatalogClient = Depends(get_catalog_client),
    email: EmailService = Depends(get_email_service),
    notifier: NotificationService = Depends(get_notifier),
) -> AsyncGenerator[DispatchCheckSession, None]:
    """The operator's command lock is held until the response has been built."""
    async with sessions.command_lock(SESSION_KIND, str(user.id)):
        feedback = CollectingFeedback()
        state = await sessions.load(SESSION_KIND, str(user.id), DispatchCheckState)
        workflow = DispatchCheckWorkflow(
            state,
            user,
            documents=erp,
            catalog=catalog,
            store=SqlDispatchStore(db),
            notifier=notifier,
            mailer=DispatchMailer(email),
            receipts=ReceiptRenderer(),
            preferences=preferences,
            feedback=feedback,
        )
        yield DispatchCheckSession(workflow, feedback, sessions)


@router.get("", response_model=ApiResponse[DispatchCheckView])
async def get_state(session: DispatchCheckSession = Depends(get_dispatch_session)):
    return await session.respond()


@router.post("/start", response_model=ApiResponse[DispatchCheckView])
async def start(body: StartDispatchRequest, session: DispatchCheckSession = Depends(get_dispatch_session)):
    """Open the screen; doc_id (and container_id) deep-link straight into a document."""
    await session.workflow.start(body.doc_id, body.container_id)
    return await session.respond()


@router.get("/documents", response_model=ApiResponse[list[DocumentOption]])
async def search_documents(
    q: str = Query(""),
    session: DispatchCheckSession = Depends(get_dispatch_session),
):
    """Fewer than three characters returns an empty list without calling the ERP."""
    options = await session.workflow.search_documents(q)
    await session.store.save(SESSION_KIND, str(session.workflow.actor.id), session.workflow.state)
    return ApiResponse(data=options)


@router.post("/select", response_model=ApiResponse[DispatchCheckView])
async def select_document(body: SelectDocumentRequest, session: DispatchCheckSession = Depends(get_dispatch_session)):
    await session.workflow.select_document(body.document_id, body.container_id)
    return await session.respond()


@router.post("/scan", response_model=ApiResponse[DispatchCheckView])
async def scan(body: ScanRequest, session: DispatchCheckSession = Depends(get_dispatch_session)):
    await session.workflow.scan(body.code)
    return await session.respond()


@router.post("/lines/{line_id}/confirm", response_model=ApiResponse[DispatchCheckView])
async def request_line_confirmation(line_id: int, session: DispatchCheckSession = Depends(get_dispatch_session)):
    await session.workflow.request_line_confirmation(line_id)
    return await session.respond()


@router.put("/lines/{line_id}/quantity", response_model=ApiResponse[DispatchCheckView])
async def set_manual_quantity(
    line_id: int,
    body: ManualQuantityRequest,
    session: DispatchCheckSession = Depends(get_dispatch_session),
):
    """commit=False only stores what is typed; commit=True applies it (blur)."""
    if body.commit:
        await session.workflow.commit_manual_quantity(line_id, body.text)
    else:
        await session.workflow.set_manual_quantity_text(line_id, body.text)
    return await session.respond()


@router.post("/prompt", response_model=ApiResponse[DispatchCheckView])
async def resolve_prompt(body: PromptResolution, session: DispatchCheckSession = Depends(get_dispatch_session)):
    await session.workflow.resolve_prompt(body.accept)
    return await session.respond()


@router.delete("/prompt", response_model=ApiResponse[DispatchCheckView])
async def dismiss_prompt(session: DispatchCheckSession = Depends(get_dispatch_session)):
    await session.workflow.dismiss_prompt()
    return await session.respond()


@router.delete("/notice", response_model=ApiResponse[DispatchCheckView])
async def clear_notice(session: DispatchCheckSession = Depends(get_dispatch_session)):
    await session.workflow.clear_notice()
    return await session.respond()


@router.put("/strict-mode", response_model=ApiResponse[DispatchCheckView])
async def set_strict_mode(body: StrictModeRequest, session: DispatchCheckSession = Depends(get_dispatch_session)):
    await session.workflow.set_strict_mode(body.is_strict_mode)
    return await session.respond()


@router.put("/email-options", response_model=ApiResponse[DispatchCheckView])
async def set_email_options(body: EmailOptionsRequest, session: DispatchCheckSession = Depends(get_dispatch_session)):
    await session.workflow.set_email_options(body.recipients, body.external_email, body.body)
    return await session.respond()


@router.post("/finalize", response_model=ApiResponse[DispatchCheckView])
async def request_finalize(body: FinalizeRequest, session: DispatchCheckSession = Depends(get_dispatch_session)):
    """May answer with a prompt instead of finalizing; resolve it through /prompt."""
    await session.workflow.request_finalize(body.action)
    return await session.respond()


@router.post("/move", response_model=ApiResponse[DispatchCheckView])
async def move_to_container(body: MoveDocumentRequest, session: DispatchCheckSession = Depends(get_dispatch_session)):
    await session.workflow.move_to_container(body.target_container_id)
    return await session.respond()


@router.post("/next", response_model=ApiResponse[DispatchCheckView])
async def proceed_to_next(session: DispatchCheckSession = Depends(get_dispatch_session)):
    await session.workflow.proceed_to_next()
    return await session.respond()


@router.post("/back", response_model=ApiResponse[DispatchCheckView])
async def go_back(session: DispatchCheckSession = Depends(get_dispatch_session)):
    await session.workflow.go_back()
    return await session.respond()


@router.post("/reset", response_model=ApiResponse[DispatchCheckView])
async def reset(session: DispatchCheckSession = Depends(get_dispatch_session)):
    await session.workflow.reset()
    return await session.respond()
