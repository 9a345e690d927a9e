"""Bodega WMS - State snapshots and commands for the dispatch-check and receiving workflows."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from bodega.models.dispatch import DocumentType
from bodega.schemas.external import ProductInfo


# ── Shared ──────────────────────────────────────────────────────────────────

class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notice(BaseModel):
    """Non-blocking inline message; the operator dismisses it and keeps working."""

    title: str
    message: str
    level: NoticeLevel = NoticeLevel.ERROR


class ToastVariant(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class Toast(BaseModel):
    title: str
    description: str | None = None
    variant: ToastVariant = ToastVariant.DEFAULT


# ── Dispatch check ──────────────────────────────────────────────────────────

class DispatchStep(str, Enum):
    INITIAL = "initial"
    LOADING = "loading"
    VERIFYING = "verifying"
    FINISHED = "finished"


class FinalizeAction(str, Enum):
    FINISH = "finish"
    EMAIL = "email"
    PDF = "pdf"


class LineStatus(str, Enum):
    EXACT = "exact"        # green
    SHORT = "short"        # amber: some but not all
    MISSING = "missing"    # red: nothing verified
    SURPLUS = "surplus"    # red: more than required


class VerificationItem(BaseModel):
    line_id: int
    item_code: str
    description: str = "N/A"
    barcode: str = ""
    required_quantity: float
    verified_quantity: float = 0
    display_verified_quantity: str = "0"
    is_manual_override: bool = False

    @property
    def is_complete(self) -> bool:
        return self.verified_quantity >= self.required_quantity

    @property
    def difference(self) -> float:
        return self.verified_quantity - self.required_quantity

    @property
    def status(self) -> LineStatus:
        if self.verified_quantity == self.required_quantity:
            return LineStatus.EXACT
        if self.verified_quantity > self.required_quantity:
            return LineStatus.SURPLUS
        if self.verified_quantity == 0:
            return LineStatus.MISSING
        return LineStatus.SHORT


class CurrentDocument(BaseModel):
    id: str
    type: DocumentType
    client_id: str
    client_tax_id: str = "N/A"
    client_name: str
    shipping_address: str | None = None
    date: str = ""
    erp_user: str | None = None
    container_id: int | None = None


class PromptKind(str, Enum):
    LINE_COMPLETE = "line_complete"  # accept: all units present / decline: manual entry
    ZERO_LINES = "zero_lines"        # accept: move to another container / decline: finalize anyway
    DISCREPANCY = "discrepancy"      # accept: finalize with discrepancies / decline: keep verifying


class Prompt(BaseModel):
    kind: PromptKind
    title: str
    message: str
    confirm_text: str
    cancel_text: str
    is_destructive: bool = False
    line_id: int | None = None
    action: FinalizeAction | None = None


class Redirect(str, Enum):
    CONTAINER_LIST = "container_list"


class DocumentOption(BaseModel):
    value: str
    label: str


class ContainerOption(BaseModel):
    id: int
    name: str


class DispatchCheckState(BaseModel):
    step: DispatchStep = DispatchStep.INITIAL
    is_busy: bool = False
    document_options: list[DocumentOption] = []
    current_document: CurrentDocument | None = None
    items: list[VerificationItem] = []
    last_scanned_code: str | None = None
    is_strict_mode: bool = False
    notice: Notice | None = None
    prompt: Prompt | None = None
    focus_line_id: int | None = None
    recipients: list[str] = []
    external_email: str = ""
    email_body: str = ""
    available_containers: list[ContainerOption] = []
    is_move_open: bool = False
    next_document_id: str | None = None
    redirect: Redirect | None = None


class Progress(BaseModel):
    completed: int
    total: int
    percentage: float
    text: str


# ── Receiving wizard ────────────────────────────────────────────────────────

class ReceivingStep(str, Enum):
    SELECT_PRODUCT = "select_product"
    SELECT_LOCATION = "select_location"
    CONFIRM_SUGGESTED = "confirm_suggested"
    CONFIRM_NEW = "confirm_new"
    FINISHED = "finished"


class LocationOption(BaseModel):
    id: int
    code: str
    path: str


class CreatedUnit(BaseModel):
    id: int
    unit_code: str
    product_id: str
    human_readable_id: str | None = None
    document_id: str | None = None
    location_id: int | None = None
    quantity: float = 1
    created_by: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ReceivingState(BaseModel):
    step: ReceivingStep = ReceivingStep.SELECT_PRODUCT
    is_submitting: bool = False
    product: ProductInfo | None = None
    suggested_locations: list[LocationOption] = []
    selected_location_id: int | None = None
    new_location_id: int | None = None
    location_label: str = ""
    quantity: str = "1"
    human_readable_id: str = ""
    document_id: str = ""
    save_as_default: bool = True
    last_created_unit: CreatedUnit | None = None


# ── API bodies ──────────────────────────────────────────────────────────────

class StartDispatchRequest(BaseModel):
    doc_id: str | None = None
    container_id: int | None = None


class SelectDocumentRequest(BaseModel):
    document_id: str = Field(min_length=1)
    container_id: int | None = None


class ScanRequest(BaseModel):
    code: str


class PromptResolution(BaseModel):
    accept: bool


class ManualQuantityRequest(BaseModel):
    text: str
    commit: bool = True


class StrictModeRequest(BaseModel):
    is_strict_mode: bool


class EmailOptionsRequest(BaseModel):
    recipients: list[str] = []
    external_email: str = ""
    body: str = ""


class FinalizeRequest(BaseModel):
    action: FinalizeAction = FinalizeAction.FINISH


class MoveDocumentRequest(BaseModel):
    target_container_id: int


class DispatchCheckView(BaseModel):
    state: DispatchCheckState
    progress: Progress
    is_verification_complete: bool
    has_discrepancy: bool
    toasts: list[Toast] = []
    receipt_pdf_base64: str | None = None


class SelectProductRequest(BaseModel):
    product_id: str = Field(min_length=1)


class LocationChoiceRequest(BaseModel):
    location_id: int


class ReceivingDetailsRequest(BaseModel):
    quantity: str | None = None
    human_readable_id: str | None = None
    document_id: str | None = None
    save_as_default: bool | None = None


class ReceivingView(BaseModel):
    state: ReceivingState
    toasts: list[Toast] = []
