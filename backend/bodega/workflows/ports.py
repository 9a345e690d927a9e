"""Bodega WMS - Collaborator interfaces injected into the workflow state machines."""
import logging
from typing import Any, Protocol

from bodega.models.dispatch import AssignmentStatus
from bodega.schemas.dispatch import DispatchLogCreate
from bodega.schemas.external import ErpDocumentSummary, InvoiceData, ProductInfo
from bodega.schemas.inventory import InventoryUnitCreate
from bodega.schemas.workflow import (
    ContainerOption,
    CreatedUnit,
    CurrentDocument,
    LocationOption,
    Toast,
    ToastVariant,
    VerificationItem,
)

logger = logging.getLogger(__name__)


class Actor(Protocol):
    id: Any
    name: str

    def has_permission(self, permission: str) -> bool: ...


class Feedback(Protocol):
    def toast(self, title: str, description: str | None = None, variant: ToastVariant = ToastVariant.DEFAULT) -> None: ...


class DocumentSource(Protocol):
    async def search_documents(self, term: str) -> list[ErpDocumentSummary]: ...

    async def get_invoice_data(self, document_id: str) -> InvoiceData | None: ...


class ProductCatalog(Protocol):
    async def get_product(self, product_id: str) -> ProductInfo | None: ...


class DispatchStore(Protocol):
    async def list_containers(self) -> list[ContainerOption]: ...

    async def get_next_document_in_container(self, container_id: int, current_document_id: str) -> str | None: ...

    async def move_assignment_to_container(self, document_id: str, target_container_id: int) -> None: ...

    async def update_assignment_status(self, document_id: str, status: AssignmentStatus) -> None: ...

    async def log_dispatch(self, log: DispatchLogCreate) -> dict: ...


class Notifier(Protocol):
    def trigger_event(self, event_name: str, payload: dict) -> Any: ...


class DispatchMailer(Protocol):
    async def send_dispatch_email(
        self,
        to: list[str],
        cc: str,
        body: str,
        document: CurrentDocument,
        items: list[VerificationItem],
        verified_by: str,
    ) -> None: ...


class ReceiptRenderer(Protocol):
    def render(self, document: CurrentDocument, items: list[VerificationItem], verified_by: str) -> bytes: ...


class PreferenceStore(Protocol):
    async def get_preferences(self, user_id: str, key: str) -> dict | None: ...

    async def save_preferences(self, user_id: str, key: str, value: dict) -> None: ...


class LocationDirectory(Protocol):
    async def get_suggested_locations(self, product_id: str) -> list[LocationOption]: ...

    async def get_location(self, location_id: int) -> LocationOption | None: ...

    async def get_location_path(self, location_id: int | None) -> str: ...


class UnitRegistry(Protocol):
    async def add_inventory_unit(self, unit: InventoryUnitCreate, created_by: str) -> CreatedUnit: ...

    async def assign_item_to_location(
        self, item_id: str, location_id: int, client_id: str | None, updated_by: str
    ) -> None: ...


class LabelRenderer(Protocol):
    def render(
        self,
        unit_code: str,
        product_id: str,
        description: str,
        human_readable_id: str | None,
        document_id: str | None,
        location_path: str,
        created_by: str | None,
    ) -> bytes: ...


class CollectingFeedback:
    """Feedback that keeps toasts for the response and logs destructive ones."""

    def __init__(self):
        self.toasts: list[Toast] = []

    def toast(self, title: str, description: str | None = None, variant: ToastVariant = ToastVariant.DEFAULT) -> None:
        if variant == ToastVariant.DESTRUCTIVE:
            logger.warning("%s: %s", title, description)
        self.toasts.append(Toast(title=title, description=description, variant=variant))
