"""In-memory stand-ins for the workflow ports and the Redis client."""
from datetime import datetime, timezone

from bodega.core.exceptions import ErpUnavailableError, WarehouseError
from bodega.models.dispatch import AssignmentStatus, DocumentType
from bodega.schemas.dispatch import DispatchLogCreate
from bodega.schemas.external import ErpDocumentSummary, InvoiceData, InvoiceHeader, InvoiceLine, ProductInfo
from bodega.schemas.workflow import ContainerOption


def make_invoice(document_id: str, lines: list[tuple[int, str, float]], doc_type: DocumentType = DocumentType.FACTURA):
    return InvoiceData(
        header=InvoiceHeader(
            document_id=document_id,
            document_type=doc_type,
            client_id="C-77",
            client_name="Ferretería El Clavo",
            date="2026-10-01",
            shipping_address="Calle 5 #12",
            erp_user="erp1",
        ),
        lines=[InvoiceLine(line_id=lid, item_code=code, quantity=qty) for lid, code, qty in lines],
    )


class FakeDocuments:

    def __init__(self, invoices: dict[str, InvoiceData] | None = None):
        self.invoices = invoices or {}
        self.fail = False
        self.searches: list[str] = []

    async def search_documents(self, term: str) -> list[ErpDocumentSummary]:
        self.searches.append(term)
        if self.fail:
            raise ErpUnavailableError("No se pudo conectar con el ERP.")
        return [
            ErpDocumentSummary(
                id=doc_id,
                type=data.header.document_type,
                client_id=data.header.client_id,
                client_name=data.header.client_name,
            )
            for doc_id, data in self.invoices.items()
            if term.lower() in doc_id.lower()
        ]

    async def get_invoice_data(self, document_id: str) -> InvoiceData | None:
        if self.fail:
            raise ErpUnavailableError("No se pudo conectar con el ERP.")
        return self.invoices.get(document_id)


class FakeCatalog:

    def __init__(self, products: list[ProductInfo] | None = None):
        self.products = {p.id: p for p in products or []}

    async def get_product(self, product_id: str) -> ProductInfo | None:
        return self.products.get(product_id)

    async def search_products(self, term: str) -> list[ProductInfo]:
        return [p for p in self.products.values() if term.lower() in p.description.lower()]


class FakeDispatchStore:

    def __init__(self, containers: list[ContainerOption] | None = None):
        self.containers = containers or []
        self.next_documents: dict[int, str] = {}
        self.logs: list[DispatchLogCreate] = []
        self.statuses: dict[str, AssignmentStatus] = {}
        self.moves: list[tuple[str, int]] = []
        self.fail_log = False
        self.fail_status = False

    async def list_containers(self) -> list[ContainerOption]:
        return list(self.containers)

    async def get_next_document_in_container(self, container_id: int, current_document_id: str) -> str | None:
        return self.next_documents.get(container_id)

    async def move_assignment_to_container(self, document_id: str, target_container_id: int) -> None:
        self.moves.append((document_id, target_container_id))

    async def update_assignment_status(self, document_id: str, status: AssignmentStatus) -> None:
        if self.fail_status:
            raise WarehouseError("Ruta no disponible.")
        self.statuses[document_id] = status

    async def log_dispatch(self, log: DispatchLogCreate) -> dict:
        if self.fail_log:
            raise WarehouseError("Base de datos no disponible.")
        self.logs.append(log)
        return {
            "id": len(self.logs),
            "verified_at": datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc).isoformat(),
            **log.model_dump(mode="json"),
        }


class FakeNotifier:

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def trigger_event(self, event_name: str, payload: dict) -> bool:
        self.events.append((event_name, payload))
        return True


class FakeMailer:

    def __init__(self):
        self.sent: list[dict] = []
        self.fail = False

    async def send_dispatch_email(self, to, cc, body, document, items, verified_by) -> None:
        if self.fail:
            raise WarehouseError("Correo no enviado.")
        self.sent.append({"to": to, "cc": cc, "body": body, "document_id": document.id, "verified_by": verified_by})


class FakeReceipts:

    def __init__(self):
        self.rendered: list[str] = []

    def render(self, document, items, verified_by) -> bytes:
        self.rendered.append(document.id)
        return b"%PDF-1.4 fake"


class FakePreferences:

    def __init__(self):
        self.values: dict[tuple[str, str], dict] = {}

    async def get_preferences(self, user_id: str, key: str) -> dict | None:
        return self.values.get((user_id, key))

    async def save_preferences(self, user_id: str, key: str, value: dict) -> None:
        self.values[(user_id, key)] = value


class FakeRedis:
    """The redis.asyncio calls the session stores make (get, SET with EX/NX, delete)."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str):
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False):
        if nx and key in self.data:
            return None
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys: str):
        return sum(1 for key in keys if self.data.pop(key, None) is not None)


class FakeLabels:

    def __init__(self):
        self.calls: list[dict] = []

    def render(self, **kwargs) -> bytes:
        self.calls.append(kwargs)
        return b"%PDF-1.4 label"


