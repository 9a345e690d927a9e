"""Bodega WMS - Shapes returned by the ERP and product catalog."""
from pydantic import BaseModel

from bodega.models.dispatch import DocumentType


class ProductInfo(BaseModel):
    id: str
    description: str = ""
    barcode: str | None = None
    classification: str | None = None


class ErpDocumentSummary(BaseModel):
    id: str
    type: DocumentType
    client_id: str
    client_name: str
    date: str = ""

    @property
    def label(self) -> str:
        return f"[{self.type.value}] {self.id} - {self.client_name} ({self.client_id})"


class InvoiceHeader(BaseModel):
    document_id: str
    document_type: DocumentType
    client_id: str
    client_name: str
    date: str = ""
    shipping_address: str | None = None
    erp_user: str | None = None


class InvoiceLine(BaseModel):
    line_id: int
    item_code: str
    description: str | None = None
    quantity: float


class InvoiceData(BaseModel):
    header: InvoiceHeader
    lines: list[InvoiceLine]
