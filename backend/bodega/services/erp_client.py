"""Bodega WMS - ERP document gateway (sales documents for dispatch checks)."""
import logging
from datetime import date, datetime
from typing import Any

import httpx

from bodega.config import get_settings
from bodega.core.exceptions import ErpUnavailableError
from bodega.models.dispatch import DocumentType
from bodega.schemas.external import ErpDocumentSummary, InvoiceData, InvoiceHeader, InvoiceLine

logger = logging.getLogger(__name__)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def parse_invoice(payload: dict[str, Any]) -> InvoiceData:
    """Map the ERP's FACTURA/LINEA column names onto InvoiceData."""
    header = payload.get("header") or {}
    lines = payload.get("lines") or []
    return InvoiceData(
        header=InvoiceHeader(
            document_id=_as_text(header.get("FACTURA")),
            document_type=DocumentType.from_erp_code(header.get("TIPO_DOCUMENTO")),
            client_id=_as_text(header.get("CLIENTE")),
            client_name=_as_text(header.get("NOMBRE_CLIENTE")),
            date=_as_text(header.get("FECHA")),
            shipping_address=header.get("DIRECCION_FACTURA"),
            erp_user=header.get("USUARIO"),
        ),
        lines=[
            InvoiceLine(
                line_id=int(line["LINEA"]),
                item_code=_as_text(line.get("ARTICULO")),
                description=line.get("DESCRIPCION"),
                quantity=float(line.get("CANTIDAD") or 0),
            )
            for line in lines
        ],
    )


class ErpClient:
    """Read-only HTTP client for the ERP. No retries: callers surface failures to the operator."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "ErpClient":
        settings = get_settings()
        return cls(settings.ERP_BASE_URL, settings.ERP_API_KEY, settings.HTTP_TIMEOUT_SECONDS)

    def _client(self) -> httpx.AsyncClient:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return httpx.AsyncClient(
            base_url=self.base_url, headers=headers, timeout=self.timeout, transport=self._transport
        )

    async def _get(self, path: str, params: dict | None = None) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.get(path, params=params)
        except httpx.RequestError as exc:
            logger.error("ERP request %s failed: %s", path, exc)
            raise ErpUnavailableError("No se pudo conectar con el ERP.", path=path) from exc

    async def search_documents(self, term: str) -> list[ErpDocumentSummary]:
        response = await self._get("/documents", params={"search": term})
        if response.status_code != 200:
            logger.error("ERP document search returned %s", response.status_code)
            raise ErpUnavailableError(
                f"El ERP respondió con estado {response.status_code}.", status=response.status_code
            )
        return [
            ErpDocumentSummary(
                id=_as_text(row.get("FACTURA")),
                type=DocumentType.from_erp_code(row.get("TIPO_DOCUMENTO")),
                client_id=_as_text(row.get("CLIENTE")),
                client_name=_as_text(row.get("NOMBRE_CLIENTE")),
                date=_as_text(row.get("FECHA")),
            )
            for row in response.json()
        ]

    async def get_invoice_data(self, document_id: str) -> InvoiceData | None:
        """None when the ERP does not know the document (404)."""
        response = await self._get(f"/documents/{document_id}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.error("ERP document %s returned %s", document_id, response.status_code)
            raise ErpUnavailableError(
                f"El ERP respondió con estado {response.status_code}.", status=response.status_code
            )
        return parse_invoice(response.json())
