"""Bodega WMS - Product catalog client (read-only)."""
import logging

import httpx

from bodega.config import get_settings
from bodega.core.exceptions import CatalogUnavailableError
from bodega.schemas.external import ProductInfo

logger = logging.getLogger(__name__)


class CatalogClient:

    def __init__(self, base_url: str, timeout: float = 15.0, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "CatalogClient":
        settings = get_settings()
        return cls(settings.CATALOG_BASE_URL, settings.HTTP_TIMEOUT_SECONDS)

    async def _get(self, path: str, params: dict | None = None) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                return await client.get(path, params=params)
        except httpx.RequestError as exc:
            logger.error("Catalog request %s failed: %s", path, exc)
            raise CatalogUnavailableError("No se pudo consultar el catálogo de productos.") from exc

    async def get_product(self, product_id: str) -> ProductInfo | None:
        response = await self._get(f"/products/{product_id}")
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise CatalogUnavailableError(
                f"El catálogo respondió con estado {response.status_code}.", status=response.status_code
            )
        return ProductInfo.model_validate(response.json())

    async def search_products(self, term: str) -> list[ProductInfo]:
        if len(term.strip()) < 2:
            return []
        response = await self._get("/products", params={"search": term.strip()})
        if response.status_code != 200:
            raise CatalogUnavailableError(
                f"El catálogo respondió con estado {response.status_code}.", status=response.status_code
            )
        return [ProductInfo.model_validate(row) for row in response.json()]
