"""Bodega WMS - API response helpers and the domain-error handler."""
import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from bodega.core.exceptions import WarehouseError

logger = logging.getLogger(__name__)


def success_response(data, meta: dict | None = None) -> dict:
    return {"data": data, "error": None, "meta": meta}


def error_response(
    code: str,
    message: str,
    title: str | None = None,
    field_errors: list[dict] | None = None,
    meta: dict | None = None,
) -> dict:
    return {
        "data": None,
        "error": {
            "code": code,
            "message": message,
            "title": title,
            "field_errors": field_errors or [],
        },
        "meta": meta,
    }


async def warehouse_error_handler(request: Request, exc: WarehouseError) -> JSONResponse:
    """Map a domain error to the {data, error, meta} envelope with its status code."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    field_errors = [{"field": k, "value": v} for k, v in exc.details.items()]
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, exc.title, field_errors),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    field_errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response("VALIDATION_ERROR", "Datos inválidos.", "Datos Inválidos", field_errors),
    )
