"""
Bodega WMS - FastAPI ASGI Entry Point
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from bodega.api.v1.router import api_router
from bodega.config import get_settings
from bodega.core.auth_middleware import JWTAuthMiddleware
from bodega.core.exceptions import WarehouseError
from bodega.core.redis import close_redis
from bodega.core.responses import request_validation_handler, warehouse_error_handler
from bodega.db.init_db import init_db
from bodega.db.schema_audit import audit_schema
from bodega.db.session import async_session_maker, engine

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create/seed the embedded database and audit the schema; close Redis on shutdown."""
    if settings.DATABASE_URL.startswith("sqlite"):
        await init_db(engine, async_session_maker)
    if settings.RUN_SCHEMA_AUDIT:
        await audit_schema(engine)
    yield
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Bodega WMS",
    description="Warehouse locations, receiving and dispatch verification",
    version="0.1.0",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
    openapi_url="/api/v1/openapi.json",
    lifespan=lifespan,
)
app.add_exception_handler(WarehouseError, warehouse_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_middleware(JWTAuthMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health():
    """Health check for load balancers and Docker."""
    return {"status": "ok", "service": "bodega-wms"}
