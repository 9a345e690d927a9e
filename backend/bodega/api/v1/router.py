"""Bodega WMS - API v1 router aggregation."""
from fastapi import APIRouter

from bodega.api.v1.endpoints import (
    containers,
    dispatch_check,
    dispatch_logs,
    inventory,
    item_locations,
    locations,
    locks,
    receiving,
    settings,
    units,
)

api_router = APIRouter()

api_router.include_router(locations.router, prefix="/locations", tags=["locations"])
api_router.include_router(locks.router, prefix="/locks", tags=["locks"])
api_router.include_router(item_locations.router, prefix="/item-locations", tags=["item-locations"])
api_router.include_router(units.router, prefix="/units", tags=["units"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(containers.router, prefix="/containers", tags=["dispatch-center"])
api_router.include_router(dispatch_logs.router, prefix="/dispatch-logs", tags=["dispatch-logs"])
api_router.include_router(dispatch_check.router, prefix="/dispatch-check", tags=["dispatch-check"])
api_router.include_router(receiving.router, prefix="/receiving", tags=["receiving"])
api_router.include_router(settings.router, prefix="/settings", tags=["settings"])
