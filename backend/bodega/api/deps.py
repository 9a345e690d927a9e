"""Bodega WMS - FastAPI dependencies (auth, DB, permissions, collaborators)."""
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from bodega.config import get_settings
from bodega.core.redis import get_redis
from bodega.db.session import get_db
from bodega.services.catalog_client import CatalogClient
from bodega.services.email_service import EmailService
from bodega.services.erp_client import ErpClient
from bodega.services.notification_service import NotificationService
from bodega.workflows.dispatch_check import (
    PERM_DISPATCH_CHECK_EXTERNAL_EMAIL,
    PERM_DISPATCH_CHECK_MANUAL_OVERRIDE,
    PERM_DISPATCH_CHECK_SWITCH_MODE,
    PERM_DISPATCH_CHECK_USE,
)
from bodega.workflows.receiving import PERM_RECEIVING_USE
from bodega.workflows.session_store import RedisPreferenceStore, WorkflowSessionStore

DbSession = Annotated[AsyncSession, Depends(get_db)]

# ── Permission keys ─────────────────────────────────────────────────────────
# Use these string constants everywhere; no raw strings in route files.
PERM_WAREHOUSE_ACCESS = "warehouse:access"
PERM_LOCATIONS_MANAGE = "warehouse:locations:manage"
PERM_LOCKS_FORCE_RELEASE = "warehouse:locks:force-release"
PERM_ITEM_ASSIGNMENT = "warehouse:item-assignment:create"
PERM_UNITS_MANAGE = "warehouse:units:manage"
PERM_INVENTORY_UPDATE = "warehouse:inventory:update"
PERM_DISPATCH_CENTER = "warehouse:dispatch-center:use"
PERM_DISPATCH_LOGS_READ = "warehouse:dispatch-logs:read"
PERM_SETTINGS_MANAGE = "admin:settings:warehouse"

# ── Role → permissions matrix ────────────────────────────────────────────────
_OPERATOR_PERMS = {
    PERM_WAREHOUSE_ACCESS,
    PERM_ITEM_ASSIGNMENT,
    PERM_DISPATCH_CHECK_USE,
    PERM_RECEIVING_USE,
}

_SUPERVISOR_PERMS = _OPERATOR_PERMS | {
    PERM_LOCATIONS_MANAGE,
    PERM_UNITS_MANAGE,
    PERM_INVENTORY_UPDATE,
    PERM_DISPATCH_CENTER,
    PERM_DISPATCH_LOGS_READ,
    PERM_DISPATCH_CHECK_SWITCH_MODE,
    PERM_DISPATCH_CHECK_MANUAL_OVERRIDE,
    PERM_DISPATCH_CHECK_EXTERNAL_EMAIL,
}

_ADMIN_PERMS = _SUPERVISOR_PERMS | {
    PERM_LOCKS_FORCE_RELEASE,
    PERM_SETTINGS_MANAGE,
}

PERMISSION_MATRIX: dict[str, set[str]] = {
    "ADMIN": _ADMIN_PERMS,
    "SUPERVISOR": _SUPERVISOR_PERMS,
    "OPERATOR": _OPERATOR_PERMS,
}


class CurrentUser:
    """User identity from the JWT; set on request.state by the middleware."""

    def __init__(self, id: str, name: str, role: str, email: str | None = None):
        self.id = id
        self.name = name
        self.email = email
        self.role = role

    def has_permission(self, permission: str) -> bool:
        return permission in PERMISSION_MATRIX.get(self.role, set())


async def get_current_user(request: Request) -> CurrentUser | None:
    """Extract user from request.state (populated by auth middleware)."""
    return getattr(request.state, "user", None)


async def require_auth(request: Request) -> CurrentUser:
    """Require authenticated user. Raise 401 if not logged in."""
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


def require_permission(permission: str):
    """Dependency factory: require specific RBAC permission."""

    async def _check(user: CurrentUser = Depends(require_auth)) -> CurrentUser:
        if not user.has_permission(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: '{permission}' required. Your role: {user.role}",
            )
        return user

    return _check


# ── External collaborators (overridden in tests) ────────────────────────────

def get_erp_client() -> ErpClient:
    return ErpClient.from_settings()


def get_catalog_client() -> CatalogClient:
    return CatalogClient.from_settings()


def get_email_service() -> EmailService:
    return EmailService.from_settings()


def get_notifier() -> NotificationService:
    return NotificationService()


async def get_session_store() -> WorkflowSessionStore:
    return WorkflowSessionStore(await get_redis(), get_settings().WORKFLOW_SESSION_TTL_SECONDS)


async def get_preference_store() -> RedisPreferenceStore:
    return RedisPreferenceStore(await get_redis())
