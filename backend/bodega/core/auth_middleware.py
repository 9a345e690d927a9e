"""Bodega WMS - JWT auth middleware: extracts the bearer token, sets request.state.user."""
import logging
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from bodega.api.deps import CurrentUser
from bodega.core.security import decode_token

logger = logging.getLogger(__name__)


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """Extract JWT from the Authorization header and populate request.state.user."""

    PUBLIC_PATHS = {
        "/health",
        "/api/v1/docs",
        "/api/v1/redoc",
        "/api/v1/openapi.json",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.user = None

        path = request.url.path
        if path in self.PUBLIC_PATHS or path.startswith("/api/v1/docs") or path.startswith("/api/v1/redoc"):
            return await call_next(request)

        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            payload = decode_token(auth[7:].strip())
            if payload and payload.get("type") == "access" and payload.get("sub"):
                request.state.user = CurrentUser(
                    id=str(payload["sub"]),
                    name=payload.get("name") or payload.get("email") or "unknown",
                    email=payload.get("email"),
                    role=payload.get("role", "OPERATOR"),
                )
            else:
                logger.info("Rejected bearer token on %s", path)

        return await call_next(request)
