"""Bodega WMS - JWT access tokens (issued by the identity provider, verified here)."""
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from bodega.config import get_settings

settings = get_settings()


def create_access_token(subject: str | Any, name: str, role: str, email: str | None = None) -> str:
    """Used by tests and local tooling; production tokens come from the identity provider."""
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.JWT_ACCESS_TOKEN_TTL_MINUTES)
    payload = {
        "sub": str(subject),
        "name": name,
        "role": role,
        "exp": expire,
        "iat": now,
        "type": "access",
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
