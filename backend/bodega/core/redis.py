"""Bodega WMS - Redis client for workflow sessions and operator preferences."""
from typing import Optional

import redis.asyncio as redis

from bodega.config import get_settings

_settings = get_settings()
_redis: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get Redis connection (application DB 1)."""
    global _redis
    if _redis is None:
        _redis = redis.from_url(_settings.REDIS_URL, decode_responses=True)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def workflow_session_key(kind: str, user_id: str) -> str:
    """Snapshot key for one operator's workflow: workflow:{kind}:{user_id}"""
    return f"workflow:{kind}:{user_id}"


def preferences_key(user_id: str, key: str) -> str:
    """preferences:{user_id}:{key}"""
    return f"preferences:{user_id}:{key}"


def workflow_lock_key(kind: str, user_id: str) -> str:
    """Held while one request runs a command on the snapshot: workflow-lock:{kind}:{user_id}"""
    return f"workflow-lock:{kind}:{user_id}"
