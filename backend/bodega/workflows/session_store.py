"""Bodega WMS - Redis persistence for workflow snapshots and operator preferences."""
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError

from bodega.core.exceptions import WorkflowBusyError
from bodega.core.redis import preferences_key, workflow_lock_key, workflow_session_key

logger = logging.getLogger(__name__)

StateT = TypeVar("StateT", bound=BaseModel)

COMMAND_LOCK_TTL_SECONDS = 60


class WorkflowSessionStore:
    """One snapshot per (workflow kind, operator). Snapshots expire after the TTL."""

    def __init__(self, client: redis.Redis, ttl_seconds: int):
        self.client = client
        self.ttl_seconds = ttl_seconds

    async def load(self, kind: str, user_id: str, model: type[StateT]) -> StateT:
        raw = await self.client.get(workflow_session_key(kind, user_id))
        if raw is None:
            return model()
        try:
            return model.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable %s session for user %s", kind, user_id)
            return model()

    async def save(self, kind: str, user_id: str, state: BaseModel) -> None:
        await self.client.set(workflow_session_key(kind, user_id), state.model_dump_json(), ex=self.ttl_seconds)

    async def clear(self, kind: str, user_id: str) -> None:
        await self.client.delete(workflow_session_key(kind, user_id))

    @asynccontextmanager
    async def command_lock(self, kind: str, user_id: str) -> AsyncIterator[None]:
        """
        Serialize commands per operator.

        Load, run and save happen under SET NX so two requests never act on the
        same snapshot; the second one gets WorkflowBusyError. The TTL frees the
        key if a worker dies while holding it.
        """
        key = workflow_lock_key(kind, user_id)
        token = uuid.uuid4().hex
        if not await self.client.set(key, token, nx=True, ex=COMMAND_LOCK_TTL_SECONDS):
            raise WorkflowBusyError("Hay otra operación en curso en esta sesión.", kind=kind)
        try:
            yield
        finally:
            if await self.client.get(key) == token:
                await self.client.delete(key)


class RedisPreferenceStore:

    def __init__(self, client: redis.Redis):
        self.client = client

    async def get_preferences(self, user_id: str, key: str) -> dict | None:
        raw = await self.client.get(preferences_key(user_id, key))
        return json.loads(raw) if raw else None

    async def save_preferences(self, user_id: str, key: str, value: dict) -> None:
        await self.client.set(preferences_key(user_id, key), json.dumps(value))
