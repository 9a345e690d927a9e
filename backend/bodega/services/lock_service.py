"""Bodega WMS - Advisory locks for guided-wizard sessions on locations and containers."""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bodega.db.base import utcnow
from bodega.models.dispatch import DispatchContainer
from bodega.models.location import Location
from bodega.schemas.location import ActiveLock, LockEntityType, LockResult

logger = logging.getLogger(__name__)

_MODELS = {
    LockEntityType.LOCATION: Location,
    LockEntityType.CONTAINER: DispatchContainer,
}


def _label(entity: Location | DispatchContainer) -> str:
    if isinstance(entity, Location):
        return f"{entity.name} ({entity.code})"
    return entity.name


class LockService:
    """
    Cooperative locking. Sessions check is_locked before entering a subtree or
    container; nothing in the database enforces mutual exclusion.
    """

    @staticmethod
    async def _load(db: AsyncSession, ids: list[int], entity_type: LockEntityType):
        model = _MODELS[entity_type]
        result = await db.execute(select(model).where(model.id.in_(ids)))
        return list(result.scalars().all())

    @staticmethod
    async def lock_entities(
        db: AsyncSession,
        ids: list[int],
        entity_type: LockEntityType,
        user_id: str,
        user_name: str,
    ) -> LockResult:
        """Claim every id or none; re-locking your own entities is a no-op success."""
        entities = await LockService._load(db, ids, entity_type)
        for entity in entities:
            if entity.is_locked and entity.locked_by_user_id != user_id:
                logger.info(
                    "Lock refused on %s %s: held by %s", entity_type.value, entity.id, entity.locked_by
                )
                return LockResult(locked=False, locked_by=entity.locked_by)

        now = utcnow()
        for entity in entities:
            entity.is_locked = True
            entity.locked_by = user_name
            entity.locked_by_user_id = user_id
            entity.locked_at = now
        await db.flush()
        logger.info("%s lock taken on %s by %s", entity_type.value, [e.id for e in entities], user_name)
        return LockResult(locked=True, locked_by=user_name)

    @staticmethod
    async def release_locks(db: AsyncSession, ids: list[int], entity_type: LockEntityType, user_id: str) -> int:
        """Release only the locks held by user_id. Returns how many were released."""
        released = 0
        for entity in await LockService._load(db, ids, entity_type):
            if entity.is_locked and entity.locked_by_user_id == user_id:
                entity.is_locked = False
                entity.locked_by = None
                entity.locked_by_user_id = None
                entity.locked_at = None
                released += 1
        await db.flush()
        return released

    @staticmethod
    async def force_release_lock(db: AsyncSession, id: int, entity_type: LockEntityType) -> bool:
        """Administrative override for abandoned locks."""
        entities = await LockService._load(db, [id], entity_type)
        if not entities:
            return False
        entity = entities[0]
        logger.warning("Force-releasing %s lock on %s (held by %s)", entity_type.value, id, entity.locked_by)
        entity.is_locked = False
        entity.locked_by = None
        entity.locked_by_user_id = None
        entity.locked_at = None
        await db.flush()
        return True

    @staticmethod
    async def get_active_locks(db: AsyncSession) -> list[ActiveLock]:
        locks: list[ActiveLock] = []
        for entity_type, model in _MODELS.items():
            result = await db.execute(select(model).where(model.is_locked.is_(True)).order_by(model.locked_at))
            for entity in result.scalars().all():
                locks.append(
                    ActiveLock(
                        id=entity.id,
                        entity_type=entity_type,
                        label=_label(entity),
                        locked_by=entity.locked_by,
                        locked_by_user_id=entity.locked_by_user_id,
                        locked_at=entity.locked_at,
                    )
                )
        return locks
