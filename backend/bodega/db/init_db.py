"""Bodega WMS - Embedded database bootstrap (tables + default config rows)."""
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

import bodega.models  # noqa: F401  (registers every table on Base.metadata)
from bodega.db.base import Base
from bodega.services.settings_service import SettingsService

logger = logging.getLogger(__name__)


async def init_db(engine: AsyncEngine, session_maker: async_sessionmaker[AsyncSession]) -> None:
    """Create missing tables and seed warehouse_config. Safe to run on every start."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with session_maker() as session:
        await SettingsService.seed_defaults(session)
        await session.commit()
    logger.info("Database initialized (%s)", engine.url.render_as_string(hide_password=True))
