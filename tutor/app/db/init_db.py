"""Database initialization utilities."""

from sqlalchemy.ext.asyncio import AsyncEngine

from tutor.app.db.async_session import get_async_engine
from tutor.app.db.base import Base

# Registers the tables on Base.metadata
from tutor.app.db import models  # noqa: F401


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Create all tables that do not exist yet."""
    if engine is None:
        engine = get_async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
