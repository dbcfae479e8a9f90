"""Create missing tables at startup."""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from school_admin.db.session import Base

# Register every mapped class on Base.metadata before create_all.
import school_admin.auth.models  # noqa: F401
import school_admin.core.models  # noqa: F401

logger = logging.getLogger(__name__)


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables are in place: %s", ", ".join(sorted(Base.metadata.tables)))
