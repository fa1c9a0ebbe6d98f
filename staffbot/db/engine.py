"""PostgreSQL access for the staff bot.

Repositories and the audit subscriber open one short-lived session per
operation from ``async_session_factory``. The engine is created at
import time from ``settings.db`` and disposed by ``db_lifespan``.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from staffbot.config import DatabaseSettings, settings

logger = logging.getLogger(__name__)


def build_engine(db: DatabaseSettings) -> AsyncEngine:
    return create_async_engine(
        db.database_url,
        echo=db.echo_sql,
        pool_size=db.pool_size,
        max_overflow=db.pool_overflow,
        pool_pre_ping=True,
    )


engine: AsyncEngine = build_engine(settings.db)

# Rows stay readable after commit: repositories return snapshots built from them
async_session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(engine, expire_on_commit=False)


@contextlib.asynccontextmanager
async def db_lifespan() -> AsyncGenerator[None, None]:
    """Check the database is reachable for the lifetime of the app.

    Development databases get missing tables created from the models;
    production schemas come from Alembic revisions only.
    """
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        if not settings.is_production:
            from staffbot.models import Base

            await conn.run_sync(Base.metadata.create_all)
    logger.info("Database reachable (create_all=%s)", not settings.is_production)

    try:
        yield
    finally:
        await engine.dispose()
