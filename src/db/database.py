"""Async SQLAlchemy engine and the unit-of-work used by compliance entry points."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.config import settings

logger = structlog.get_logger()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def compliance_session() -> AsyncIterator[AsyncSession]:
    """One database transaction around a compliance operation.

    Commits when the block exits normally. The SQL store only flushes, so a
    transaction record written by the caller and the screening logs, cases and
    profiles written by the engine land together or not at all.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            logger.warning("compliance_session_rolled_back", exc_info=True)
            raise


async def init_db() -> None:
    """Create the compliance tables (and the collaborator tables when absent)."""
    from src.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_initialized", tables=sorted(Base.metadata.tables))


async def check_db() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.warning("database_check_failed", exc_info=True)
        return False


async def dispose_db() -> None:
    await engine.dispose()
