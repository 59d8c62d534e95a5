# src/skillboard/db/session.py

"""Async engine, session factory and the FastAPI session dependency."""

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from skillboard import config
from skillboard.db.models import Base

logger = logging.getLogger(__name__)


def _create_engine(url: str) -> AsyncEngine:
    """Build the engine; pool options only apply to server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=config.DB_ECHO)

    return create_async_engine(
        url,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=config.DB_POOL_RECYCLE,
        echo=config.DB_ECHO,
    )


engine = _create_engine(config.DATABASE_URL)

# Commits are explicit; objects stay loaded after commit.
AsyncSessionLocal = async_sessionmaker(
    bind=engine, autoflush=False, expire_on_commit=False
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            logger.warning("Rolling back request session after error")
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create any missing tables. Existing tables are left untouched."""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error("Failed to create tables: %s", e, exc_info=True)
        raise
    logger.info("Database tables ready")
