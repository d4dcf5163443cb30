"""Async SQLAlchemy engine and session factory.

When DATABASE_URL is configured, provides:
- async engine for PostgreSQL via asyncpg
- async session factory used by PgStore (one session per transaction)
- FastAPI lifespan hook that checks the membership schema is migrated

When DATABASE_URL is None, engine and factory are None and the app
falls back to the in-memory store.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from sqlalchemy import Connection, inspect
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all table models."""


# --- Engine and session factory (None when no DATABASE_URL) ---

if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,  # log SQL in dev only
        pool_size=5,
        max_overflow=10,
        # Seat and invitation writes hold row locks; don't hand out a dead connection
        pool_pre_ping=True,
    )
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    engine = None
    async_session_factory = None


def missing_tables(sync_conn: Connection) -> list[str]:
    """Declared membership tables that the database doesn't have yet."""
    from app.db import tables  # noqa: F401  registers the rows on Base

    present = set(inspect(sync_conn).get_table_names())
    return sorted(name for name in Base.metadata.tables if name not in present)


@asynccontextmanager
async def lifespan_db():
    """Startup/shutdown hook for the database engine.

    Call from FastAPI's lifespan context manager.  Yields whether the
    membership schema is in place.  A database that isn't migrated yet
    is logged, not fatal, so /health keeps answering while
    `alembic upgrade head` runs.
    """
    if engine is None:
        logger.info("No DATABASE_URL configured, using in-memory store")
        yield True
        return

    logger.info("Database engine created: %s", engine.url)
    async with engine.connect() as conn:
        absent = await conn.run_sync(missing_tables)
    if absent:
        logger.warning(
            "Membership schema incomplete, missing tables: %s (run `alembic upgrade head`)",
            ", ".join(absent),
        )
    try:
        yield not absent
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")
