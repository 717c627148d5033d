"""
SQLAlchemy async database client for the notification service.

Provides async connection management using SQLAlchemy Core with asyncpg.
Components never reach for the engine themselves: the entry point builds it
once and hands it to the stores (see core/notifications/store.py).
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .tables import metadata  # noqa: F401 - exported for Alembic

# Module-level engine (created on first use)
_engine: AsyncEngine | None = None


def _get_database_url() -> str:
    """
    Construct async database URL from DATABASE_URL.

    Hosted Postgres gives a plain postgresql:// URL; asyncpg needs
    postgresql+asyncpg://.
    """
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable must be set")

    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return database_url


def get_engine() -> AsyncEngine:
    """Get or create the async SQLAlchemy engine."""
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            _get_database_url(),
            echo=os.environ.get("SQL_ECHO", "").lower() == "true",
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,  # Recycle connections every 30 minutes
        )
    return _engine


@asynccontextmanager
async def get_connection(
    engine: AsyncEngine | None = None,
) -> AsyncGenerator[AsyncConnection, None]:
    """
    Get an async database connection from the pool.

    Usage:
        async with get_connection(engine) as conn:
            result = await conn.execute(select(registrations))
    """
    engine = engine or get_engine()
    async with engine.connect() as conn:
        yield conn


@asynccontextmanager
async def get_transaction(
    engine: AsyncEngine | None = None,
) -> AsyncGenerator[AsyncConnection, None]:
    """
    Get an async database connection with automatic transaction management.
    Commits on success, rolls back on exception.
    """
    engine = engine or get_engine()
    async with engine.begin() as conn:
        yield conn


async def close_engine() -> None:
    """Close the engine and all connections. Call on shutdown."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def is_configured() -> bool:
    """Check if database credentials are configured."""
    return bool(os.environ.get("DATABASE_URL"))


def get_sync_database_url() -> str:
    """
    Get synchronous database URL for Alembic and the APScheduler job store.

    Both run synchronously, so they need a psycopg2 URL.
    """
    database_url = os.environ.get("DATABASE_URL", "")

    if "postgresql+asyncpg://" in database_url:
        return database_url.replace("postgresql+asyncpg://", "postgresql://")
    if database_url.startswith("postgresql://"):
        return database_url

    raise ValueError("DATABASE_URL must be a postgresql:// URL")
