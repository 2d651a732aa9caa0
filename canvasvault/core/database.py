"""Database connection and session management.

This module handles all database connectivity for CanvasVault, including async
session management, connection pooling, and database lifecycle operations. It
uses SQLModel with async SQLAlchemy.

The module provides dependency injection functions for FastAPI routes to get
database sessions, ensuring proper session lifecycle management and cleanup.

Example:
    >>> from canvasvault.core.database import get_session
    >>> from fastapi import Depends
    >>>
    >>> @app.get("/items")
    >>> async def get_items(session: AsyncSession = Depends(get_session)):
    >>>     result = await session.execute(select(Item))
    >>>     return result.scalars().all()
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from canvasvault.core.config import get_settings

logger = logging.getLogger(__name__)

# Global engine instance (created once at startup)
_engine: AsyncEngine | None = None
_async_session_maker: async_sessionmaker | None = None


def get_engine() -> AsyncEngine:
    """Get or create the global async database engine.

    Returns:
        The global AsyncEngine instance for database connections.

    Note:
        Pool sizing only applies to server databases; SQLite URLs use the
        dialect's default pool.
    """
    global _engine

    if _engine is None:
        settings = get_settings()
        engine_kwargs: dict = {"echo": settings.db_echo, "pool_pre_ping": True}
        if not settings.database_url.startswith("sqlite"):
            engine_kwargs.update(pool_size=5, max_overflow=10)

        _engine = create_async_engine(settings.database_url, **engine_kwargs)

    return _engine


def get_session_maker() -> async_sessionmaker:
    """Get or create the global async session maker.

    Returns:
        An async_sessionmaker instance for creating database sessions.
    """
    global _async_session_maker

    if _async_session_maker is None:
        _async_session_maker = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    return _async_session_maker


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency injection function for database sessions.

    Yields:
        An AsyncSession instance for database operations.
    """
    session_maker = get_session_maker()
    async with session_maker() as session:
        yield session


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Create all tables defined by SQLModel models.

    Args:
        engine: Engine to use (defaults to the global engine).
    """
    # Import models so their tables are registered on SQLModel.metadata
    import canvasvault.models  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    logger.info("Database tables created")


async def close_db() -> None:
    """Dispose of the engine and its connection pool.

    Should be called during application shutdown.
    """
    global _engine, _async_session_maker

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_maker = None
        logger.info("Database connections closed")


async def check_db_connection() -> bool:
    """Check if the database is accessible and responsive.

    Returns:
        True if the database is accessible, False otherwise.
    """
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection check failed: {e}")
        return False

