"""
rin.storage.database - Database Configuration

Provides database connection and session management:
- get_engine: Create SQLAlchemy async engine
- get_sessionmaker: Create async session factory
- init_db: Create all tables
"""

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from rin.storage.orm import Base

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///rin.db"


def get_engine(database_url: str | None = None, echo: bool = False) -> AsyncEngine:
    """
    Create SQLAlchemy async engine.

    Args:
        database_url: Database connection string (defaults to a local SQLite file)
        echo: Whether to echo SQL queries (useful for debugging)

    Returns:
        AsyncEngine for the given URL
    """
    url = database_url or DEFAULT_DATABASE_URL

    kwargs: dict[str, Any] = {"echo": echo}
    if not url.startswith("sqlite"):
        # SQLite uses a static/null pool; sizing only applies to server databases
        kwargs.update(pool_pre_ping=True, pool_size=10, max_overflow=20)

    return create_async_engine(url, **kwargs)


def get_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create async session factory.

    Args:
        engine: SQLAlchemy async engine

    Returns:
        async_sessionmaker for creating database sessions
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Initialize database (create all tables).

    Args:
        engine: SQLAlchemy async engine
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
