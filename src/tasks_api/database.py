"""Async database setup using SQLAlchemy 2.0."""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from tasks_api.config import Settings


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the process-wide engine (and its connection pool)."""
    return create_async_engine(
        settings.sqlalchemy_url,
        pool_pre_ping=True,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database tables."""
    # Import models so their tables are registered on Base.metadata
    from tasks_api import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    """Close database connections."""
    await engine.dispose()
