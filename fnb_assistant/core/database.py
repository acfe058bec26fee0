"""
Async SQLAlchemy engine and session management.

The engine and session factory are built once by the application factory and
injected into the tool executor. Every tool call opens its own session.
"""

import logging
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from .config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base. All models inherit from this."""
    pass


def normalize_url(url: str) -> str:
    # Ensure we're using asyncpg driver for PostgreSQL
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def create_engine(settings: Settings) -> AsyncEngine:
    url = normalize_url(settings.database_url)

    # SQLite doesn't support pool_size / max_overflow
    is_sqlite = "sqlite" in url
    kwargs = {
        "echo": settings.debug,
    }
    if not is_sqlite:
        kwargs["pool_size"] = 20
        kwargs["max_overflow"] = 10
        kwargs["pool_pre_ping"] = True

    engine = create_async_engine(url, **kwargs)
    logger.info("Database engine created (%s)", "sqlite" if is_sqlite else "postgresql")
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables. Local/dev only; production schema is managed upstream."""
    async with engine.begin() as conn:
        # Import all models so they register with Base.metadata
        from .. import models  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/verified")


async def close_db(engine: AsyncEngine) -> None:
    await engine.dispose()
    logger.info("Database engine disposed")
