"""Database connection and session management.

The engine is created on demand from ``Settings.database_url``; when no URL
is configured the service runs on the in-memory store and never touches
this module.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from cricket_auction.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for ``settings.database_url``."""
    if not settings.database_url:
        raise ValueError("database_url is not configured")

    if settings.database_url.startswith("sqlite"):
        # sqlite: single shared connection, no pool sizing
        return create_async_engine(
            settings.database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=False,
            future=True,
        )

    return create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        echo=False,
        future=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to ``engine``."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Context manager for a unit of work.

    Usage:
        async with session_scope(factory) as session:
            result = await session.execute(...)
    """
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: AsyncEngine) -> None:
    """Create auction tables if they do not exist."""
    from cricket_auction.auction.db_models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    """Close database connection pool."""
    await engine.dispose()
