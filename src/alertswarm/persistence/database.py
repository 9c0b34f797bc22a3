"""Database connection and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from alertswarm.config import get_config

# Engines keyed by URL (relational and analytics may share one)
_engines: dict[str, AsyncEngine] = {}
_session_factories: dict[str, async_sessionmaker[AsyncSession]] = {}


def get_database_url() -> str:
    """Get the relational database URL from configuration."""
    return get_config().database.url


def get_analytics_database_url() -> str:
    """Get the analytics database URL, defaulting to the relational one."""
    database = get_config().database
    return database.analytics_url or database.url


def get_async_engine(url: Optional[str] = None) -> AsyncEngine:
    """Get or create the async engine for a database URL."""
    url = url or get_database_url()
    if url not in _engines:
        _engines[url] = create_async_engine(
            url,
            echo=False,
            poolclass=NullPool,  # Use NullPool for async to avoid connection issues
        )
    return _engines[url]


def get_async_session_factory(url: Optional[str] = None) -> async_sessionmaker[AsyncSession]:
    """Get the async session factory for a database URL."""
    url = url or get_database_url()
    if url not in _session_factories:
        _session_factories[url] = async_sessionmaker(
            get_async_engine(url),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factories[url]


@asynccontextmanager
async def get_async_session(url: Optional[str] = None) -> AsyncGenerator[AsyncSession, None]:
    """Get an async database session that commits on success."""
    factory = get_async_session_factory(url)
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(url: Optional[str] = None) -> None:
    """Create all tables."""
    engine = get_async_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_db() -> None:
    """Dispose all engines."""
    for engine in _engines.values():
        await engine.dispose()
    _engines.clear()
    _session_factories.clear()
