"""Async engine and session helpers.

The engine is created lazily from ``Settings.database_url`` and shared by
the whole process. Request handlers receive an ``AsyncSession`` through the
:func:`get_session` dependency; services open their own transactions on it.
"""

from __future__ import annotations

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from api.app.obs import add_query_logger
from config import get_settings

from ..models_tenant import Base

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Return a singleton async engine for the configured database."""
    global _engine, _sessionmaker
    if _engine is None:
        _engine = create_async_engine(get_settings().database_url, future=True)
        add_query_logger(_engine, "app")
        _sessionmaker = async_sessionmaker(
            _engine, expire_on_commit=False, class_=AsyncSession
        )
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    if _sessionmaker is None:
        get_engine()
    assert _sessionmaker is not None  # for type checkers
    return _sessionmaker


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session that is closed afterwards."""
    async with get_sessionmaker()() as session:
        yield session


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Create all tables; used in development and tests instead of Alembic."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None


async def create_test_session() -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Return a session factory and engine backed by in-memory SQLite.

    A static pool makes every connection share the same data, and the schema
    is created before returning.
    """

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    add_query_logger(engine, "test")
    await init_db(engine)
    session_factory = async_sessionmaker(
        engine, expire_on_commit=False, class_=AsyncSession
    )
    return session_factory, engine


__all__ = [
    "create_test_session",
    "dispose_engine",
    "get_engine",
    "get_session",
    "get_sessionmaker",
    "init_db",
]
