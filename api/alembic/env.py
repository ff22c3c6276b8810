"""Alembic environment for the table lifecycle schema.

The database URL comes from ``-x db_url=...`` when given, else from the
application settings. Async URLs (``+aiosqlite``, ``+asyncpg``) run through
an async engine online and are rewritten to their sync drivers when
emitting offline SQL.
"""

from __future__ import annotations

import asyncio
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import Connection, make_url
from sqlalchemy.exc import NoSuchModuleError
from sqlalchemy.ext.asyncio import async_engine_from_config

sys.path.append(str(Path(__file__).resolve().parents[2]))

from api.app.models_tenant import Base  # noqa: E402
from config import get_settings  # noqa: E402

ASYNC_TO_SYNC = {
    "postgresql+asyncpg": "postgresql+psycopg",
    "sqlite+aiosqlite": "sqlite",
}

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _get_url() -> str:
    override = context.get_x_argument(as_dictionary=True).get("db_url")
    return override or get_settings().database_url


def _coerce_sync_url(url: str) -> str:
    for async_driver, sync_driver in ASYNC_TO_SYNC.items():
        if url.startswith(async_driver):
            return sync_driver + url[len(async_driver):]
    return url


def _is_async_url(url: str) -> bool:
    """True when ``url`` names an async driver that is importable."""
    parsed = make_url(url)
    if parsed.drivername not in ASYNC_TO_SYNC:
        return False
    try:
        dialect = parsed.get_dialect()
    except NoSuchModuleError as exc:
        raise RuntimeError(
            "Async database driver not installed. Install it or pass a sync db_url."
        ) from exc
    if not getattr(dialect, "is_async", False):
        raise RuntimeError(
            "Async URL resolved to a synchronous dialect. Pass a sync db_url instead."
        )
    return True


def _options(dialect_name: str) -> dict:
    # SQLite cannot ALTER most constraints in place
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": dialect_name == "sqlite",
    }


def _migrate(connection: Connection) -> None:
    context.configure(connection=connection, **_options(connection.dialect.name))
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    url = _coerce_sync_url(_get_url())
    context.configure(
        url=url, literal_binds=True, **_options(make_url(url).get_backend_name())
    )
    with context.begin_transaction():
        context.run_migrations()


async def _migrate_async(url: str) -> None:
    engine = async_engine_from_config(
        {"sqlalchemy.url": url}, prefix="sqlalchemy.", poolclass=pool.NullPool
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_migrate)
    finally:
        await engine.dispose()


def run_migrations_online() -> None:
    url = _get_url()
    if _is_async_url(url):
        asyncio.run(_migrate_async(url))
        return
    engine = engine_from_config(
        {"sqlalchemy.url": url}, prefix="sqlalchemy.", poolclass=pool.NullPool
    )
    with engine.connect() as connection:
        _migrate(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
