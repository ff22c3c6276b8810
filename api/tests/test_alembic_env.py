import importlib
import logging.config
import types

import alembic
import pytest
from sqlalchemy.exc import NoSuchModuleError

import config as app_config


class _Nothing:
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def _load_env(monkeypatch, x_args=None):
    """Import the migration env offline against a recording context."""
    recorded = {}
    fake_context = types.SimpleNamespace(
        config=types.SimpleNamespace(config_file_name=""),
        get_x_argument=lambda as_dictionary=True: dict(x_args or {}),
        is_offline_mode=lambda: True,
        configure=lambda **kwargs: recorded.update(kwargs),
        begin_transaction=_Nothing,
        run_migrations=lambda: recorded.setdefault("ran", True),
    )
    monkeypatch.setattr(alembic, "context", fake_context)
    monkeypatch.setattr(logging.config, "fileConfig", lambda *a, **k: None)
    monkeypatch.setattr(
        app_config,
        "get_settings",
        lambda: types.SimpleNamespace(database_url="sqlite+aiosqlite:///./tableflow.db"),
    )
    module = importlib.reload(importlib.import_module("api.alembic.env"))
    return module, recorded


@pytest.fixture
def env(monkeypatch):
    module, _ = _load_env(monkeypatch)
    return module


def test_offline_sql_uses_settings_url_with_sync_driver(monkeypatch):
    module, recorded = _load_env(monkeypatch)
    assert recorded["ran"] is True
    assert recorded["url"] == "sqlite:///./tableflow.db"
    assert recorded["literal_binds"] is True
    assert recorded["render_as_batch"] is True
    assert recorded["target_metadata"] is module.target_metadata
    assert {"tables", "table_sessions", "orders", "order_items"} <= set(
        module.target_metadata.tables
    )


def test_x_argument_overrides_settings(monkeypatch):
    _, recorded = _load_env(
        monkeypatch, {"db_url": "postgresql+asyncpg://u@db/tableflow"}
    )
    assert recorded["url"] == "postgresql+psycopg://u@db/tableflow"
    assert recorded["render_as_batch"] is False


def test_sync_urls_pass_through(env):
    assert env._coerce_sync_url("sqlite:///x.db") == "sqlite:///x.db"
    assert env._coerce_sync_url("postgresql://u@h/db") == "postgresql://u@h/db"


def test_async_detection(env):
    assert env._is_async_url("sqlite+aiosqlite:///:memory:") is True
    assert env._is_async_url("sqlite:///:memory:") is False
    assert env._is_async_url("postgresql://localhost/test") is False


def test_missing_async_driver_is_reported(env, monkeypatch):
    def boom():
        raise NoSuchModuleError("asyncpg")

    monkeypatch.setattr(
        env,
        "make_url",
        lambda _: types.SimpleNamespace(drivername="postgresql+asyncpg", get_dialect=boom),
    )
    with pytest.raises(RuntimeError, match="Async database driver not installed"):
        env._is_async_url("postgresql+asyncpg://localhost/test")


def test_sync_dialect_behind_async_name_is_rejected(env, monkeypatch):
    monkeypatch.setattr(
        env,
        "make_url",
        lambda _: types.SimpleNamespace(
            drivername="sqlite+aiosqlite",
            get_dialect=lambda: types.SimpleNamespace(is_async=False),
        ),
    )
    with pytest.raises(RuntimeError, match="synchronous dialect"):
        env._is_async_url("sqlite+aiosqlite:///x.db")
