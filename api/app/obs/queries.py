"""Slow statement reporting for SQLAlchemy engines."""

from __future__ import annotations

import hashlib
import logging
import time

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncEngine

from config import get_settings

from ..routes_metrics import db_slow_queries_total

logger = logging.getLogger("obs")

MAX_SQL_CHARS = 200


def _shorten(statement: str) -> str:
    sql = " ".join(statement.split())
    return sql if len(sql) <= MAX_SQL_CHARS else sql[: MAX_SQL_CHARS - 3] + "..."


def add_query_logger(
    engine: Engine | AsyncEngine, label: str, threshold_ms: int | None = None
) -> None:
    """Warn about statements on ``engine`` slower than ``threshold_ms``.

    Parameters are never logged, only a short digest so repeated calls with
    the same bind values can be grouped. The threshold defaults to the
    ``db_slow_query_ms`` setting.
    """
    sync_engine = getattr(engine, "sync_engine", engine)
    limit_ms = threshold_ms if threshold_ms is not None else get_settings().db_slow_query_ms

    @event.listens_for(sync_engine, "before_cursor_execute")
    def _start(conn, cursor, statement, parameters, context, executemany):
        context._started_at = time.perf_counter()

    @event.listens_for(sync_engine, "after_cursor_execute")
    def _finish(conn, cursor, statement, parameters, context, executemany):
        elapsed_ms = (time.perf_counter() - context._started_at) * 1000
        if elapsed_ms <= limit_ms:
            return
        db_slow_queries_total.labels(db=label).inc()
        logger.warning(
            "slow query %dms db=%s sql=%s params=%s",
            int(elapsed_ms),
            label,
            _shorten(statement),
            hashlib.sha256(repr(parameters).encode()).hexdigest()[:8],
        )
