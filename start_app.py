# start_app.py
"""Bring the database schema up to date and serve the API with uvicorn.

``SKIP_DB_MIGRATIONS=1`` (or ``--skip-db-migrations``) leaves Alembic out
and lets the application create missing tables itself on startup.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

import uvicorn
from alembic import command
from alembic.config import Config
from dotenv import load_dotenv
from sqlalchemy.exc import OperationalError

import config

ALEMBIC_INI = Path(__file__).resolve().parent / "api" / "alembic.ini"


def _truthy(value: str | None) -> bool:
    return bool(value) and value.lower() not in {"0", "false", "no"}


def migrate(database_url: str | None = None) -> None:
    """Run ``alembic upgrade head`` against the configured database."""
    cfg = Config(str(ALEMBIC_INI))
    if database_url:
        cfg.cmd_opts = argparse.Namespace(x=[f"db_url={database_url}"])
    command.upgrade(cfg, "head")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tableflow API server")
    parser.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    parser.add_argument(
        "--skip-db-migrations",
        action="store_true",
        help="Start without running Alembic migrations",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = build_parser().parse_args(argv)

    skip = args.skip_db_migrations or _truthy(os.getenv("SKIP_DB_MIGRATIONS"))
    os.environ.setdefault("AUTO_CREATE_SCHEMA", "true" if skip else "false")
    config.get_settings.cache_clear()
    settings = config.get_settings()

    if not skip:
        try:
            migrate(settings.database_url)
        except OperationalError as exc:
            print(f"database migration failed: {exc.orig}", file=sys.stderr)
            raise SystemExit(1) from exc

    uvicorn.run(
        "api.app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
