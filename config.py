# config.py

"""Application configuration utilities.

Values are primarily loaded from ``config.json`` and may be overridden by
environment variables. The :func:`get_settings` helper merges the two sources
and caches the result.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BAR_CATEGORIES = [
    "Beverages",
    "Drinks",
    "Bar",
    "Cocktails",
    "Mocktails",
    "Wine",
    "Beer",
    "Spirits",
]


class Settings(BaseSettings):
    """Application settings merged from JSON and environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./tableflow.db"
    auto_create_schema: bool = True

    secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 12 * 60

    heartbeat_interval_sec: int = 30
    subscriber_queue_max: int = 100
    max_conn_per_ip: int = 20

    # Kitchen display policy; both values are tunable per deployment.
    urgent_threshold_minutes: int = 10
    bar_categories: list[str] = DEFAULT_BAR_CATEGORIES

    qr_order_requires_confirmation: bool = True
    otp_help_delay_minutes: int = 2
    cleaning_alert_minutes: int = 10

    stock_service_url: str | None = None
    stock_service_timeout_sec: float = 3.0

    log_level: str = "INFO"
    log_sample_2xx: float = 0.1
    db_slow_query_ms: int = 200


def _decode_env(value: str):
    """Decode JSON lists/objects passed through the environment."""
    if value[:1] in ("[", "{"):
        return json.loads(value)
    return value


# Cached singleton to avoid repeated file reads
@lru_cache
def get_settings() -> Settings:
    """Return merged settings with environment variable precedence.

    The configuration is read from ``config.json`` located alongside this file
    and fed into :class:`Settings`. Environment variables override any values
    from the JSON file. A missing file simply means defaults apply.
    """

    config_path = Path(__file__).with_name("config.json")
    data = json.loads(config_path.read_text()) if config_path.exists() else {}
    env_override = {
        k.lower(): _decode_env(v)
        for k, v in os.environ.items()
        if k.lower() in Settings.model_fields
    }
    merged = {**data, **env_override}
    # Environment variables override values from the JSON file.
    return Settings(**merged)
