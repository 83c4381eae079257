from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_WEBHOOK_SECRET_ENV = "WEBHOOK_SECRET"
_TABLE_NAME_ENV = "READINGS_TABLE_NAME"
_TABLE_PATH_ENV = "READINGS_PERSISTENCE_PATH"
_ALLOWED_ORIGIN_ENV = "FRONTEND_URL"
_HOST_ENV = "HOST"
_PORT_ENV = "PORT"
_DEFAULT_LIMIT_ENV = "READINGS_DEFAULT_LIMIT"
_MAX_LIMIT_ENV = "READINGS_MAX_LIMIT"
_SOURCE_ENV = "READING_SOURCE"
_STATS_TIMEZONE_ENV = "STATS_TIMEZONE"
_GLOBAL_MAX_ENV = "RATE_LIMIT_GLOBAL_MAX"
_GLOBAL_WINDOW_ENV = "RATE_LIMIT_GLOBAL_WINDOW_SECONDS"
_INGEST_MAX_ENV = "RATE_LIMIT_INGEST_MAX"
_INGEST_WINDOW_ENV = "RATE_LIMIT_INGEST_WINDOW_SECONDS"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    webhook_secret: Optional[str] = None
    table_name: str = "readings"
    table_persistence_path: Optional[str] = None
    allowed_origin: str = "*"
    host: str = "0.0.0.0"
    port: int = 3001
    default_limit: int = 100
    max_limit: int = 1000
    reading_source: str = "thingspeak"
    stats_timezone: Optional[str] = None
    global_rate_limit: int = 100
    global_rate_window_seconds: float = 15 * 60
    ingest_rate_limit: int = 10
    ingest_rate_window_seconds: float = 60
    log_level: str = "INFO"


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    max_limit = _read_positive_int(_MAX_LIMIT_ENV, 1000)
    return Settings(
        webhook_secret=_read_optional_env(_WEBHOOK_SECRET_ENV, None),
        table_name=_read_str_env(_TABLE_NAME_ENV, "readings"),
        table_persistence_path=_read_optional_env(_TABLE_PATH_ENV, "./tmp/readings.jsonl"),
        allowed_origin=_read_str_env(_ALLOWED_ORIGIN_ENV, "*"),
        host=_read_str_env(_HOST_ENV, "0.0.0.0"),
        port=_read_positive_int(_PORT_ENV, 3001),
        default_limit=min(_read_positive_int(_DEFAULT_LIMIT_ENV, 100), max_limit),
        max_limit=max_limit,
        reading_source=_read_str_env(_SOURCE_ENV, "thingspeak"),
        stats_timezone=_read_optional_env(_STATS_TIMEZONE_ENV, None),
        global_rate_limit=_read_positive_int(_GLOBAL_MAX_ENV, 100),
        global_rate_window_seconds=_read_positive_float(_GLOBAL_WINDOW_ENV, 15 * 60),
        ingest_rate_limit=_read_positive_int(_INGEST_MAX_ENV, 10),
        ingest_rate_window_seconds=_read_positive_float(_INGEST_WINDOW_ENV, 60),
        log_level=_read_log_level("INFO"),
    )
