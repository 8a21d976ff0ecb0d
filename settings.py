from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_DB_NAME_ENV = "REALTIME_DB_NAME"
_DB_PATH_ENV = "REALTIME_DB_PERSISTENCE_PATH"
_REGISTRY_NODE_ENV = "DEVICE_REGISTRY_NODE"
_TELEMETRY_NODE_ENV = "TELEMETRY_LOG_NODE"
_WINDOW_SIZE_ENV = "LIVE_WINDOW_SIZE"
_WORKER_COUNT_ENV = "INGEST_WORKER_COUNT"
_TIMESTAMP_FORMAT_ENV = "PLOT_TIMESTAMP_FORMAT"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    database_name: str
    database_persistence_path: Optional[str]
    registry_node: str
    telemetry_node: str
    window_size: int
    ingest_workers: int
    timestamp_format: str
    log_level: str


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
    return Settings(
        database_name=_read_str_env(_DB_NAME_ENV, "telemetry"),
        database_persistence_path=_read_optional_env(_DB_PATH_ENV, "./tmp/realtime_db.json"),
        registry_node=_read_str_env(_REGISTRY_NODE_ENV, "devices-ids"),
        telemetry_node=_read_str_env(_TELEMETRY_NODE_ENV, "devices-telemetry"),
        window_size=_read_positive_int(_WINDOW_SIZE_ENV, 750),
        ingest_workers=_read_positive_int(_WORKER_COUNT_ENV, 4),
        timestamp_format=_read_str_env(_TIMESTAMP_FORMAT_ENV, "%Y-%m-%d %H:%M:%S"),
        log_level=_read_log_level("INFO"),
    )
