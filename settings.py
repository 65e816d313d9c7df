from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple


_ENVIRONMENT_ENV = "APP_ENV"
_LOG_LEVEL_ENV = "LOG_LEVEL"
_LONG_POLL_TIMEOUT_ENV = "LONG_POLL_TIMEOUT_MS"
_LONG_POLL_MAX_TIMEOUT_ENV = "LONG_POLL_MAX_TIMEOUT_MS"
_DISCONNECT_CHECK_ENV = "LONG_POLL_DISCONNECT_CHECK_SECONDS"
_DELIVERY_MODE_ENV = "COMMAND_DELIVERY_MODE"
_CORS_ORIGINS_ENV = "CORS_ALLOW_ORIGINS"
_HOST_ENV = "HOST"
_PORT_ENV = "PORT"

DELIVERY_MODES = ("fifo", "broadcast")


@dataclass(frozen=True)
class Settings:
    environment: str
    log_level: str
    long_poll_timeout_ms: int
    long_poll_max_timeout_ms: int
    disconnect_check_seconds: float
    delivery_mode: str
    cors_allow_origins: Tuple[str, ...]
    host: str
    port: int

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


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


def _read_delivery_mode(default: str) -> str:
    candidate = _read_str_env(_DELIVERY_MODE_ENV, default).lower()
    return candidate if candidate in DELIVERY_MODES else default


def _read_origins(default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(_CORS_ORIGINS_ENV)
    if value is None:
        return default
    origins = tuple(part.strip() for part in value.split(",") if part.strip())
    return origins or default


@lru_cache
def get_settings() -> Settings:
    timeout_ms = _read_positive_int(_LONG_POLL_TIMEOUT_ENV, 30000)
    max_timeout_ms = _read_positive_int(_LONG_POLL_MAX_TIMEOUT_ENV, 120000)
    return Settings(
        environment=_read_str_env(_ENVIRONMENT_ENV, "development").lower(),
        log_level=_read_log_level("INFO"),
        long_poll_timeout_ms=min(timeout_ms, max_timeout_ms),
        long_poll_max_timeout_ms=max_timeout_ms,
        disconnect_check_seconds=_read_positive_float(_DISCONNECT_CHECK_ENV, 1.0),
        delivery_mode=_read_delivery_mode("fifo"),
        cors_allow_origins=_read_origins(("*",)),
        host=_read_str_env(_HOST_ENV, "0.0.0.0"),
        port=_read_positive_int(_PORT_ENV, 5000),
    )
