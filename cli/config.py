from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_BASE_URL = "http://localhost:5000"
DEFAULT_POLL_TIMEOUT_MS = 30000
DEFAULT_REQUEST_TIMEOUT = 10.0

_BASE_URL_ENV = "API_BASE_URL"
_POLL_TIMEOUT_ENV = "CLI_POLL_TIMEOUT_MS"


@dataclass(frozen=True)
class CLIConfig:
    base_url: str = DEFAULT_BASE_URL
    poll_timeout_ms: int = DEFAULT_POLL_TIMEOUT_MS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


def _read_int(value: Optional[str], default: int) -> int:
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


def load_config(
    base_url: Optional[str] = None,
    poll_timeout_ms: Optional[int] = None,
) -> CLIConfig:
    url = base_url or os.getenv(_BASE_URL_ENV) or DEFAULT_BASE_URL
    if poll_timeout_ms is None:
        poll_timeout_ms = _read_int(os.getenv(_POLL_TIMEOUT_ENV), DEFAULT_POLL_TIMEOUT_MS)
    return CLIConfig(
        base_url=url.rstrip("/"),
        poll_timeout_ms=poll_timeout_ms,
    )
