from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Iterable, Mapping, Sequence

from settings import get_settings

# Rendered in this order after the message when present on the record.
RELAY_CONTEXT_KEYS = (
    "method",
    "path",
    "status",
    "duration_ms",
    "command_id",
    "commands",
    "field",
    "fields",
    "pending_count",
    "waiter_count",
    "updated_count",
    "timeout_ms",
    "reason",
)

_configured = False


def render_context_value(value: Any) -> str:
    """Render an ``extra=`` value compactly for a single log line.

    Actuator maps become ``buzzer:on,led:off`` and field lists are comma-joined.
    """
    if isinstance(value, bool):
        return "on" if value else "off"
    if isinstance(value, Mapping):
        return ",".join(f"{key}:{render_context_value(item)}" for key, item in value.items())
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(str(item) for item in value)
    return str(value)


class RelayLogFormatter(logging.Formatter):
    """Appends relay request and dispatch context to each message."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        context_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._context_keys: Sequence[str] = tuple(context_keys or RELAY_CONTEXT_KEYS)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = [
            f"{key}={render_context_value(getattr(record, key))}"
            for key in self._context_keys
            if getattr(record, key, None) is not None
        ]
        return f"{message} [{' '.join(context)}]" if context else message


def configure_logging(level: str | int | None = None) -> None:
    global _configured
    if _configured:
        return

    log_level = level if level is not None else get_settings().log_level
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "relay": {
                    "()": "logging_config.RelayLogFormatter",
                    "fmt": "%(asctime)sZ %(levelname)-7s %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": log_level,
                    "formatter": "relay",
                }
            },
            "loggers": {"uvicorn.access": {"level": "WARNING"}},
            "root": {"handlers": ["console"], "level": log_level},
        }
    )
    _configured = True
