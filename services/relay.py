"""Process-wide relay context wiring the sensor store and command dispatcher."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from datastore.sensor_state import SensorStateStore
from services.commands import CommandDispatcher
from settings import get_settings


@dataclass
class RelayContext:
    """Owns every piece of mutable relay state for the lifetime of the app."""

    sensors: SensorStateStore
    commands: CommandDispatcher
    started_at: float = field(default_factory=time.monotonic)

    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at

    def shutdown(self) -> int:
        return self.commands.shutdown()


@lru_cache
def build_default_context(delivery_mode: Optional[str] = None) -> RelayContext:
    """Factory that wires a fresh store and dispatcher from settings."""
    settings = get_settings()
    dispatcher = CommandDispatcher(
        delivery_mode=delivery_mode or settings.delivery_mode,
        disconnect_check_seconds=settings.disconnect_check_seconds,
    )
    return RelayContext(sensors=SensorStateStore(), commands=dispatcher)
