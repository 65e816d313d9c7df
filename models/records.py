"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Tuple, Union

SENSOR_FIELDS: Tuple[str, ...] = ("temp", "heartrate", "movement", "lat", "lon")
CATEGORICAL_FIELDS: Tuple[str, ...] = ("movement",)
MOVEMENT_STATES: Tuple[str, ...] = ("sitting", "standing", "walking")

COMMAND_FIELDS: Tuple[str, ...] = ("buzzer", "led")

DEFAULT_THRESHOLDS: Dict[str, float] = {
    "temp": 0.1,
    "heartrate": 1.0,
    "lat": 0.0001,
    "lon": 0.0001,
}

SensorValue = Union[float, str]


@dataclass(frozen=True, slots=True)
class SensorReading:
    """Latest significant value of one sensor field."""

    value: SensorValue
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class PendingCommand:
    """Actuator delta waiting to be delivered to a device."""

    id: str
    commands: Dict[str, bool]
    created_at: datetime
