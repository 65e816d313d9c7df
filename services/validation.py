"""Validation of inbound sensor payloads and query parameters."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from models.records import MOVEMENT_STATES, SENSOR_FIELDS, SensorValue
from services.errors import EmptyRequest, ValidationFailed


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _is_coordinate(value: Any) -> bool:
    return _is_number(value) and abs(value) <= 180


def validate_reading(payload: Mapping[str, Any]) -> Dict[str, SensorValue]:
    """Check every provided sensor field and return the accepted values.

    All violations are collected before raising so the device sees the full
    list in one response. Unknown keys are ignored; a known key sent as
    ``null`` counts as provided and is rejected.
    """
    errors: List[str] = []

    if "temp" in payload and not _is_number(payload["temp"]):
        errors.append("Temperature must be a valid number")

    if "heartrate" in payload:
        heartrate = payload["heartrate"]
        if not _is_number(heartrate) or heartrate < 0:
            errors.append("Heart rate must be a valid positive number")

    if "movement" in payload and payload["movement"] not in MOVEMENT_STATES:
        errors.append(f"Movement must be one of: {', '.join(MOVEMENT_STATES)}")

    if "lat" in payload and not _is_coordinate(payload["lat"]):
        errors.append("Latitude must be a valid coordinate between -180 and 180")

    if "lon" in payload and not _is_coordinate(payload["lon"]):
        errors.append("Longitude must be a valid coordinate between -180 and 180")

    if errors:
        raise ValidationFailed(errors)

    accepted: Dict[str, SensorValue] = {}
    for name in SENSOR_FIELDS:
        if name not in payload:
            continue
        value = payload[name]
        accepted[name] = value if isinstance(value, str) else float(value)

    if not accepted:
        raise EmptyRequest()
    return accepted


def parse_timeout_ms(value: Optional[str]) -> Optional[int]:
    """Parse the long-poll ``timeout`` query value as whole milliseconds."""
    if value is None:
        return None
    candidate = value.strip()
    if not (candidate.isascii() and candidate.isdigit()):
        raise ValidationFailed(
            ["timeout must be a non-negative integer number of milliseconds"],
            message="Invalid timeout",
        )
    return int(candidate)


def parse_instant(value: Any) -> datetime:
    """Parse an ISO-8601 instant, treating naive values as UTC."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailed(
            ["lastUpdate must be an ISO 8601 string"],
            message="Invalid lastUpdate format. Use ISO 8601 format.",
        )

    candidate = value.strip()
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValidationFailed(
            [f"Could not parse {value!r}"],
            message="Invalid lastUpdate format. Use ISO 8601 format.",
        ) from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


def validate_field_list(value: Any) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValidationFailed(
            ["fields must be an array of field names"],
            message="Fields array required",
        )
    return list(value)
