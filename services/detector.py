"""Change detection for incoming sensor values."""

from __future__ import annotations

from typing import Optional

from models.records import CATEGORICAL_FIELDS, SensorValue


def is_significant(
    field: str,
    new_value: Optional[SensorValue],
    old_value: Optional[SensorValue],
    threshold: float = 0.0,
) -> bool:
    """Return whether ``new_value`` differs enough from ``old_value`` to be recorded.

    The first observation of a field is always significant and an absent new
    value never is. Categorical fields compare by identity; numeric fields
    compare the absolute difference against ``threshold`` (inclusive).
    """
    if old_value is None:
        return True
    if new_value is None:
        return False

    if field in CATEGORICAL_FIELDS or isinstance(new_value, str) or isinstance(old_value, str):
        return new_value != old_value

    return abs(new_value - old_value) >= threshold
