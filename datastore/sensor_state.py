from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple

from models.records import DEFAULT_THRESHOLDS, SENSOR_FIELDS, SensorReading, SensorValue
from services.detector import is_significant
from services.errors import InvalidField

logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SensorStateStore:
    """Latest significant reading per sensor field plus the change thresholds."""

    def __init__(
        self,
        thresholds: Optional[Mapping[str, float]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._clock = clock
        self._readings: Dict[str, Optional[SensorReading]] = {name: None for name in SENSOR_FIELDS}
        self._thresholds: Dict[str, float] = dict(DEFAULT_THRESHOLDS)
        self._last_stamp: Optional[datetime] = None
        self._lock = Lock()
        if thresholds:
            self.set_thresholds(thresholds)

    def field_names(self) -> list[str]:
        return list(self._readings)

    def apply_update(self, partial: Mapping[str, SensorValue]) -> Dict[str, SensorReading]:
        """Record every field of ``partial`` that changed significantly."""
        changed: Dict[str, SensorReading] = {}
        with self._lock:
            for name, new_value in partial.items():
                if name not in self._readings or new_value is None:
                    continue
                current = self._readings[name]
                old_value = current.value if current is not None else None
                if not is_significant(name, new_value, old_value, self._thresholds.get(name, 0.0)):
                    continue
                reading = SensorReading(value=new_value, timestamp=self._next_stamp())
                self._readings[name] = reading
                changed[name] = reading

        if changed:
            logger.info(
                "Recorded significant sensor change",
                extra={"fields": ",".join(sorted(changed))},
            )
        else:
            logger.debug("No significant sensor change", extra={"fields": ",".join(sorted(partial))})
        return changed

    def snapshot(self) -> Dict[str, SensorReading]:
        with self._lock:
            return {name: reading for name, reading in self._readings.items() if reading is not None}

    def delta(self, since: datetime) -> Tuple[Dict[str, SensorReading], bool]:
        """Return fields updated strictly after ``since``.

        The flag is ``True`` when nothing changed, which the dashboard treats
        as "keep your current baseline".
        """
        with self._lock:
            changed = {
                name: reading
                for name, reading in self._readings.items()
                if reading is not None and reading.timestamp > since
            }
        return changed, not changed

    def select_fields(self, fields: Iterable[str]) -> Dict[str, SensorReading]:
        requested = list(fields)
        invalid = [name for name in requested if name not in self._readings]
        if invalid:
            raise InvalidField(invalid=invalid, valid=self.field_names())

        with self._lock:
            return {
                name: self._readings[name]
                for name in requested
                if self._readings[name] is not None
            }

    def thresholds(self) -> Dict[str, float]:
        return dict(self._thresholds)

    def set_thresholds(self, partial: Mapping[str, object]) -> int:
        """Apply valid threshold entries and return how many were applied."""
        updated = 0
        for name, value in partial.items():
            if name not in self._thresholds:
                logger.warning("Ignoring threshold for unknown field", extra={"field": name})
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                logger.warning("Ignoring non-numeric threshold", extra={"field": name})
                continue
            if not math.isfinite(value) or value < 0:
                logger.warning("Ignoring out-of-range threshold", extra={"field": name})
                continue
            self._thresholds[name] = float(value)
            updated += 1
        return updated

    def _next_stamp(self) -> datetime:
        stamp = self._clock()
        if self._last_stamp is not None and stamp <= self._last_stamp:
            stamp = self._last_stamp + _TICK
        self._last_stamp = stamp
        return stamp
