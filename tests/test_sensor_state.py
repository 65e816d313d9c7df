"""Unit tests for the in-memory sensor state store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from datastore.sensor_state import SensorStateStore
from services.errors import InvalidField

_BASE = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _stepping_clock(step: timedelta = timedelta(seconds=1)) -> Callable[[], datetime]:
    ticks = iter(range(10_000))

    def clock() -> datetime:
        return _BASE + step * next(ticks)

    return clock


def _frozen_clock() -> datetime:
    return _BASE


def test_first_update_records_every_field() -> None:
    store = SensorStateStore(clock=_stepping_clock())

    changed = store.apply_update({"temp": 21.5, "movement": "sitting"})

    assert set(changed) == {"temp", "movement"}
    assert changed["temp"].value == 21.5
    assert store.snapshot()["movement"].value == "sitting"


def test_update_within_threshold_is_ignored() -> None:
    store = SensorStateStore(clock=_stepping_clock())
    first = store.apply_update({"temp": 21.5})["temp"]

    changed = store.apply_update({"temp": 21.55})

    assert changed == {}
    assert store.snapshot()["temp"] == first


def test_unknown_fields_and_none_values_are_skipped() -> None:
    store = SensorStateStore(clock=_stepping_clock())

    changed = store.apply_update({"pressure": 1013.0, "lat": None})

    assert changed == {}
    assert store.snapshot() == {}


def test_snapshot_omits_unset_fields() -> None:
    store = SensorStateStore(clock=_stepping_clock())
    store.apply_update({"heartrate": 70.0})

    assert list(store.snapshot()) == ["heartrate"]


def test_timestamps_are_strictly_increasing_with_a_frozen_clock() -> None:
    store = SensorStateStore(clock=_frozen_clock)

    first = store.apply_update({"temp": 20.0})["temp"]
    second = store.apply_update({"heartrate": 60.0})["heartrate"]
    third = store.apply_update({"temp": 25.0})["temp"]

    assert first.timestamp < second.timestamp < third.timestamp


def test_delta_returns_fields_strictly_after_instant() -> None:
    store = SensorStateStore(clock=_stepping_clock())
    temp = store.apply_update({"temp": 20.0})["temp"]
    store.apply_update({"heartrate": 60.0})

    changed, full_update = store.delta(temp.timestamp)

    assert list(changed) == ["heartrate"]
    assert full_update is False


def test_delta_with_nothing_new_flags_full_update() -> None:
    store = SensorStateStore(clock=_stepping_clock())
    reading = store.apply_update({"temp": 20.0})["temp"]

    changed, full_update = store.delta(reading.timestamp)

    assert changed == {}
    assert full_update is True


def test_select_fields_returns_only_known_values() -> None:
    store = SensorStateStore(clock=_stepping_clock())
    store.apply_update({"lat": 48.1, "lon": 11.5})

    selected = store.select_fields(["lat", "temp"])

    assert list(selected) == ["lat"]


def test_select_fields_rejects_unknown_names() -> None:
    store = SensorStateStore()

    with pytest.raises(InvalidField) as excinfo:
        store.select_fields(["bogus", "temp"])

    assert excinfo.value.invalid_fields == ["bogus"]
    assert excinfo.value.valid_fields == ["temp", "heartrate", "movement", "lat", "lon"]


def test_set_thresholds_skips_invalid_entries() -> None:
    store = SensorStateStore()

    updated = store.set_thresholds({"temp": -1, "heartrate": 5, "movement": 1, "lat": "x", "lon": True})

    assert updated == 1
    thresholds = store.thresholds()
    assert thresholds["heartrate"] == 5.0
    assert thresholds["temp"] == 0.1
    assert "movement" not in thresholds


def test_raised_threshold_suppresses_small_changes() -> None:
    store = SensorStateStore(thresholds={"heartrate": 5}, clock=_stepping_clock())
    store.apply_update({"heartrate": 70.0})

    assert store.apply_update({"heartrate": 74.0}) == {}
    assert set(store.apply_update({"heartrate": 75.0})) == {"heartrate"}
