"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.records import SensorReading
from services.commands import CommandDelivery, DeliveryKind


class ApiModel(BaseModel):
    """Base model exposing camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReadingPayload(ApiModel):
    """Latest significant value of a sensor field."""

    value: Union[float, str]
    timestamp: datetime

    @classmethod
    def from_reading(cls, reading: SensorReading) -> "ReadingPayload":
        return cls(value=reading.value, timestamp=reading.timestamp)


def readings_payload(readings: Dict[str, SensorReading]) -> Dict[str, ReadingPayload]:
    return {name: ReadingPayload.from_reading(reading) for name, reading in readings.items()}


class SubmitReadingResponse(ApiModel):
    message: str
    changes: Optional[Dict[str, ReadingPayload]] = None
    timestamp: datetime


class ReadingsResponse(ApiModel):
    data: Dict[str, ReadingPayload] = Field(default_factory=dict)
    full_update: bool = True
    timestamp: datetime


class FieldsResponse(ApiModel):
    data: Dict[str, ReadingPayload] = Field(default_factory=dict)
    timestamp: datetime


class ThresholdsResponse(ApiModel):
    thresholds: Dict[str, float]
    timestamp: datetime


class ThresholdsUpdateResponse(ApiModel):
    message: str
    updated_count: int = Field(..., ge=0)
    thresholds: Dict[str, float]
    timestamp: datetime


class CommandUpdateResponse(ApiModel):
    message: str
    commands: Dict[str, bool]
    applied: Dict[str, bool] = Field(default_factory=dict)
    updated: bool
    timestamp: datetime


class CommandResponse(ApiModel):
    """Answer to a device poll or long-poll.

    At most one marker flag is set, depending on how the request was resolved.
    """

    message: Optional[str] = None
    commands: Dict[str, bool]
    command_id: Optional[str] = None
    timestamp: datetime
    immediate: Optional[bool] = None
    timeout: Optional[bool] = None
    shutdown: Optional[bool] = None
    new_commands: Optional[bool] = None

    @classmethod
    def long_poll(cls, delivery: CommandDelivery) -> "CommandResponse":
        payload = cls(
            commands=delivery.commands,
            command_id=delivery.command_id,
            timestamp=delivery.timestamp,
        )
        if delivery.kind in (DeliveryKind.queued, DeliveryKind.snapshot):
            payload.immediate = True
        elif delivery.kind is DeliveryKind.timeout:
            payload.timeout = True
        elif delivery.kind is DeliveryKind.shutdown:
            payload.message = "Server shutting down"
            payload.shutdown = True
        return payload

    @classmethod
    def poll(cls, delivery: CommandDelivery) -> "CommandResponse":
        return cls(
            commands=delivery.commands,
            command_id=delivery.command_id,
            timestamp=delivery.timestamp,
            new_commands=delivery.kind is DeliveryKind.queued,
        )


class ClearPendingResponse(ApiModel):
    message: str
    cleared: int = Field(..., ge=0)
    timestamp: datetime


class HealthResponse(ApiModel):
    status: str
    timestamp: datetime
    data_fields: List[str]
    uptime: float
    environment: str
    pending_commands: int = 0
    waiting_devices: int = 0


class EndpointInfo(BaseModel):
    method: str
    path: str
    description: str


class IndexResponse(ApiModel):
    message: str
    environment: str
    server_time: datetime
    uptime_seconds: float
    endpoints: List[EndpointInfo]
