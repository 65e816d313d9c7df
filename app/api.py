"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response, status

from app.schemas import (
    ClearPendingResponse,
    CommandResponse,
    CommandUpdateResponse,
    EndpointInfo,
    FieldsResponse,
    HealthResponse,
    IndexResponse,
    ReadingsResponse,
    SubmitReadingResponse,
    ThresholdsResponse,
    ThresholdsUpdateResponse,
    readings_payload,
)
from services.errors import RelayError
from services.relay import RelayContext, build_default_context
from services.validation import (
    parse_instant,
    parse_timeout_ms,
    validate_field_list,
    validate_reading,
)
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter()

ENDPOINTS = (
    EndpointInfo(method="POST", path="/api/data", description="IoT devices send data (partial or full)"),
    EndpointInfo(method="POST", path="/api/getData", description="Frontend gets data changed since last update"),
    EndpointInfo(method="GET", path="/api/getData", description="Frontend gets all current data"),
    EndpointInfo(method="POST", path="/api/getSpecificData", description="Frontend gets specific fields only"),
    EndpointInfo(method="GET", path="/api/thresholds", description="Get current change thresholds"),
    EndpointInfo(method="POST", path="/api/thresholds", description="Update change thresholds"),
    EndpointInfo(method="GET", path="/api/health", description="Health check"),
    EndpointInfo(method="POST", path="/api/deviceCommand", description="Frontend sets buzzer/LED commands"),
    EndpointInfo(method="GET", path="/api/getDeviceCommand", description="IoT devices wait for commands (long polling)"),
    EndpointInfo(method="GET", path="/api/pollDeviceCommand", description="IoT devices poll for commands"),
    EndpointInfo(method="POST", path="/api/clearPendingCommands", description="Clear pending commands (admin)"),
)


def get_context() -> RelayContext:
    return build_default_context()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _bad_request(exc: RelayError) -> HTTPException:
    detail = exc.to_detail()
    detail["timestamp"] = _now().isoformat().replace("+00:00", "Z")
    logger.warning("Rejected request: %s", exc.message, extra={"reason": type(exc).__name__})
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.post(
    "/api/data",
    response_model=SubmitReadingResponse,
    response_model_exclude_none=True,
    summary="Submit a full or partial sensor reading.",
)
async def submit_reading(
    payload: Dict[str, Any] = Body(...),
    context: RelayContext = Depends(get_context),
) -> SubmitReadingResponse:
    try:
        readings = validate_reading(payload)
    except RelayError as exc:
        raise _bad_request(exc) from exc

    changes = context.sensors.apply_update(readings)
    if not changes:
        return SubmitReadingResponse(
            message="Data received but no significant changes detected",
            timestamp=_now(),
        )
    return SubmitReadingResponse(
        message="Data processed successfully",
        changes=readings_payload(changes),
        timestamp=_now(),
    )


@router.post(
    "/api/getData",
    response_model=ReadingsResponse,
    summary="Fetch readings changed since the caller's last update.",
)
async def get_readings_since(
    payload: Optional[Dict[str, Any]] = Body(None),
    context: RelayContext = Depends(get_context),
) -> ReadingsResponse:
    last_update = (payload or {}).get("lastUpdate")
    if not last_update:
        return ReadingsResponse(
            data=readings_payload(context.sensors.snapshot()),
            full_update=True,
            timestamp=_now(),
        )

    try:
        since = parse_instant(last_update)
    except RelayError as exc:
        raise _bad_request(exc) from exc

    changed, full_update = context.sensors.delta(since)
    return ReadingsResponse(
        data=readings_payload(changed),
        full_update=full_update,
        timestamp=_now(),
    )


@router.get(
    "/api/getData",
    response_model=ReadingsResponse,
    summary="Fetch every known reading.",
)
async def get_readings_all(context: RelayContext = Depends(get_context)) -> ReadingsResponse:
    return ReadingsResponse(
        data=readings_payload(context.sensors.snapshot()),
        full_update=True,
        timestamp=_now(),
    )


@router.post(
    "/api/getSpecificData",
    response_model=FieldsResponse,
    summary="Fetch a subset of reading fields.",
)
async def get_readings_fields(
    payload: Optional[Dict[str, Any]] = Body(None),
    context: RelayContext = Depends(get_context),
) -> FieldsResponse:
    try:
        fields = validate_field_list((payload or {}).get("fields"))
        selected = context.sensors.select_fields(fields)
    except RelayError as exc:
        raise _bad_request(exc) from exc
    return FieldsResponse(data=readings_payload(selected), timestamp=_now())


@router.get(
    "/api/thresholds",
    response_model=ThresholdsResponse,
    summary="Current change-detection thresholds.",
)
async def get_thresholds(context: RelayContext = Depends(get_context)) -> ThresholdsResponse:
    return ThresholdsResponse(thresholds=context.sensors.thresholds(), timestamp=_now())


@router.post(
    "/api/thresholds",
    response_model=ThresholdsUpdateResponse,
    summary="Update change-detection thresholds; invalid entries are skipped.",
)
async def set_thresholds(
    payload: Dict[str, Any] = Body(...),
    context: RelayContext = Depends(get_context),
) -> ThresholdsUpdateResponse:
    updated = context.sensors.set_thresholds(payload)
    logger.info("Thresholds updated", extra={"updated_count": updated})
    return ThresholdsUpdateResponse(
        message=f"Successfully updated {updated} threshold(s)",
        updated_count=updated,
        thresholds=context.sensors.thresholds(),
        timestamp=_now(),
    )


@router.post(
    "/api/deviceCommand",
    response_model=CommandUpdateResponse,
    summary="Set buzzer and/or LED state for devices.",
)
async def set_device_command(
    payload: Optional[Dict[str, Any]] = Body(None),
    context: RelayContext = Depends(get_context),
) -> CommandUpdateResponse:
    try:
        applied, updated = context.commands.set_command(payload or {})
    except RelayError as exc:
        raise _bad_request(exc) from exc
    return CommandUpdateResponse(
        message="Device commands updated successfully",
        commands=context.commands.state(),
        applied=applied,
        updated=updated,
        timestamp=_now(),
    )


@router.get(
    "/api/getDeviceCommand",
    response_model=CommandResponse,
    response_model_exclude_none=True,
    summary="Long-poll for the next device command.",
)
async def get_device_command_long_poll(
    request: Request,
    timeout: Optional[str] = Query(
        None, description="Milliseconds to wait before answering with the current state."
    ),
    immediate: bool = Query(False, description="Answer without waiting."),
    context: RelayContext = Depends(get_context),
    settings: Settings = Depends(get_settings),
):
    try:
        requested_ms = parse_timeout_ms(timeout)
    except RelayError as exc:
        raise _bad_request(exc) from exc
    timeout_ms = settings.long_poll_timeout_ms if requested_ms is None else requested_ms
    timeout_ms = min(timeout_ms, settings.long_poll_max_timeout_ms)

    delivery = await context.commands.long_poll(
        timeout_ms / 1000,
        immediate=immediate,
        is_disconnected=request.is_disconnected,
    )
    if delivery is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return CommandResponse.long_poll(delivery)


@router.get(
    "/api/pollDeviceCommand",
    response_model=CommandResponse,
    response_model_exclude_none=True,
    summary="Dequeue at most one pending command without waiting.",
)
async def poll_device_command(context: RelayContext = Depends(get_context)) -> CommandResponse:
    return CommandResponse.poll(context.commands.poll())


@router.post(
    "/api/clearPendingCommands",
    response_model=ClearPendingResponse,
    summary="Drop queued commands and detach waiting devices.",
)
async def clear_pending_commands(context: RelayContext = Depends(get_context)) -> ClearPendingResponse:
    count = context.commands.clear_pending()
    return ClearPendingResponse(
        message=f"Cleared {count} pending commands",
        cleared=count,
        timestamp=_now(),
    )


@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(
    context: RelayContext = Depends(get_context),
    settings: Settings = Depends(get_settings),
) -> HealthResponse:
    return HealthResponse(
        status="OK",
        timestamp=_now(),
        data_fields=context.sensors.field_names(),
        uptime=context.uptime_seconds(),
        environment=settings.environment,
        pending_commands=context.commands.pending_count,
        waiting_devices=context.commands.waiter_count,
    )


@router.get(
    "/",
    response_model=IndexResponse,
    summary="Root endpoint lists the available routes.",
    status_code=status.HTTP_200_OK,
)
async def root(
    context: RelayContext = Depends(get_context),
    settings: Settings = Depends(get_settings),
) -> IndexResponse:
    return IndexResponse(
        message="Server is running",
        environment=settings.environment,
        server_time=_now(),
        uptime_seconds=context.uptime_seconds(),
        endpoints=list(ENDPOINTS),
    )
