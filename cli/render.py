from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_readings(payload: Dict[str, Any]) -> None:
    echo_heading("Readings")
    data = payload.get("data") or {}
    if data:
        for name, reading in data.items():
            typer.echo(f"  - {name}: {reading.get('value')} (at {reading.get('timestamp')})")
    else:
        typer.echo("No readings recorded.")
    if "fullUpdate" in payload:
        typer.echo(f"fullUpdate: {payload['fullUpdate']}")
    typer.echo(f"timestamp: {payload.get('timestamp')}")


def render_changes(payload: Dict[str, Any]) -> None:
    typer.echo(payload.get("message", ""))
    changes = payload.get("changes") or {}
    for name, reading in changes.items():
        typer.echo(f"  - {name}: {reading.get('value')}")


def render_thresholds(payload: Dict[str, Any]) -> None:
    echo_heading("Thresholds")
    if payload.get("message"):
        typer.echo(payload["message"])
    echo_key_values((payload.get("thresholds") or {}).items())


def render_command(payload: Dict[str, Any]) -> None:
    echo_heading("Device Commands")
    echo_key_values((payload.get("commands") or {}).items())
    markers = [
        name
        for name in ("immediate", "timeout", "shutdown", "newCommands", "updated")
        if payload.get(name)
    ]
    meta_pairs = [
        ("commandId", payload.get("commandId")),
        ("markers", ", ".join(markers) or None),
        ("timestamp", payload.get("timestamp")),
    ]
    echo_key_values((key, value) for key, value in meta_pairs if value is not None)


def render_health(payload: Dict[str, Any]) -> None:
    echo_heading("Health")
    echo_key_values(
        [
            ("status", payload.get("status")),
            ("environment", payload.get("environment")),
            ("uptime", payload.get("uptime")),
            ("dataFields", ", ".join(payload.get("dataFields") or [])),
            ("pendingCommands", payload.get("pendingCommands")),
            ("waitingDevices", payload.get("waitingDevices")),
        ]
    )
