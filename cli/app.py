from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    render_changes,
    render_command,
    render_health,
    render_readings,
    render_thresholds,
)


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for talking to the telemetry relay service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _parse_assignments(values: List[str]) -> Dict[str, float]:
    parsed: Dict[str, float] = {}
    for item in values:
        name, sep, raw = item.partition("=")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Expected FIELD=VALUE, got {item!r}.")
        try:
            parsed[name.strip()] = float(raw)
        except ValueError as exc:
            raise typer.BadParameter(f"Threshold for {name!r} must be a number.") from exc
    return parsed


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Relay base URL (defaults to API_BASE_URL env or http://localhost:5000).",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    temp: Optional[float] = typer.Option(None, "--temp", help="Temperature in degrees Celsius."),
    heartrate: Optional[float] = typer.Option(None, "--heartrate", help="Heart rate in BPM."),
    movement: Optional[str] = typer.Option(None, "--movement", help="sitting, standing or walking."),
    lat: Optional[float] = typer.Option(None, "--lat", help="Latitude."),
    lon: Optional[float] = typer.Option(None, "--lon", help="Longitude."),
) -> None:
    """Submit a sensor reading as a device would."""
    state = _get_state(ctx)
    reading = {
        name: value
        for name, value in (
            ("temp", temp),
            ("heartrate", heartrate),
            ("movement", movement),
            ("lat", lat),
            ("lon", lon),
        )
        if value is not None
    }
    if not reading:
        raise typer.BadParameter("Provide at least one sensor value.")
    render_changes(state.client.send_reading(reading))


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    since: Optional[str] = typer.Option(None, "--since", help="ISO 8601 instant of the last update."),
    field: List[str] = typer.Option([], "--field", "-f", help="Restrict output to these fields."),
) -> None:
    """Show the latest readings."""
    state = _get_state(ctx)
    if field:
        render_readings(state.client.get_fields(field))
        return
    render_readings(state.client.get_readings(since))


@app.command("thresholds")
def thresholds_command(
    ctx: typer.Context,
    assignments: List[str] = typer.Option([], "--set", "-s", help="FIELD=VALUE threshold update."),
) -> None:
    """Show or update change-detection thresholds."""
    state = _get_state(ctx)
    if assignments:
        render_thresholds(state.client.set_thresholds(_parse_assignments(assignments)))
        return
    render_thresholds(state.client.get_thresholds())


@app.command("command")
def command_command(
    ctx: typer.Context,
    buzzer: Optional[bool] = typer.Option(None, "--buzzer/--no-buzzer", help="Turn the buzzer on or off."),
    led: Optional[bool] = typer.Option(None, "--led/--no-led", help="Turn the LED on or off."),
) -> None:
    """Set actuator state for devices."""
    state = _get_state(ctx)
    commands = {name: value for name, value in (("buzzer", buzzer), ("led", led)) if value is not None}
    if not commands:
        raise typer.BadParameter("Provide --buzzer/--no-buzzer or --led/--no-led.")
    render_command(state.client.set_command(commands))


@app.command("wait")
def wait_command(
    ctx: typer.Context,
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Long-poll timeout in milliseconds."),
    immediate: bool = typer.Option(False, "--immediate", help="Answer without waiting."),
) -> None:
    """Long-poll for the next device command."""
    state = _get_state(ctx)
    timeout_ms = timeout if timeout is not None else state.config.poll_timeout_ms
    if not immediate:
        typer.echo(f"Waiting up to {timeout_ms}ms for a command ...")
    render_command(state.client.wait_command(timeout_ms, immediate=immediate))


@app.command("poll")
def poll_command(ctx: typer.Context) -> None:
    """Fetch the next queued command without waiting."""
    state = _get_state(ctx)
    render_command(state.client.poll_command())


@app.command("clear")
def clear_command(ctx: typer.Context) -> None:
    """Drop all pending commands on the relay."""
    state = _get_state(ctx)
    payload = state.client.clear_pending()
    typer.secho(payload.get("message", "Cleared."), fg=typer.colors.GREEN)


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Show relay health."""
    state = _get_state(ctx)
    render_health(state.client.health())
