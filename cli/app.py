from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_dataset, render_devices, render_ingest


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the telemetry live plot service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds before an HTTP request is abandoned.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Identifier of the publishing device."),
    temperature: float = typer.Option(..., "--temperature", "-t", help="Temperature in °C."),
    humidity: float = typer.Option(..., "--humidity", "-H", help="Relative humidity in percent."),
    timestamp: Optional[int] = typer.Option(
        None,
        "--timestamp",
        help="Epoch milliseconds of the reading (defaults to now).",
    ),
) -> None:
    """Send one reading as if the device had published it."""
    state = _get_state(ctx)
    issued_at = timestamp if timestamp is not None else int(time.time() * 1000)
    typer.echo(f"Sending reading for {device_id} to {state.config.base_url} ...")
    payload = state.client.send_reading(device_id, issued_at, temperature, humidity)
    render_ingest(payload)


@app.command("devices")
def devices_command(ctx: typer.Context) -> None:
    """List the devices plotted by the dashboard."""
    state = _get_state(ctx)
    render_devices(state.client.list_devices())


@app.command("dataset")
def dataset_command(ctx: typer.Context) -> None:
    """Summarize the live chart dataset."""
    state = _get_state(ctx)
    render_dataset(state.client.get_dataset())
