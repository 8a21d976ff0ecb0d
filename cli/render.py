from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_ingest(payload: Dict[str, Any]) -> None:
    if payload.get("accepted"):
        typer.secho(f"Reading stored. key={payload.get('key')}", fg=typer.colors.GREEN)
    else:
        typer.secho(f"Reading dropped. reason={payload.get('reason')}", fg=typer.colors.YELLOW)


def render_devices(devices: List[Dict[str, Any]]) -> None:
    echo_heading("Tracked Devices")
    if not devices:
        typer.echo("No device id was found.")
        return
    for device in devices:
        typer.echo(f"  - {device.get('device_id')} ({device.get('alias')})")


def _render_series(title: str, series: List[Dict[str, Any]]) -> None:
    typer.echo()
    echo_heading(title)
    if not series:
        typer.echo("No series available.")
        return
    for line in series:
        x = line.get("x") or []
        y = line.get("y") or []
        if y:
            typer.echo(f"  - {line.get('name')}: {len(y)} points, last {y[-1]} at {x[-1]}")
        else:
            typer.echo(f"  - {line.get('name')}: no readings")


def render_dataset(payload: Dict[str, Any]) -> None:
    echo_heading("Live Dataset")
    echo_key_values(
        [
            ("revision", payload.get("revision")),
            ("generated_at", payload.get("generated_at")),
        ]
    )
    _render_series("Temperature", payload.get("temperature") or [])
    _render_series("Humidity", payload.get("humidity") or [])
