from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        if value is None:
            continue
        typer.echo(f"{key}: {value}")


def render_submission(reading: Dict[str, Any], payload: Dict[str, Any]) -> None:
    echo_heading("Reading")
    echo_key_values(
        [
            ("asset_id", reading.get("asset_id")),
            ("temperature", reading.get("temperature")),
            ("pressure", reading.get("pressure")),
            ("vibration", reading.get("vibration")),
            ("energy_consumption", reading.get("energy_consumption")),
            ("timestamp", reading.get("timestamp")),
        ]
    )
    typer.echo()
    typer.secho(payload.get("message", "Accepted."), fg=typer.colors.GREEN)
