from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_submission
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the telemetry ingest service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Ingest API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        "-t",
        help="Bearer token sent with readings (defaults to API_TOKEN env).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, token=token, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    asset_id: str = typer.Argument(..., help="Identifier of the machine the reading belongs to."),
    temperature: float = typer.Option(..., "--temperature", help="Temperature reading."),
    pressure: float = typer.Option(..., "--pressure", help="Pressure reading."),
    vibration: float = typer.Option(..., "--vibration", help="Vibration reading."),
    energy: float = typer.Option(..., "--energy", help="Energy consumption reading."),
    timestamp: Optional[str] = typer.Option(
        None,
        "--timestamp",
        help="ISO-8601 sample time; the server uses arrival time when omitted.",
    ),
) -> None:
    """Submit a single sensor reading."""
    state = _get_state(ctx)
    reading: Dict[str, Any] = {
        "asset_id": asset_id,
        "temperature": temperature,
        "pressure": pressure,
        "vibration": vibration,
        "energy_consumption": energy,
    }
    if timestamp:
        reading["timestamp"] = timestamp
    typer.echo(f"Sending reading for {asset_id} to {state.config.base_url} ...")
    payload = state.client.send_reading(reading)
    typer.echo()
    render_submission(reading, payload)


@app.command("token")
def token_command(
    subject: str = typer.Argument(..., help="Subject (user id) to embed in the token."),
    hours: float = typer.Option(1.0, "--hours", help="Token lifetime in hours."),
) -> None:
    """Mint a development token signed with the configured JWT secret."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    claims: Dict[str, Any] = {
        "sub": subject,
        "role": "authenticated",
        "iat": now,
        "exp": now + timedelta(hours=hours),
    }
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience
    typer.echo(jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm))


if __name__ == "__main__":
    app()
