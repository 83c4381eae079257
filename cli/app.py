from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer
import uvicorn

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_reading, render_readings, render_stats
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for pushing and querying sensor readings.",
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
        help="Readings API base URL (defaults to API_BASE_URL env or http://localhost:3001).",
    ),
    secret: Optional[str] = typer.Option(
        None,
        "--secret",
        "-s",
        help="Webhook secret used when pushing readings (defaults to WEBHOOK_SECRET env).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    if ctx.invoked_subcommand == "serve":
        return
    config = load_config(base_url=base_url, webhook_secret=secret, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("push")
def push_command(
    ctx: typer.Context,
    temperature: float = typer.Argument(..., help="Temperature in degrees Celsius."),
    humidity: float = typer.Argument(..., help="Relative humidity in percent."),
    created_at: Optional[str] = typer.Option(
        None,
        "--created-at",
        help="ISO-8601 recording time; the server uses its own clock when omitted.",
    ),
) -> None:
    """Push a single reading the way the sensor webhook does."""
    state = _get_state(ctx)
    payload = state.client.push_reading(temperature, humidity, created_at=created_at)
    typer.secho("Reading stored.", fg=typer.colors.GREEN)
    render_reading(payload.get("data"))


@app.command("recent")
def recent_command(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Number of readings."),
) -> None:
    """List the most recent readings, oldest first."""
    state = _get_state(ctx)
    render_readings(state.client.get_recent(limit))


@app.command("latest")
def latest_command(ctx: typer.Context) -> None:
    """Show the most recent reading."""
    state = _get_state(ctx)
    payload = state.client.get_latest()
    render_reading(payload.get("data"), heading="Latest Reading")


@app.command("stats")
def stats_command(
    ctx: typer.Context,
    start: Optional[str] = typer.Option(None, "--start", help="ISO-8601 window start."),
    end: Optional[str] = typer.Option(None, "--end", help="ISO-8601 window end."),
) -> None:
    """Show statistics for today, or for an explicit window."""
    state = _get_state(ctx)
    payload = state.client.get_stats(start=start, end=end)
    render_stats(payload.get("data") or {})


@app.command("serve")
def serve_command(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (defaults to HOST env)."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Listening port (defaults to PORT env)."),
    reload: bool = typer.Option(False, "--reload/--no-reload", help="Reload on code changes."),
) -> None:
    """Run the readings service with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_config=None,
    )
