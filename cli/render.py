from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format_reading(reading: Dict[str, Any]) -> str:
    return (
        f"  - #{reading.get('id')} {reading.get('created_at')}: "
        f"{reading.get('temperature')}°C, {reading.get('humidity')}%"
    )


def render_reading(reading: Optional[Dict[str, Any]], heading: str = "Reading") -> None:
    echo_heading(heading)
    if not reading:
        typer.echo("No data available.")
        return
    echo_key_values(
        [
            ("id", reading.get("id")),
            ("created_at", reading.get("created_at")),
            ("temperature", reading.get("temperature")),
            ("humidity", reading.get("humidity")),
            ("source", reading.get("source")),
        ]
    )


def render_readings(payload: Dict[str, Any]) -> None:
    readings = payload.get("data") or []
    echo_heading(f"Recent Readings ({payload.get('count', len(readings))})")
    if not readings:
        typer.echo("No readings stored.")
        return
    for reading in readings:
        typer.echo(_format_reading(reading))


def render_stats(stats: Dict[str, Any]) -> None:
    echo_heading("Statistics")
    echo_key_values(
        [
            ("window_start", stats.get("window_start")),
            ("window_end", stats.get("window_end")),
            ("count", stats.get("count")),
        ]
    )
    for metric in ("temperature", "humidity"):
        values = stats.get(metric) or {}
        typer.echo(
            f"{metric}: min={values.get('min')} max={values.get('max')} avg={values.get('avg')}"
        )
