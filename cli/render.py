from __future__ import annotations

from typing import Any, Iterable

import typer
from prometheus_client.parser import text_string_to_metric_families

from services.registry import METRIC_NAMES


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def parse_readings(exposition: str) -> list[tuple[str, float]]:
    """Extract ``(metric name, value)`` pairs for the exporter's gauges."""
    readings: list[tuple[str, float]] = []
    for family in text_string_to_metric_families(exposition):
        if family.name not in METRIC_NAMES.values():
            continue
        for sample in family.samples:
            readings.append((sample.name, sample.value))
    return readings


def render_metrics(exposition: str) -> None:
    echo_heading("Sensor Reading")
    readings = parse_readings(exposition)
    if readings:
        echo_key_values(readings)
    else:
        typer.echo("No readings exposed.")
