from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer
import uvicorn

from app.main import create_app
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_metrics
from errors import InitError
from logging_config import configure_logging
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig


app = typer.Typer(
    help="Run or query the BME280 Prometheus exporter.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Exporter base URL (defaults to METER_BASE_URL env or http://localhost:3002).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for a scrape response.",
    ),
) -> None:
    """Entry point for the CLI."""
    ctx.obj = CLIState(config=load_config(base_url=base_url, timeout=timeout))


@app.command("serve")
def serve_command(
    host: Optional[str] = typer.Option(
        None, "--host", help="Bind address (defaults to METER_BIND_HOST or 0.0.0.0)."
    ),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Bind port (defaults to METER_PORT or 3002)."
    ),
) -> None:
    """Open the sensor and serve /metrics until interrupted."""
    settings = get_settings()
    bind_host = host or settings.bind_host
    bind_port = port or settings.port

    configure_logging()
    try:
        application = create_app()
    except InitError as exc:
        typer.secho(f"Startup failed: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Listening on http://{bind_host}:{bind_port}")
    uvicorn.run(application, host=bind_host, port=bind_port, log_config=None)


@app.command("scrape")
def scrape_command(ctx: typer.Context) -> None:
    """Fetch /metrics from a running exporter and print the readings."""
    state = _get_state(ctx)
    client = ApiClient(state.config)
    try:
        exposition = client.fetch_metrics()
    finally:
        client.close()
    render_metrics(exposition)
