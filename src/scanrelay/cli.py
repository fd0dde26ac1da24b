"""Command-line interface for the scanner relay.

Example:
    >>> # From terminal:
    >>> # scanrelay --version
    >>> # scanrelay serve --port 3000 --log-format json
    >>> # scanrelay schemas > envelopes.schema.json
"""

import json
from typing import Annotated, Optional

import typer
import uvicorn
from pydantic import ValidationError

from scanrelay import __version__
from scanrelay.config import RelaySettings
from scanrelay.errors import ConfigurationError
from scanrelay.models.envelope import outbound_json_schema
from scanrelay.observability import configure_logging, get_logger
from scanrelay.observability.logging import LOG_FORMATS
from scanrelay.transport.server import create_app

app = typer.Typer(help="Scanner relay CLI.")

logger = get_logger(__name__)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"scanrelay {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit.",
        ),
    ] = None,
) -> None:
    """Pair barcode scanners with POS terminals over WebSocket."""


@app.command("serve")
def serve(
    host: Annotated[
        Optional[str], typer.Option("--host", help="Interface to bind (env SCANRELAY_HOST).")
    ] = None,
    port: Annotated[
        Optional[int], typer.Option("--port", "-p", help="Listening port (env SCANRELAY_PORT).")
    ] = None,
    heartbeat_interval: Annotated[
        Optional[float],
        typer.Option("--heartbeat-interval", help="Liveness sweep period in seconds."),
    ] = None,
    settle_delay: Annotated[
        Optional[float],
        typer.Option("--settle-delay", help="Seconds between registration and pairing."),
    ] = None,
    transport_pings: Annotated[
        Optional[bool],
        typer.Option(
            "--transport-pings/--no-transport-pings",
            help="Let uvicorn ping sockets and drop unanswered ones.",
        ),
    ] = None,
    log_format: Annotated[
        Optional[str], typer.Option("--log-format", help="console or json.")
    ] = None,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Log level.")] = None,
) -> None:
    """Run the relay server."""
    if log_format is not None and log_format.lower() not in LOG_FORMATS:
        raise typer.BadParameter(f"Unknown log format: {log_format}", param_hint="--log-format")
    try:
        configure_logging(log_format=log_format, log_level=log_level, force=True)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--log-level") from exc

    try:
        settings = RelaySettings.from_env()
    except ConfigurationError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(code=1) from exc

    overrides = {
        "host": host,
        "port": port,
        "heartbeat_interval": heartbeat_interval,
        "settle_delay": settle_delay,
        "transport_pings": transport_pings,
    }
    updates = {k: v for k, v in overrides.items() if v is not None}
    if updates:
        try:
            settings = RelaySettings.model_validate({**settings.model_dump(), **updates})
        except ValidationError as exc:
            raise typer.BadParameter(str(exc)) from exc

    logger.info("scanrelay.cli.serve", host=settings.host, port=settings.port)
    # Pongs only reach uvicorn; without its pings the sweep closes silent sockets
    ping_interval = settings.heartbeat_interval if settings.transport_pings else None
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        ws_ping_interval=ping_interval,
        ws_ping_timeout=ping_interval,
        log_config=None,
    )


@app.command("schemas")
def schemas() -> None:
    """Print the JSON Schema of the envelopes the relay sends."""
    typer.echo(json.dumps(outbound_json_schema(), indent=2))


if __name__ == "__main__":
    app()
