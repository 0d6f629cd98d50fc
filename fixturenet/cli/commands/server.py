"""CLI — ``fixturenet serve``."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import typer
import uvicorn
from rich.console import Console

console = Console()


def _override_server(settings: Any, **values: Any) -> None:
    for key, value in values.items():
        if value is not None:
            setattr(settings.server, key, value)


def serve(
    host: Annotated[str | None, typer.Option(help="Interface to bind.")] = None,
    port: Annotated[int | None, typer.Option(help="TCP port.")] = None,
    recordings_dir: Annotated[
        Path | None, typer.Option("--recordings-dir", "-d", help="Directory of recording.har files to serve.")
    ] = None,
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="YAML config file.")
    ] = None,
    log_level: str = typer.Option("info", help="uvicorn log level."),
) -> None:
    """Share a recordings directory with RestStore clients over HTTP."""
    from fixturenet.api.server import create_app
    from fixturenet.config import Settings

    settings = Settings.load(config_file=config)
    _override_server(settings, host=host, port=port, recordings_dir=recordings_dir)
    server = settings.server

    console.print(
        f"[bold green]fixturenet[/bold green] serving [cyan]{server.recordings_dir}[/cyan] "
        f"at http://{server.host}:{server.port}/{server.api_namespace.strip('/')}"
    )
    uvicorn.run(
        create_app(settings=settings),
        host=server.host,
        port=server.port,
        log_level=log_level,
    )
