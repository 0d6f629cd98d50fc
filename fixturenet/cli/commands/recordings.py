"""CLI — Recording inspection commands.

Commands work directly against the configured store backend (see
``store.backend`` in config.yaml or ``FIXTURENET_STORE__BACKEND``).
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Any, Awaitable, Callable, TypeVar

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from fixturenet.config import Settings
from fixturenet.exceptions import FixtureNetError
from fixturenet.recording.cache import RecordingCache
from fixturenet.recording.models import Recording
from fixturenet.recording.registry import StoreRegistry
from fixturenet.recording.store import Store

app = typer.Typer(help="List, inspect and delete stored recordings.")
console = Console()

T = TypeVar("T")

ConfigOption = Annotated[
    Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
]
BackendOption = Annotated[
    str | None, typer.Option("--backend", "-b", help="Store backend (overrides config).")
]


def _open_store(config: Path | None, backend: str | None) -> Store:
    settings = Settings.load(config_file=config)
    name = backend or settings.store.backend
    try:
        return StoreRegistry.with_builtins().create(name, **settings.store.options_for(name))
    except FixtureNetError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)


def _run(store: Store, action: Callable[[Store], Awaitable[T]]) -> T:
    async def _main() -> T:
        await store.init()
        try:
            return await action(store)
        finally:
            await store.close()

    try:
        return asyncio.run(_main())
    except (FixtureNetError, NotImplementedError) as exc:
        console.print(f"[red]Error: {exc}[/red]")
        raise typer.Exit(1)


@app.command("list")
def list_recordings(config: ConfigOption = None, backend: BackendOption = None) -> None:
    """List stored recordings with their entry counts."""
    store = _open_store(config, backend)

    async def _collect(s: Store) -> list[tuple[str, dict[str, Any] | None]]:
        return [(rid, await s.find(rid)) for rid in await s.list_recordings()]

    rows = _run(store, _collect)

    table = Table(title=f"Recordings ({store.NAME})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Entries", justify="right")
    table.add_column("Creator")

    for rid, data in rows:
        log = (data or {}).get("log", {})
        creator = log.get("creator", {})
        table.add_row(
            rid,
            log.get("_recordingName", ""),
            str(len(log.get("entries", []))),
            f"{creator.get('name', '?')} {creator.get('version', '')}".strip(),
        )
    console.print(table)


@app.command("show")
def show_recording(
    recording_id: str = typer.Argument(help="Recording id to show."),
    config: ConfigOption = None,
    backend: BackendOption = None,
    json_output: bool = typer.Option(False, "--json", help="Output raw HAR JSON."),
) -> None:
    """Show the entries of one recording."""
    store = _open_store(config, backend)
    recording = _run(store, lambda s: RecordingCache(s).find_recording(recording_id))

    if recording is None:
        console.print(f"[yellow]No recording with id '{recording_id}'.[/yellow]")
        raise typer.Exit(1)

    if json_output:
        console.print(Syntax(recording.dumps(), "json"))
        return

    _print_recording(recording)


def _print_recording(recording: Recording) -> None:
    console.print(f"[bold]{recording.recording_name}[/bold]")
    console.print(f"{recording.creator.name} {recording.creator.version} {recording.creator.comment}")
    console.print()

    table = Table(title="Entries")
    table.add_column("Started", style="cyan")
    table.add_column("Method")
    table.add_column("URL")
    table.add_column("Status", justify="right")
    table.add_column("Order", justify="right")
    table.add_column("Time (ms)", justify="right")

    for entry in recording.entries:
        table.add_row(
            entry.started_date_time,
            entry.request.method,
            entry.request.url,
            str(entry.response.status),
            str(entry.order),
            f"{entry.time:g}",
        )
    console.print(table)


@app.command("delete")
def delete_recording(
    recording_id: str = typer.Argument(help="Recording id to delete."),
    config: ConfigOption = None,
    backend: BackendOption = None,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Delete a recording from the store."""
    if not yes:
        typer.confirm(f"Delete recording '{recording_id}'?", abort=True)

    store = _open_store(config, backend)
    _run(store, lambda s: RecordingCache(s).delete(recording_id))
    console.print(f"[green]Deleted {recording_id}.[/green]")
