"""Snapshot cache management commands."""

import typer

from ..snapshot import SnapshotStore
from . import app
from ._common import console, context_settings, snapshot_dir_for


def _open_store(ctx: typer.Context) -> SnapshotStore:
    repo, config = context_settings(ctx)
    return SnapshotStore(
        cache_dir=str(snapshot_dir_for(repo, config)),
        max_states=config.snapshot_max_states,
        enabled=config.snapshot_enabled,
    )


@app.command()
def cache_info(ctx: typer.Context):
    """Show persisted snapshot statistics."""
    store = _open_store(ctx)
    try:
        stats = store.stats()
    finally:
        store.close()

    console.print("[bold cyan]branchscope snapshot cache[/bold cyan]")
    if stats.get("enabled"):
        console.print("Status: [green]Enabled[/green]")
        console.print(f"Directory: [blue]{stats.get('directory', 'N/A')}[/blue]")
        console.print(f"Entries: [yellow]{stats.get('size', 0)}[/yellow]")
        console.print(f"Size: [yellow]{stats.get('volume', 0)} bytes[/yellow]")
    else:
        console.print("Status: [red]Disabled[/red]")


@app.command()
def cache_clear(ctx: typer.Context):
    """Remove all persisted branch graph snapshots."""
    store = _open_store(ctx)
    if not store.enabled:
        console.print("[yellow]Snapshot cache is disabled[/yellow]")
        raise typer.Exit(0)
    try:
        removed = store.clear()
    finally:
        store.close()
    console.print(f"[green]Cleared {removed} cache entries[/green]")
