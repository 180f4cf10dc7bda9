"""Merge ledger commands."""

from typing import Optional

import typer
from rich.table import Table

from ..merges.models import MergeKind
from . import app
from ._common import console, context_settings, open_service
from .graph import _format_time


@app.command()
def ledger_list(ctx: typer.Context):
    """
    Show every recorded merge, including those naming deleted branches.
    """
    repo, config = context_settings(ctx)
    with open_service(repo, config) as service:
        entries = service.ledger.get_all()

    if not entries:
        console.print("[dim]Merge ledger is empty.[/dim]")
        return

    table = Table(title="Merge ledger")
    table.add_column("From", style="magenta")
    table.add_column("To", style="green")
    table.add_column("Commit", style="cyan")
    table.add_column("Type")
    table.add_column("Recorded")
    for e in entries:
        table.add_row(e.from_branch, e.to_branch, e.commit[:12], e.kind.value, _format_time(e.timestamp))
    console.print(table)


@app.command()
def ledger_record(
    ctx: typer.Context,
    from_branch: str = typer.Argument(..., help="Branch that was merged"),
    to_branch: str = typer.Argument(..., help="Branch merged into"),
    commit: str = typer.Argument(..., help="Resulting commit"),
    kind: MergeKind = typer.Option(MergeKind.THREE_WAY, "--kind", help="Merge type"),
    description: Optional[str] = typer.Option(None, "--description", "-m", help="Free-form note"),
):
    """
    Record a merge that history alone cannot show.
    """
    repo, config = context_settings(ctx)
    with open_service(repo, config) as service:
        entry = service.record_merge(from_branch, to_branch, commit, kind, description)

    console.print(f"[green]Recorded[/green] {entry.kind.value} merge {from_branch} → {to_branch}")
