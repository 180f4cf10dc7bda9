"""Branch graph and merge listing commands."""

import json
from datetime import datetime

import typer
from rich.table import Table

from . import app
from ._common import console, context_settings, open_service


def _format_time(ts) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M")


@app.command()
def graph(
    ctx: typer.Context,
    refresh: bool = typer.Option(False, "--refresh", help="Bypass cached and persisted graphs"),
    json_output: bool = typer.Option(False, "--json", help="Output in machine-readable JSON format"),
):
    """
    Build the branch graph: branches, merges and the commit DAG.
    """
    repo, config = context_settings(ctx)
    with open_service(repo, config) as service:
        result = service.build_branch_graph(force_refresh=refresh)

    if json_output:
        print(json.dumps(result.to_dict(), indent=2))
        return

    if not result.available:
        console.print("[yellow]Branch graph unavailable[/yellow] (history query failed)")
        raise typer.Exit(1)

    merge_count = sum(1 for n in result.nodes if n.is_merge)
    console.print(f"[bold cyan]{repo}[/bold cyan]")
    console.print(f"Current branch: [green]{result.current_branch or '(detached)'}[/green]")
    console.print(f"Branches: [yellow]{len(result.branches)}[/yellow]")
    console.print(
        f"Commits: [yellow]{len(result.nodes)}[/yellow] "
        f"({merge_count} merge commits, {len(result.links)} links)"
    )
    console.print(f"Merge relationships: [yellow]{len(result.merges)}[/yellow]")


@app.command()
def merges(
    ctx: typer.Context,
    refresh: bool = typer.Option(False, "--refresh", help="Bypass cached and persisted graphs"),
):
    """
    List consolidated three-way merges between existing branches.
    """
    repo, config = context_settings(ctx)
    with open_service(repo, config) as service:
        result = service.build_branch_graph(force_refresh=refresh)

    if not result.available:
        console.print("[yellow]Merge relationships unknown[/yellow] (history query failed)")
        raise typer.Exit(1)

    if not result.merges:
        console.print("[dim]No merges found between existing branches.[/dim]")
        return

    table = Table(title="Merges")
    table.add_column("From", style="magenta")
    table.add_column("To", style="green")
    table.add_column("Commit", style="cyan")
    table.add_column("When")
    for m in result.merges:
        table.add_row(m.from_branch, m.to_branch, m.commit[:12], _format_time(m.timestamp))
    console.print(table)
