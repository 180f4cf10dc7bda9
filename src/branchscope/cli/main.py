"""Global options shared by every subcommand."""

from pathlib import Path
from typing import Optional

import typer

from ..logging_config import setup_logging
from . import app
from ._common import console, resolve_config


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    path: Optional[Path] = typer.Option(
        None,
        "-C",
        "--path",
        help="Repository to inspect (default: current directory)",
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "-c",
        "--config",
        help="Configuration file (TOML)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors"),
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
):
    """
    Inspect the branch graph and merge relationships of a git repository.

    [bold cyan]Examples:[/bold cyan]

      branchscope graph

      branchscope -C /path/to/repo merges --refresh

      branchscope ledger-record feature main 1a2b3c4
    """
    if version:
        from .. import __version__

        console.print(f"[bold cyan]branchscope[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)

    settings = resolve_config(config_file=config, verbose=verbose, quiet=quiet)
    setup_logging(settings.verbosity, settings.log_file)

    ctx.ensure_object(dict)
    ctx.obj["path"] = Path(path) if path else Path.cwd()
    ctx.obj["config"] = settings

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
