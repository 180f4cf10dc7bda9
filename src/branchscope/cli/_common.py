"""Shared CLI helpers."""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console

from ..config import BranchScopeConfig, load_config
from ..exceptions import ConfigurationError
from ..history.source import GitRepository
from ..merges.ledger import MergeLedger, SqliteLedgerStore
from ..service import RepositoryService
from ..snapshot import SnapshotStore

console = Console()

LEDGER_FILENAME = "ledger.db"
STATE_DIRNAME = ".branchscope"


def resolve_config(config_file: Optional[Path] = None, **overrides) -> BranchScopeConfig:
    """Load config, turning configuration errors into a clean exit."""
    try:
        return load_config(config_file=config_file, **overrides)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(2)


def ledger_path_for(repo: Path, config: BranchScopeConfig) -> Path:
    if config.ledger_path:
        return Path(config.ledger_path)
    return repo / STATE_DIRNAME / LEDGER_FILENAME


def snapshot_dir_for(repo: Path, config: BranchScopeConfig) -> Path:
    snapshot_dir = Path(config.snapshot_dir)
    return snapshot_dir if snapshot_dir.is_absolute() else repo / snapshot_dir


def context_settings(ctx: typer.Context) -> tuple[Path, BranchScopeConfig]:
    obj = ctx.obj or {}
    repo = Path(obj.get("path") or Path.cwd()).resolve()
    config = obj.get("config") or resolve_config()
    return repo, config


@contextmanager
def open_service(repo: Path, config: BranchScopeConfig) -> Iterator[RepositoryService]:
    """Wire a RepositoryService for ``repo`` and close its stores afterwards."""
    source = GitRepository(str(repo), git_executable=config.git_executable, timeout=config.git_timeout_seconds)
    if not source.is_repository():
        console.print(f"[red]Not a git repository:[/red] {repo}")
        raise typer.Exit(1)

    ledger = MergeLedger(SqliteLedgerStore(ledger_path_for(repo, config)), max_entries=config.ledger_max_entries)
    snapshots = SnapshotStore(
        cache_dir=str(snapshot_dir_for(repo, config)),
        max_states=config.snapshot_max_states,
        enabled=config.snapshot_enabled,
    )
    try:
        yield RepositoryService(source, config=config, ledger=ledger, snapshots=snapshots)
    finally:
        ledger.close()
        snapshots.close()
