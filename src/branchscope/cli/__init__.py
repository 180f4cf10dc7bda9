"""CLI entry point: registers all subcommands."""

import typer

app = typer.Typer(
    name="branchscope",
    help="branchscope - branch graph and merge relationships from git history",
    add_completion=False,
    rich_markup_mode="rich",
)


# Import subcommands to register them
from .main import main as _main_callback  # noqa: F401, E402
from .graph import graph as _graph, merges as _merges  # noqa: F401, E402
from .ledger import ledger_list as _ledger_list, ledger_record as _ledger_record  # noqa: F401, E402
from .cache import cache_info as _cache_info, cache_clear as _cache_clear  # noqa: F401, E402


def main() -> None:
    app()
