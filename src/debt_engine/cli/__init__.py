"""debt-engine command line: the root callback plus every subcommand."""

from pathlib import Path
from typing import Optional

import typer

from .. import __version__
from ..logging_config import setup_logging
from ._common import console

app = typer.Typer(
    name="debt-engine",
    help="debt-engine - Per-File Technical Debt Scoring",
    add_completion=False,
    rich_markup_mode="rich",
)


@app.callback(invoke_without_command=True, no_args_is_help=False)
def root(
    ctx: typer.Context,
    path: Optional[Path] = typer.Option(
        None,
        "-C",
        "--path",
        help="Workspace root (default: current directory)",
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log errors",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also append logs to this file",
        hidden=True,
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit",
    ),
):
    """
    Score technical debt per file from churn, smells, coupling, coverage,
    ownership, complexity and design-decision freshness.

    [bold cyan]Examples:[/bold cyan]

      debt-engine analyze

      debt-engine -C /path/to/repo heatmap --json

      debt-engine breakdown src/app.py
    """
    ctx.ensure_object(dict)
    ctx.obj["path"] = (path or Path.cwd()).resolve()

    if version:
        console.print(f"[bold cyan]debt-engine[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)

    setup_logging(verbose=verbose, quiet=quiet, log_file=str(log_file) if log_file else None)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(0)


def main() -> None:
    app()


# Import subcommands to register them
from .analyze import analyze as _analyze, rescore as _rescore  # noqa: F401, E402
from .views import breakdown as _breakdown, couplings as _couplings, heatmap as _heatmap  # noqa: F401, E402
from .history import history as _history, supervise as _supervise  # noqa: F401, E402
from .watch import watch as _watch  # noqa: F401, E402
from .settings import settings_app  # noqa: E402

app.add_typer(settings_app, name="settings")
from .register import register_app  # noqa: E402
from .budget import budget_app  # noqa: E402
from .watchlist import watchlist_app  # noqa: E402

app.add_typer(register_app, name="register")
app.add_typer(budget_app, name="budget")
app.add_typer(watchlist_app, name="watchlist")
