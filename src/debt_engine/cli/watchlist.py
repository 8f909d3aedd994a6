"""Watchlist commands: pin the few files to keep an eye on."""

from datetime import datetime

import typer
from rich.markup import escape
from rich.table import Table

from ..exceptions import DebtEngineError
from ..persistence import MAX_PINNED_FILES
from ._common import console, fail, make_engine, print_json, score_style, workspace_from

watchlist_app = typer.Typer(
    help=f"Pin up to {MAX_PINNED_FILES} files and follow their scores.",
    no_args_is_help=True,
)


@watchlist_app.command("list")
def list_pinned(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """List pinned files with their latest stored score."""
    workspace = workspace_from(ctx)
    engine, settings = make_engine(workspace)

    try:
        pinned = engine.list_pinned(workspace)
        engine.open_workspace(workspace)
    except DebtEngineError as e:
        fail(e)

    result = engine.current_result()
    scores = {}
    if result is not None:
        scores = {f.relative_path: f.composite_score for f in result.files}

    if json_output:
        print_json([{**p.to_dict(), "score": scores.get(p.file_path)} for p in pinned])
        return
    if not pinned:
        console.print("[yellow]No pinned files.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Score", justify="right")
    table.add_column("File")
    table.add_column("Pinned", style="dim")
    for p in pinned:
        score = scores.get(p.file_path)
        if score is None:
            cell = "[dim]-[/dim]"
        else:
            style = score_style(score, settings)
            cell = f"[{style}]{score:.1f}[/{style}]"
        table.add_row(
            cell,
            escape(p.file_path),
            datetime.fromtimestamp(p.pinned_at).strftime("%Y-%m-%d %H:%M"),
        )
    console.print()
    console.print(table)
    console.print()


@watchlist_app.command("pin")
def pin(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="File to pin (absolute or workspace-relative)"),
):
    """Pin a file."""
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    try:
        pinned = engine.pin_file(workspace, path)
    except DebtEngineError as e:
        fail(e)
    console.print(f"[green]✓[/green] Pinned {escape(pinned.file_path)}")


@watchlist_app.command("unpin")
def unpin(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="File to unpin (absolute or workspace-relative)"),
):
    """Unpin a file."""
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    try:
        removed = engine.unpin_file(workspace, path)
    except DebtEngineError as e:
        fail(e)
    if not removed:
        console.print(f"[yellow]Not pinned:[/yellow] {escape(path)}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Unpinned {escape(path)}")
