"""History and supervision commands."""

from datetime import datetime
from typing import Optional

import click
import typer
from rich.markup import escape
from rich.table import Table

from ..exceptions import DebtEngineError
from ..scoring import SupervisionStatus
from . import app
from ._common import console, fail, make_engine, print_json, score_style, workspace_from


@app.command()
def history(
    ctx: typer.Context,
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Maximum number of snapshots to list",
        min=1,
        max=1000,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    List past analysis runs stored in .debtengine/state.db.

    [bold cyan]Examples:[/bold cyan]

      debt-engine history

      debt-engine history --json --limit 5
    """
    workspace = workspace_from(ctx)
    engine, settings = make_engine(workspace)

    try:
        snapshots = engine.list_snapshots(workspace, limit=limit)
    except DebtEngineError as e:
        fail(e)

    if json_output:
        print_json([s.to_dict() for s in snapshots])
        return

    if not snapshots:
        console.print(
            "[yellow]No snapshots recorded yet.[/yellow] "
            "Run [bold]debt-engine analyze[/bold] first."
        )
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("When")
    table.add_column("Score", justify="right")
    table.add_column("Files", justify="right")
    table.add_column("High debt", justify="right")
    table.add_column("Commits (7d)", justify="right", style="dim")

    previous = None
    for snap in snapshots:
        style = score_style(snap.composite_score, settings)
        score = f"[{style}]{snap.composite_score:.1f}[/{style}]"
        if previous is not None:
            delta = snap.composite_score - previous
            if abs(delta) >= 0.1:
                score += f" [dim]({delta:+.1f})[/dim]"
        previous = snap.composite_score
        table.add_row(
            str(snap.id),
            datetime.fromtimestamp(snap.timestamp).strftime("%Y-%m-%d %H:%M"),
            score,
            str(snap.file_count),
            str(snap.high_debt_count),
            str(snap.commit_count_week),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def supervise(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Scored file (absolute or workspace-relative)"),
    status: str = typer.Argument(
        ...,
        help="Reviewer verdict",
        click_type=click.Choice([s.value for s in SupervisionStatus], case_sensitive=False),
    ),
    note: Optional[str] = typer.Option(None, "--note", "-m", help="Why the score is acceptable or regressed"),
):
    """
    Record a reviewer verdict on a file's current score.

    [bold cyan]Examples:[/bold cyan]

      debt-engine supervise src/legacy.py acceptable -m "Scheduled for removal"

      debt-engine supervise src/legacy.py none
    """
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    try:
        updated = engine.set_supervision(workspace, path, SupervisionStatus(status.lower()), note)
    except DebtEngineError as e:
        fail(e)

    console.print(
        f"[green]✓[/green] {escape(updated.relative_path)} marked "
        f"[bold]{updated.supervision_status.value}[/bold] at {updated.composite_score:.1f}"
    )
