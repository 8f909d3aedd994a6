"""Full-scan and single-file scoring commands."""

from pathlib import Path

import typer
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from ..config import AnalysisSettings
from ..exceptions import DebtEngineError
from ..scoring import AnalysisProgress, AnalysisResult
from . import app
from ._common import console, fail, make_engine, print_json, score_style, workspace_from


@app.command()
def analyze(
    ctx: typer.Context,
    top: int = typer.Option(
        15,
        "--top",
        "-n",
        help="Number of highest-debt files to list",
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
    Score every source file in the workspace and store the results.

    Scores land in .debtengine/state.db and a snapshot is appended to the
    workspace history.

    [bold cyan]Examples:[/bold cyan]

      debt-engine analyze

      debt-engine analyze --top 30

      debt-engine -C /path/to/repo analyze --json
    """
    workspace = workspace_from(ctx)
    engine, settings = make_engine(workspace)

    try:
        if json_output:
            result = engine.score_workspace(workspace)
        else:
            result = _score_with_progress(engine, workspace)
    except DebtEngineError as e:
        fail(e)

    if json_output:
        print_json(result.to_dict())
        return

    _print_summary(result, settings, top)


def _score_with_progress(engine, workspace: Path) -> AnalysisResult:
    with Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}"),
        BarColumn(bar_width=40, complete_style="cyan", finished_style="green"),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        TextColumn("[dim]{task.fields[current_file]}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Scoring files", total=None, current_file="")

        def on_progress(event: AnalysisProgress) -> None:
            progress.update(
                task,
                total=event.total,
                completed=event.current,
                current_file=event.current_file,
            )

        return engine.score_workspace(workspace, on_progress=on_progress)


def _print_summary(result: AnalysisResult, settings: AnalysisSettings, top: int) -> None:
    console.print()
    style = score_style(result.workspace_score, settings)
    console.print(
        f"[bold cyan]Workspace debt[/bold cyan] [{style}]{result.workspace_score:.1f}[/{style}]"
        f"  [dim]{result.file_count} files, {result.high_debt_count} high debt,"
        f" {result.duration_ms}ms[/dim]"
    )
    if not result.files:
        console.print("[yellow]No source files found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Score", justify="right")
    table.add_column("File")
    table.add_column("LOC", justify="right", style="dim")
    table.add_column("Top signal", style="dim")

    for file in result.ranked()[:top]:
        style = score_style(file.composite_score, settings)
        name, component = max(file.components.items(), key=lambda item: item[1].contribution)
        table.add_row(
            f"[{style}]{file.composite_score:.1f}[/{style}]",
            file.relative_path,
            str(file.loc),
            f"{name} ({component.raw_score:.0f})" if component.contribution > 0 else "-",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def rescore(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="File to rescore (absolute or workspace-relative)"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Bring one file's score up to date.

    Unchanged files are answered from the store without rescoring.
    """
    workspace = workspace_from(ctx)
    engine, settings = make_engine(workspace)

    try:
        score = engine.rescore_file(workspace, path)
    except DebtEngineError as e:
        fail(e)

    if json_output:
        print_json(score.to_dict())
        return

    style = score_style(score.composite_score, settings)
    console.print(
        f"[{style}]{score.composite_score:.1f}[/{style}]  {score.relative_path}"
        f"  [dim]{score.language}, {score.loc} LOC[/dim]"
    )
