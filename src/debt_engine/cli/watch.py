"""Watch mode: keep scores fresh while files are edited."""

import typer
from rich.markup import escape

from ..exceptions import DebtEngineError
from ..scoring import FileScore
from ..watcher import DEBOUNCE_MS, FileWatcher
from . import app
from ._common import console, fail, make_engine, score_style, workspace_from


@app.command()
def watch(
    ctx: typer.Context,
    debounce: int = typer.Option(
        DEBOUNCE_MS,
        "--debounce",
        help="Milliseconds to wait after the last change before rescoring",
        min=50,
        max=60000,
    ),
    initial_scan: bool = typer.Option(
        False,
        "--scan/--no-scan",
        help="Run a full analysis before watching",
    ),
):
    """
    Rescore source files as they change. Stop with Ctrl+C.
    """
    workspace = workspace_from(ctx)
    engine, settings = make_engine(workspace)

    try:
        if initial_scan:
            result = engine.score_workspace(workspace)
            console.print(f"[dim]Scored {result.file_count} files[/dim]")
        else:
            engine.open_workspace(workspace)
    except DebtEngineError as e:
        fail(e)

    def on_rescored(score: FileScore) -> None:
        style = score_style(score.composite_score, settings)
        console.print(
            f"[{style}]{score.composite_score:5.1f}[/{style}]  {escape(score.relative_path)}"
        )
        current = engine.current_result()
        if current is not None:
            console.print(
                f"[dim]       workspace {current.workspace_score:.1f},"
                f" {current.high_debt_count} high debt[/dim]"
            )

    watcher = FileWatcher(workspace, engine, debounce_ms=debounce, on_rescored=on_rescored)
    console.print(f"[bold cyan]Watching[/bold cyan] {escape(str(workspace))} [dim](Ctrl+C to stop)[/dim]")
    try:
        watcher.run()
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")
