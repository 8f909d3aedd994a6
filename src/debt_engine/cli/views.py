"""Read-only views: per-file breakdown, directory heatmap, change couplings."""

from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from ..config import AnalysisSettings
from ..exceptions import DebtEngineError
from ..scoring import HeatmapNode
from . import app
from ._common import console, fail, make_engine, print_json, score_style, workspace_from


@app.command()
def breakdown(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="File to explain (absolute or workspace-relative)"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Explain a file's score signal by signal.

    The file is rescored first if it changed since it was last stored.

    [bold cyan]Examples:[/bold cyan]

      debt-engine breakdown src/app.py

      debt-engine breakdown src/app.py --json
    """
    workspace = workspace_from(ctx)
    engine, settings = make_engine(workspace)

    try:
        score = engine.rescore_file(workspace, path)
        result = engine.get_breakdown(score.path)
    except DebtEngineError as e:
        fail(e)

    if json_output:
        print_json(result.to_dict())
        return

    style = score_style(result.composite_score, settings)
    console.print()
    console.print(
        f"[bold]{escape(result.path)}[/bold]  [{style}]{result.composite_score:.1f}[/{style}]"
    )

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Signal")
    table.add_column("Raw", justify="right")
    table.add_column("Weight", justify="right", style="dim")
    table.add_column("Contribution", justify="right")
    table.add_column("Evidence", style="dim")
    for component in result.components:
        table.add_row(
            component.name,
            f"{component.raw_score:.1f}",
            f"{component.weight:.2f}",
            f"{component.contribution:.1f}",
            escape("; ".join(component.details)),
        )
    console.print()
    console.print(table)
    console.print()


@app.command()
def heatmap(
    ctx: typer.Context,
    depth: int = typer.Option(
        3,
        "--depth",
        "-d",
        help="Directory levels to expand",
        min=1,
        max=50,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Show stored scores as a directory tree.

    Reads the scores of the last analysis; run [bold]debt-engine analyze[/bold] first.
    """
    workspace = workspace_from(ctx)
    engine, settings = make_engine(workspace)

    try:
        engine.open_workspace(workspace)
        tree = engine.get_heatmap()
    except DebtEngineError as e:
        fail(e)

    if json_output:
        print_json(tree.to_dict())
        return

    rendered = Tree(f"[bold cyan]{escape(tree.name)}[/bold cyan]")
    _add_children(rendered, tree, settings, depth)
    console.print()
    console.print(rendered)
    console.print()


def _add_children(parent: Tree, node: HeatmapNode, settings: AnalysisSettings, depth: int) -> None:
    for child in node.children or []:
        if child.is_leaf:
            style = score_style(child.score or 0.0, settings)
            parent.add(
                f"[{style}]{child.score or 0.0:5.1f}[/{style}]  {escape(child.name)}"
                f" [dim]{child.loc or 0} LOC[/dim]"
            )
            continue

        leaves = list(child.leaves())
        worst = max((leaf.score or 0.0 for leaf in leaves), default=0.0)
        style = score_style(worst, settings)
        branch = parent.add(
            f"[bold]{escape(child.name)}/[/bold] [dim]{len(leaves)} files, max[/dim]"
            f" [{style}]{worst:.1f}[/{style}]"
        )
        if depth > 1:
            _add_children(branch, child, settings, depth - 1)


@app.command()
def couplings(
    ctx: typer.Context,
    min_ratio: float = typer.Option(
        0.05,
        "--min-ratio",
        help="Smallest coupling ratio to report",
        min=0.0,
        max=1.0,
    ),
    limit: int = typer.Option(
        25,
        "--limit",
        "-n",
        help="Maximum number of pairs to list",
        min=1,
        max=200,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    List files that keep changing together in git history.

    Pairs without an import between them are hidden coupling worth a look.
    """
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    try:
        engine.open_workspace(workspace)
        pairs = engine.get_change_couplings(workspace, min_ratio=min_ratio)[:limit]
    except DebtEngineError as e:
        fail(e)

    if json_output:
        print_json([p.to_dict() for p in pairs])
        return

    if not pairs:
        console.print("[yellow]No change-coupled files found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Together", justify="right")
    table.add_column("Ratio", justify="right")
    table.add_column("File A")
    table.add_column("File B")
    table.add_column("Import", justify="center")
    for pair in pairs:
        table.add_row(
            str(pair.co_change_count),
            f"{pair.coupling_ratio:.0%}",
            escape(pair.file_a),
            escape(pair.file_b),
            "[green]yes[/green]" if pair.has_import_link else "[red]no[/red]",
        )
    console.print()
    console.print(table)
    console.print()
