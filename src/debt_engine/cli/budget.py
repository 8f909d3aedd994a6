"""Budget commands: score ceilings for groups of files."""

from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from ..exceptions import DebtEngineError
from ..scoring.budgets import BudgetStatus
from ._common import console, fail, make_engine, print_json, workspace_from

budget_app = typer.Typer(
    help="Set score ceilings for file patterns and check them.",
    no_args_is_help=True,
)

_STATUS_STYLES = {
    BudgetStatus.OK: "green",
    BudgetStatus.WARNING: "yellow",
    BudgetStatus.CRITICAL: "bold red",
}


@budget_app.command("add")
def add(
    ctx: typer.Context,
    pattern: str = typer.Argument(..., help="Glob over relative paths (e.g. 'src/api/**')"),
    max_score: float = typer.Argument(..., help="Highest acceptable composite score (0-100)"),
    label: Optional[str] = typer.Option(None, "--label", "-l", help="Display name (default: the pattern)"),
    notify: bool = typer.Option(
        True,
        "--notify/--no-notify",
        help="Warn after analysis and fail 'budget check' when breached",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Add a budget.

    [bold cyan]Examples:[/bold cyan]

      debt-engine budget add 'src/api/**' 40 -l "API layer"

      debt-engine budget add '**/*_test.go' 60 --no-notify
    """
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    try:
        budget = engine.create_budget(workspace, pattern, max_score, label, notify)
    except DebtEngineError as e:
        fail(e)

    if json_output:
        print_json(budget.to_dict())
        return
    console.print(
        f"[green]✓[/green] Budget [bold]{escape(budget.label)}[/bold] "
        f"max {budget.max_score:.1f} [dim]{budget.id}[/dim]"
    )


@budget_app.command("update")
def update(
    ctx: typer.Context,
    budget_id: str = typer.Argument(..., help="Budget id"),
    pattern: Optional[str] = typer.Option(None, "--pattern"),
    max_score: Optional[float] = typer.Option(None, "--max"),
    label: Optional[str] = typer.Option(None, "--label", "-l"),
    notify: Optional[bool] = typer.Option(None, "--notify/--no-notify"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """Change a budget. Options not given are left as they are."""
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    try:
        budget = engine.update_budget(workspace, budget_id, pattern, max_score, label, notify)
    except DebtEngineError as e:
        fail(e)

    if json_output:
        print_json(budget.to_dict())
        return
    console.print(f"[green]✓[/green] Budget [bold]{escape(budget.label)}[/bold] max {budget.max_score:.1f}")


@budget_app.command("list")
def list_budgets(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """List budgets, newest first."""
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    try:
        budgets = engine.list_budgets(workspace)
    except DebtEngineError as e:
        fail(e)

    if json_output:
        print_json([b.to_dict() for b in budgets])
        return
    if not budgets:
        console.print("[yellow]No budgets defined.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("ID", style="dim")
    table.add_column("Label")
    table.add_column("Pattern", style="cyan")
    table.add_column("Max", justify="right")
    table.add_column("Notify", justify="center")
    for budget in budgets:
        table.add_row(
            budget.id[:8],
            escape(budget.label),
            escape(budget.pattern),
            f"{budget.max_score:.1f}",
            "yes" if budget.notify_on_breach else "[dim]no[/dim]",
        )
    console.print()
    console.print(table)
    console.print()


@budget_app.command("delete")
def delete(
    ctx: typer.Context,
    budget_id: str = typer.Argument(..., help="Budget id"),
):
    """Remove a budget."""
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    try:
        engine.delete_budget(workspace, budget_id)
    except DebtEngineError as e:
        fail(e)
    console.print(f"[green]✓[/green] Deleted {escape(budget_id)}")


@budget_app.command("check")
def check(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Check every budget against the stored scores.

    Exits with status 1 when a budget with notifications on is breached,
    so it can gate CI.

    [bold cyan]Examples:[/bold cyan]

      debt-engine analyze && debt-engine budget check
    """
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    try:
        evaluations = engine.evaluate_budgets(workspace)
    except DebtEngineError as e:
        fail(e)

    breached = any(e.breaching_count and e.budget.notify_on_breach for e in evaluations)

    if json_output:
        print_json([e.to_dict() for e in evaluations])
    elif not evaluations:
        console.print("[yellow]No budgets defined.[/yellow]")
    else:
        console.print()
        for evaluation in evaluations:
            style = _STATUS_STYLES[evaluation.status]
            budget = evaluation.budget
            console.print(
                f"[{style}]{evaluation.status.value.upper():<8}[/{style}] "
                f"[bold]{escape(budget.label)}[/bold] max {budget.max_score:.1f}  "
                f"[dim]{evaluation.compliant_count}/{len(evaluation.matched)} within budget[/dim]"
            )
            for path, score in evaluation.breaching:
                console.print(f"    {score:5.1f}  {escape(path)}")
        console.print()

    if breached:
        raise typer.Exit(1)
