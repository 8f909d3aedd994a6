"""Settings commands: show and update .debtengine/settings.json."""

import json
from dataclasses import asdict
from typing import Any

import typer
from rich.markup import escape
from rich.table import Table

from ..config import load_settings, save_settings
from ..exceptions import DebtEngineError
from ._common import console, fail, print_json, workspace_from

settings_app = typer.Typer(
    help="Show or change workspace settings.",
    no_args_is_help=True,
)


@settings_app.command("show")
def show(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """Show the effective settings (file, environment and defaults combined)."""
    workspace = workspace_from(ctx)
    settings = load_settings(workspace)

    if json_output:
        print_json(asdict(settings))
        return

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in asdict(settings).items():
        if key == "weights":
            continue
        table.add_row(key, str(value))
    for name, weight in settings.weights.items():
        table.add_row(f"weights.{name}", f"{weight:.3f}")
    console.print()
    console.print(table)
    console.print()


@settings_app.command("set")
def set_value(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Settings key, dotted for nesting (e.g. weights.churn_rate)"),
    value: str = typer.Argument(..., help="New value, parsed as JSON when possible"),
):
    """
    Update one stored setting. Values are sanitized before they are written.

    [bold cyan]Examples:[/bold cyan]

      debt-engine settings set gitHistoryDays 30

      debt-engine settings set weights.churn_rate 0.3

      debt-engine settings set strictHistory true
    """
    workspace = workspace_from(ctx)
    try:
        document = save_settings(workspace, _nested(key, _parse_value(value)))
    except (DebtEngineError, OSError) as e:
        fail(e)

    stored: Any = document
    for part in key.split("."):
        stored = stored.get(part) if isinstance(stored, dict) else None
    console.print(f"[green]✓[/green] {escape(key)} = {escape(json.dumps(stored))}")


def _parse_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _nested(key: str, value: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    current = out
    parts = key.split(".")
    for part in parts[:-1]:
        current[part] = {}
        current = current[part]
    current[parts[-1]] = value
    return out
