"""Debt register commands: hand-tracked debt items kept in .debtengine/state.db."""

from datetime import datetime
from typing import Any, Optional

import click
import typer
from rich.markup import escape
from rich.table import Table

from ..exceptions import DebtEngineError
from ..persistence import ItemStatus, ItemType, RegisterItem, Severity
from ._common import console, fail, make_engine, print_json, workspace_from

register_app = typer.Typer(
    help="Track debt items by hand or import them from the last analysis.",
    no_args_is_help=True,
)

_SEVERITY_STYLES = {
    Severity.LOW: "dim",
    Severity.MEDIUM: "cyan",
    Severity.HIGH: "yellow",
    Severity.CRITICAL: "bold red",
}


def _choice(enum) -> click.Choice:
    return click.Choice([member.value for member in enum], case_sensitive=False)


@register_app.command("add")
def add(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Short description of the debt"),
    description: str = typer.Option("", "--description", "-d", help="Longer explanation"),
    file_path: Optional[str] = typer.Option(None, "--file", "-f", help="File the item is about"),
    severity: str = typer.Option("medium", "--severity", "-s", click_type=_choice(Severity)),
    item_type: str = typer.Option("code", "--type", "-t", click_type=_choice(ItemType)),
    owner: Optional[str] = typer.Option(None, "--owner", help="Who is responsible"),
    target_sprint: Optional[str] = typer.Option(None, "--sprint", help="Sprint the fix is planned for"),
    estimated_hours: Optional[float] = typer.Option(None, "--estimate", help="Estimated hours to fix"),
    tags: Optional[list[str]] = typer.Option(None, "--tag", help="Tag (repeatable)"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Add an item to the debt register.

    [bold cyan]Examples:[/bold cyan]

      debt-engine register add "Split the payment module" -f src/payments.py -s high

      debt-engine register add "Pin requests" -t dependency --tag security --tag deps
    """
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    try:
        item = engine.create_register_item(
            workspace,
            title,
            description=description,
            file_path=file_path,
            severity=severity.lower(),
            item_type=item_type.lower(),
            owner=owner,
            target_sprint=target_sprint,
            estimated_hours=estimated_hours,
            tags=tags or (),
        )
    except DebtEngineError as e:
        fail(e)

    if json_output:
        print_json(item.to_dict())
        return
    console.print(f"[green]✓[/green] Registered [bold]{escape(item.title)}[/bold] [dim]{item.id}[/dim]")


@register_app.command("list")
def list_items(
    ctx: typer.Context,
    status: Optional[str] = typer.Option(
        None, "--status", help="Only items with this status", click_type=_choice(ItemStatus)
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """List register items, newest first."""
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    try:
        items = engine.list_register_items(workspace, status=status.lower() if status else None)
    except DebtEngineError as e:
        fail(e)

    if json_output:
        print_json([item.to_dict() for item in items])
        return

    if not items:
        console.print("[yellow]The debt register is empty.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("ID", style="dim")
    table.add_column("Severity")
    table.add_column("Status")
    table.add_column("Title")
    table.add_column("File", style="dim")
    table.add_column("Owner", style="dim")
    for item in items:
        style = _SEVERITY_STYLES[item.severity]
        table.add_row(
            item.id[:8],
            f"[{style}]{item.severity.value}[/{style}]",
            item.status.value,
            escape(item.title),
            escape(item.file_path or ""),
            escape(item.owner or ""),
        )
    console.print()
    console.print(table)
    console.print()


@register_app.command("show")
def show(
    ctx: typer.Context,
    item_id: str = typer.Argument(..., help="Register item id"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """Show every field of one register item."""
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    try:
        item = engine.get_register_item(workspace, item_id)
    except DebtEngineError as e:
        fail(e)

    if json_output:
        print_json(item.to_dict())
        return
    _print_item(item)


@register_app.command("update")
def update(
    ctx: typer.Context,
    item_id: str = typer.Argument(..., help="Register item id"),
    title: Optional[str] = typer.Option(None, "--title"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    file_path: Optional[str] = typer.Option(None, "--file", "-f"),
    status: Optional[str] = typer.Option(None, "--status", click_type=_choice(ItemStatus)),
    severity: Optional[str] = typer.Option(None, "--severity", "-s", click_type=_choice(Severity)),
    item_type: Optional[str] = typer.Option(None, "--type", "-t", click_type=_choice(ItemType)),
    owner: Optional[str] = typer.Option(None, "--owner"),
    target_sprint: Optional[str] = typer.Option(None, "--sprint"),
    estimated_hours: Optional[float] = typer.Option(None, "--estimate"),
    actual_hours: Optional[float] = typer.Option(None, "--actual", help="Hours actually spent"),
    linked_commit: Optional[str] = typer.Option(None, "--commit", help="Commit that addressed the item"),
    notes: Optional[str] = typer.Option(None, "--notes"),
    tags: Optional[list[str]] = typer.Option(None, "--tag", help="Replace the tags (repeatable)"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Change fields of a register item. Options not given are left as they are.

    [bold cyan]Examples:[/bold cyan]

      debt-engine register update 3f2a... --status in_progress --owner dana

      debt-engine register update 3f2a... --status resolved --actual 6 --commit abc123
    """
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    given: dict[str, Any] = {
        "title": title,
        "description": description,
        "file_path": file_path,
        "status": status.lower() if status else None,
        "severity": severity.lower() if severity else None,
        "item_type": item_type.lower() if item_type else None,
        "owner": owner,
        "target_sprint": target_sprint,
        "estimated_hours": estimated_hours,
        "actual_hours": actual_hours,
        "linked_commit": linked_commit,
        "notes": notes,
        "tags": tags or None,
    }
    changes = {key: value for key, value in given.items() if value is not None}

    try:
        item = engine.update_register_item(workspace, item_id, **changes)
    except DebtEngineError as e:
        fail(e)

    if json_output:
        print_json(item.to_dict())
        return
    console.print(f"[green]✓[/green] Updated [bold]{escape(item.title)}[/bold] ({item.status.value})")


@register_app.command("delete")
def delete(
    ctx: typer.Context,
    item_id: str = typer.Argument(..., help="Register item id"),
):
    """Remove an item from the register."""
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    try:
        engine.delete_register_item(workspace, item_id)
    except DebtEngineError as e:
        fail(e)
    console.print(f"[green]✓[/green] Deleted {escape(item_id)}")


@register_app.command("import")
def import_files(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Register every high-debt file from the last analysis that is not tracked yet.

    [bold cyan]Examples:[/bold cyan]

      debt-engine analyze && debt-engine register import
    """
    workspace = workspace_from(ctx)
    engine, _settings = make_engine(workspace)

    try:
        items = engine.import_high_debt_files(workspace)
    except DebtEngineError as e:
        fail(e)

    if json_output:
        print_json([item.to_dict() for item in items])
        return
    if not items:
        console.print("[green]No untracked high-debt files.[/green]")
        return
    console.print(f"[green]✓[/green] Imported {len(items)} high-debt file(s)")
    for item in items:
        style = _SEVERITY_STYLES[item.severity]
        console.print(f"  [{style}]{item.severity.value:<8}[/{style}] {escape(item.file_path or '')}")


def _print_item(item: RegisterItem) -> None:
    style = _SEVERITY_STYLES[item.severity]
    console.print()
    console.print(f"[bold]{escape(item.title)}[/bold] [dim]{item.id}[/dim]")
    console.print(f"  [{style}]{item.severity.value}[/{style}] {item.item_type.value}, {item.status.value}")
    rows = [
        ("File", item.file_path),
        ("Owner", item.owner),
        ("Sprint", item.target_sprint),
        ("Estimate", f"{item.estimated_hours:g}h" if item.estimated_hours is not None else None),
        ("Actual", f"{item.actual_hours:g}h" if item.actual_hours is not None else None),
        ("Commit", item.linked_commit),
        ("Tags", ", ".join(item.tags) or None),
        ("Created", datetime.fromtimestamp(item.created_at).strftime("%Y-%m-%d %H:%M")),
        ("Updated", datetime.fromtimestamp(item.updated_at).strftime("%Y-%m-%d %H:%M")),
    ]
    for label, value in rows:
        if value:
            console.print(f"  [dim]{label + ':':<10}[/dim] {escape(value)}")
    if item.description:
        console.print()
        console.print(escape(item.description))
    if item.notes:
        console.print()
        console.print(f"[dim]Notes:[/dim] {escape(item.notes)}")
    console.print()
