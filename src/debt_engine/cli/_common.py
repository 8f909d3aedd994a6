"""Shared CLI helpers."""

import json
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from ..config import AnalysisSettings, load_settings
from ..engine import DebtEngine
from ..state import AnalysisCache

console = Console()


def workspace_from(ctx: typer.Context) -> Path:
    obj = ctx.obj or {}
    return obj.get("path") or Path.cwd().resolve()


def make_engine(workspace: Path) -> tuple[DebtEngine, AnalysisSettings]:
    """Engine plus the workspace's effective settings."""
    settings = load_settings(workspace)
    engine = DebtEngine(cache=AnalysisCache(lock_timeout=settings.lock_timeout_seconds))
    return engine, settings


def score_style(score: float, settings: AnalysisSettings) -> str:
    if score > settings.critical_threshold:
        return "bold red"
    if score > settings.high_debt_threshold:
        return "yellow"
    return "green"


def print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


def fail(error: Exception) -> NoReturn:
    """Report an engine error and exit with status 1."""
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    raise typer.Exit(1)
