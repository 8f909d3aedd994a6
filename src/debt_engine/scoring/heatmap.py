"""Fold per-file scores into a directory tree."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from .models import FileScore, HeatmapNode


def build_heatmap_tree(root: str | Path, files: Iterable[FileScore]) -> HeatmapNode:
    """Tree rooted at the workspace; directories are unscored aggregation points."""
    root_name = Path(root).name or "root"
    tree = HeatmapNode(name=root_name, path=str(root), children=[])
    for file in files:
        parts = [p for p in file.relative_path.split("/") if p]
        _insert(tree, parts, file, "")
    return tree


def _insert(node: HeatmapNode, parts: list[str], file: FileScore, prefix: str) -> None:
    if not parts:
        return

    if node.children is None:
        node.children = []

    if len(parts) == 1:
        node.children.append(
            HeatmapNode(
                name=parts[0],
                path=file.relative_path,
                score=file.composite_score,
                loc=file.loc,
            )
        )
        return

    dir_name = parts[0]
    dir_path = f"{prefix}/{dir_name}" if prefix else dir_name

    for child in node.children:
        if child.name == dir_name and child.children is not None:
            _insert(child, parts[1:], file, dir_path)
            return

    directory = HeatmapNode(name=dir_name, path=dir_path, children=[])
    _insert(directory, parts[1:], file, dir_path)
    node.children.append(directory)
