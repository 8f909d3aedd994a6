"""Structural coupling (import graph) and change coupling (co-change)."""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass, field
from functools import cached_property
from pathlib import PurePosixPath
from typing import Iterable

from ..history.models import CoChangeTable
from ..languages import get_profile

TOP_PEERS = 5


@dataclass
class ImportDegrees:
    """Workspace-wide import graph degrees keyed by relative path."""

    in_degree: dict[str, int] = field(default_factory=dict)
    out_degree: dict[str, int] = field(default_factory=dict)

    @cached_property
    def max_degree(self) -> int:
        files = set(self.in_degree) | set(self.out_degree)
        return max((self.degree(f) for f in files), default=0)

    def degree(self, relative_path: str) -> int:
        return self.in_degree.get(relative_path, 0) + self.out_degree.get(relative_path, 0)


def extract_imports(source: str, language: str) -> list[str]:
    """Imported module paths, in source order."""
    profile = get_profile(language)
    regex = profile.import_regex()
    if regex is None:
        return []

    block_start = block_member = None
    if profile.import_block is not None:
        block_start = re.compile(profile.import_block[0])
        block_member = re.compile(profile.import_block[1])

    imports: list[str] = []
    in_block = False
    for line in source.splitlines():
        if in_block:
            if line.strip().startswith(")"):
                in_block = False
                continue
            member = block_member.match(line)
            if member:
                imports.append(member.group(1))
            continue
        if block_start is not None and block_start.match(line):
            in_block = True
            continue
        match = regex.search(line)
        if match:
            imports.append(next(g for g in match.groups() if g is not None))
    return imports


def build_import_degrees(files: Iterable[tuple[str, str, str]]) -> ImportDegrees:
    """Build in/out degrees from (relative_path, language, source) triples.

    Out-degree counts every import a file declares. In-degree is credited to
    the first file, in enumeration order, whose stem matches one of the
    import's names; a file never satisfies its own import.
    """
    entries = list(files)
    by_stem: dict[str, list[str]] = defaultdict(list)
    for rel, _, _ in entries:
        by_stem[PurePosixPath(rel).stem].append(rel)

    degrees = ImportDegrees()
    in_degree: dict[str, int] = defaultdict(int)
    for rel, language, source in entries:
        imports = extract_imports(source, language)
        degrees.out_degree[rel] = len(imports)
        profile = get_profile(language)
        for module in imports:
            target = _resolve(rel, profile.import_candidates(module), by_stem)
            if target is not None:
                in_degree[target] += 1
    degrees.in_degree = dict(in_degree)
    return degrees


def _resolve(importer: str, candidates: list[str], by_stem: dict[str, list[str]]) -> str | None:
    for name in candidates:
        for rel in by_stem.get(name, ()):
            if rel != importer:
                return rel
    return None


def compute_coupling_index(degrees: ImportDegrees, relative_path: str) -> float:
    """``(in + out) / (2 * max_degree) * 100``; 0 for a workspace without imports."""
    max_degree = degrees.max_degree
    if max_degree == 0:
        return 0.0
    return min(100.0, degrees.degree(relative_path) / (2.0 * max_degree) * 100.0)


def coupling_ratio(table: CoChangeTable, file_a: str, file_b: str, co_changes: int) -> float:
    """Co-changes over the smaller of the two files' change counts, at most 1."""
    smaller = max(1, min(table.changes(file_a), table.changes(file_b)))
    return min(1.0, co_changes / smaller)


def compute_change_coupling(relative_path: str, table: CoChangeTable) -> float:
    """Average of the top five peer coupling ratios, times 100."""
    ratios = sorted(
        (coupling_ratio(table, relative_path, peer, count) for peer, count in table.peers(relative_path)),
        reverse=True,
    )
    if not ratios:
        return 0.0
    top = ratios[:TOP_PEERS]
    return min(100.0, sum(top) / len(top) * 100.0)


def has_import_link(source: str, other_relative_path: str) -> bool:
    """Whether ``source`` mentions the other file's stem at all."""
    stem = PurePosixPath(other_relative_path).stem
    return bool(stem) and stem in source
