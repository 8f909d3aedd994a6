"""Test coverage gap from coverage reports or test-file naming conventions."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

from ..logging_config import get_logger

logger = get_logger(__name__)

COVERED_GAP = 30.0
TEST_FILE_GAP = 30.0
UNTESTED_GAP = 80.0

LCOV_REPORT = "coverage/lcov.info"
COBERTURA_REPORT = "coverage.xml"


@dataclass(frozen=True)
class CoverageReport:
    """Set of files mentioned by the workspace's coverage report(s)."""

    files: frozenset[str]
    sources: tuple[str, ...] = ()

    def covers(self, relative_path: str) -> bool:
        if relative_path in self.files:
            return True
        suffix = "/" + relative_path
        return any(f.endswith(suffix) for f in self.files)


def load_coverage_report(root: str | Path) -> Optional[CoverageReport]:
    """Parse lcov and Cobertura reports under ``root``; None when there are none."""
    root = Path(root)
    files: set[str] = set()
    sources: list[str] = []

    lcov = root / LCOV_REPORT
    if lcov.is_file():
        files.update(_parse_lcov(lcov, root))
        sources.append(LCOV_REPORT)

    cobertura = root / COBERTURA_REPORT
    if cobertura.is_file():
        files.update(_parse_cobertura(cobertura, root))
        sources.append(COBERTURA_REPORT)

    if not sources:
        return None
    logger.debug("Coverage report lists %d files (%s)", len(files), ", ".join(sources))
    return CoverageReport(files=frozenset(files), sources=tuple(sources))


def _normalize(entry: str, root: Path) -> str:
    entry = entry.strip().replace("\\", "/")
    path = Path(entry)
    if path.is_absolute():
        try:
            return path.relative_to(root).as_posix()
        except ValueError:
            return entry
    return entry[2:] if entry.startswith("./") else entry


def _parse_lcov(path: Path, root: Path) -> set[str]:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return set()
    return {_normalize(line[3:], root) for line in text.splitlines() if line.startswith("SF:")}


def _parse_cobertura(path: Path, root: Path) -> set[str]:
    try:
        tree = ET.parse(path)
    except (OSError, ET.ParseError) as e:
        logger.warning("Cannot parse %s: %s", path, e)
        return set()

    xml_root = tree.getroot()
    bases = [(s.text or "").strip() for s in xml_root.iter("source") if (s.text or "").strip()]
    files: set[str] = set()
    for cls in xml_root.iter("class"):
        filename = cls.get("filename")
        if not filename:
            continue
        files.add(_normalize(filename, root))
        for base in bases:
            files.add(_normalize(str(Path(base) / filename), root))
    return files


def candidate_test_files(relative_path: str) -> list[str]:
    """Conventional locations of a test for ``relative_path``."""
    path = PurePosixPath(relative_path)
    stem, ext = path.stem, path.suffix
    parent = path.parent

    def at(directory: PurePosixPath, name: str) -> str:
        return (directory / name).as_posix()

    top = PurePosixPath(".")
    return [
        at(parent, f"{stem}.test{ext}"),
        at(parent, f"{stem}.spec{ext}"),
        at(parent, f"test_{stem}{ext}"),
        at(parent, f"{stem}_test{ext}"),
        at(parent / "__tests__", f"{stem}.test{ext}"),
        at(parent / "tests", f"test_{stem}{ext}"),
        at(top / "tests", f"test_{stem}{ext}"),
        at(top / "tests", f"{stem}_test{ext}"),
        at(top / "test", f"{stem}_test{ext}"),
        at(top / "test", f"test_{stem}{ext}"),
    ]


def find_test_file(root: str | Path, relative_path: str) -> Optional[str]:
    """First existing conventional test file, as a relative path."""
    root = Path(root)
    for candidate in candidate_test_files(relative_path):
        if candidate != relative_path and (root / candidate).is_file():
            return candidate
    return None


def compute_coverage_gap(
    root: str | Path, relative_path: str, report: Optional[CoverageReport]
) -> float:
    """30 when covered or tested, 80 otherwise."""
    if report is not None and report.covers(relative_path):
        return COVERED_GAP
    if find_test_file(root, relative_path) is not None:
        return TEST_FILE_GAP
    return UNTESTED_GAP
