"""
File enumeration and safe file access for a workspace.

Paths handed to the rest of the package are absolute; relative paths are
always POSIX-style so they compare equal to the paths git reports.
"""

from __future__ import annotations

import os
from pathlib import Path

from .exceptions import FileAccessError, InvalidPathError
from .languages import is_source_file
from .logging_config import get_logger

logger = get_logger(__name__)

# Directory names never descended into (hidden entries are skipped as well).
SKIP_DIRS = frozenset(
    {"node_modules", "target", "__pycache__", "vendor", "dist", "build", "venv"}
)


def validate_workspace(root: str | Path) -> Path:
    """Resolve a workspace root, raising InvalidPathError unless it is a directory."""
    path = Path(root).expanduser()
    if not path.exists():
        raise InvalidPathError(path, "Directory does not exist")
    if not path.is_dir():
        raise InvalidPathError(path, "Not a directory")
    return path.resolve()


def walk_source_files(root: str | Path) -> list[Path]:
    """Every eligible source file under ``root``, depth first, sorted per directory."""
    files: list[Path] = []
    _walk(Path(root), files)
    logger.debug("Enumerated %d source files under %s", len(files), root)
    return files


def _walk(directory: Path, files: list[Path]) -> None:
    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except OSError as e:
        logger.debug("Cannot list %s: %s", directory, e)
        return

    for entry in entries:
        name = entry.name
        if name.startswith(".") or name in SKIP_DIRS:
            continue
        try:
            if entry.is_dir(follow_symlinks=False):
                _walk(Path(entry.path), files)
            elif entry.is_file() and is_source_file(name):
                files.append(Path(entry.path))
        except OSError as e:
            logger.debug("Skipping %s: %s", entry.path, e)


def to_relative_path(root: str | Path, path: str | Path) -> str:
    """Path of ``path`` relative to ``root`` with forward slashes.

    Paths outside the root are returned unchanged (as POSIX).
    """
    root_path = Path(root)
    file_path = Path(path)
    try:
        return file_path.relative_to(root_path).as_posix()
    except ValueError:
        pass
    try:
        return file_path.resolve().relative_to(root_path.resolve()).as_posix()
    except (OSError, ValueError):
        return file_path.as_posix()


def read_source(path: str | Path) -> str:
    """Read a source file as text. Undecodable bytes are replaced."""
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise FileAccessError(Path(path), str(e)) from e


def file_mtime(path: str | Path) -> int:
    """Modification time in whole seconds since the epoch."""
    try:
        return int(Path(path).stat().st_mtime)
    except OSError as e:
        raise FileAccessError(Path(path), str(e)) from e


def count_loc(source: str) -> int:
    return len(source.splitlines())
