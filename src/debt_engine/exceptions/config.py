"""Rejected inputs: workspace paths and settings updates."""

from pathlib import Path
from typing import Any

from .base import DebtEngineError


class ConfigurationError(DebtEngineError):
    """Base class for rejected paths and settings."""


class InvalidPathError(ConfigurationError):
    """A workspace root that is not a directory, or a file outside the root."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Invalid path: {path}", details={"path": str(path), "reason": reason})
        self.path = path
        self.reason = reason


class InvalidConfigError(ConfigurationError):
    """A settings update that cannot be merged into the stored document."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            f"Rejected settings update for {key}: {reason}",
            details={"key": key, "type": type(value).__name__},
        )
        self.key = key
        self.reason = reason
