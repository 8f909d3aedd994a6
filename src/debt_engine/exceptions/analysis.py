"""Analysis-related exceptions: file access, history, missing results."""

from pathlib import Path
from typing import Optional

from .base import DebtEngineError


class AnalysisError(DebtEngineError):
    """Base class for analysis-related errors."""

    pass


class FileAccessError(AnalysisError):
    """Raised when a file cannot be accessed or read."""

    def __init__(self, filepath: Path, reason: str):
        super().__init__(
            f"Cannot access file: {filepath}",
            details={"filepath": str(filepath), "reason": reason},
        )
        self.filepath = filepath
        self.reason = reason


class HistoryUnavailableError(AnalysisError):
    """Raised when git history for a workspace cannot be read."""

    def __init__(self, workspace: str, reason: str):
        super().__init__(
            f"Git history unavailable for {workspace}",
            details={"workspace": workspace, "reason": reason},
        )
        self.workspace = workspace
        self.reason = reason


class NoAnalysisDataError(AnalysisError):
    """Raised when a view is requested before any analysis result exists."""

    def __init__(self, reason: str = "No analysis data available. Run analysis first."):
        super().__init__(reason)


class FileNotScoredError(AnalysisError):
    """Raised when a breakdown is requested for a file without a score."""

    def __init__(self, path: str, workspace: Optional[str] = None):
        details = {"path": path}
        if workspace:
            details["workspace"] = workspace
        super().__init__(f"File not found: {path}", details=details)
        self.path = path
