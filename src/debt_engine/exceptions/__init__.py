"""Exception hierarchy for debt-engine."""

from .analysis import (
    AnalysisError,
    FileAccessError,
    FileNotScoredError,
    HistoryUnavailableError,
    NoAnalysisDataError,
)
from .base import DebtEngineError
from .config import ConfigurationError, InvalidConfigError, InvalidPathError
from .records import InvalidRecordError, RecordError, RecordNotFoundError, WatchlistFullError
from .runtime import CacheLockError, StoreError

__all__ = [
    "DebtEngineError",
    "AnalysisError",
    "FileAccessError",
    "FileNotScoredError",
    "HistoryUnavailableError",
    "NoAnalysisDataError",
    "ConfigurationError",
    "InvalidConfigError",
    "InvalidPathError",
    "CacheLockError",
    "StoreError",
    "RecordError",
    "RecordNotFoundError",
    "InvalidRecordError",
    "WatchlistFullError",
]
