"""Register, budget and watchlist exceptions."""

from typing import Any

from .base import DebtEngineError


class RecordError(DebtEngineError):
    """Base class for errors about register items, budgets and pinned files."""

    pass


class RecordNotFoundError(RecordError):
    """Raised when a register item or budget id is not stored."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"No {kind} with id {record_id}", details={"kind": kind, "id": record_id})
        self.kind = kind
        self.record_id = record_id


class InvalidRecordError(RecordError):
    """Raised when a record field holds a value the store will not keep."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Invalid {field}: {value!r}",
            details={"field": field, "reason": reason},
        )
        self.field = field
        self.reason = reason


class WatchlistFullError(RecordError):
    """Raised when pinning one more file would exceed the watchlist limit."""

    def __init__(self, limit: int):
        super().__init__(
            f"Watchlist is full (max {limit} files). Unpin a file first.",
            details={"limit": str(limit)},
        )
        self.limit = limit
