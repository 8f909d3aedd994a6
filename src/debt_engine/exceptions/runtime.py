"""Runtime exceptions: durable store and shared cache failures."""

from typing import Optional

from .base import DebtEngineError


class StoreError(DebtEngineError):
    """Raised when the durable score store fails to read or write."""

    def __init__(self, operation: str, reason: str, db_path: Optional[str] = None):
        details = {"operation": operation, "reason": reason}
        if db_path:
            details["db_path"] = db_path
        super().__init__(f"Score store {operation} failed", details=details)
        self.operation = operation
        self.reason = reason


class CacheLockError(DebtEngineError):
    """Raised when the shared analysis cache lock cannot be acquired."""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            "Cache lock error",
            details={"timeout_seconds": f"{timeout_seconds:g}"},
        )
        self.timeout_seconds = timeout_seconds
