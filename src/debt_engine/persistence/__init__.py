"""Durable score store and the hand-written records kept beside it."""

from .database import ScoreStore
from .models import (
    MAX_PINNED_FILES,
    DebtBudget,
    ItemStatus,
    ItemType,
    PinnedFile,
    RegisterItem,
    Severity,
)

__all__ = [
    "ScoreStore",
    "MAX_PINNED_FILES",
    "DebtBudget",
    "ItemStatus",
    "ItemType",
    "PinnedFile",
    "RegisterItem",
    "Severity",
]
