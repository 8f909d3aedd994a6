"""Records kept next to the scores: the debt register, score budgets, pinned files.

Unlike scores these are written by people, not computed, so they survive
rescans untouched and are only changed through their own store methods.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

# Most files one workspace can pin at a time.
MAX_PINNED_FILES = 5


class _LenientEnum(str, Enum):
    @classmethod
    def parse(cls, value: Any, default: "_LenientEnum"):
        """Parse a stored value; unknown values become ``default``."""
        try:
            return cls(value)
        except ValueError:
            return default


class Severity(_LenientEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ItemType(_LenientEnum):
    DESIGN = "design"
    CODE = "code"
    TEST = "test"
    DEPENDENCY = "dependency"
    DOCUMENTATION = "documentation"
    SECURITY = "security"
    PERFORMANCE = "performance"


class ItemStatus(_LenientEnum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    DEFERRED = "deferred"
    ACCEPTED = "accepted"


def new_record_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class RegisterItem:
    """One tracked piece of debt, optionally tied to a file."""

    id: str
    title: str
    description: str = ""
    file_path: Optional[str] = None  # workspace-relative, POSIX
    severity: Severity = Severity.MEDIUM
    item_type: ItemType = ItemType.CODE
    status: ItemStatus = ItemStatus.OPEN
    owner: Optional[str] = None
    target_sprint: Optional[str] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    tags: tuple[str, ...] = ()
    linked_commit: Optional[str] = None
    notes: Optional[str] = None
    created_at: int = 0
    updated_at: int = 0

    @classmethod
    def new(cls, title: str, **fields: Any) -> "RegisterItem":
        """A fresh item with a random id, stamped now."""
        now = int(time.time())
        return cls(id=new_record_id(), title=title, created_at=now, updated_at=now, **fields)

    def updated(self, **changes: Any) -> "RegisterItem":
        return replace(self, updated_at=int(time.time()), **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "file_path": self.file_path,
            "severity": self.severity.value,
            "item_type": self.item_type.value,
            "status": self.status.value,
            "owner": self.owner,
            "target_sprint": self.target_sprint,
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "tags": list(self.tags),
            "linked_commit": self.linked_commit,
            "notes": self.notes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class DebtBudget:
    """Score ceiling for every file whose relative path matches ``pattern``.

    ``*`` matches within one directory, ``**`` across directories.
    """

    id: str
    pattern: str
    label: str
    max_score: float
    created_at: int = 0
    notify_on_breach: bool = True

    @classmethod
    def new(
        cls,
        pattern: str,
        max_score: float,
        label: Optional[str] = None,
        notify_on_breach: bool = True,
    ) -> "DebtBudget":
        return cls(
            id=new_record_id(),
            pattern=pattern,
            label=label or pattern,
            max_score=max_score,
            created_at=int(time.time()),
            notify_on_breach=notify_on_breach,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "pattern": self.pattern,
            "label": self.label,
            "max_score": self.max_score,
            "created_at": self.created_at,
            "notify_on_breach": self.notify_on_breach,
        }


@dataclass(frozen=True)
class PinnedFile:
    file_path: str
    pinned_at: int

    def to_dict(self) -> dict[str, Any]:
        return {"file_path": self.file_path, "pinned_at": self.pinned_at}
