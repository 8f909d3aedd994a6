"""Budget evaluation: which files a budget covers and which of them exceed it."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Iterable, Sequence

from ..persistence.models import DebtBudget
from .models import FileScore

# Up to this many breaching files a budget is a warning; beyond it, critical.
WARNING_BREACH_LIMIT = 2


class BudgetStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"


@lru_cache(maxsize=256)
def _pattern_regex(pattern: str) -> re.Pattern[str]:
    parts = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts))


def pattern_matches(pattern: str, relative_path: str) -> bool:
    """Glob match over the whole relative path. ``**/`` also matches no directory.

    >>> pattern_matches("src/**/*.py", "src/app/models.py")
    True
    >>> pattern_matches("src/**/*.py", "src/app.py")
    True
    >>> pattern_matches("src/*.py", "src/app/models.py")
    False
    """
    return _pattern_regex(pattern).fullmatch(relative_path) is not None


@dataclass(frozen=True)
class BudgetEvaluation:
    budget: DebtBudget
    matched: tuple[tuple[str, float], ...]  # (relative path, composite score)

    @property
    def breaching(self) -> tuple[tuple[str, float], ...]:
        return tuple(m for m in self.matched if m[1] > self.budget.max_score)

    @property
    def breaching_count(self) -> int:
        return len(self.breaching)

    @property
    def compliant_count(self) -> int:
        return len(self.matched) - self.breaching_count

    @property
    def status(self) -> BudgetStatus:
        if self.breaching_count == 0:
            return BudgetStatus.OK
        if self.breaching_count <= WARNING_BREACH_LIMIT:
            return BudgetStatus.WARNING
        return BudgetStatus.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.budget.to_dict(),
            "matched_files": [{"path": path, "score": score} for path, score in self.matched],
            "compliant_count": self.compliant_count,
            "breaching_count": self.breaching_count,
            "status": self.status.value,
        }


def evaluate_budget(budget: DebtBudget, files: Iterable[FileScore]) -> BudgetEvaluation:
    matched = tuple(
        (f.relative_path, f.composite_score)
        for f in sorted(files, key=lambda f: f.relative_path)
        if pattern_matches(budget.pattern, f.relative_path)
    )
    return BudgetEvaluation(budget=budget, matched=matched)


def evaluate_budgets(
    budgets: Sequence[DebtBudget], files: Sequence[FileScore]
) -> list[BudgetEvaluation]:
    """Evaluate every budget against the same set of scored files."""
    return [evaluate_budget(budget, files) for budget in budgets]
