"""Data models for git-derived history facts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional


@dataclass
class Commit:
    hash: str
    timestamp: int  # unix seconds
    author: str
    files: list[str]  # relative paths changed


@dataclass
class CoChangeTable:
    """Co-change pair counts plus per-file change counts.

    Pairs are keyed canonically with ``file_a < file_b``.
    """

    pairs: dict[tuple[str, str], int] = field(default_factory=dict)
    file_change_counts: dict[str, int] = field(default_factory=dict)

    def peers(self, relative_path: str) -> Iterator[tuple[str, int]]:
        """Yield (peer, co_change_count) for every pair containing the file."""
        for (a, b), count in self.pairs.items():
            if a == relative_path:
                yield b, count
            elif b == relative_path:
                yield a, count

    def changes(self, relative_path: str) -> int:
        """Total changes of a file; unknown files count as one change."""
        return self.file_change_counts.get(relative_path, 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pairs": [[a, b, n] for (a, b), n in sorted(self.pairs.items())],
            "file_change_counts": dict(self.file_change_counts),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CoChangeTable":
        return cls(
            pairs={(a, b): int(n) for a, b, n in data.get("pairs", [])},
            file_change_counts={k: int(v) for k, v in data.get("file_change_counts", {}).items()},
        )


@dataclass
class HistoryFacts:
    """Everything the analyzers need from version control for one window."""

    window_days: int
    churn: dict[str, int] = field(default_factory=dict)
    blame: dict[str, dict[str, int]] = field(default_factory=dict)
    co_changes: CoChangeTable = field(default_factory=CoChangeTable)
    commit_count: int = 0
    commit_count_week: int = 0
    head: Optional[str] = None

    @classmethod
    def empty(cls, window_days: int) -> "HistoryFacts":
        return cls(window_days=window_days)

    @property
    def is_empty(self) -> bool:
        return not self.churn and not self.blame and not self.co_changes.pairs

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_days": self.window_days,
            "churn": dict(self.churn),
            "blame": {path: dict(authors) for path, authors in self.blame.items()},
            "co_changes": self.co_changes.to_dict(),
            "commit_count": self.commit_count,
            "commit_count_week": self.commit_count_week,
            "head": self.head,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryFacts":
        return cls(
            window_days=int(data["window_days"]),
            churn={k: int(v) for k, v in data.get("churn", {}).items()},
            blame={
                path: {author: int(n) for author, n in authors.items()}
                for path, authors in data.get("blame", {}).items()
            },
            co_changes=CoChangeTable.from_dict(data.get("co_changes", {})),
            commit_count=int(data.get("commit_count", 0)),
            commit_count_week=int(data.get("commit_count_week", 0)),
            head=data.get("head"),
        )
