"""Data models for scores, results and the heatmap tree.

Scores are immutable values: a rescore produces a new FileScore and a patch
produces a new AnalysisResult, so a reader holding one never sees it change.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Sequence

from ..analysis.coupling import ImportDegrees
from ..analysis.coverage import CoverageReport
from ..config import SIGNAL_NAMES
from ..history.models import CoChangeTable
from ..languages import detect_language
from ..workspace import to_relative_path

HIGH_DEBT_THRESHOLD = 65.0


class SupervisionStatus(str, Enum):
    """Reviewer verdict on a file's score."""

    NONE = "none"
    ACCEPTABLE = "acceptable"
    REGRESSED = "regressed"

    @classmethod
    def parse(cls, value: Any) -> "SupervisionStatus":
        """Lenient parse used when loading rows; unknown values become NONE."""
        try:
            return cls(value)
        except ValueError:
            return cls.NONE


@dataclass(frozen=True)
class FileFingerprint:
    path: str
    relative_path: str
    language: str
    loc: int
    last_modified: int

    @classmethod
    def for_path(cls, root: str | Path, path: str | Path, loc: int, last_modified: int) -> "FileFingerprint":
        """Fingerprint whose relative path and language derive from ``path``."""
        return cls(
            path=str(path),
            relative_path=to_relative_path(root, path),
            language=detect_language(path),
            loc=loc,
            last_modified=last_modified,
        )


@dataclass(frozen=True)
class ComponentScore:
    raw_score: float
    weight: float
    contribution: float
    details: tuple[str, ...] = ()

    @classmethod
    def build(cls, raw_score: float, weight: float, details: Sequence[str] = ()) -> "ComponentScore":
        raw = min(100.0, max(0.0, float(raw_score)))
        return cls(raw_score=raw, weight=weight, contribution=raw * weight, details=tuple(details))

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw_score": self.raw_score,
            "weight": self.weight,
            "contribution": self.contribution,
            "details": list(self.details),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ComponentScore":
        return cls(
            raw_score=float(data["raw_score"]),
            weight=float(data["weight"]),
            contribution=float(data["contribution"]),
            details=tuple(str(d) for d in data.get("details", ())),
        )


_ZERO = ComponentScore(raw_score=0.0, weight=0.0, contribution=0.0)


@dataclass(frozen=True)
class ScoreComponents:
    churn_rate: ComponentScore = _ZERO
    code_smell_density: ComponentScore = _ZERO
    coupling_index: ComponentScore = _ZERO
    change_coupling: ComponentScore = _ZERO
    test_coverage_gap: ComponentScore = _ZERO
    knowledge_concentration: ComponentScore = _ZERO
    cyclomatic_complexity: ComponentScore = _ZERO
    decision_staleness: ComponentScore = _ZERO

    @classmethod
    def empty(cls) -> "ScoreComponents":
        return cls()

    def items(self) -> Iterator[tuple[str, ComponentScore]]:
        """(slot name, component) pairs in breakdown order."""
        for name in SIGNAL_NAMES:
            yield name, getattr(self, name)

    def total_contribution(self) -> float:
        total = 0.0
        for _, component in self.items():
            total += component.contribution
        return total

    def to_dict(self) -> dict[str, Any]:
        return {name: component.to_dict() for name, component in self.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScoreComponents":
        """Rebuild from ``to_dict`` output. Missing slots load as zero."""
        return cls(
            **{name: ComponentScore.from_dict(data[name]) for name in SIGNAL_NAMES if name in data}
        )


@dataclass(frozen=True)
class FileScore:
    fingerprint: FileFingerprint
    components: ScoreComponents
    composite_score: float
    supervision_status: SupervisionStatus = SupervisionStatus.NONE
    supervision_note: Optional[str] = None

    @property
    def path(self) -> str:
        return self.fingerprint.path

    @property
    def relative_path(self) -> str:
        return self.fingerprint.relative_path

    @property
    def language(self) -> str:
        return self.fingerprint.language

    @property
    def loc(self) -> int:
        return self.fingerprint.loc

    @property
    def last_modified(self) -> int:
        return self.fingerprint.last_modified

    def matches(self, path_or_relative: str) -> bool:
        return path_or_relative in (self.path, self.relative_path)

    def with_supervision(self, status: SupervisionStatus, note: Optional[str] = None) -> "FileScore":
        return replace(self, supervision_status=status, supervision_note=note)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "relative_path": self.relative_path,
            "composite_score": self.composite_score,
            "components": self.components.to_dict(),
            "loc": self.loc,
            "language": self.language,
            "last_modified": self.last_modified,
            "supervision_status": self.supervision_status.value,
            "supervision_note": self.supervision_note,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FileScore":
        return cls(
            fingerprint=FileFingerprint(
                path=data["path"],
                relative_path=data["relative_path"],
                language=data.get("language") or detect_language(data["path"]),
                loc=int(data["loc"]),
                last_modified=int(data["last_modified"]),
            ),
            components=ScoreComponents.from_dict(data.get("components", {})),
            composite_score=float(data["composite_score"]),
            supervision_status=SupervisionStatus.parse(data.get("supervision_status")),
            supervision_note=data.get("supervision_note"),
        )


@dataclass(frozen=True)
class AnalysisResult:
    workspace_score: float
    file_count: int
    high_debt_count: int
    files: tuple[FileScore, ...]
    duration_ms: int = 0

    @classmethod
    def from_files(
        cls,
        files: Sequence[FileScore],
        duration_ms: int = 0,
        high_debt_threshold: float = HIGH_DEBT_THRESHOLD,
    ) -> "AnalysisResult":
        files = tuple(files)
        total = sum(f.composite_score for f in files)
        return cls(
            workspace_score=total / len(files) if files else 0.0,
            file_count=len(files),
            high_debt_count=sum(1 for f in files if f.composite_score > high_debt_threshold),
            files=files,
            duration_ms=duration_ms,
        )

    def find(self, path_or_relative: str) -> Optional[FileScore]:
        for file in self.files:
            if file.matches(path_or_relative):
                return file
        return None

    def ranked(self) -> list[FileScore]:
        """Files by composite score, highest first."""
        return sorted(self.files, key=lambda f: f.composite_score, reverse=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "workspace_score": self.workspace_score,
            "file_count": self.file_count,
            "high_debt_count": self.high_debt_count,
            "files": [f.to_dict() for f in self.files],
            "duration_ms": self.duration_ms,
        }


@dataclass
class HeatmapNode:
    """Directory tree node. Leaves carry score and loc, directories carry children."""

    name: str
    path: str
    score: Optional[float] = None
    loc: Optional[int] = None
    children: Optional[list["HeatmapNode"]] = None

    @property
    def is_leaf(self) -> bool:
        return self.children is None

    def leaves(self) -> Iterator["HeatmapNode"]:
        if self.children is None:
            yield self
            return
        for child in self.children:
            yield from child.leaves()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "score": self.score,
            "loc": self.loc,
            "children": None if self.children is None else [c.to_dict() for c in self.children],
        }


@dataclass(frozen=True)
class AnalysisProgress:
    current: int  # 1-based
    total: int
    current_file: str

    def to_dict(self) -> dict[str, Any]:
        return {"current": self.current, "total": self.total, "current_file": self.current_file}


@dataclass(frozen=True)
class ComponentDetail:
    name: str
    raw_score: float
    weight: float
    contribution: float
    details: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "raw_score": self.raw_score,
            "weight": self.weight,
            "contribution": self.contribution,
            "details": list(self.details),
        }


@dataclass(frozen=True)
class FileBreakdown:
    path: str
    composite_score: float
    components: tuple[ComponentDetail, ...]

    @classmethod
    def from_file_score(cls, file: FileScore) -> "FileBreakdown":
        return cls(
            path=file.relative_path,
            composite_score=file.composite_score,
            components=tuple(
                ComponentDetail(
                    name=name,
                    raw_score=c.raw_score,
                    weight=c.weight,
                    contribution=c.contribution,
                    details=c.details,
                )
                for name, c in file.components.items()
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "composite_score": self.composite_score,
            "components": [c.to_dict() for c in self.components],
        }


@dataclass(frozen=True)
class CouplingPair:
    file_a: str
    file_b: str
    coupling_ratio: float
    co_change_count: int
    has_import_link: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_a": self.file_a,
            "file_b": self.file_b,
            "coupling_ratio": self.coupling_ratio,
            "co_change_count": self.co_change_count,
            "has_import_link": self.has_import_link,
        }


@dataclass(frozen=True)
class DebtSnapshot:
    id: int
    timestamp: int
    composite_score: float
    file_count: int
    high_debt_count: int
    commit_count_week: int = 0
    metadata: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "composite_score": self.composite_score,
            "file_count": self.file_count,
            "high_debt_count": self.high_debt_count,
            "commit_count_week": self.commit_count_week,
            "metadata": self.metadata,
        }


@dataclass
class AnalysisInputs:
    """Workspace-wide context shared by every file scored in one run."""

    root: str
    history_days: int
    weights: dict[str, float]
    churn: dict[str, int] = field(default_factory=dict)
    blame: dict[str, dict[str, int]] = field(default_factory=dict)
    co_changes: CoChangeTable = field(default_factory=CoChangeTable)
    import_degrees: ImportDegrees = field(default_factory=ImportDegrees)
    coverage: Optional[CoverageReport] = None
    commit_count_week: int = 0
