"""Decision staleness: how long since the file's ADR was last reviewed."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Optional

from ..config import STATE_DIR_NAME

ADR_DIR = f"{STATE_DIR_NAME}/adrs"

FRESH_DAYS = 30
STALE_DAYS = 180
UNDATED_ADR_SCORE = 50.0
MISSING_ADR_SCORE = 50.0
# Files without an ADR are only penalized above this smell score.
MISSING_ADR_SMELL_THRESHOLD = 30.0

_REVIEW_RE = re.compile(
    r"^\s*(?:last_reviewed_at|reviewed|last-reviewed)\s*:\s*['\"]?(\d{4}-\d{2}-\d{2})",
    re.IGNORECASE,
)


@dataclass
class StalenessCheck:
    score: float
    adr_path: Optional[Path] = None
    age_days: Optional[int] = None

    def describe(self) -> str:
        if self.adr_path is None:
            return "no ADR found"
        if self.age_days is None:
            return f"ADR {self.adr_path.name} has no review date"
        return f"ADR {self.adr_path.name} reviewed {self.age_days} days ago"


def find_adr(root: str | Path, relative_path: str) -> Optional[Path]:
    """ADR for a file, matched by stem in the ADR archive, then beside the file."""
    root = Path(root)
    rel = PurePosixPath(relative_path)
    stem = rel.stem
    for candidate in (
        root / ADR_DIR / f"{stem}.adr.md",
        root / ADR_DIR / f"{stem}.md",
        root / rel.parent / f"{stem}.adr.md",
    ):
        if candidate.is_file():
            return candidate
    return None


def parse_review_age(text: str, today: Optional[date] = None) -> Optional[int]:
    """Days since the first parseable review date in an ADR, or None."""
    today = today or datetime.now(timezone.utc).date()
    for line in text.splitlines():
        match = _REVIEW_RE.match(line)
        if not match:
            continue
        try:
            reviewed = datetime.strptime(match.group(1), "%Y-%m-%d").date()
        except ValueError:
            continue
        return (today - reviewed).days
    return None


def staleness_from_age(age_days: int) -> float:
    if age_days < FRESH_DAYS:
        return 0.0
    if age_days > STALE_DAYS:
        return 100.0
    return min(100.0, (age_days - FRESH_DAYS) / (STALE_DAYS - FRESH_DAYS) * 100.0)


def check_staleness(
    root: str | Path, relative_path: str, smell_score: float, today: Optional[date] = None
) -> StalenessCheck:
    adr = find_adr(root, relative_path)
    if adr is None:
        score = MISSING_ADR_SCORE if smell_score > MISSING_ADR_SMELL_THRESHOLD else 0.0
        return StalenessCheck(score=score)

    try:
        text = adr.read_text(encoding="utf-8", errors="replace")
    except OSError:
        text = ""
    age = parse_review_age(text, today)
    if age is None:
        return StalenessCheck(score=UNDATED_ADR_SCORE, adr_path=adr)
    return StalenessCheck(score=staleness_from_age(age), adr_path=adr, age_days=age)


def compute_staleness(
    root: str | Path, relative_path: str, smell_score: float, today: Optional[date] = None
) -> float:
    return check_staleness(root, relative_path, smell_score, today).score
