"""Build churn, co-change and blame tables from git history."""

from __future__ import annotations

import time
from collections import defaultdict
from itertools import combinations
from typing import Iterable, Optional, Protocol

from ..exceptions import HistoryUnavailableError
from ..languages import is_source_file
from ..logging_config import get_logger
from .git_extractor import GitExtractor
from .models import CoChangeTable, Commit, HistoryFacts

logger = get_logger(__name__)

_WEEK_SECONDS = 7 * 86400


class HistoryProvider(Protocol):
    """Anything that can produce history facts for a workspace."""

    def collect(self, root: str, window_days: int) -> HistoryFacts: ...


def build_churn(commits: Iterable[Commit]) -> dict[str, int]:
    """Relative path -> number of commits touching it."""
    churn: dict[str, int] = defaultdict(int)
    for commit in commits:
        for path in set(commit.files):
            if is_source_file(path):
                churn[path] += 1
    return dict(churn)


def build_cochange_table(commits: Iterable[Commit]) -> CoChangeTable:
    """Count source-file pairs changed in the same commit.

    Every source file in a commit also gets its per-file change count bumped.
    """
    file_change_counts: dict[str, int] = defaultdict(int)
    pair_counts: dict[tuple[str, str], int] = defaultdict(int)

    for commit in commits:
        changed = sorted({f for f in commit.files if is_source_file(f)})
        for f in changed:
            file_change_counts[f] += 1
        for a, b in combinations(changed, 2):
            pair_counts[(a, b)] += 1

    return CoChangeTable(pairs=dict(pair_counts), file_change_counts=dict(file_change_counts))


def count_recent_commits(commits: Iterable[Commit], now: Optional[int] = None) -> int:
    cutoff = (now if now is not None else int(time.time())) - _WEEK_SECONDS
    return sum(1 for c in commits if c.timestamp >= cutoff)


class GitHistoryProvider:
    """History facts read straight from git for every call."""

    def collect(self, root: str, window_days: int) -> HistoryFacts:
        """Collect churn, blame and co-change facts for the window.

        Raises:
            HistoryUnavailableError: If git or the repository is unavailable.
        """
        extractor = GitExtractor(root)
        extractor.ensure_repository()

        head = extractor.head_sha()
        commits = extractor.log(window_days)
        churn = build_churn(commits)

        blame: dict[str, dict[str, int]] = {}
        for path in sorted(churn):
            authors = extractor.blame(path, window_days)
            if authors:
                blame[path] = authors

        facts = HistoryFacts(
            window_days=window_days,
            churn=churn,
            blame=blame,
            co_changes=build_cochange_table(commits),
            commit_count=len(commits),
            commit_count_week=count_recent_commits(commits),
            head=head,
        )
        logger.info(
            "History: %d commits, %d files changed, %d co-change pairs in %d days",
            facts.commit_count,
            len(churn),
            len(facts.co_changes.pairs),
            window_days,
        )
        return facts


def collect_or_empty(
    provider: HistoryProvider, root: str, window_days: int, strict: bool = False
) -> HistoryFacts:
    """Collect facts, degrading to empty facts unless ``strict`` is set."""
    try:
        return provider.collect(root, window_days)
    except HistoryUnavailableError as e:
        if strict:
            raise
        logger.warning("%s; history-based signals will score 0", e)
        return HistoryFacts.empty(window_days)
