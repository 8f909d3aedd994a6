"""Git-derived history facts: churn, blame and co-change tables."""

from .cache import CachedHistoryProvider
from .facts import (
    GitHistoryProvider,
    HistoryProvider,
    build_churn,
    build_cochange_table,
    collect_or_empty,
)
from .git_extractor import GitExtractor
from .models import CoChangeTable, Commit, HistoryFacts

__all__ = [
    "CachedHistoryProvider",
    "CoChangeTable",
    "Commit",
    "GitExtractor",
    "GitHistoryProvider",
    "HistoryFacts",
    "HistoryProvider",
    "build_churn",
    "build_cochange_table",
    "collect_or_empty",
]
