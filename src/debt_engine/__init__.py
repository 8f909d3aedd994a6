"""
debt-engine - Per-File Technical Debt Scoring

Combines eight weak signals (churn, code smells, import coupling, change
coupling, test-coverage gap, knowledge concentration, cyclomatic complexity
and decision staleness) into one weighted 0-100 debt score per source file,
kept fresh incrementally as files change.
"""

__version__ = "0.4.0"

from .config import AnalysisSettings, load_settings
from .engine import DebtEngine
from .scoring import AnalysisResult, FileBreakdown, FileScore, HeatmapNode, SupervisionStatus

__all__ = [
    "DebtEngine",  # Main entry point
    "AnalysisSettings",
    "AnalysisResult",
    "FileBreakdown",
    "FileScore",
    "HeatmapNode",
    "SupervisionStatus",
    "load_settings",
]
