"""Score data model, aggregation, per-file scoring and heatmap rollup."""

from .aggregator import aggregate
from .heatmap import build_heatmap_tree
from .models import (
    AnalysisInputs,
    AnalysisProgress,
    AnalysisResult,
    ComponentDetail,
    ComponentScore,
    CouplingPair,
    DebtSnapshot,
    FileBreakdown,
    FileFingerprint,
    FileScore,
    HeatmapNode,
    ScoreComponents,
    SupervisionStatus,
)
from .scorer import build_analysis_inputs, score_file

__all__ = [
    "AnalysisInputs",
    "AnalysisProgress",
    "AnalysisResult",
    "ComponentDetail",
    "ComponentScore",
    "CouplingPair",
    "DebtSnapshot",
    "FileBreakdown",
    "FileFingerprint",
    "FileScore",
    "HeatmapNode",
    "ScoreComponents",
    "SupervisionStatus",
    "aggregate",
    "build_analysis_inputs",
    "build_heatmap_tree",
    "score_file",
]
