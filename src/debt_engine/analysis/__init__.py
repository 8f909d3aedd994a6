"""Signal analyzers. Each maps file content or workspace facts to a score in [0, 100]."""

from .churn import compute_file_churn
from .complexity import FileComplexity, analyze_complexity, compute_complexity_score
from .coupling import (
    ImportDegrees,
    build_import_degrees,
    compute_change_coupling,
    compute_coupling_index,
    extract_imports,
)
from .coverage import CoverageReport, compute_coverage_gap, find_test_file, load_coverage_report
from .knowledge import compute_knowledge_concentration
from .smells import FileSmells, compute_smell_score, detect_smells
from .staleness import compute_staleness, find_adr, parse_review_age

__all__ = [
    "CoverageReport",
    "FileComplexity",
    "FileSmells",
    "ImportDegrees",
    "analyze_complexity",
    "build_import_degrees",
    "compute_change_coupling",
    "compute_complexity_score",
    "compute_coupling_index",
    "compute_coverage_gap",
    "compute_file_churn",
    "compute_knowledge_concentration",
    "compute_smell_score",
    "compute_staleness",
    "detect_smells",
    "extract_imports",
    "find_adr",
    "find_test_file",
    "load_coverage_report",
    "parse_review_age",
]
