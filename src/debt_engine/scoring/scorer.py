"""Per-file scoring against shared workspace context."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Iterable, Optional

from ..analysis.churn import compute_file_churn
from ..analysis.complexity import analyze_complexity, compute_complexity_score
from ..analysis.coupling import (
    build_import_degrees,
    compute_change_coupling,
    compute_coupling_index,
)
from ..analysis.coverage import compute_coverage_gap, find_test_file, load_coverage_report
from ..analysis.knowledge import compute_knowledge_concentration, top_author
from ..analysis.smells import compute_smell_score, detect_smells
from ..analysis.staleness import check_staleness
from ..config import AnalysisSettings
from ..exceptions import FileAccessError
from ..history.facts import HistoryProvider, collect_or_empty
from ..languages import detect_language
from ..logging_config import get_logger
from ..workspace import count_loc, file_mtime, read_source, to_relative_path
from .aggregator import aggregate
from .models import AnalysisInputs, FileFingerprint, FileScore

logger = get_logger(__name__)


def build_analysis_inputs(
    root: str | Path,
    files: Iterable[Path],
    settings: AnalysisSettings,
    history: HistoryProvider,
) -> AnalysisInputs:
    """Compute everything that needs the whole workspace, once per run.

    Raises:
        HistoryUnavailableError: Only when ``settings.strict_history`` is set.
    """
    root = Path(root)
    facts = collect_or_empty(history, str(root), settings.history_days, settings.strict_history)

    sources = []
    for path in files:
        try:
            source = read_source(path)
        except FileAccessError as e:
            logger.debug("Import scan skipped %s: %s", path, e.reason)
            continue
        sources.append((to_relative_path(root, path), detect_language(path), source))

    return AnalysisInputs(
        root=str(root),
        history_days=settings.history_days,
        weights=dict(settings.weights),
        churn=facts.churn,
        blame=facts.blame,
        co_changes=facts.co_changes,
        import_degrees=build_import_degrees(sources),
        coverage=load_coverage_report(root),
        commit_count_week=facts.commit_count_week,
    )


def score_file(
    path: str | Path,
    inputs: AnalysisInputs,
    today: Optional[date] = None,
) -> FileScore:
    """Run every analyzer on one file and aggregate the results.

    Raises:
        FileAccessError: If the file cannot be read or stat'ed.
    """
    root = inputs.root
    source = read_source(path)
    fingerprint = FileFingerprint.for_path(root, path, count_loc(source), file_mtime(path))
    rel = fingerprint.relative_path
    loc = fingerprint.loc

    raw: dict[str, float] = {}
    evidence: dict[str, list[str]] = {}

    commits = inputs.churn.get(rel, 0)
    raw["churn_rate"] = compute_file_churn(inputs.churn, rel, inputs.history_days)
    evidence["churn_rate"] = [f"{commits} commits in {inputs.history_days} days"]

    smells = detect_smells(source, fingerprint.language, loc)
    smell_score = compute_smell_score(smells, loc)
    raw["code_smell_density"] = smell_score
    evidence["code_smell_density"] = [f"{smells.total} smells in {loc} LOC", *smells.summary()]

    degrees = inputs.import_degrees
    raw["coupling_index"] = compute_coupling_index(degrees, rel)
    evidence["coupling_index"] = [
        f"{degrees.out_degree.get(rel, 0)} imports, imported by {degrees.in_degree.get(rel, 0)}"
    ]

    peers = sum(1 for _ in inputs.co_changes.peers(rel))
    raw["change_coupling"] = compute_change_coupling(rel, inputs.co_changes)
    evidence["change_coupling"] = [f"co-changed with {peers} files"] if peers else []

    raw["test_coverage_gap"] = compute_coverage_gap(root, rel, inputs.coverage)
    evidence["test_coverage_gap"] = [_coverage_evidence(root, rel, inputs)]

    raw["knowledge_concentration"] = compute_knowledge_concentration(inputs.blame, rel)
    top = top_author(inputs.blame.get(rel, {}))
    evidence["knowledge_concentration"] = (
        [f"{top[0]} wrote {top[1]:.0%} of recent lines"] if top is not None else []
    )

    complexity = analyze_complexity(source, fingerprint.language)
    raw["cyclomatic_complexity"] = compute_complexity_score(complexity.average)
    evidence["cyclomatic_complexity"] = (
        [f"avg complexity: {complexity.average:.1f} over {len(complexity.functions)} functions"]
        if complexity.functions
        else []
    )

    staleness = check_staleness(root, rel, smell_score, today)
    raw["decision_staleness"] = staleness.score
    evidence["decision_staleness"] = [staleness.describe()]

    components, composite = aggregate(raw, inputs.weights, evidence)
    return FileScore(fingerprint=fingerprint, components=components, composite_score=composite)


def _coverage_evidence(root: str, rel: str, inputs: AnalysisInputs) -> str:
    if inputs.coverage is not None and inputs.coverage.covers(rel):
        return "listed in coverage report"
    test_file = find_test_file(root, rel)
    if test_file is not None:
        return f"test file: {test_file}"
    return "no test file found"
