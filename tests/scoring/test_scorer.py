"""Tests for per-file scoring against shared workspace inputs."""

from datetime import date

import pytest

from debt_engine.config import AnalysisSettings
from debt_engine.exceptions import FileAccessError, HistoryUnavailableError
from debt_engine.history.models import CoChangeTable, HistoryFacts
from debt_engine.scoring.scorer import build_analysis_inputs, score_file
from debt_engine.workspace import walk_source_files

TODAY = date(2026, 6, 1)

APP = "import util\n\n\ndef run():\n    return util.value\n"
UTIL = "value = 1\n"


class StubHistory:
    def __init__(self, facts=None, error=None):
        self.facts = facts
        self.error = error

    def collect(self, root, window_days):
        if self.error is not None:
            raise self.error
        return self.facts or HistoryFacts.empty(window_days)


def make_workspace(root):
    (root / "src").mkdir()
    (root / "src" / "app.py").write_text(APP)
    (root / "src" / "util.py").write_text(UTIL)
    return root


def history_facts():
    return HistoryFacts(
        window_days=90,
        churn={"src/app.py": 9, "src/util.py": 3},
        blame={"src/app.py": {"Alice": 9, "Bob": 1}},
        co_changes=CoChangeTable(
            pairs={("src/app.py", "src/util.py"): 3},
            file_change_counts={"src/app.py": 9, "src/util.py": 3},
        ),
        commit_count=9,
        commit_count_week=2,
    )


class TestBuildAnalysisInputs:
    def test_collects_shared_context(self, workspace):
        root = make_workspace(workspace)
        inputs = build_analysis_inputs(
            root, walk_source_files(root), AnalysisSettings(), StubHistory(history_facts())
        )
        assert inputs.churn["src/app.py"] == 9
        assert inputs.commit_count_week == 2
        assert inputs.import_degrees.out_degree == {"src/app.py": 1, "src/util.py": 0}
        assert inputs.import_degrees.in_degree == {"src/util.py": 1}
        assert inputs.coverage is None

    def test_unavailable_history_degrades(self, workspace):
        root = make_workspace(workspace)
        history = StubHistory(error=HistoryUnavailableError(str(root), "Not a git repository"))
        inputs = build_analysis_inputs(root, walk_source_files(root), AnalysisSettings(), history)
        assert inputs.churn == {}
        assert inputs.co_changes.pairs == {}

    def test_strict_history_raises(self, workspace):
        root = make_workspace(workspace)
        history = StubHistory(error=HistoryUnavailableError(str(root), "Not a git repository"))
        with pytest.raises(HistoryUnavailableError):
            build_analysis_inputs(
                root, walk_source_files(root), AnalysisSettings(strict_history=True), history
            )


class TestScoreFile:
    def test_scores_every_signal(self, workspace):
        root = make_workspace(workspace)
        inputs = build_analysis_inputs(
            root, walk_source_files(root), AnalysisSettings(), StubHistory(history_facts())
        )
        score = score_file(root / "src" / "app.py", inputs, today=TODAY)
        c = score.components

        assert score.relative_path == "src/app.py"
        assert score.language == "python"
        assert score.loc == 5
        assert c.churn_rate.raw_score == pytest.approx(10.0)
        assert c.coupling_index.raw_score == pytest.approx(50.0)
        assert c.change_coupling.raw_score == pytest.approx(100.0)
        assert c.test_coverage_gap.raw_score == 80.0
        assert c.knowledge_concentration.raw_score == pytest.approx(80.0)
        assert c.code_smell_density.raw_score == 0.0
        assert c.decision_staleness.raw_score == 0.0
        assert score.composite_score == pytest.approx(c.total_contribution())

        assert c.churn_rate.details == ("9 commits in 90 days",)
        assert c.change_coupling.details == ("co-changed with 1 files",)
        assert c.knowledge_concentration.details == ("Alice wrote 90% of recent lines",)
        assert c.test_coverage_gap.details == ("no test file found",)

    def test_without_history(self, workspace):
        root = make_workspace(workspace)
        inputs = build_analysis_inputs(root, walk_source_files(root), AnalysisSettings(), StubHistory())
        score = score_file(root / "src" / "util.py", inputs, today=TODAY)
        assert score.components.churn_rate.raw_score == 0.0
        assert score.components.change_coupling.details == ()
        assert score.components.knowledge_concentration.raw_score == 0.0

    def test_unknown_language_scores_signals_without_parsing(self, workspace):
        (workspace / "notes.kt").write_text("fun main() { }\n")
        inputs = build_analysis_inputs(workspace, [], AnalysisSettings(), StubHistory())
        score = score_file(workspace / "notes.kt", inputs, today=TODAY)
        assert score.language == "unknown"
        assert score.components.code_smell_density.raw_score == 0.0
        assert score.components.cyclomatic_complexity.raw_score == 0.0

    def test_missing_file(self, workspace):
        inputs = build_analysis_inputs(workspace, [], AnalysisSettings(), StubHistory())
        with pytest.raises(FileAccessError):
            score_file(workspace / "gone.py", inputs)
