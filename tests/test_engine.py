"""End-to-end tests for DebtEngine against temporary workspaces."""

import json
import logging
import os

import pytest

from debt_engine import DebtEngine, SupervisionStatus
from debt_engine.config import AnalysisSettings
from debt_engine.exceptions import (
    FileAccessError,
    FileNotScoredError,
    HistoryUnavailableError,
    InvalidPathError,
    InvalidRecordError,
    NoAnalysisDataError,
    RecordNotFoundError,
    WatchlistFullError,
)
from debt_engine.history.models import CoChangeTable, HistoryFacts
from debt_engine.persistence import MAX_PINNED_FILES, ItemStatus, ItemType, ScoreStore, Severity
from debt_engine.state import ProgressChannel


class StubHistory:
    def __init__(self, facts=None, error=None):
        self.facts = facts
        self.error = error
        self.calls = 0

    def collect(self, root, window_days):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.facts or HistoryFacts.empty(window_days)


def coupled_facts():
    return HistoryFacts(
        window_days=90,
        churn={"a.py": 3, "b.py": 4, "c.py": 2},
        co_changes=CoChangeTable(
            pairs={("a.py", "b.py"): 3, ("a.py", "c.py"): 1, ("b.py", "c.py"): 2},
            file_change_counts={"a.py": 3, "b.py": 4, "c.py": 2},
        ),
        commit_count=5,
        commit_count_week=1,
    )


@pytest.fixture
def project(workspace):
    (workspace / "a.py").write_text("import b\n\n\ndef run():\n    return b.value\n")
    (workspace / "b.py").write_text("value = 2\n")
    (workspace / "c.py").write_text("x = 3\n")
    (workspace / "notes.md").write_text("# not source\n")
    return workspace.resolve()


@pytest.fixture
def engine():
    return DebtEngine(history=StubHistory(coupled_facts()))


def count_upserts(monkeypatch):
    calls = []
    original = ScoreStore.upsert_file_score

    def counting(self, score):
        calls.append(score.relative_path)
        return original(self, score)

    monkeypatch.setattr(ScoreStore, "upsert_file_score", counting)
    return calls


class TestScoreWorkspace:
    def test_scores_persists_and_caches(self, project, engine):
        result = engine.score_workspace(project)

        assert result.file_count == 3
        assert sorted(f.relative_path for f in result.files) == ["a.py", "b.py", "c.py"]
        assert engine.current_result() is result
        assert sorted(leaf.path for leaf in engine.get_heatmap().leaves()) == ["a.py", "b.py", "c.py"]

        with ScoreStore(project) as store:
            assert len(store.list_file_scores()) == 3
            [snapshot] = store.list_snapshots()
        assert snapshot.file_count == 3
        assert snapshot.commit_count_week == 1
        assert json.loads(snapshot.metadata)["history_days"] == 90

    def test_progress_events(self, project):
        channel = ProgressChannel()
        listener = channel.subscribe()
        engine = DebtEngine(history=StubHistory(), progress=channel)
        seen = []

        engine.score_workspace(project, on_progress=seen.append)

        assert [(e.current, e.total) for e in seen] == [(1, 3), (2, 3), (3, 3)]
        assert [e.current_file for e in seen] == ["a.py", "b.py", "c.py"]
        assert listener.qsize() == 3

    def test_failing_progress_callback_is_ignored(self, project):
        def explode(event):
            raise RuntimeError("listener went away")

        result = DebtEngine(history=StubHistory()).score_workspace(project, on_progress=explode)
        assert result.file_count == 3

    def test_empty_workspace(self, workspace):
        result = DebtEngine(history=StubHistory()).score_workspace(workspace)
        assert result.file_count == 0
        assert result.workspace_score == 0.0

    def test_invalid_root(self, tmp_path):
        with pytest.raises(InvalidPathError):
            DebtEngine(history=StubHistory()).score_workspace(tmp_path / "missing")

    def test_strict_history_aborts(self, project):
        engine = DebtEngine(
            history=StubHistory(error=HistoryUnavailableError(str(project), "Not a git repository")),
            settings_loader=lambda root: AnalysisSettings(strict_history=True),
        )
        with pytest.raises(HistoryUnavailableError):
            engine.score_workspace(project)
        assert engine.current_result() is None

    def test_non_finite_settings_fall_back_to_defaults(self, project):
        (project / ".debtengine").mkdir()
        (project / ".debtengine" / "settings.json").write_text(
            '{"gitHistoryDays": NaN, "warningThreshold": Infinity}'
        )
        result = DebtEngine(history=StubHistory()).score_workspace(project)
        assert result.file_count == 3
        [snapshot] = DebtEngine(history=StubHistory()).list_snapshots(project)
        assert json.loads(snapshot.metadata)["history_days"] == 90

    def test_missing_history_scores_zero(self, project):
        engine = DebtEngine(
            history=StubHistory(error=HistoryUnavailableError(str(project), "Not a git repository"))
        )
        result = engine.score_workspace(project)
        assert all(f.components.churn_rate.raw_score == 0.0 for f in result.files)


class TestRescoreFile:
    def test_unchanged_file_is_not_rewritten(self, project, engine, monkeypatch):
        engine.score_workspace(project)
        calls = count_upserts(monkeypatch)

        first = engine.rescore_file(project, "a.py")
        second = engine.rescore_file(project, project / "a.py")

        assert calls == []
        assert first == second
        assert first.relative_path == "a.py"

    def test_modified_file_is_rescored(self, project, engine, monkeypatch):
        engine.score_workspace(project)
        calls = count_upserts(monkeypatch)

        path = project / "c.py"
        mtime = int(path.stat().st_mtime)
        path.write_text("x = 3\ny = 4\nz = 5\n")
        os.utime(path, (mtime + 10, mtime + 10))

        score = engine.rescore_file(project, "c.py")
        assert calls == ["c.py"]
        assert score.loc == 3
        assert score.last_modified == mtime + 10
        assert engine.current_result().find("c.py").loc == 3
        assert engine.current_result().file_count == 3

        engine.rescore_file(project, "c.py")
        assert calls == ["c.py"]

    def test_new_file_joins_the_result(self, project, engine):
        engine.score_workspace(project)
        (project / "d.py").write_text("y = 1\n")
        engine.rescore_file(project, "d.py")
        assert engine.current_result().file_count == 4
        assert engine.get_breakdown("d.py").path == "d.py"

    def test_stored_row_warms_a_cold_cache(self, project, engine):
        engine.score_workspace(project)
        cold = DebtEngine(history=StubHistory(coupled_facts()))
        score = cold.rescore_file(project, "b.py")
        assert cold.current_result().file_count == 1
        assert cold.current_result().find("b.py") == score

    def test_rescore_without_prior_scan(self, project, engine):
        score = engine.rescore_file(project, "a.py")
        assert engine.current_result().file_count == 1
        with ScoreStore(project) as store:
            assert store.get_file_score(score.path) == score

    def test_missing_file(self, project, engine):
        with pytest.raises(FileAccessError):
            engine.rescore_file(project, "missing.py")

    def test_path_outside_root_is_rejected(self, project, engine, tmp_path):
        outside = tmp_path / "other.py"
        outside.write_text("x = 1\n")

        with pytest.raises(InvalidPathError):
            engine.rescore_file(project, outside)
        with pytest.raises(InvalidPathError):
            engine.rescore_file(project, "../other.py")

        assert engine.current_result() is None
        assert not (project / ".debtengine").exists()


class TestViews:
    def test_views_before_analysis(self, engine):
        with pytest.raises(NoAnalysisDataError):
            engine.get_heatmap()
        with pytest.raises(NoAnalysisDataError):
            engine.get_breakdown("a.py")
        assert engine.current_result() is None

    def test_breakdown(self, project, engine):
        engine.score_workspace(project)
        breakdown = engine.get_breakdown("a.py")
        assert breakdown.components[0].name == "churn_rate"
        assert breakdown.composite_score == pytest.approx(
            sum(c.contribution for c in breakdown.components)
        )
        assert engine.get_breakdown(str(project / "a.py")) == breakdown

    def test_breakdown_unknown_file(self, project, engine):
        engine.score_workspace(project)
        with pytest.raises(FileNotScoredError):
            engine.get_breakdown("zzz.py")

    def test_open_workspace(self, project, engine):
        assert engine.open_workspace(project) is None
        engine.score_workspace(project)

        fresh = DebtEngine(history=StubHistory())
        result = fresh.open_workspace(project)
        assert result.file_count == 3
        assert fresh.get_heatmap().path == str(project)


class TestChangeCouplings:
    def test_pairs_sorted_by_co_change_count(self, project, engine):
        pairs = engine.get_change_couplings(project)
        assert [(p.file_a, p.file_b) for p in pairs] == [("a.py", "b.py"), ("b.py", "c.py")]
        assert pairs[0].co_change_count == 3
        assert pairs[0].coupling_ratio == pytest.approx(1.0)
        assert pairs[0].has_import_link is True
        assert pairs[1].has_import_link is False

    def test_min_ratio_filters(self, project):
        facts = coupled_facts()
        facts.co_changes.file_change_counts["c.py"] = 40
        facts.co_changes.file_change_counts["b.py"] = 40
        engine = DebtEngine(history=StubHistory(facts))
        pairs = engine.get_change_couplings(project, min_ratio=0.5)
        assert [(p.file_a, p.file_b) for p in pairs] == [("a.py", "b.py")]

    def test_max_couplings_truncates(self, project):
        engine = DebtEngine(
            history=StubHistory(coupled_facts()),
            settings_loader=lambda root: AnalysisSettings(max_couplings=1),
        )
        assert len(engine.get_change_couplings(project)) == 1

    def test_unscored_pairs_are_dropped_after_a_scan(self, project):
        facts = coupled_facts()
        facts.co_changes.pairs[("gone.py", "old.py")] = 5
        engine = DebtEngine(history=StubHistory(facts))
        assert engine.get_change_couplings(project)[0].file_a == "gone.py"
        engine.score_workspace(project)
        assert all(p.file_a != "gone.py" for p in engine.get_change_couplings(project))

    def test_from_git_history(self, git_repo):
        git_repo.write("src/model.py", "x = 1\n")
        git_repo.write("src/view.py", "from model import x\n")
        git_repo.commit("add model and view")
        git_repo.write("src/model.py", "x = 2\n")
        git_repo.write("src/view.py", "from model import x\nprint(x)\n")
        git_repo.commit("change both")

        pairs = DebtEngine().get_change_couplings(git_repo.path)
        assert len(pairs) == 1
        pair = pairs[0]
        assert (pair.file_a, pair.file_b) == ("src/model.py", "src/view.py")
        assert pair.co_change_count == 2
        assert pair.coupling_ratio == pytest.approx(1.0)
        assert pair.has_import_link is False


class TestSupervisionAndSnapshots:
    def test_set_supervision_updates_store_and_cache(self, project, engine):
        engine.score_workspace(project)
        updated = engine.set_supervision(project, "a.py", SupervisionStatus.ACCEPTABLE, "entry point")
        assert updated.supervision_status is SupervisionStatus.ACCEPTABLE
        assert engine.current_result().find("a.py").supervision_note == "entry point"

    def test_set_supervision_unknown_file(self, project, engine):
        engine.score_workspace(project)
        with pytest.raises(FileNotScoredError):
            engine.set_supervision(project, "zzz.py", SupervisionStatus.REGRESSED)

    def test_snapshots_accumulate(self, project, engine):
        engine.score_workspace(project)
        engine.score_workspace(project)
        snapshots = engine.list_snapshots(project)
        assert len(snapshots) == 2
        assert engine.list_snapshots(project, limit=1) == snapshots[-1:]


def settings_with(**overrides):
    return lambda root: AnalysisSettings(**overrides)


class TestRegister:
    def test_create_and_read(self, project, engine):
        item = engine.create_register_item(
            project,
            "  Split module  ",
            file_path=str(project / "a.py"),
            severity="high",
            tags=["refactor"],
            estimated_hours=4,
        )
        assert item.title == "Split module"
        assert item.file_path == "a.py"
        assert item.severity is Severity.HIGH
        assert item.tags == ("refactor",)
        assert engine.get_register_item(project, item.id) == item

    def test_rejects_bad_fields(self, project, engine):
        with pytest.raises(InvalidRecordError):
            engine.create_register_item(project, "   ")
        with pytest.raises(InvalidRecordError):
            engine.create_register_item(project, "x", severity="urgent")
        with pytest.raises(InvalidRecordError):
            engine.create_register_item(project, "x", estimated_hours=float("nan"))
        with pytest.raises(InvalidRecordError):
            engine.create_register_item(project, "x", colour="red")
        with pytest.raises(InvalidPathError):
            engine.create_register_item(project, "x", file_path="../elsewhere.py")
        assert engine.list_register_items(project) == []

    def test_update_and_filter_by_status(self, project, engine):
        first = engine.create_register_item(project, "first")
        engine.create_register_item(project, "second")

        updated = engine.update_register_item(project, first.id, status="resolved", actual_hours=2)
        assert updated.status is ItemStatus.RESOLVED
        assert updated.actual_hours == 2.0
        assert updated.created_at == first.created_at

        assert [i.title for i in engine.list_register_items(project, status="resolved")] == ["first"]
        assert [i.title for i in engine.list_register_items(project, status=ItemStatus.OPEN)] == ["second"]

    def test_missing_items(self, project, engine):
        with pytest.raises(RecordNotFoundError):
            engine.get_register_item(project, "nope")
        with pytest.raises(RecordNotFoundError):
            engine.update_register_item(project, "nope", title="x")
        with pytest.raises(RecordNotFoundError):
            engine.delete_register_item(project, "nope")

    def test_delete(self, project, engine):
        item = engine.create_register_item(project, "gone soon")
        engine.delete_register_item(project, item.id)
        assert engine.list_register_items(project) == []


class TestImportHighDebtFiles:
    def test_imports_each_high_debt_file_once(self, project):
        engine = DebtEngine(
            history=StubHistory(coupled_facts()),
            settings_loader=settings_with(high_debt_threshold=-1.0, critical_threshold=1000.0),
        )
        engine.score_workspace(project)
        engine.create_register_item(project, "already tracked", file_path="c.py")

        items = engine.import_high_debt_files(project)

        assert sorted(i.file_path for i in items) == ["a.py", "b.py"]
        item = next(i for i in items if i.file_path == "a.py")
        assert item.title == "High debt: a.py"
        assert item.description.startswith("Auto-imported from analysis. Composite score: ")
        assert item.severity is Severity.HIGH
        assert item.item_type is ItemType.CODE
        assert item.tags == ("auto-imported",)

        assert engine.import_high_debt_files(project) == []
        assert len(engine.list_register_items(project)) == 3

    def test_critical_files_get_critical_severity(self, project):
        engine = DebtEngine(
            history=StubHistory(coupled_facts()),
            settings_loader=settings_with(high_debt_threshold=-1.0, critical_threshold=-1.0),
        )
        engine.score_workspace(project)
        items = engine.import_high_debt_files(project)
        assert {i.severity for i in items} == {Severity.CRITICAL}

    def test_uses_stored_scores_without_live_result(self, project):
        loader = settings_with(high_debt_threshold=-1.0)
        DebtEngine(history=StubHistory(coupled_facts()), settings_loader=loader).score_workspace(project)

        fresh = DebtEngine(history=StubHistory(coupled_facts()), settings_loader=loader)
        assert len(fresh.import_high_debt_files(project)) == 3

    def test_nothing_above_threshold(self, project, engine):
        engine.score_workspace(project)
        assert engine.import_high_debt_files(project) == []


class TestBudgets:
    def test_create_list_update_delete(self, project, engine):
        budget = engine.create_budget(project, " src/** ", 40)
        assert budget.pattern == "src/**"
        assert budget.label == "src/**"
        assert budget.max_score == 40.0
        assert engine.list_budgets(project) == [budget]

        changed = engine.update_budget(project, budget.id, max_score=30, notify_on_breach=False)
        assert (changed.max_score, changed.notify_on_breach, changed.pattern) == (30.0, False, "src/**")

        engine.delete_budget(project, budget.id)
        assert engine.list_budgets(project) == []
        with pytest.raises(RecordNotFoundError):
            engine.delete_budget(project, budget.id)

    @pytest.mark.parametrize("max_score", [-1, 100.5, float("nan"), float("inf")])
    def test_rejects_out_of_range_max(self, project, engine, max_score):
        with pytest.raises(InvalidRecordError):
            engine.create_budget(project, "*.py", max_score)

    def test_rejects_empty_pattern(self, project, engine):
        with pytest.raises(InvalidRecordError):
            engine.create_budget(project, "  ", 50)

    def test_evaluates_against_current_result(self, project, engine):
        engine.score_workspace(project)
        engine.create_budget(project, "*.py", 0.0)
        engine.create_budget(project, "src/**", 0.0)

        by_pattern = {e.budget.pattern: e for e in engine.evaluate_budgets(project)}

        # a.py, b.py and c.py all carry some churn
        assert by_pattern["*.py"].breaching_count == 3
        assert by_pattern["*.py"].status.value == "critical"
        assert by_pattern["src/**"].matched == ()

    def test_evaluates_stored_scores_without_live_result(self, project, engine):
        engine.score_workspace(project)
        engine.create_budget(project, "a.py", 100.0)
        [evaluation] = DebtEngine().evaluate_budgets(project)
        assert [path for path, _ in evaluation.matched] == ["a.py"]
        assert evaluation.breaching_count == 0

    def test_full_scan_warns_about_breached_budgets(self, project, engine, caplog):
        engine.create_budget(project, "a.py", 0.0, label="entry point")
        engine.create_budget(project, "b.py", 0.0, notify_on_breach=False)

        with caplog.at_level(logging.WARNING, logger="debt_engine"):
            engine.score_workspace(project)

        warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
        assert any("entry point" in message for message in warnings)
        assert not any("b.py" in message for message in warnings)


class TestWatchlist:
    def test_pin_normalizes_paths(self, project, engine):
        engine.pin_file(project, str(project / "a.py"))
        engine.pin_file(project, "./b.py")
        assert [p.file_path for p in engine.list_pinned(project)] == ["a.py", "b.py"]

    def test_pin_outside_root(self, project, engine):
        with pytest.raises(InvalidPathError):
            engine.pin_file(project, "../outside.py")

    def test_limit_and_unpin(self, project, engine):
        for i in range(MAX_PINNED_FILES):
            engine.pin_file(project, f"f{i}.py")
        with pytest.raises(WatchlistFullError):
            engine.pin_file(project, "a.py")

        assert engine.unpin_file(project, "f0.py") is True
        assert engine.unpin_file(project, "f0.py") is False
        engine.pin_file(project, "a.py")
        assert len(engine.list_pinned(project)) == MAX_PINNED_FILES
