"""Tests for budget pattern matching and breach evaluation."""

import pytest

from debt_engine.config import DEFAULT_WEIGHTS
from debt_engine.persistence import DebtBudget
from debt_engine.scoring.aggregator import aggregate
from debt_engine.scoring.budgets import (
    BudgetStatus,
    evaluate_budget,
    evaluate_budgets,
    pattern_matches,
)
from debt_engine.scoring.models import FileFingerprint, FileScore


def scored(rel, composite):
    components, _ = aggregate({}, DEFAULT_WEIGHTS, {})
    return FileScore(
        fingerprint=FileFingerprint.for_path("/repo", f"/repo/{rel}", loc=10, last_modified=0),
        components=components,
        composite_score=composite,
    )


def budget(pattern, max_score=50.0, notify=True):
    return DebtBudget("id-" + pattern, pattern, pattern, max_score, created_at=0, notify_on_breach=notify)


class TestPatternMatches:
    @pytest.mark.parametrize(
        "pattern,path",
        [
            ("src/**", "src/a.py"),
            ("src/**", "src/deep/er/a.py"),
            ("src/**/*.py", "src/a.py"),
            ("src/**/*.py", "src/x/y/a.py"),
            ("**/*.go", "main.go"),
            ("**/*.go", "cmd/tool/main.go"),
            ("*.py", "setup.py"),
            ("src/?.py", "src/a.py"),
            ("src/app.py", "src/app.py"),
        ],
    )
    def test_matches(self, pattern, path):
        assert pattern_matches(pattern, path)

    @pytest.mark.parametrize(
        "pattern,path",
        [
            ("*.py", "src/a.py"),
            ("src/*.py", "src/x/a.py"),
            ("src/**/*.py", "lib/a.py"),
            ("src/?.py", "src/ab.py"),
            ("src/app.py", "src/app_py"),
            ("src/**", "srcx/a.py"),
        ],
    )
    def test_does_not_match(self, pattern, path):
        assert not pattern_matches(pattern, path)


class TestEvaluateBudget:
    def test_breach_is_strictly_above_max(self):
        files = [scored("src/b.py", 50.0), scored("src/a.py", 50.1), scored("lib/c.py", 99.0)]
        evaluation = evaluate_budget(budget("src/**"), files)

        assert evaluation.matched == (("src/a.py", 50.1), ("src/b.py", 50.0))
        assert evaluation.breaching == (("src/a.py", 50.1),)
        assert evaluation.compliant_count == 1
        assert evaluation.status is BudgetStatus.WARNING

    @pytest.mark.parametrize(
        "breaches,status",
        [(0, BudgetStatus.OK), (1, BudgetStatus.WARNING), (2, BudgetStatus.WARNING), (3, BudgetStatus.CRITICAL)],
    )
    def test_status_by_breach_count(self, breaches, status):
        files = [scored(f"f{i}.py", 80.0) for i in range(breaches)] + [scored("ok.py", 10.0)]
        assert evaluate_budget(budget("*.py"), files).status is status

    def test_nothing_matched_is_ok(self):
        evaluation = evaluate_budget(budget("docs/**"), [scored("src/a.py", 90.0)])
        assert evaluation.matched == ()
        assert evaluation.status is BudgetStatus.OK

    def test_to_dict(self):
        data = evaluate_budget(budget("*.py", 20.0), [scored("a.py", 30.0)]).to_dict()
        assert data["pattern"] == "*.py"
        assert data["matched_files"] == [{"path": "a.py", "score": 30.0}]
        assert (data["compliant_count"], data["breaching_count"], data["status"]) == (0, 1, "warning")

    def test_evaluate_many(self):
        files = [scored("a.py", 30.0)]
        results = evaluate_budgets([budget("*.py", 20.0), budget("*.go", 20.0)], files)
        assert [r.breaching_count for r in results] == [1, 0]
