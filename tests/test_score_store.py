"""Tests for the SQLite score store."""

import json

import pytest

from debt_engine.config import DEFAULT_WEIGHTS
from debt_engine.exceptions import StoreError, WatchlistFullError
from debt_engine.persistence import (
    MAX_PINNED_FILES,
    DebtBudget,
    ItemStatus,
    RegisterItem,
    ScoreStore,
    Severity,
)
from debt_engine.scoring.aggregator import aggregate
from debt_engine.scoring.models import FileFingerprint, FileScore, SupervisionStatus


def make_score(root, rel, composite=40.0, mtime=1700000000):
    components, _ = aggregate({"churn_rate": 50.0}, DEFAULT_WEIGHTS, {"churn_rate": ["45 commits in 90 days"]})
    return FileScore(
        fingerprint=FileFingerprint.for_path(root, root / rel, loc=20, last_modified=mtime),
        components=components,
        composite_score=composite,
    )


class TestScoreStore:
    def test_creates_state_directory(self, workspace):
        with ScoreStore(workspace) as store:
            assert store.db_path.exists()
        assert (workspace / ".debtengine" / ".gitignore").read_text().startswith("state.db")

    def test_not_connected(self, workspace):
        with pytest.raises(RuntimeError):
            ScoreStore(workspace).list_file_scores()

    def test_upsert_and_read_back(self, workspace):
        original = make_score(workspace, "src/app.py")
        with ScoreStore(workspace) as store:
            store.upsert_file_score(original)

        with ScoreStore(workspace) as store:
            loaded = store.get_file_score(original.path)
            assert loaded == original
            assert store.get_file_score_by_relative_path("src/app.py") == original
            assert store.get_cached_mtime(original.path) == 1700000000
            assert store.get_cached_mtime(str(workspace / "missing.py")) is None

    def test_upsert_replaces_row(self, workspace):
        with ScoreStore(workspace) as store:
            store.upsert_file_score(make_score(workspace, "a.py", composite=10.0))
            store.upsert_file_score(make_score(workspace, "a.py", composite=70.0, mtime=1700000500))
            [row] = store.list_file_scores()
            assert row.composite_score == 70.0
            assert store.get_cached_mtime(row.path) == 1700000500

    def test_batch_upsert_orders_by_relative_path(self, workspace):
        with ScoreStore(workspace) as store:
            count = store.upsert_file_scores(
                [make_score(workspace, "z.py"), make_score(workspace, "a/b.py")]
            )
            assert count == 2
            assert [s.relative_path for s in store.list_file_scores()] == ["a/b.py", "z.py"]

    def test_malformed_score_data_loads_empty_breakdown(self, workspace):
        score = make_score(workspace, "a.py", composite=33.0)
        with ScoreStore(workspace) as store:
            store.upsert_file_score(score)
            store.conn.execute("UPDATE file_scores SET score_data_json = 'not json'")
            store.conn.commit()
            loaded = store.get_file_score(score.path)
        assert loaded.composite_score == 33.0
        assert loaded.components.total_contribution() == 0.0

    def test_stored_breakdown_is_json(self, workspace):
        score = make_score(workspace, "a.py")
        with ScoreStore(workspace) as store:
            store.upsert_file_score(score)
            raw = store.conn.execute("SELECT score_data_json FROM file_scores").fetchone()[0]
        assert json.loads(raw)["churn_rate"]["details"] == ["45 commits in 90 days"]


class TestSupervision:
    def test_set_by_relative_path(self, workspace):
        with ScoreStore(workspace) as store:
            store.upsert_file_score(make_score(workspace, "src/app.py", composite=72.0))
            updated = store.set_supervision("src/app.py", SupervisionStatus.ACCEPTABLE, "generated")
            assert updated.supervision_status is SupervisionStatus.ACCEPTABLE
            assert updated.supervision_note == "generated"
            row = store.conn.execute("SELECT supervision_score FROM file_scores").fetchone()
            assert row[0] == 72.0

    def test_reset_to_none_clears_supervision_score(self, workspace):
        score = make_score(workspace, "a.py")
        with ScoreStore(workspace) as store:
            store.upsert_file_score(score)
            store.set_supervision(score.path, SupervisionStatus.REGRESSED)
            store.set_supervision(score.path, SupervisionStatus.NONE)
            row = store.conn.execute("SELECT supervision_score FROM file_scores").fetchone()
            assert row[0] is None

    def test_unknown_file(self, workspace):
        with ScoreStore(workspace) as store:
            assert store.set_supervision("nope.py", SupervisionStatus.ACCEPTABLE) is None


class TestSnapshots:
    def test_snapshots_oldest_first(self, workspace):
        with ScoreStore(workspace) as store:
            store.record_snapshot(40.0, 10, 1, timestamp=100)
            store.record_snapshot(35.0, 11, 0, commit_count_week=4, metadata={"duration_ms": 5}, timestamp=200)
            store.record_snapshot(30.0, 12, 0, timestamp=300)

            snapshots = store.list_snapshots()
            assert [s.timestamp for s in snapshots] == [100, 200, 300]
            assert snapshots[1].commit_count_week == 4
            assert json.loads(snapshots[1].metadata) == {"duration_ms": 5}

            recent = store.list_snapshots(limit=2)
            assert [s.composite_score for s in recent] == [35.0, 30.0]

    def test_record_returns_snapshot(self, workspace):
        with ScoreStore(workspace) as store:
            snapshot = store.record_snapshot(12.5, 3, 0, timestamp=42)
        assert snapshot.id == 1
        assert snapshot.to_dict()["timestamp"] == 42


class TestStoreErrors:
    def test_sqlite_failure_becomes_store_error(self, workspace):
        with ScoreStore(workspace) as store:
            store.conn.execute("DROP TABLE file_scores")
            with pytest.raises(StoreError) as excinfo:
                store.list_file_scores()
        assert excinfo.value.details["operation"] == "read"

    def test_unopenable_database(self, workspace):
        blocker = workspace / ".debtengine"
        blocker.write_text("not a directory")
        with pytest.raises(StoreError):
            ScoreStore(workspace).connect()

    def test_failed_batch_writes_nothing(self, workspace):
        good = make_score(workspace, "a.py")
        with ScoreStore(workspace) as store:
            store.conn.execute(
                "CREATE TRIGGER reject_b BEFORE INSERT ON file_scores "
                "WHEN NEW.relative_path = 'b.py' BEGIN SELECT RAISE(ABORT, 'rejected'); END"
            )
            with pytest.raises(StoreError):
                store.upsert_file_scores([good, make_score(workspace, "b.py")])
            assert store.list_file_scores() == []


class TestRegisterItems:
    def test_create_and_read_back(self, workspace):
        item = RegisterItem.new(
            "Split payments",
            file_path="src/payments.py",
            severity=Severity.HIGH,
            tags=("billing", "refactor"),
            estimated_hours=8.0,
        )
        with ScoreStore(workspace) as store:
            store.create_register_item(item)

        with ScoreStore(workspace) as store:
            assert store.get_register_item(item.id) == item
            assert store.get_register_item("missing") is None

    def test_list_newest_first(self, workspace):
        old = RegisterItem("a", "old", created_at=100, updated_at=100)
        new = RegisterItem("b", "new", created_at=200, updated_at=200)
        same_time = RegisterItem("c", "same time, added later", created_at=200, updated_at=200)
        with ScoreStore(workspace) as store:
            store.create_register_items([old, new, same_time])
            assert [i.id for i in store.list_register_items()] == ["c", "b", "a"]

    def test_update_keeps_created_at(self, workspace):
        item = RegisterItem("a", "old title", created_at=100, updated_at=100)
        with ScoreStore(workspace) as store:
            store.create_register_item(item)
            changed = RegisterItem("a", "new title", status=ItemStatus.RESOLVED, created_at=999, updated_at=300)
            assert store.update_register_item(changed) is True
            loaded = store.get_register_item("a")
            assert loaded.title == "new title"
            assert loaded.status is ItemStatus.RESOLVED
            assert (loaded.created_at, loaded.updated_at) == (100, 300)

            assert store.update_register_item(RegisterItem("zzz", "x")) is False

    def test_delete(self, workspace):
        with ScoreStore(workspace) as store:
            store.create_register_item(RegisterItem("a", "x"))
            assert store.delete_register_item("a") is True
            assert store.delete_register_item("a") is False
            assert store.list_register_items() == []

    def test_duplicate_id_fails_whole_batch(self, workspace):
        with ScoreStore(workspace) as store:
            store.create_register_item(RegisterItem("a", "first"))
            with pytest.raises(StoreError):
                store.create_register_items([RegisterItem("b", "fine"), RegisterItem("a", "clash")])
            assert [i.id for i in store.list_register_items()] == ["a"]

    def test_unreadable_stored_values_fall_back(self, workspace):
        with ScoreStore(workspace) as store:
            store.create_register_item(RegisterItem("a", "x", tags=("t",)))
            store.conn.execute("UPDATE debt_register SET tags = 'not json'")
            assert store.get_register_item("a").tags == ()


class TestBudgets:
    def test_create_update_delete(self, workspace):
        budget = DebtBudget.new("src/api/**", 40.0, label="API")
        with ScoreStore(workspace) as store:
            store.create_budget(budget)
            assert store.get_budget(budget.id) == budget

            stricter = DebtBudget(budget.id, "src/api/**", "API", 30.0, budget.created_at, notify_on_breach=False)
            assert store.update_budget(stricter) is True
            assert store.get_budget(budget.id) == stricter

            assert store.delete_budget(budget.id) is True
            assert store.delete_budget(budget.id) is False
            assert store.get_budget(budget.id) is None

    def test_label_defaults_to_pattern(self):
        assert DebtBudget.new("**/*.go", 50).label == "**/*.go"

    def test_list_newest_first(self, workspace):
        with ScoreStore(workspace) as store:
            store.create_budget(DebtBudget("a", "a/**", "a", 10.0, created_at=100))
            store.create_budget(DebtBudget("b", "b/**", "b", 10.0, created_at=200))
            assert [b.id for b in store.list_budgets()] == ["b", "a"]


class TestWatchlist:
    def test_pin_and_list_oldest_first(self, workspace):
        with ScoreStore(workspace) as store:
            store.pin_file("b.py", pinned_at=200)
            store.pin_file("a.py", pinned_at=100)
            assert [p.file_path for p in store.list_pinned()] == ["a.py", "b.py"]

    def test_repin_keeps_original_time(self, workspace):
        with ScoreStore(workspace) as store:
            store.pin_file("a.py", pinned_at=100)
            again = store.pin_file("a.py", pinned_at=500)
            assert again.pinned_at == 100
            assert len(store.list_pinned()) == 1

    def test_limit(self, workspace):
        with ScoreStore(workspace) as store:
            for i in range(MAX_PINNED_FILES):
                store.pin_file(f"f{i}.py", pinned_at=i)
            with pytest.raises(WatchlistFullError):
                store.pin_file("one_more.py")
            store.pin_file("f0.py")
            assert len(store.list_pinned()) == MAX_PINNED_FILES

            assert store.unpin_file("f0.py") is True
            store.pin_file("one_more.py")
            assert "one_more.py" in {p.file_path for p in store.list_pinned()}

    def test_unpin_unknown(self, workspace):
        with ScoreStore(workspace) as store:
            assert store.unpin_file("nope.py") is False


class TestSchemaUpgrade:
    def test_old_store_gains_record_tables(self, workspace):
        with ScoreStore(workspace) as store:
            store.upsert_file_score(make_score(workspace, "a.py"))
            store.conn.execute("DROP TABLE watchlist")
            store.conn.execute("UPDATE schema_version SET version = 1")
            store.conn.commit()

        with ScoreStore(workspace) as store:
            store.pin_file("a.py")
            assert store.conn.execute("SELECT version FROM schema_version").fetchone()[0] == 2
            assert len(store.list_file_scores()) == 1
