"""SQLite-backed score store kept in .debtengine/ at the workspace root."""

from __future__ import annotations

import json
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from ..config import STATE_DIR_NAME
from ..exceptions import StoreError, WatchlistFullError
from ..logging_config import get_logger
from ..scoring.models import (
    DebtSnapshot,
    FileFingerprint,
    FileScore,
    ScoreComponents,
    SupervisionStatus,
)
from .models import (
    MAX_PINNED_FILES,
    DebtBudget,
    ItemStatus,
    ItemType,
    PinnedFile,
    RegisterItem,
    Severity,
)

logger = get_logger(__name__)

# Current schema version (bump when tables change).
_SCHEMA_VERSION = 2

DB_FILE_NAME = "state.db"

_UPSERT_SQL = """
    INSERT INTO file_scores (
        path, relative_path, composite_score, loc, language, last_modified,
        supervision_status, supervision_note, supervision_score,
        mtime_cached, score_data_json, updated_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(path) DO UPDATE SET
        relative_path      = excluded.relative_path,
        composite_score    = excluded.composite_score,
        loc                = excluded.loc,
        language           = excluded.language,
        last_modified      = excluded.last_modified,
        supervision_status = excluded.supervision_status,
        supervision_note   = excluded.supervision_note,
        supervision_score  = excluded.supervision_score,
        mtime_cached       = excluded.mtime_cached,
        score_data_json    = excluded.score_data_json,
        updated_at         = excluded.updated_at
"""

_SELECT_FILE_SQL = """
    SELECT path, relative_path, composite_score, loc, language, last_modified,
           supervision_status, supervision_note, score_data_json
    FROM file_scores
"""

_INSERT_REGISTER_SQL = """
    INSERT INTO debt_register (
        id, created_at, updated_at, title, description, file_path, severity,
        item_type, owner, target_sprint, estimated_hours, actual_hours, status,
        tags, linked_commit, notes
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_UPDATE_REGISTER_SQL = """
    UPDATE debt_register SET
        updated_at = ?, title = ?, description = ?, file_path = ?, severity = ?,
        item_type = ?, owner = ?, target_sprint = ?, estimated_hours = ?,
        actual_hours = ?, status = ?, tags = ?, linked_commit = ?, notes = ?
    WHERE id = ?
"""


class ScoreStore:
    """Manages the ``.debtengine/state.db`` SQLite database.

    One row per scored file keyed by absolute path, plus an append-only log
    of workspace snapshots. Every sqlite failure surfaces as StoreError.

    Usage::

        with ScoreStore("/path/to/workspace") as store:
            store.upsert_file_score(score)
    """

    def __init__(self, workspace: str | Path) -> None:
        self.db_dir: Path = Path(workspace) / STATE_DIR_NAME
        self.db_path: Path = self.db_dir / DB_FILE_NAME
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def conn(self) -> sqlite3.Connection:
        """Return the active connection. Raises if not connected."""
        if self._conn is None:
            raise RuntimeError("ScoreStore is not connected. Use as context manager or call connect().")
        return self._conn

    # ── lifecycle ─────────────────────────────────────────────────

    def _ensure_dir(self) -> None:
        """Create .debtengine/ and keep the database and cache out of git."""
        self.db_dir.mkdir(parents=True, exist_ok=True)
        gitignore = self.db_dir / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text(f"{DB_FILE_NAME}*\ncache/\n")

    def connect(self) -> sqlite3.Connection:
        """Open (or create) the database and run migrations."""
        try:
            self._ensure_dir()
            conn = sqlite3.connect(str(self.db_path), timeout=10)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.row_factory = sqlite3.Row
            self._conn = conn
            self._migrate()
        except (OSError, sqlite3.Error) as e:
            self.close()
            raise StoreError("open", str(e), str(self.db_path)) from e
        logger.debug("Score store connected at %s", self.db_path)
        return conn

    def close(self) -> None:
        """Close the connection if open."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "ScoreStore":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @contextmanager
    def _guard(self, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            yield self.conn
        except sqlite3.Error as e:
            raise StoreError(operation, str(e), str(self.db_path)) from e

    # ── migration ─────────────────────────────────────────────────

    def _migrate(self) -> None:
        """Idempotently create / upgrade all tables."""
        c = self.conn

        c.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL)")
        row = c.execute("SELECT version FROM schema_version").fetchone()
        if row is None:
            c.execute("INSERT INTO schema_version (version) VALUES (?)", (_SCHEMA_VERSION,))
        elif row["version"] > _SCHEMA_VERSION:
            logger.warning(
                "Score store schema v%d is newer than supported v%d", row["version"], _SCHEMA_VERSION
            )
        elif row["version"] < _SCHEMA_VERSION:
            logger.debug("Upgrading score store schema v%d -> v%d", row["version"], _SCHEMA_VERSION)
            c.execute("UPDATE schema_version SET version = ?", (_SCHEMA_VERSION,))

        # ── file_scores ──────────────────────────────────────────
        c.execute(
            """
            CREATE TABLE IF NOT EXISTS file_scores (
                path               TEXT    PRIMARY KEY,
                relative_path      TEXT    NOT NULL,
                composite_score    REAL    NOT NULL,
                loc                INTEGER NOT NULL DEFAULT 0,
                language           TEXT    NOT NULL DEFAULT 'unknown',
                last_modified      INTEGER NOT NULL DEFAULT 0,
                supervision_status TEXT    NOT NULL DEFAULT 'none',
                supervision_note   TEXT,
                supervision_score  REAL,
                mtime_cached       INTEGER NOT NULL DEFAULT 0,
                score_data_json    TEXT    NOT NULL DEFAULT '{}',
                updated_at         INTEGER NOT NULL
            )
            """
        )

        # ── debt_snapshots ───────────────────────────────────────
        c.execute(
            """
            CREATE TABLE IF NOT EXISTS debt_snapshots (
                id                INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp         INTEGER NOT NULL,
                composite_score   REAL    NOT NULL,
                file_count        INTEGER NOT NULL DEFAULT 0,
                high_debt_count   INTEGER NOT NULL DEFAULT 0,
                commit_count_week INTEGER NOT NULL DEFAULT 0,
                snapshot_metadata TEXT
            )
            """
        )

        # ── debt_register ────────────────────────────────────────
        c.execute(
            """
            CREATE TABLE IF NOT EXISTS debt_register (
                id              TEXT    PRIMARY KEY,
                created_at      INTEGER NOT NULL,
                updated_at      INTEGER NOT NULL,
                title           TEXT    NOT NULL,
                description     TEXT    NOT NULL DEFAULT '',
                file_path       TEXT,
                severity        TEXT    NOT NULL DEFAULT 'medium'
                    CHECK (severity IN ('low', 'medium', 'high', 'critical')),
                item_type       TEXT    NOT NULL DEFAULT 'code'
                    CHECK (item_type IN ('design', 'code', 'test', 'dependency',
                                         'documentation', 'security', 'performance')),
                owner           TEXT,
                target_sprint   TEXT,
                estimated_hours REAL,
                actual_hours    REAL,
                status          TEXT    NOT NULL DEFAULT 'open'
                    CHECK (status IN ('open', 'in_progress', 'resolved', 'deferred', 'accepted')),
                tags            TEXT    NOT NULL DEFAULT '[]',
                linked_commit   TEXT,
                notes           TEXT
            )
            """
        )

        # ── debt_budgets ─────────────────────────────────────────
        c.execute(
            """
            CREATE TABLE IF NOT EXISTS debt_budgets (
                id               TEXT    PRIMARY KEY,
                pattern          TEXT    NOT NULL,
                label            TEXT    NOT NULL,
                max_score        REAL    NOT NULL,
                created_at       INTEGER NOT NULL,
                notify_on_breach INTEGER NOT NULL DEFAULT 1
            )
            """
        )

        # ── watchlist ────────────────────────────────────────────
        c.execute(
            """
            CREATE TABLE IF NOT EXISTS watchlist (
                file_path TEXT    PRIMARY KEY,
                pinned_at INTEGER NOT NULL
            )
            """
        )

        c.execute(
            "CREATE INDEX IF NOT EXISTS idx_file_scores_relative ON file_scores(relative_path)"
        )
        c.execute(
            "CREATE INDEX IF NOT EXISTS idx_debt_snapshots_timestamp ON debt_snapshots(timestamp)"
        )
        c.execute("CREATE INDEX IF NOT EXISTS idx_watchlist_pinned_at ON watchlist(pinned_at)")
        c.commit()

    # ── file scores ───────────────────────────────────────────────

    def upsert_file_score(self, score: FileScore) -> None:
        """Insert or replace one file's row (auto-committed)."""
        with self._guard("upsert") as c, c:
            c.execute(_UPSERT_SQL, _row_values(score))
        logger.debug("Stored score for %s", score.relative_path)

    def upsert_file_scores(self, scores: Iterable[FileScore]) -> int:
        """Insert or replace many rows in one transaction: all or none."""
        rows = [_row_values(s) for s in scores]
        with self._guard("batch upsert") as c, c:
            c.executemany(_UPSERT_SQL, rows)
        logger.debug("Stored %d file scores", len(rows))
        return len(rows)

    def get_file_score(self, path: str) -> Optional[FileScore]:
        with self._guard("read") as c:
            row = c.execute(_SELECT_FILE_SQL + " WHERE path = ?", (path,)).fetchone()
        return _row_to_score(row) if row is not None else None

    def get_file_score_by_relative_path(self, relative_path: str) -> Optional[FileScore]:
        with self._guard("read") as c:
            row = c.execute(
                _SELECT_FILE_SQL + " WHERE relative_path = ? ORDER BY updated_at DESC LIMIT 1",
                (relative_path,),
            ).fetchone()
        return _row_to_score(row) if row is not None else None

    def get_cached_mtime(self, path: str) -> Optional[int]:
        """Modification time recorded when the file was last scored."""
        with self._guard("read") as c:
            row = c.execute("SELECT mtime_cached FROM file_scores WHERE path = ?", (path,)).fetchone()
        return int(row["mtime_cached"]) if row is not None else None

    def list_file_scores(self) -> list[FileScore]:
        """Every stored score, ordered by relative path."""
        with self._guard("read") as c:
            rows = c.execute(_SELECT_FILE_SQL + " ORDER BY relative_path").fetchall()
        return [_row_to_score(row) for row in rows]

    def set_supervision(
        self, path: str, status: SupervisionStatus, note: Optional[str] = None
    ) -> Optional[FileScore]:
        """Record a reviewer verdict. Returns the updated score, None if unknown."""
        with self._guard("supervise") as c, c:
            cursor = c.execute(
                """
                UPDATE file_scores
                SET supervision_status = ?,
                    supervision_note = ?,
                    supervision_score = CASE WHEN ? = 'none' THEN NULL ELSE composite_score END,
                    updated_at = ?
                WHERE path = ? OR relative_path = ?
                """,
                (status.value, note, status.value, int(time.time()), path, path),
            )
        if cursor.rowcount == 0:
            return None
        return self.get_file_score(path) or self.get_file_score_by_relative_path(path)

    # ── snapshots ─────────────────────────────────────────────────

    def record_snapshot(
        self,
        composite_score: float,
        file_count: int,
        high_debt_count: int,
        commit_count_week: int = 0,
        metadata: Optional[dict[str, Any]] = None,
        timestamp: Optional[int] = None,
    ) -> DebtSnapshot:
        """Append one workspace-level snapshot."""
        ts = int(time.time()) if timestamp is None else timestamp
        meta = json.dumps(metadata, sort_keys=True) if metadata is not None else None
        with self._guard("snapshot") as c, c:
            cursor = c.execute(
                """
                INSERT INTO debt_snapshots (
                    timestamp, composite_score, file_count, high_debt_count,
                    commit_count_week, snapshot_metadata
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (ts, composite_score, file_count, high_debt_count, commit_count_week, meta),
            )
        return DebtSnapshot(
            id=cursor.lastrowid,
            timestamp=ts,
            composite_score=composite_score,
            file_count=file_count,
            high_debt_count=high_debt_count,
            commit_count_week=commit_count_week,
            metadata=meta,
        )

    def list_snapshots(self, limit: Optional[int] = None) -> list[DebtSnapshot]:
        """Snapshots in timestamp order, oldest first (the most recent ``limit``)."""
        sql = "SELECT * FROM debt_snapshots ORDER BY timestamp DESC, id DESC"
        params: tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            params = (limit,)
        with self._guard("read") as c:
            rows = c.execute(sql, params).fetchall()
        return [
            DebtSnapshot(
                id=row["id"],
                timestamp=row["timestamp"],
                composite_score=row["composite_score"],
                file_count=row["file_count"],
                high_debt_count=row["high_debt_count"],
                commit_count_week=row["commit_count_week"],
                metadata=row["snapshot_metadata"],
            )
            for row in reversed(rows)
        ]

    # ── debt register ─────────────────────────────────────────────

    def create_register_items(self, items: Iterable[RegisterItem]) -> int:
        """Insert new items in one transaction. A duplicate id fails the whole batch."""
        rows = [_register_values(item) for item in items]
        with self._guard("register create") as c, c:
            c.executemany(_INSERT_REGISTER_SQL, rows)
        logger.debug("Added %d register items", len(rows))
        return len(rows)

    def create_register_item(self, item: RegisterItem) -> RegisterItem:
        self.create_register_items([item])
        return item

    def update_register_item(self, item: RegisterItem) -> bool:
        """Overwrite every field but ``id`` and ``created_at``. False if unknown."""
        values = _register_values(item)
        with self._guard("register update") as c, c:
            cursor = c.execute(_UPDATE_REGISTER_SQL, (*values[2:], item.id))
        return cursor.rowcount > 0

    def get_register_item(self, item_id: str) -> Optional[RegisterItem]:
        with self._guard("read") as c:
            row = c.execute("SELECT * FROM debt_register WHERE id = ?", (item_id,)).fetchone()
        return _row_to_register_item(row) if row is not None else None

    def list_register_items(self) -> list[RegisterItem]:
        """Every item, newest first."""
        with self._guard("read") as c:
            rows = c.execute(
                "SELECT * FROM debt_register ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        return [_row_to_register_item(row) for row in rows]

    def delete_register_item(self, item_id: str) -> bool:
        with self._guard("register delete") as c, c:
            cursor = c.execute("DELETE FROM debt_register WHERE id = ?", (item_id,))
        return cursor.rowcount > 0

    # ── budgets ───────────────────────────────────────────────────

    def create_budget(self, budget: DebtBudget) -> DebtBudget:
        with self._guard("budget create") as c, c:
            c.execute(
                """
                INSERT INTO debt_budgets (id, pattern, label, max_score, created_at, notify_on_breach)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    budget.id,
                    budget.pattern,
                    budget.label,
                    budget.max_score,
                    budget.created_at,
                    int(budget.notify_on_breach),
                ),
            )
        return budget

    def update_budget(self, budget: DebtBudget) -> bool:
        with self._guard("budget update") as c, c:
            cursor = c.execute(
                """
                UPDATE debt_budgets
                SET pattern = ?, label = ?, max_score = ?, notify_on_breach = ?
                WHERE id = ?
                """,
                (budget.pattern, budget.label, budget.max_score, int(budget.notify_on_breach), budget.id),
            )
        return cursor.rowcount > 0

    def get_budget(self, budget_id: str) -> Optional[DebtBudget]:
        with self._guard("read") as c:
            row = c.execute("SELECT * FROM debt_budgets WHERE id = ?", (budget_id,)).fetchone()
        return _row_to_budget(row) if row is not None else None

    def list_budgets(self) -> list[DebtBudget]:
        """Every budget, newest first."""
        with self._guard("read") as c:
            rows = c.execute(
                "SELECT * FROM debt_budgets ORDER BY created_at DESC, rowid DESC"
            ).fetchall()
        return [_row_to_budget(row) for row in rows]

    def delete_budget(self, budget_id: str) -> bool:
        with self._guard("budget delete") as c, c:
            cursor = c.execute("DELETE FROM debt_budgets WHERE id = ?", (budget_id,))
        return cursor.rowcount > 0

    # ── watchlist ─────────────────────────────────────────────────

    def list_pinned(self) -> list[PinnedFile]:
        """Pinned files, oldest pin first."""
        with self._guard("read") as c:
            rows = c.execute("SELECT * FROM watchlist ORDER BY pinned_at, rowid").fetchall()
        return [PinnedFile(file_path=row["file_path"], pinned_at=row["pinned_at"]) for row in rows]

    def pin_file(self, relative_path: str, pinned_at: Optional[int] = None) -> PinnedFile:
        """Pin a file. Pinning an already pinned file keeps its original time.

        Raises:
            WatchlistFullError: If MAX_PINNED_FILES other files are pinned.
        """
        ts = int(time.time()) if pinned_at is None else pinned_at
        with self._guard("pin") as c, c:
            row = c.execute(
                "SELECT pinned_at FROM watchlist WHERE file_path = ?", (relative_path,)
            ).fetchone()
            if row is not None:
                return PinnedFile(file_path=relative_path, pinned_at=row["pinned_at"])
            if c.execute("SELECT COUNT(*) FROM watchlist").fetchone()[0] >= MAX_PINNED_FILES:
                raise WatchlistFullError(MAX_PINNED_FILES)
            c.execute(
                "INSERT INTO watchlist (file_path, pinned_at) VALUES (?, ?)", (relative_path, ts)
            )
        return PinnedFile(file_path=relative_path, pinned_at=ts)

    def unpin_file(self, relative_path: str) -> bool:
        with self._guard("unpin") as c, c:
            cursor = c.execute("DELETE FROM watchlist WHERE file_path = ?", (relative_path,))
        return cursor.rowcount > 0


def _row_values(score: FileScore) -> tuple:
    status = score.supervision_status
    return (
        score.path,
        score.relative_path,
        score.composite_score,
        score.loc,
        score.language,
        score.last_modified,
        status.value,
        score.supervision_note,
        None if status is SupervisionStatus.NONE else score.composite_score,
        score.last_modified,
        json.dumps(score.components.to_dict()),
        int(time.time()),
    )


def _row_to_score(row: sqlite3.Row) -> FileScore:
    try:
        components = ScoreComponents.from_dict(json.loads(row["score_data_json"]))
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning("Malformed score data for %s (%s); loading empty breakdown", row["path"], e)
        components = ScoreComponents.empty()

    return FileScore(
        fingerprint=FileFingerprint(
            path=row["path"],
            relative_path=row["relative_path"],
            language=row["language"],
            loc=row["loc"],
            last_modified=row["last_modified"],
        ),
        components=components,
        composite_score=row["composite_score"],
        supervision_status=SupervisionStatus.parse(row["supervision_status"]),
        supervision_note=row["supervision_note"],
    )


def _register_values(item: RegisterItem) -> tuple:
    return (
        item.id,
        item.created_at,
        item.updated_at,
        item.title,
        item.description,
        item.file_path,
        item.severity.value,
        item.item_type.value,
        item.owner,
        item.target_sprint,
        item.estimated_hours,
        item.actual_hours,
        item.status.value,
        json.dumps(list(item.tags)),
        item.linked_commit,
        item.notes,
    )


def _row_to_register_item(row: sqlite3.Row) -> RegisterItem:
    try:
        tags = json.loads(row["tags"] or "[]")
    except ValueError:
        tags = []
    if not isinstance(tags, list):
        tags = []
    return RegisterItem(
        id=row["id"],
        title=row["title"],
        description=row["description"] or "",
        file_path=row["file_path"],
        severity=Severity.parse(row["severity"], Severity.MEDIUM),
        item_type=ItemType.parse(row["item_type"], ItemType.CODE),
        status=ItemStatus.parse(row["status"], ItemStatus.OPEN),
        owner=row["owner"],
        target_sprint=row["target_sprint"],
        estimated_hours=row["estimated_hours"],
        actual_hours=row["actual_hours"],
        tags=tuple(str(t) for t in tags),
        linked_commit=row["linked_commit"],
        notes=row["notes"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_budget(row: sqlite3.Row) -> DebtBudget:
    return DebtBudget(
        id=row["id"],
        pattern=row["pattern"],
        label=row["label"],
        max_score=row["max_score"],
        created_at=row["created_at"],
        notify_on_breach=bool(row["notify_on_breach"]),
    )
