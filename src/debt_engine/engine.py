"""DebtEngine: full scans, incremental rescoring and the read views over them.

Usage:
    engine = DebtEngine()
    result = engine.score_workspace("/path/to/repo")
    tree = engine.get_heatmap()
    breakdown = engine.get_breakdown("src/app.py")
"""

from __future__ import annotations

import math
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Optional

from .analysis.coupling import coupling_ratio, has_import_link
from .config import AnalysisSettings, load_settings
from .exceptions import (
    FileAccessError,
    FileNotScoredError,
    InvalidPathError,
    InvalidRecordError,
    NoAnalysisDataError,
    RecordNotFoundError,
)
from .history import CachedHistoryProvider, HistoryProvider, collect_or_empty
from .logging_config import get_logger
from .persistence import (
    DebtBudget,
    ItemStatus,
    ItemType,
    PinnedFile,
    RegisterItem,
    ScoreStore,
    Severity,
)
from .scoring import (
    AnalysisProgress,
    AnalysisResult,
    CouplingPair,
    DebtSnapshot,
    FileBreakdown,
    FileScore,
    HeatmapNode,
    SupervisionStatus,
    build_analysis_inputs,
    build_heatmap_tree,
    score_file,
)
from .scoring.budgets import BudgetEvaluation, evaluate_budgets
from .state import AnalysisCache, ProgressChannel
from .workspace import file_mtime, read_source, to_relative_path, validate_workspace, walk_source_files

logger = get_logger(__name__)

ProgressCallback = Callable[[AnalysisProgress], None]

MIN_CO_CHANGES = 2
DEFAULT_MIN_COUPLING_RATIO = 0.05


class DebtEngine:
    """Scores workspaces and keeps one live result fresh.

    One engine serves one process: the in-memory cache holds the result of
    the most recently analyzed workspace, the durable store lives inside each
    workspace under ``.debtengine/``.
    """

    def __init__(
        self,
        cache: Optional[AnalysisCache] = None,
        history: Optional[HistoryProvider] = None,
        progress: Optional[ProgressChannel] = None,
        settings_loader: Callable[[Path], AnalysisSettings] = load_settings,
    ):
        """
        Args:
            cache: Shared in-memory result cache (a private one by default)
            history: History facts provider; by default git history memoized
                on disk according to each workspace's settings
            progress: Channel receiving every progress event of full scans
            settings_loader: Resolves settings for a workspace root
        """
        self.cache = cache or AnalysisCache()
        self.progress = progress or ProgressChannel()
        self._history = history
        self._load_settings = settings_loader

    # ── full scan ─────────────────────────────────────────────────

    def score_workspace(
        self, root: str | Path, on_progress: Optional[ProgressCallback] = None
    ) -> AnalysisResult:
        """Score every source file under ``root``.

        The result is published to the in-memory cache first, then persisted
        in one transaction, then logged as a snapshot.

        Raises:
            InvalidPathError: If ``root`` is not a directory.
            HistoryUnavailableError: Only with ``strict_history`` enabled.
            StoreError: If persisting fails (the cache is already updated).
            CacheLockError: If the cache lock cannot be acquired.
        """
        start = time.perf_counter()
        root = validate_workspace(root)
        settings = self._settings(root)
        files = walk_source_files(root)
        logger.info("Scoring %d files in %s", len(files), root)

        inputs = build_analysis_inputs(root, files, settings, self._history_for(settings))

        scores: list[FileScore] = []
        total = len(files)
        for i, path in enumerate(files, 1):
            self._emit(on_progress, AnalysisProgress(i, total, to_relative_path(root, path)))
            try:
                scores.append(score_file(path, inputs))
            except FileAccessError as e:
                logger.debug("Skipping %s: %s", path, e.reason)

        duration_ms = int((time.perf_counter() - start) * 1000)
        result = AnalysisResult.from_files(scores, duration_ms, settings.high_debt_threshold)
        heatmap = build_heatmap_tree(str(root), result.files)
        self.cache.replace(str(root), result, heatmap)

        with ScoreStore(root) as store:
            store.upsert_file_scores(result.files)
            store.record_snapshot(
                result.workspace_score,
                result.file_count,
                result.high_debt_count,
                commit_count_week=inputs.commit_count_week,
                metadata={"duration_ms": duration_ms, "history_days": settings.history_days},
            )
            budgets = store.list_budgets()

        logger.info(
            "Workspace score %.1f over %d files (%d high debt) in %dms",
            result.workspace_score,
            result.file_count,
            result.high_debt_count,
            duration_ms,
        )
        _warn_breaches(evaluate_budgets(budgets, result.files))
        return result

    # ── incremental ───────────────────────────────────────────────

    def rescore_file(self, root: str | Path, path: str | Path) -> FileScore:
        """Bring one file's score up to date.

        An unchanged file (same mtime as when it was stored) is returned from
        the store as-is without any durable write.

        Raises:
            InvalidPathError: If ``root`` is not a directory or ``path`` lies outside it.
            FileAccessError: If the file cannot be stat'ed or read.
            StoreError: If the store cannot be read or written.
            CacheLockError: If the cache lock cannot be acquired.
        """
        root = validate_workspace(root)
        target = _resolve_inside(root, path)
        mtime = file_mtime(target)
        settings = self._settings(root)
        workspace = str(root)

        with ScoreStore(root) as store:
            if store.get_cached_mtime(str(target)) == mtime:
                stored = store.get_file_score(str(target))
                if stored is not None:
                    logger.debug("Unchanged since last score: %s", stored.relative_path)
                    if not self.cache.contains(workspace, stored.path):
                        self.cache.patch(workspace, stored, settings.high_debt_threshold)
                    return stored

            files = walk_source_files(root)
            inputs = build_analysis_inputs(root, files, settings, self._history_for(settings))
            score = score_file(target, inputs)

            self.cache.patch(workspace, score, settings.high_debt_threshold)
            store.upsert_file_score(score)

        logger.info("Rescored %s: %.1f", score.relative_path, score.composite_score)
        return score

    def open_workspace(self, root: str | Path) -> Optional[AnalysisResult]:
        """Load every stored score of ``root`` into the cache without rescoring.

        Returns None (and leaves the cache alone) when nothing is stored yet.
        """
        root = validate_workspace(root)
        settings = self._settings(root)
        with ScoreStore(root) as store:
            files = store.list_file_scores()
        if not files:
            logger.debug("No stored scores for %s", root)
            return None

        result = AnalysisResult.from_files(files, 0, settings.high_debt_threshold)
        self.cache.replace(str(root), result, build_heatmap_tree(str(root), result.files))
        logger.info("Loaded %d stored scores for %s", result.file_count, root)
        return result

    # ── read views ────────────────────────────────────────────────

    def current_result(self) -> Optional[AnalysisResult]:
        return self.cache.snapshot().result

    def get_heatmap(self) -> HeatmapNode:
        heatmap = self.cache.snapshot().heatmap
        if heatmap is None:
            raise NoAnalysisDataError()
        return heatmap

    def get_breakdown(self, path: str) -> FileBreakdown:
        """Per-component explanation for one file (absolute or relative path)."""
        snapshot = self.cache.snapshot()
        if snapshot.result is None:
            raise NoAnalysisDataError()
        file = snapshot.result.find(path)
        if file is None:
            raise FileNotScoredError(path, snapshot.workspace)
        return FileBreakdown.from_file_score(file)

    def get_change_couplings(
        self, root: str | Path, min_ratio: float = DEFAULT_MIN_COUPLING_RATIO
    ) -> list[CouplingPair]:
        """File pairs that change together, strongest co-change count first.

        Only pairs seen together at least twice and at or above ``min_ratio``
        are reported. When the cache holds a result for this workspace, pairs
        where neither file is in it are dropped.
        """
        root = validate_workspace(root)
        settings = self._settings(root)
        facts = collect_or_empty(
            self._history_for(settings), str(root), settings.history_days, settings.strict_history
        )
        table = facts.co_changes

        snapshot = self.cache.snapshot()
        known: set[str] = set()
        if snapshot.workspace == str(root) and snapshot.result is not None:
            known = {f.relative_path for f in snapshot.result.files}

        candidates = []
        for (file_a, file_b), count in table.pairs.items():
            if count < MIN_CO_CHANGES:
                continue
            if known and file_a not in known and file_b not in known:
                continue
            ratio = coupling_ratio(table, file_a, file_b, count)
            if ratio < min_ratio:
                continue
            candidates.append((file_a, file_b, ratio, count))

        candidates.sort(key=lambda c: (-c[3], c[0], c[1]))
        pairs = [
            CouplingPair(
                file_a=file_a,
                file_b=file_b,
                coupling_ratio=ratio,
                co_change_count=count,
                has_import_link=_mentions(root, file_a, file_b),
            )
            for file_a, file_b, ratio, count in candidates[: settings.max_couplings]
        ]
        logger.debug("%d change-coupled pairs (of %d co-changed)", len(pairs), len(table.pairs))
        return pairs

    # ── supervision & history ─────────────────────────────────────

    def set_supervision(
        self,
        root: str | Path,
        path: str,
        status: SupervisionStatus,
        note: Optional[str] = None,
    ) -> FileScore:
        """Record a reviewer verdict for a scored file.

        Raises:
            FileNotScoredError: If the file has no stored score.
        """
        root = validate_workspace(root)
        key = path
        if Path(path).is_absolute():
            key = str(Path(path).resolve())
        with ScoreStore(root) as store:
            updated = store.set_supervision(key, status, note)
        if updated is None:
            raise FileNotScoredError(path, str(root))

        if self.cache.contains(str(root), updated.path):
            self.cache.patch(str(root), updated, self._settings(root).high_debt_threshold)
        return updated

    def list_snapshots(self, root: str | Path, limit: Optional[int] = None) -> list[DebtSnapshot]:
        root = validate_workspace(root)
        with ScoreStore(root) as store:
            return store.list_snapshots(limit)

    # ── debt register ─────────────────────────────────────────────

    def create_register_item(self, root: str | Path, title: str, **fields: Any) -> RegisterItem:
        """Add a hand-written register item.

        Raises:
            InvalidRecordError: On an empty title or a field the register does not know.
            InvalidPathError: If ``file_path`` lies outside the workspace.
        """
        root = validate_workspace(root)
        item = RegisterItem.new(**_register_fields(root, {"title": title, **fields}))
        with ScoreStore(root) as store:
            store.create_register_item(item)
        logger.info("Registered %s (%s)", item.title, item.severity.value)
        return item

    def update_register_item(self, root: str | Path, item_id: str, **changes: Any) -> RegisterItem:
        root = validate_workspace(root)
        changes = _register_fields(root, changes)
        with ScoreStore(root) as store:
            item = store.get_register_item(item_id)
            if item is None:
                raise RecordNotFoundError("register item", item_id)
            item = item.updated(**changes)
            store.update_register_item(item)
        return item

    def get_register_item(self, root: str | Path, item_id: str) -> RegisterItem:
        root = validate_workspace(root)
        with ScoreStore(root) as store:
            item = store.get_register_item(item_id)
        if item is None:
            raise RecordNotFoundError("register item", item_id)
        return item

    def list_register_items(
        self, root: str | Path, status: Optional[ItemStatus | str] = None
    ) -> list[RegisterItem]:
        """Register items, newest first, optionally only those with ``status``."""
        root = validate_workspace(root)
        if status is not None:
            status = _register_fields(root, {"status": status})["status"]
        with ScoreStore(root) as store:
            items = store.list_register_items()
        if status is None:
            return items
        return [item for item in items if item.status == status]

    def delete_register_item(self, root: str | Path, item_id: str) -> None:
        root = validate_workspace(root)
        with ScoreStore(root) as store:
            if not store.delete_register_item(item_id):
                raise RecordNotFoundError("register item", item_id)

    def import_high_debt_files(self, root: str | Path) -> list[RegisterItem]:
        """Register every high-debt file that has no register item yet.

        Files come from the live result when it belongs to ``root``, otherwise
        from the store. Items are created worst file first.
        """
        root = validate_workspace(root)
        settings = self._settings(root)
        files = self._scored_files(root)
        with ScoreStore(root) as store:
            tracked = {item.file_path for item in store.list_register_items() if item.file_path}
            items = [
                RegisterItem.new(
                    title=f"High debt: {Path(f.relative_path).name}",
                    description=f"Auto-imported from analysis. Composite score: {f.composite_score:.1f}",
                    file_path=f.relative_path,
                    severity=(
                        Severity.CRITICAL
                        if f.composite_score >= settings.critical_threshold
                        else Severity.HIGH
                    ),
                    item_type=ItemType.CODE,
                    tags=("auto-imported",),
                )
                for f in sorted(files, key=lambda f: (-f.composite_score, f.relative_path))
                if f.composite_score > settings.high_debt_threshold
                and f.relative_path not in tracked
            ]
            store.create_register_items(items)
        logger.info("Imported %d high-debt files into the register", len(items))
        return items

    # ── budgets ───────────────────────────────────────────────────

    def create_budget(
        self,
        root: str | Path,
        pattern: str,
        max_score: float,
        label: Optional[str] = None,
        notify_on_breach: bool = True,
    ) -> DebtBudget:
        """Cap the composite score of every file matching ``pattern``.

        Raises:
            InvalidRecordError: On an empty pattern or a max score outside 0-100.
        """
        root = validate_workspace(root)
        budget = DebtBudget.new(
            _check_pattern(pattern), _check_max_score(max_score), label, notify_on_breach
        )
        with ScoreStore(root) as store:
            store.create_budget(budget)
        logger.info("Budget %s: max %.1f", budget.label, budget.max_score)
        return budget

    def update_budget(
        self,
        root: str | Path,
        budget_id: str,
        pattern: Optional[str] = None,
        max_score: Optional[float] = None,
        label: Optional[str] = None,
        notify_on_breach: Optional[bool] = None,
    ) -> DebtBudget:
        root = validate_workspace(root)
        changes: dict[str, Any] = {}
        if pattern is not None:
            changes["pattern"] = _check_pattern(pattern)
        if max_score is not None:
            changes["max_score"] = _check_max_score(max_score)
        if label is not None:
            changes["label"] = label
        if notify_on_breach is not None:
            changes["notify_on_breach"] = notify_on_breach
        with ScoreStore(root) as store:
            budget = store.get_budget(budget_id)
            if budget is None:
                raise RecordNotFoundError("budget", budget_id)
            budget = replace(budget, **changes)
            store.update_budget(budget)
        return budget

    def list_budgets(self, root: str | Path) -> list[DebtBudget]:
        root = validate_workspace(root)
        with ScoreStore(root) as store:
            return store.list_budgets()

    def delete_budget(self, root: str | Path, budget_id: str) -> None:
        root = validate_workspace(root)
        with ScoreStore(root) as store:
            if not store.delete_budget(budget_id):
                raise RecordNotFoundError("budget", budget_id)

    def evaluate_budgets(self, root: str | Path) -> list[BudgetEvaluation]:
        """Check every budget against the current scores of ``root``."""
        root = validate_workspace(root)
        files = self._scored_files(root)
        with ScoreStore(root) as store:
            budgets = store.list_budgets()
        return evaluate_budgets(budgets, files)

    # ── watchlist ─────────────────────────────────────────────────

    def pin_file(self, root: str | Path, path: str | Path) -> PinnedFile:
        """Pin a file inside ``root``.

        Raises:
            InvalidPathError: If ``path`` lies outside the workspace.
            WatchlistFullError: If the watchlist already holds its limit.
        """
        root = validate_workspace(root)
        relative = _resolve_inside(root, path).relative_to(root).as_posix()
        with ScoreStore(root) as store:
            return store.pin_file(relative)

    def unpin_file(self, root: str | Path, path: str | Path) -> bool:
        """Unpin a file. False if it was not pinned."""
        root = validate_workspace(root)
        relative = _resolve_inside(root, path).relative_to(root).as_posix()
        with ScoreStore(root) as store:
            return store.unpin_file(relative)

    def list_pinned(self, root: str | Path) -> list[PinnedFile]:
        root = validate_workspace(root)
        with ScoreStore(root) as store:
            return store.list_pinned()

    # ── internals ─────────────────────────────────────────────────

    def _settings(self, root: Path) -> AnalysisSettings:
        settings = self._load_settings(root)
        self.cache.lock_timeout = settings.lock_timeout_seconds
        return settings

    def _scored_files(self, root: Path) -> list[FileScore]:
        snapshot = self.cache.snapshot()
        if snapshot.workspace == str(root) and snapshot.result is not None:
            return list(snapshot.result.files)
        with ScoreStore(root) as store:
            return store.list_file_scores()

    def _history_for(self, settings: AnalysisSettings) -> HistoryProvider:
        if self._history is not None:
            return self._history
        return CachedHistoryProvider(
            ttl_hours=settings.history_cache_ttl_hours,
            enabled=settings.history_cache_enabled,
        )

    def _emit(self, on_progress: Optional[ProgressCallback], event: AnalysisProgress) -> None:
        self.progress.publish(event)
        if on_progress is None:
            return
        try:
            on_progress(event)
        except Exception:
            logger.exception("Progress callback failed at %d/%d", event.current, event.total)


def _mentions(root: Path, file_a: str, file_b: str) -> bool:
    try:
        source = read_source(root / file_a)
    except FileAccessError:
        return False
    return has_import_link(source, file_b)


def _resolve_inside(root: Path, path: str | Path) -> Path:
    target = Path(path)
    if not target.is_absolute():
        target = root / target
    target = target.resolve()
    if not target.is_relative_to(root):
        raise InvalidPathError(target, f"Outside the workspace root {root}")
    return target


_REGISTER_ENUMS = {"severity": Severity, "item_type": ItemType, "status": ItemStatus}
_REGISTER_TEXT = frozenset({"owner", "target_sprint", "linked_commit", "notes"})
_REGISTER_HOURS = frozenset({"estimated_hours", "actual_hours"})


def _register_fields(root: Path, fields: dict[str, Any]) -> dict[str, Any]:
    """Validate register fields and coerce them to the stored types."""
    clean: dict[str, Any] = {}
    for name, value in fields.items():
        if name == "title":
            if not isinstance(value, str) or not value.strip():
                raise InvalidRecordError(name, value, "Title must not be empty")
            value = value.strip()
        elif name in _REGISTER_ENUMS:
            enum = _REGISTER_ENUMS[name]
            try:
                value = enum(value)
            except ValueError:
                allowed = ", ".join(member.value for member in enum)
                raise InvalidRecordError(name, value, f"Expected one of: {allowed}") from None
        elif name in _REGISTER_HOURS:
            if value is not None:
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise InvalidRecordError(name, value, "Hours must be a number")
                if not math.isfinite(value) or value < 0:
                    raise InvalidRecordError(name, value, "Hours must be finite and not negative")
                value = float(value)
        elif name == "file_path":
            if value is not None:
                value = _resolve_inside(root, value).relative_to(root).as_posix()
        elif name == "tags":
            value = tuple(str(tag) for tag in (value or ()))
        elif name == "description":
            value = value or ""
        elif name not in _REGISTER_TEXT:
            raise InvalidRecordError(name, value, "Unknown register field")
        clean[name] = value
    return clean


def _check_pattern(pattern: str) -> str:
    if not isinstance(pattern, str) or not pattern.strip():
        raise InvalidRecordError("pattern", pattern, "Pattern must not be empty")
    return pattern.strip()


def _check_max_score(max_score: float) -> float:
    if isinstance(max_score, bool) or not isinstance(max_score, (int, float)):
        raise InvalidRecordError("max_score", max_score, "Max score must be a number")
    if not math.isfinite(max_score) or not 0 <= max_score <= 100:
        raise InvalidRecordError("max_score", max_score, "Max score must be between 0 and 100")
    return float(max_score)


def _warn_breaches(evaluations: list[BudgetEvaluation]) -> None:
    for evaluation in evaluations:
        if evaluation.breaching_count and evaluation.budget.notify_on_breach:
            logger.warning(
                "Budget %s breached by %d file(s) (max %.1f)",
                evaluation.budget.label,
                evaluation.breaching_count,
                evaluation.budget.max_score,
            )
