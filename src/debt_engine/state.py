"""Thread-safe shared state: the live analysis result and progress fan-out."""

from __future__ import annotations

import queue
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from .exceptions import CacheLockError
from .logging_config import get_logger
from .scoring.heatmap import build_heatmap_tree
from .scoring.models import HIGH_DEBT_THRESHOLD, AnalysisProgress, AnalysisResult, FileScore, HeatmapNode

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheSnapshot:
    workspace: Optional[str]
    result: Optional[AnalysisResult]
    heatmap: Optional[HeatmapNode]


class AnalysisCache:
    """Holds the latest analysis result and heatmap for one open workspace.

    Thread-safe: full scans swap the whole result via :meth:`replace`, single
    file rescores splice one file in via :meth:`patch`, readers take a
    :meth:`snapshot`. Results are never mutated in place, so a snapshot stays
    self-consistent after the lock is released.
    """

    def __init__(self, lock_timeout: float = 5.0) -> None:
        self._lock = threading.Lock()
        self.lock_timeout = lock_timeout
        self._workspace: Optional[str] = None
        self._result: Optional[AnalysisResult] = None
        self._heatmap: Optional[HeatmapNode] = None

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self.lock_timeout):
            logger.warning("Cache lock not acquired within %.1fs", self.lock_timeout)
            raise CacheLockError(self.lock_timeout)
        try:
            yield
        finally:
            self._lock.release()

    def snapshot(self) -> CacheSnapshot:
        with self._locked():
            return CacheSnapshot(self._workspace, self._result, self._heatmap)

    def replace(self, workspace: str, result: AnalysisResult, heatmap: HeatmapNode) -> None:
        """Swap in a complete result. The heatmap is built by the caller, outside the lock."""
        with self._locked():
            self._workspace = workspace
            self._result = result
            self._heatmap = heatmap

    def patch(
        self,
        workspace: str,
        file: FileScore,
        high_debt_threshold: float = HIGH_DEBT_THRESHOLD,
    ) -> AnalysisResult:
        """Upsert one file into the live result and rebuild the heatmap.

        An empty cache, or one bound to another workspace, is replaced by a
        single-file result.
        """
        with self._locked():
            if self._workspace != workspace or self._result is None:
                files = [file]
            else:
                files = list(self._result.files)
                for i, existing in enumerate(files):
                    if existing.path == file.path or existing.relative_path == file.relative_path:
                        files[i] = file
                        break
                else:
                    files.append(file)

            duration = self._result.duration_ms if self._workspace == workspace and self._result else 0
            result = AnalysisResult.from_files(files, duration, high_debt_threshold)
            self._workspace = workspace
            self._result = result
            self._heatmap = build_heatmap_tree(workspace, result.files)
            return result

    def contains(self, workspace: str, path: str) -> bool:
        snapshot = self.snapshot()
        return (
            snapshot.workspace == workspace
            and snapshot.result is not None
            and snapshot.result.find(path) is not None
        )

    def clear(self) -> None:
        with self._locked():
            self._workspace = None
            self._result = None
            self._heatmap = None


class ProgressChannel:
    """Fan progress events out to bounded subscriber queues.

    Publishing never blocks: an event for a full queue is dropped, so a slow
    or absent consumer cannot stall a scan.
    """

    def __init__(self, maxsize: int = 256) -> None:
        self._lock = threading.Lock()
        self._maxsize = maxsize
        self._listeners: list["queue.Queue[AnalysisProgress]"] = []

    def subscribe(self, maxsize: Optional[int] = None) -> "queue.Queue[AnalysisProgress]":
        listener: "queue.Queue[AnalysisProgress]" = queue.Queue(
            maxsize=self._maxsize if maxsize is None else maxsize
        )
        with self._lock:
            self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: "queue.Queue[AnalysisProgress]") -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    def publish(self, event: AnalysisProgress) -> int:
        """Offer ``event`` to every subscriber. Returns how many accepted it."""
        with self._lock:
            listeners = list(self._listeners)
        delivered = 0
        for listener in listeners:
            try:
                listener.put_nowait(event)
                delivered += 1
            except queue.Full:
                logger.debug("Progress queue full, dropping event %d/%d", event.current, event.total)
        return delivered

    __call__ = publish
