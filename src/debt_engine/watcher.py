"""Debounced file watcher that rescores source files as they change."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from watchfiles import Change, watch

from .exceptions import DebtEngineError
from .languages import is_source_file
from .logging_config import get_logger
from .scoring.models import FileScore
from .workspace import SKIP_DIRS

if TYPE_CHECKING:
    from .engine import DebtEngine

logger = get_logger(__name__)

# Debounce: wait this long after the last change before rescoring
DEBOUNCE_MS = 500

_RESCORED_CHANGES = (Change.added, Change.modified)


class FileWatcher:
    """Watches a workspace and rescores each changed source file.

    Uses ``watchfiles`` (Rust-backed) for efficient file monitoring and runs
    in a background thread. Deleted files are logged and otherwise ignored.
    """

    def __init__(
        self,
        root_dir: str | Path,
        engine: "DebtEngine",
        debounce_ms: int = DEBOUNCE_MS,
        on_rescored: Optional[Callable[[FileScore], None]] = None,
    ) -> None:
        self.root_dir = str(Path(root_dir).resolve())
        self.engine = engine
        self.debounce_ms = debounce_ms
        self.on_rescored = on_rescored

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start the watcher thread."""
        self._thread = threading.Thread(
            target=self._watch_loop,
            name="debt-engine-watcher",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal the watcher to stop."""
        logger.debug("Stopping watcher thread...")
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            if self._thread.is_alive():
                logger.warning("Watcher thread did not exit cleanly within 5 seconds")
            else:
                logger.debug("Watcher thread stopped successfully")

    def run(self) -> None:
        """Watch in the calling thread until :meth:`stop` is called."""
        self._watch_loop()

    def handle_changes(self, changes: Iterable[tuple[Change, str]]) -> list[FileScore]:
        """Rescore every added or modified file in one debounced batch.

        A failure on one file, or in ``on_rescored``, is logged and does not
        stop the others.
        """
        changes = list(changes)
        rescored: list[FileScore] = []
        for path in sorted({path for change, path in changes if change in _RESCORED_CHANGES}):
            try:
                score = self.engine.rescore_file(self.root_dir, path)
            except DebtEngineError as e:
                logger.warning("Could not rescore %s: %s", path, e)
                continue
            except Exception:
                logger.exception("Rescore failed for %s", path)
                continue
            rescored.append(score)
            if self.on_rescored is not None:
                try:
                    self.on_rescored(score)
                except Exception:
                    logger.exception("Rescore callback failed for %s", path)

        for change, path in changes:
            if change == Change.deleted:
                logger.info("Deleted: %s (score kept until the next full scan)", path)
        return rescored

    def _watch_loop(self) -> None:
        """Watch files and rescore each debounced batch of changes."""
        logger.info("Watching %s for changes", self.root_dir)

        for changes in watch(
            self.root_dir,
            stop_event=self._stop_event,
            debounce=self.debounce_ms,
            rust_timeout=5000,
            watch_filter=_SourceFilter(self.root_dir),
        ):
            if self._stop_event.is_set():
                break
            logger.debug("Detected %d change(s)", len(changes))
            self.handle_changes(changes)


class _SourceFilter:
    """watchfiles filter: only source files outside hidden and skipped directories."""

    def __init__(self, root_dir: str) -> None:
        self.root = Path(root_dir)

    def __call__(self, change: Change, path: str) -> bool:
        p = Path(path)
        try:
            parts = p.relative_to(self.root).parts
        except ValueError:
            parts = p.parts

        for part in parts:
            if part.startswith(".") or part in SKIP_DIRS:
                return False

        return is_source_file(p.name)
