"""Extract git history and blame via subprocess."""

import re
import subprocess
from pathlib import Path
from typing import Optional

from ..exceptions import HistoryUnavailableError
from ..logging_config import get_logger
from .models import Commit

logger = get_logger(__name__)


class GitExtractor:
    """Run git commands against one repository and parse their output."""

    def __init__(self, repo_path: str, timeout_seconds: int = 60):
        self.repo_path = str(Path(repo_path).resolve())
        self.timeout_seconds = timeout_seconds

    def ensure_repository(self) -> None:
        """Raise HistoryUnavailableError unless git can read this repository."""
        result = self._run(["rev-parse", "--git-dir"], timeout=5)
        if result is None or result.returncode != 0:
            raise HistoryUnavailableError(self.repo_path, "Not a git repository")

    def head_sha(self) -> Optional[str]:
        """SHA of HEAD, or None for a repository without commits."""
        result = self._run(["rev-parse", "--verify", "-q", "HEAD"], timeout=5)
        if result is None or result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def log(self, since_days: int) -> list[Commit]:
        """Commits newer than ``since_days`` days, newest first."""
        if self.head_sha() is None:
            return []
        result = self._run(
            [
                "log",
                f"--since={since_days}.days",
                "--no-renames",
                "--relative",
                "--format=%H|%at|%ae|%s",
                "--name-only",
            ]
        )
        if result is None:
            raise HistoryUnavailableError(self.repo_path, "git is not available")
        if result.returncode != 0:
            raise HistoryUnavailableError(self.repo_path, result.stderr.strip() or "git log failed")
        return self._parse_log(result.stdout)

    def blame(self, relative_path: str, since_days: int) -> dict[str, int]:
        """Author name -> number of lines last touched inside the window.

        Lines older than the window are attributed by git to a boundary
        commit and are left out. Returns {} when git cannot blame the file.
        """
        result = self._run(
            [
                "blame",
                "--line-porcelain",
                "--root",
                f"--since={since_days}.days",
                "HEAD",
                "--",
                relative_path,
            ]
        )
        if result is None or result.returncode != 0:
            logger.debug("git blame unavailable for %s", relative_path)
            return {}
        return self._parse_blame(result.stdout)

    def _run(self, args: list[str], timeout: Optional[int] = None) -> Optional[subprocess.CompletedProcess]:
        try:
            return subprocess.run(
                ["git", "-c", "core.quotePath=false", "-C", self.repo_path, *args],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout or self.timeout_seconds,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.warning("git %s error: %s", args[0], e)
            return None

    # Matches: hex hash | unix timestamp | author email | subject
    # Subject can contain | characters, so we use maxsplit=3 during parsing
    _HEADER_RE = re.compile(r"^[0-9a-f]{40,64}\|\d+\|[^|]*\|.*$")

    def _parse_log(self, raw: str) -> list[Commit]:
        """Parse git log output into Commit objects.

        Merge commits list no files and consecutive headers are handled by
        detecting header lines via regex rather than blank-line separation.
        """
        commits: list[Commit] = []
        current: Optional[Commit] = None

        for line in raw.split("\n"):
            line = line.strip()
            if not line:
                continue

            if self._HEADER_RE.match(line):
                if current is not None:
                    commits.append(current)
                parts = line.split("|", 3)
                try:
                    timestamp = int(parts[1])
                except ValueError:
                    current = None
                    continue
                current = Commit(hash=parts[0], timestamp=timestamp, author=parts[2], files=[])
            elif current is not None:
                current.files.append(line)

        if current is not None:
            commits.append(current)

        return commits

    @staticmethod
    def _parse_blame(raw: str) -> dict[str, int]:
        authors: dict[str, int] = {}
        author: Optional[str] = None
        boundary = False

        for line in raw.split("\n"):
            if line.startswith("\t"):
                # Content line closes one porcelain record.
                if author is not None and not boundary:
                    authors[author] = authors.get(author, 0) + 1
                author = None
                boundary = False
            elif line.startswith("author "):
                author = line[len("author "):].strip() or "unknown"
            elif line == "boundary":
                boundary = True

        return authors
