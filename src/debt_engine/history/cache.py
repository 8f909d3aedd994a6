"""
Disk-backed memoization of history facts.

Uses diskcache for SQLite-based persistent caching under
``<workspace>/.debtengine/cache``. Facts are keyed by workspace, HEAD commit,
window length and UTC date, so a new commit or a new day invalidates them.
"""

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from diskcache import Cache

from ..config import STATE_DIR_NAME
from ..logging_config import get_logger
from .facts import GitHistoryProvider, HistoryProvider
from .git_extractor import GitExtractor
from .models import HistoryFacts

logger = get_logger(__name__)

CACHE_DIR_NAME = "cache"


class CachedHistoryProvider:
    """
    History provider that memoizes another provider's facts on disk.

    Features:
    - Cache key from repository state (HEAD sha) and window
    - TTL-based expiration
    - Falls through to the wrapped provider when caching fails
    """

    def __init__(
        self,
        inner: Optional[HistoryProvider] = None,
        ttl_hours: int = 24,
        enabled: bool = True,
    ):
        """
        Args:
            inner: Provider used on a cache miss (git by default)
            ttl_hours: Time-to-live in hours
            enabled: Whether caching is enabled
        """
        self.inner = inner or GitHistoryProvider()
        self.ttl_seconds = ttl_hours * 3600
        self.enabled = enabled

    def collect(self, root: str, window_days: int) -> HistoryFacts:
        if not self.enabled:
            return self.inner.collect(root, window_days)

        head = GitExtractor(root).head_sha()
        if head is None:
            # Not a repository or no commits: nothing stable to key on.
            return self.inner.collect(root, window_days)

        key = history_cache_key(root, head, window_days)
        cache_dir = Path(root) / STATE_DIR_NAME / CACHE_DIR_NAME

        try:
            with Cache(str(cache_dir)) as cache:
                cached = cache.get(key)
                if cached is not None:
                    logger.debug("History cache hit: %s...", key[:16])
                    return HistoryFacts.from_dict(cached)

                facts = self.inner.collect(root, window_days)
                cache.set(key, facts.to_dict(), expire=self.ttl_seconds)
                logger.debug("History cache set: %s...", key[:16])
                return facts
        except (OSError, KeyError, TypeError, ValueError) as e:
            logger.warning("History cache unavailable (%s); reading git directly", e)
            return self.inner.collect(root, window_days)

    def clear(self, root: str) -> int:
        """Drop every memoized entry for a workspace. Returns the count removed."""
        cache_dir = Path(root) / STATE_DIR_NAME / CACHE_DIR_NAME
        if not cache_dir.exists():
            return 0
        with Cache(str(cache_dir)) as cache:
            removed = cache.clear()
        logger.info("History cache cleared (%d entries)", removed)
        return removed


def history_cache_key(root: str, head: str, window_days: int, today: Optional[str] = None) -> str:
    """Stable key for (root, HEAD, window, UTC date)."""
    day = today or datetime.now(timezone.utc).date().isoformat()
    key_data = f"{Path(root).resolve()}:{head}:{window_days}:{day}"
    return hashlib.sha256(key_data.encode()).hexdigest()
