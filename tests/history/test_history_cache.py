"""Tests for the disk-backed history memo."""

from debt_engine.history.cache import CachedHistoryProvider, history_cache_key
from debt_engine.history.models import CoChangeTable, HistoryFacts


class CountingProvider:
    def __init__(self):
        self.calls = 0

    def collect(self, root, window_days):
        self.calls += 1
        return HistoryFacts(
            window_days=window_days,
            churn={"src/a.py": 3},
            co_changes=CoChangeTable(pairs={("src/a.py", "src/b.py"): 2}),
            commit_count=3,
        )


def committed_repo(git_repo):
    git_repo.write("src/a.py", "a = 1\n")
    git_repo.commit("initial")
    return git_repo


class TestCachedHistoryProvider:
    def test_second_collect_hits_cache(self, git_repo):
        repo = committed_repo(git_repo)
        inner = CountingProvider()
        provider = CachedHistoryProvider(inner=inner)

        first = provider.collect(str(repo.path), 90)
        second = provider.collect(str(repo.path), 90)

        assert inner.calls == 1
        assert second == first
        assert (repo.path / ".debtengine" / "cache").is_dir()

    def test_window_is_part_of_key(self, git_repo):
        repo = committed_repo(git_repo)
        inner = CountingProvider()
        provider = CachedHistoryProvider(inner=inner)

        provider.collect(str(repo.path), 90)
        provider.collect(str(repo.path), 30)
        assert inner.calls == 2

    def test_new_commit_invalidates(self, git_repo):
        repo = committed_repo(git_repo)
        inner = CountingProvider()
        provider = CachedHistoryProvider(inner=inner)

        provider.collect(str(repo.path), 90)
        repo.write("src/b.py", "b = 1\n")
        repo.commit("second")
        provider.collect(str(repo.path), 90)
        assert inner.calls == 2

    def test_disabled_always_collects(self, git_repo):
        repo = committed_repo(git_repo)
        inner = CountingProvider()
        provider = CachedHistoryProvider(inner=inner, enabled=False)

        provider.collect(str(repo.path), 90)
        provider.collect(str(repo.path), 90)
        assert inner.calls == 2
        assert not (repo.path / ".debtengine" / "cache").exists()

    def test_non_repository_is_not_cached(self, workspace):
        inner = CountingProvider()
        provider = CachedHistoryProvider(inner=inner)

        provider.collect(str(workspace), 90)
        provider.collect(str(workspace), 90)
        assert inner.calls == 2

    def test_clear(self, git_repo):
        repo = committed_repo(git_repo)
        inner = CountingProvider()
        provider = CachedHistoryProvider(inner=inner)

        assert provider.clear(str(repo.path)) == 0
        provider.collect(str(repo.path), 90)
        assert provider.clear(str(repo.path)) == 1
        provider.collect(str(repo.path), 90)
        assert inner.calls == 2


class TestCacheKey:
    def test_key_changes_with_day(self, tmp_path):
        monday = history_cache_key(str(tmp_path), "a" * 40, 90, today="2026-06-01")
        tuesday = history_cache_key(str(tmp_path), "a" * 40, 90, today="2026-06-02")
        assert monday != tuesday
        assert monday == history_cache_key(str(tmp_path), "a" * 40, 90, today="2026-06-01")
