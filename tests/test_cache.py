"""Tests for the catalog listing cache."""

import threading
import time

import pytest

from k8s_yaml_schemas.cache import CacheEntry, CatalogCache, get_catalog_cache
from k8s_yaml_schemas.exceptions import CatalogListingError

KEY = "tree:acme/schemas@main:"


class BlockingLoader:
    """Loader that blocks until released and counts its calls."""

    def __init__(self, paths=("a.json",), error=None):
        self.paths = list(paths)
        self.error = error
        self.calls = 0
        self.started = threading.Event()
        self.release = threading.Event()

    def __call__(self):
        self.calls += 1
        self.started.set()
        self.release.wait(5)
        if self.error is not None:
            raise self.error
        return self.paths


def run_in_threads(count, target):
    results = [None] * count

    def worker(i):
        try:
            results[i] = target()
        except Exception as e:  # collected for assertions
            results[i] = e

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    return threads, results


def test_cache_entry_expiration():
    entry = CacheEntry(paths=("a",), populated_at=100.0, ttl=10.0)
    assert not entry.is_expired(105.0)
    assert entry.is_expired(111.0)
    assert not CacheEntry(paths=(), populated_at=0.0).is_expired(1e9)


def test_get_or_load_populates_once(cache, monitor):
    calls = []

    def loader():
        calls.append(1)
        return ["a.json", "b.json"]

    assert cache.get(KEY) is None
    assert cache.get_or_load(KEY, loader) == ("a.json", "b.json")
    assert cache.get_or_load(KEY, loader) == ("a.json", "b.json")
    assert cache.get(KEY) == ("a.json", "b.json")
    assert len(calls) == 1
    assert monitor.cache_metrics.hits == 1
    assert monitor.cache_metrics.misses == 1
    assert monitor.cache_metrics.listings == 1


def test_failures_are_not_cached(cache, monitor):
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise CatalogListingError("rate limited")
        return ["a.json"]

    with pytest.raises(CatalogListingError):
        cache.get_or_load(KEY, flaky)
    assert cache.get(KEY) is None
    assert cache.get_or_load(KEY, flaky) == ("a.json",)
    assert len(attempts) == 2
    assert monitor.cache_metrics.listing_failures == 1


def test_concurrent_first_lookups_share_one_listing(cache):
    loader = BlockingLoader(paths=["x.json"])
    threads, results = run_in_threads(8, lambda: cache.get_or_load(KEY, loader))
    assert loader.started.wait(5)
    time.sleep(0.05)
    loader.release.set()
    for thread in threads:
        thread.join(5)

    assert loader.calls == 1
    assert results == [("x.json",)] * 8


def test_concurrent_waiters_receive_the_failure(cache):
    loader = BlockingLoader(error=CatalogListingError("boom"))
    threads, results = run_in_threads(4, lambda: cache.get_or_load(KEY, loader))
    assert loader.started.wait(5)
    time.sleep(0.05)
    loader.release.set()
    for thread in threads:
        thread.join(5)

    assert all(isinstance(result, CatalogListingError) for result in results)
    assert cache.get(KEY) is None


def test_different_keys_load_independently(cache):
    slow = BlockingLoader(paths=["slow.json"])
    threads, results = run_in_threads(1, lambda: cache.get_or_load("slow", slow))
    assert slow.started.wait(5)

    assert cache.get_or_load("fast", lambda: ["fast.json"]) == ("fast.json",)

    slow.release.set()
    threads[0].join(5)
    assert results == [("slow.json",)]


def test_invalidate_during_listing_discards_result(cache):
    loader = BlockingLoader(paths=["old.json"])
    threads, results = run_in_threads(1, lambda: cache.get_or_load(KEY, loader))
    assert loader.started.wait(5)

    cache.invalidate()
    loader.release.set()
    threads[0].join(5)

    assert results == [("old.json",)]
    assert cache.get(KEY) is None
    assert cache.get_or_load(KEY, lambda: ["new.json"]) == ("new.json",)


def test_lookup_after_invalidate_does_not_join_outdated_listing(cache):
    old = BlockingLoader(paths=["old.json"])
    threads, results = run_in_threads(1, lambda: cache.get_or_load(KEY, old))
    assert old.started.wait(5)

    cache.invalidate()
    assert cache.get_or_load(KEY, lambda: ["new.json"]) == ("new.json",)

    old.release.set()
    threads[0].join(5)
    assert results == [("old.json",)]
    assert old.calls == 1
    assert cache.get(KEY) == ("new.json",)


def test_invalidate_clears_everything(cache, monitor):
    cache.get_or_load("a", lambda: ["1.json"])
    cache.get_or_load("b", lambda: ["2.json", "3.json"])
    assert len(cache) == 2
    assert set(cache.keys()) == {"a", "b"}
    assert monitor.cache_metrics.total_entries == 3

    cache.invalidate()
    assert len(cache) == 0
    assert monitor.cache_metrics.invalidations == 1
    assert monitor.cache_metrics.cache_size == 0


def test_ttl_uses_injected_clock():
    now = [1000.0]
    cache = CatalogCache(clock=lambda: now[0], ttl=60, enable_monitoring=False)
    calls = []

    def loader():
        calls.append(1)
        return [f"v{len(calls)}.json"]

    assert cache.get_or_load(KEY, loader) == ("v1.json",)
    now[0] += 30
    assert cache.get_or_load(KEY, loader) == ("v1.json",)
    now[0] += 31
    assert cache.get(KEY) is None
    assert cache.get_or_load(KEY, loader) == ("v2.json",)
    assert len(calls) == 2


def test_cache_stats():
    cache = CatalogCache(enable_monitoring=False)
    cache.get_or_load(KEY, lambda: ["a.json", "b.json"])
    stats = cache.get_cache_stats()
    assert stats == {
        "catalogs": 1,
        "entries": 2,
        "in_flight": 0,
        "ttl": None,
        "monitoring_enabled": False,
    }


def test_global_cache_is_shared():
    assert get_catalog_cache() is get_catalog_cache()


def test_global_cache_created_once_under_concurrency():
    threads, results = run_in_threads(8, get_catalog_cache)
    for thread in threads:
        thread.join(5)
    assert all(result is results[0] for result in results)
