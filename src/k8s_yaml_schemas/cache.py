"""Catalog cache for remote schema listings.

Provides:
    * A process-lifetime, in-memory map from catalog identity to the tuple of
      schema paths found in that catalog.
    * At most one in-flight remote listing per key: concurrent first lookups
      for the same catalog wait for a single loader call and share its result.
    * Whole-cache invalidation (the reload command); there is no per-key
      invalidation.

Failures are never cached: if the loader raises, every caller waiting on that
attempt receives the exception and the next lookup calls the loader again.

Quick example::

    from k8s_yaml_schemas.cache import CatalogCache
    cache = CatalogCache()
    paths = cache.get_or_load("tree:owner/repo@main:", lambda: ["a.json"])
    assert paths == ("a.json",)
    cache.invalidate()
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Optional, Tuple

from .monitoring import PerformanceMonitor, get_monitor

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    """A populated catalog listing."""

    paths: Tuple[str, ...]
    populated_at: float
    ttl: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        """Entries without a TTL live for the process lifetime."""
        if self.ttl is None:
            return False
        return now - self.populated_at > self.ttl


@dataclass
class _InFlight:
    done: threading.Event = field(default_factory=threading.Event)
    paths: Optional[Tuple[str, ...]] = None
    error: Optional[BaseException] = None


class CatalogCache:
    """Memoized catalog listings with singleflight population.

    Notes:
        * Reads of populated entries only take the lock briefly; loaders run
          outside the lock so different catalogs populate in parallel.
        * An :meth:`invalidate` that happens while a listing is in flight
          prevents that (now outdated) result from being stored, and later
          lookups start a fresh listing instead of joining it.
    """

    def __init__(
        self,
        clock: Clock = time.monotonic,
        ttl: Optional[float] = None,
        monitor: Optional[PerformanceMonitor] = None,
        enable_monitoring: bool = True,
    ) -> None:
        """Create an empty cache.

        Args:
            clock: Time source, injectable for tests.
            ttl: Optional entry lifetime in seconds; None keeps entries until
                :meth:`invalidate`.
            monitor: Metrics sink; defaults to the process-wide monitor.
            enable_monitoring: Disable metrics recording entirely.
        """
        self._clock = clock
        self.ttl = ttl
        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, _InFlight] = {}
        self._generation = 0
        self._lock = threading.Lock()
        self._monitor = None
        if enable_monitoring:
            self._monitor = monitor or get_monitor()

    def get(self, key: str) -> Optional[Tuple[str, ...]]:
        """Return cached paths for ``key`` without loading; None if absent."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.paths

    def get_or_load(
        self, key: str, loader: Callable[[], Iterable[str]]
    ) -> Tuple[str, ...]:
        """Return cached paths for ``key``, calling ``loader`` at most once concurrently.

        Args:
            key: Catalog identity (see :attr:`CatalogRef.cache_key`).
            loader: Performs the remote listing; its exception propagates and
                nothing is cached.

        Returns:
            Tuple of paths shared by every caller of the same population.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(self._clock()):
                del self._entries[key]
                entry = None
            if entry is not None:
                self._record_hit()
                return entry.paths

            self._record_miss()
            flight = self._inflight.get(key)
            leader = flight is None
            if leader:
                flight = _InFlight()
                self._inflight[key] = flight
            generation = self._generation

        if not leader:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.paths

        try:
            paths = tuple(loader())
        except BaseException as e:
            flight.error = e
            if self._monitor:
                self._monitor.record_catalog_listing(success=False)
            logger.debug(f"Catalog listing for {key} failed: {e}")
            raise
        else:
            flight.paths = paths
            if self._monitor:
                self._monitor.record_catalog_listing(success=True)
            with self._lock:
                if generation == self._generation:
                    self._entries[key] = CacheEntry(paths, self._clock(), self.ttl)
                else:
                    logger.debug(f"Cache invalidated during listing of {key}; not stored")
                self._update_size()
            return paths
        finally:
            with self._lock:
                if self._inflight.get(key) is flight:
                    del self._inflight[key]
            flight.done.set()

    def invalidate(self) -> None:
        """Drop every cached catalog; the next lookup lists remotely again."""
        with self._lock:
            self._entries.clear()
            # running listings still answer their own waiters; new lookups start over
            self._inflight.clear()
            self._generation += 1
            self._update_size()
        if self._monitor:
            self._monitor.record_cache_invalidation()
        logger.info("Catalog cache invalidated")

    def keys(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_cache_stats(self) -> Dict[str, object]:
        """Get current cache statistics."""
        with self._lock:
            return {
                "catalogs": len(self._entries),
                "entries": sum(len(e.paths) for e in self._entries.values()),
                "in_flight": len(self._inflight),
                "ttl": self.ttl,
                "monitoring_enabled": self._monitor is not None,
            }

    def _record_hit(self) -> None:
        if self._monitor:
            self._monitor.record_cache_hit()

    def _record_miss(self) -> None:
        if self._monitor:
            self._monitor.record_cache_miss()

    def _update_size(self) -> None:
        # caller holds self._lock
        if self._monitor:
            self._monitor.update_cache_size(
                len(self._entries), sum(len(e.paths) for e in self._entries.values())
            )


_catalog_cache: Optional[CatalogCache] = None
_catalog_cache_lock = threading.Lock()


def get_catalog_cache() -> CatalogCache:
    """Return the process-wide catalog cache, creating it on first use."""
    global _catalog_cache
    with _catalog_cache_lock:
        if _catalog_cache is None:
            _catalog_cache = CatalogCache()
        return _catalog_cache
