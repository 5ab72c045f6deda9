"""In-process telemetry for schema resolution.

Components record lightweight events here instead of aggregating metrics
themselves; no external backend is required.

Collected domains:
        * Catalog cache performance (hit/miss ratio, remote listings, entries)
        * Probe outcomes (found / not found / error) and latency
        * Resolution outcomes (resolved / no match / probe failed)
        * HTTP endpoint latency and error rates for the API surface

Design principles:
        1. Thread safety via a shared re-entrant lock (`RLock`); resolutions for
             different documents may run concurrently.
        2. Cheap updates: derived figures (rates, averages) are computed on read.
        3. Summaries are primitive-only dictionaries ready for JSON encoding.

Example::

        from k8s_yaml_schemas.monitoring import get_monitor
        monitor = get_monitor()
        monitor.record_probe("found", response_time=0.12)
        print(monitor.get_performance_summary()["probes"]["found"])  # -> 1
"""

from __future__ import annotations

import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class CacheMetrics:
    """Catalog cache counters.

    Attributes:
        hits: Lookups answered from memory.
        misses: Lookups that triggered (or waited for) a remote listing.
        listings: Remote listing calls actually issued.
        listing_failures: Remote listings that failed (never cached).
        invalidations: Full cache invalidations.
        cache_size: Current number of cached catalogs.
        total_entries: Paths held across all cached catalogs.
    """

    hits: int = 0
    misses: int = 0
    listings: int = 0
    listing_failures: int = 0
    invalidations: int = 0
    cache_size: int = 0
    total_entries: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        total = self.total_requests
        return self.hits / total if total else 0.0


@dataclass
class ProbeMetrics:
    """Existence probe counters and latency."""

    found: int = 0
    not_found: int = 0
    errors: int = 0
    total_response_time: float = 0.0

    @property
    def total(self) -> int:
        return self.found + self.not_found + self.errors

    @property
    def average_response_time(self) -> float:
        return self.total_response_time / self.total if self.total else 0.0


@dataclass
class EndpointMetrics:
    """Aggregated metrics for a single API endpoint."""

    total_requests: int = 0
    total_response_time: float = 0.0
    error_count: int = 0
    last_accessed: Optional[datetime] = None
    response_times: deque = field(default_factory=lambda: deque(maxlen=100))

    @property
    def average_response_time(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.total_response_time / self.total_requests

    @property
    def error_rate(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.error_count / self.total_requests


class PerformanceMonitor:
    """Central coordinator for recording and querying metrics.

    Intended to be shared as a singleton within a process (see
    :func:`get_monitor`); tests may create private instances.
    """

    def __init__(self, enable_detailed_tracking: bool = True):
        """Initialize the monitor.

        Args:
            enable_detailed_tracking: If False, skips the per-endpoint latency
                deque to minimize overhead.
        """
        self.enable_detailed_tracking = enable_detailed_tracking
        self.start_time = datetime.now()
        self._lock = threading.RLock()

        self.cache_metrics = CacheMetrics()
        self.probe_metrics = ProbeMetrics()
        self.resolution_counts: Dict[str, int] = defaultdict(int)
        self.source_hits: Dict[str, int] = defaultdict(int)
        self.endpoint_metrics: Dict[str, EndpointMetrics] = defaultdict(EndpointMetrics)
        self.recent_errors: deque = deque(maxlen=100)

    # ---------------- Catalog cache -----------------
    def record_cache_hit(self) -> None:
        with self._lock:
            self.cache_metrics.hits += 1

    def record_cache_miss(self) -> None:
        with self._lock:
            self.cache_metrics.misses += 1

    def record_catalog_listing(self, success: bool) -> None:
        """Record one remote listing call and whether it succeeded."""
        with self._lock:
            self.cache_metrics.listings += 1
            if not success:
                self.cache_metrics.listing_failures += 1

    def record_cache_invalidation(self) -> None:
        with self._lock:
            self.cache_metrics.invalidations += 1

    def update_cache_size(self, cache_size: int, total_entries: int = 0) -> None:
        """Set current cache size and total number of cached paths."""
        with self._lock:
            self.cache_metrics.cache_size = cache_size
            self.cache_metrics.total_entries = total_entries

    # ---------------- Probes / resolutions -----------------
    def record_probe(self, status: str, response_time: float = 0.0) -> None:
        """Record a probe outcome.

        Args:
            status: ``found``, ``not_found`` or ``error``.
            response_time: Seconds spent on the request.
        """
        with self._lock:
            if status == "found":
                self.probe_metrics.found += 1
            elif status == "not_found":
                self.probe_metrics.not_found += 1
            else:
                self.probe_metrics.errors += 1
            self.probe_metrics.total_response_time += response_time

    def record_resolution(self, status: str, source_name: Optional[str] = None) -> None:
        """Record the final status of one ``resolve()`` call."""
        with self._lock:
            self.resolution_counts[status] += 1
            if source_name:
                self.source_hits[source_name] += 1

    # ---------------- API surface -----------------
    def record_endpoint_request(
        self, endpoint: str, response_time: float, status_code: int = 200
    ) -> None:
        """Record an API endpoint invocation.

        Args:
            endpoint: Logical endpoint name or path.
            response_time: Time in seconds for handling the request.
            status_code: HTTP status (>=400 counts as error).
        """
        with self._lock:
            metrics = self.endpoint_metrics[endpoint]
            metrics.total_requests += 1
            metrics.total_response_time += response_time
            metrics.last_accessed = datetime.now()
            if self.enable_detailed_tracking:
                metrics.response_times.append(response_time)
            if status_code >= 400:
                metrics.error_count += 1
                self.recent_errors.append(
                    {
                        "endpoint": endpoint,
                        "status_code": status_code,
                        "timestamp": datetime.now().isoformat(),
                    }
                )

    # ---------------- Summaries -----------------
    def get_performance_summary(self) -> Dict[str, Any]:
        """Return a consolidated snapshot of every metrics domain."""
        with self._lock:
            top_endpoints = sorted(
                self.endpoint_metrics.items(),
                key=lambda x: x[1].total_requests,
                reverse=True,
            )[:10]
            return {
                "timestamp": datetime.now().isoformat(),
                "uptime_seconds": round(
                    (datetime.now() - self.start_time).total_seconds(), 2
                ),
                "cache": {
                    "hit_rate": round(self.cache_metrics.hit_rate * 100, 2),
                    "hits": self.cache_metrics.hits,
                    "misses": self.cache_metrics.misses,
                    "listings": self.cache_metrics.listings,
                    "listing_failures": self.cache_metrics.listing_failures,
                    "invalidations": self.cache_metrics.invalidations,
                    "cache_size": self.cache_metrics.cache_size,
                },
                "probes": {
                    "total": self.probe_metrics.total,
                    "found": self.probe_metrics.found,
                    "not_found": self.probe_metrics.not_found,
                    "errors": self.probe_metrics.errors,
                    "average_response_time_ms": round(
                        self.probe_metrics.average_response_time * 1000, 2
                    ),
                },
                "resolutions": dict(self.resolution_counts),
                "sources": dict(self.source_hits),
                "api": {
                    "top_endpoints": [
                        {
                            "endpoint": endpoint,
                            "requests": metrics.total_requests,
                            "avg_response_time_ms": round(
                                metrics.average_response_time * 1000, 2
                            ),
                            "error_rate": round(metrics.error_rate * 100, 2),
                        }
                        for endpoint, metrics in top_endpoints
                    ],
                    "total_recent_errors": len(self.recent_errors),
                },
            }

    def get_cache_analytics(self) -> Dict[str, Any]:
        """Return catalog cache analytics and tuning hints."""
        with self._lock:
            return {
                "performance": {
                    "hit_rate_percent": round(self.cache_metrics.hit_rate * 100, 2),
                    "miss_rate_percent": round(
                        (1 - self.cache_metrics.hit_rate) * 100, 2
                    )
                    if self.cache_metrics.total_requests
                    else 0.0,
                },
                "usage": {
                    "total_requests": self.cache_metrics.total_requests,
                    "cache_hits": self.cache_metrics.hits,
                    "cache_misses": self.cache_metrics.misses,
                    "remote_listings": self.cache_metrics.listings,
                    "listing_failures": self.cache_metrics.listing_failures,
                    "invalidations": self.cache_metrics.invalidations,
                },
                "size": {
                    "catalogs": self.cache_metrics.cache_size,
                    "entries": self.cache_metrics.total_entries,
                },
                "recommendations": self._get_cache_recommendations(),
            }

    def _get_cache_recommendations(self) -> List[str]:
        recommendations = []
        if self.cache_metrics.listing_failures:
            recommendations.append(
                "Catalog listings are failing. Set GITHUB_TOKEN if the API rate limit is exhausted."
            )
        if self.probe_metrics.errors > self.probe_metrics.found:
            recommendations.append(
                "More probes errored than succeeded. Check network access or raise the probe timeout."
            )
        if not recommendations:
            recommendations.append("No issues detected.")
        return recommendations

    def reset_metrics(self) -> None:
        """Reset all counters (tests or manual re-baselining)."""
        with self._lock:
            self.cache_metrics = CacheMetrics()
            self.probe_metrics = ProbeMetrics()
            self.resolution_counts.clear()
            self.source_hits.clear()
            self.endpoint_metrics.clear()
            self.recent_errors.clear()
            self.start_time = datetime.now()


_monitor: Optional[PerformanceMonitor] = None


def get_monitor() -> PerformanceMonitor:
    """Return (and lazily initialize) the process-wide monitor singleton."""
    global _monitor
    if _monitor is None:
        _monitor = PerformanceMonitor()
    return _monitor


def initialize_monitor(enable_detailed_tracking: bool = True) -> PerformanceMonitor:
    """Force (re-)initialization of the global monitor."""
    global _monitor
    _monitor = PerformanceMonitor(enable_detailed_tracking)
    return _monitor
