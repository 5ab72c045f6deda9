from k8s_yaml_schemas.monitoring import (
    PerformanceMonitor,
    get_monitor,
    initialize_monitor,
)


def test_probe_and_resolution_counters():
    monitor = PerformanceMonitor()
    monitor.record_probe("found", 0.2)
    monitor.record_probe("not_found", 0.1)
    monitor.record_probe("error", 0.3)
    monitor.record_resolution("resolved", "Kubernetes core")
    monitor.record_resolution("no_match")

    summary = monitor.get_performance_summary()
    assert summary["probes"]["total"] == 3
    assert summary["probes"]["errors"] == 1
    assert summary["probes"]["average_response_time_ms"] == 200.0
    assert summary["resolutions"] == {"resolved": 1, "no_match": 1}
    assert summary["sources"] == {"Kubernetes core": 1}


def test_cache_hit_rate_and_recommendations():
    monitor = PerformanceMonitor()
    monitor.record_cache_miss()
    monitor.record_cache_hit()
    monitor.record_cache_hit()
    monitor.record_cache_hit()
    monitor.record_catalog_listing(success=False)

    analytics = monitor.get_cache_analytics()
    assert analytics["performance"]["hit_rate_percent"] == 75.0
    assert analytics["usage"]["listing_failures"] == 1
    assert any("GITHUB_TOKEN" in r for r in analytics["recommendations"])


def test_no_issues_recommendation():
    analytics = PerformanceMonitor().get_cache_analytics()
    assert analytics["recommendations"] == ["No issues detected."]
    assert analytics["performance"]["miss_rate_percent"] == 0.0


def test_endpoint_errors_tracked():
    monitor = PerformanceMonitor()
    monitor.record_endpoint_request("GET /resolve", 0.01, 200)
    monitor.record_endpoint_request("GET /resolve", 0.03, 422)

    endpoint = monitor.get_performance_summary()["api"]["top_endpoints"][0]
    assert endpoint["requests"] == 2
    assert endpoint["error_rate"] == 50.0
    assert endpoint["avg_response_time_ms"] == 20.0


def test_reset_metrics():
    monitor = PerformanceMonitor()
    monitor.record_cache_hit()
    monitor.record_probe("found")
    monitor.reset_metrics()
    summary = monitor.get_performance_summary()
    assert summary["cache"]["hits"] == 0
    assert summary["probes"]["total"] == 0


def test_global_monitor_lifecycle():
    fresh = initialize_monitor(enable_detailed_tracking=False)
    assert get_monitor() is fresh
    assert not fresh.enable_detailed_tracking
