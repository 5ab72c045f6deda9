from pathlib import Path

import httpx
import pytest

from k8s_yaml_schemas.cache import CatalogCache
from k8s_yaml_schemas.config import CONFIG_ENV_VAR, TIMEOUT_ENV_VAR, TOKEN_ENV_VAR
from k8s_yaml_schemas.models import ProbeOutcome, ProbeStatus
from k8s_yaml_schemas.monitoring import PerformanceMonitor

FIXTURES = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep the developer's config, token and timeout out of every test."""
    for name in (CONFIG_ENV_VAR, TIMEOUT_ENV_VAR, TOKEN_ENV_VAR):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


@pytest.fixture
def monitor():
    return PerformanceMonitor()


@pytest.fixture
def cache(monitor):
    return CatalogCache(monitor=monitor)


class FakeProber:
    """Prober answering from a URL -> status map and recording every call."""

    def __init__(self, responses=None, default=ProbeStatus.NOT_FOUND):
        self.responses = dict(responses or {})
        self.default = default
        self.calls = []

    def probe(self, url):
        self.calls.append(url)
        status = self.responses.get(url, self.default)
        if status is ProbeStatus.FOUND:
            return ProbeOutcome(url, status, status_code=200)
        if status is ProbeStatus.NOT_FOUND:
            return ProbeOutcome(url, status, status_code=404)
        return ProbeOutcome(url, status, error="connection refused")


def schema_host(existing, requests=None, listings=None):
    """Mock transport serving 200 for ``existing`` URLs and JSON for ``listings``.

    Args:
        existing: URLs that exist.
        requests: Optional list collecting every request seen.
        listings: Mapping of API URL path to JSON payload.
    """
    existing = set(existing)
    listings = listings or {}

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        if request.url.host == "api.github.com":
            payload = listings.get(request.url.path)
            if payload is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json=payload)
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        if url in existing:
            return httpx.Response(200, json={"type": "object"})
        return httpx.Response(404, text="404: Not Found")

    return httpx.MockTransport(handler)
