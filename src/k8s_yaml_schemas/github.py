"""HTTP access to repository-hosted schema catalogs.

Two kinds of requests are made:

* **Listings** against the GitHub REST API: a recursive git tree listing
  (``/repos/{repo}/git/trees/{ref}?recursive=1``) or a single directory
  listing (``/repos/{repo}/contents/{path}?ref={ref}``).
* **Probes** against raw-content URLs: a status 200 means the schema exists,
  any other status is a clean "not found", and timeouts or transport errors
  are reported separately as errors.

Example::

    from k8s_yaml_schemas.github import GitHubClient
    with GitHubClient(timeout=5.0) as client:
        outcome = client.probe("https://raw.githubusercontent.com/o/r/main/x.json")
        print(outcome.status)
"""

from __future__ import annotations

import logging
import time
from typing import Dict, List, Mapping, Optional

import httpx

from .config import DEFAULT_GITHUB_HEADERS, DEFAULT_PROBE_TIMEOUT
from .exceptions import CatalogListingError
from .models import CatalogRef, CatalogType, ProbeOutcome, ProbeStatus

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class GitHubClient:
    """Thin synchronous client for catalog listings and existence probes."""

    def __init__(
        self,
        headers: Optional[Mapping[str, str]] = None,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        token: Optional[str] = None,
        probe_method: str = "GET",
        api_url: str = GITHUB_API_URL,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """Create a client.

        Args:
            headers: Headers sent with every request (API-version headers).
            timeout: Per-request timeout in seconds.
            token: Optional token sent as ``Authorization`` to the API host only.
            probe_method: ``GET`` (body is streamed and discarded) or ``HEAD``.
            api_url: REST API base URL.
            transport: Optional httpx transport (``httpx.MockTransport`` in tests).
        """
        self.headers: Dict[str, str] = dict(headers or DEFAULT_GITHUB_HEADERS)
        self.timeout = timeout
        self.token = token
        self.probe_method = probe_method.upper()
        self.api_url = api_url.rstrip("/")
        self.client = httpx.Client(
            headers=self.headers,
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    # ---------------- Probes -----------------
    def probe(self, url: str) -> ProbeOutcome:
        """Check whether ``url`` exists.

        Returns:
            ProbeOutcome: ``found`` for HTTP 200, ``not_found`` for any other
            status, ``error`` for timeouts, transport failures and any other
            request failure. Never raises.
        """
        start = time.perf_counter()
        try:
            if self.probe_method == "HEAD":
                status_code = self.client.head(url).status_code
            else:
                with self.client.stream("GET", url) as response:
                    status_code = response.status_code
        except httpx.TimeoutException as e:
            elapsed = time.perf_counter() - start
            return ProbeOutcome(
                url,
                ProbeStatus.ERROR,
                error=f"timeout after {self.timeout}s: {e}",
                elapsed=elapsed,
            )
        except Exception as e:
            # httpx errors, or a client closed under us
            elapsed = time.perf_counter() - start
            return ProbeOutcome(
                url, ProbeStatus.ERROR, error=str(e) or type(e).__name__, elapsed=elapsed
            )

        elapsed = time.perf_counter() - start
        status = ProbeStatus.FOUND if status_code == 200 else ProbeStatus.NOT_FOUND
        return ProbeOutcome(url, status, status_code=status_code, elapsed=elapsed)

    # ---------------- Listings -----------------
    def list_catalog(self, catalog: CatalogRef) -> List[str]:
        """List every file path of ``catalog`` using its configured strategy."""
        if catalog.type is CatalogType.CONTENTS:
            return self.list_contents(catalog.repository, catalog.path, catalog.ref)
        return self.list_tree(catalog.repository, catalog.ref)

    def list_tree(self, repository: str, ref: str = "main") -> List[str]:
        """Recursive file listing of ``repository`` at ``ref``.

        Raises:
            CatalogListingError: Request failed or the payload was unexpected.
        """
        payload = self._get_json(
            f"{self.api_url}/repos/{repository}/git/trees/{ref}",
            params={"recursive": "1"},
        )
        if not isinstance(payload, dict) or not isinstance(payload.get("tree"), list):
            raise CatalogListingError(f"Unexpected tree payload for {repository}@{ref}")
        if payload.get("truncated"):
            logger.warning(f"Tree listing for {repository}@{ref} was truncated by the API")
        return [
            item["path"]
            for item in payload["tree"]
            if isinstance(item, dict) and item.get("type") == "blob" and item.get("path")
        ]

    def list_contents(self, repository: str, path: str = "", ref: str = "main") -> List[str]:
        """File listing of one directory of ``repository``.

        Raises:
            CatalogListingError: Request failed or the payload was unexpected.
        """
        path = path.strip("/")
        payload = self._get_json(
            f"{self.api_url}/repos/{repository}/contents/{path}",
            params={"ref": ref},
        )
        if not isinstance(payload, list):
            raise CatalogListingError(
                f"Unexpected contents payload for {repository}/{path}@{ref}"
            )
        return [
            item["path"]
            for item in payload
            if isinstance(item, dict) and item.get("type") == "file" and item.get("path")
        ]

    def _get_json(self, url: str, params: Optional[Dict[str, str]] = None):
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = self.client.get(url, params=params, headers=headers)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise CatalogListingError(f"Listing {url} timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise CatalogListingError(
                f"Listing {url} failed with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise CatalogListingError(f"Listing {url} failed: {e}") from e
        except ValueError as e:
            raise CatalogListingError(f"Listing {url} returned invalid JSON") from e
