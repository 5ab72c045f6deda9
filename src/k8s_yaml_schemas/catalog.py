"""Catalog listings backed by the :class:`~k8s_yaml_schemas.cache.CatalogCache`.

A catalog is a remote repository of schema files. Its listing is fetched
once per process (or until the cache is invalidated), filtered to schema file
extensions, and then used to answer "does this candidate exist?" without a
network round trip.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from .cache import CatalogCache, get_catalog_cache
from .github import GitHubClient
from .models import CatalogRef

logger = logging.getLogger(__name__)

SCHEMA_EXTENSIONS = (".json", ".yaml", ".yml")


class CatalogIndex:
    """Cached, extension-filtered catalog listings."""

    def __init__(self, client: GitHubClient, cache: Optional[CatalogCache] = None):
        self.client = client
        self.cache = cache or get_catalog_cache()

    def list_catalog_entries(self, catalog: CatalogRef) -> Tuple[str, ...]:
        """Return schema paths of ``catalog``, listing remotely on first use.

        Raises:
            CatalogListingError: The remote listing failed (not cached).
        """
        return self.cache.get_or_load(catalog.cache_key, lambda: self._fetch(catalog))

    def contains(self, catalog: CatalogRef, url: str) -> Optional[bool]:
        """Check a candidate URL against the catalog listing.

        Returns:
            True/False when the URL maps into the catalog; None when it lies
            outside the catalog's base URL (membership cannot be decided).

        Raises:
            CatalogListingError: The remote listing failed.
        """
        path = catalog.relative_path(url)
        if path is None:
            return None
        return path in self.list_catalog_entries(catalog)

    def _fetch(self, catalog: CatalogRef) -> Tuple[str, ...]:
        logger.info(f"Listing catalog {catalog.repository}@{catalog.ref} ({catalog.type.value})")
        paths = self.client.list_catalog(catalog)
        filtered = tuple(p for p in paths if p.lower().endswith(SCHEMA_EXTENSIONS))
        logger.debug(f"Catalog {catalog.cache_key}: {len(filtered)} of {len(paths)} paths kept")
        return filtered
