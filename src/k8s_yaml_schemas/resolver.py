"""Priority-ordered schema resolution.

For every source in registry order the resolver:

        1. skips the source unless its ``when`` condition matches ``(group, kind)``;
        2. renders the candidate URL from the source template and kind suffix;
        3. consults the source's catalog listing, if it declares one, and skips
             candidates the catalog does not contain;
        4. probes the candidate; a miss or a probe error moves on;
        5. returns the first candidate that probes successfully.

Sources are tried one after another, never in parallel, and the first hit
wins. A source with a ``fallback_kind_suffix`` gets a second candidate (e.g.
``deployment.json`` after ``deployment-v1.json``) before the loop moves on.

Running out of sources is an ordinary outcome (``no_match``) and is reported
apart from ``probe_failed``, where at least one probe hit a network error and
the answer might have been different with connectivity.

Example::

    from k8s_yaml_schemas.config import default_sources
    from k8s_yaml_schemas.github import GitHubClient
    from k8s_yaml_schemas.models import ResourceIdentity
    from k8s_yaml_schemas.resolver import SchemaResolver

    with GitHubClient() as client:
        resolver = SchemaResolver(default_sources(), client)
        outcome = resolver.resolve(ResourceIdentity.from_api_version("apps/v1", "Deployment"))
        print(outcome.status, outcome.result)
"""

from __future__ import annotations

import logging
import threading
from typing import Iterator, List, Optional, Protocol, Sequence

from .catalog import CatalogIndex
from .exceptions import CatalogListingError
from .models import (
    AttemptStatus,
    KindSuffix,
    ProbeOutcome,
    ProbeStatus,
    ResolutionAttempt,
    ResolutionOutcome,
    ResolutionResult,
    ResolutionStatus,
    ResourceIdentity,
    SchemaSource,
)
from .monitoring import PerformanceMonitor, get_monitor
from .template import build_template_vars, render_template

logger = logging.getLogger(__name__)


class Prober(Protocol):
    def probe(self, url: str) -> ProbeOutcome: ...


class SchemaResolver:
    """Resolve a :class:`ResourceIdentity` against an ordered source registry."""

    def __init__(
        self,
        sources: Sequence[SchemaSource],
        prober: Prober,
        catalogs: Optional[CatalogIndex] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ) -> None:
        """Create a resolver.

        Args:
            sources: Registry in priority order; copied, never mutated.
            prober: Object performing existence checks (usually
                :class:`~k8s_yaml_schemas.github.GitHubClient`).
            catalogs: Catalog index for sources that declare a catalog; without
                it catalog declarations are ignored and every candidate is probed.
            monitor: Metrics sink; defaults to the process-wide monitor.
        """
        self.sources = tuple(sources)
        self.prober = prober
        self.catalogs = catalogs
        self.monitor = monitor or get_monitor()

    def resolve(
        self, identity: ResourceIdentity, cancel: Optional[threading.Event] = None
    ) -> ResolutionOutcome:
        """Return the first schema URL that exists for ``identity``.

        Args:
            identity: Resource to resolve.
            cancel: Optional event; when set, the loop stops before the next
                source. In-flight probes are not interrupted.

        Returns:
            ResolutionOutcome: Never raises for probe or catalog failures.
        """
        attempts: List[ResolutionAttempt] = []
        if not identity.is_valid():
            logger.warning(f"Cannot resolve incomplete identity {identity}")
            return self._finish(identity, ResolutionStatus.NO_MATCH, None, attempts)

        errored = False
        for source in self.sources:
            if cancel is not None and cancel.is_set():
                logger.info(f"Resolution of {identity.kind} cancelled")
                return self._finish(identity, ResolutionStatus.CANCELLED, None, attempts)

            if not source.matches(identity.group, identity.kind):
                logger.debug(
                    f"Source '{source.name}' does not apply to {identity.api_version}"
                )
                continue

            for url in self._candidates(source, identity):
                attempt = self._try_candidate(source, url)
                attempts.append(attempt)
                if attempt.status is AttemptStatus.FOUND:
                    result = ResolutionResult(url=url, source_name=source.name)
                    logger.info(
                        f"Resolved {identity.kind} ({identity.api_version}) "
                        f"via {source.name}: {url}"
                    )
                    return self._finish(
                        identity, ResolutionStatus.RESOLVED, result, attempts
                    )
                if attempt.status is AttemptStatus.ERROR:
                    errored = True

        status = ResolutionStatus.PROBE_FAILED if errored else ResolutionStatus.NO_MATCH
        logger.info(
            f"No schema resolved for {identity.kind} ({identity.api_version}): "
            f"{status.value}"
        )
        return self._finish(identity, status, None, attempts)

    def resolve_api_version(self, api_version: str, kind: str) -> ResolutionOutcome:
        """Shortcut for :meth:`resolve` with raw ``apiVersion``/``kind`` strings."""
        return self.resolve(ResourceIdentity.from_api_version(api_version, kind))

    def _candidates(self, source: SchemaSource, identity: ResourceIdentity) -> Iterator[str]:
        # Lazy so the fallback URL is only rendered after the primary misses.
        suffixes: List[KindSuffix] = [source.kind_suffix]
        if source.fallback_kind_suffix is not None:
            suffixes.append(source.fallback_kind_suffix)
        rendered = set()
        for suffix in suffixes:
            url = render_template(source.url_template, build_template_vars(identity, suffix))
            if not url or url in rendered:
                continue
            rendered.add(url)
            yield url

    def _try_candidate(self, source: SchemaSource, url: str) -> ResolutionAttempt:
        if source.catalog is not None and self.catalogs is not None:
            try:
                present = self.catalogs.contains(source.catalog, url)
            except CatalogListingError as e:
                logger.warning(
                    f"Catalog for '{source.name}' unavailable, probing directly: {e}"
                )
                present = None
            if present is False:
                logger.debug(f"'{source.name}' catalog has no entry for {url}")
                return ResolutionAttempt(source.name, url, AttemptStatus.NOT_IN_CATALOG)

        outcome = self.prober.probe(url)
        self.monitor.record_probe(outcome.status.value, outcome.elapsed)
        if outcome.status is ProbeStatus.FOUND:
            return ResolutionAttempt(source.name, url, AttemptStatus.FOUND, "HTTP 200")
        if outcome.status is ProbeStatus.ERROR:
            logger.warning(f"Probe error for '{source.name}' at {url}: {outcome.error}")
            return ResolutionAttempt(source.name, url, AttemptStatus.ERROR, outcome.error)
        logger.debug(f"'{source.name}' has no schema at {url} (HTTP {outcome.status_code})")
        return ResolutionAttempt(
            source.name, url, AttemptStatus.NOT_FOUND, f"HTTP {outcome.status_code}"
        )

    def _finish(
        self,
        identity: ResourceIdentity,
        status: ResolutionStatus,
        result: Optional[ResolutionResult],
        attempts: List[ResolutionAttempt],
    ) -> ResolutionOutcome:
        self.monitor.record_resolution(status.value, result.source_name if result else None)
        return ResolutionOutcome(identity=identity, status=status, result=result, attempts=attempts)
