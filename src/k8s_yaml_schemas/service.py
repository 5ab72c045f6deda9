"""Integration layer: documents in, schema attachments out.

:class:`SchemaAttachmentService` wires the pieces together the way an editor
integration uses them:

        document text -> identities -> resolver -> schema sink

It owns the lifecycle of the effective configuration, the HTTP client and the
resolver, and implements the reload command (catalog cache invalidation plus
configuration re-read on next use).

Example::

    from k8s_yaml_schemas.service import SchemaAttachmentService
    service = SchemaAttachmentService()
    for report in service.attach_document("file:///tmp/deploy.yaml", text):
        print(report.status, report.message)
    print(service.sink.schemas)
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, Set, Tuple

import httpx

from .cache import CatalogCache, get_catalog_cache
from .catalog import CatalogIndex
from .config import ConfigLoader, EffectiveConfig
from .exceptions import UnsupportedDocumentError
from .github import GitHubClient
from .identity import identify_documents
from .models import (
    DocumentRef,
    DocumentResolution,
    DocumentStatus,
    ResolutionOutcome,
    ResolutionStatus,
    ResourceIdentity,
)
from .monitoring import PerformanceMonitor, get_monitor
from .resolver import SchemaResolver
from .sink import SchemaSink, YamlLanguageServerSink

logger = logging.getLogger(__name__)


class SchemaAttachmentService:
    """Resolve schemas for documents and hand them to a sink.

    Design notes:
        * The resolver and HTTP client are built lazily from the effective
          configuration and rebuilt after :meth:`reload`. A replaced client is
          retired rather than closed, since a resolution started before the
          reload may still be probing with it; :meth:`close` closes them all.
        * Processing a document first detaches any schemas attached to it
          earlier.
          ``yaml.schemas`` is keyed by URI, so every schema resolved for the
          sub-documents of a split file applies to the whole file.
        * Each document URI is processed once; pass ``force=True`` to redo it.
        * Sink failures propagate; every resolution failure is reported in the
          returned :class:`DocumentResolution` list instead.
    """

    def __init__(
        self,
        config_loader: Optional[ConfigLoader] = None,
        sink: Optional[SchemaSink] = None,
        cache: Optional[CatalogCache] = None,
        monitor: Optional[PerformanceMonitor] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """Create the service.

        Args:
            config_loader: Layered configuration; defaults to env/default path.
            sink: Attachment target; defaults to an in-memory
                :class:`YamlLanguageServerSink`.
            cache: Catalog cache; defaults to the process-wide cache.
            monitor: Metrics sink; defaults to the process-wide monitor.
            transport: Optional httpx transport for the HTTP client (tests).
        """
        self.config_loader = config_loader or ConfigLoader()
        self.sink = sink if sink is not None else YamlLanguageServerSink()
        self.cache = cache or get_catalog_cache()
        self.monitor = monitor or get_monitor()
        self.transport = transport
        self._lock = threading.Lock()
        self._client: Optional[GitHubClient] = None
        self._retired: List[GitHubClient] = []
        self._resolver: Optional[SchemaResolver] = None
        self._catalogs: Optional[CatalogIndex] = None
        self._processed: Set[str] = set()

    @property
    def config(self) -> EffectiveConfig:
        return self.config_loader.load()

    @property
    def resolver(self) -> SchemaResolver:
        """Resolver for the current effective configuration (built on demand)."""
        with self._lock:
            if self._resolver is None:
                self._build()
            return self._resolver

    @property
    def catalogs(self) -> CatalogIndex:
        with self._lock:
            if self._catalogs is None:
                self._build()
            return self._catalogs

    def _build(self) -> None:
        # caller holds self._lock
        config = self.config_loader.load()
        self._retire_client()
        self._client = GitHubClient(
            headers=config.github_headers,
            timeout=config.probe_timeout,
            token=config.github_token,
            probe_method=config.probe_method,
            transport=self.transport,
        )
        self._catalogs = CatalogIndex(self._client, self.cache)
        self._resolver = SchemaResolver(
            config.sources, self._client, catalogs=self._catalogs, monitor=self.monitor
        )
        logger.debug(
            f"Resolver built with {len(config.sources)} sources from {config.origin}"
        )

    def _retire_client(self) -> None:
        # caller holds self._lock
        if self._client is not None:
            self._retired.append(self._client)
            self._client = None

    def resolve(
        self, identity: ResourceIdentity, cancel: Optional[threading.Event] = None
    ) -> ResolutionOutcome:
        return self.resolver.resolve(identity, cancel=cancel)

    def attach_document(
        self, uri: str, text: str, force: bool = False
    ) -> List[DocumentResolution]:
        """Resolve every resource in ``text`` and attach the schemas found.

        Args:
            uri: Document identity passed to the sink.
            text: Raw document content.
            force: Process the document even if it was handled before.

        Returns:
            One report per sub-document (a single ``unsupported`` report when the
            multi-document policy rejects the text).
        """
        with self._lock:
            if uri in self._processed and not force:
                logger.debug(f"{uri} already processed; skipping")
                return []
            self._processed.add(uri)
        self._detach(uri)

        try:
            documents = identify_documents(text, self.config.multi_document)
        except UnsupportedDocumentError as e:
            logger.warning(f"{uri}: {e}")
            return [
                DocumentResolution(
                    DocumentRef(uri), DocumentStatus.UNSUPPORTED, message=str(e)
                )
            ]

        if not documents:
            logger.warning(f"No apiVersion/kind detected in {uri}")
            return [
                DocumentResolution(
                    DocumentRef(uri),
                    DocumentStatus.SKIPPED,
                    message="No apiVersion/kind detected in document.",
                )
            ]

        reports = []
        for document in documents:
            ref = DocumentRef(uri, document.index)
            if document.identity is None:
                logger.warning(f"{uri}[{document.index}]: {document.reason}")
                reports.append(
                    DocumentResolution(
                        ref,
                        DocumentStatus.SKIPPED,
                        message=f"No apiVersion/kind detected ({document.reason}).",
                    )
                )
                continue
            reports.append(self._attach_identity(ref, document.identity))
        return reports

    def _attach_identity(
        self, ref: DocumentRef, identity: ResourceIdentity
    ) -> DocumentResolution:
        outcome = self.resolve(identity)
        label = f"{identity.kind} ({identity.api_version})"

        if outcome.result is not None:
            description = f"{outcome.result.source_name} for {identity.kind}"
            self.sink.attach(outcome.result.url, description, ref)
            return DocumentResolution(
                ref,
                DocumentStatus.ATTACHED,
                identity=identity,
                outcome=outcome,
                message=f"Attached schema: {description}",
            )

        if outcome.status is ResolutionStatus.PROBE_FAILED:
            message = f"Schema sources unreachable for {label}"
            status = DocumentStatus.PROBE_FAILED
        else:
            message = f"No schema source yielded a match for {label}"
            status = DocumentStatus.NO_MATCH
        logger.warning(message)
        return DocumentResolution(
            ref, status, identity=identity, outcome=outcome, message=message
        )

    def list_catalog(self, source_name: str) -> Tuple[str, ...]:
        """Cached listing for the catalog declared by ``source_name``.

        Raises:
            KeyError: No source with that name.
            ValueError: The source declares no catalog.
            CatalogListingError: The remote listing failed.
        """
        source = self.config.get_source(source_name)
        if source is None:
            raise KeyError(source_name)
        if source.catalog is None:
            raise ValueError(f"source '{source_name}' has no catalog")
        return self.catalogs.list_catalog_entries(source.catalog)

    def forget(self, uri: str) -> None:
        """Drop the once-per-document guard for ``uri`` (document closed)."""
        with self._lock:
            self._processed.discard(uri)
        self._detach(uri)

    def _detach(self, uri: str) -> None:
        detach = getattr(self.sink, "detach", None)
        if detach is not None:
            detach(uri)

    def reload(self) -> None:
        """Invalidate the catalog cache and re-read configuration on next use."""
        self.cache.invalidate()
        self.config_loader.invalidate()
        with self._lock:
            self._retire_client()
            self._resolver = None
            self._catalogs = None
            self._processed.clear()
        logger.info("Configuration reloaded")

    def close(self) -> None:
        """Close the current client and every client retired by a reload."""
        with self._lock:
            self._retire_client()
            clients, self._retired = self._retired, []
            self._resolver = None
            self._catalogs = None
        for client in clients:
            client.close()
