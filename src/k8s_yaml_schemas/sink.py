"""Schema sinks: consumers of resolved schema URLs.

The resolution engine never talks to an editor or language server directly.
It hands every resolved document to a :class:`SchemaSink`, which performs the
host-specific attachment. Failures inside a sink are the host's problem and
propagate to the caller.

:class:`YamlLanguageServerSink` reproduces what a YAML language server client
needs: a ``yaml.schemas`` mapping from schema URL to the documents it applies
to, pushed with ``workspace/didChangeConfiguration`` after every change.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Protocol

from .models import DocumentRef

logger = logging.getLogger(__name__)

Notify = Callable[[str, Dict[str, Any]], None]


class SchemaSink(Protocol):
    def attach(self, schema_url: str, description: str, document: DocumentRef) -> None: ...


class YamlLanguageServerSink:
    """Maintain yaml-language-server ``settings.yaml.schemas`` for attached documents.

    Args:
        notify: Called as ``notify("workspace/didChangeConfiguration",
            {"settings": settings})`` after each change; omit to only keep
            the settings in memory.
        settings: Existing client settings to extend (copied).
    """

    def __init__(
        self, notify: Optional[Notify] = None, settings: Optional[Dict[str, Any]] = None
    ) -> None:
        self.notify = notify
        self.settings: Dict[str, Any] = copy.deepcopy(settings) if settings else {}
        self.settings.setdefault("yaml", {}).setdefault("schemas", {})
        self._lock = threading.Lock()

    @property
    def schemas(self) -> Dict[str, List[str]]:
        return self.settings["yaml"]["schemas"]

    def attach(self, schema_url: str, description: str, document: DocumentRef) -> None:
        """Associate ``document`` with ``schema_url`` and push the settings."""
        with self._lock:
            documents = self.schemas.setdefault(schema_url, [])
            if document.uri not in documents:
                documents.append(document.uri)
            payload = {"settings": copy.deepcopy(self.settings)}
        self._push(payload)
        logger.info(f"Attached schema: {description}")

    def detach(self, uri: str) -> None:
        """Remove ``uri`` from every schema mapping (e.g. the document was closed)."""
        with self._lock:
            changed = False
            for url in list(self.schemas):
                documents = self.schemas[url]
                if uri in documents:
                    documents.remove(uri)
                    changed = True
                if not documents:
                    del self.schemas[url]
            payload = {"settings": copy.deepcopy(self.settings)}
        if changed:
            self._push(payload)

    def schema_for(self, uri: str) -> Optional[str]:
        with self._lock:
            for url, documents in self.schemas.items():
                if uri in documents:
                    return url
        return None

    def _push(self, payload: Dict[str, Any]) -> None:
        if self.notify is not None:
            self.notify("workspace/didChangeConfiguration", payload)
