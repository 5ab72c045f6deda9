"""Identifier parsing for Kubernetes-style resource documents.

The scan is textual: only top-level ``apiVersion:`` and ``kind:``
keys are read, so partially written or otherwise invalid YAML still yields an
identity while the user is editing it.

Example:
        >>> parse_api_version("source.toolkit.fluxcd.io/v1")
        ('source.toolkit.fluxcd.io', 'v1')
        >>> first_group_segment("source.toolkit.fluxcd.io")
        'source'
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from .exceptions import UnsupportedDocumentError
from .models import ResourceIdentity

logger = logging.getLogger(__name__)

_DOCUMENT_MARKER = re.compile(r"^---(?:[ \t\r].*)?$", re.MULTILINE)
_API_VERSION_KEY = re.compile(
    r"""^apiVersion:[ \t]*(["']?)([^\s"'#]+)\1[ \t\r]*(?:\#.*)?$""", re.MULTILINE
)
_KIND_KEY = re.compile(
    r"""^kind:[ \t]*(["']?)([A-Za-z0-9][\w.-]*)\1[ \t\r]*(?:\#.*)?$""", re.MULTILINE
)


class MultiDocumentPolicy(str, Enum):
    """How text holding several resources is handled."""

    SPLIT = "split"
    REJECT = "reject"


@dataclass
class IdentifiedDocument:
    """A sub-document and the identity found in it (if any)."""

    index: int
    identity: Optional[ResourceIdentity]
    reason: Optional[str] = None


def parse_api_version(api_version: Optional[str]) -> Tuple[str, str]:
    """Split an ``apiVersion`` into ``(group, version)``.

    Strings without ``/`` belong to the core group and come back as
    ``("", api_version)``.
    """
    if not api_version:
        return "", ""
    group, sep, version = api_version.partition("/")
    if not sep:
        return "", api_version
    return group, version


def first_group_segment(group: Optional[str]) -> str:
    """Return the part of ``group`` before its first ``.``."""
    if not group:
        return ""
    return group.split(".", 1)[0]


def extract_api_version_and_kind(text: str) -> Tuple[Optional[str], Optional[str]]:
    """Find the first top-level ``apiVersion`` and ``kind`` values in ``text``.

    Returns:
        Tuple of ``(api_version, kind)``; either element is None when the key is
        missing or its value is malformed.
    """
    api_match = _API_VERSION_KEY.search(text)
    kind_match = _KIND_KEY.search(text)
    api_version = api_match.group(2) if api_match else None
    kind = kind_match.group(2) if kind_match else None
    return api_version, kind


def count_resources(text: str) -> int:
    """Number of top-level ``apiVersion`` keys in ``text``."""
    return len(_API_VERSION_KEY.findall(text))


def split_documents(text: str) -> List[Tuple[int, str]]:
    """Split a YAML stream on ``---`` markers.

    Returns:
        ``(index, body)`` pairs for every non-blank document; ``index`` counts
        all documents, blank ones included, so it maps back to the stream.
    """
    documents = []
    for index, body in enumerate(_DOCUMENT_MARKER.split(text)):
        if body.strip():
            documents.append((index, body))
    return documents


def identify_documents(
    text: str, policy: MultiDocumentPolicy = MultiDocumentPolicy.SPLIT
) -> List[IdentifiedDocument]:
    """Derive one identity per resource in ``text``.

    Args:
        text: Raw buffer/file content.
        policy: ``split`` resolves every sub-document independently;
            ``reject`` refuses text that holds more than one resource.

    Returns:
        One entry per non-blank sub-document. Entries without a usable
        identity carry a ``reason`` and must be skipped by callers.

    Raises:
        UnsupportedDocumentError: ``policy`` is ``reject`` and the text holds
            more than one resource.
    """
    documents = split_documents(text)
    if policy is MultiDocumentPolicy.REJECT:
        total = sum(count_resources(body) for _, body in documents)
        if total > 1:
            raise UnsupportedDocumentError(
                f"Document holds {total} resources; multi-document input is disabled"
            )

    identified = []
    for index, body in documents:
        if count_resources(body) > 1:
            logger.warning(
                f"Sub-document {index} has several top-level apiVersion keys; skipping"
            )
            identified.append(
                IdentifiedDocument(
                    index, None, "multiple top-level apiVersion keys in one document"
                )
            )
            continue

        api_version, kind = extract_api_version_and_kind(body)
        if not api_version or not kind:
            identified.append(IdentifiedDocument(index, None, "missing apiVersion/kind"))
            continue

        identity = ResourceIdentity.from_api_version(api_version, kind)
        if not identity.is_valid():
            identified.append(IdentifiedDocument(index, None, "malformed apiVersion"))
            continue
        identified.append(IdentifiedDocument(index, identity))
    return identified
