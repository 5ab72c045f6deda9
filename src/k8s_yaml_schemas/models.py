"""Core data structures for schema source resolution.

These lightweight dataclasses flow between the identifier parser, the source
registry, the resolver and the schema sink. They carry no framework
dependencies (no pydantic here) and are returned from API endpoints via
``to_dict``.

Overview:
        * ``ResourceIdentity`` is the ``(group, version, kind)`` triple derived
            from a document's ``apiVersion`` and ``kind``.
        * ``SchemaSource`` is one normalized, immutable registry entry: a URL
            template, a ``KindSuffix`` variant, an applicability condition and an
            optional remote catalog.
        * ``ResolutionOutcome`` captures what happened during one resolution:
            the winning ``ResolutionResult`` (if any) plus every attempt made.

Typical construction (simplified)::

        from k8s_yaml_schemas.models import KindSuffix, ResourceIdentity, SchemaSource

        identity = ResourceIdentity.from_api_version("source.toolkit.fluxcd.io/v1", "GitRepository")
        flux = SchemaSource(
                name="Flux",
                url_template="https://example.org/{{.ResourceKind}}{{.KindSuffix}}.json",
                kind_suffix=KindSuffix.parse("flux"),
        )

Design notes:
        * Every optional configuration value is normalized once at load time,
            so consumers never need to re-check for missing fields.
        * ``KindSuffix`` replaces the bare ``"flux"`` / ``"k8s"`` / ``"none"``
            strings of the configuration format with a tagged variant; any other
            string is kept as a custom template.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


@dataclass(frozen=True)
class ResourceIdentity:
    """The ``(group, version, kind)`` triple of a single resource document.

    Attributes:
        group: API group, empty string for the core group (``apiVersion: v1``).
        version: API version, never empty for a valid identity.
        kind: Resource kind exactly as written in the document.

    Example:
        >>> ident = ResourceIdentity.from_api_version("apps/v1", "Deployment")
        >>> (ident.group, ident.version, ident.kind_token)
        ('apps', 'v1', 'deployment')
    """

    group: str
    version: str
    kind: str

    @classmethod
    def from_api_version(cls, api_version: str, kind: str) -> "ResourceIdentity":
        """Build an identity by splitting ``api_version`` on its first ``/``."""
        from .identity import parse_api_version

        group, version = parse_api_version(api_version)
        return cls(group=group, version=version, kind=kind)

    @property
    def kind_token(self) -> str:
        """Lowercase kind used in catalog filenames."""
        return self.kind.lower()

    @property
    def api_version(self) -> str:
        """Reassembled ``apiVersion`` string."""
        return f"{self.group}/{self.version}" if self.group else self.version

    def is_valid(self) -> bool:
        return bool(self.version) and bool(self.kind)

    def to_dict(self) -> Dict[str, str]:
        return {
            "api_version": self.api_version,
            "group": self.group,
            "version": self.version,
            "kind": self.kind,
        }


class KindSuffixStyle(str, Enum):
    """Filename suffix conventions understood by the template renderer."""

    NONE = "none"
    FLUX = "flux"
    K8S = "k8s"
    CUSTOM = "custom"


@dataclass(frozen=True)
class KindSuffix:
    """Tagged kind-suffix variant.

    ``style`` selects the convention; ``template`` is only meaningful for
    ``KindSuffixStyle.CUSTOM`` and holds a ``{{.Var}}`` template string.
    """

    style: KindSuffixStyle = KindSuffixStyle.K8S
    template: Optional[str] = None

    @classmethod
    def parse(
        cls, value: Optional[str], custom_template: Optional[str] = None
    ) -> "KindSuffix":
        """Normalize a configured ``kind_suffix_style`` string.

        Args:
            value: ``"none"``, ``"flux"``, ``"k8s"``, any other non-empty string
                (treated as a custom template) or ``None``/empty.
            custom_template: Explicit ``kind_suffix_template``; used when
                ``value`` is unset.

        Returns:
            KindSuffix: Unset values with no custom template default to the
            ``k8s`` convention (``-<version>``).
        """
        if value:
            try:
                style = KindSuffixStyle(value)
            except ValueError:
                return cls(KindSuffixStyle.CUSTOM, value)
            if style is not KindSuffixStyle.CUSTOM:
                return cls(style)
            if custom_template:
                return cls(KindSuffixStyle.CUSTOM, custom_template)
            return cls(KindSuffixStyle.CUSTOM, value)
        if custom_template:
            return cls(KindSuffixStyle.CUSTOM, custom_template)
        return cls(KindSuffixStyle.K8S)

    def describe(self) -> str:
        if self.style is KindSuffixStyle.CUSTOM:
            return self.template or ""
        return self.style.value


@dataclass(frozen=True)
class SourceCondition:
    """Applicability predicate over ``(group, kind)``.

    Attributes:
        group_regex: Regular expression searched (unanchored) in the group.
        kind_in: Lowercased set of kinds the source applies to.
    """

    group_regex: Optional[str] = None
    kind_in: Optional[FrozenSet[str]] = None

    def matches(self, group: str, kind: str) -> bool:
        """Return True when every declared condition holds.

        An invalid regular expression means "does not apply" rather than an
        error.
        """
        if self.group_regex:
            try:
                if re.search(self.group_regex, group or "") is None:
                    return False
            except re.error:
                return False
        if self.kind_in is not None:
            if (kind or "").lower() not in self.kind_in:
                return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "group_regex": self.group_regex,
            "kind_in": sorted(self.kind_in) if self.kind_in is not None else None,
        }


class CatalogType(str, Enum):
    """Remote listing strategies for a catalog."""

    TREE = "tree"
    CONTENTS = "contents"


@dataclass(frozen=True)
class CatalogRef:
    """A remote repository whose file listing backs a schema source.

    Attributes:
        repository: ``owner/name`` on the repository host.
        ref: Branch, tag or commit.
        type: ``tree`` (recursive listing) or ``contents`` (one directory).
        path: Directory for ``contents`` listings (ignored for ``tree``).
        raw_base_url: Prefix stripped from candidate URLs to obtain repository
            paths; defaults to the raw content host for ``repository``/``ref``.
    """

    repository: str
    ref: str = "main"
    type: CatalogType = CatalogType.TREE
    path: str = ""
    raw_base_url: Optional[str] = None

    @property
    def cache_key(self) -> str:
        return f"{self.type.value}:{self.repository}@{self.ref}:{self.path.strip('/')}"

    @property
    def base_url(self) -> str:
        if self.raw_base_url:
            return self.raw_base_url.rstrip("/") + "/"
        return f"https://raw.githubusercontent.com/{self.repository}/{self.ref}/"

    def relative_path(self, url: str) -> Optional[str]:
        """Return the repository path for ``url`` or None if it is not under this catalog."""
        base = self.base_url
        if not url.startswith(base):
            return None
        return url[len(base) :]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repository": self.repository,
            "ref": self.ref,
            "type": self.type.value,
            "path": self.path,
            "raw_base_url": self.base_url,
        }


@dataclass(frozen=True)
class SchemaSource:
    """One normalized entry of the source registry.

    Attributes:
        name: Display name, unique within the registry.
        url_template: ``{{.Var}}`` template rendered into a candidate URL.
        kind_suffix: Suffix convention for ``{{.KindSuffix}}``.
        when: Applicability condition; ``None`` means "always applies".
        fallback_kind_suffix: Optional second suffix convention probed when the
            primary candidate is not found.
        catalog: Optional catalog whose listing is consulted before probing.
    """

    name: str
    url_template: str
    kind_suffix: KindSuffix = field(default_factory=KindSuffix)
    when: Optional[SourceCondition] = None
    fallback_kind_suffix: Optional[KindSuffix] = None
    catalog: Optional[CatalogRef] = None

    def matches(self, group: str, kind: str) -> bool:
        if self.when is None:
            return True
        return self.when.matches(group, kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "url_template": self.url_template,
            "kind_suffix_style": self.kind_suffix.describe(),
            "fallback_kind_suffix_style": (
                self.fallback_kind_suffix.describe()
                if self.fallback_kind_suffix
                else None
            ),
            "when": self.when.to_dict() if self.when else None,
            "catalog": self.catalog.to_dict() if self.catalog else None,
        }


class ProbeStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of one existence check against a candidate URL.

    ``NOT_FOUND`` is a clean non-success HTTP status; ``ERROR`` covers
    timeouts and transport failures so diagnostics can tell them apart.
    """

    url: str
    status: ProbeStatus
    status_code: Optional[int] = None
    error: Optional[str] = None
    elapsed: float = 0.0

    @property
    def found(self) -> bool:
        return self.status is ProbeStatus.FOUND


class AttemptStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    NOT_IN_CATALOG = "not_in_catalog"
    ERROR = "error"


@dataclass(frozen=True)
class ResolutionAttempt:
    """One candidate URL considered for one source."""

    source_name: str
    url: str
    status: AttemptStatus
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source_name,
            "url": self.url,
            "status": self.status.value,
            "detail": self.detail,
        }


@dataclass(frozen=True)
class ResolutionResult:
    """The winning schema URL and the source that produced it."""

    url: str
    source_name: str


class ResolutionStatus(str, Enum):
    RESOLVED = "resolved"
    NO_MATCH = "no_match"
    PROBE_FAILED = "probe_failed"
    CANCELLED = "cancelled"


@dataclass
class ResolutionOutcome:
    """Everything one ``resolve()`` call produced.

    Attributes:
        identity: The identity that was resolved.
        status: ``resolved``; ``no_match`` (every candidate was a clean miss or
            no source applied); ``probe_failed`` (nothing resolved and at least
            one probe errored); ``cancelled``.
        result: Winning URL/source when ``status`` is ``resolved``.
        attempts: Candidates in the order they were tried.
    """

    identity: ResourceIdentity
    status: ResolutionStatus
    result: Optional[ResolutionResult] = None
    attempts: List[ResolutionAttempt] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.result is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity.to_dict(),
            "status": self.status.value,
            "url": self.result.url if self.result else None,
            "source": self.result.source_name if self.result else None,
            "attempts": [attempt.to_dict() for attempt in self.attempts],
        }


@dataclass(frozen=True)
class DocumentRef:
    """Identity of a document handed to the schema sink.

    ``uri`` names the buffer/file; ``index`` is the position of the
    sub-document inside a multi-document stream.
    """

    uri: str
    index: int = 0


class DocumentStatus(str, Enum):
    ATTACHED = "attached"
    NO_MATCH = "no_match"
    PROBE_FAILED = "probe_failed"
    SKIPPED = "skipped"
    UNSUPPORTED = "unsupported"


@dataclass
class DocumentResolution:
    """Per-document report produced by the attachment service."""

    document: DocumentRef
    status: DocumentStatus
    identity: Optional[ResourceIdentity] = None
    outcome: Optional[ResolutionOutcome] = None
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uri": self.document.uri,
            "index": self.document.index,
            "status": self.status.value,
            "message": self.message,
            "identity": self.identity.to_dict() if self.identity else None,
            "resolution": self.outcome.to_dict() if self.outcome else None,
        }


TemplateVars = Dict[str, str]

SourceRegistry = Tuple[SchemaSource, ...]
