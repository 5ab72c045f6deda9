"""Source registry loading and normalization.

Configuration is layered; the first layer that yields a value wins:

        1. Inline ``sources`` passed to :class:`ConfigLoader` (structured object)
        2. Explicit ``config_file`` override
        3. ``K8S_YAML_SCHEMAS_CONFIG`` environment variable
        4. Default path ``~/.config/k8s-yaml-schemas/config.{json,yaml,yml}``
        5. Built-in defaults (:func:`default_sources`)

Loading fails soft: an unreadable or malformed file logs a warning and the
built-in defaults are used instead. A registry entry without ``url_template``
is the one hard failure (:class:`~k8s_yaml_schemas.exceptions.ConfigurationError`)
because such a source can never resolve anything.

Example (JSON file)::

    {
      "sources": [
        {
          "name": "Company CRDs",
          "url_template": "https://schemas.example.com/{{.Group}}/{{.ResourceKind}}{{.KindSuffix}}.json",
          "kind_suffix_style": "k8s",
          "when": {"group_regex": "\\\\.example\\\\.com$"}
        }
      ]
    }

Environment variables:
    K8S_YAML_SCHEMAS_CONFIG         Path to a JSON/YAML configuration file.
    K8S_YAML_SCHEMAS_PROBE_TIMEOUT  Probe/listing timeout in seconds (default 8).
    GITHUB_TOKEN                    Token sent to the GitHub API for catalog listings.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ConfigurationError
from .identity import MultiDocumentPolicy
from .models import (
    CatalogRef,
    CatalogType,
    KindSuffix,
    SchemaSource,
    SourceCondition,
    SourceRegistry,
)

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "K8S_YAML_SCHEMAS_CONFIG"
TIMEOUT_ENV_VAR = "K8S_YAML_SCHEMAS_PROBE_TIMEOUT"
TOKEN_ENV_VAR = "GITHUB_TOKEN"

DEFAULT_PROBE_TIMEOUT = 8.0
DEFAULT_GITHUB_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
}


def default_config_paths() -> List[Path]:
    """Default configuration file locations, in lookup order."""
    base = Path.home() / ".config" / "k8s-yaml-schemas"
    return [base / "config.json", base / "config.yaml", base / "config.yml"]


class ConditionModel(BaseModel):
    """``when`` block of a source entry."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    group_regex: Optional[str] = Field(
        None, alias="groupRegex", description="Regex searched in the API group"
    )
    kind_in: Optional[List[str]] = Field(
        None, alias="kindIn", description="Kinds (case-insensitive) the source applies to"
    )


class CatalogModel(BaseModel):
    """``catalog`` block of a source entry."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    repository: str = Field(..., description="owner/name of the catalog repository")
    ref: str = Field("main", description="Branch, tag or commit")
    type: CatalogType = Field(CatalogType.TREE, description="tree or contents listing")
    path: str = Field("", description="Directory listed by a contents catalog")
    raw_base_url: Optional[str] = Field(
        None, alias="rawBaseUrl", description="Prefix mapping candidate URLs to paths"
    )


class SourceModel(BaseModel):
    """One entry of the ``sources`` list, before normalization."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = Field(None, description="Display name")
    url_template: Optional[str] = Field(
        None, alias="urlTemplate", description="Candidate URL template"
    )
    kind_suffix_style: Optional[str] = Field(
        None, alias="kindSuffixStyle", description="none, flux, k8s or a template"
    )
    kind_suffix_template: Optional[str] = Field(
        None, alias="kindSuffixTemplate", description="Custom suffix template"
    )
    fallback_kind_suffix_style: Optional[str] = Field(
        None,
        alias="fallbackKindSuffixStyle",
        description="Suffix style probed when the primary candidate is missing",
    )
    when: Optional[ConditionModel] = None
    catalog: Optional[CatalogModel] = None


class ConfigDocument(BaseModel):
    """Top-level configuration document."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sources: List[SourceModel]
    github_headers: Optional[Dict[str, str]] = Field(None, alias="githubHeaders")
    probe_timeout: Optional[float] = Field(None, gt=0, alias="probeTimeout")
    probe_method: Optional[Literal["GET", "HEAD"]] = Field(None, alias="probeMethod")
    multi_document: Optional[MultiDocumentPolicy] = Field(None, alias="multiDocument")


@dataclass(frozen=True)
class EffectiveConfig:
    """Normalized configuration for one load cycle.

    Attributes:
        sources: Source registry in priority order.
        github_headers: Headers sent with every remote request.
        github_token: Optional API token for catalog listings.
        probe_timeout: Timeout in seconds for probes and listings.
        probe_method: ``GET`` or ``HEAD``.
        multi_document: Policy for text holding several resources.
        origin: Where the sources came from (``inline``, a path, ``defaults``).
    """

    sources: SourceRegistry
    github_headers: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_GITHUB_HEADERS))
    )
    github_token: Optional[str] = None
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    probe_method: str = "GET"
    multi_document: MultiDocumentPolicy = MultiDocumentPolicy.SPLIT
    origin: str = "defaults"

    def get_source(self, name: str) -> Optional[SchemaSource]:
        for source in self.sources:
            if source.name == name:
                return source
        return None


def default_sources() -> SourceRegistry:
    """Built-in catalogs, highest priority first."""
    return (
        SchemaSource(
            name="Flux",
            url_template=(
                "https://raw.githubusercontent.com/fluxcd-community/flux2-schemas/"
                "refs/heads/main/{{.ResourceKind}}{{.KindSuffix}}.json"
            ),
            kind_suffix=KindSuffix.parse("flux"),
            when=SourceCondition(group_regex=r"(toolkit\.fluxcd\.io|fluxcd\.io)"),
        ),
        SchemaSource(
            name="Datree CRDs",
            url_template=(
                "https://raw.githubusercontent.com/datreeio/CRDs-catalog/main/"
                "{{.Group}}/{{.ResourceKind}}_{{.ResourceAPIVersion}}.json"
            ),
            # CRD groups are always dotted domains
            when=SourceCondition(group_regex=r"\."),
            catalog=CatalogRef(repository="datreeio/CRDs-catalog", ref="main"),
        ),
        SchemaSource(
            name="OpenShift (melmorabity)",
            url_template=(
                "https://raw.githubusercontent.com/melmorabity/openshift-json-schemas/"
                "refs/heads/main/v4.17-standalone-strict/{{.ResourceKind}}.json"
            ),
            kind_suffix=KindSuffix.parse("none"),
            when=SourceCondition(group_regex=r"(^|\.)openshift(\.|$)"),
        ),
        SchemaSource(
            name="Kubernetes core",
            url_template=(
                "https://raw.githubusercontent.com/yannh/kubernetes-json-schema/"
                "refs/heads/master/master-standalone-strict/"
                "{{.ResourceKind}}{{.KindSuffix}}.json"
            ),
            kind_suffix=KindSuffix.parse("k8s"),
            fallback_kind_suffix=KindSuffix.parse("none"),
            # core group, undotted built-in groups (apps, batch, ...) and *.k8s.io
            when=SourceCondition(group_regex=r"^$|^[a-z0-9-]+$|\.k8s\.io$"),
        ),
    )


def normalize_source(entry: SourceModel) -> SchemaSource:
    """Convert a validated config entry into an immutable :class:`SchemaSource`.

    Raises:
        ConfigurationError: The entry has no ``url_template``.
    """
    name = entry.name or "unnamed"
    if not entry.url_template:
        raise ConfigurationError(f"source '{name}' missing url_template")

    when = None
    if entry.when is not None:
        when = SourceCondition(
            group_regex=entry.when.group_regex or None,
            kind_in=(
                frozenset(kind.lower() for kind in entry.when.kind_in)
                if entry.when.kind_in is not None
                else None
            ),
        )

    catalog = None
    if entry.catalog is not None:
        catalog = CatalogRef(
            repository=entry.catalog.repository,
            ref=entry.catalog.ref,
            type=entry.catalog.type,
            path=entry.catalog.path,
            raw_base_url=entry.catalog.raw_base_url,
        )

    return SchemaSource(
        name=name,
        url_template=entry.url_template,
        kind_suffix=KindSuffix.parse(entry.kind_suffix_style, entry.kind_suffix_template),
        when=when,
        fallback_kind_suffix=(
            KindSuffix.parse(entry.fallback_kind_suffix_style)
            if entry.fallback_kind_suffix_style
            else None
        ),
        catalog=catalog,
    )


def normalize_sources(entries: Sequence[SourceModel]) -> SourceRegistry:
    """Normalize every entry, keeping order and making names unique."""
    sources: List[SchemaSource] = []
    seen: Dict[str, int] = {}
    for entry in entries:
        source = normalize_source(entry)
        count = seen.get(source.name, 0) + 1
        seen[source.name] = count
        if count > 1:
            unique = f"{source.name} ({count})"
            logger.warning(f"Duplicate source name '{source.name}' renamed to '{unique}'")
            source = SchemaSource(
                name=unique,
                url_template=source.url_template,
                kind_suffix=source.kind_suffix,
                when=source.when,
                fallback_kind_suffix=source.fallback_kind_suffix,
                catalog=source.catalog,
            )
        sources.append(source)
    return tuple(sources)


def parse_config_text(text: str, path_hint: Optional[Union[str, Path]] = None) -> Any:
    """Decode configuration text as JSON or YAML.

    ``.json`` files are decoded as JSON, ``.yaml``/``.yml`` as YAML; anything
    else is tried as JSON first, then YAML.

    Raises:
        ValueError: The text is neither valid JSON nor valid YAML.
    """
    suffix = Path(str(path_hint)).suffix.lower() if path_hint else ""
    if suffix == ".json":
        return json.loads(text)
    if suffix in (".yaml", ".yml"):
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(f"invalid YAML: {e}") from e
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ValueError(f"invalid JSON/YAML: {e}") from e


class ConfigLoader:
    """Layered loader returning one :class:`EffectiveConfig` per load cycle.

    The effective configuration is memoized until :meth:`invalidate` is
    called, so repeated resolutions do not re-read the file.
    """

    def __init__(
        self,
        sources: Optional[Union[Mapping[str, Any], Sequence[Mapping[str, Any]]]] = None,
        config_file: Optional[Union[str, Path]] = None,
        github_headers: Optional[Mapping[str, str]] = None,
        default_paths: Optional[Sequence[Path]] = None,
    ) -> None:
        """Create a loader.

        Args:
            sources: Inline configuration; either a full document (mapping with
                a ``sources`` key) or a bare list of source entries.
            config_file: Explicit configuration file override.
            github_headers: Headers replacing :data:`DEFAULT_GITHUB_HEADERS`
                unless the loaded document sets its own.
            default_paths: Override of :func:`default_config_paths` (tests).
        """
        self.inline = sources
        self.config_file = Path(config_file).expanduser() if config_file else None
        self.github_headers = dict(github_headers or DEFAULT_GITHUB_HEADERS)
        self.default_paths = (
            list(default_paths) if default_paths is not None else default_config_paths()
        )
        self._lock = threading.Lock()
        self._effective: Optional[EffectiveConfig] = None

    def load(self) -> EffectiveConfig:
        """Return the memoized effective configuration, loading it if needed."""
        with self._lock:
            if self._effective is None:
                self._effective = self._load()
            return self._effective

    def invalidate(self) -> None:
        """Force the next :meth:`load` to re-read configuration."""
        with self._lock:
            self._effective = None

    def _load(self) -> EffectiveConfig:
        document: Optional[ConfigDocument] = None
        origin = "defaults"

        if self.inline is not None:
            raw = self.inline
            if not isinstance(raw, Mapping):
                raw = {"sources": list(raw)}
            document = self._validate(raw, "inline configuration")
            origin = "inline"
        else:
            path, explicit = self._config_path()
            if path is not None:
                raw_file = self._read_file(path, explicit)
                if raw_file is not None:
                    document = self._validate(raw_file, str(path))
                    origin = str(path)

        if document is None:
            return self._build(default_sources(), None, "defaults")

        return self._build(normalize_sources(document.sources), document, origin)

    def _build(
        self,
        sources: SourceRegistry,
        document: Optional[ConfigDocument],
        origin: str,
    ) -> EffectiveConfig:
        headers = dict(self.github_headers)
        timeout = DEFAULT_PROBE_TIMEOUT
        method = "GET"
        policy = MultiDocumentPolicy.SPLIT
        if document is not None:
            if document.github_headers:
                headers = dict(document.github_headers)
            if document.probe_timeout:
                timeout = document.probe_timeout
            if document.probe_method:
                method = document.probe_method
            if document.multi_document:
                policy = document.multi_document

        env_timeout = os.getenv(TIMEOUT_ENV_VAR)
        if env_timeout:
            try:
                value = float(env_timeout)
            except ValueError:
                logger.warning(f"{TIMEOUT_ENV_VAR}={env_timeout!r} is not a number; ignored")
            else:
                if value > 0:
                    timeout = value
                else:
                    logger.warning(f"{TIMEOUT_ENV_VAR}={env_timeout!r} must be positive; ignored")

        return EffectiveConfig(
            sources=sources,
            github_headers=MappingProxyType(headers),
            github_token=os.getenv(TOKEN_ENV_VAR) or None,
            probe_timeout=timeout,
            probe_method=method,
            multi_document=policy,
            origin=origin,
        )

    def _config_path(self) -> Tuple[Optional[Path], bool]:
        """Pick the single configuration file to read (and whether it was requested explicitly)."""
        if self.config_file is not None:
            return self.config_file, True
        env_path = os.getenv(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path).expanduser(), True
        for path in self.default_paths:
            if path.is_file():
                return path, False
        return None, False

    def _read_file(self, path: Path, explicit: bool) -> Optional[Any]:
        if not path.is_file():
            if explicit:
                logger.warning(f"Config file not found: {path}; using built-in sources")
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed reading config {path}: {e}; using built-in sources")
            return None
        try:
            return parse_config_text(text, path)
        except ValueError as e:
            logger.warning(f"Malformed config {path}: {e}; using built-in sources")
            return None

    def _validate(self, raw: Any, label: str) -> Optional[ConfigDocument]:
        if not isinstance(raw, Mapping) or not isinstance(raw.get("sources"), list):
            logger.warning(f"{label} has no 'sources' list; using built-in sources")
            return None
        try:
            return ConfigDocument.model_validate(dict(raw))
        except ValidationError as e:
            logger.warning(f"Invalid {label}: {e}; using built-in sources")
            return None


def load_sources(
    config_source: Optional[
        Union[str, Path, Mapping[str, Any], Sequence[Mapping[str, Any]]]
    ] = None,
) -> SourceRegistry:
    """Load the ordered source registry.

    Args:
        config_source: A file path, an inline configuration object, or None to
            fall through the environment variable, default path and built-ins.

    Returns:
        Tuple of normalized sources in priority order.

    Raises:
        ConfigurationError: A source entry has no ``url_template``.
    """
    if isinstance(config_source, (str, Path)):
        loader = ConfigLoader(config_file=config_source)
    else:
        loader = ConfigLoader(sources=config_source)
    return loader.load().sources
