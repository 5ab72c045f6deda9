"""Kubernetes YAML Schemas
=======================

Resolve a JSON schema URL for every Kubernetes-style resource document by
probing a prioritized registry of remote schema catalogs, then hand the
result to a schema consumer (typically a YAML language server client).

Key capabilities
----------------
- Textual identity detection (``apiVersion`` / ``kind``) that tolerates
  half-written YAML and splits multi-document streams.
- Configurable source registry (JSON or YAML) with per-source applicability
  rules, filename suffix conventions and optional remote catalogs.
- Priority-ordered resolution where the first existing candidate wins, with
  network failures reported apart from a clean "no match".
- Process-wide catalog listing cache with at most one in-flight listing per
  catalog and whole-cache invalidation on reload.
- FastAPI service, command line interface and in-process metrics.

Design principles
-----------------
1. **Fail soft** - Configuration problems fall back to built-in sources;
   probe errors move on to the next source.
2. **Sequential priority** - Sources are tried one at a time; later sources
   are never contacted once an earlier one matches.
3. **Separation of concerns** - Parsing, templating, configuration, caching,
   HTTP access, resolution and attachment are isolated modules.

Minimal quick start
-------------------
>>> from k8s_yaml_schemas import SchemaAttachmentService
>>> service = SchemaAttachmentService()
>>> reports = service.attach_document("deploy.yaml", "apiVersion: apps/v1\\nkind: Deployment\\n")
>>> service.sink.schema_for("deploy.yaml")  # doctest: +SKIP

FastAPI application instance (for ASGI servers like uvicorn):
>>> from k8s_yaml_schemas.app import app  # noqa: F401

Public surface
--------------
Only a curated subset is exported at the package level; advanced modules can
be imported explicitly.
"""

__version__ = "0.3.0"

from .config import ConfigLoader, default_sources, load_sources
from .identity import identify_documents, parse_api_version
from .models import ResolutionOutcome, ResourceIdentity, SchemaSource
from .resolver import SchemaResolver
from .service import SchemaAttachmentService
from .template import compute_kind_suffix, render_template

__all__ = [
    "ConfigLoader",
    "ResolutionOutcome",
    "ResourceIdentity",
    "SchemaAttachmentService",
    "SchemaResolver",
    "SchemaSource",
    "compute_kind_suffix",
    "default_sources",
    "identify_documents",
    "load_sources",
    "parse_api_version",
    "render_template",
]
