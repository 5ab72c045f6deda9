"""FastAPI application exposing schema resolution over HTTP.

Lets editors and tools that cannot embed the Python package ask for a schema
URL by ``apiVersion``/``kind`` or by posting raw document text.

Quick start (run the server)::

    uvicorn k8s_yaml_schemas.app:app --reload

Endpoints:

    GET  /health                         Basic health probe
    GET  /sources                        Effective source registry
    GET  /resolve?apiVersion=..&kind=..  Resolve one identity
    POST /resolve/document               Resolve every resource in a document
    GET  /catalogs/{source_name}         Cached catalog listing of a source
    POST /reload                         Invalidate caches, re-read configuration
    GET  /metrics/performance            Probe / cache / resolution metrics
    GET  /metrics/cache                  Catalog cache analytics
    POST /metrics/reset                  Reset metrics

Example::

    curl "http://localhost:8000/resolve?apiVersion=apps/v1&kind=Deployment" | jq .

    curl -X POST http://localhost:8000/resolve/document \
         -H "Content-Type: application/json" \
         -d '{"uri": "deploy.yaml", "text": "apiVersion: apps/v1\\nkind: Deployment\\n"}'

Error handling:
    * ``no_match`` and ``probe_failed`` are ordinary 200 responses with a status.
    * A multi-resource document under the ``reject`` policy answers 422.
    * Configuration errors (a source without ``url_template``) answer 500 with detail.
"""

from __future__ import annotations

import time
from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .exceptions import (
    CatalogListingError,
    ConfigurationError,
    UnsupportedDocumentError,
)
from .identity import MultiDocumentPolicy, identify_documents
from .models import DocumentStatus, ResourceIdentity
from .monitoring import get_monitor
from .service import SchemaAttachmentService

app = FastAPI(
    title="Kubernetes YAML Schema Resolver",
    version=__version__,
    description="Resolve JSON schema URLs for Kubernetes resources from prioritized catalogs",
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.middleware("http")
async def monitor_requests(request: Request, call_next):
    """Record request latency and status for every endpoint."""
    start_time = time.time()
    response = await call_next(request)
    response_time = time.time() - start_time

    monitor = get_monitor()
    endpoint = f"{request.method} {request.url.path}"
    monitor.record_endpoint_request(endpoint, response_time, response.status_code)

    response.headers["X-Response-Time"] = f"{response_time:.3f}s"
    response.headers["X-API-Version"] = __version__
    return response


class AttemptModel(BaseModel):
    source: str
    url: str
    status: str
    detail: Optional[str] = None


class ResolveResponse(BaseModel):
    """Response model for single-identity resolution."""

    api_version: str = Field(..., description="Resolved apiVersion")
    kind: str = Field(..., description="Resource kind as requested")
    status: str = Field(
        ..., description="resolved, no_match, probe_failed or cancelled"
    )
    url: Optional[str] = Field(None, description="Schema URL when resolved")
    source: Optional[str] = Field(None, description="Winning source name")
    attempts: List[AttemptModel] = Field(
        default_factory=list, description="Candidates tried, in order"
    )


class DocumentRequest(BaseModel):
    """Request model for document resolution."""

    uri: str = Field("untitled", description="Document identity handed to the sink")
    text: str = Field(..., description="Raw YAML document text")
    attach: bool = Field(
        False, description="Also attach resolved schemas to the service sink"
    )


class DocumentResult(BaseModel):
    index: int
    status: str
    message: str = ""
    api_version: Optional[str] = None
    kind: Optional[str] = None
    url: Optional[str] = None
    source: Optional[str] = None


class DocumentResponse(BaseModel):
    """Response model for document resolution."""

    uri: str
    results: List[DocumentResult]


@lru_cache(maxsize=1)
def get_service() -> SchemaAttachmentService:
    return SchemaAttachmentService()


@app.get("/health")
def health(service: SchemaAttachmentService = Depends(get_service)) -> Dict[str, Any]:
    """Health check endpoint."""
    try:
        config = service.config
        return {
            "status": "healthy",
            "version": __version__,
            "sources": len(config.sources),
            "config_origin": config.origin,
        }
    except ConfigurationError as e:
        return {"status": "unhealthy", "error": str(e)}


@app.get("/sources")
def sources(service: SchemaAttachmentService = Depends(get_service)) -> Dict[str, Any]:
    """Effective source registry in priority order."""
    config = service.config
    return {
        "origin": config.origin,
        "multi_document": config.multi_document.value,
        "probe_timeout": config.probe_timeout,
        "sources": [source.to_dict() for source in config.sources],
    }


@app.get("/resolve", response_model=ResolveResponse)
def resolve(
    api_version: str = Query(..., alias="apiVersion", min_length=1),
    kind: str = Query(..., min_length=1),
    service: SchemaAttachmentService = Depends(get_service),
) -> ResolveResponse:
    """Resolve a schema URL for one ``apiVersion``/``kind`` pair."""
    identity = ResourceIdentity.from_api_version(api_version, kind)
    if not identity.is_valid():
        raise HTTPException(status_code=422, detail=f"Malformed apiVersion: {api_version}")
    outcome = service.resolve(identity)
    return ResolveResponse(
        api_version=identity.api_version,
        kind=identity.kind,
        status=outcome.status.value,
        url=outcome.result.url if outcome.result else None,
        source=outcome.result.source_name if outcome.result else None,
        attempts=[AttemptModel(**attempt.to_dict()) for attempt in outcome.attempts],
    )


@app.post("/resolve/document", response_model=DocumentResponse)
def resolve_document(
    request: DocumentRequest,
    service: SchemaAttachmentService = Depends(get_service),
) -> DocumentResponse:
    """Resolve every resource of a (possibly multi-document) YAML text."""
    if request.attach:
        reports = service.attach_document(request.uri, request.text, force=True)
        results = []
        for report in reports:
            if report.status is DocumentStatus.UNSUPPORTED:
                raise HTTPException(status_code=422, detail=report.message)
            outcome = report.outcome
            results.append(
                DocumentResult(
                    index=report.document.index,
                    status=report.status.value,
                    message=report.message,
                    api_version=report.identity.api_version if report.identity else None,
                    kind=report.identity.kind if report.identity else None,
                    url=outcome.result.url if outcome and outcome.result else None,
                    source=outcome.result.source_name if outcome and outcome.result else None,
                )
            )
        return DocumentResponse(uri=request.uri, results=results)

    policy: MultiDocumentPolicy = service.config.multi_document
    documents = identify_documents(request.text, policy)
    results = []
    for document in documents:
        if document.identity is None:
            results.append(
                DocumentResult(
                    index=document.index, status="skipped", message=document.reason or ""
                )
            )
            continue
        outcome = service.resolve(document.identity)
        results.append(
            DocumentResult(
                index=document.index,
                status=outcome.status.value,
                api_version=document.identity.api_version,
                kind=document.identity.kind,
                url=outcome.result.url if outcome.result else None,
                source=outcome.result.source_name if outcome.result else None,
            )
        )
    return DocumentResponse(uri=request.uri, results=results)


@app.get("/catalogs/{source_name}")
def catalog_entries(
    source_name: str,
    limit: int = Query(100, ge=1, le=10000),
    service: SchemaAttachmentService = Depends(get_service),
) -> Dict[str, Any]:
    """Cached catalog listing for a named source."""
    try:
        entries = service.list_catalog(source_name)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown source: {source_name}")
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CatalogListingError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"source": source_name, "total": len(entries), "entries": list(entries[:limit])}


@app.post("/reload")
def reload(service: SchemaAttachmentService = Depends(get_service)) -> Dict[str, str]:
    """Invalidate the catalog cache and re-read configuration on next use."""
    service.reload()
    return {
        "message": "Configuration reloaded",
        "timestamp": datetime.now().isoformat(),
    }


@app.get("/metrics/performance")
def get_performance_metrics():
    """Probe, cache, resolution and endpoint metrics."""
    return get_monitor().get_performance_summary()


@app.get("/metrics/cache")
def get_cache_metrics(service: SchemaAttachmentService = Depends(get_service)):
    """Catalog cache analytics."""
    analytics = get_monitor().get_cache_analytics()
    analytics["stats"] = service.cache.get_cache_stats()
    return analytics


@app.post("/metrics/reset")
def reset_metrics():
    """Reset all metrics (useful for testing)."""
    get_monitor().reset_metrics()
    return {
        "message": "All metrics have been reset",
        "timestamp": datetime.now().isoformat(),
    }


@app.exception_handler(404)
async def not_found_handler(request, exc):
    """JSON 404 payload with the request path."""
    return JSONResponse(
        status_code=404,
        content={
            "error": "Not Found",
            "detail": (
                str(exc.detail)
                if hasattr(exc, "detail")
                else "The requested resource was not found"
            ),
            "path": str(request.url.path),
        },
    )


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request, exc):
    return JSONResponse(
        status_code=500,
        content={"error": "Configuration Error", "detail": str(exc)},
    )


@app.exception_handler(UnsupportedDocumentError)
async def unsupported_document_handler(request, exc):
    return JSONResponse(
        status_code=422,
        content={"error": "Unsupported Document", "detail": str(exc)},
    )


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    """JSON 500 payload without internals."""
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "detail": "An unexpected error occurred processing your request",
        },
    )
