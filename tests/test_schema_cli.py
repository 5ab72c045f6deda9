"""Tests for the k8s-yaml-schemas command line interface."""

import json

import pytest

from conftest import FIXTURES, schema_host
from k8s_yaml_schemas import schema_cli
from k8s_yaml_schemas.cache import CatalogCache
from k8s_yaml_schemas.config import ConfigLoader
from k8s_yaml_schemas.monitoring import PerformanceMonitor
from k8s_yaml_schemas.service import SchemaAttachmentService

CORE = "https://schemas.example.com/core/"
CONFIG = str(FIXTURES / "config" / "sources.yaml")


@pytest.fixture
def offline_service(monkeypatch):
    """Route the CLI's service through a mock transport."""

    def build(args):
        return SchemaAttachmentService(
            config_loader=ConfigLoader(config_file=args.config),
            cache=CatalogCache(enable_monitoring=False),
            monitor=PerformanceMonitor(),
            transport=schema_host([CORE + "deployment-v1.json", CORE + "configmap.json"]),
        )

    monkeypatch.setattr(schema_cli, "build_service", build)


def test_no_command_prints_help(capsys):
    assert schema_cli.main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_sources_command(capsys):
    assert schema_cli.main(["--config", CONFIG, "sources"]) == 0
    out = capsys.readouterr().out
    assert "1. Company CRDs" in out
    assert "2. Core" in out


def test_sources_json(capsys):
    assert schema_cli.main(["--config", CONFIG, "sources", "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert [source["name"] for source in data] == ["Company CRDs", "Core"]


def test_sources_with_broken_config(tmp_path, capsys):
    path = tmp_path / "broken.json"
    path.write_text(json.dumps({"sources": [{"name": "Broken"}]}))
    assert schema_cli.main(["--config", str(path), "sources"]) == 2
    assert "Invalid configuration" in capsys.readouterr().out


def test_resolve_identity(offline_service, capsys):
    assert schema_cli.main(["--config", CONFIG, "resolve", "apps/v1", "Deployment"]) == 0
    out = capsys.readouterr().out
    assert "✓ Deployment (apps/v1) -> " + CORE + "deployment-v1.json" in out
    assert "source: Core" in out


def test_resolve_identity_json(offline_service, capsys):
    assert schema_cli.main(["--config", CONFIG, "resolve", "v1", "ConfigMap", "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["url"] == CORE + "configmap.json"
    assert [a["status"] for a in data["attempts"]] == ["not_found", "found"]


def test_resolve_no_match_exit_code(offline_service, capsys):
    assert schema_cli.main(["--config", CONFIG, "resolve", "v1", "Secret"]) == 1
    assert "✗ Secret (v1): no_match" in capsys.readouterr().out


def test_resolve_requires_arguments(offline_service, capsys):
    assert schema_cli.main(["--config", CONFIG, "resolve"]) == 2


def test_resolve_file(offline_service, capsys):
    manifest = str(FIXTURES / "manifests" / "app.yaml")
    assert schema_cli.main(["--config", CONFIG, "resolve", "--file", manifest]) == 0
    out = capsys.readouterr().out
    assert "[0] Attached schema: Core for ConfigMap" in out
    assert "[2] Attached schema: Core for Deployment" in out


def test_resolve_missing_file(offline_service, tmp_path, capsys):
    missing = str(tmp_path / "missing.yaml")
    assert schema_cli.main(["--config", CONFIG, "resolve", "--file", missing]) == 2


def test_catalog_unknown_source(offline_service, capsys):
    assert schema_cli.main(["--config", CONFIG, "catalog", "Nope"]) == 1
    assert "Unknown source" in capsys.readouterr().out


def test_catalog_without_catalog(offline_service, capsys):
    assert schema_cli.main(["--config", CONFIG, "catalog", "Core"]) == 1
    assert "has no catalog" in capsys.readouterr().out
