"""Tests for apiVersion/kind detection and multi-document handling."""

import pytest

from conftest import FIXTURES
from k8s_yaml_schemas.exceptions import UnsupportedDocumentError
from k8s_yaml_schemas.identity import (
    MultiDocumentPolicy,
    extract_api_version_and_kind,
    first_group_segment,
    identify_documents,
    parse_api_version,
    split_documents,
)
from k8s_yaml_schemas.models import ResourceIdentity


@pytest.mark.parametrize(
    "api_version, expected",
    [
        ("apps/v1", ("apps", "v1")),
        ("v1", ("", "v1")),
        ("source.toolkit.fluxcd.io/v1beta2", ("source.toolkit.fluxcd.io", "v1beta2")),
        ("", ("", "")),
        (None, ("", "")),
        ("a/b/c", ("a", "b/c")),
    ],
)
def test_parse_api_version(api_version, expected):
    assert parse_api_version(api_version) == expected


def test_first_group_segment():
    assert first_group_segment("source.toolkit.fluxcd.io") == "source"
    assert first_group_segment("apps") == "apps"
    assert first_group_segment("") == ""


def test_identity_from_api_version():
    identity = ResourceIdentity.from_api_version("apps/v1", "Deployment")
    assert identity == ResourceIdentity("apps", "v1", "Deployment")
    assert identity.kind_token == "deployment"
    assert identity.api_version == "apps/v1"
    assert ResourceIdentity.from_api_version("v1", "Pod").api_version == "v1"


def test_extract_plain_keys():
    text = "apiVersion: apps/v1\nkind: Deployment\nmetadata:\n  name: web\n"
    assert extract_api_version_and_kind(text) == ("apps/v1", "Deployment")


def test_extract_quoted_values_and_comments():
    text = 'apiVersion: "networking.k8s.io/v1"  # ingress\nkind: \'Ingress\'\n'
    assert extract_api_version_and_kind(text) == ("networking.k8s.io/v1", "Ingress")


def test_extract_ignores_nested_keys():
    text = "metadata:\n  apiVersion: nested/v1\n  kind: Nested\n"
    assert extract_api_version_and_kind(text) == (None, None)


def test_extract_handles_crlf():
    text = "apiVersion: v1\r\nkind: Pod\r\n"
    assert extract_api_version_and_kind(text) == ("v1", "Pod")


def test_extract_tolerates_invalid_yaml():
    text = "apiVersion: v1\nkind: Service\nspec:\n  ports: [\n"
    assert extract_api_version_and_kind(text) == ("v1", "Service")


def test_split_documents_keeps_stream_indices():
    text = "a: 1\n---\n---\nb: 2\n"
    assert [index for index, _ in split_documents(text)] == [0, 2]


def test_identify_single_document():
    documents = identify_documents("apiVersion: batch/v1\nkind: CronJob\n")
    assert len(documents) == 1
    assert documents[0].identity == ResourceIdentity("batch", "v1", "CronJob")
    assert documents[0].reason is None


def test_identify_leading_marker():
    documents = identify_documents("---\napiVersion: v1\nkind: Service\n")
    assert len(documents) == 1
    assert documents[0].identity.kind == "Service"


def test_identify_multi_document_fixture():
    text = (FIXTURES / "manifests" / "app.yaml").read_text()
    documents = identify_documents(text)
    assert [(d.index, d.identity.kind) for d in documents] == [
        (0, "ConfigMap"),
        (2, "Deployment"),
    ]


def test_identify_missing_kind():
    documents = identify_documents("apiVersion: v1\nmetadata: {}\n")
    assert documents[0].identity is None
    assert documents[0].reason == "missing apiVersion/kind"


def test_identify_malformed_api_version():
    documents = identify_documents("apiVersion: apps/\nkind: Deployment\n")
    assert documents[0].identity is None
    assert documents[0].reason == "malformed apiVersion"


def test_identify_several_api_versions_without_separator():
    text = "apiVersion: v1\nkind: Pod\napiVersion: v1\nkind: Service\n"
    documents = identify_documents(text)
    assert len(documents) == 1
    assert documents[0].identity is None
    assert "multiple" in documents[0].reason


def test_identify_blank_text():
    assert identify_documents("") == []
    assert identify_documents("\n---\n\n") == []


def test_reject_policy_refuses_multiple_resources():
    text = "apiVersion: v1\nkind: Pod\n---\napiVersion: v1\nkind: Service\n"
    with pytest.raises(UnsupportedDocumentError):
        identify_documents(text, MultiDocumentPolicy.REJECT)


def test_reject_policy_accepts_single_resource():
    documents = identify_documents(
        "---\napiVersion: v1\nkind: Pod\n", MultiDocumentPolicy.REJECT
    )
    assert documents[0].identity.kind == "Pod"
