import pytest

from k8s_yaml_schemas.config import default_sources
from k8s_yaml_schemas.models import KindSuffix, KindSuffixStyle, ResourceIdentity
from k8s_yaml_schemas.template import (
    build_template_vars,
    compute_kind_suffix,
    render_template,
)

FLUX_VARS = {"GroupSegment": "source", "ResourceAPIVersion": "v1"}


def test_render_substitutes_known_names():
    assert render_template("{{.Foo}}-{{.Bar}}", {"Foo": "a", "Bar": "b"}) == "a-b"


def test_render_unknown_names_are_empty():
    assert render_template("x{{.Missing}}y", {}) == "xy"


def test_render_allows_inner_whitespace():
    assert render_template("{{ .Foo }}", {"Foo": "a"}) == "a"


def test_render_empty_template():
    assert render_template("", {"Foo": "a"}) == ""
    assert render_template(None, {"Foo": "a"}) == ""


def test_render_is_not_recursive():
    assert render_template("{{.A}}", {"A": "{{.B}}", "B": "b"}) == "{{.B}}"


@pytest.mark.parametrize(
    "style, expected",
    [
        ("flux", "-source-v1"),
        ("k8s", "-v1"),
        ("none", ""),
        (None, "-v1"),
        ("", "-v1"),
        ("_{{.ResourceAPIVersion}}", "_v1"),
    ],
)
def test_compute_kind_suffix(style, expected):
    assert compute_kind_suffix(style, FLUX_VARS) == expected


def test_flux_suffix_without_group_segment():
    assert compute_kind_suffix("flux", {"ResourceAPIVersion": "v1"}) == "-v1"


def test_custom_template_used_when_style_unset():
    assert compute_kind_suffix(None, FLUX_VARS, custom_template=".{{.GroupSegment}}") == ".source"


def test_kind_suffix_parse_variants():
    assert KindSuffix.parse("flux").style is KindSuffixStyle.FLUX
    assert KindSuffix.parse(None).style is KindSuffixStyle.K8S
    custom = KindSuffix.parse("-{{.Group}}")
    assert custom.style is KindSuffixStyle.CUSTOM
    assert custom.template == "-{{.Group}}"
    assert KindSuffix.parse("custom", "-x").template == "-x"


def test_build_template_vars_for_flux_resource():
    identity = ResourceIdentity.from_api_version("source.toolkit.fluxcd.io/v1", "GitRepository")
    variables = build_template_vars(identity, KindSuffix.parse("flux"))
    assert variables == {
        "Group": "source.toolkit.fluxcd.io",
        "ResourceAPIVersion": "v1",
        "ResourceKind": "gitrepository",
        "GroupSegment": "source",
        "KindSuffix": "-source-v1",
    }


def test_core_group_variables():
    variables = build_template_vars(ResourceIdentity("", "v1", "ConfigMap"))
    assert variables["Group"] == ""
    assert variables["GroupSegment"] == ""
    assert variables["KindSuffix"] == "-v1"


def test_default_source_templates_render_known_urls():
    sources = {source.name: source for source in default_sources()}
    flux = sources["Flux"]
    identity = ResourceIdentity.from_api_version("source.toolkit.fluxcd.io/v1", "GitRepository")
    url = render_template(flux.url_template, build_template_vars(identity, flux.kind_suffix))
    assert url.endswith("/flux2-schemas/refs/heads/main/gitrepository-source-v1.json")

    core = sources["Kubernetes core"]
    identity = ResourceIdentity.from_api_version("apps/v1", "Deployment")
    url = render_template(core.url_template, build_template_vars(identity, core.kind_suffix))
    assert url.endswith("/master-standalone-strict/deployment-v1.json")
