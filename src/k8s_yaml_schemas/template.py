"""Flat ``{{.Name}}`` template rendering for schema URLs.

Templates come from trusted configuration, so rendering never fails: unknown
names render as an empty string and there is no recursion, no conditionals and
no escaping.

Variables available to every template:

        * ``Group``: API group (``""`` for core resources)
        * ``ResourceAPIVersion``: API version, e.g. ``v1``
        * ``ResourceKind``: lowercase kind, e.g. ``deployment``
        * ``GroupSegment``: group up to its first ``.``, e.g. ``toolkit``
        * ``KindSuffix``: per-source suffix (see :func:`compute_kind_suffix`)

Example:
        >>> render_template("{{.Foo}}-{{.Bar}}", {"Foo": "a", "Bar": "b"})
        'a-b'
"""

from __future__ import annotations

import re
from typing import Mapping, Optional, Union

from .identity import first_group_segment
from .models import KindSuffix, KindSuffixStyle, ResourceIdentity, TemplateVars

_PLACEHOLDER = re.compile(r"\{\{\s*\.([A-Za-z0-9_]+)\s*\}\}")


def render_template(template: Optional[str], variables: Mapping[str, object]) -> str:
    """Substitute every ``{{.Name}}`` placeholder with ``variables[Name]``."""
    if not template:
        return ""

    def _substitute(match: "re.Match[str]") -> str:
        value = variables.get(match.group(1))
        return "" if value is None else str(value)

    return _PLACEHOLDER.sub(_substitute, template)


def compute_kind_suffix(
    style: Union[KindSuffix, str, None],
    variables: Mapping[str, object],
    custom_template: Optional[str] = None,
) -> str:
    """Compute the ``KindSuffix`` value for one source.

    Args:
        style: A :class:`KindSuffix` or the raw configured string
            (``none``, ``flux``, ``k8s``, a custom template, or unset).
        variables: Template variables; ``GroupSegment`` and
            ``ResourceAPIVersion`` are read here.
        custom_template: ``kind_suffix_template`` used when ``style`` is unset.

    Returns:
        str: ``""`` for ``none``; ``-<segment>-<version>`` (or ``-<version>``
        without a segment) for ``flux``; ``-<version>`` for ``k8s`` and when
        unset; the rendered template otherwise.

    Example:
        >>> compute_kind_suffix("flux", {"GroupSegment": "toolkit", "ResourceAPIVersion": "v1"})
        '-toolkit-v1'
    """
    suffix = style if isinstance(style, KindSuffix) else KindSuffix.parse(style, custom_template)
    version = str(variables.get("ResourceAPIVersion") or "")

    if suffix.style is KindSuffixStyle.NONE:
        return ""
    if suffix.style is KindSuffixStyle.FLUX:
        segment = str(variables.get("GroupSegment") or "")
        if not segment:
            return f"-{version}"
        return f"-{segment}-{version}"
    if suffix.style is KindSuffixStyle.CUSTOM:
        return render_template(suffix.template, variables)
    return f"-{version}"


def build_template_vars(
    identity: ResourceIdentity, kind_suffix: Optional[KindSuffix] = None
) -> TemplateVars:
    """Compute the variables for one ``(identity, source)`` pair."""
    variables: TemplateVars = {
        "Group": identity.group,
        "ResourceAPIVersion": identity.version,
        "ResourceKind": identity.kind_token,
        "GroupSegment": first_group_segment(identity.group),
        "KindSuffix": "",
    }
    variables["KindSuffix"] = compute_kind_suffix(kind_suffix or KindSuffix(), variables)
    return variables
