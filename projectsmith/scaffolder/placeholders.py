"""Literal ``{{NAME}}`` placeholder substitution.

Substitution is a single pass over the content: every placeholder in the map
is matched by one alternation regex, so a value that itself contains
``{{...}}`` is inserted as-is and never expanded again.  Placeholders that
are not in the map are left verbatim.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from projectsmith.utils import to_kebab_case, to_pascal_case

PROJECT_NAME = "{{PROJECT_NAME}}"
PROJECT_NAME_KEBAB = "{{PROJECT_NAME_KEBAB}}"
PROJECT_NAME_PASCAL = "{{PROJECT_NAME_PASCAL}}"

STANDARD_PLACEHOLDERS = (PROJECT_NAME, PROJECT_NAME_KEBAB, PROJECT_NAME_PASCAL)

_PLACEHOLDER_RE = re.compile(r"\{\{[A-Za-z0-9_]+\}\}")


def build_placeholder_map(
    project_name: str, variables: Mapping[str, str] | None = None
) -> dict[str, str]:
    """The full substitution map for one project.

    Template variables may not override the three standard project-name
    placeholders.
    """
    mapping = dict(variables or {})
    mapping[PROJECT_NAME] = project_name
    mapping[PROJECT_NAME_KEBAB] = to_kebab_case(project_name)
    mapping[PROJECT_NAME_PASCAL] = to_pascal_case(project_name)
    return mapping


def substitute(content: str, mapping: Mapping[str, str]) -> str:
    """Replace every key of *mapping* found in *content* in one pass."""
    if not mapping or "{{" not in content:
        return content
    # Longest first so no key can shadow a longer one sharing its prefix.
    keys = sorted(mapping, key=len, reverse=True)
    pattern = re.compile("|".join(re.escape(key) for key in keys))
    return pattern.sub(lambda match: mapping[match.group(0)], content)


def find_unresolved_placeholders(content: str) -> list[str]:
    """Distinct ``{{NAME}}`` tokens still present, in order of first appearance."""
    seen: dict[str, None] = {}
    for match in _PLACEHOLDER_RE.finditer(content):
        seen.setdefault(match.group(0), None)
    return list(seen)
