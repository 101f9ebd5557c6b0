"""Template catalog loading and lookup.

The catalog is read from two JSON resources shipped with the package:

``template-config.json``
    ``{id: {directories, files, githubRepository?, githubBranch?, variables?}}``.
    Entries may also carry their own ``name`` (newer format); legacy entries
    without ``variables`` are accepted unchanged.

``template-metadata.json``
    ``{id: {displayName, description, category, features, technologies}}``.

Both paths can be overridden through :class:`~projectsmith.config.Config`.
When the catalog file is missing a small built-in catalog is used instead.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from projectsmith.errors import TemplateVariableError, UnknownTemplateError
from projectsmith.models import (
    RemoteTemplateSource,
    Template,
    TemplateCategory,
    TemplateVariable,
    VariableType,
)
from projectsmith.utils import load_json, print_warning

_RESOURCE_DIR = Path(__file__).parent
DEFAULT_CONFIG_PATH = _RESOURCE_DIR / "template-config.json"
DEFAULT_METADATA_PATH = _RESOURCE_DIR / "template-metadata.json"

_TRUE_VALUES = ("true", "yes", "1", "on")
_FALSE_VALUES = ("false", "no", "0", "off")

# Used only when no catalog resource can be found.
_BUILTIN_CATALOG: dict[str, dict[str, Any]] = {
    "blog": {
        "directories": ["components/blog", "content/posts", "pages/api/posts"],
        "files": ["components/blog/PostCard.jsx", "content/posts/example.md"],
    },
    "ecommerce": {
        "directories": ["components/product", "components/cart", "pages/api/products"],
        "files": ["components/product/ProductCard.jsx", "components/cart/CartItem.jsx"],
    },
    "nextjs-google-auth": {
        "directories": ["app/(auth)/login", "app/(protected)/dashboard", "lib/auth"],
        "files": ["app/layout.tsx", "app/page.tsx", "middleware.ts"],
    },
}


class TemplateCatalog:
    """Read-only registry of the templates a project can be created from."""

    def __init__(self, templates: Iterable[Template] = ()) -> None:
        self._templates: dict[str, Template] = {t.id: t for t in templates}

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def load(
        cls,
        config_path: str | Path | None = None,
        metadata_path: str | Path | None = None,
    ) -> "TemplateCatalog":
        """Load the catalog from JSON, falling back to the built-in set.

        Raises:
            ValueError: If the catalog file exists but is malformed.
        """
        config_file = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        metadata_file = Path(metadata_path) if metadata_path else DEFAULT_METADATA_PATH

        if config_file.is_file():
            try:
                raw = load_json(config_file)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Malformed template catalog {config_file}: {exc}") from exc
        else:
            print_warning(f"Template catalog not found at {config_file}; using built-in templates")
            raw = _BUILTIN_CATALOG

        metadata: dict[str, Any] = {}
        if metadata_file.is_file():
            try:
                metadata = load_json(metadata_file)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Malformed template metadata {metadata_file}: {exc}") from exc

        return cls.from_dict(raw, metadata)

    @classmethod
    def from_dict(
        cls,
        config: Mapping[str, Any],
        metadata: Mapping[str, Any] | None = None,
    ) -> "TemplateCatalog":
        """Build a catalog from already-parsed catalog and metadata mappings."""
        metadata = metadata or {}
        templates: list[Template] = []
        for key, entry in config.items():
            if not isinstance(entry, Mapping):
                raise ValueError(f"Template entry {key!r} must be an object")
            try:
                templates.append(_build_template(key, entry, metadata.get(key) or {}))
            except ValidationError as exc:
                raise ValueError(f"Invalid template {key!r}: {exc}") from exc
        return cls(templates)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def list_templates(self) -> list[Template]:
        """All templates, sorted by id."""
        return [self._templates[key] for key in sorted(self._templates)]

    def get(self, template_id: str) -> Template | None:
        return self._templates.get(template_id)

    def require(self, template_id: str) -> Template:
        """Like :meth:`get` but raises :class:`UnknownTemplateError`."""
        template = self._templates.get(template_id)
        if template is None:
            raise UnknownTemplateError(template_id)
        return template

    def by_category(self, category: TemplateCategory | str) -> list[Template]:
        category = TemplateCategory(category)
        return [t for t in self.list_templates() if t.category is category]

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._templates

    def __iter__(self) -> Iterator[Template]:
        return iter(self.list_templates())

    def __len__(self) -> int:
        return len(self._templates)

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_variables(template: Template, values: Mapping[str, str] | None = None) -> dict[str, str]:
        """Build the ``{{id}} -> value`` map for *template*.

        User *values* (keyed by variable id) win over declared defaults.
        Values for ids the template does not declare are passed through so
        custom placeholders can still be substituted.

        Raises:
            TemplateVariableError: A required variable has no value, or a
                value does not fit the variable's type.
        """
        values = dict(values or {})
        resolved: dict[str, str] = {}

        for variable in template.variables:
            value = values.pop(variable.id, None)
            if value is None:
                value = variable.default_value
            if value is None or value == "":
                if variable.required:
                    raise TemplateVariableError(variable.id, "a value is required")
                continue
            resolved[variable.token] = _coerce_value(variable, str(value))

        for key, value in values.items():
            token = key if key.startswith("{{") else "{{" + key + "}}"
            resolved[token] = str(value)
        return resolved


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_template(key: str, entry: Mapping[str, Any], meta: Mapping[str, Any]) -> Template:
    remote = None
    if entry.get("githubRepository"):
        remote = RemoteTemplateSource(
            repository=entry["githubRepository"],
            branch=entry.get("githubBranch") or "main",
        )

    variables = tuple(
        TemplateVariable.model_validate(item) for item in entry.get("variables") or ()
    )

    category = meta.get("category")
    if category is None:
        category = TemplateCategory.BLANK if key.endswith("-blank") else TemplateCategory.FULL

    return Template(
        id=entry.get("name") or key,
        category=category,
        directories=tuple(entry.get("directories") or ()),
        files=tuple(entry.get("files") or ()),
        variables=variables,
        remote=remote,
        display_name=meta.get("displayName", ""),
        description=meta.get("description", ""),
        features=tuple(meta.get("features") or ()),
        technologies=tuple(meta.get("technologies") or ()),
    )


def _coerce_value(variable: TemplateVariable, value: str) -> str:
    """Validate *value* against the variable type and normalise it."""
    if variable.type is VariableType.BOOLEAN:
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return "true"
        if lowered in _FALSE_VALUES:
            return "false"
        raise TemplateVariableError(variable.id, f"expected a boolean, got {value!r}")

    if variable.type is VariableType.NUMBER:
        try:
            float(value)
        except ValueError:
            raise TemplateVariableError(variable.id, f"expected a number, got {value!r}") from None
        return value.strip()

    if variable.type is VariableType.CHOICE and variable.options:
        if value not in variable.options:
            allowed = ", ".join(variable.options)
            raise TemplateVariableError(variable.id, f"{value!r} is not one of: {allowed}")

    return value
