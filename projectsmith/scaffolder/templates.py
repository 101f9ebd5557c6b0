"""Jinja2 rendering of the longer file skeletons.

Skeletons live under ``projectsmith/scaffolder/skeletons/`` as ``.j2`` files.
They are rendered with non-brace delimiters so that the literal
``{{PROJECT_NAME}}``-style placeholders they contain (and JSX's own
``{...}`` expressions) pass through Jinja untouched; placeholder
substitution happens afterwards, in :mod:`projectsmith.scaffolder.placeholders`.

Delimiters::

    <@ expression @>      variable
    <% statement %>       block
    <# comment #>         comment
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from projectsmith.utils import to_env_name, to_kebab_case, to_pascal_case

_DEFAULT_SKELETON_DIR = Path(__file__).parent / "skeletons"


class TemplateRenderer:
    """Renders ``.j2`` skeletons with a small, explicit context.

    Skeleton output depends only on the context passed in (file path and
    template facts), never on the project name, which keeps rendering
    deterministic per ``(file path, template)``.
    """

    def __init__(self, skeleton_dir: str | Path | None = None) -> None:
        if skeleton_dir is None:
            skeleton_dir = _DEFAULT_SKELETON_DIR
        self.skeleton_dir = Path(skeleton_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.skeleton_dir)),
            autoescape=select_autoescape([], default_for_string=False),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            variable_start_string="<@",
            variable_end_string="@>",
            block_start_string="<%",
            block_end_string="%>",
            comment_start_string="<#",
            comment_end_string="#>",
        )
        self.env.filters["kebab_case"] = to_kebab_case
        self.env.filters["pascal_case"] = to_pascal_case
        self.env.filters["env_name"] = to_env_name

    def render(self, skeleton: str, context: dict[str, Any]) -> str:
        """Render the skeleton at *skeleton* (relative to the skeleton dir)."""
        template = self.env.get_template(skeleton)
        return template.render(**context)

    def render_string(self, source: str, context: dict[str, Any]) -> str:
        """Render an inline skeleton fragment."""
        return self.env.from_string(source).render(**context)
