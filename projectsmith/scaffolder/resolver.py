"""Content resolution for template files.

:class:`ContentResolver` picks the first content rule matching a file path,
generates the body and applies placeholder substitution.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from projectsmith.errors import TemplateResolutionError
from projectsmith.models import Template
from projectsmith.scaffolder.generators import DEFAULT_RULES, ContentRule, FileContext
from projectsmith.scaffolder.placeholders import substitute
from projectsmith.scaffolder.templates import TemplateRenderer


class ContentResolver:
    """Produces the final content for one template file.

    Args:
        rules: Content rules tried in order; the built-in rule set by default.
        renderer: Skeleton renderer shared by the rules.
    """

    def __init__(
        self,
        rules: Sequence[ContentRule] | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.rules = tuple(DEFAULT_RULES if rules is None else rules)
        self.renderer = renderer or TemplateRenderer()

    def rule_for(self, file_path: str, template: Template) -> ContentRule | None:
        ctx = FileContext.create(file_path, template)
        for rule in self.rules:
            if rule.matches(ctx):
                return rule
        return None

    def generate(self, file_path: str, template: Template) -> str:
        """Unsubstituted content for *file_path*, placeholders still in place.

        Raises:
            TemplateResolutionError: If no rule matches the path.
        """
        rule = self.rule_for(file_path, template)
        if rule is None:
            raise TemplateResolutionError(file_path, template.id)
        return rule.generate(FileContext.create(file_path, template), self.renderer)

    def resolve(
        self,
        file_path: str,
        template: Template,
        variable_map: Mapping[str, str],
    ) -> str:
        """Generate the content for *file_path* and substitute placeholders.

        *variable_map* is the complete placeholder map (see
        :func:`~projectsmith.scaffolder.placeholders.build_placeholder_map`).
        """
        return substitute(self.generate(file_path, template), variable_map)
