"""projectsmith scaffolder: turns a catalog template into a project tree.

Quick usage::

    from projectsmith.scaffolder import FilesystemMaterializer

    materializer = FilesystemMaterializer(log=print)
    project_path = await materializer.materialize(template, configuration)
"""

from projectsmith.scaffolder.env_writer import EnvFiles, EnvironmentWriter
from projectsmith.scaffolder.materializer import FilesystemMaterializer
from projectsmith.scaffolder.resolver import ContentResolver
from projectsmith.scaffolder.templates import TemplateRenderer

__all__ = [
    "ContentResolver",
    "EnvFiles",
    "EnvironmentWriter",
    "FilesystemMaterializer",
    "TemplateRenderer",
]
