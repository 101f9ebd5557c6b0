"""Template catalog: the templates a project can be created from."""

from projectsmith.catalog.loader import TemplateCatalog

__all__ = ["TemplateCatalog"]
