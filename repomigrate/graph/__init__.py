"""Module registry: catalog models and the dependency graph."""

from .catalog import DEFAULT_CATALOG, load_catalog
from .models import CatalogEntry, Module, ModuleType
from .registry import ModuleRegistry, load_registry

__all__ = [
    "DEFAULT_CATALOG",
    "CatalogEntry",
    "Module",
    "ModuleRegistry",
    "ModuleType",
    "load_catalog",
    "load_registry",
]
