"""Discovery module - finding the participants of a collaboration test."""

from .module_listing import (
    DEFAULT_ENTRY_POINT_GROUP,
    ModuleEntry,
    ModuleListing,
    build_listing,
    entry_point_modules,
)
from .registry import CollaboratorFactory, CollaboratorRegistry
from .scanner import DEFAULT_COLLABORATION_MODULE, ModuleScanner, load_class

__all__ = [
    "DEFAULT_COLLABORATION_MODULE",
    "DEFAULT_ENTRY_POINT_GROUP",
    "CollaboratorFactory",
    "CollaboratorRegistry",
    "ModuleEntry",
    "ModuleListing",
    "ModuleScanner",
    "build_listing",
    "entry_point_modules",
    "load_class",
]
