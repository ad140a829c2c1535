"""Isolation module - scoped storage/file namespaces."""

from .isolator import (
    EnvironmentContext,
    EnvironmentIsolator,
    Namespace,
    NamespaceState,
    build_isolator,
)
from .provisioner import DirectoryProvisioner, FileProvisioner

__all__ = [
    "DirectoryProvisioner",
    "EnvironmentContext",
    "EnvironmentIsolator",
    "FileProvisioner",
    "Namespace",
    "NamespaceState",
    "build_isolator",
]
