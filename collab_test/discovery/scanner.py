"""Resolves collaborator classes by naming convention.

For every enabled module, the scanner imports the conventional
collaboration module (``<package>.tests.collaboration`` by default) and
looks for a Collaborator subclass named after the scenario. Modules
without one are skipped silently; that is the normal case. A module that
fails to import is skipped too, with a warning.
"""

import importlib
import logging
from typing import Optional

from ..collaborator import Collaborator
from .module_listing import ModuleEntry, ModuleListing
from .registry import CollaboratorRegistry

log = logging.getLogger(__name__)

DEFAULT_COLLABORATION_MODULE = "{package}.tests.collaboration"


def load_class(path: str) -> type:
    """Import a class from a 'package.module:ClassName' path.

    Raises:
        ValueError: If path is not in 'module:Class' form.
        ImportError: If the module cannot be imported.
        AttributeError: If the module has no such attribute.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected 'package.module:ClassName', got '{path}'")
    module = importlib.import_module(module_name)
    obj = module
    for part in attr.split("."):
        obj = getattr(obj, part)
    if not isinstance(obj, type):
        raise ValueError(f"'{path}' is not a class")
    return obj


def _is_missing(error: ModuleNotFoundError, module_name: str) -> bool:
    # The conventional module (or one of its parents) is absent, as opposed
    # to a module that exists but imports something missing.
    missing = error.name or ""
    return module_name == missing or module_name.startswith(missing + ".")


class ModuleScanner:
    """Finds scenario implementations in the enabled modules."""

    def __init__(self, listing: ModuleListing, template: str = DEFAULT_COLLABORATION_MODULE):
        """Initialize scanner.

        Args:
            listing: Modules to scan.
            template: Import path of the collaboration module, with a
                      '{package}' placeholder.
        """
        self.listing = listing
        self.template = template

    def resolve(self, entry: ModuleEntry, scenario_name: str) -> Optional[type]:
        """Collaborator class for scenario_name in entry, or None."""
        module_name = self.template.format(package=entry.package, name=entry.name)
        try:
            module = importlib.import_module(module_name)
            cls = getattr(module, scenario_name, None)
        except Exception as e:
            if isinstance(e, ModuleNotFoundError) and _is_missing(e, module_name):
                log.debug("Module %s has no %s", entry.name, module_name)
                return None
            log.warning("Skipping module %s: %s failed to import", entry.name, module_name, exc_info=True)
            return None

        if not (isinstance(cls, type) and issubclass(cls, Collaborator)):
            log.debug("%s does not implement %s", module_name, scenario_name)
            return None
        return cls

    def populate(self, registry: CollaboratorRegistry, scenario_name: str) -> int:
        """Register every implementation found.

        Returns:
            Number of collaborators registered.
        """
        count = 0
        for entry in self.listing.enabled():
            cls = self.resolve(entry, scenario_name)
            if cls is None:
                continue
            registry.register_class(cls, participant_id=entry.name, scenario_name=scenario_name)
            count += 1
        log.info("Found %d collaborator(s) for %s", count, scenario_name)
        return count
