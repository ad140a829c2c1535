"""Enabled-module listing.

The listing says which modules take part in collaboration tests and where
their code lives. It is assembled from the run configuration and from an
installed-package entry-point group.
"""

import importlib.metadata as metadata
import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

log = logging.getLogger(__name__)

DEFAULT_ENTRY_POINT_GROUP = "collab_test.modules"


@dataclass
class ModuleEntry:
    """One module known to the environment."""
    name: str
    package: str
    enabled: bool = True


@dataclass
class ModuleListing:
    """Ordered listing of modules; the first entry for a name wins."""
    entries: list[ModuleEntry] = field(default_factory=list)

    def add(self, entry: ModuleEntry) -> bool:
        """Append entry unless a module of the same name is listed."""
        if any(e.name == entry.name for e in self.entries):
            log.debug("Module %s already listed; ignoring %s", entry.name, entry.package)
            return False
        self.entries.append(entry)
        return True

    def extend(self, entries: Iterable[ModuleEntry]) -> None:
        for entry in entries:
            self.add(entry)

    def enabled(self) -> Iterator[ModuleEntry]:
        """Enabled modules in listing order."""
        return (e for e in self.entries if e.enabled)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.enabled()]


def entry_point_modules(group: str = DEFAULT_ENTRY_POINT_GROUP) -> list[ModuleEntry]:
    """Modules advertised by installed distributions.

    Each entry point's name is the module name and its value the import
    package, e.g. ``billing = billing_pkg``.
    """
    entries = []
    for ep in metadata.entry_points(group=group):
        entries.append(ModuleEntry(name=ep.name, package=ep.value.split(":")[0]))
    return entries


def build_listing(
    modules: Iterable[ModuleEntry] = (),
    entry_point_group: Optional[str] = None,
) -> ModuleListing:
    """Configured modules first, then entry-point modules."""
    listing = ModuleListing()
    listing.extend(modules)
    if entry_point_group:
        listing.extend(entry_point_modules(entry_point_group))
    return listing
