"""Environment isolator.

Switches the active storage/file namespace to a fresh, uniquely named one
for the duration of a run, and restores the previous namespace afterwards.
"""

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from ..errors import EnvironmentIsolationError
from .provisioner import DirectoryProvisioner, FileProvisioner

log = logging.getLogger(__name__)

DEFAULT_PREFIX = "simpletest"
DEFAULT_BASE_DIR = "files"


@dataclass(frozen=True)
class Namespace:
    """A storage prefix plus a file directory."""
    storage_prefix: str
    file_path: Path


class NamespaceState:
    """Holds the currently active namespace.

    One instance is shared by everything that needs to know where storage
    and files currently live; the isolator switches it.
    """

    def __init__(self, active: Optional[Namespace] = None):
        self.active = active or Namespace(storage_prefix="", file_path=Path(DEFAULT_BASE_DIR))

    def switch(self, namespace: Namespace) -> Namespace:
        """Make namespace active and return the one it replaced."""
        previous, self.active = self.active, namespace
        return previous


@dataclass
class EnvironmentContext:
    """An acquired isolated namespace and the namespace to restore."""
    name: str
    namespace: Namespace
    previous: Namespace
    statics: dict[str, Any] = field(default_factory=dict)
    released: bool = False

    @property
    def storage_prefix(self) -> str:
        return self.namespace.storage_prefix

    @property
    def file_path(self) -> Path:
        return self.namespace.file_path

    def reset_statics(self) -> None:
        """Drop per-iteration cached state."""
        self.statics.clear()


class EnvironmentIsolator:
    """Acquires and releases isolated namespaces, one at a time."""

    def __init__(
        self,
        state: Optional[NamespaceState] = None,
        provisioner: Optional[FileProvisioner] = None,
        prefix: str = DEFAULT_PREFIX,
        remove_files: bool = False,
    ):
        """Initialize isolator.

        Args:
            state: Namespace state to switch. Default: a fresh state rooted
                   at ./files.
            provisioner: Creates file namespaces. Default: DirectoryProvisioner.
            prefix: Prefix for generated storage and directory names.
            remove_files: Remove the file namespace on release.
        """
        self.state = state or NamespaceState()
        self.provisioner = provisioner or DirectoryProvisioner()
        self.prefix = prefix
        self.remove_files = remove_files
        self._active: Optional[EnvironmentContext] = None

    @property
    def active(self) -> Optional[EnvironmentContext]:
        return self._active

    def acquire(self, base_name: str) -> EnvironmentContext:
        """Switch to a new isolated namespace.

        Args:
            base_name: Human-readable part of the namespace name (the
                       scenario name).

        Returns:
            The acquired EnvironmentContext.

        Raises:
            EnvironmentIsolationError: If a context is already active or the
                file namespace cannot be provisioned.
        """
        if self._active is not None:
            raise EnvironmentIsolationError(
                f"Environment '{self._active.name}' is still active; "
                "release it before acquiring another."
            )

        previous = self.state.active
        suffix = uuid.uuid4().hex[:12]
        name = f"{base_name}-{suffix}"
        namespace = Namespace(
            storage_prefix=f"{self.prefix}{suffix}_",
            file_path=previous.file_path / self.prefix / suffix,
        )

        if not self.provisioner.provision(namespace.file_path):
            raise EnvironmentIsolationError(
                f"Could not provision file namespace {namespace.file_path}"
            )

        self.state.switch(namespace)
        self._active = EnvironmentContext(name=name, namespace=namespace, previous=previous)
        log.info("Acquired environment %s (storage prefix %s)", name, namespace.storage_prefix)
        return self._active

    def release(self, context: EnvironmentContext) -> None:
        """Restore the namespace that was active before acquire().

        Releasing an already released context does nothing.
        """
        if context.released:
            return

        self.state.switch(context.previous)
        context.released = True
        if self._active is context:
            self._active = None

        if self.remove_files:
            self.provisioner.remove(context.file_path)
        log.info("Released environment %s", context.name)

    @contextmanager
    def isolated(self, base_name: str) -> Iterator[EnvironmentContext]:
        """Acquire for the duration of a with-block."""
        context = self.acquire(base_name)
        try:
            yield context
        finally:
            self.release(context)


def build_isolator(
    base_dir: Union[str, Path] = DEFAULT_BASE_DIR,
    prefix: str = DEFAULT_PREFIX,
    remove_files: bool = False,
) -> EnvironmentIsolator:
    """Create an isolator rooted at base_dir."""
    state = NamespaceState(Namespace(storage_prefix="", file_path=Path(base_dir)))
    return EnvironmentIsolator(state=state, prefix=prefix, remove_files=remove_files)
