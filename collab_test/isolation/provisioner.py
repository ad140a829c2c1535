"""File namespace provisioning for isolated environments."""

import logging
import os
import shutil
from pathlib import Path
from typing import Protocol

log = logging.getLogger(__name__)


class FileProvisioner(Protocol):
    """Creates and removes file namespaces."""

    def provision(self, path: Path) -> bool:
        ...

    def remove(self, path: Path) -> bool:
        ...


class DirectoryProvisioner:
    """Provisions file namespaces as writable directories."""

    def provision(self, path: Path) -> bool:
        """Create the directory if absent.

        Returns:
            True if the directory exists and is writable afterwards.
        """
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log.error("Could not create file namespace %s: %s", path, e)
            return False

        if not os.access(path, os.W_OK):
            log.error("File namespace %s is not writable", path)
            return False
        return True

    def remove(self, path: Path) -> bool:
        """Remove the directory tree. Missing directories count as removed."""
        if not path.exists():
            return True
        try:
            shutil.rmtree(path)
        except OSError as e:
            log.warning("Could not remove file namespace %s: %s", path, e)
            return False
        return True
