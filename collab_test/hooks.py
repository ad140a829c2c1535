"""Extension points available to collaborators.

Discovering and dispatching hook implementations is left to the
application; the engine only forwards to whatever ExtensionPoints object
the run was given.
"""

from typing import Any, Protocol


class ExtensionPoints(Protocol):
    """Hook dispatch contract."""

    def invoke_on(self, module: str, hook: str, *args: Any) -> Any:
        """Invoke one module's implementation of hook."""
        ...

    def invoke_all(self, hook: str, *args: Any) -> list[Any]:
        """Invoke hook on every enabled module and collect the results."""
        ...

    def alter_all(self, hook: str, value: Any, *context: Any) -> Any:
        """Let every module's alter implementation change value."""
        ...


class NullExtensionPoints:
    """No hook implementations: nothing is invoked, nothing is altered."""

    def invoke_on(self, module: str, hook: str, *args: Any) -> Any:
        return None

    def invoke_all(self, hook: str, *args: Any) -> list[Any]:
        return []

    def alter_all(self, hook: str, value: Any, *context: Any) -> Any:
        return value
