"""Run configuration models for collaboration tests.

Defines dataclasses for parsing and representing YAML run files.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from ..discovery.module_listing import ModuleEntry
from ..discovery.scanner import DEFAULT_COLLABORATION_MODULE
from ..isolation.isolator import DEFAULT_BASE_DIR, DEFAULT_PREFIX

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class IsolationSpec:
    """Where isolated environments are created."""
    base_dir: str = DEFAULT_BASE_DIR
    prefix: str = DEFAULT_PREFIX
    remove_files: bool = False


@dataclass
class ResultsSpec:
    """Where results and reports go."""
    path: Optional[str] = None
    report_dir: Optional[str] = None


@dataclass
class RunConfig:
    """A complete collaboration run configuration."""
    leader: str
    modules: list[ModuleEntry] = field(default_factory=list)
    entry_point_group: Optional[str] = None
    collaboration_module: str = DEFAULT_COLLABORATION_MODULE
    isolation: IsolationSpec = field(default_factory=IsolationSpec)
    results: ResultsSpec = field(default_factory=ResultsSpec)
    log_level: str = "INFO"

    def __post_init__(self):
        self.log_level = str(self.log_level).upper()

    @property
    def enabled_modules(self) -> list[ModuleEntry]:
        return [m for m in self.modules if m.enabled]

    def to_dict(self) -> dict[str, Any]:
        """Convert run configuration to dictionary for serialization."""
        return {
            "leader": self.leader,
            "modules": [
                {"name": m.name, "package": m.package, "enabled": m.enabled}
                for m in self.modules
            ],
            "entry_point_group": self.entry_point_group,
            "collaboration_module": self.collaboration_module,
            "isolation": dict(self.isolation.__dict__),
            "results": dict(self.results.__dict__),
            "log_level": self.log_level,
        }


@dataclass
class ValidationError:
    """A single validation error."""
    path: str
    message: str
    severity: str = "error"  # "error" or "warning"


@dataclass
class ValidationResult:
    """Result of run configuration validation."""
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationError] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def __str__(self) -> str:
        if self.valid:
            msg = "Valid"
            if self.warnings:
                msg += f" ({self.warning_count} warnings)"
            return msg
        return f"Invalid: {self.error_count} errors, {self.warning_count} warnings"
