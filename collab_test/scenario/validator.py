"""Run configuration validator.

Validates parsed RunConfig objects against business rules.
"""

import re

from .schema import (
    RunConfig,
    ValidationError,
    ValidationResult,
    VALID_LOG_LEVELS,
)

_DOTTED_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")
_PREFIX = re.compile(r"^[A-Za-z0-9_]+$")


def validate_run_config(config: RunConfig) -> ValidationResult:
    """Validate a parsed RunConfig object.

    Checks:
    - Leader class path
    - Module names and packages
    - Collaboration module template
    - Isolation settings and log level

    Args:
        config: Parsed RunConfig to validate.

    Returns:
        ValidationResult with errors and warnings.
    """
    errors: list[ValidationError] = []
    warnings: list[ValidationError] = []

    _validate_leader(config, errors)
    _validate_modules(config, errors, warnings)
    _validate_isolation(config, errors)

    if "{package}" not in config.collaboration_module and "{name}" not in config.collaboration_module:
        errors.append(ValidationError(
            path="collaboration_module",
            message="Template must contain '{package}' or '{name}'.",
        ))

    if config.log_level not in VALID_LOG_LEVELS:
        errors.append(ValidationError(
            path="log_level",
            message=f"Invalid log level '{config.log_level}'. Must be one of: {', '.join(sorted(VALID_LOG_LEVELS))}",
        ))

    # Warn if nobody but the leader can take part
    if not config.enabled_modules and not config.entry_point_group:
        warnings.append(ValidationError(
            path="modules",
            message="No modules enabled. Only the leader will take part.",
            severity="warning",
        ))

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def _validate_leader(config: RunConfig, errors: list[ValidationError]) -> None:
    """Validate the leader class path."""
    module_name, sep, attr = config.leader.partition(":")
    if not sep or not _DOTTED_NAME.match(module_name) or not _DOTTED_NAME.match(attr):
        errors.append(ValidationError(
            path="leader",
            message=f"Invalid leader '{config.leader}'. Expected 'package.module:ClassName'.",
        ))


def _validate_modules(
    config: RunConfig,
    errors: list[ValidationError],
    warnings: list[ValidationError],
) -> None:
    """Validate the module listing."""
    seen: set[str] = set()

    for i, module in enumerate(config.modules):
        path = f"modules[{i}]"

        if not module.name:
            errors.append(ValidationError(
                path=f"{path}.name",
                message="Module 'name' is required and must not be empty.",
            ))
        elif module.name in seen:
            errors.append(ValidationError(
                path=f"{path}.name",
                message=f"Duplicate module '{module.name}'.",
            ))
        seen.add(module.name)

        if not _DOTTED_NAME.match(module.package):
            errors.append(ValidationError(
                path=f"{path}.package",
                message=f"Invalid package '{module.package}'. Must be an importable dotted name.",
            ))

        if not module.enabled:
            warnings.append(ValidationError(
                path=f"{path}.enabled",
                message=f"Module '{module.name}' is disabled and will not be scanned.",
                severity="warning",
            ))


def _validate_isolation(config: RunConfig, errors: list[ValidationError]) -> None:
    """Validate isolation settings."""
    isolation = config.isolation

    if not isolation.base_dir:
        errors.append(ValidationError(
            path="isolation.base_dir",
            message="'base_dir' must not be empty.",
        ))

    if not _PREFIX.match(isolation.prefix or ""):
        errors.append(ValidationError(
            path="isolation.prefix",
            message=f"Invalid prefix '{isolation.prefix}'. Use letters, digits and underscores only.",
        ))
