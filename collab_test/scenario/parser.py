"""YAML run configuration parser.

Parses YAML run files into RunConfig dataclass objects.
"""

from pathlib import Path
from typing import Union

import yaml

from ..discovery.module_listing import ModuleEntry
from .schema import IsolationSpec, ResultsSpec, RunConfig


def parse_run_config(file_path: Union[str, Path]) -> RunConfig:
    """Parse a YAML run file into a RunConfig object.

    Args:
        file_path: Path to the YAML run file.

    Returns:
        Parsed RunConfig object.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the YAML is malformed or missing required fields.
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Run file not found: {file_path}")

    if file_path.suffix not in (".yaml", ".yml"):
        raise ValueError(f"Expected .yaml or .yml file, got: {file_path.suffix}")

    with open(file_path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Malformed YAML in {file_path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty run file: {file_path}")

    return parse_run_config_data(data, source=str(file_path))


def parse_run_config_data(data: dict, source: str = "<inline>") -> RunConfig:
    """Parse a run configuration from a dictionary (already loaded YAML).

    Args:
        data: Dictionary with run configuration.
        source: Source identifier for error messages.

    Returns:
        Parsed RunConfig object.

    Raises:
        ValueError: If required fields are missing or malformed.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Run file must be a YAML mapping, got {type(data).__name__}")

    _require_fields(data, ["leader"], "run", source)

    # Parse modules
    modules_data = data.get("modules") or []
    if not isinstance(modules_data, list):
        raise ValueError(f"'modules' must be a list in {source}")

    modules = []
    for i, module_data in enumerate(modules_data):
        if isinstance(module_data, str):
            module_data = {"name": module_data}
        if not isinstance(module_data, dict):
            raise ValueError(f"Module {i} must be a mapping or a name in {source}")
        _require_fields(module_data, ["name"], f"modules[{i}]", source)
        modules.append(ModuleEntry(
            name=str(module_data["name"]),
            package=str(module_data.get("package") or module_data["name"]),
            enabled=bool(module_data.get("enabled", True)),
        ))

    isolation = IsolationSpec(**_section(data, "isolation", IsolationSpec, source))
    results = ResultsSpec(**_section(data, "results", ResultsSpec, source))

    return RunConfig(
        leader=str(data["leader"]),
        modules=modules,
        isolation=isolation,
        results=results,
        **{
            k: v for k, v in data.items()
            if k in ("entry_point_group", "collaboration_module", "log_level")
            and v is not None
        },
    )


def _section(data: dict, name: str, cls: type, source: str) -> dict:
    """Known fields of an optional nested mapping."""
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' must be a mapping in {source}")
    return {
        k: v for k, v in section.items()
        if k in cls.__dataclass_fields__
    }


def _require_fields(
    data: dict, fields: list[str], context: str, source: str
) -> None:
    """Check that required fields exist in a dictionary."""
    for field_name in fields:
        if field_name not in data:
            raise ValueError(
                f"Missing required field '{field_name}' in {context} ({source})"
            )
