"""CLI entry point for collaboration tests.

    collab-test run <run.yaml> [options]
    collab-test validate <run.yaml>
    collab-test check <results.jsonl>

Every command prints one flow-style JSON object on stdout; logs go to
stderr.
"""

import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional

import click

from .collaborator import Collaborator
from .discovery import CollaboratorRegistry, ModuleScanner, build_listing, load_class
from .errors import CollaborationError
from .isolation import build_isolator
from .reporting import JsonReporter
from .results import JsonLinesResultSink, MemoryResultSink, ResultLog, load_result_log
from .runner import ExecutionEngine
from .scenario import RunConfig, parse_run_config, validate_run_config

log = logging.getLogger(__name__)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def main(ctx: click.Context, verbose: bool):
    """Collaboration test tool."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@main.command()
@click.argument("config_file", type=click.Path(path_type=Path))
@click.option("--results", "results_path", type=click.Path(path_type=Path), help="Append results to this JSON-lines file.")
@click.option("--save-report", is_flag=True, help="Save the JSON report to a file.")
@click.option("--report-dir", type=click.Path(path_type=Path), help="Directory for saved reports.")
@click.option("--pretty", is_flag=True, help="Pretty print output.")
@click.pass_context
def run(
    ctx: click.Context,
    config_file: Path,
    results_path: Optional[Path],
    save_report: bool,
    report_dir: Optional[Path],
    pretty: bool,
):
    """Run the collaboration test described by CONFIG_FILE."""
    config = _load_config(config_file, "run")
    configure_logging(config.log_level, ctx.obj.get("verbose", False))

    if results_path is None and config.results.path:
        results_path = Path(config.results.path)
    if report_dir is None and config.results.report_dir:
        report_dir = Path(config.results.report_dir)

    start_time = time.time()
    reporter = JsonReporter()

    try:
        engine = build_engine(config, results_path)
    except KeyboardInterrupt:
        output_error("run", "Test interrupted by user", duration_ms=_elapsed_ms(start_time))
        sys.exit(130)
    except Exception as e:
        output_error("run", f"Test execution failed: {e}", duration_ms=_elapsed_ms(start_time))
        sys.exit(1)

    result = None
    error = None
    try:
        result = engine.run()
    except KeyboardInterrupt:
        output_error("run", "Test interrupted by user", duration_ms=_elapsed_ms(start_time))
        sys.exit(130)
    except CollaborationError as e:
        error = str(e)

    scenario = engine.leader.get_scenario_name()
    report = reporter.generate(_result_log(engine, results_path), result, scenario_name=scenario, error=error)

    report_path = None
    if save_report:
        target = (report_dir or Path(".")) / f"collab_report_{scenario}_{engine.run_id[:8]}.json"
        try:
            report_path = str(reporter.save(report, target))
        except OSError as e:
            log.warning("Failed to save report: %s", e)

    flow_output = reporter.generate_flow_output(report, "run", report_path)
    _emit(flow_output, pretty)

    if not flow_output["success"]:
        sys.exit(1)


@main.command()
@click.argument("config_file", type=click.Path(path_type=Path))
def validate(config_file: Path):
    """Validate CONFIG_FILE without running anything."""
    config = _load_config(config_file, "validate")
    validation = validate_run_config(config)

    _emit({
        "success": validation.valid,
        "command": "validate",
        "data": {
            "errors": [f"{e.path}: {e.message}" for e in validation.errors],
            "warnings": [f"{w.path}: {w.message}" for w in validation.warnings],
        },
        "message": str(validation),
    })

    if not validation.valid:
        sys.exit(1)


@main.command()
@click.argument("results_file", type=click.Path(path_type=Path))
@click.option("--run-id", help="Only check this run.")
@click.option("--pretty", is_flag=True, help="Pretty print output.")
def check(results_file: Path, run_id: Optional[str], pretty: bool):
    """Check RESULTS_FILE for failures and crash evidence."""
    try:
        result_log = load_result_log(results_file, run_id=run_id)
    except (FileNotFoundError, ValueError) as e:
        output_error("check", str(e))
        sys.exit(1)

    reporter = JsonReporter()
    report = reporter.generate(result_log)
    flow_output = reporter.generate_flow_output(report, "check")
    _emit(flow_output, pretty)

    if not flow_output["success"]:
        sys.exit(1)


def build_engine(config: RunConfig, results_path: Optional[Path] = None) -> ExecutionEngine:
    """Wire leader, registry, isolator and sink from a run configuration.

    Raises:
        ValueError: If the leader is not a Collaborator subclass.
        ImportError: If the leader or a collaboration module cannot be imported.
    """
    leader_cls = load_class(config.leader)
    if not issubclass(leader_cls, Collaborator):
        raise ValueError(f"Leader '{config.leader}' is not a Collaborator")

    listing = build_listing(config.modules, config.entry_point_group)

    # The leader's module is named as in the listing, so it is not
    # scanned in as a collaborator of itself.
    leader_id = None
    for entry in listing.enabled():
        if leader_cls.__module__ == entry.package or leader_cls.__module__.startswith(entry.package + "."):
            leader_id = entry.name
            break
    leader = leader_cls(participant_id=leader_id)

    registry = CollaboratorRegistry()
    ModuleScanner(listing, config.collaboration_module).populate(registry, leader.get_scenario_name())

    isolator = build_isolator(
        base_dir=config.isolation.base_dir,
        prefix=config.isolation.prefix,
        remove_files=config.isolation.remove_files,
    )
    sink = JsonLinesResultSink(results_path) if results_path is not None else MemoryResultSink()

    return ExecutionEngine(leader, sink=sink, registry=registry, isolator=isolator)


def _result_log(engine: ExecutionEngine, results_path: Optional[Path]) -> ResultLog:
    # An aborted run may not have written anything yet.
    if results_path is None:
        return engine.sink.to_log()
    if not results_path.exists():
        return ResultLog()
    return load_result_log(results_path, run_id=engine.run_id)


def configure_logging(level: str = "INFO", verbose: bool = False) -> None:
    """Send log records to stderr; stdout is reserved for JSON output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_config(config_file: Path, command: str) -> RunConfig:
    try:
        config = parse_run_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        output_error(command, f"Failed to parse run file: {e}")
        sys.exit(1)

    if command == "run":
        validation = validate_run_config(config)
        if not validation.valid:
            errors_str = "; ".join(f"{e.path}: {e.message}" for e in validation.errors)
            output_error(command, f"Invalid run file: {errors_str}")
            sys.exit(1)
    return config


def _elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


def _emit(output: dict, pretty: bool = False) -> None:
    print(json.dumps(output, indent=2 if pretty else None, ensure_ascii=False))


def output_error(command: str, message: str, **extra):
    """Output error in flow JSON format."""
    output = {
        "success": False,
        "command": command,
        "data": extra or None,
        "message": message,
    }
    print(json.dumps(output, ensure_ascii=False))


if __name__ == "__main__":
    main()
