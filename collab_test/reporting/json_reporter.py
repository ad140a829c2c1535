"""JSON report generator for collaboration test results.

Generates structured JSON reports from run results and result logs.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..results.records import AssertionStatus
from ..results.sink import ResultLog
from ..runner.executor import RunResult


class JsonReporter:
    """Generates JSON reports from collaboration test results."""

    def generate(
        self,
        log: ResultLog,
        result: Optional[RunResult] = None,
        scenario_name: Optional[str] = None,
        error: Optional[str] = None,
    ) -> dict[str, Any]:
        """Generate a JSON report.

        Args:
            log: Assertions and leftover completion markers.
            result: Run result, when the run finished in this process.
            scenario_name: Scenario name when there is no run result.
            error: Overall error message if the run was aborted.

        Returns:
            Report dictionary ready for JSON serialization.
        """
        if log.crashed:
            status = "crashed"
        elif error is None and log.all_passed and (result is None or result.all_passed):
            status = "passed"
        else:
            status = "failed"

        scenario = scenario_name
        if result is not None:
            scenario = result.scenario
        elif scenario is None and log.assertions:
            scenario = log.assertions[0].scenario

        report = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "scenario": scenario,
            "run_id": result.run_id if result else None,
            "status": status,
            "summary": {
                "total": len(log.assertions),
                "passed": log.count(AssertionStatus.PASS),
                "failed": log.count(AssertionStatus.FAIL),
                "exceptions": log.count(AssertionStatus.EXCEPTION),
                "initiators": len(result.outcomes) if result else None,
                "duration_ms": result.duration_ms if result else 0,
            },
            "collaborators": result.collaborators if result else [],
            "outcomes": [
                {
                    "participant": o.participant_id,
                    "initiator": o.initiator,
                    "key": o.key,
                    "status": o.status.value,
                    "verifiers": o.verifiers,
                    "errors": [str(e) for e in o.errors],
                }
                for o in (result.outcomes if result else [])
            ],
            "assertions": [
                {
                    "status": r.status.value,
                    "group": r.group,
                    "message": r.message,
                    "caller": str(r.caller),
                }
                for r in log.assertions
            ],
            "crash_evidence": [
                {
                    "run_id": m.run_id,
                    "scenario": m.scenario,
                    "message": m.message,
                    "caller": str(m.caller),
                }
                for m in log.leftover_markers
            ],
            "error": error,
        }

        return report

    def save(self, report: dict[str, Any], path: Path) -> Path:
        """Save report to a JSON file.

        Args:
            report: Report dictionary.
            path: Output file path.

        Returns:
            Path to the saved file.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=2, ensure_ascii=False)

        return path

    def generate_flow_output(
        self,
        report: dict[str, Any],
        command: str = "run",
        report_path: Optional[str] = None,
    ) -> dict[str, Any]:
        """Generate flow CLI compatible JSON output.

        Follows the flow JSON output standard:
        {
            "success": bool,
            "command": "run",
            "data": { ... },
            "message": str
        }
        """
        summary = report["summary"]
        all_passed = report["status"] == "passed"

        data: dict[str, Any] = {
            "scenario": report["scenario"],
            "run_id": report["run_id"],
            "total_assertions": summary["total"],
            "passed": summary["passed"],
            "failed": summary["failed"],
            "exceptions": summary["exceptions"],
            "incomplete_initiators": len(report["crash_evidence"]),
            "duration_ms": summary["duration_ms"],
        }

        if report_path:
            data["report_path"] = report_path

        if report.get("error"):
            message = f"Test failed: {report['error']}"
        elif report["status"] == "crashed":
            message = f"{len(report['crash_evidence'])} initiator(s) did not complete due to a fatal error"
        elif not all_passed:
            failed = summary["failed"] + summary["exceptions"]
            message = f"{failed} of {summary['total']} assertions failed"
        else:
            message = "All tests passed"

        return {
            "success": all_passed,
            "command": command,
            "data": data,
            "message": message,
        }
