"""Result sinks.

A sink is the write-only store for one or more runs: assertion records and
completion markers. The engine never reads results back; ``load_result_log``
exists for reporting after the fact.
"""

import itertools
import json
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol, Union

from .records import AssertionRecord, AssertionStatus, CallerInfo, CompletionMarker


class ResultSink(Protocol):
    """Write-only result store."""

    def insert_completion_marker(
        self,
        run_id: str,
        scenario: str,
        message: str,
        caller: CallerInfo,
    ) -> str:
        ...

    def delete_completion_marker(self, marker_id: str) -> None:
        ...

    def record_assertion(self, record: AssertionRecord) -> None:
        ...


@dataclass
class ResultLog:
    """Everything a sink has seen, replayed in order."""
    assertions: list[AssertionRecord] = field(default_factory=list)
    leftover_markers: list[CompletionMarker] = field(default_factory=list)

    @property
    def crashed(self) -> bool:
        """Whether any initiator never reported completion."""
        return len(self.leftover_markers) > 0

    def count(self, status: AssertionStatus) -> int:
        return sum(1 for r in self.assertions if r.status == status)

    @property
    def all_passed(self) -> bool:
        return not self.crashed and all(r.passed for r in self.assertions)


class MemoryResultSink:
    """Keeps results in process. Used by default and in tests."""

    def __init__(self):
        self.assertions: list[AssertionRecord] = []
        self.markers: dict[str, CompletionMarker] = {}
        self.deleted_markers: list[str] = []
        self._ids = itertools.count(1)

    def insert_completion_marker(self, run_id, scenario, message, caller) -> str:
        marker_id = str(next(self._ids))
        self.markers[marker_id] = CompletionMarker(
            marker_id=marker_id,
            run_id=run_id,
            scenario=scenario,
            message=message,
            caller=caller,
        )
        return marker_id

    def delete_completion_marker(self, marker_id: str) -> None:
        if self.markers.pop(marker_id, None) is not None:
            self.deleted_markers.append(marker_id)

    def record_assertion(self, record: AssertionRecord) -> None:
        self.assertions.append(record)

    @property
    def leftover_markers(self) -> list[CompletionMarker]:
        return list(self.markers.values())

    def to_log(self) -> ResultLog:
        return ResultLog(
            assertions=list(self.assertions),
            leftover_markers=self.leftover_markers,
        )


class JsonLinesResultSink:
    """Appends one JSON object per event to a file.

    Each write is flushed, so a marker inserted before a crash is on disk
    for ``load_result_log`` to find.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _append(self, event: dict) -> None:
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(event, ensure_ascii=False) + "\n")
            f.flush()

    def insert_completion_marker(self, run_id, scenario, message, caller) -> str:
        marker = CompletionMarker(
            marker_id=uuid.uuid4().hex,
            run_id=run_id,
            scenario=scenario,
            message=message,
            caller=caller,
        )
        self._append({"event": "marker_inserted", **marker.to_dict()})
        return marker.marker_id

    def delete_completion_marker(self, marker_id: str) -> None:
        self._append({"event": "marker_deleted", "marker_id": marker_id})

    def record_assertion(self, record: AssertionRecord) -> None:
        self._append({"event": "assertion", **record.to_dict()})


def load_result_log(path: Union[str, Path], run_id: Optional[str] = None) -> ResultLog:
    """Replay a JSON-lines result file.

    Args:
        path: File written by JsonLinesResultSink.
        run_id: Only keep records of this run.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If a line is not a valid event.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Result file not found: {path}")

    log = ResultLog()
    markers: dict[str, CompletionMarker] = {}

    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                event = json.loads(line)
                kind = event.pop("event")
            except (json.JSONDecodeError, KeyError, AttributeError) as e:
                raise ValueError(f"Malformed result event at {path}:{lineno}") from e

            if kind == "assertion":
                record = AssertionRecord.from_dict(event)
                if run_id is None or record.run_id == run_id:
                    log.assertions.append(record)
            elif kind == "marker_inserted":
                marker = CompletionMarker.from_dict(event)
                if run_id is None or marker.run_id == run_id:
                    markers[marker.marker_id] = marker
            elif kind == "marker_deleted":
                markers.pop(str(event.get("marker_id")), None)
            else:
                raise ValueError(f"Unknown result event '{kind}' at {path}:{lineno}")

    log.leftover_markers = list(markers.values())
    return log
