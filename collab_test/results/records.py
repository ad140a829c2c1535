"""Result record models shared by sinks and the result channel."""

import inspect
import os
import traceback
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional


class AssertionStatus(str, Enum):
    """Recorded assertion statuses."""
    PASS = "pass"
    FAIL = "fail"
    EXCEPTION = "exception"


COMPLETION_CHECK_GROUP = "Completion check"
COMPLETION_CHECK_MESSAGE = "The initiator did not complete due to a fatal error."


@dataclass(frozen=True)
class CallerInfo:
    """Where an assertion (or marker) came from."""
    file: str
    line: int
    function: str

    def __str__(self) -> str:
        return f"{self.function} ({os.path.basename(self.file)}:{self.line})"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CallerInfo":
        return cls(
            file=str(data.get("file", "")),
            line=int(data.get("line", 0)),
            function=str(data.get("function", "")),
        )

    @classmethod
    def for_callable(cls, func: Callable, label: Optional[str] = None) -> "CallerInfo":
        """Describe the source location of a routine."""
        target = inspect.unwrap(getattr(func, "__func__", func))
        try:
            file = inspect.getsourcefile(target) or "<unknown>"
            _, line = inspect.getsourcelines(target)
        except (OSError, TypeError):
            file, line = "<unknown>", 0
        return cls(file=file, line=line, function=label or f"{target.__qualname__}()")

    @classmethod
    def from_stack(cls, skip_files: Iterable[str] = ()) -> "CallerInfo":
        """First frame on the current stack outside of skip_files."""
        skip = {os.path.normcase(os.path.abspath(f)) for f in skip_files}
        skip.add(os.path.normcase(os.path.abspath(__file__)))
        frame = inspect.currentframe()
        try:
            while frame is not None:
                filename = os.path.normcase(os.path.abspath(frame.f_code.co_filename))
                if filename not in skip:
                    return cls(
                        file=frame.f_code.co_filename,
                        line=frame.f_lineno,
                        function=f"{frame.f_code.co_name}()",
                    )
                frame = frame.f_back
        finally:
            del frame
        return cls(file="<unknown>", line=0, function="<unknown>")

    @classmethod
    def from_exception(cls, exc: BaseException) -> "CallerInfo":
        """Innermost traceback frame of an exception."""
        frames = traceback.extract_tb(exc.__traceback__)
        if not frames:
            return cls(file="<unknown>", line=0, function="<unknown>")
        last = frames[-1]
        return cls(file=last.filename, line=last.lineno or 0, function=f"{last.name}()")


@dataclass
class AssertionRecord:
    """One recorded pass/fail/exception entry."""
    run_id: str
    scenario: str
    status: AssertionStatus
    message: str
    group: str
    caller: CallerInfo

    @property
    def passed(self) -> bool:
        return self.status == AssertionStatus.PASS

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "scenario": self.scenario,
            "status": self.status.value,
            "message": self.message,
            "group": self.group,
            "caller": self.caller.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssertionRecord":
        return cls(
            run_id=str(data["run_id"]),
            scenario=str(data["scenario"]),
            status=AssertionStatus(data["status"]),
            message=str(data.get("message", "")),
            group=str(data.get("group", "Other")),
            caller=CallerInfo.from_dict(data.get("caller") or {}),
        )


@dataclass
class CompletionMarker:
    """Failure-shaped record that is deleted once an initiator completes.

    A marker that survives a run is evidence that the process died while
    the initiator was executing.
    """
    marker_id: str
    run_id: str
    scenario: str
    message: str
    caller: CallerInfo
    group: str = COMPLETION_CHECK_GROUP

    def to_dict(self) -> dict[str, Any]:
        return {
            "marker_id": self.marker_id,
            "run_id": self.run_id,
            "scenario": self.scenario,
            "message": self.message,
            "group": self.group,
            "caller": self.caller.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CompletionMarker":
        return cls(
            marker_id=str(data["marker_id"]),
            run_id=str(data["run_id"]),
            scenario=str(data["scenario"]),
            message=str(data.get("message", COMPLETION_CHECK_MESSAGE)),
            caller=CallerInfo.from_dict(data.get("caller") or {}),
            group=str(data.get("group", COMPLETION_CHECK_GROUP)),
        )
