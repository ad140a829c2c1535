"""Result channel - the single write path into a run's result sink.

Every collaborator in a run holds the leader's channel, so all assertions
land in one sink in the order they were issued.
"""

import logging
import warnings
from typing import Optional, Union

from .records import (
    COMPLETION_CHECK_MESSAGE,
    AssertionRecord,
    AssertionStatus,
    CallerInfo,
)
from .sink import ResultSink

log = logging.getLogger(__name__)

StatusLike = Union[bool, str, AssertionStatus]


def _coerce_status(status: StatusLike) -> AssertionStatus:
    if isinstance(status, AssertionStatus):
        return status
    if isinstance(status, str):
        return AssertionStatus(status.lower())
    return AssertionStatus.PASS if status else AssertionStatus.FAIL


class ResultChannel:
    """Routes assertions, exceptions and warnings of one run to a sink."""

    def __init__(self, sink: ResultSink, run_id: str, scenario: str):
        self.sink = sink
        self.run_id = run_id
        self.scenario = scenario
        self.results = {status: 0 for status in AssertionStatus}
        self.messages: list[tuple[str, str]] = []

    def record(
        self,
        status: StatusLike,
        message: str = "",
        group: str = "Other",
        caller: Optional[CallerInfo] = None,
    ) -> bool:
        """Record one assertion.

        Returns:
            True if the assertion passed.
        """
        status = _coerce_status(status)
        if caller is None:
            caller = CallerInfo.from_stack(skip_files=_internal_files())

        self.sink.record_assertion(AssertionRecord(
            run_id=self.run_id,
            scenario=self.scenario,
            status=status,
            message=str(message),
            group=group,
            caller=caller,
        ))
        self.results[status] += 1

        if status != AssertionStatus.PASS:
            log.debug("[%s] %s: %s (%s)", status.value, group, message, caller)
        return status == AssertionStatus.PASS

    def record_exception(self, exc: BaseException, group: str = "Exception") -> bool:
        """Record an uncaught exception as an 'exception' entry."""
        return self.record(
            AssertionStatus.EXCEPTION,
            f"{type(exc).__name__}: {exc}",
            group,
            CallerInfo.from_exception(exc),
        )

    def record_warning(self, warning: warnings.WarningMessage) -> bool:
        """Record a warning raised during the run as a failure."""
        return self.record(
            AssertionStatus.FAIL,
            f"{warning.category.__name__}: {warning.message}",
            "Warning",
            CallerInfo(
                file=str(warning.filename),
                line=warning.lineno or 0,
                function="<warning>",
            ),
        )

    def add_message(self, text: str, kind: str = "status") -> None:
        """Queue a non-assertion message for the duration of the run."""
        self.messages.append((kind, text))

    def drain_messages(self) -> list[tuple[str, str]]:
        """Return and discard queued messages."""
        messages, self.messages = self.messages, []
        return messages

    def insert_completion_marker(self, caller: CallerInfo) -> str:
        return self.sink.insert_completion_marker(
            self.run_id, self.scenario, COMPLETION_CHECK_MESSAGE, caller
        )

    def delete_completion_marker(self, marker_id: str) -> None:
        self.sink.delete_completion_marker(marker_id)

    @property
    def summary(self) -> dict[str, int]:
        return {status.value: count for status, count in self.results.items()}


def _internal_files() -> tuple[str, ...]:
    # Frames in these files are never reported as the assertion's caller.
    from .. import collaborator

    return (__file__, collaborator.__file__)
