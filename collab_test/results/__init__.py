"""Results module - assertion records, sinks and the result channel."""

from .channel import ResultChannel
from .records import (
    COMPLETION_CHECK_GROUP,
    COMPLETION_CHECK_MESSAGE,
    AssertionRecord,
    AssertionStatus,
    CallerInfo,
    CompletionMarker,
)
from .sink import (
    JsonLinesResultSink,
    MemoryResultSink,
    ResultLog,
    ResultSink,
    load_result_log,
)

__all__ = [
    "COMPLETION_CHECK_GROUP",
    "COMPLETION_CHECK_MESSAGE",
    "AssertionRecord",
    "AssertionStatus",
    "CallerInfo",
    "CompletionMarker",
    "JsonLinesResultSink",
    "MemoryResultSink",
    "ResultChannel",
    "ResultLog",
    "ResultSink",
    "load_result_log",
]
