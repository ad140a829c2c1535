"""Runner module - collaboration test orchestration."""

from .dispatcher import PairingPlan, RoleDispatcher
from .executor import (
    ExecutionConfig,
    ExecutionEngine,
    InitiatorOutcome,
    OutcomeStatus,
    RunResult,
    RunState,
    TestRun,
)

__all__ = [
    "ExecutionConfig",
    "ExecutionEngine",
    "InitiatorOutcome",
    "OutcomeStatus",
    "PairingPlan",
    "RoleDispatcher",
    "RunResult",
    "RunState",
    "TestRun",
]
