"""Execution engine - runs a collaboration test from its leader.

Coordinates the full run:
1. Establish the leader
2. Acquire an isolated environment
3. Discover collaborators
4. Plan initiator x verifier pairs
5. For each initiator: set up, mark, invoke, verify, tear down, unmark
6. Release the environment
"""

import logging
import time
import uuid
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..collaborator import Collaborator, InitiatorDescriptor, VerifierDescriptor
from ..discovery.registry import CollaboratorRegistry
from ..errors import (
    CollaborationError,
    EnvironmentIsolationError,
    ParticipantError,
    SetupError,
    StructuralError,
)
from ..hooks import ExtensionPoints, NullExtensionPoints
from ..isolation.isolator import EnvironmentContext, EnvironmentIsolator
from ..results.channel import ResultChannel
from ..results.records import AssertionStatus
from ..results.sink import MemoryResultSink, ResultSink
from .dispatcher import PairingPlan, RoleDispatcher

log = logging.getLogger(__name__)

NOT_SET_UP_MESSAGE = "The test cannot be executed because it has not been set up properly."


class RunState(str, Enum):
    """Where a run currently is."""
    NOT_STARTED = "not_started"
    ENVIRONMENT_ACQUIRED = "environment_acquired"
    PLANNED = "planned"
    PRE_MARK = "pre_mark"
    INVOKING = "invoking"
    VERIFYING = "verifying"
    POST_MARK = "post_mark"
    ENVIRONMENT_RELEASED = "environment_released"
    DONE = "done"
    FAILED = "failed"


class OutcomeStatus(str, Enum):
    """How one initiator's handling ended."""
    COMPLETED = "completed"
    PARTICIPANT_ERROR = "participant_error"
    SETUP_FAILED = "setup_failed"


@dataclass
class InitiatorOutcome:
    """Result of handling one initiator."""
    participant_id: str
    initiator: str
    key: str
    status: OutcomeStatus = OutcomeStatus.COMPLETED
    verifiers: list[str] = field(default_factory=list)
    errors: list[CollaborationError] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.status == OutcomeStatus.COMPLETED


@dataclass
class TestRun:
    """Execution context of one scenario invocation."""
    __test__ = False

    run_id: str
    scenario: str
    leader: Collaborator
    context: Optional[EnvironmentContext] = None
    collaborators: list[Collaborator] = field(default_factory=list)
    plan: Optional[PairingPlan] = None
    open_markers: dict[str, str] = field(default_factory=dict)
    state: RunState = RunState.NOT_STARTED
    outcomes: list[InitiatorOutcome] = field(default_factory=list)


@dataclass
class ExecutionConfig:
    """Configuration for a run."""
    capture_warnings: bool = True


@dataclass
class RunResult:
    """Complete result of a run."""
    run_id: str
    scenario: str
    state: RunState
    outcomes: list[InitiatorOutcome] = field(default_factory=list)
    collaborators: list[str] = field(default_factory=list)
    summary: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def all_passed(self) -> bool:
        return (
            self.summary.get(AssertionStatus.FAIL.value, 0) == 0
            and self.summary.get(AssertionStatus.EXCEPTION.value, 0) == 0
            and all(o.completed for o in self.outcomes)
        )


class ExecutionEngine:
    """Runs a collaboration test with one leader.

    One run at a time, fully sequential: initiators in plan order, and for
    each initiator every verifier in the same order.
    """

    def __init__(
        self,
        leader: Collaborator,
        sink: Optional[ResultSink] = None,
        registry: Optional[CollaboratorRegistry] = None,
        isolator: Optional[EnvironmentIsolator] = None,
        extension_points: Optional[ExtensionPoints] = None,
        dispatcher: Optional[RoleDispatcher] = None,
        config: Optional[ExecutionConfig] = None,
        run_id: Optional[str] = None,
    ):
        """Initialize execution engine.

        Args:
            leader: The participant starting the run.
            sink: Result sink. Default: in-memory.
            registry: Collaborator registry. Default: empty (leader only).
            isolator: Environment isolator. Default: rooted at ./files.
            extension_points: Hook dispatch offered to collaborators.
            dispatcher: Role dispatcher.
            config: Execution configuration.
            run_id: Identifier of the run. Default: random.
        """
        self.leader = leader
        self.sink = sink if sink is not None else MemoryResultSink()
        self.registry = registry or CollaboratorRegistry()
        self.isolator = isolator or EnvironmentIsolator()
        self.extension_points = extension_points or NullExtensionPoints()
        self.dispatcher = dispatcher or RoleDispatcher()
        self.config = config or ExecutionConfig()
        self.run_id = run_id or uuid.uuid4().hex
        self.current: Optional[TestRun] = None
        self._caught: Optional[list[warnings.WarningMessage]] = None

    def run(self) -> RunResult:
        """Execute the run.

        Returns:
            RunResult with one outcome per initiator.

        Raises:
            StructuralError: If the leader reports to another leader, is
                already running, or no initiators were found.
            EnvironmentIsolationError: If the environment cannot be acquired.
        """
        start_time = time.time()
        self._establish_leadership()

        run = TestRun(
            run_id=self.run_id,
            scenario=self.leader.get_scenario_name(),
            leader=self.leader,
        )
        self.current = run
        channel = ResultChannel(self.sink, run.run_id, run.scenario)
        self.leader._begin_run(channel, self.extension_points)
        log.info("Running collaboration test %s (run %s)", run.scenario, run.run_id)

        try:
            with warnings.catch_warnings(record=self.config.capture_warnings) as caught:
                if self.config.capture_warnings:
                    warnings.simplefilter("always")
                self._caught = caught
                self._execute(run, channel)
        except CollaborationError as e:
            run.state = RunState.FAILED
            log.error("Collaboration test %s aborted: %s", run.scenario, e)
            raise
        finally:
            self._caught = None
            discarded = channel.drain_messages()
            if discarded:
                log.debug("Discarded %d message(s)", len(discarded))
            self.leader._end_run()

        result = RunResult(
            run_id=run.run_id,
            scenario=run.scenario,
            state=run.state,
            outcomes=run.outcomes,
            collaborators=[c.participant_id for c in run.collaborators],
            summary=channel.summary,
            duration_ms=int((time.time() - start_time) * 1000),
        )
        log.info(
            "Finished %s: %d pass, %d fail, %d exception",
            run.scenario,
            result.summary["pass"],
            result.summary["fail"],
            result.summary["exception"],
        )
        return result

    def _establish_leadership(self) -> None:
        if not self.leader.is_leader:
            raise StructuralError(
                "Can only run the test if we are the leader, or a leader has yet to be designated."
            )
        if self.leader.is_running:
            raise StructuralError(f"{self.leader!r} is already running a collaboration test.")

    def _acquire(self, run: TestRun) -> EnvironmentContext:
        try:
            return self.isolator.acquire(run.scenario)
        except EnvironmentIsolationError:
            raise
        except Exception as e:
            raise EnvironmentIsolationError(
                f"Could not isolate the environment for {run.scenario}: {e}"
            ) from e

    def _execute(self, run: TestRun, channel: ResultChannel) -> None:
        context = self._acquire(run)
        run.context = context
        run.state = RunState.ENVIRONMENT_ACQUIRED
        self.leader._attach_environment(context)

        try:
            run.collaborators = self.registry.discover(self.leader)
            run.plan = self.dispatcher.plan(run.collaborators)
            run.state = RunState.PLANNED
            self._flush_warnings(channel)

            for initiator, verifiers in run.plan.pairs():
                outcome = self._execute_initiator(run, channel, initiator, verifiers)
                run.outcomes.append(outcome)
        finally:
            self.isolator.release(context)
            self.leader._attach_environment(None)
            run.state = RunState.ENVIRONMENT_RELEASED

        run.state = RunState.DONE

    def _execute_initiator(
        self,
        run: TestRun,
        channel: ResultChannel,
        initiator: InitiatorDescriptor,
        verifiers: list[VerifierDescriptor],
    ) -> InitiatorOutcome:
        outcome = InitiatorOutcome(
            participant_id=initiator.participant_id,
            initiator=initiator.name,
            key=initiator.key,
        )
        caller = initiator.caller

        # Only the leader is set up; collaborators share its state.
        if not self._set_up(channel):
            channel.record(AssertionStatus.FAIL, NOT_SET_UP_MESSAGE, "Other", caller)
            outcome.status = OutcomeStatus.SETUP_FAILED
            outcome.errors.append(SetupError(f"{run.scenario} was not set up for {initiator.name}"))
            return outcome

        run.state = RunState.PRE_MARK
        marker_id = channel.insert_completion_marker(caller)
        run.open_markers[marker_id] = initiator.name

        try:
            run.state = RunState.INVOKING
            log.debug("Invoking %s.%s", initiator.participant_id, initiator.name)
            try:
                state = initiator()
            except Exception as e:
                channel.record_exception(e)
                outcome.status = OutcomeStatus.PARTICIPANT_ERROR
                outcome.errors.append(ParticipantError(initiator.participant_id, initiator.name, e))
            else:
                run.state = RunState.VERIFYING
                for v in verifiers:
                    self._verify(channel, outcome, v, initiator.key, state)
            self._flush_warnings(channel)
        finally:
            self._tear_down(channel)

        # Reached only when the initiator came back; a marker left behind is
        # crash evidence.
        run.state = RunState.POST_MARK
        channel.delete_completion_marker(marker_id)
        del run.open_markers[marker_id]
        return outcome

    def _verify(
        self,
        channel: ResultChannel,
        outcome: InitiatorOutcome,
        verifier: VerifierDescriptor,
        key: str,
        state: Any,
    ) -> None:
        outcome.verifiers.append(verifier.participant_id)
        try:
            verifier(key, state)
        except Exception as e:
            channel.record_exception(e)
            outcome.status = OutcomeStatus.PARTICIPANT_ERROR
            outcome.errors.append(ParticipantError(verifier.participant_id, verifier.name, e))

    def _set_up(self, channel: ResultChannel) -> bool:
        try:
            result = self.leader.set_up()
        except Exception as e:
            channel.record_exception(e)
            return False
        return result is not False

    def _tear_down(self, channel: ResultChannel) -> None:
        try:
            self.leader.tear_down()
        except Exception as e:
            channel.record_exception(e)

    def _flush_warnings(self, channel: ResultChannel) -> None:
        if not self._caught:
            return
        for warning in self._caught:
            channel.record_warning(warning)
        del self._caught[:]
