"""Collaborator base class.

A collaboration test is one scenario executed cooperatively by several
participants. The participant that starts the run is the leader; every
other participant is discovered at run time and joins that leader. Each
participant contributes initiator routines (producing the state of one
test permutation) and at most one verifier routine (checking that state).
All assertions from all participants go through the leader's result
channel.

Example:

    class NodeSave(Collaborator):
        def initiate_published(self):
            return create_node(status=1)

        def verify(self, key, node):
            self.assert_true(node.id, f"{key}: node was saved")
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional

from .errors import StructuralError
from .hooks import ExtensionPoints, NullExtensionPoints
from .results.channel import ResultChannel, StatusLike
from .results.records import AssertionStatus, CallerInfo

if TYPE_CHECKING:
    from .isolation.isolator import EnvironmentContext
    from .runner.executor import RunResult


INITIATOR_PREFIX = "initiate"
VERIFIER_NAME = "verify"

_INITIATOR_MARK = "__collab_initiator__"
_VERIFIER_MARK = "__collab_verifier__"


def permutation_key(name: str) -> str:
    """Strip the initiator prefix from a routine name; the rest is kept verbatim."""
    if name[:len(INITIATOR_PREFIX)].lower() != INITIATOR_PREFIX:
        return name
    return name[len(INITIATOR_PREFIX):]


def initiator(func: Optional[Callable] = None, *, key: Optional[str] = None):
    """Register a method as an initiator.

    Can be used bare (``@initiator``) or with an explicit permutation key
    (``@initiator(key="draft")``). Methods whose name starts with
    ``initiate`` are registered without the decorator.
    """
    def mark(f: Callable) -> Callable:
        setattr(f, _INITIATOR_MARK, key or "")
        return f

    if func is not None:
        return mark(func)
    return mark


def verifier(func: Callable) -> Callable:
    """Register a method as the collaborator's verifier."""
    setattr(func, _VERIFIER_MARK, True)
    return func


def _is_routine(attr: Any) -> bool:
    return callable(attr) and not isinstance(attr, (type, staticmethod, classmethod))


@dataclass(frozen=True)
class InitiatorDescriptor:
    """One initiator routine of one collaborator."""
    participant_id: str
    name: str
    key: str
    collaborator: "Collaborator" = field(repr=False, compare=False)

    @property
    def routine(self) -> Callable[[], Any]:
        return getattr(self.collaborator, self.name)

    @property
    def caller(self) -> CallerInfo:
        label = f"{type(self.collaborator).__name__}.{self.name}()"
        return CallerInfo.for_callable(self.routine, label)

    def __call__(self) -> Any:
        return self.routine()


@dataclass(frozen=True)
class VerifierDescriptor:
    """The verifier routine of one collaborator."""
    participant_id: str
    name: str
    collaborator: "Collaborator" = field(repr=False, compare=False)

    @property
    def routine(self) -> Callable[[str, Any], Any]:
        return getattr(self.collaborator, self.name)

    def __call__(self, key: str, state: Any) -> Any:
        return self.routine(key, state)


@dataclass
class Capabilities:
    """What a collaborator contributes to a run."""
    initiators: list[InitiatorDescriptor] = field(default_factory=list)
    verifier: Optional[VerifierDescriptor] = None


class Collaborator:
    """Base class for every participant of a collaboration test."""

    # Scenario identity used to find other participants. Defaults to the
    # class name, so participants in different packages share a name.
    scenario_name: Optional[str] = None

    _initiators: tuple[tuple[str, str], ...] = ()
    _verifier_name: Optional[str] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        initiators: dict[str, str] = {}
        verifier_name: Optional[str] = None

        for klass in reversed(cls.__mro__):
            for name, attr in vars(klass).items():
                if name.startswith("__"):
                    continue
                if not _is_routine(attr):
                    initiators.pop(name, None)
                    if name == verifier_name:
                        verifier_name = None
                    continue

                if getattr(attr, _VERIFIER_MARK, False) or name == VERIFIER_NAME:
                    verifier_name = name
                elif hasattr(attr, _INITIATOR_MARK):
                    initiators[name] = getattr(attr, _INITIATOR_MARK) or permutation_key(name)
                elif name[:len(INITIATOR_PREFIX)].lower() == INITIATOR_PREFIX:
                    initiators[name] = permutation_key(name)

        cls._initiators = tuple(initiators.items())
        cls._verifier_name = verifier_name

    def __init__(self, participant_id: Optional[str] = None, leader: Optional["Collaborator"] = None):
        """Initialize collaborator.

        Args:
            participant_id: Identity of the owning module. Default: the
                            top-level package of the defining module.
            leader: Leader to report to. None until the object joins a run
                    or starts one.
        """
        self.participant_id = participant_id or type(self).__module__.split(".")[0]
        self._leader = leader
        self._channel: Optional[ResultChannel] = None
        self._context: Optional["EnvironmentContext"] = None
        self._extension_points: Optional[ExtensionPoints] = None
        self._running = False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} participant={self.participant_id!r}>"

    @classmethod
    def get_scenario_name(cls) -> str:
        return cls.scenario_name or cls.__name__

    # -- Leadership ---------------------------------------------------------

    @property
    def leader(self) -> "Collaborator":
        """The leader this participant reports to (itself if none)."""
        return self._leader if self._leader is not None else self

    @property
    def is_leader(self) -> bool:
        return self.leader is self

    @property
    def is_running(self) -> bool:
        return self.leader._running

    def join(self, leader: "Collaborator") -> None:
        """Report to leader from now on."""
        if self._leader is not None and self._leader is not leader:
            raise StructuralError(
                f"{self!r} already reports to {self._leader!r}; "
                "a collaborator cannot join a second leader."
            )
        self._leader = leader

    def _begin_run(self, channel: ResultChannel, extension_points: ExtensionPoints) -> None:
        self._leader = self
        self._channel = channel
        self._extension_points = extension_points
        self._running = True

    def _attach_environment(self, context: Optional["EnvironmentContext"]) -> None:
        self._context = context

    def _end_run(self) -> None:
        self._channel = None
        self._context = None
        self._running = False

    # -- Capabilities -------------------------------------------------------

    def capabilities(self) -> Capabilities:
        """Initiators and verifier of this collaborator, bound to it."""
        verifier_descriptor = None
        if self._verifier_name is not None:
            verifier_descriptor = VerifierDescriptor(
                participant_id=self.participant_id,
                name=self._verifier_name,
                collaborator=self,
            )
        return Capabilities(
            initiators=[
                InitiatorDescriptor(
                    participant_id=self.participant_id,
                    name=name,
                    key=key,
                    collaborator=self,
                )
                for name, key in self._initiators
            ],
            verifier=verifier_descriptor,
        )

    # -- Run -----------------------------------------------------------------

    def run(self, **kwargs) -> "RunResult":
        """Run this collaboration test with this object as the leader.

        Keyword arguments are passed to ExecutionEngine.

        Raises:
            StructuralError: If this object reports to another leader, or
                no initiators were found.
            EnvironmentIsolationError: If the environment cannot be isolated.
        """
        from .runner.executor import ExecutionEngine

        return ExecutionEngine(self, **kwargs).run()

    def set_up(self) -> Optional[bool]:
        """Prepare a clean state before each initiator.

        Called on the leader only. Return False or raise to signal that
        the test cannot be executed.
        """
        self.environment.reset_statics()
        return None

    def tear_down(self) -> None:
        """Clean up after each initiator. Called on the leader only."""

    @property
    def environment(self) -> "EnvironmentContext":
        """The isolated environment of the running test."""
        context = self.leader._context
        if context is None:
            raise StructuralError(f"{self!r} has no active environment.")
        return context

    # -- Assertions ---------------------------------------------------------

    @property
    def channel(self) -> ResultChannel:
        channel = self.leader._channel
        if channel is None:
            raise StructuralError(f"{self!r} is not part of a running collaboration test.")
        return channel

    def assert_(
        self,
        status: StatusLike,
        message: str = "",
        group: str = "Other",
        caller: Optional[CallerInfo] = None,
    ) -> bool:
        """Record an assertion in the leader's result log."""
        return self.channel.record(status, message, group, caller)

    def pass_(self, message: str = "", group: str = "Other") -> bool:
        return self.assert_(True, message, group)

    def fail(self, message: str = "", group: str = "Other") -> bool:
        return self.assert_(False, message, group)

    def error(self, message: str = "", group: str = "Other") -> bool:
        return self.assert_(AssertionStatus.EXCEPTION, message, group)

    def assert_true(self, value: Any, message: str = "", group: str = "Other") -> bool:
        return self.assert_(bool(value), message or f"Value {value!r} is true.", group)

    def assert_false(self, value: Any, message: str = "", group: str = "Other") -> bool:
        return self.assert_(not value, message or f"Value {value!r} is false.", group)

    def assert_none(self, value: Any, message: str = "", group: str = "Other") -> bool:
        return self.assert_(value is None, message or f"Value {value!r} is None.", group)

    def assert_not_none(self, value: Any, message: str = "", group: str = "Other") -> bool:
        return self.assert_(value is not None, message or f"Value {value!r} is not None.", group)

    def assert_equal(self, first: Any, second: Any, message: str = "", group: str = "Other") -> bool:
        return self.assert_(first == second, message or f"Value {first!r} is equal to value {second!r}.", group)

    def assert_not_equal(self, first: Any, second: Any, message: str = "", group: str = "Other") -> bool:
        return self.assert_(first != second, message or f"Value {first!r} is not equal to value {second!r}.", group)

    def assert_identical(self, first: Any, second: Any, message: str = "", group: str = "Other") -> bool:
        return self.assert_(first is second, message or f"Value {first!r} is identical to value {second!r}.", group)

    def assert_not_identical(self, first: Any, second: Any, message: str = "", group: str = "Other") -> bool:
        return self.assert_(first is not second, message or f"Value {first!r} is not identical to value {second!r}.", group)

    def add_message(self, text: str, kind: str = "status") -> None:
        """Queue an informational message; discarded when the run ends."""
        self.channel.add_message(text, kind)

    # -- Extension points ---------------------------------------------------

    @property
    def extension_points(self) -> ExtensionPoints:
        return self.leader._extension_points or NullExtensionPoints()

    def do_invoke(self, module: str, hook: str, *args: Any) -> Any:
        return self.extension_points.invoke_on(module, hook, *args)

    def do_invoke_all(self, hook: str, *args: Any) -> list[Any]:
        return self.extension_points.invoke_all(hook, *args)

    def do_alter(self, hook: str, value: Any, *context: Any) -> Any:
        return self.extension_points.alter_all(hook, value, *context)
