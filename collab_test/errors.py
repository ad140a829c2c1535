"""Error taxonomy for collaboration test runs.

Fatal errors (StructuralError, EnvironmentIsolationError) propagate out of
a run. Recoverable errors (SetupError, ParticipantError) are converted into
recorded failures and never leave the engine.
"""


class CollaborationError(Exception):
    """Base class for all collaboration engine errors."""


class StructuralError(CollaborationError):
    """The run is meaningless as requested (usage fault)."""


class EnvironmentIsolationError(CollaborationError):
    """The isolated environment could not be acquired."""


class SetupError(CollaborationError):
    """The leader's per-iteration setup did not succeed."""


class ParticipantError(CollaborationError):
    """An initiator or verifier routine raised.

    Wraps the original exception so outcomes can carry it.
    """

    def __init__(self, participant_id: str, routine: str, original: BaseException):
        self.participant_id = participant_id
        self.routine = routine
        self.original = original
        super().__init__(
            f"{participant_id}.{routine}() raised "
            f"{type(original).__name__}: {original}"
        )
