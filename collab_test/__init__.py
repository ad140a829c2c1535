"""Collaboration test engine.

Runs one test scenario cooperatively across independently packaged
participants: a leader plus every collaborator discovered at run time.
"""

from .collaborator import (
    Capabilities,
    Collaborator,
    InitiatorDescriptor,
    VerifierDescriptor,
    initiator,
    permutation_key,
    verifier,
)
from .errors import (
    CollaborationError,
    EnvironmentIsolationError,
    ParticipantError,
    SetupError,
    StructuralError,
)
from .hooks import ExtensionPoints, NullExtensionPoints

__version__ = "0.1.0"

__all__ = [
    "Capabilities",
    "CollaborationError",
    "Collaborator",
    "EnvironmentIsolationError",
    "ExtensionPoints",
    "InitiatorDescriptor",
    "NullExtensionPoints",
    "ParticipantError",
    "SetupError",
    "StructuralError",
    "VerifierDescriptor",
    "initiator",
    "permutation_key",
    "verifier",
]
