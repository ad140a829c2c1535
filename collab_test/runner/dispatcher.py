"""Role dispatcher - builds the initiator x verifier pairing plan."""

import logging
from dataclasses import dataclass, field
from typing import Iterator, Sequence

from ..collaborator import Collaborator, InitiatorDescriptor, VerifierDescriptor
from ..errors import StructuralError

log = logging.getLogger(__name__)


@dataclass
class PairingPlan:
    """Every initiator, paired with every verifier."""
    scenario: str
    initiators: list[InitiatorDescriptor] = field(default_factory=list)
    verifiers: dict[str, VerifierDescriptor] = field(default_factory=dict)

    @property
    def pair_count(self) -> int:
        return len(self.initiators) * len(self.verifiers)

    def pairs(self) -> Iterator[tuple[InitiatorDescriptor, list[VerifierDescriptor]]]:
        """Initiators in plan order, each with the full verifier list."""
        verifiers = list(self.verifiers.values())
        for initiator in self.initiators:
            yield initiator, verifiers


class RoleDispatcher:
    """Collects initiators and verifiers from a run's collaborators."""

    def plan(self, collaborators: Sequence[Collaborator]) -> PairingPlan:
        """Build the pairing plan.

        Initiators are flattened in collaborator order, then in each
        collaborator's registration order. Verifiers are keyed by
        participant id; a later collaborator with the same id replaces the
        earlier verifier.

        Raises:
            StructuralError: If no collaborator exposes an initiator.
        """
        if not collaborators:
            raise StructuralError("No collaborators to plan; the leader must be present.")

        scenario = collaborators[0].get_scenario_name()
        plan = PairingPlan(scenario=scenario)

        for collaborator in collaborators:
            capabilities = collaborator.capabilities()
            plan.initiators.extend(capabilities.initiators)
            if capabilities.verifier is not None:
                plan.verifiers[collaborator.participant_id] = capabilities.verifier

        if not plan.initiators:
            raise StructuralError(f"No initiators found for test {scenario}; cannot run the test.")

        log.info(
            "Planned %s: %d initiator(s) x %d verifier(s)",
            scenario,
            len(plan.initiators),
            len(plan.verifiers),
        )
        return plan
