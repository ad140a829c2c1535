"""Collaborator registry.

Maps a scenario name to the participants implementing it, each with a
factory that builds a collaborator bound to a given leader and, when
registered from a class, that class.
"""

import logging
from typing import Callable, NamedTuple, Optional

from ..collaborator import Collaborator
from ..errors import StructuralError

log = logging.getLogger(__name__)

CollaboratorFactory = Callable[[Collaborator], Collaborator]


class Registration(NamedTuple):
    factory: CollaboratorFactory
    cls: Optional[type] = None


class CollaboratorRegistry:
    """Explicit participant registry, filled before a run starts."""

    def __init__(self):
        self._registrations: dict[str, dict[str, Registration]] = {}

    def register(
        self,
        scenario_name: str,
        participant_id: str,
        factory: CollaboratorFactory,
        cls: Optional[type] = None,
    ) -> None:
        """Register a participant for a scenario.

        Registering the same participant twice replaces the factory but
        keeps its original position. cls is the class the factory builds,
        when known.
        """
        self._registrations.setdefault(scenario_name, {})[participant_id] = Registration(factory, cls)

    def register_class(
        self,
        cls: type,
        participant_id: Optional[str] = None,
        scenario_name: Optional[str] = None,
    ) -> None:
        """Register a Collaborator subclass.

        Args:
            cls: The collaborator class.
            participant_id: Default: top-level package of cls.
            scenario_name: Default: cls.get_scenario_name().
        """
        pid = participant_id or cls.__module__.split(".")[0]

        def factory(leader: Collaborator) -> Collaborator:
            return cls(participant_id=pid, leader=leader)

        self.register(scenario_name or cls.get_scenario_name(), pid, factory, cls=cls)

    def participants(self, scenario_name: str) -> list[str]:
        return list(self._registrations.get(scenario_name, {}))

    def discover(self, leader: Collaborator) -> list[Collaborator]:
        """Build the collaborators of a run.

        Returns:
            The leader followed by one collaborator per registered
            participant, in registration order. A participant sharing the
            leader's id or class is the leader's own module and is not
            added again.

        Raises:
            StructuralError: If a factory fails or returns a collaborator
                bound to another leader.
        """
        scenario_name = leader.get_scenario_name()
        collaborators = [leader]

        for pid, registration in self._registrations.get(scenario_name, {}).items():
            if pid == leader.participant_id or registration.cls is type(leader):
                log.debug("Participant %s is the leader itself", pid)
                continue
            try:
                collaborator = registration.factory(leader)
            except Exception as e:
                raise StructuralError(
                    f"Collaborator '{pid}' for {scenario_name} could not be created: {e}"
                ) from e

            if type(collaborator) is type(leader):
                log.debug("Participant %s is the leader itself", pid)
                continue

            collaborator.join(leader)
            collaborators.append(collaborator)
            log.debug("Collaborator %s joined %s", pid, scenario_name)

        return collaborators
