"""
Table-driven state machines for Vale Core.

Both the battle phase machine and the Djinn lifecycle are defined as lists of
StateTransition. A TransitionTable validates a (state, trigger) pair against
its list and records every accepted transition in the RunLog.

Unlike a stateful machine object, the table holds no current state: battle
and team state are immutable values, so callers pass the current state in and
store the returned one.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from vale_core.observability.run_log import get_run_log

logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    pass


@dataclass(frozen=True)
class StateTransition:
    """Defines a valid state transition."""

    from_state: Enum
    to_state: Enum
    trigger: str
    description: str = ""


class TransitionTable:
    """
    Adjacency table of valid transitions for one machine.

    Attributes:
        machine: Name recorded with each transition in the RunLog
        transitions: The valid transitions
    """

    def __init__(self, machine: str, transitions: Iterable[StateTransition]):
        self.machine = machine
        self.transitions: list[StateTransition] = list(transitions)

        # Build transition lookup for fast validation
        self._valid_transitions: dict[tuple[Enum, str], Enum] = {}
        for transition in self.transitions:
            key = (transition.from_state, transition.trigger)
            self._valid_transitions[key] = transition.to_state

    def can_transition(self, state: Enum, trigger: str) -> bool:
        return (state, trigger) in self._valid_transitions

    def get_valid_triggers(self, state: Enum) -> list[str]:
        """
        Get all valid triggers from a state.

        Args:
            state: The current state

        Returns:
            List of trigger names that can be used from the state
        """
        return [trigger for (from_state, trigger) in self._valid_transitions if from_state == state]

    def is_terminal(self, state: Enum) -> bool:
        """A terminal state has no outgoing transitions."""
        return not self.get_valid_triggers(state)

    def resolve(
        self,
        state: Enum,
        trigger: str,
        context: Optional[dict[str, Any]] = None,
        machine: Optional[str] = None,
    ) -> Enum:
        """
        Validate a transition and return the state it leads to.

        Args:
            state: The current state
            trigger: The trigger event causing the transition
            context: Optional context data recorded with the transition
            machine: Machine name override (e.g. "djinn:flint")

        Returns:
            The new state

        Raises:
            InvalidTransitionError: If the transition is not valid
        """
        key = (state, trigger)
        if key not in self._valid_transitions:
            valid_triggers = self.get_valid_triggers(state)
            raise InvalidTransitionError(
                f"Invalid transition: Cannot trigger '{trigger}' from state "
                f"'{state.value}'. Valid triggers: {valid_triggers}"
            )

        new_state = self._valid_transitions[key]
        name = machine or self.machine
        logger.debug(f"{name}: {state.value} -> {new_state.value} ({trigger})")
        get_run_log().log_transition(
            machine=name,
            from_state=state.value,
            to_state=new_state.value,
            trigger=trigger,
            context=context,
        )
        return new_state
