"""
Battle phase state machine.

A battle alternates between planning (the player queues actions) and
executing (the round resolves). Victory and defeat are terminal: no trigger
leaves them.
"""

from typing import Any, Optional

from vale_core.battle.battle_state import BattleState, update_battle_state
from vale_core.data_models import BattlePhase, BattleStatus
from vale_core.state_machine import InvalidTransitionError, StateTransition, TransitionTable

# Phase transitions share the generic transition record
PhaseTransition = StateTransition

BATTLE_TRANSITIONS: list[PhaseTransition] = [
    PhaseTransition(
        BattlePhase.PLANNING,
        BattlePhase.EXECUTING,
        "execute_round",
        "Queue complete; round begins resolving",
    ),
    PhaseTransition(
        BattlePhase.EXECUTING,
        BattlePhase.PLANNING,
        "round_complete",
        "Round resolved with both sides standing",
    ),
    PhaseTransition(
        BattlePhase.EXECUTING,
        BattlePhase.VICTORY,
        "enemies_defeated",
        "Every enemy is knocked out",
    ),
    PhaseTransition(
        BattlePhase.EXECUTING,
        BattlePhase.DEFEAT,
        "party_defeated",
        "Every party member is knocked out",
    ),
]

BATTLE_PHASE_TABLE = TransitionTable("battle", BATTLE_TRANSITIONS)

_STATUS_FOR_PHASE = {
    BattlePhase.VICTORY: BattleStatus.PLAYER_VICTORY,
    BattlePhase.DEFEAT: BattleStatus.PLAYER_DEFEAT,
}


def can_transition(state: BattleState, trigger: str) -> bool:
    return BATTLE_PHASE_TABLE.can_transition(state.phase, trigger)


def get_valid_triggers(state: BattleState) -> list[str]:
    return BATTLE_PHASE_TABLE.get_valid_triggers(state.phase)


def is_terminal_phase(phase: BattlePhase) -> bool:
    return BATTLE_PHASE_TABLE.is_terminal(phase)


def transition_phase(
    state: BattleState,
    trigger: str,
    context: Optional[dict[str, Any]] = None,
) -> BattleState:
    """
    Move the battle to its next phase.

    Entering victory or defeat also sets the matching battle status.

    Args:
        state: Current battle state
        trigger: The trigger event causing the transition
        context: Optional context recorded in the RunLog

    Returns:
        New battle state in the target phase

    Raises:
        InvalidTransitionError: If the trigger is not valid from the current phase
    """
    context = {"round": state.round_number, **(context or {})}
    new_phase = BATTLE_PHASE_TABLE.resolve(state.phase, trigger, context=context)
    changes: dict[str, Any] = {"phase": new_phase}
    if new_phase in _STATUS_FOR_PHASE:
        changes["status"] = _STATUS_FOR_PHASE[new_phase]
    return update_battle_state(state, **changes)


__all__ = [
    "BATTLE_TRANSITIONS",
    "BATTLE_PHASE_TABLE",
    "InvalidTransitionError",
    "PhaseTransition",
    "can_transition",
    "get_valid_triggers",
    "is_terminal_phase",
    "transition_phase",
]
