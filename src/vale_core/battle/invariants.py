"""
Battle state invariant checks.

assert_battle_state_invariants raises on any state the battle engine should
never be able to produce. Tests and the save loader run it; the engine itself
does not.
"""

from typing import Any, Optional

from vale_core.battle.battle_state import BattleState, build_unit_index
from vale_core.data_models import BattlePhase, BattleStatus
from vale_core.units.stats import get_effective_max_hp

_PHASE_STATUS = {
    BattlePhase.VICTORY: BattleStatus.PLAYER_VICTORY,
    BattlePhase.DEFEAT: BattleStatus.PLAYER_DEFEAT,
}


class BattleStateInvariantError(Exception):
    """Raised when a battle state violates an invariant."""

    def __init__(self, message: str, invariant: str, context: Optional[dict[str, Any]] = None):
        self.invariant = invariant
        self.context = context or {}
        super().__init__(f"Battle state invariant violated [{invariant}]: {message}")


def _check_mana(state: BattleState) -> None:
    if state.max_mana < 0:
        raise BattleStateInvariantError(f"Max mana is negative ({state.max_mana})", "max_mana_negative")
    if not 0 <= state.remaining_mana <= state.max_mana:
        raise BattleStateInvariantError(
            f"Remaining mana {state.remaining_mana} outside 0-{state.max_mana}",
            "mana_out_of_range",
            {"remaining_mana": state.remaining_mana, "max_mana": state.max_mana},
        )


def _check_hp(state: BattleState) -> None:
    for unit in state.player_team.units + state.enemies:
        max_hp = get_effective_max_hp(unit, state.team_for(unit.id))
        if not 0 <= unit.current_hp <= max_hp:
            raise BattleStateInvariantError(
                f"Unit {unit.id} HP {unit.current_hp} outside 0-{max_hp}",
                "hp_out_of_range",
                {"unit_id": unit.id, "current_hp": unit.current_hp, "max_hp": max_hp},
            )


def _check_queue(state: BattleState) -> None:
    team_size = len(state.player_team.units)
    if len(state.queued_actions) != team_size:
        raise BattleStateInvariantError(
            f"Queue length {len(state.queued_actions)} does not match team size {team_size}",
            "queue_length",
        )

    player_ids = {u.id for u in state.player_team.units}
    for index, action in enumerate(state.queued_actions):
        if action is not None and action.unit_id not in player_ids:
            raise BattleStateInvariantError(
                f"Queued action at index {index} references unknown unit {action.unit_id}",
                "queue_unknown_unit",
            )

    if state.phase == BattlePhase.EXECUTING:
        missing = [
            u.id
            for u, action in zip(state.player_team.units, state.queued_actions)
            if action is None and u.current_hp > 0
        ]
        if missing:
            raise BattleStateInvariantError(
                f"Executing with no action queued for {missing}", "queue_incomplete"
            )


def _check_phase(state: BattleState) -> None:
    expected = _PHASE_STATUS.get(state.phase, BattleStatus.ONGOING)
    if state.status != expected:
        raise BattleStateInvariantError(
            f"Phase {state.phase.value} does not match status {state.status.value}",
            "phase_status_mismatch",
        )


def _check_djinn(state: BattleState) -> None:
    team = state.player_team
    for djinn_id in state.queued_djinn:
        if djinn_id not in team.equipped_djinn:
            raise BattleStateInvariantError(f"Queued Djinn {djinn_id} is not equipped", "djinn_not_equipped")
    for djinn_id in team.equipped_djinn:
        if djinn_id not in team.djinn_trackers:
            raise BattleStateInvariantError(f"Equipped Djinn {djinn_id} has no tracker", "djinn_untracked")


def _check_unit_index(state: BattleState) -> None:
    expected = build_unit_index(state.player_team, state.enemies)
    if expected != state.unit_by_id:
        raise BattleStateInvariantError("unit_by_id is out of sync with the teams", "unit_index_stale")


def assert_battle_state_invariants(state: BattleState) -> None:
    """
    Validate every battle state invariant.

    Raises:
        BattleStateInvariantError: On the first violated invariant
    """
    _check_mana(state)
    _check_hp(state)
    _check_queue(state)
    _check_phase(state)
    _check_djinn(state)
    _check_unit_index(state)
