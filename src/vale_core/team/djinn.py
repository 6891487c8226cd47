"""
Djinn collection, equipping and lifecycle.

Collection and equipping are expected game-flow operations and report
failures through DjinnResult. Lifecycle changes (Set -> Standby -> Recovery)
are contract-checked against the Djinn transition table and raise
InvalidTransitionError when illegal.
"""

import logging
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import TYPE_CHECKING, Optional

from vale_core.content.schemas import Ability
from vale_core.data_models import (
    MAX_COLLECTED_DJINN,
    MAX_EQUIPPED_DJINN,
    DjinnState,
)
from vale_core.state_machine import StateTransition, TransitionTable
from vale_core.team.team import DjinnTracker, Team, sync_unit_djinn
from vale_core.units.stats import get_element_relationship
from vale_core.units.unit import Unit

if TYPE_CHECKING:
    from vale_core.content.repository import ContentRepository

logger = logging.getLogger(__name__)


# =============================================================================
# RULES
# =============================================================================


@dataclass(frozen=True)
class DjinnRules:
    """
    Configurable Djinn lifecycle.

    Attributes:
        state_on_equip: State a newly equipped Djinn starts in
        summonable_states: States from which a Djinn may be queued for summon
        recovery_target: State a Djinn returns to once its recovery timer ends
        recovery_rounds: Fixed recovery length; None means (Djinn summoned together + 1)
    """

    state_on_equip: DjinnState = DjinnState.SET
    summonable_states: tuple[DjinnState, ...] = (DjinnState.STANDBY,)
    recovery_target: DjinnState = DjinnState.STANDBY
    recovery_rounds: Optional[int] = None

    def recovery_rounds_for(self, summoned_together: int) -> int:
        if self.recovery_rounds is not None:
            return self.recovery_rounds
        return summoned_together + 1


DEFAULT_DJINN_RULES = DjinnRules()


@lru_cache(maxsize=None)
def get_djinn_transitions(recovery_target: DjinnState = DjinnState.STANDBY) -> TransitionTable:
    """Build the Djinn transition table for a recovery target."""
    return TransitionTable(
        "djinn",
        [
            StateTransition(DjinnState.SET, DjinnState.STANDBY, "release", "Djinn released for summoning"),
            StateTransition(DjinnState.STANDBY, DjinnState.RECOVERY, "summon", "Djinn used in a summon"),
            StateTransition(DjinnState.RECOVERY, recovery_target, "recover", "Recovery timer elapsed"),
            StateTransition(DjinnState.STANDBY, DjinnState.SET, "reset", "Djinn returned to Set"),
            StateTransition(DjinnState.RECOVERY, DjinnState.SET, "reset", "Djinn returned to Set"),
        ],
    )


DJINN_TRANSITIONS = get_djinn_transitions().transitions


@dataclass(frozen=True)
class DjinnResult:
    """Result of a Djinn collection or equip operation."""

    success: bool
    team: Team
    error: Optional[str] = None

    @classmethod
    def ok(cls, team: Team) -> "DjinnResult":
        return cls(success=True, team=team)

    @classmethod
    def fail(cls, team: Team, error: str) -> "DjinnResult":
        logger.debug(f"Djinn operation failed: {error}")
        return cls(success=False, team=team, error=error)


# =============================================================================
# COLLECTION AND EQUIPPING
# =============================================================================


def collect_djinn(
    team: Team,
    djinn_id: str,
    repository: Optional["ContentRepository"] = None,
) -> DjinnResult:
    """
    Add a Djinn to the team's collected pool.

    Args:
        team: The team
        djinn_id: Djinn to collect
        repository: When given, the Djinn must exist in it

    Returns:
        DjinnResult with the updated team
    """
    if repository is not None and not repository.has_djinn(djinn_id):
        return DjinnResult.fail(team, f"Djinn {djinn_id} does not exist")
    if djinn_id in team.collected_djinn:
        return DjinnResult.fail(team, f"Djinn {djinn_id} already collected")
    if len(team.collected_djinn) >= MAX_COLLECTED_DJINN:
        return DjinnResult.fail(team, f"Cannot collect more than {MAX_COLLECTED_DJINN} Djinn")

    logger.info(f"Collected Djinn {djinn_id}")
    return DjinnResult.ok(replace(team, collected_djinn=team.collected_djinn + (djinn_id,)))


def equip_djinn(
    team: Team,
    djinn_id: str,
    repository: "ContentRepository",
    slot_index: int = -1,
    rules: DjinnRules = DEFAULT_DJINN_RULES,
) -> DjinnResult:
    """
    Equip a collected Djinn.

    When all three slots are full, slot_index selects the Djinn to replace.

    Args:
        team: The team
        djinn_id: Djinn to equip
        repository: Content repository used to resolve the Djinn's element
        slot_index: Slot to replace when full (0-2)
        rules: Djinn lifecycle rules

    Returns:
        DjinnResult with the updated team
    """
    if djinn_id not in team.collected_djinn:
        return DjinnResult.fail(team, f"Djinn {djinn_id} not collected")
    if djinn_id in team.equipped_djinn:
        return DjinnResult.fail(team, f"Djinn {djinn_id} already equipped")

    equipped = list(team.equipped_djinn)
    trackers = dict(team.djinn_trackers)
    if len(equipped) >= MAX_EQUIPPED_DJINN:
        if not 0 <= slot_index < MAX_EQUIPPED_DJINN:
            return DjinnResult.fail(team, "All 3 Djinn slots are full. Unequip one first.")
        replaced = equipped[slot_index]
        trackers.pop(replaced, None)
        equipped[slot_index] = djinn_id
        logger.debug(f"Replaced Djinn {replaced} with {djinn_id} in slot {slot_index}")
    else:
        equipped.append(djinn_id)

    djinn = repository.get_djinn(djinn_id)
    trackers[djinn_id] = DjinnTracker(
        djinn_id=djinn_id,
        element=djinn.element,
        state=rules.state_on_equip,
        last_activated_turn=-1,
    )
    updated = replace(team, equipped_djinn=tuple(equipped), djinn_trackers=trackers)
    return DjinnResult.ok(sync_unit_djinn(updated))


def unequip_djinn(team: Team, djinn_id: str) -> DjinnResult:
    if djinn_id not in team.equipped_djinn:
        return DjinnResult.fail(team, f"Djinn {djinn_id} not equipped")

    trackers = dict(team.djinn_trackers)
    trackers.pop(djinn_id, None)
    updated = replace(
        team,
        equipped_djinn=tuple(d for d in team.equipped_djinn if d != djinn_id),
        djinn_trackers=trackers,
    )
    return DjinnResult.ok(sync_unit_djinn(updated))


# =============================================================================
# LIFECYCLE
# =============================================================================


def transition_djinn(
    team: Team,
    djinn_id: str,
    trigger: str,
    turn: Optional[int] = None,
    rules: DjinnRules = DEFAULT_DJINN_RULES,
) -> Team:
    """
    Move an equipped Djinn through its lifecycle.

    Args:
        team: The team
        djinn_id: Equipped Djinn to transition
        trigger: "release", "summon", "recover" or "reset"
        turn: Turn to record as last_activated_turn on summon
        rules: Djinn lifecycle rules (selects the recovery target)

    Returns:
        Updated team

    Raises:
        KeyError: If the Djinn is not equipped
        InvalidTransitionError: If the trigger is not valid from the current state
    """
    tracker = team.djinn_trackers.get(djinn_id)
    if tracker is None or djinn_id not in team.equipped_djinn:
        raise KeyError(f"Djinn {djinn_id} not equipped")

    table = get_djinn_transitions(rules.recovery_target)
    new_state = table.resolve(tracker.state, trigger, machine=f"djinn:{djinn_id}")

    last_activated = tracker.last_activated_turn
    activations = team.activations_this_turn
    if trigger == "summon":
        last_activated = team.current_turn if turn is None else turn
        element = tracker.element.value
        activations = {**activations, element: activations.get(element, 0) + 1}

    trackers = {
        **team.djinn_trackers,
        djinn_id: replace(tracker, state=new_state, last_activated_turn=last_activated),
    }
    return sync_unit_djinn(replace(team, djinn_trackers=trackers, activations_this_turn=activations))


def reset_all_djinn(team: Team) -> Team:
    """Return every equipped Djinn to the Set state."""
    trackers = {
        djinn_id: replace(tracker, state=DjinnState.SET)
        for djinn_id, tracker in team.djinn_trackers.items()
    }
    return sync_unit_djinn(replace(team, djinn_trackers=trackers))


def get_set_djinn(team: Team) -> list[DjinnTracker]:
    return team.get_set_djinn()


def get_djinn_in_state(team: Team, state: DjinnState) -> list[DjinnTracker]:
    return team.get_djinn_in_state(state)


def get_djinn_granted_abilities(
    unit: Unit,
    team: Team,
    repository: "ContentRepository",
) -> list[Ability]:
    """
    Abilities granted to a unit by the team's Set Djinn.

    Each Djinn lists granted ability ids per unit id, bucketed by the Djinn's
    element relationship with that unit (same, counter or neutral).
    """
    granted: list[Ability] = []
    seen: set[str] = set()
    for tracker in team.get_set_djinn():
        djinn = repository.get_djinn(tracker.djinn_id)
        buckets = djinn.granted_abilities.get(unit.id)
        if buckets is None:
            continue
        relationship = get_element_relationship(unit.element, djinn.element)
        for ability_id in getattr(buckets, relationship):
            ability = repository.find_ability(ability_id)
            if ability is None:
                logger.warning(f"Djinn {djinn.id} grants unknown ability {ability_id}")
                continue
            if ability_id not in seen:
                seen.add(ability_id)
                granted.append(ability)
    return granted
