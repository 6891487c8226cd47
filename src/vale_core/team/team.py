"""
Team model for Vale Core.

A Team is the player party: one to four units, the shared Djinn pool and the
per-battle Djinn trackers. Djinn are team-wide; each equipped Djinn affects
every unit's stats according to its element relationship with that unit.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional

from vale_core.data_models import (
    MAX_COLLECTED_DJINN,
    MAX_EQUIPPED_DJINN,
    MAX_PARTY_SIZE,
    MIN_PARTY_SIZE,
    DjinnState,
    Element,
)
from vale_core.units.unit import Unit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DjinnTracker:
    """Lifecycle state of one equipped Djinn."""

    djinn_id: str
    element: Element
    state: DjinnState = DjinnState.SET
    last_activated_turn: int = -1

    def to_dict(self) -> dict[str, Any]:
        return {
            "djinn_id": self.djinn_id,
            "element": self.element.value,
            "state": self.state.value,
            "last_activated_turn": self.last_activated_turn,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DjinnTracker":
        return cls(
            djinn_id=data["djinn_id"],
            element=Element(data["element"]),
            state=DjinnState(data.get("state", DjinnState.SET.value)),
            last_activated_turn=data.get("last_activated_turn", -1),
        )


@dataclass(frozen=True)
class Team:
    """
    The player party.

    Invariants:
        - 1 <= len(units) <= 4
        - equipped_djinn holds at most 3 unique ids, each with a tracker
        - collected_djinn holds at most 12 ids
    """

    units: tuple[Unit, ...]
    equipped_djinn: tuple[str, ...] = ()
    djinn_trackers: dict[str, DjinnTracker] = field(default_factory=dict)
    collected_djinn: tuple[str, ...] = ()
    current_turn: int = 0
    activations_this_turn: dict[str, int] = field(default_factory=dict)

    def get_unit(self, unit_id: str) -> Optional[Unit]:
        for unit in self.units:
            if unit.id == unit_id:
                return unit
        return None

    def get_set_djinn(self) -> list[DjinnTracker]:
        """Equipped Djinn in the Set state, in slot order."""
        return self.get_djinn_in_state(DjinnState.SET)

    def get_djinn_in_state(self, state: DjinnState) -> list[DjinnTracker]:
        return [
            self.djinn_trackers[djinn_id]
            for djinn_id in self.equipped_djinn
            if djinn_id in self.djinn_trackers and self.djinn_trackers[djinn_id].state == state
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "units": [u.to_dict() for u in self.units],
            "equipped_djinn": list(self.equipped_djinn),
            "djinn_trackers": {k: v.to_dict() for k, v in self.djinn_trackers.items()},
            "collected_djinn": list(self.collected_djinn),
            "current_turn": self.current_turn,
            "activations_this_turn": dict(self.activations_this_turn),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Team":
        return create_team(
            [Unit.from_dict(u) for u in data["units"]],
            equipped_djinn=data.get("equipped_djinn", []),
            djinn_trackers={k: DjinnTracker.from_dict(v) for k, v in data.get("djinn_trackers", {}).items()},
            collected_djinn=data.get("collected_djinn", []),
            current_turn=data.get("current_turn", 0),
            activations_this_turn=data.get("activations_this_turn", {}),
        )


def _validate_team(team: Team) -> None:
    if not MIN_PARTY_SIZE <= len(team.units) <= MAX_PARTY_SIZE:
        raise ValueError(
            f"Team must have {MIN_PARTY_SIZE}-{MAX_PARTY_SIZE} units, got: {len(team.units)}"
        )
    if len(team.equipped_djinn) > MAX_EQUIPPED_DJINN:
        raise ValueError(f"Cannot equip more than {MAX_EQUIPPED_DJINN} Djinn")
    if len(set(team.equipped_djinn)) != len(team.equipped_djinn):
        raise ValueError(f"Equipped Djinn must be unique: {list(team.equipped_djinn)}")
    if len(team.collected_djinn) > MAX_COLLECTED_DJINN:
        raise ValueError(f"Cannot collect more than {MAX_COLLECTED_DJINN} Djinn")


def sync_unit_djinn(team: Team) -> Team:
    """Refresh every unit's Djinn mirror from the team's equipped Djinn."""
    states = {
        djinn_id: team.djinn_trackers[djinn_id].state
        for djinn_id in team.equipped_djinn
        if djinn_id in team.djinn_trackers
    }
    units = tuple(
        replace(unit, djinn=team.equipped_djinn, djinn_states=dict(states)) for unit in team.units
    )
    return replace(team, units=units)


def create_team(
    units: Iterable[Unit],
    equipped_djinn: Iterable[str] = (),
    djinn_trackers: Optional[dict[str, DjinnTracker]] = None,
    collected_djinn: Iterable[str] = (),
    current_turn: int = 0,
    activations_this_turn: Optional[dict[str, int]] = None,
) -> Team:
    """
    Create a validated team.

    Raises:
        ValueError: On a party-size or Djinn-slot violation
    """
    team = Team(
        units=tuple(units),
        equipped_djinn=tuple(equipped_djinn),
        djinn_trackers=dict(djinn_trackers or {}),
        collected_djinn=tuple(collected_djinn),
        current_turn=current_turn,
        activations_this_turn=dict(activations_this_turn or {}),
    )
    _validate_team(team)
    return sync_unit_djinn(team)


def update_team(team: Team, **changes: Any) -> Team:
    """
    Return a copy of team with the given fields replaced.

    Raises:
        ValueError: If the result violates a team invariant
    """
    updated = replace(team, **changes)
    _validate_team(updated)
    return sync_unit_djinn(updated)


def replace_unit(team: Team, unit: Unit) -> Team:
    """Swap in an updated unit by id."""
    units = tuple(unit if u.id == unit.id else u for u in team.units)
    return replace(team, units=units)


def advance_team_turn(team: Team) -> Team:
    """Increment the team turn and clear per-turn activation counters."""
    return replace(team, current_turn=team.current_turn + 1, activations_this_turn={})
