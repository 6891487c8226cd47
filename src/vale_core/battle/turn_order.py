"""
Turn order.

Actors are ordered by:
1. Priority tier: units wearing boots with always_first_turn act first
2. Effective SPD, descending
3. Player units before enemies
4. Roster index (position within the party or enemy list)

No randomness is involved, so the same state always yields the same order.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from vale_core.team.team import Team
from vale_core.units.stats import get_effective_spd
from vale_core.units.unit import Unit, is_unit_ko


@dataclass(frozen=True)
class TurnEntry:
    unit_id: str
    is_player: bool
    roster_index: int
    spd: int
    priority: int = 0

    def sort_key(self) -> tuple[int, int, int, int]:
        return (-self.priority, -self.spd, 0 if self.is_player else 1, self.roster_index)


def has_first_turn_priority(unit: Unit) -> bool:
    boots = unit.equipment.boots
    return bool(boots and boots.always_first_turn)


def make_turn_entry(unit: Unit, is_player: bool, roster_index: int, team: Optional[Team]) -> TurnEntry:
    return TurnEntry(
        unit_id=unit.id,
        is_player=is_player,
        roster_index=roster_index,
        spd=get_effective_spd(unit, team if is_player else None),
        priority=1 if has_first_turn_priority(unit) else 0,
    )


def sort_turn_entries(entries: Iterable[TurnEntry]) -> list[TurnEntry]:
    return sorted(entries, key=TurnEntry.sort_key)


def calculate_turn_order(team: Team, enemies: Iterable[Unit]) -> tuple[str, ...]:
    """
    Order every living combatant for a round.

    Djinn bonuses apply to player units only.

    Returns:
        Unit ids in acting order
    """
    entries = [
        make_turn_entry(unit, True, index, team)
        for index, unit in enumerate(team.units)
        if not is_unit_ko(unit)
    ]
    entries.extend(
        make_turn_entry(unit, False, index, team)
        for index, unit in enumerate(enemies)
        if not is_unit_ko(unit)
    )
    return tuple(entry.unit_id for entry in sort_turn_entries(entries))
