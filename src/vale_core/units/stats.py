"""
Effective stat derivation.

Effective stats are composed in a fixed order from
(base stats, growth rates, level, equipment, Djinn, statuses):

1. Level stats: base + (level - 1) * growth
2. Flat equipment bonuses
3. Djinn bonuses from equipped Djinn in the Set state (ATK/DEF only)
4. Buff and debuff status modifiers
5. Floor each stat and clamp to its minimum

The result is deterministic and side-effect free.
"""

from typing import TYPE_CHECKING, Optional

from vale_core.data_models import (
    COUNTER_ELEMENTS,
    DJINN_COUNTER_ELEMENT_BONUS,
    DJINN_NEUTRAL_BONUS,
    DJINN_SAME_ELEMENT_BONUS,
    STAT_KEYS,
    Buff,
    Debuff,
    Element,
    Stats,
)
from vale_core.units.unit import Unit

if TYPE_CHECKING:
    from vale_core.team.team import Team


def get_element_relationship(unit_element: Element, djinn_element: Element) -> str:
    """
    Classify a Djinn's element against a unit's element.

    Returns:
        "same", "counter" or "neutral"
    """
    if unit_element == djinn_element:
        return "same"
    if COUNTER_ELEMENTS.get(unit_element) == djinn_element:
        return "counter"
    return "neutral"


def calculate_level_bonuses(unit: Unit) -> dict[str, int]:
    levels = unit.level - 1
    return {key: levels * unit.growth_rates.get(key) for key in STAT_KEYS}


def calculate_equipment_bonuses(unit: Unit) -> dict[str, int]:
    bonuses = dict.fromkeys(STAT_KEYS, 0)
    for item in unit.equipment.items():
        for key in STAT_KEYS:
            bonuses[key] += item.stat_bonus.get(key)
    return bonuses


def calculate_djinn_bonuses(unit: Unit, team: Optional["Team"]) -> dict[str, int]:
    """Sum per-Djinn bonuses for every equipped Djinn currently Set."""
    bonuses = dict.fromkeys(STAT_KEYS, 0)
    if team is None:
        return bonuses

    table = {
        "same": DJINN_SAME_ELEMENT_BONUS,
        "counter": DJINN_COUNTER_ELEMENT_BONUS,
        "neutral": DJINN_NEUTRAL_BONUS,
    }
    for tracker in team.get_set_djinn():
        relationship = get_element_relationship(unit.element, tracker.element)
        for key, value in table[relationship].items():
            bonuses[key] += value
    return bonuses


def calculate_status_modifiers(unit: Unit) -> dict[str, int]:
    modifiers = dict.fromkeys(STAT_KEYS, 0)
    for status in unit.status_effects:
        if isinstance(status, (Buff, Debuff)):
            modifiers[status.stat] += status.modifier
    return modifiers


def calculate_effective_stats(unit: Unit, team: Optional["Team"] = None) -> Stats:
    """
    Derive the stats a unit fights with.

    Args:
        unit: The unit
        team: The unit's team for Djinn bonuses (None for enemies)

    Returns:
        Effective Stats, clamped to the stat minimums
    """
    base = unit.base_stats
    level = calculate_level_bonuses(unit)
    equipment = calculate_equipment_bonuses(unit)
    djinn = calculate_djinn_bonuses(unit, team)
    status = calculate_status_modifiers(unit)

    return Stats.from_values(
        {
            key: base.get(key) + level[key] + equipment[key] + djinn[key] + status[key]
            for key in STAT_KEYS
        }
    )


def get_effective_max_hp(unit: Unit, team: Optional["Team"] = None) -> int:
    return calculate_effective_stats(unit, team).hp


def get_effective_spd(unit: Unit, team: Optional["Team"] = None) -> int:
    return calculate_effective_stats(unit, team).spd


def effective_current_hp(unit: Unit, team: Optional["Team"] = None) -> int:
    """Current HP clamped to [0, effective max] on read."""
    return max(0, min(unit.current_hp, get_effective_max_hp(unit, team)))
