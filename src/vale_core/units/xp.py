"""
Experience and leveling for Vale units.

XP is cumulative: XP_CURVE maps each level to the total XP needed to reach it.
A unit's level is always derived from its XP total, capped at level 20.
"""

import logging
from dataclasses import dataclass, field, replace

from vale_core.data_models import MAX_LEVEL, MIN_LEVEL
from vale_core.units.unit import Unit, unlocked_ability_ids_at

logger = logging.getLogger(__name__)


# =============================================================================
# XP CURVE
# =============================================================================

XP_CURVE: dict[int, int] = {
    1: 0,
    2: 100,
    3: 350,
    4: 850,
    5: 1850,
    6: 3100,
    7: 4700,
    8: 6700,
    9: 9200,
    10: 12300,
    11: 16000,
    12: 20400,
    13: 25600,
    14: 31700,
    15: 38800,
    16: 47000,
    17: 56400,
    18: 67100,
    19: 79200,
    20: 92800,
}


@dataclass(frozen=True)
class XpResult:
    """Result of adding XP to a unit."""

    unit: Unit
    leveled_up: bool
    new_level: int
    unlocked_abilities: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class XpProgress:
    """Progress toward the next level, for display."""

    level: int
    current: int
    needed: int  # 0 at max level
    progress: float  # 0.0 to 1.0


def get_xp_for_level(level: int) -> int:
    """Cumulative XP needed to reach a level, clamped to the 1-20 curve."""
    if level < MIN_LEVEL:
        return 0
    return XP_CURVE[min(level, MAX_LEVEL)]


def calculate_level_from_xp(xp: int) -> int:
    """Highest level reachable with the given XP total."""
    if xp < 0:
        return MIN_LEVEL

    low, high = MIN_LEVEL, MAX_LEVEL
    result = MIN_LEVEL
    while low <= high:
        mid = (low + high) // 2
        if xp >= XP_CURVE[mid]:
            result = mid
            low = mid + 1
        else:
            high = mid - 1
    return result


def add_xp(unit: Unit, amount: int) -> XpResult:
    """
    Add (or remove) XP and recompute the unit's level.

    XP never drops below 0. Levelling up unlocks every ability whose unlock
    level was crossed; levelling down recomputes the unlocked set from scratch.

    Args:
        unit: Unit receiving XP
        amount: XP to add (negative to remove)

    Returns:
        XpResult with the updated unit and any newly unlocked ability ids
    """
    new_xp = max(0, unit.xp + amount)
    old_level = unit.level
    new_level = calculate_level_from_xp(new_xp)
    leveled_up = new_level > old_level

    unlocked: list[str] = []
    unlocked_ids = unit.unlocked_ability_ids
    if leveled_up:
        unlocked = [a.id for a in unit.abilities if old_level < a.unlock_level <= new_level]
        unlocked_ids = unlocked_ids + tuple(a for a in unlocked if a not in unlocked_ids)
        logger.info(f"{unit.name} reached level {new_level}")
    elif new_level < old_level:
        unlocked_ids = unlocked_ability_ids_at(unit.abilities, new_level)

    updated = replace(unit, xp=new_xp, level=new_level, unlocked_ability_ids=unlocked_ids)
    return XpResult(unit=updated, leveled_up=leveled_up, new_level=new_level, unlocked_abilities=unlocked)


def get_xp_progress(xp: int) -> XpProgress:
    level = calculate_level_from_xp(xp)
    current_level_xp = get_xp_for_level(level)
    next_level_xp = get_xp_for_level(level + 1)

    current = xp - current_level_xp
    needed = next_level_xp - current_level_xp if next_level_xp > current_level_xp else 0
    progress = current / needed if needed > 0 else 1.0
    return XpProgress(level=level, current=current, needed=needed, progress=max(0.0, min(1.0, progress)))
