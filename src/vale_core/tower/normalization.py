"""
Level normalization for the Battle Tower.

Each floor fights at a fixed target level regardless of how far the party
has progressed elsewhere. A unit is rescaled to the floor's level before the
battle; its current HP is left as it is, so a damaged unit stays damaged
across the level jump. HP above the new maximum is clamped by the next heal,
hit or round end.

Stepped curve (default):
    Floors 1-5:   level 5
    Floors 6-10:  level 10
    Floors 11-15: level 15
"""

import logging
import math
from dataclasses import replace
from typing import Iterable, Union

from vale_core.content.schemas import TowerFloor
from vale_core.data_models import STAT_KEYS, ProgressionCurve, Stats
from vale_core.units.unit import Unit

logger = logging.getLogger(__name__)

EXPONENTIAL_LEVEL_CAP = 50

# Flat growth per level used for normalization, independent of a unit's own rates
FLAT_GROWTH_PER_LEVEL: dict[str, float] = {
    "hp": 5,
    "pp": 1.5,
    "atk": 2.5,
    "def": 2.5,
    "mag": 2.5,
    "spd": 1.5,
}

NORMALIZED_STAT_MINIMUMS: dict[str, int] = {
    "hp": 1,
    "pp": 0,
    "atk": 1,
    "def": 1,
    "mag": 1,
    "spd": 1,
}


def calculate_floor_target_level(
    floor_number: int,
    curve: Union[ProgressionCurve, str] = ProgressionCurve.STEPPED,
) -> int:
    """
    Target level for a floor.

    Args:
        floor_number: 1-based floor number
        curve: "stepped" (ceil(f/5)*5), "linear" (f) or "exponential"
            (5 + 1.5f, capped at 50)

    Returns:
        Target level
    """
    curve = ProgressionCurve(curve)
    if curve == ProgressionCurve.LINEAR:
        return floor_number
    if curve == ProgressionCurve.EXPONENTIAL:
        return min(EXPONENTIAL_LEVEL_CAP, math.floor(5 + floor_number * 1.5))
    return math.ceil(floor_number / 5) * 5


def _scaled(base: Stats, growth_per_level: dict[str, float], level_delta: int) -> Stats:
    values = {
        key: max(NORMALIZED_STAT_MINIMUMS[key], base.get(key) + math.floor(growth_per_level[key] * level_delta))
        for key in STAT_KEYS
    }
    return Stats.from_dict(values)


def calculate_level_scaled_stats(base: Stats, from_level: int, to_level: int) -> Stats:
    """
    Rescale stats between levels with the flat per-level growth table.

    Works in both directions. Returns base unchanged when the levels match.
    """
    if from_level == to_level:
        return base
    return _scaled(base, FLAT_GROWTH_PER_LEVEL, to_level - from_level)


def calculate_stats_with_growth_rates(base: Stats, growth: Stats, from_level: int, to_level: int) -> Stats:
    """Like calculate_level_scaled_stats, but using the unit's own growth rates."""
    if from_level == to_level:
        return base
    rates = {key: float(growth.get(key)) for key in STAT_KEYS}
    return _scaled(base, rates, to_level - from_level)


def calculate_max_hp_at_level(base_hp: int, growth_hp: int, level: int) -> int:
    return base_hp + (level - 1) * growth_hp


def normalize_unit_for_floor(
    unit: Unit,
    floor: TowerFloor,
    curve: Union[ProgressionCurve, str] = ProgressionCurve.STEPPED,
) -> Unit:
    """
    Rescale a unit to a floor's level.

    The floor's normalized_level wins over the curve. The unit's level and
    base stats change; original_level keeps the level it came in with, even
    when the unit was already normalized for an earlier floor.

    Returns:
        Normalized copy of the unit; current_hp is unchanged
    """
    target = floor.normalized_level or calculate_floor_target_level(floor.floor_number, curve)
    original_level = unit.original_level if unit.original_level is not None else unit.level
    logger.debug(f"Normalizing {unit.id} from level {unit.level} to {target} for floor {floor.floor_number}")
    return replace(
        unit,
        level=target,
        base_stats=calculate_level_scaled_stats(unit.base_stats, unit.level, target),
        original_level=original_level,
        normalized_level=target,
    )


def normalize_party_for_floor(
    units: Iterable[Unit],
    floor: TowerFloor,
    curve: Union[ProgressionCurve, str] = ProgressionCurve.STEPPED,
) -> list[Unit]:
    return [normalize_unit_for_floor(unit, floor, curve) for unit in units]


def is_normalized_unit(unit: Unit) -> bool:
    return unit.normalized_level is not None and unit.original_level is not None
