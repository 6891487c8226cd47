"""
Conversions between enemy content and battle units.
"""

import logging
from typing import Mapping, Optional

from vale_core.content.schemas import Enemy, UnitDefinition
from vale_core.data_models import ENEMY_ROLE, ZERO_STATS, Stats
from vale_core.units.unit import Unit, calculate_stats_at_level

logger = logging.getLogger(__name__)


def enemy_to_unit(enemy: Enemy, level: Optional[int] = None) -> Unit:
    """
    Convert an enemy definition into a battle Unit.

    Enemy stats are authored at the enemy's level, so they become the base
    stats with zero growth. Every enemy ability is unlocked regardless of
    unlock_level.

    Args:
        enemy: Enemy content
        level: Level override (used by tower scaling); defaults to enemy.level

    Returns:
        Unit at full HP with mana contribution 0
    """
    abilities = tuple(enemy.abilities)
    return Unit(
        id=enemy.id,
        name=enemy.name,
        element=enemy.element,
        role=ENEMY_ROLE,
        base_stats=enemy.stats,
        growth_rates=ZERO_STATS,
        level=level if level is not None else enemy.level,
        xp=0,
        current_hp=enemy.stats.hp,
        description=enemy.description,
        mana_contribution=0,
        abilities=abilities,
        unlocked_ability_ids=tuple(a.id for a in abilities),
    )


def unit_definition_to_enemy(
    definition: UnitDefinition,
    level: int = 2,
    base_xp: int = 60,
    base_gold: int = 19,
    enemy_id: Optional[str] = None,
    stat_overrides: Optional[Mapping[str, int]] = None,
) -> Enemy:
    """
    Build an enemy from a playable unit definition.

    Used for mirror matches and recruit-style encounters.

    Args:
        definition: Unit definition to convert
        level: Level to compute stats at
        base_xp: XP awarded on defeat
        base_gold: Gold awarded on defeat
        enemy_id: Enemy id (defaults to "<unit id>-enemy")
        stat_overrides: Individual stat values replacing the computed ones

    Returns:
        Validated Enemy
    """
    stats = calculate_stats_at_level(definition.base_stats, definition.growth_rates, level)
    if stat_overrides:
        stats = Stats.from_dict({**stats.to_dict(), **stat_overrides})

    abilities = [a for a in definition.abilities if a.unlock_level <= level]
    if not abilities and definition.abilities:
        abilities = [definition.abilities[0]]

    enemy_id = enemy_id or f"{definition.id}-enemy"
    logger.debug(f"Converted unit definition {definition.id} to enemy {enemy_id} at level {level}")
    return Enemy(
        id=enemy_id,
        name=definition.name,
        level=level,
        element=definition.element,
        stats=stats,
        abilities=abilities,
        base_xp=base_xp,
        base_gold=base_gold,
        description=definition.description,
    )
