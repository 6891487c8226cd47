"""
Unit model for Vale Core.

Units, effective stat derivation, enemy conversion and XP/leveling.
"""

from vale_core.units.unit import (
    BattleStats,
    EquipmentLoadout,
    Unit,
    calculate_max_hp,
    calculate_stats_at_level,
    can_equip,
    clamp_hp,
    create_unit,
    equip_item,
    is_unit_ko,
    unequip_slot,
    update_unit,
)
from vale_core.units.stats import (
    calculate_effective_stats,
    effective_current_hp,
    get_effective_max_hp,
    get_effective_spd,
    get_element_relationship,
)
from vale_core.units.conversion import enemy_to_unit, unit_definition_to_enemy
from vale_core.units.xp import (
    XP_CURVE,
    XpProgress,
    XpResult,
    add_xp,
    calculate_level_from_xp,
    get_xp_for_level,
    get_xp_progress,
)

__all__ = [
    "BattleStats",
    "EquipmentLoadout",
    "Unit",
    "calculate_max_hp",
    "calculate_stats_at_level",
    "can_equip",
    "clamp_hp",
    "create_unit",
    "equip_item",
    "is_unit_ko",
    "unequip_slot",
    "update_unit",
    "calculate_effective_stats",
    "effective_current_hp",
    "get_effective_max_hp",
    "get_effective_spd",
    "get_element_relationship",
    "enemy_to_unit",
    "unit_definition_to_enemy",
    "XP_CURVE",
    "XpProgress",
    "XpResult",
    "add_xp",
    "calculate_level_from_xp",
    "get_xp_for_level",
    "get_xp_progress",
]
