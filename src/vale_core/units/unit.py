"""
Unit model for Vale Core.

A Unit is an immutable snapshot of one combatant: identity, element, role,
base stats and growth rates, level/xp, current HP, equipment loadout, Djinn
mirror, abilities, active status effects and battle-lifetime counters.

Every operation returns a new Unit; nothing is mutated in place.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from vale_core.content.schemas import Ability, Equipment, UnitDefinition
from vale_core.data_models import (
    MAX_LEVEL,
    MIN_LEVEL,
    STAT_KEYS,
    DjinnState,
    Element,
    EquipmentSlot,
    Stats,
    StatusEffect,
    status_from_dict,
    status_to_dict,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EquipmentLoadout:
    """Five optional equipment slots."""

    weapon: Optional[Equipment] = None
    armor: Optional[Equipment] = None
    helm: Optional[Equipment] = None
    boots: Optional[Equipment] = None
    accessory: Optional[Equipment] = None

    def items(self) -> list[Equipment]:
        """Equipped items, in slot order."""
        return [item for item in (self.weapon, self.armor, self.helm, self.boots, self.accessory) if item]

    def get(self, slot: EquipmentSlot) -> Optional[Equipment]:
        return getattr(self, slot.value)

    def to_dict(self) -> dict[str, Any]:
        return {
            slot.value: (item.model_dump(mode="json", by_alias=True) if (item := self.get(slot)) else None)
            for slot in EquipmentSlot
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EquipmentLoadout":
        return cls(
            **{
                slot.value: Equipment.model_validate(data[slot.value]) if data.get(slot.value) else None
                for slot in EquipmentSlot
            }
        )


@dataclass(frozen=True)
class BattleStats:
    """Counters accumulated over one battle."""

    damage_dealt: int = 0
    damage_taken: int = 0


@dataclass(frozen=True)
class Unit:
    """
    A playable unit or an enemy converted for battle.

    Invariant: 0 <= current_hp <= max HP at the unit's level, except after
    tower normalization, which keeps current_hp untouched until the next
    heal, damage or round-end event clamps it.
    """

    id: str
    name: str
    element: Element
    role: str
    base_stats: Stats
    growth_rates: Stats
    level: int = 1
    xp: int = 0
    current_hp: int = 0
    description: str = ""
    mana_contribution: int = 1
    equipment: EquipmentLoadout = field(default_factory=EquipmentLoadout)
    djinn: tuple[str, ...] = ()
    djinn_states: dict[str, DjinnState] = field(default_factory=dict)
    abilities: tuple[Ability, ...] = ()
    unlocked_ability_ids: tuple[str, ...] = ()
    status_effects: tuple[StatusEffect, ...] = ()
    actions_taken: int = 0
    battle_stats: BattleStats = field(default_factory=BattleStats)
    original_level: Optional[int] = None
    normalized_level: Optional[int] = None

    @property
    def unlocked_abilities(self) -> list[Ability]:
        unlocked = set(self.unlocked_ability_ids)
        return [a for a in self.abilities if a.id in unlocked]

    def find_ability(self, ability_id: str) -> Optional[Ability]:
        """Find an unlocked ability by id."""
        for ability in self.unlocked_abilities:
            if ability.id == ability_id:
                return ability
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "element": self.element.value,
            "role": self.role,
            "base_stats": self.base_stats.to_dict(),
            "growth_rates": self.growth_rates.to_dict(),
            "level": self.level,
            "xp": self.xp,
            "current_hp": self.current_hp,
            "description": self.description,
            "mana_contribution": self.mana_contribution,
            "equipment": self.equipment.to_dict(),
            "djinn": list(self.djinn),
            "djinn_states": {k: v.value for k, v in self.djinn_states.items()},
            "abilities": [a.model_dump(mode="json") for a in self.abilities],
            "unlocked_ability_ids": list(self.unlocked_ability_ids),
            "status_effects": [status_to_dict(s) for s in self.status_effects],
            "actions_taken": self.actions_taken,
            "battle_stats": {
                "damage_dealt": self.battle_stats.damage_dealt,
                "damage_taken": self.battle_stats.damage_taken,
            },
            "original_level": self.original_level,
            "normalized_level": self.normalized_level,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Unit":
        """Deserialize from a dictionary produced by to_dict."""
        battle_stats = data.get("battle_stats", {})
        return cls(
            id=data["id"],
            name=data["name"],
            element=Element(data["element"]),
            role=data["role"],
            base_stats=Stats.from_dict(data["base_stats"]),
            growth_rates=Stats.from_dict(data["growth_rates"]),
            level=data.get("level", 1),
            xp=data.get("xp", 0),
            current_hp=data.get("current_hp", 0),
            description=data.get("description", ""),
            mana_contribution=data.get("mana_contribution", 1),
            equipment=EquipmentLoadout.from_dict(data.get("equipment", {})),
            djinn=tuple(data.get("djinn", [])),
            djinn_states={k: DjinnState(v) for k, v in data.get("djinn_states", {}).items()},
            abilities=tuple(Ability.model_validate(a) for a in data.get("abilities", [])),
            unlocked_ability_ids=tuple(data.get("unlocked_ability_ids", [])),
            status_effects=tuple(status_from_dict(s) for s in data.get("status_effects", [])),
            actions_taken=data.get("actions_taken", 0),
            battle_stats=BattleStats(
                damage_dealt=battle_stats.get("damage_dealt", 0),
                damage_taken=battle_stats.get("damage_taken", 0),
            ),
            original_level=data.get("original_level"),
            normalized_level=data.get("normalized_level"),
        )


# =============================================================================
# STAT ARITHMETIC
# =============================================================================


def calculate_stats_at_level(base: Stats, growth: Stats, level: int) -> Stats:
    """Compute `base + (level - 1) * growth` for every stat."""
    return Stats.model_validate(
        {key: base.get(key) + (level - 1) * growth.get(key) for key in STAT_KEYS}
    )


def calculate_max_hp(unit: Unit) -> int:
    """Max HP at the unit's level, before equipment, Djinn and statuses."""
    return unit.base_stats.hp + (unit.level - 1) * unit.growth_rates.hp


def is_unit_ko(unit: Unit) -> bool:
    return unit.current_hp <= 0


def update_unit(unit: Unit, **changes: Any) -> Unit:
    """Return a copy of unit with the given fields replaced."""
    return replace(unit, **changes)


def clamp_hp(unit: Unit, max_hp: int) -> Unit:
    """Clamp current HP into [0, max_hp]."""
    clamped = max(0, min(unit.current_hp, max_hp))
    if clamped == unit.current_hp:
        return unit
    return replace(unit, current_hp=clamped)


def unlocked_ability_ids_at(abilities: tuple[Ability, ...], level: int) -> tuple[str, ...]:
    return tuple(a.id for a in abilities if a.unlock_level <= level)


# =============================================================================
# CREATION
# =============================================================================


def create_unit(definition: UnitDefinition, level: int = 1, xp: Optional[int] = None) -> Unit:
    """
    Create a unit from its content definition.

    The unit starts at full HP for its level with every ability whose unlock
    level has been reached already unlocked.

    Args:
        definition: Validated unit definition
        level: Starting level (1-20)
        xp: Starting experience (defaults to the XP needed for level)

    Returns:
        New Unit

    Raises:
        ValueError: If level is outside 1-20
    """
    if not MIN_LEVEL <= level <= MAX_LEVEL:
        raise ValueError(f"Level must be between {MIN_LEVEL} and {MAX_LEVEL}, got: {level}")

    if xp is None:
        from vale_core.units.xp import get_xp_for_level

        xp = get_xp_for_level(level)

    abilities = tuple(definition.abilities)
    max_hp = definition.base_stats.hp + (level - 1) * definition.growth_rates.hp
    return Unit(
        id=definition.id,
        name=definition.name,
        element=definition.element,
        role=definition.role,
        base_stats=definition.base_stats,
        growth_rates=definition.growth_rates,
        level=level,
        xp=xp,
        current_hp=max_hp,
        description=definition.description,
        mana_contribution=definition.mana_contribution,
        abilities=abilities,
        unlocked_ability_ids=unlocked_ability_ids_at(abilities, level),
    )


# =============================================================================
# EQUIPMENT
# =============================================================================


def can_equip(unit: Unit, item: Equipment) -> bool:
    """An empty allowed_elements list means every element may equip the item."""
    return not item.allowed_elements or unit.element in item.allowed_elements


def equip_item(unit: Unit, item: Equipment) -> Unit:
    """
    Equip an item into its slot, replacing whatever was there.

    Abilities unlocked by the item are added to the unit's unlocked set.

    Raises:
        ValueError: If the unit's element may not equip the item
    """
    if not can_equip(unit, item):
        raise ValueError(f"{unit.name} ({unit.element.value}) cannot equip {item.name}")

    loadout = replace(unit.equipment, **{item.slot.value: item})
    unlocked = unit.unlocked_ability_ids
    if item.unlocks_ability and item.unlocks_ability not in unlocked:
        unlocked = unlocked + (item.unlocks_ability,)
    logger.debug(f"{unit.id} equipped {item.id} in {item.slot.value}")
    return replace(unit, equipment=loadout, unlocked_ability_ids=unlocked)


def unequip_slot(unit: Unit, slot: EquipmentSlot) -> Unit:
    item = unit.equipment.get(slot)
    if item is None:
        return unit
    unlocked = unit.unlocked_ability_ids
    if item.unlocks_ability:
        unlocked = tuple(a for a in unlocked if a != item.unlocks_ability)
    return replace(unit, equipment=replace(unit.equipment, **{slot.value: None}), unlocked_ability_ids=unlocked)
