"""
Damage and healing arithmetic.

Physical:  base + ATK - DEF * (1 - ignore_defense) * 0.5
           where base is the ability's power, or ATK again when it has none
Psynergy:  (power + MAG - DEF * (1 - ignore_defense) * 0.3) * element modifier
           * (1 - armor elemental resist)
Both then pass through status modifiers (elemental resistance, damage
reduction), are floored and never drop below 1.

Damage application checks invulnerability, then shields, then applies HP loss
and finally auto-revive.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Optional

from vale_core.content.schemas import Ability
from vale_core.data_models import (
    AutoRevive,
    DamageReduction,
    Element,
    ElementalResistance,
    Invulnerable,
    Shield,
)
from vale_core.team.team import Team
from vale_core.units.stats import calculate_effective_stats
from vale_core.units.unit import BattleStats, Unit, is_unit_ko

logger = logging.getLogger(__name__)

ELEMENT_ADVANTAGE_MULTIPLIER = 1.5
ELEMENT_DISADVANTAGE_MULTIPLIER = 0.67
DEFENSE_MULTIPLIER = 0.5
PSYNERGY_DEFENSE_MULTIPLIER = 0.3
MINIMUM_DAMAGE = 1
MINIMUM_HEALING = 1

# attacker element -> element it is strong against
ELEMENT_ADVANTAGE: dict[Element, Element] = {
    Element.VENUS: Element.JUPITER,
    Element.JUPITER: Element.MERCURY,
    Element.MERCURY: Element.MARS,
    Element.MARS: Element.VENUS,
}


def get_element_modifier(attack_element: Optional[Element], defense_element: Element) -> float:
    """1.5 on advantage, 0.67 on disadvantage, 1.0 otherwise."""
    if attack_element is None:
        return 1.0
    if ELEMENT_ADVANTAGE.get(attack_element) == defense_element:
        return ELEMENT_ADVANTAGE_MULTIPLIER
    if ELEMENT_ADVANTAGE.get(defense_element) == attack_element:
        return ELEMENT_DISADVANTAGE_MULTIPLIER
    return 1.0


def apply_damage_modifiers(damage: float, element: Optional[Element], defender: Unit) -> float:
    """
    Apply the defender's status-based modifiers to raw damage.

    Elemental resistance matching the attack element scales damage by
    (1 - total modifier); negative modifiers are weaknesses. Damage reduction
    percents are summed and clamped to [0, 1].
    """
    if element is not None and element != Element.NEUTRAL:
        resist = sum(
            s.modifier
            for s in defender.status_effects
            if isinstance(s, ElementalResistance) and s.element == element
        )
        damage *= max(0.0, 1 - resist)

    reduction = sum(s.percent for s in defender.status_effects if isinstance(s, DamageReduction))
    damage *= 1 - min(1.0, max(0.0, reduction))
    return damage


def _effective_defense(defender: Unit, defender_team: Optional[Team], ability: Optional[Ability]) -> float:
    ignore = ability.ignore_defense_percent if ability and ability.ignore_defense_percent else 0.0
    ignore = min(1.0, max(0.0, ignore))
    return calculate_effective_stats(defender, defender_team).def_ * (1 - ignore)


def calculate_physical_damage(
    attacker: Unit,
    defender: Unit,
    ability: Optional[Ability] = None,
    attacker_team: Optional[Team] = None,
    defender_team: Optional[Team] = None,
) -> int:
    """
    Physical damage for an ability, or a basic attack when ability is None.

    Returns:
        Damage, at least MINIMUM_DAMAGE
    """
    atk = calculate_effective_stats(attacker, attacker_team).atk
    power = ability.base_power if ability else 0
    base = power if power > 0 else atk
    raw = base + atk - _effective_defense(defender, defender_team, ability) * DEFENSE_MULTIPLIER

    element = ability.element if ability else None
    modified = apply_damage_modifiers(raw, element, defender)
    return max(MINIMUM_DAMAGE, math.floor(modified))


def calculate_psynergy_damage(
    attacker: Unit,
    defender: Unit,
    ability: Ability,
    attacker_team: Optional[Team] = None,
    defender_team: Optional[Team] = None,
) -> int:
    mag = calculate_effective_stats(attacker, attacker_team).mag
    magic_defense = _effective_defense(defender, defender_team, ability) * PSYNERGY_DEFENSE_MULTIPLIER

    raw = (ability.base_power + mag - magic_defense) * get_element_modifier(ability.element, defender.element)

    armor = defender.equipment.armor
    resist = armor.elemental_resist if armor and armor.elemental_resist else 0.0
    if ability.element is not None and resist > 0:
        raw *= 1 - resist

    modified = apply_damage_modifiers(raw, ability.element, defender)
    return max(MINIMUM_DAMAGE, math.floor(modified))


def calculate_heal_amount(caster: Unit, ability: Ability, team: Optional[Team] = None) -> int:
    """Healing is power + MAG; an ability with no power heals nothing."""
    if ability.base_power <= 0:
        return 0
    mag = calculate_effective_stats(caster, team).mag
    return max(MINIMUM_HEALING, math.floor(ability.base_power + mag))


# =============================================================================
# APPLICATION
# =============================================================================


@dataclass(frozen=True)
class DamageResult:
    unit: Unit
    actual_damage: int
    blocked_by: Optional[str] = None
    auto_revived: bool = False


def is_invulnerable(unit: Unit) -> bool:
    return any(isinstance(s, Invulnerable) for s in unit.status_effects)


def has_shield_charges(unit: Unit) -> bool:
    return any(isinstance(s, Shield) and s.remaining_charges > 0 for s in unit.status_effects)


def consume_shield_charge(unit: Unit) -> Unit:
    """Consume one charge from the first shield; depleted shields are removed."""
    consumed = False
    statuses = []
    for status in unit.status_effects:
        if isinstance(status, Shield) and status.remaining_charges > 0 and not consumed:
            consumed = True
            status = replace(status, remaining_charges=status.remaining_charges - 1)
        if isinstance(status, Shield) and status.remaining_charges <= 0:
            continue
        statuses.append(status)
    return replace(unit, status_effects=tuple(statuses))


def check_auto_revive(unit: Unit, max_hp: int) -> tuple[Unit, bool]:
    """
    Trigger the first AutoRevive with uses left on a knocked-out unit.

    Returns:
        (updated unit, whether it revived)
    """
    statuses = [s for s in unit.status_effects if not (isinstance(s, AutoRevive) and s.uses_remaining <= 0)]
    if not is_unit_ko(unit):
        return replace(unit, status_effects=tuple(statuses)), False

    for index, status in enumerate(statuses):
        if isinstance(status, AutoRevive):
            revive_hp = max(1, math.floor(max_hp * status.hp_percent))
            remaining = status.uses_remaining - 1
            if remaining > 0:
                statuses[index] = replace(status, uses_remaining=remaining)
            else:
                del statuses[index]
            logger.debug(f"{unit.id} auto-revived with {revive_hp} HP")
            return replace(unit, current_hp=revive_hp, status_effects=tuple(statuses)), True

    return replace(unit, status_effects=tuple(statuses)), False


def apply_damage_with_shields(unit: Unit, damage: int, max_hp: int) -> DamageResult:
    """
    Apply damage to a unit, honouring invulnerability, shields and auto-revive.

    Args:
        unit: Target unit
        damage: Damage to apply
        max_hp: Target's effective max HP (for the HP clamp and revive amount)

    Returns:
        DamageResult; actual_damage is 0 when blocked
    """
    if damage <= 0:
        return DamageResult(unit=unit, actual_damage=0)
    if is_invulnerable(unit):
        return DamageResult(unit=unit, actual_damage=0, blocked_by="invulnerable")
    if has_shield_charges(unit):
        return DamageResult(unit=consume_shield_charge(unit), actual_damage=0, blocked_by="shield")

    new_hp = max(0, min(max_hp, unit.current_hp - damage))
    damaged = replace(
        unit,
        current_hp=new_hp,
        battle_stats=replace(unit.battle_stats, damage_taken=unit.battle_stats.damage_taken + damage),
    )
    revived_unit, revived = check_auto_revive(damaged, max_hp)
    return DamageResult(unit=revived_unit, actual_damage=damage, auto_revived=revived)


def record_damage_dealt(unit: Unit, amount: int) -> Unit:
    if amount <= 0:
        return unit
    stats: BattleStats = unit.battle_stats
    return replace(unit, battle_stats=replace(stats, damage_dealt=stats.damage_dealt + amount))


def apply_healing(unit: Unit, amount: int, max_hp: int, revive: bool = False) -> Unit:
    """
    Heal a unit, capped at max_hp.

    Raises:
        ValueError: If amount is negative, or the unit is knocked out and revive is False
    """
    if amount < 0:
        raise ValueError(f"Cannot apply negative healing: {amount}")
    if is_unit_ko(unit) and not revive:
        raise ValueError(f"Cannot heal knocked-out unit {unit.id} without revive")
    return replace(unit, current_hp=min(max_hp, max(0, unit.current_hp + amount)))
