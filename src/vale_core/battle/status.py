"""
Status effect rules.

Statuses are applied through apply_status_to_unit, which enforces immunity
and replacement. Action-preventing statuses are checked before each action;
damage and heal over time, and duration decay, run once per round in the
round-end sweep.
"""

import logging
import math
from dataclasses import replace
from typing import Iterable, Optional

from vale_core.battle.events import ActionSkipped, BattleEvent, StatusExpired, StatusTick
from vale_core.battle.damage import check_auto_revive
from vale_core.data_models import (
    BURN_DAMAGE_PERCENT,
    FREEZE_BREAK_CHANCE,
    PARALYZE_FAILURE_CHANCE,
    POISON_DAMAGE_PERCENT,
    AutoRevive,
    Burn,
    Freeze,
    HealOverTime,
    Immunity,
    Paralyze,
    Poison,
    StatusEffect,
    StatusType,
    Stun,
    is_negative_status,
)
from vale_core.rng import BattleRng
from vale_core.units.unit import Unit, is_unit_ko

logger = logging.getLogger(__name__)

# Statuses that accumulate instead of replacing an existing one of the same type
STACKING_STATUS_TYPES = frozenset({StatusType.BUFF, StatusType.DEBUFF})


def is_immune_to_status(unit: Unit, status: StatusEffect) -> bool:
    """Immunity only ever blocks negative statuses."""
    if not is_negative_status(status):
        return False
    for effect in unit.status_effects:
        if isinstance(effect, Immunity) and (effect.blocks_all or status.type in effect.types):
            return True
    return False


def apply_status_to_unit(unit: Unit, status: StatusEffect) -> tuple[Unit, bool]:
    """
    Apply a status, honouring immunity.

    A status replaces any existing one of the same type, except buffs and
    debuffs, which stack.

    Returns:
        (updated unit, whether the status was applied)
    """
    if is_immune_to_status(unit, status):
        logger.debug(f"{unit.id} is immune to {status.type.value}")
        return unit, False

    existing = unit.status_effects
    if status.type not in STACKING_STATUS_TYPES:
        existing = tuple(s for s in existing if s.type != status.type)
    return replace(unit, status_effects=existing + (status,)), True


def remove_statuses(
    unit: Unit,
    mode: str,
    types: Iterable[str] = (),
) -> tuple[Unit, list[StatusEffect]]:
    """
    Cleanse statuses.

    Args:
        unit: Target unit
        mode: "all", "negative" or "by_type"
        types: Status type values removed in "by_type" mode

    Returns:
        (updated unit, removed statuses)
    """
    wanted = set(types)

    def should_remove(status: StatusEffect) -> bool:
        if mode == "all":
            return True
        if mode == "negative":
            return is_negative_status(status)
        return status.type.value in wanted

    removed = [s for s in unit.status_effects if should_remove(s)]
    if not removed:
        return unit, []
    kept = tuple(s for s in unit.status_effects if not should_remove(s))
    return replace(unit, status_effects=kept), removed


def check_action_blocked(unit: Unit, rng: BattleRng) -> tuple[Unit, Optional[ActionSkipped]]:
    """
    Decide whether a unit loses its action to a status.

    Stun always blocks. Freeze blocks unless it breaks (the freeze is then
    removed and the unit acts). Paralysis makes the action fail some of the
    time.

    Returns:
        (possibly updated unit, ActionSkipped event or None)
    """
    statuses = unit.status_effects
    if any(isinstance(s, Stun) for s in statuses):
        return unit, ActionSkipped(actor_id=unit.id, reason="stunned")

    if any(isinstance(s, Freeze) for s in statuses):
        if rng.chance(FREEZE_BREAK_CHANCE, reason=f"freeze break {unit.id}"):
            logger.debug(f"{unit.id} broke free from freeze")
            unit = replace(unit, status_effects=tuple(s for s in statuses if not isinstance(s, Freeze)))
        else:
            return unit, ActionSkipped(actor_id=unit.id, reason="frozen")

    if any(isinstance(s, Paralyze) for s in unit.status_effects):
        if rng.chance(PARALYZE_FAILURE_CHANCE, reason=f"paralysis {unit.id}"):
            return unit, ActionSkipped(actor_id=unit.id, reason="paralyzed")

    return unit, None


def damage_over_time(status: StatusEffect, max_hp: int) -> int:
    if isinstance(status, Poison):
        return max(1, math.floor(max_hp * POISON_DAMAGE_PERCENT))
    if isinstance(status, Burn):
        return max(1, math.floor(max_hp * BURN_DAMAGE_PERCENT))
    return 0


def tick_unit_statuses(unit: Unit, max_hp: int) -> tuple[Unit, list[BattleEvent]]:
    """
    Round-end status sweep for one living unit.

    Poison and burn deal a share of max HP, heal over time restores HP, then
    every timed status loses a round and expired ones are removed. AutoRevive
    is limited by uses, not time, and is left alone.

    Args:
        unit: Unit to tick (knocked-out units are returned unchanged)
        max_hp: The unit's effective max HP

    Returns:
        (updated unit, StatusTick and StatusExpired events)
    """
    if is_unit_ko(unit):
        return unit, []

    events: list[BattleEvent] = []
    hp = unit.current_hp
    damage_taken = 0

    for status in unit.status_effects:
        damage = damage_over_time(status, max_hp)
        if damage:
            hp = max(0, hp - damage)
            damage_taken += damage
            events.append(StatusTick(target_id=unit.id, status_type=status.type.value, amount=damage))
        elif isinstance(status, HealOverTime) and hp > 0:
            healed = min(max_hp, hp + status.heal_per_turn) - hp
            hp += healed
            events.append(StatusTick(target_id=unit.id, status_type=status.type.value, amount=healed))

    remaining: list[StatusEffect] = []
    for status in unit.status_effects:
        if isinstance(status, AutoRevive):
            remaining.append(status)
            continue
        duration = status.duration - 1
        if duration > 0:
            remaining.append(replace(status, duration=duration))
        else:
            events.append(StatusExpired(target_id=unit.id, status_type=status.type.value))

    updated = replace(
        unit,
        current_hp=min(hp, max_hp),
        status_effects=tuple(remaining),
        battle_stats=replace(unit.battle_stats, damage_taken=unit.battle_stats.damage_taken + damage_taken),
    )
    if is_unit_ko(updated):
        updated, _ = check_auto_revive(updated, max_hp)
    return updated, events
