"""
Ability resolution.

execute_ability applies one action (an ability or a basic attack) to the
battle state and returns the new state together with the events it produced.
Targets are resolved against the current state first, so an action aimed at
a unit that was knocked out earlier in the round is redirected.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Optional

from vale_core.battle.battle_state import BattleState, update_battle_state
from vale_core.battle.damage import (
    apply_damage_with_shields,
    calculate_heal_amount,
    calculate_physical_damage,
    calculate_psynergy_damage,
    record_damage_dealt,
)
from vale_core.battle.events import (
    AbilityUsed,
    BattleEvent,
    Heal,
    Hit,
    KnockedOut,
    StatusApplied,
)
from vale_core.battle.status import apply_status_to_unit, remove_statuses
from vale_core.content.schemas import Ability
from vale_core.data_models import (
    DEFAULT_STATUS_DURATION,
    REVIVE_HP_PERCENTAGE,
    AbilityType,
    Buff,
    Burn,
    DamageReduction,
    Debuff,
    ElementalResistance,
    Freeze,
    HealOverTime,
    Immunity,
    Paralyze,
    Poison,
    Shield,
    StatusEffect,
    Stun,
    TargetType,
    status_duration,
)
from vale_core.rng import BattleRng
from vale_core.team.team import replace_unit
from vale_core.units.stats import get_effective_max_hp
from vale_core.units.unit import Unit, is_unit_ko

logger = logging.getLogger(__name__)

# Authored per-turn damage recorded on inflicted poison and burn
POISON_DAMAGE_PER_TURN = 8
BURN_DAMAGE_PER_TURN = 10


@dataclass
class ActionContext:
    """Working set for one action: the evolving state and the events so far."""

    state: BattleState
    actor_id: str
    events: list[BattleEvent] = field(default_factory=list)

    def unit(self, unit_id: str) -> Unit:
        unit = self.state.get_unit(unit_id)
        if unit is None:
            raise KeyError(f"Unit not in battle: {unit_id}")
        return unit

    def max_hp(self, unit: Unit) -> int:
        return get_effective_max_hp(unit, self.state.team_for(unit.id))

    def put(self, unit: Unit) -> None:
        self.state = put_unit(self.state, unit)

    def emit(self, event: BattleEvent) -> None:
        self.events.append(event)


def put_unit(state: BattleState, unit: Unit) -> BattleState:
    """Write an updated unit back into whichever side it belongs to."""
    if state.is_player_unit(unit.id):
        return update_battle_state(state, player_team=replace_unit(state.player_team, unit))
    enemies = tuple(unit if e.id == unit.id else e for e in state.enemies)
    return update_battle_state(state, enemies=enemies)


# =============================================================================
# TARGETING
# =============================================================================


def _side_units(state: BattleState, actor_id: str, allies: bool) -> tuple[Unit, ...]:
    actor_is_player = state.is_player_unit(actor_id)
    if actor_is_player == allies:
        return state.player_team.units
    return state.enemies


def resolve_targets(
    state: BattleState,
    actor_id: str,
    ability: Optional[Ability],
    target_ids: tuple[str, ...],
) -> tuple[str, ...]:
    """
    Resolve the units an action actually hits.

    All-target abilities hit every living unit on their side. Single-target
    actions keep living targets and redirect dead ones to the first living
    unit on the same side. Reviving heals may target knocked-out allies.

    Returns:
        Target ids (empty when the side has no valid target)
    """
    if ability is not None and ability.targets == TargetType.SELF:
        return (actor_id,)

    allies = ability.targets_allies if ability is not None else False
    side = _side_units(state, actor_id, allies)
    can_target_ko = ability is not None and ability.type == AbilityType.HEALING and ability.revive

    def valid(unit: Unit) -> bool:
        return can_target_ko or not is_unit_ko(unit)

    if ability is not None and ability.targets_all:
        return tuple(u.id for u in side if valid(u))

    side_ids = {u.id for u in side}
    kept = tuple(
        tid for tid in target_ids if tid in side_ids and valid(state.get_unit(tid))
    )
    if kept:
        return kept

    fallback = next((u for u in side if not is_unit_ko(u)), None)
    if fallback is None:
        return ()
    logger.debug(f"{actor_id} retargeted to {fallback.id}")
    return (fallback.id,)


# =============================================================================
# STATUS CONSTRUCTION
# =============================================================================


def build_inflicted_status(status_type: str, duration: int) -> StatusEffect:
    if status_type == "poison":
        return Poison(damage_per_turn=POISON_DAMAGE_PER_TURN, duration=duration)
    if status_type == "burn":
        return Burn(damage_per_turn=BURN_DAMAGE_PER_TURN, duration=duration)
    if status_type == "freeze":
        return Freeze(duration=duration)
    if status_type == "stun":
        return Stun(duration=duration)
    return Paralyze(duration=duration)


def _apply_status(ctx: ActionContext, unit: Unit, status: StatusEffect) -> Unit:
    unit, applied = apply_status_to_unit(unit, status)
    if applied:
        ctx.emit(StatusApplied(target_id=unit.id, status_type=status.type.value, duration=status_duration(status)))
    return unit


def _stat_statuses(ability: Ability, effect: Optional[dict[str, int]], negative: bool) -> list[StatusEffect]:
    if not effect:
        return []
    duration = ability.duration or DEFAULT_STATUS_DURATION
    if negative:
        return [Debuff(stat=stat, modifier=-abs(value), duration=duration) for stat, value in effect.items()]
    return [Buff(stat=stat, modifier=value, duration=duration) for stat, value in effect.items()]


def _apply_extra_effects(ctx: ActionContext, ability: Ability, target_ids: tuple[str, ...]) -> None:
    """Shields, cleanses, damage reduction, resistances and immunity."""
    duration = ability.duration or DEFAULT_STATUS_DURATION
    for target_id in target_ids:
        unit = ctx.unit(target_id)
        if ability.shield_charges:
            unit = _apply_status(ctx, unit, Shield(remaining_charges=ability.shield_charges, duration=duration))
        if ability.damage_reduction_percent is not None:
            unit = _apply_status(ctx, unit, DamageReduction(percent=ability.damage_reduction_percent, duration=duration))
        if ability.elemental_resistance:
            spec = ability.elemental_resistance
            unit = _apply_status(
                ctx, unit, ElementalResistance(element=spec.element, modifier=spec.modifier, duration=duration)
            )
        if ability.grant_immunity:
            spec = ability.grant_immunity
            unit = _apply_status(
                ctx, unit, Immunity(blocks_all=spec.all, types=spec.status_types(), duration=spec.duration)
            )
        if ability.remove_status_effects:
            spec = ability.remove_status_effects
            unit, removed = remove_statuses(unit, spec.mode, spec.statuses)
            if removed:
                logger.debug(f"Cleansed {[s.type.value for s in removed]} from {unit.id}")
        ctx.put(unit)


# =============================================================================
# RESOLUTION
# =============================================================================


def _deal_damage(ctx: ActionContext, target_id: str, amount: int) -> int:
    target = ctx.unit(target_id)
    was_alive = not is_unit_ko(target)
    result = apply_damage_with_shields(target, amount, ctx.max_hp(target))
    ctx.put(result.unit)
    ctx.emit(Hit(target_id=target_id, amount=result.actual_damage, source_id=ctx.actor_id, blocked_by=result.blocked_by))
    if was_alive and is_unit_ko(result.unit):
        ctx.emit(KnockedOut(unit_id=target_id, by_id=ctx.actor_id))
    if result.actual_damage:
        ctx.put(record_damage_dealt(ctx.unit(ctx.actor_id), result.actual_damage))
    return result.actual_damage


def _calculate_damage(ctx: ActionContext, ability: Optional[Ability], target: Unit) -> int:
    attacker = ctx.unit(ctx.actor_id)
    attacker_team = ctx.state.team_for(attacker.id)
    defender_team = ctx.state.team_for(target.id)
    if ability is not None and ability.type == AbilityType.PSYNERGY:
        return calculate_psynergy_damage(attacker, target, ability, attacker_team, defender_team)
    return calculate_physical_damage(attacker, target, ability, attacker_team, defender_team)


def _resolve_damage(ctx: ActionContext, ability: Optional[Ability], targets: tuple[str, ...], rng: BattleRng) -> None:
    hit_count = ability.hit_count if ability and ability.hit_count else 1

    for target_id in targets:
        if is_unit_ko(ctx.unit(target_id)):
            continue
        for _ in range(hit_count):
            target = ctx.unit(target_id)
            if is_unit_ko(target):
                break
            _deal_damage(ctx, target_id, _calculate_damage(ctx, ability, target))

        if ability is None:
            continue

        target = ctx.unit(target_id)
        if ability.status_effect and not is_unit_ko(target):
            spec = ability.status_effect
            if rng.random(reason=f"{ability.id} {spec.type} chance") < spec.chance:
                target = _apply_status(ctx, target, build_inflicted_status(spec.type, spec.duration))
        for debuff in _stat_statuses(ability, ability.debuff_effect, negative=True):
            target = _apply_status(ctx, target, debuff)
        ctx.put(target)

    if (
        ability is not None
        and ability.splash_damage_percent
        and ability.targets == TargetType.SINGLE_ENEMY
        and len(targets) == 1
    ):
        primary = targets[0]
        side = _side_units(ctx.state, ctx.actor_id, allies=False)
        for secondary in [u.id for u in side if u.id != primary and not is_unit_ko(u)]:
            base = _calculate_damage(ctx, ability, ctx.unit(secondary))
            _deal_damage(ctx, secondary, math.floor(base * ability.splash_damage_percent))


def _resolve_healing(ctx: ActionContext, ability: Ability, targets: tuple[str, ...]) -> None:
    caster = ctx.unit(ctx.actor_id)
    amount = calculate_heal_amount(caster, ability, ctx.state.team_for(caster.id))

    for target_id in targets:
        target = ctx.unit(target_id)
        max_hp = ctx.max_hp(target)
        if is_unit_ko(target):
            if not ability.revive:
                continue
            percent = ability.revive_hp_percent if ability.revive_hp_percent is not None else REVIVE_HP_PERCENTAGE
            revived_hp = max(1, math.floor(max_hp * percent))
            target = replace(target, current_hp=revived_hp)
            ctx.emit(Heal(target_id=target_id, amount=revived_hp, revived=True))
        else:
            healed_hp = min(max_hp, target.current_hp + amount)
            ctx.emit(Heal(target_id=target_id, amount=max(0, healed_hp - target.current_hp)))
            target = replace(target, current_hp=healed_hp)

        if ability.heal_over_time:
            hot = HealOverTime(heal_per_turn=ability.heal_over_time.amount, duration=ability.heal_over_time.duration)
            target = _apply_status(ctx, target, hot)
        ctx.put(target)


def _resolve_stat_change(ctx: ActionContext, ability: Ability, targets: tuple[str, ...]) -> None:
    if ability.type == AbilityType.BUFF:
        statuses = _stat_statuses(ability, ability.buff_effect, negative=False)
    else:
        statuses = _stat_statuses(ability, ability.debuff_effect or ability.buff_effect, negative=True)

    for target_id in targets:
        target = ctx.unit(target_id)
        for status in statuses:
            target = _apply_status(ctx, target, status)
        ctx.put(target)


def execute_ability(
    state: BattleState,
    actor_id: str,
    ability: Optional[Ability],
    target_ids: tuple[str, ...],
    rng: BattleRng,
) -> tuple[BattleState, list[BattleEvent]]:
    """
    Resolve one action.

    Args:
        state: Battle state (executing phase)
        actor_id: Acting unit
        ability: Ability used, or None for a basic attack
        target_ids: Planned targets (redirected if no longer valid)
        rng: Seeded randomness for status chance rolls

    Returns:
        (new state, events produced)
    """
    ctx = ActionContext(state=state, actor_id=actor_id)
    targets = resolve_targets(state, actor_id, ability, tuple(target_ids))
    ctx.emit(
        AbilityUsed(
            actor_id=actor_id,
            ability_id=ability.id if ability else None,
            target_ids=targets,
            mana_cost=ability.mana_cost if ability else 0,
        )
    )
    if not targets:
        return ctx.state, ctx.events

    if ability is None or ability.type in (AbilityType.PHYSICAL, AbilityType.PSYNERGY):
        _resolve_damage(ctx, ability, targets, rng)
    elif ability.type == AbilityType.HEALING:
        _resolve_healing(ctx, ability, targets)
    elif ability.type in (AbilityType.BUFF, AbilityType.DEBUFF):
        _resolve_stat_change(ctx, ability, targets)
    else:
        logger.warning(f"Ability {ability.id} of type {ability.type.value} has no direct effect")

    if ability is not None:
        _apply_extra_effects(ctx, ability, targets)

    actor = ctx.unit(actor_id)
    ctx.put(replace(actor, actions_taken=actor.actions_taken + 1))
    return ctx.state, ctx.events
