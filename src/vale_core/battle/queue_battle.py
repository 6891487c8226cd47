"""
Queue-based battle flow.

A round has two halves. During planning the player fills one queue slot per
living unit (spending from a shared mana pool) and may queue up to three
Djinn to summon. execute_round then resolves the whole round at once:

1. Djinn summons
2. Every queued player action and every enemy action, interleaved in turn order
3. Round-end status sweep
4. Back to planning (Djinn recovery, HP clamp, mana refresh)

The battle ends the moment either side has no living units; no further
actions resolve after that.

Planning operations return a BattleActionResult and execute_round returns a
RoundResult, so callers can surface a rejected input without catching.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from vale_core.battle.actions import execute_ability, put_unit
from vale_core.battle.ai import EnemyPolicy, ScriptedEnemyPolicy
from vale_core.battle.battle_state import (
    MAX_QUEUED_DJINN,
    BattleState,
    QueuedAction,
    update_battle_state,
)
from vale_core.battle.damage import apply_damage_with_shields, apply_healing
from vale_core.battle.events import (
    ActionSkipped,
    BattleEnd,
    BattleEvent,
    DjinnRecovered,
    DjinnStandby,
    Heal,
    Hit,
    KnockedOut,
    ManaGenerated,
    StatusApplied,
    Summon,
    TurnStart,
)
from vale_core.battle.state_machine import transition_phase
from vale_core.battle.status import apply_status_to_unit, check_action_blocked, tick_unit_statuses
from vale_core.battle.turn_order import TurnEntry, calculate_turn_order, make_turn_entry, sort_turn_entries
from vale_core.content.schemas import Ability, BuffSummon, DamageSummon, HealSummon, SpecialSummon
from vale_core.data_models import (
    DEFAULT_STATUS_DURATION,
    SUMMON_DAMAGE,
    BattlePhase,
    Buff,
    Paralyze,
)
from vale_core.observability import get_run_log
from vale_core.rng import BattleRng
from vale_core.state_machine import InvalidTransitionError
from vale_core.team.djinn import get_djinn_granted_abilities, transition_djinn
from vale_core.team.team import advance_team_turn
from vale_core.units.stats import get_effective_max_hp, get_effective_spd
from vale_core.units.unit import Unit, is_unit_ko

logger = logging.getLogger(__name__)

# Duration of the paralysis a special summon inflicts
SPECIAL_SUMMON_PARALYZE_DURATION = 1


@dataclass(frozen=True)
class BattleActionResult:
    """Outcome of a planning operation. state is unchanged on failure."""

    success: bool
    state: BattleState
    error: Optional[str] = None

    @classmethod
    def ok(cls, state: BattleState) -> "BattleActionResult":
        return cls(success=True, state=state)

    @classmethod
    def fail(cls, state: BattleState, error: str) -> "BattleActionResult":
        logger.debug(f"Battle input rejected: {error}")
        return cls(success=False, state=state, error=error)


@dataclass(frozen=True)
class RoundResult:
    """Outcome of execute_round, with the events the round produced."""

    success: bool
    state: BattleState
    events: tuple[BattleEvent, ...] = field(default_factory=tuple)
    error: Optional[str] = None


# =============================================================================
# ABILITY LOOKUP
# =============================================================================


def find_unit_ability(
    state: BattleState,
    unit: Unit,
    ability_id: str,
    repository=None,
) -> Optional[Ability]:
    """
    Resolve an ability a player unit can use right now.

    Checks the unit's own unlocked abilities, then (with a repository)
    abilities unlocked by equipment and abilities granted by Set Djinn.
    """
    ability = unit.find_ability(ability_id)
    if ability is not None or repository is None:
        return ability
    if ability_id in unit.unlocked_ability_ids:
        return repository.find_ability(ability_id)
    for granted in get_djinn_granted_abilities(unit, state.player_team, repository):
        if granted.id == ability_id:
            return granted
    return None


# =============================================================================
# PLANNING
# =============================================================================


def _next_open_slot(state: BattleState, queued: tuple[Optional[QueuedAction], ...]) -> int:
    for index, unit in enumerate(state.player_team.units):
        if queued[index] is None and not is_unit_ko(unit):
            return index
    return len(queued)


def queue_action(
    state: BattleState,
    unit_id: str,
    ability_id: Optional[str],
    target_ids,
    ability: Optional[Ability] = None,
    repository=None,
) -> BattleActionResult:
    """
    Queue (or replace) a player unit's action for this round.

    Mana for any action already queued in the unit's slot is refunded before
    the new cost is checked.

    Args:
        state: Battle state in the planning phase
        unit_id: Player unit to act
        ability_id: Ability to use, or None for a basic attack
        target_ids: Planned targets
        ability: Already-resolved ability for ability_id
        repository: ContentRepository for equipment and Djinn abilities

    Returns:
        BattleActionResult
    """
    if state.phase != BattlePhase.PLANNING:
        return BattleActionResult.fail(state, "Can only queue actions during planning phase")

    index = next((i for i, u in enumerate(state.player_team.units) if u.id == unit_id), None)
    if index is None:
        return BattleActionResult.fail(state, f"Unit {unit_id} not found in player team")
    unit = state.player_team.units[index]
    if is_unit_ko(unit):
        return BattleActionResult.fail(state, f"Unit {unit_id} is knocked out")

    mana_cost = 0
    if ability_id is not None:
        if ability is not None and ability.id != ability_id:
            return BattleActionResult.fail(state, f"Ability {ability.id} does not match {ability_id}")
        resolved = ability or find_unit_ability(state, unit, ability_id, repository)
        if resolved is None:
            return BattleActionResult.fail(state, f"Unit {unit_id} does not know ability {ability_id}")
        mana_cost = resolved.mana_cost

    previous = state.queued_actions[index]
    available = state.remaining_mana + (previous.mana_cost if previous else 0)
    if mana_cost > available:
        return BattleActionResult.fail(state, f"Cannot afford action: need {mana_cost} mana, have {available}")

    action = QueuedAction(unit_id=unit_id, ability_id=ability_id, target_ids=tuple(target_ids), mana_cost=mana_cost)
    queued = state.queued_actions[:index] + (action,) + state.queued_actions[index + 1:]
    return BattleActionResult.ok(
        update_battle_state(
            state,
            queued_actions=queued,
            remaining_mana=available - mana_cost,
            current_queue_index=_next_open_slot(state, queued),
        )
    )


def clear_queued_action(state: BattleState, unit_index: int) -> BattleActionResult:
    """Remove a queued action and refund its mana."""
    if state.phase != BattlePhase.PLANNING:
        return BattleActionResult.fail(state, "Can only clear actions during planning phase")
    if not 0 <= unit_index < len(state.queued_actions):
        return BattleActionResult.fail(
            state, f"Unit index {unit_index} out of bounds for team size {len(state.queued_actions)}"
        )

    action = state.queued_actions[unit_index]
    if action is None:
        return BattleActionResult.ok(state)

    queued = state.queued_actions[:unit_index] + (None,) + state.queued_actions[unit_index + 1:]
    return BattleActionResult.ok(
        update_battle_state(
            state,
            queued_actions=queued,
            remaining_mana=state.remaining_mana + action.mana_cost,
            current_queue_index=min(state.current_queue_index, unit_index),
        )
    )


def queue_djinn(state: BattleState, djinn_id: str) -> BattleActionResult:
    """Queue an equipped Djinn to be summoned at the start of the round."""
    if state.phase != BattlePhase.PLANNING:
        return BattleActionResult.fail(state, "Can only queue Djinn during planning phase")

    team = state.player_team
    tracker = team.djinn_trackers.get(djinn_id)
    if tracker is None or djinn_id not in team.equipped_djinn:
        return BattleActionResult.fail(state, f"Djinn {djinn_id} is not equipped")

    rules = state.config.djinn_rules
    if tracker.state not in rules.summonable_states:
        allowed = ", ".join(s.value for s in rules.summonable_states)
        return BattleActionResult.fail(
            state, f"Djinn {djinn_id} cannot be summoned from {tracker.state.value} (needs {allowed})"
        )
    if djinn_id in state.queued_djinn:
        return BattleActionResult.fail(state, f"Djinn {djinn_id} is already queued")
    if len(state.queued_djinn) >= MAX_QUEUED_DJINN:
        return BattleActionResult.fail(state, f"Cannot queue more than {MAX_QUEUED_DJINN} Djinn")

    return BattleActionResult.ok(update_battle_state(state, queued_djinn=state.queued_djinn + (djinn_id,)))


def unqueue_djinn(state: BattleState, djinn_id: str) -> BattleActionResult:
    if state.phase != BattlePhase.PLANNING:
        return BattleActionResult.fail(state, "Can only unqueue Djinn during planning phase")
    remaining = tuple(d for d in state.queued_djinn if d != djinn_id)
    return BattleActionResult.ok(update_battle_state(state, queued_djinn=remaining))


def release_djinn(state: BattleState, djinn_id: str) -> BattleActionResult:
    """
    Release a Set Djinn to Standby during planning.

    The Djinn's stat bonus and granted abilities are lost until it returns
    to Set, but it becomes available to summon.
    """
    if state.phase != BattlePhase.PLANNING:
        return BattleActionResult.fail(state, "Can only release Djinn during planning phase")

    rules = state.config.djinn_rules
    try:
        team = transition_djinn(state.player_team, djinn_id, "release", rules=rules)
    except KeyError:
        return BattleActionResult.fail(state, f"Djinn {djinn_id} is not equipped")
    except InvalidTransitionError as e:
        return BattleActionResult.fail(state, str(e))

    event = DjinnStandby(djinn_id=djinn_id)
    return BattleActionResult.ok(update_battle_state(state, player_team=team, log=state.log + (event,)))


def refresh_mana(state: BattleState) -> BattleState:
    return update_battle_state(state, remaining_mana=state.max_mana)


def validate_queue_for_execution(state: BattleState) -> Optional[str]:
    """
    Check the queue is ready to execute.

    Returns:
        None when ready, otherwise the reason it is not
    """
    if state.phase != BattlePhase.PLANNING:
        return "Can only execute round from planning phase"

    living = [i for i, u in enumerate(state.player_team.units) if not is_unit_ko(u)]
    queued = [i for i in living if state.queued_actions[i] is not None]
    if len(queued) != len(living):
        return (
            f"Cannot execute: queue incomplete. Expected {len(living)} actions for alive units, "
            f"got {len(queued)}"
        )

    total_cost = sum(a.mana_cost for a in state.queued_actions if a is not None)
    if total_cost > state.max_mana:
        return "Cannot execute: actions exceed mana budget"
    return None


def get_planning_turn_order(state: BattleState) -> list[int]:
    """Player unit indices, fastest first; ties keep party order."""
    team = state.player_team
    return sorted(
        range(len(team.units)),
        key=lambda i: (-get_effective_spd(team.units[i], team), i),
    )


# =============================================================================
# DJINN SUMMONS
# =============================================================================


def _summon_damage(state: BattleState, djinn_id: str, amount: int, targets: list[Unit], events: list) -> BattleState:
    for target in targets:
        result = apply_damage_with_shields(target, amount, get_effective_max_hp(target))
        state = put_unit(state, result.unit)
        events.append(Hit(target_id=target.id, amount=result.actual_damage, source_id=djinn_id, blocked_by=result.blocked_by))
        if is_unit_ko(result.unit):
            events.append(KnockedOut(unit_id=target.id, by_id=djinn_id))
    return state


def execute_djinn_summons(
    state: BattleState,
    rng: BattleRng,
    repository,
) -> tuple[BattleState, list[BattleEvent]]:
    """
    Summon every queued Djinn.

    All queued Djinn enter Recovery together; the recovery timer grows with
    the number summoned. Each Djinn then applies its own summon effect, in
    queue order, until one side is wiped out.

    Returns:
        (new state, events)
    """
    djinn_ids = state.queued_djinn
    count = len(djinn_ids)
    rules = state.config.djinn_rules
    events: list[BattleEvent] = []

    team = state.player_team
    for djinn_id in djinn_ids:
        team = transition_djinn(team, djinn_id, "summon", rules=rules)
    recovery_rounds = rules.recovery_rounds_for(count)
    timers = {**state.djinn_recovery_timers, **{djinn_id: recovery_rounds for djinn_id in djinn_ids}}
    state = update_battle_state(state, player_team=team, djinn_recovery_timers=timers, queued_djinn=())

    for djinn_id in djinn_ids:
        effect = repository.get_djinn(djinn_id).summon_effect

        if isinstance(effect, DamageSummon):
            amount = effect.damage or SUMMON_DAMAGE[count]
            living = state.living_enemies()
            if not living:
                continue
            targets = living if count == len(SUMMON_DAMAGE) else [rng.choice(living, reason=f"summon {djinn_id}")]
            state = _summon_damage(state, djinn_id, amount, targets, events)
            events.append(Summon(djinn_ids=(djinn_id,), effect_type=effect.type, amount=amount))

        elif isinstance(effect, HealSummon):
            for unit in state.living_players():
                max_hp = get_effective_max_hp(unit, state.player_team)
                healed = apply_healing(unit, effect.heal_amount, max_hp)
                events.append(Heal(target_id=unit.id, amount=healed.current_hp - unit.current_hp))
                state = put_unit(state, healed)
            events.append(Summon(djinn_ids=(djinn_id,), effect_type=effect.type, amount=effect.heal_amount))

        elif isinstance(effect, BuffSummon):
            for unit in state.living_players():
                for stat, value in effect.stat_bonus.items():
                    unit, applied = apply_status_to_unit(
                        unit, Buff(stat=stat, modifier=value, duration=DEFAULT_STATUS_DURATION)
                    )
                    if applied:
                        events.append(
                            StatusApplied(target_id=unit.id, status_type="buff", duration=DEFAULT_STATUS_DURATION)
                        )
                state = put_unit(state, unit)
            events.append(Summon(djinn_ids=(djinn_id,), effect_type=effect.type))

        elif isinstance(effect, SpecialSummon):
            for enemy in state.living_enemies():
                enemy, applied = apply_status_to_unit(enemy, Paralyze(duration=SPECIAL_SUMMON_PARALYZE_DURATION))
                if applied:
                    events.append(
                        StatusApplied(
                            target_id=enemy.id, status_type="paralyze", duration=SPECIAL_SUMMON_PARALYZE_DURATION
                        )
                    )
                state = put_unit(state, enemy)
            events.append(Summon(djinn_ids=(djinn_id,), effect_type=effect.type))

        if check_battle_end(state):
            break

    logger.info(f"Summoned {list(djinn_ids)}; recovery in {recovery_rounds} rounds")
    return state, events


# =============================================================================
# ROUND EXECUTION
# =============================================================================


def check_battle_end(state: BattleState) -> Optional[str]:
    """
    Phase trigger for a finished battle, or None while both sides stand.

    A simultaneous wipe counts as a defeat.
    """
    if not state.living_players():
        return "party_defeated"
    if not state.living_enemies():
        return "enemies_defeated"
    return None


def _ordered_actions(
    state: BattleState,
    enemy_actions: list[QueuedAction],
) -> list[tuple[TurnEntry, QueuedAction]]:
    pairs: list[tuple[TurnEntry, QueuedAction]] = []
    for index, (unit, action) in enumerate(zip(state.player_team.units, state.queued_actions)):
        if action is not None and not is_unit_ko(unit):
            pairs.append((make_turn_entry(unit, True, index, state.player_team), action))

    enemy_index = {enemy.id: i for i, enemy in enumerate(state.enemies)}
    for action in enemy_actions:
        enemy = state.get_unit(action.unit_id)
        pairs.append((make_turn_entry(enemy, False, enemy_index[enemy.id], None), action))

    entries = sort_turn_entries(entry for entry, _ in pairs)
    by_entry = {entry.unit_id: (entry, action) for entry, action in pairs}
    return [by_entry[entry.unit_id] for entry in entries]


def _finish_round(state: BattleState, events: list[BattleEvent], round_number: int) -> RoundResult:
    state = update_battle_state(state, log=state.log + tuple(events))
    get_run_log().log_round(
        round_number=round_number,
        status=state.status.value,
        battle_events=len(events),
        remaining_mana=state.remaining_mana,
    )
    return RoundResult(success=True, state=state, events=tuple(events))


def _end_battle(state: BattleState, trigger: str, events: list[BattleEvent]) -> RoundResult:
    state = transition_phase(state, trigger)
    events.append(BattleEnd(result=state.status.value))
    logger.info(f"Battle ended in round {state.round_number}: {state.status.value}")
    return _finish_round(state, events, state.round_number)


def _round_end_sweep(state: BattleState, events: list[BattleEvent]) -> BattleState:
    for unit in state.player_team.units + state.enemies:
        if is_unit_ko(unit):
            continue
        ticked, tick_events = tick_unit_statuses(unit, get_effective_max_hp(unit, state.team_for(unit.id)))
        events.extend(tick_events)
        if is_unit_ko(ticked):
            events.append(KnockedOut(unit_id=unit.id))
        state = put_unit(state, ticked)
    return state


def _enter_planning(state: BattleState, events: list[BattleEvent]) -> BattleState:
    state = transition_phase(state, "round_complete")
    rules = state.config.djinn_rules
    team = state.player_team

    timers: dict[str, int] = {}
    for djinn_id, remaining in state.djinn_recovery_timers.items():
        remaining -= 1
        if remaining > 0:
            timers[djinn_id] = remaining
            continue
        if djinn_id in team.equipped_djinn:
            team = transition_djinn(team, djinn_id, "recover", rules=rules)
            events.append(DjinnRecovered(djinn_id=djinn_id, state=team.djinn_trackers[djinn_id].state.value))

    units = tuple(
        replace(u, current_hp=min(u.current_hp, get_effective_max_hp(u, team))) for u in team.units
    )
    team = advance_team_turn(replace(team, units=units))
    enemies = tuple(replace(e, current_hp=min(e.current_hp, get_effective_max_hp(e))) for e in state.enemies)

    state = update_battle_state(
        state,
        player_team=team,
        enemies=enemies,
        round_number=state.round_number + 1,
        current_queue_index=0,
        queued_actions=(None,) * len(team.units),
        queued_djinn=(),
        execution_index=0,
        current_actor_index=0,
        djinn_recovery_timers=timers,
        turn_order=calculate_turn_order(team, enemies),
    )
    return refresh_mana(state)


def execute_round(
    state: BattleState,
    rng: BattleRng,
    policy: Optional[EnemyPolicy] = None,
    repository=None,
) -> RoundResult:
    """
    Resolve a fully planned round.

    Args:
        state: Battle state in the planning phase with a complete queue
        rng: Seeded randomness for this battle
        policy: Enemy decision policy (ScriptedEnemyPolicy by default)
        repository: ContentRepository; required when Djinn are queued

    Returns:
        RoundResult; on a rejected queue success is False and state is unchanged
    """
    error = validate_queue_for_execution(state)
    if error is None and state.queued_djinn and repository is None:
        error = "Cannot execute: Djinn summons need a content repository"
    if error is not None:
        logger.warning(error)
        return RoundResult(success=False, state=state, error=error)

    policy = policy or ScriptedEnemyPolicy()
    events: list[BattleEvent] = []
    state = transition_phase(state, "execute_round", context={"queued_djinn": list(state.queued_djinn)})
    state = update_battle_state(state, execution_index=0)

    if state.queued_djinn:
        state, summon_events = execute_djinn_summons(state, rng, repository)
        events.extend(summon_events)
        trigger = check_battle_end(state)
        if trigger:
            return _end_battle(state, trigger, events)

    enemy_actions = []
    for enemy in state.living_enemies():
        action = policy.choose_action(state, enemy.id, rng)
        if action is not None:
            enemy_actions.append(action)

    ordered = _ordered_actions(state, enemy_actions)
    state = update_battle_state(state, turn_order=tuple(entry.unit_id for entry, _ in ordered))

    for index, (entry, action) in enumerate(ordered):
        state = update_battle_state(state, current_actor_index=index, execution_index=index + 1)
        actor = state.get_unit(action.unit_id)
        if actor is None or is_unit_ko(actor):
            continue

        state = update_battle_state(state, current_turn=state.current_turn + 1)
        events.append(TurnStart(actor_id=actor.id, turn=state.current_turn))

        actor, skipped = check_action_blocked(actor, rng)
        state = put_unit(state, actor)
        if skipped is not None:
            events.append(skipped)
            continue

        ability = None
        if action.ability_id is not None:
            if entry.is_player:
                ability = find_unit_ability(state, actor, action.ability_id, repository)
            else:
                ability = actor.find_ability(action.ability_id)
            if ability is None:
                logger.warning(f"{actor.id} cannot use {action.ability_id}; action skipped")
                events.append(ActionSkipped(actor_id=actor.id, reason="unknown-ability"))
                continue

        state, action_events = execute_ability(state, actor.id, ability, action.target_ids, rng)
        events.extend(action_events)

        gain = state.config.mana_per_basic_attack
        if entry.is_player and action.is_basic_attack and gain > 0:
            previous = state.remaining_mana
            new_total = min(state.max_mana, previous + gain)
            state = update_battle_state(state, remaining_mana=new_total)
            events.append(ManaGenerated(source_id=actor.id, amount=new_total - previous, new_total=new_total))

        trigger = check_battle_end(state)
        if trigger:
            return _end_battle(state, trigger, events)

    state = _round_end_sweep(state, events)
    trigger = check_battle_end(state)
    if trigger:
        return _end_battle(state, trigger, events)

    round_number = state.round_number
    state = _enter_planning(state, events)
    return _finish_round(state, events, round_number)
