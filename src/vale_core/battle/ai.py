"""
Enemy decision-making.

The battle engine asks an EnemyPolicy for each living enemy's action when a
round executes. ScriptedEnemyPolicy is the deterministic default: it scores
every usable ability from its AI hints and an estimate of its effect, then
picks targets according to the ability's target hint. All randomness goes
through the BattleRng it is handed.
"""

import logging
from typing import Optional, Protocol

from vale_core.battle.battle_state import BattleState, QueuedAction
from vale_core.battle.damage import get_element_modifier
from vale_core.content.schemas import Ability, AITarget
from vale_core.data_models import AbilityType, TargetType
from vale_core.rng import BattleRng
from vale_core.units.stats import calculate_effective_stats, get_effective_max_hp
from vale_core.units.unit import Unit, is_unit_ko

logger = logging.getLogger(__name__)

HEAL_THRESHOLD = 0.6
CLOSE_SCORE_MARGIN = 2.0
UNUSABLE_SCORE = -1000.0


class EnemyPolicy(Protocol):
    """Chooses an enemy's action for the current round."""

    def choose_action(self, state: BattleState, enemy_id: str, rng: BattleRng) -> Optional[QueuedAction]:
        ...


def hp_ratio(state: BattleState, unit: Unit) -> float:
    max_hp = get_effective_max_hp(unit, state.team_for(unit.id))
    return unit.current_hp / max_hp if max_hp > 0 else 0.0


def candidate_targets(state: BattleState, caster: Unit, ability: Ability) -> list[Unit]:
    """Living units an ability could target, from the caster's point of view."""
    if ability.targets_allies:
        if ability.targets == TargetType.SELF:
            return [caster]
        side = state.player_team.units if state.is_player_unit(caster.id) else state.enemies
    else:
        side = state.enemies if state.is_player_unit(caster.id) else state.player_team.units
    return [u for u in side if not is_unit_ko(u)]


class ScriptedEnemyPolicy:
    """
    Deterministic, hint-driven enemy AI.

    Usage:
        policy = ScriptedEnemyPolicy()
        action = policy.choose_action(state, "goblin_0", rng)
    """

    def __init__(self, heal_threshold: float = HEAL_THRESHOLD):
        self.heal_threshold = heal_threshold

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    def score_ability(self, state: BattleState, caster: Unit, ability: Ability) -> float:
        targets = candidate_targets(state, caster, ability)
        if not targets:
            return UNUSABLE_SCORE

        hints = ability.ai_hints
        score = hints.priority if hints else 1.0
        caster_stats = calculate_effective_stats(caster, state.team_for(caster.id))

        estimated = 0.0
        if ability.type in (AbilityType.PHYSICAL, AbilityType.PSYNERGY):
            power = caster_stats.atk if ability.type == AbilityType.PHYSICAL else caster_stats.mag
            avg_def = sum(calculate_effective_stats(t, state.team_for(t.id)).def_ for t in targets) / len(targets)
            estimated = max(1.0, ability.base_power + power - avg_def)
            if ability.element is not None:
                estimated *= sum(get_element_modifier(ability.element, t.element) for t in targets) / len(targets)
            if ability.targets_all:
                estimated *= len(targets)
        elif ability.type == AbilityType.HEALING:
            wounded = [t for t in targets if hp_ratio(state, t) < self.heal_threshold]
            if not wounded:
                return UNUSABLE_SCORE
            estimated = max(1.0, ability.base_power + caster_stats.mag)
            if ability.targets_all:
                estimated *= len(wounded)
        elif ability.type in (AbilityType.BUFF, AbilityType.DEBUFF):
            effect = ability.buff_effect or ability.debuff_effect or {}
            estimated = sum(abs(v) for v in effect.values()) * 2
        else:
            return UNUSABLE_SCORE

        score += estimated * 0.1
        if hints and hints.opener and state.round_number == 1:
            score += 1.0
        return score

    # -------------------------------------------------------------------------
    # Targeting
    # -------------------------------------------------------------------------

    def select_targets(self, state: BattleState, caster: Unit, ability: Ability, rng: BattleRng) -> tuple[str, ...]:
        targets = candidate_targets(state, caster, ability)
        if not targets:
            return ()
        if ability.targets_all:
            return tuple(t.id for t in targets)

        if ability.type == AbilityType.HEALING:
            return (min(targets, key=lambda t: hp_ratio(state, t)).id,)

        hint = ability.ai_hints.target if ability.ai_hints and ability.ai_hints.target else AITarget.WEAKEST

        if hint == AITarget.RANDOM:
            return (rng.choice(targets, reason=f"{caster.id} target").id,)

        if hint == AITarget.LOWEST_RES and ability.element is not None:
            return (min(targets, key=lambda t: get_element_modifier(ability.element, t.element)).id,)

        if hint == AITarget.HEALER_FIRST:
            healers = [t for t in targets if any(a.type == AbilityType.HEALING for a in t.unlocked_abilities)]
            return ((healers or targets)[0].id,)

        if hint == AITarget.HIGHEST_DEF:
            return (
                max(targets, key=lambda t: calculate_effective_stats(t, state.team_for(t.id)).def_).id,
            )

        if hint == AITarget.WEAKEST:
            def effective_hp(unit: Unit) -> float:
                modifier = get_element_modifier(ability.element, unit.element)
                return unit.current_hp / modifier

            ranked = sorted(targets, key=effective_hp)
            if ability.ai_hints and ability.ai_hints.avoid_overkill:
                power = ability.base_power + (
                    caster.base_stats.atk if ability.type == AbilityType.PHYSICAL else caster.base_stats.mag
                )
                not_overkilled = [t for t in ranked if power - effective_hp(t) < effective_hp(t) * 0.5]
                if not_overkilled:
                    return (not_overkilled[0].id,)
            return (ranked[0].id,)

        return (targets[0].id,)

    # -------------------------------------------------------------------------
    # Decision
    # -------------------------------------------------------------------------

    def choose_action(self, state: BattleState, enemy_id: str, rng: BattleRng) -> Optional[QueuedAction]:
        """
        Choose an action for one enemy.

        Returns:
            QueuedAction, or None when the enemy cannot act
        """
        caster = state.get_unit(enemy_id)
        if caster is None or is_unit_ko(caster):
            return None

        scored = [
            (self.score_ability(state, caster, ability), ability)
            for ability in caster.unlocked_abilities
        ]
        scored = [(score, ability) for score, ability in scored if score > UNUSABLE_SCORE]
        scored.sort(key=lambda pair: pair[0], reverse=True)

        if scored:
            chosen = scored[0][1]
            if len(scored) > 1 and scored[0][0] - scored[1][0] < CLOSE_SCORE_MARGIN:
                chosen = rng.choice([scored[0][1], scored[1][1]], reason=f"{enemy_id} ability")
            targets = self.select_targets(state, caster, chosen, rng)
            if targets:
                logger.debug(f"{enemy_id} chooses {chosen.id} -> {list(targets)}")
                return QueuedAction(unit_id=enemy_id, ability_id=chosen.id, target_ids=targets)

        living = state.living_players()
        if not living:
            return None
        logger.warning(f"{enemy_id} has no usable ability; falling back to a basic attack")
        return QueuedAction(unit_id=enemy_id, ability_id=None, target_ids=(living[0].id,))
