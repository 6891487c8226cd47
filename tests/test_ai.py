"""
Tests for the scripted enemy policy.
"""

from dataclasses import replace

import pytest

from vale_core.battle.ai import UNUSABLE_SCORE, ScriptedEnemyPolicy, candidate_targets
from vale_core.battle.battle_state import QueuedAction
from vale_core.content.schemas import Ability
from vale_core.rng import BattleRng
from vale_core.units.conversion import enemy_to_unit
from tests.helpers import HEAL, SLIME, make_battle, make_slimes, set_hp


def _hinted(target=None, element=None, **hints):
    return Ability(
        id="jab", name="Jab", type="physical", targets="single-enemy", element=element,
        ai_hints={"priority": 1, "target": target, **hints},
    )


@pytest.fixture
def policy():
    return ScriptedEnemyPolicy()


@pytest.fixture
def medic_battle(team):
    """A slime that only knows Heal, next to an ordinary slime."""
    medic = replace(enemy_to_unit(SLIME.model_copy(update={"id": "medic", "abilities": [HEAL]})), id="medic_0")
    return make_battle(team, [medic, make_slimes(2)[1]])


class TestChooseAction:
    """Tests for ScriptedEnemyPolicy.choose_action."""

    def test_targets_weakest(self, policy, battle_state, rng):
        """With equal element modifiers the lowest-HP player is chosen."""
        action = policy.choose_action(battle_state, "slime_0", rng)
        assert action == QueuedAction(unit_id="slime_0", ability_id="strike", target_ids=("mystic",))

    def test_knocked_out_enemy(self, policy, battle_state, rng):
        state = set_hp(battle_state, "slime_0", 0)
        assert policy.choose_action(state, "slime_0", rng) is None
        assert policy.choose_action(state, "ghost", rng) is None

    def test_heals_wounded_ally(self, policy, medic_battle, rng):
        state = set_hp(medic_battle, "slime_1", 10)
        action = policy.choose_action(state, "medic_0", rng)
        assert (action.ability_id, action.target_ids) == ("heal", ("slime_1",))

    def test_no_one_to_heal(self, policy, medic_battle, rng):
        """With nothing usable the enemy falls back to a basic attack."""
        action = policy.choose_action(medic_battle, "medic_0", rng)
        assert action == QueuedAction(unit_id="medic_0", ability_id=None, target_ids=("adept",))

    def test_heal_threshold(self, medic_battle, rng):
        state = set_hp(medic_battle, "slime_1", 10)
        cautious = ScriptedEnemyPolicy(heal_threshold=0.2)
        assert cautious.choose_action(state, "medic_0", rng).ability_id is None


class TestSelectTargets:
    """Tests for target hints."""

    def test_highest_def(self, policy, battle_state, rng):
        caster = battle_state.get_unit("slime_0")
        assert policy.select_targets(battle_state, caster, _hinted("highest_def"), rng) == ("adept",)

    def test_healer_first(self, policy, battle_state, rng):
        caster = battle_state.get_unit("slime_0")
        assert policy.select_targets(battle_state, caster, _hinted("healer_first"), rng) == ("mystic",)

    def test_lowest_resistance(self, policy, battle_state, rng):
        """A Mars ability goes after the Mercury unit, which resists it most."""
        ember = _hinted("lowest_res", element="Mars")
        caster = battle_state.get_unit("slime_0")
        assert policy.select_targets(battle_state, caster, ember, rng) == ("mystic",)

    def test_random_is_seeded(self, policy, battle_state):
        caster = battle_state.get_unit("slime_0")
        ability = _hinted("random")
        first = policy.select_targets(battle_state, caster, ability, BattleRng(seed=9))
        second = policy.select_targets(battle_state, caster, ability, BattleRng(seed=9))
        assert first == second
        assert first[0] in ("adept", "mystic")

    def test_candidates_skip_knocked_out(self, battle_state):
        state = set_hp(battle_state, "mystic", 0)
        caster = state.get_unit("slime_0")
        assert [u.id for u in candidate_targets(state, caster, _hinted())] == ["adept"]


class TestScoring:
    """Tests for ability scoring."""

    def test_opener_bonus_only_in_first_round(self, policy, battle_state):
        caster = battle_state.get_unit("slime_0")
        opener = _hinted(opener=True)
        first = policy.score_ability(battle_state, caster, opener)
        later = policy.score_ability(replace(battle_state, round_number=2), caster, opener)
        assert first - later == pytest.approx(1.0)

    def test_no_targets_unusable(self, policy, battle_state):
        state = set_hp(set_hp(battle_state, "adept", 0), "mystic", 0)
        assert policy.score_ability(state, state.get_unit("slime_0"), _hinted()) == UNUSABLE_SCORE
