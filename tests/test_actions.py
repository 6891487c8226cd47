"""
Tests for targeting and ability resolution.
"""

from vale_core.battle.actions import build_inflicted_status, execute_ability, resolve_targets
from vale_core.battle.events import AbilityUsed, Heal, Hit, KnockedOut, StatusApplied
from vale_core.content.schemas import Ability
from vale_core.data_models import Buff, Burn, Debuff, Paralyze, Poison, Shield
from tests.helpers import HEAL, HEAVY_STRIKE, QUAKE, set_hp


def _hits(events):
    return [(e.target_id, e.amount) for e in events if isinstance(e, Hit)]


# =============================================================================
# TARGETING
# =============================================================================


class TestResolveTargets:
    """Tests for resolve_targets."""

    def test_living_target_kept(self, battle_state):
        assert resolve_targets(battle_state, "adept", None, ("slime_1",)) == ("slime_1",)

    def test_dead_target_redirected(self, battle_state):
        """A knocked-out target is replaced by the first living enemy."""
        state = set_hp(battle_state, "slime_0", 0)
        assert resolve_targets(state, "adept", None, ("slime_0",)) == ("slime_1",)

    def test_wrong_side_redirected(self, battle_state):
        assert resolve_targets(battle_state, "adept", None, ("mystic",)) == ("slime_0",)

    def test_all_enemies(self, battle_state):
        state = set_hp(battle_state, "slime_0", 0)
        assert resolve_targets(state, "adept", QUAKE, ()) == ("slime_1",)

    def test_enemy_perspective(self, battle_state):
        """For an enemy actor, allies are the other enemies."""
        assert resolve_targets(battle_state, "slime_0", None, ()) == ("adept",)

    def test_self_target(self, battle_state):
        guard = Ability(id="guard", name="Guard", type="buff", targets="self", buff_effect={"def": 4})
        assert resolve_targets(battle_state, "mystic", guard, ("slime_0",)) == ("mystic",)

    def test_revive_may_target_knocked_out(self, battle_state):
        revive = Ability(id="revive", name="Revive", type="healing", targets="single-ally", revive=True)
        state = set_hp(battle_state, "adept", 0)
        assert resolve_targets(state, "mystic", revive, ("adept",)) == ("adept",)
        assert resolve_targets(state, "mystic", HEAL, ("adept",)) == ("mystic",)

    def test_no_valid_target(self, battle_state):
        state = set_hp(set_hp(battle_state, "slime_0", 0), "slime_1", 0)
        assert resolve_targets(state, "adept", None, ("slime_0",)) == ()


# =============================================================================
# DAMAGE
# =============================================================================


class TestDamageActions:
    """Tests for basic attacks and damaging abilities."""

    def test_basic_attack(self, battle_state, rng):
        state, events = execute_ability(battle_state, "adept", None, ("slime_0",), rng)
        assert events[0] == AbilityUsed(actor_id="adept", ability_id=None, target_ids=("slime_0",))
        assert _hits(events) == [("slime_0", 26)]
        assert state.get_unit("slime_0").current_hp == 14
        adept = state.get_unit("adept")
        assert adept.actions_taken == 1
        assert adept.battle_stats.damage_dealt == 26

    def test_previous_state_untouched(self, battle_state, rng):
        execute_ability(battle_state, "adept", None, ("slime_0",), rng)
        assert battle_state.get_unit("slime_0").current_hp == 40

    def test_knockout_event(self, battle_state, rng):
        state = set_hp(battle_state, "slime_0", 10)
        state, events = execute_ability(state, "adept", HEAVY_STRIKE, ("slime_0",), rng)
        assert state.get_unit("slime_0").current_hp == 0
        assert KnockedOut(unit_id="slime_0", by_id="adept") in events

    def test_all_enemy_psynergy(self, battle_state, rng):
        state, events = execute_ability(battle_state, "adept", QUAKE, (), rng)
        assert _hits(events) == [("slime_0", 34), ("slime_1", 34)]
        assert [e.current_hp for e in state.enemies] == [6, 6]

    def test_multi_hit_stops_at_knockout(self, battle_state, rng):
        """Extra hits are not spent on a knocked-out target."""
        flurry = Ability(id="flurry", name="Flurry", type="physical", targets="single-enemy", hit_count=3)
        state, events = execute_ability(battle_state, "adept", flurry, ("slime_0",), rng)
        assert _hits(events) == [("slime_0", 26), ("slime_0", 26)]
        assert state.get_unit("slime_0").current_hp == 0

    def test_splash_damage(self, battle_state, rng):
        cleave = Ability(
            id="cleave", name="Cleave", type="physical", targets="single-enemy", splash_damage_percent=0.5
        )
        _, events = execute_ability(battle_state, "adept", cleave, ("slime_0",), rng)
        assert _hits(events) == [("slime_0", 26), ("slime_1", 13)]

    def test_no_targets_left(self, battle_state, rng):
        """With every enemy down the action is announced and nothing else happens."""
        state = set_hp(set_hp(battle_state, "slime_0", 0), "slime_1", 0)
        new_state, events = execute_ability(state, "adept", None, ("slime_0",), rng)
        assert new_state is state
        assert events == [AbilityUsed(actor_id="adept", ability_id=None, target_ids=())]


class TestStatusInfliction:
    """Tests for statuses inflicted by abilities."""

    def test_guaranteed_status(self, battle_state, rng):
        venom = Ability(
            id="venom", name="Venom", type="physical", targets="single-enemy",
            status_effect={"type": "poison", "duration": 3},
        )
        state, events = execute_ability(battle_state, "adept", venom, ("slime_0",), rng)
        assert state.get_unit("slime_0").status_effects == (Poison(damage_per_turn=8, duration=3),)
        assert StatusApplied(target_id="slime_0", status_type="poison", duration=3) in events

    def test_zero_chance_status(self, battle_state, rng):
        dud = Ability(
            id="dud", name="Dud", type="physical", targets="single-enemy",
            status_effect={"type": "stun", "duration": 1, "chance": 0.0},
        )
        state, _ = execute_ability(battle_state, "adept", dud, ("slime_0",), rng)
        assert state.get_unit("slime_0").status_effects == ()

    def test_debuff_on_hit(self, battle_state, rng):
        sunder = Ability(
            id="sunder", name="Sunder", type="physical", targets="single-enemy", debuff_effect={"def": 3}
        )
        state, _ = execute_ability(battle_state, "adept", sunder, ("slime_0",), rng)
        assert state.get_unit("slime_0").status_effects == (Debuff(stat="def", modifier=-3, duration=3),)

    def test_build_inflicted_status(self):
        assert build_inflicted_status("burn", 2) == Burn(damage_per_turn=10, duration=2)
        assert build_inflicted_status("paralyze", 1) == Paralyze(duration=1)


# =============================================================================
# SUPPORT
# =============================================================================


class TestSupportActions:
    """Tests for healing, buffs and protective effects."""

    def test_heal(self, battle_state, rng):
        state = set_hp(battle_state, "adept", 20)
        state, events = execute_ability(state, "mystic", HEAL, ("adept",), rng)
        assert state.get_unit("adept").current_hp == 74
        assert Heal(target_id="adept", amount=54) in events

    def test_heal_capped(self, battle_state, rng):
        """The Heal event reports HP actually restored."""
        state = set_hp(battle_state, "mystic", 70)
        state, events = execute_ability(state, "mystic", HEAL, ("mystic",), rng)
        assert state.get_unit("mystic").current_hp == 80
        assert Heal(target_id="mystic", amount=10) in events

    def test_revive(self, battle_state, rng):
        revive = Ability(id="revive", name="Revive", type="healing", targets="single-ally", revive=True)
        state = set_hp(battle_state, "adept", 0)
        state, events = execute_ability(state, "mystic", revive, ("adept",), rng)
        assert state.get_unit("adept").current_hp == 50
        assert Heal(target_id="adept", amount=50, revived=True) in events

    def test_self_buff(self, battle_state, rng):
        rally = Ability(
            id="rally", name="Rally", type="buff", targets="self", buff_effect={"atk": 5}, duration=2
        )
        state, events = execute_ability(battle_state, "adept", rally, (), rng)
        assert state.get_unit("adept").status_effects == (Buff(stat="atk", modifier=5, duration=2),)
        assert [e.status_type for e in events if isinstance(e, StatusApplied)] == ["buff"]

    def test_shield(self, battle_state, rng):
        ward = Ability(id="ward", name="Ward", type="buff", targets="single-ally", shield_charges=2)
        state, _ = execute_ability(battle_state, "mystic", ward, ("adept",), rng)
        assert state.get_unit("adept").status_effects == (Shield(remaining_charges=2, duration=3),)

    def test_cleanse(self, battle_state, rng):
        venom = Ability(
            id="venom", name="Venom", type="physical", targets="single-enemy",
            status_effect={"type": "poison", "duration": 3},
        )
        cure = Ability(
            id="cure", name="Cure", type="healing", targets="single-ally",
            remove_status_effects={"mode": "negative"},
        )
        state, _ = execute_ability(battle_state, "slime_0", venom, ("mystic",), rng)
        assert state.get_unit("mystic").status_effects
        state, _ = execute_ability(state, "mystic", cure, ("mystic",), rng)
        assert state.get_unit("mystic").status_effects == ()
