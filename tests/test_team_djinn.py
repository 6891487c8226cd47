"""
Tests for the team model and the Djinn lifecycle.
"""

from dataclasses import replace

import pytest

from vale_core.data_models import DjinnState
from vale_core.observability.run_log import get_run_log
from vale_core.state_machine import InvalidTransitionError
from vale_core.team.djinn import (
    DjinnRules,
    collect_djinn,
    equip_djinn,
    get_djinn_granted_abilities,
    get_djinn_transitions,
    reset_all_djinn,
    transition_djinn,
    unequip_djinn,
)
from vale_core.team.team import Team, advance_team_turn, create_team, replace_unit, update_team
from vale_core.units.unit import create_unit
from tests.helpers import ADEPT, MYSTIC, RANGER, equip_team_djinn


# =============================================================================
# TEAM
# =============================================================================


class TestTeam:
    """Tests for team creation and invariants."""

    def test_create_team(self, team):
        assert [u.id for u in team.units] == ["adept", "mystic"]
        assert team.equipped_djinn == ()
        assert team.get_unit("mystic").name == "Mystic"
        assert team.get_unit("nobody") is None

    def test_party_size_limits(self, adept):
        """Teams hold one to four units."""
        with pytest.raises(ValueError):
            create_team([])
        with pytest.raises(ValueError):
            create_team([adept] * 5)

    def test_djinn_limits(self, adept):
        with pytest.raises(ValueError):
            create_team([adept], equipped_djinn=["a", "b", "c", "d"])
        with pytest.raises(ValueError):
            create_team([adept], equipped_djinn=["a", "a"])
        with pytest.raises(ValueError):
            create_team([adept], collected_djinn=[f"d{i}" for i in range(13)])

    def test_update_team_validates(self, team, adept):
        with pytest.raises(ValueError):
            update_team(team, units=(adept,) * 5)
        ranger = create_unit(RANGER)
        assert len(update_team(team, units=team.units + (ranger,)).units) == 3

    def test_replace_unit(self, team):
        hurt = replace(team.units[1], current_hp=10)
        updated = replace_unit(team, hurt)
        assert updated.get_unit("mystic").current_hp == 10
        assert updated.get_unit("adept") is team.units[0]

    def test_advance_turn_clears_activations(self, team):
        team = Team(units=team.units, current_turn=3, activations_this_turn={"Venus": 2})
        advanced = advance_team_turn(team)
        assert advanced.current_turn == 4
        assert advanced.activations_this_turn == {}

    def test_round_trip(self, team, repository):
        team = equip_team_djinn(team, repository, "flint", "fizz")
        team = transition_djinn(team, "fizz", "release")
        assert Team.from_dict(team.to_dict()) == team


# =============================================================================
# COLLECTION AND EQUIPPING
# =============================================================================


class TestCollectAndEquip:
    """Tests for collect_djinn, equip_djinn and unequip_djinn."""

    def test_collect(self, team, repository):
        result = collect_djinn(team, "flint", repository)
        assert result.success
        assert result.team.collected_djinn == ("flint",)

    def test_collect_failures(self, team, repository):
        """Unknown, duplicate and over-limit collection fail without raising."""
        assert not collect_djinn(team, "nope", repository).success

        team = collect_djinn(team, "flint", repository).team
        duplicate = collect_djinn(team, "flint", repository)
        assert not duplicate.success
        assert duplicate.team is team

        full = create_team(team.units, collected_djinn=[f"d{i}" for i in range(12)])
        assert "Cannot collect more" in collect_djinn(full, "fizz").error

    def test_equip_sets_tracker(self, team, repository):
        """A newly equipped Djinn starts Set and is mirrored on every unit."""
        team = equip_team_djinn(team, repository, "flint")
        tracker = team.djinn_trackers["flint"]
        assert tracker.state == DjinnState.SET
        assert tracker.last_activated_turn == -1
        for unit in team.units:
            assert unit.djinn == ("flint",)
            assert unit.djinn_states == {"flint": DjinnState.SET}

    def test_equip_requires_collection(self, team, repository):
        result = equip_djinn(team, "flint", repository)
        assert not result.success
        assert "not collected" in result.error

    def test_equip_twice_fails(self, team, repository):
        team = equip_team_djinn(team, repository, "flint")
        assert not equip_djinn(team, "flint", repository).success

    def test_full_slots_need_slot_index(self, team, repository):
        """With three equipped, a fourth replaces the chosen slot."""
        team = equip_team_djinn(team, repository, "flint", "fizz", "granite")
        team = collect_djinn(team, "breeze", repository).team

        assert not equip_djinn(team, "breeze", repository).success

        result = equip_djinn(team, "breeze", repository, slot_index=1)
        assert result.success
        assert result.team.equipped_djinn == ("flint", "breeze", "granite")
        assert "fizz" not in result.team.djinn_trackers

    def test_custom_state_on_equip(self, team, repository):
        team = collect_djinn(team, "flint", repository).team
        rules = DjinnRules(state_on_equip=DjinnState.STANDBY)
        team = equip_djinn(team, "flint", repository, rules=rules).team
        assert team.djinn_trackers["flint"].state == DjinnState.STANDBY

    def test_unequip(self, team, repository):
        team = equip_team_djinn(team, repository, "flint", "fizz")
        result = unequip_djinn(team, "flint")
        assert result.success
        assert result.team.equipped_djinn == ("fizz",)
        assert "flint" not in result.team.djinn_trackers
        assert "flint" in result.team.collected_djinn
        assert not unequip_djinn(result.team, "flint").success


# =============================================================================
# LIFECYCLE
# =============================================================================


class TestDjinnLifecycle:
    """Tests for Set -> Standby -> Recovery transitions."""

    @pytest.fixture
    def flint_team(self, team, repository):
        return equip_team_djinn(team, repository, "flint")

    def test_full_cycle(self, flint_team):
        team = transition_djinn(flint_team, "flint", "release")
        assert team.djinn_trackers["flint"].state == DjinnState.STANDBY
        team = transition_djinn(team, "flint", "summon", turn=4)
        assert team.djinn_trackers["flint"].state == DjinnState.RECOVERY
        assert team.djinn_trackers["flint"].last_activated_turn == 4
        assert team.activations_this_turn == {"Venus": 1}
        team = transition_djinn(team, "flint", "recover")
        assert team.djinn_trackers["flint"].state == DjinnState.STANDBY

    def test_recover_to_set(self, flint_team):
        rules = DjinnRules(recovery_target=DjinnState.SET)
        team = transition_djinn(flint_team, "flint", "release", rules=rules)
        team = transition_djinn(team, "flint", "summon", rules=rules)
        team = transition_djinn(team, "flint", "recover", rules=rules)
        assert team.djinn_trackers["flint"].state == DjinnState.SET

    def test_invalid_trigger(self, flint_team):
        """Summoning straight from Set is not a valid transition."""
        with pytest.raises(InvalidTransitionError):
            transition_djinn(flint_team, "flint", "summon")

    def test_not_equipped(self, team):
        with pytest.raises(KeyError):
            transition_djinn(team, "flint", "release")

    def test_transitions_logged(self, flint_team):
        transition_djinn(flint_team, "flint", "release")
        events = get_run_log().get_transitions()
        assert events[-1].machine == "djinn:flint"
        assert (events[-1].from_state, events[-1].to_state) == ("Set", "Standby")

    def test_release_drops_stat_bonus(self, flint_team):
        """Only Set Djinn count toward stats and the unit mirror."""
        team = transition_djinn(flint_team, "flint", "release")
        assert team.get_set_djinn() == []
        assert team.units[0].djinn_states == {"flint": DjinnState.STANDBY}

    def test_reset_all(self, team, repository):
        team = equip_team_djinn(team, repository, "flint", "fizz")
        team = transition_djinn(team, "flint", "release")
        team = transition_djinn(team, "flint", "summon")
        team = transition_djinn(team, "fizz", "release")
        team = reset_all_djinn(team)
        assert all(t.state == DjinnState.SET for t in team.djinn_trackers.values())

    def test_recovery_rounds(self):
        assert DjinnRules().recovery_rounds_for(1) == 2
        assert DjinnRules().recovery_rounds_for(3) == 4
        assert DjinnRules(recovery_rounds=1).recovery_rounds_for(3) == 1

    def test_transition_table(self):
        table = get_djinn_transitions()
        assert table.get_valid_triggers(DjinnState.SET) == ["release"]
        assert set(table.get_valid_triggers(DjinnState.STANDBY)) == {"summon", "reset"}


class TestGrantedAbilities:
    """Tests for abilities granted by Set Djinn."""

    def test_same_element_grant(self, team, repository):
        team = equip_team_djinn(team, repository, "flint")
        adept, mystic = team.units
        assert [a.id for a in get_djinn_granted_abilities(adept, team, repository)] == ["flint-stone-fist"]
        assert get_djinn_granted_abilities(mystic, team, repository) == []

    def test_no_grant_when_not_set(self, team, repository):
        team = transition_djinn(equip_team_djinn(team, repository, "flint"), "flint", "release")
        assert get_djinn_granted_abilities(team.units[0], team, repository) == []

    def test_unit_without_bucket(self, repository):
        """Units the Djinn lists no grants for get nothing."""
        ranger = create_unit(RANGER)
        team = equip_team_djinn(create_team([create_unit(ADEPT), create_unit(MYSTIC), ranger]), repository, "flint")
        assert get_djinn_granted_abilities(team.units[2], team, repository) == []
