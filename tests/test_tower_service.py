"""
Tests for the Battle Tower run reducers, enemy scaling and records.
"""

from dataclasses import replace

import pytest

from vale_core.battle.events import AbilityUsed
from vale_core.content.schemas import TowerReward, TowerRewardEntry
from vale_core.data_models import DjinnState, FloorOutcome, FloorType, TowerDifficulty
from vale_core.observability.run_log import EventType, get_run_log
from vale_core.rng import BattleRng
from vale_core.team.djinn import transition_djinn
from vale_core.team.team import replace_unit
from vale_core.tower.config import TowerConfig
from vale_core.tower.tower_service import (
    TowerBattleSummary,
    TowerHistoryEntry,
    TowerRecord,
    TowerRestSummary,
    TowerRunError,
    TowerRunStats,
    advance_to_next_floor,
    calculate_enemy_scaling,
    clear_pending_rewards,
    complete_rest_floor,
    create_battle_from_encounter,
    create_tower_run,
    get_current_floor,
    get_floor_by_id,
    get_rewards_for_floor,
    heal_team_at_rest,
    is_rest_floor,
    quit_tower_run,
    record_battle_result,
    summarize_battle,
    update_tower_record,
)
from tests.helpers import build_tower_floors, equip_team_djinn


SUMMARY = TowerBattleSummary(turns_taken=3, damage_dealt=120, damage_taken=40, mana_spent=2)
SANDALS = TowerRewardEntry(type="equipment", ids=["hermes-sandals"])


@pytest.fixture
def run(tower_floors):
    return create_tower_run(7, "normal", tower_floors)


def _run_at(run, index):
    return replace(run, floor_index=index)


# =============================================================================
# CREATION AND LOOKUP
# =============================================================================


class TestCreateTowerRun:
    """Tests for create_tower_run and floor lookup."""

    def test_initial_state(self, run, tower_floors):
        assert run.seed == 7
        assert run.difficulty == TowerDifficulty.NORMAL
        assert run.floor_index == 0
        assert not run.is_completed and not run.is_failed
        assert run.stats == TowerRunStats()
        assert len(run.history) == 10
        assert all(entry.outcome == FloorOutcome.PENDING for entry in run.history)
        assert run.history[3].type == FloorType.REST
        assert run.history[4].type == FloorType.BOSS
        assert get_current_floor(run, tower_floors).floor_number == 1

    def test_floors_sorted(self, tower_floors):
        """Floor order follows floor_number, not list order."""
        run = create_tower_run(1, "hard", list(reversed(tower_floors)))
        assert run.floor_ids[0] == "floor-001"
        assert run.floor_ids[-1] == "floor-010"

    def test_empty_floors(self):
        with pytest.raises(TowerRunError):
            create_tower_run(1, "normal", [])

    def test_unknown_difficulty(self, tower_floors):
        with pytest.raises(ValueError):
            create_tower_run(1, "nightmare", tower_floors)

    def test_custom_config(self, tower_floors):
        config = TowerConfig(heal_fraction_at_rest=0.25)
        assert create_tower_run(1, "normal", tower_floors, config).config.heal_fraction_at_rest == 0.25

    def test_missing_floor(self, tower_floors):
        with pytest.raises(TowerRunError, match="floor-099"):
            get_floor_by_id(tower_floors, "floor-099")

    def test_creation_logged(self, run):
        events = get_run_log().get_events(EventType.TOWER)
        assert [e.action for e in events] == ["created"]


# =============================================================================
# BATTLE RESULTS
# =============================================================================


class TestRecordBattleResult:
    """Tests for record_battle_result."""

    def test_victory_advances(self, run, tower_floors):
        run = record_battle_result(run, tower_floors, "victory", SUMMARY)
        assert run.floor_index == 1
        assert not run.is_completed
        assert run.history[0].outcome == FloorOutcome.VICTORY
        assert run.stats.highest_floor == 1
        assert (run.stats.total_battles, run.stats.victories) == (1, 1)
        assert run.stats.turns_taken == 3
        assert run.stats.total_damage_dealt == 120
        assert run.stats.total_damage_taken == 40

    def test_defeat_fails_run(self, run, tower_floors):
        """Defeat ends the run on the same floor and does not raise highest_floor."""
        run = record_battle_result(run, tower_floors, FloorOutcome.DEFEAT, SUMMARY)
        assert run.is_failed and run.is_completed
        assert run.floor_index == 0
        assert run.stats.highest_floor == 0
        assert run.stats.defeats == 1

    def test_retreat_completes_without_failing(self, run, tower_floors):
        run = record_battle_result(run, tower_floors, "retreat", SUMMARY)
        assert run.is_completed
        assert not run.is_failed
        assert run.stats.retreats == 1

    def test_last_floor_completes(self):
        floors = build_tower_floors(2)
        run = create_tower_run(1, "normal", floors)
        run = record_battle_result(run, floors, "victory", SUMMARY)
        run = record_battle_result(run, floors, "victory", SUMMARY)
        assert run.is_completed
        assert not run.is_failed
        assert run.floor_index == 2
        assert get_current_floor(run, floors) is None

    def test_rewards_accumulate(self, run, tower_floors):
        run = _run_at(run, 2)
        run = record_battle_result(run, tower_floors, "victory", SUMMARY, [SANDALS])
        assert run.pending_rewards == (SANDALS,)
        assert run.history[2].rewards_granted == (SANDALS,)
        assert clear_pending_rewards(run).pending_rewards == ()

    def test_rest_floor_rejected(self, run, tower_floors):
        with pytest.raises(TowerRunError, match="rest floor"):
            record_battle_result(_run_at(run, 3), tower_floors, "victory", SUMMARY)

    def test_non_battle_outcome_rejected(self, run, tower_floors):
        with pytest.raises(TowerRunError):
            record_battle_result(run, tower_floors, "rested", SUMMARY)

    def test_completed_run_unchanged(self, run, tower_floors):
        """Reducers are no-ops once the run is over."""
        done = quit_tower_run(run)
        assert record_battle_result(done, tower_floors, "victory", SUMMARY) is done
        assert advance_to_next_floor(done) is done
        assert quit_tower_run(done) is done

    def test_result_logged(self, run, tower_floors):
        record_battle_result(run, tower_floors, "victory", SUMMARY)
        event = get_run_log().get_events(EventType.TOWER)[-1]
        assert (event.action, event.floor_number, event.outcome, event.floor_index) == (
            "battle_recorded", 1, "victory", 1,
        )


# =============================================================================
# REST FLOORS
# =============================================================================


class TestRestFloors:
    """Tests for complete_rest_floor and heal_team_at_rest."""

    def test_complete_rest_floor(self, run, tower_floors):
        rest = TowerRestSummary(healed_fraction=0.5)
        run = complete_rest_floor(_run_at(run, 3), tower_floors, rest)
        assert run.floor_index == 4
        assert run.history[3].outcome == FloorOutcome.RESTED
        assert run.history[3].rest_summary == rest
        assert run.stats.highest_floor == 4
        assert run.stats.total_battles == 0

    def test_battle_floor_rejected(self, run, tower_floors):
        with pytest.raises(TowerRunError, match="non-rest"):
            complete_rest_floor(run, tower_floors, TowerRestSummary(healed_fraction=0.5))

    def test_heal_fraction(self, team):
        hurt = replace_unit(team, replace(team.units[0], current_hp=10))
        healed = heal_team_at_rest(hurt, 0.5)
        assert [u.current_hp for u in healed.units] == [60, 80]

    def test_heal_capped_at_max(self, team):
        hurt = replace_unit(team, replace(team.units[1], current_hp=70))
        assert heal_team_at_rest(hurt, 0.5).units[1].current_hp == 80

    def test_djinn_reset(self, team, repository):
        """Resting returns every Djinn to Set."""
        flint_team = equip_team_djinn(team, repository, "flint")
        released = transition_djinn(flint_team, "flint", "release")
        rested = heal_team_at_rest(released, 0.5)
        assert rested.djinn_trackers["flint"].state == DjinnState.SET


class TestQuitAndAdvance:
    """Tests for quit_tower_run and advance_to_next_floor."""

    def test_quit_keeps_progress(self, run, tower_floors):
        run = record_battle_result(run, tower_floors, "victory", SUMMARY)
        quit_run = quit_tower_run(run)
        assert quit_run.is_completed
        assert not quit_run.is_failed
        assert quit_run.stats.highest_floor == 1

    def test_advance(self, run):
        assert advance_to_next_floor(run).floor_index == 1
        last = advance_to_next_floor(_run_at(run, 9))
        assert last.floor_index == 10
        assert last.is_completed


COMPLETIONS = {
    "cleared": lambda run, floors: advance_to_next_floor(_run_at(run, 9)),
    "defeat": lambda run, floors: record_battle_result(run, floors, "defeat", SUMMARY),
    "retreat": lambda run, floors: record_battle_result(run, floors, "retreat", SUMMARY),
    "quit": lambda run, floors: quit_tower_run(run),
}

MOVING_REDUCERS = {
    "advance": lambda run, floors: advance_to_next_floor(run),
    "victory": lambda run, floors: record_battle_result(run, floors, "victory", SUMMARY),
    "defeat": lambda run, floors: record_battle_result(run, floors, "defeat", SUMMARY),
    "rest": lambda run, floors: complete_rest_floor(run, floors, TowerRestSummary(healed_fraction=0.5)),
    "quit": lambda run, floors: quit_tower_run(run),
}


class TestCompletedRunIsFinal:
    """Once a run is completed, reducers that move it hand back the same object."""

    @pytest.mark.parametrize("completion", sorted(COMPLETIONS))
    @pytest.mark.parametrize("reducer", sorted(MOVING_REDUCERS))
    def test_reducer_is_identity(self, run, tower_floors, completion, reducer):
        done = COMPLETIONS[completion](run, tower_floors)
        assert done.is_completed
        logged = get_run_log().get_event_count()

        assert MOVING_REDUCERS[reducer](done, tower_floors) is done
        assert get_run_log().get_event_count() == logged

    def test_clear_rewards_after_final_floor(self, tower_floors):
        """The last floor's rewards are still collected after the run completes."""
        run = create_tower_run(7, "normal", tower_floors[:1])
        done = record_battle_result(run, tower_floors[:1], "victory", SUMMARY, rewards=[SANDALS])
        assert done.is_completed
        cleared = clear_pending_rewards(done)
        assert cleared.pending_rewards == ()
        assert (cleared.is_completed, cleared.floor_index, cleared.stats) == (True, 1, done.stats)
        assert clear_pending_rewards(cleared) is cleared

    @pytest.mark.parametrize("seed", range(25))
    def test_random_walk_never_moves_backwards(self, run, tower_floors, seed):
        """Any sequence of reducer calls keeps floor_index rising and completion sticky."""
        rng = BattleRng(seed=seed)
        names = sorted(MOVING_REDUCERS)
        for _ in range(40):
            floor = get_current_floor(run, tower_floors)
            name = rng.choice(names, reason="reducer")
            if floor is not None and name in ("victory", "defeat", "rest") and is_rest_floor(floor) != (name == "rest"):
                name = "advance"
            updated = MOVING_REDUCERS[name](run, tower_floors)

            assert updated.floor_index >= run.floor_index
            assert 0 <= updated.floor_index <= len(updated.floor_ids)
            if run.is_completed:
                assert updated is run
            if updated.is_failed:
                assert updated.is_completed
            run = updated


# =============================================================================
# SCALING, REWARDS AND ENCOUNTERS
# =============================================================================


class TestScaling:
    """Tests for enemy scaling."""

    def test_first_floor_unscaled(self):
        scaling = calculate_enemy_scaling(1, "normal")
        assert scaling.stat_multiplier == 1
        assert scaling.level_delta == 0

    def test_hard_difficulty(self):
        scaling = calculate_enemy_scaling(6, "hard")
        assert scaling.stat_multiplier == pytest.approx(1.45)
        assert scaling.level_delta == 7

    def test_scaled_encounter(self, team, repository):
        """Scaled enemies start at their new full HP."""
        state = create_battle_from_encounter(
            "slime-pit", team, repository, calculate_enemy_scaling(3, "normal")
        )
        slime = state.get_unit("slime_0")
        assert slime.base_stats.hp == 43
        assert slime.current_hp == 43
        assert slime.level == 3


class TestEncounterBattles:
    """Tests for create_battle_from_encounter."""

    def test_positional_ids(self, team, repository):
        state = create_battle_from_encounter("slime-pit", team, repository)
        assert [u.id for u in state.enemies] == ["slime_0", "slime_1"]
        assert state.encounter_id == "slime-pit"
        assert not state.is_boss_battle

    def test_boss_encounter(self, team, repository):
        state = create_battle_from_encounter("wolf-den", team, repository)
        assert [u.id for u in state.enemies] == ["wolf_0", "slime_1"]
        assert state.is_boss_battle


class TestRewardsAndSummaries:
    """Tests for floor reward lookup and battle summaries."""

    def test_rewards_for_floor(self):
        table = [TowerReward(floor_number=3, rewards=[SANDALS])]
        assert get_rewards_for_floor(table, 3) == [SANDALS]
        assert get_rewards_for_floor(table, 4) == []

    def test_summarize_battle(self, battle_state):
        """Only mana spent by the player side counts."""
        state = replace(
            battle_state,
            round_number=4,
            log=(
                AbilityUsed(actor_id="mystic", ability_id="heal", target_ids=("adept",), mana_cost=2),
                AbilityUsed(actor_id="slime_0", ability_id=None, target_ids=("adept",)),
            ),
        )
        summary = summarize_battle(state)
        assert summary == TowerBattleSummary(turns_taken=4, damage_dealt=0, damage_taken=0, mana_spent=2)

    def test_history_entry_round_trip(self):
        entry = TowerHistoryEntry(
            floor_id="floor-003",
            floor_number=3,
            type=FloorType.NORMAL,
            outcome=FloorOutcome.VICTORY,
            rewards_granted=(SANDALS,),
        )
        assert TowerHistoryEntry.from_dict(entry.to_dict()) == entry


class TestTowerRecord:
    """Tests for update_tower_record."""

    def test_first_run(self, run):
        finished = replace(run, stats=TowerRunStats(highest_floor=3, turns_taken=12, total_damage_dealt=300))
        record = update_tower_record(TowerRecord(), finished)
        assert record == TowerRecord(
            highest_floor_ever=3, total_runs=1, best_run_turns=12, best_run_damage_dealt=300
        )

    def test_keeps_bests(self, run):
        record = TowerRecord(highest_floor_ever=3, total_runs=1, best_run_turns=12, best_run_damage_dealt=300)
        finished = replace(run, stats=TowerRunStats(highest_floor=2, turns_taken=20, total_damage_dealt=500))
        record = update_tower_record(record, finished)
        assert record == TowerRecord(
            highest_floor_ever=3, total_runs=2, best_run_turns=12, best_run_damage_dealt=500
        )

    def test_zero_turn_run_ignored_for_best_turns(self, run):
        record = update_tower_record(TowerRecord(), run)
        assert record.best_run_turns is None
        assert record.best_run_damage_dealt == 0

    def test_round_trip(self):
        record = TowerRecord(highest_floor_ever=5, total_runs=2, best_run_turns=9)
        assert TowerRecord.from_dict(record.to_dict()) == record
