"""
Tests for the run log and the table-driven state machine.
"""

import pytest

from vale_core.data_models import DjinnState
from vale_core.observability.run_log import (
    EventType,
    RunLog,
    TransitionEvent,
    get_run_log,
    reset_run_log,
)
from vale_core.state_machine import InvalidTransitionError, StateTransition, TransitionTable


# =============================================================================
# RUN LOG
# =============================================================================


class TestRunLog:
    """Tests for RunLog recording and persistence."""

    def test_singleton(self):
        """get_run_log always returns the same instance."""
        assert get_run_log() is get_run_log()
        assert RunLog() is get_run_log()

    def test_sequence_numbers(self):
        """Events are numbered in logging order."""
        log = get_run_log()
        log.log_rng("random", 0.5, "first")
        log.log_round(round_number=1, status="ongoing", battle_events=3, remaining_mana=2)
        assert [e.sequence_number for e in log.get_events()] == [1, 2]
        assert len(log.get_rounds()) == 1

    def test_reset_clears_events_and_seed(self):
        log = get_run_log()
        log.set_seed(9)
        log.log_tower("created", None)
        reset_run_log()
        assert log.get_event_count() == 0
        assert log.get_seed() is None

    def test_filter_by_type(self):
        log = get_run_log()
        log.log_rng("random", 0.5, "test")
        log.log_tower("created", None)
        log.log_rng("random", 0.25, "test")
        assert len(log.get_events(EventType.RNG)) == 2
        assert [e.action for e in log.get_events(EventType.TOWER)] == ["created"]

    def test_save_and_load(self, tmp_path):
        """A saved log loads back with its events and seed."""
        log = get_run_log()
        log.set_seed(77)
        log.log_transition("battle", "planning", "executing", "execute_round", {"round": 1})
        path = tmp_path / "run_log.json"
        log.save(str(path))

        reset_run_log()
        loaded = RunLog.load(str(path))
        assert loaded.get_seed() == 77
        transitions = loaded.get_transitions()
        assert len(transitions) == 1
        assert transitions[0].to_state == "executing"
        assert transitions[0].context == {"round": 1}

    def test_format_log(self):
        log = get_run_log()
        log.log_transition("djinn:flint", "Set", "Standby", "release")
        text = log.format_log()
        assert "djinn:flint: Set -> Standby (release)" in text

    def test_format_log_filtered(self):
        """Only the requested event types are listed, most recent last."""
        log = get_run_log()
        log.set_seed(3)
        log.log_rng("random", 0.5, "noise")
        log.log_tower("battle_recorded", 1, "victory", 1)
        log.log_round(round_number=2, status="ongoing", battle_events=4, remaining_mana=1)
        lines = log.format_log(event_types=[EventType.TOWER, EventType.ROUND]).splitlines()
        assert "Seed: 3" in lines
        assert lines[-2:] == [
            "[2] TOWER battle_recorded floor 1 victory",
            "[3] ROUND 2: ongoing (4 events, mana 1)",
        ]
        assert not any("RNG" in line for line in lines)

    def test_load_restores_event_classes(self, tmp_path):
        log = get_run_log()
        log.log_round(round_number=1, status="player_victory", battle_events=2, remaining_mana=0)
        path = tmp_path / "log.json"
        log.save(str(path))
        reset_run_log()
        assert RunLog.load(str(path)).get_rounds()[0].status == "player_victory"


# =============================================================================
# TRANSITION TABLE
# =============================================================================


@pytest.fixture
def djinn_table():
    return TransitionTable(
        "djinn",
        [
            StateTransition(DjinnState.SET, DjinnState.STANDBY, "release"),
            StateTransition(DjinnState.STANDBY, DjinnState.RECOVERY, "summon"),
        ],
    )


class TestTransitionTable:
    """Tests for TransitionTable validation."""

    def test_valid_transition(self, djinn_table):
        assert djinn_table.resolve(DjinnState.SET, "release") == DjinnState.STANDBY

    def test_invalid_transition_raises(self, djinn_table):
        """An unknown (state, trigger) pair raises with the valid triggers listed."""
        with pytest.raises(InvalidTransitionError, match="release"):
            djinn_table.resolve(DjinnState.SET, "summon")

    def test_valid_triggers_and_terminal(self, djinn_table):
        assert djinn_table.get_valid_triggers(DjinnState.STANDBY) == ["summon"]
        assert djinn_table.is_terminal(DjinnState.RECOVERY)
        assert not djinn_table.can_transition(DjinnState.RECOVERY, "release")

    def test_transition_logged(self, djinn_table):
        """Accepted transitions are written to the run log."""
        djinn_table.resolve(DjinnState.SET, "release", context={"turn": 2}, machine="djinn:flint")
        events = get_run_log().get_transitions()
        assert len(events) == 1
        event = events[0]
        assert isinstance(event, TransitionEvent)
        assert (event.machine, event.from_state, event.to_state) == ("djinn:flint", "Set", "Standby")
        assert event.context == {"turn": 2}

    def test_rejected_transition_not_logged(self, djinn_table):
        with pytest.raises(InvalidTransitionError):
            djinn_table.resolve(DjinnState.RECOVERY, "release")
        assert get_run_log().get_transitions() == []
