"""
Pytest fixtures for the Vale Core test suite.

Content fixtures come from tests/helpers.py so test modules can also use the
same tables directly.
"""

import pytest

from vale_core.observability.run_log import reset_run_log
from vale_core.rng import BattleRng
from vale_core.units.conversion import enemy_to_unit
from vale_core.units.unit import create_unit
from tests.helpers import (
    ADEPT,
    MYSTIC,
    SLIME,
    build_repository,
    build_tower_floors,
    make_battle,
    make_team,
)


# =============================================================================
# RUN LOG
# =============================================================================


@pytest.fixture(autouse=True)
def clean_run_log():
    """Every test starts with an empty run log."""
    log = reset_run_log()
    yield log
    reset_run_log()


# =============================================================================
# SEEDED RNG
# =============================================================================


@pytest.fixture
def rng():
    """Seeded BattleRng for reproducible tests."""
    return BattleRng(seed=42)


# =============================================================================
# CONTENT REPOSITORY
# =============================================================================


@pytest.fixture
def tower_floors():
    """Ten tower floors (rest on 4 and 8, boss on 5 and 10)."""
    return build_tower_floors(10)


@pytest.fixture
def repository(tower_floors):
    """Content repository with the fixture tables."""
    return build_repository(tower_floors)


# =============================================================================
# SAMPLE UNITS AND TEAM
# =============================================================================


@pytest.fixture
def adept():
    """Level 1 Venus adept at full HP (100)."""
    return create_unit(ADEPT, level=1)


@pytest.fixture
def mystic():
    """Level 1 Mercury mystic at full HP (80)."""
    return create_unit(MYSTIC, level=1)


@pytest.fixture
def team(adept, mystic):
    """Two-unit team with 3 max mana."""
    return make_team(adept, mystic)


@pytest.fixture
def slime_unit():
    return enemy_to_unit(SLIME)


# =============================================================================
# BATTLE STATE
# =============================================================================


@pytest.fixture
def battle_state(team):
    """Planning-phase battle: adept and mystic against slime_0 and slime_1."""
    return make_battle(team)
