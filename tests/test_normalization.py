"""
Tests for tower level normalization.
"""

import pytest

from vale_core.content.schemas import NormalFloor
from vale_core.data_models import STAT_KEYS, Stats
from vale_core.tower.normalization import (
    EXPONENTIAL_LEVEL_CAP,
    calculate_floor_target_level,
    calculate_level_scaled_stats,
    calculate_max_hp_at_level,
    calculate_stats_with_growth_rates,
    is_normalized_unit,
    normalize_party_for_floor,
    normalize_unit_for_floor,
)
from vale_core.units.unit import calculate_stats_at_level, create_unit
from tests.helpers import ADEPT


FLOOR_7 = NormalFloor(id="floor-007", floor_number=7, encounter_id="slime-pit")
SWEEP_FLOORS = range(1, 201)


def _not_lower(lower, higher):
    return all(higher.get(key) >= lower.get(key) for key in STAT_KEYS)


class TestFloorTargetLevel:
    """Tests for calculate_floor_target_level."""

    @pytest.mark.parametrize("floor,expected", [(1, 5), (5, 5), (6, 10), (7, 10), (23, 25)])
    def test_stepped(self, floor, expected):
        assert calculate_floor_target_level(floor) == expected

    def test_linear(self):
        assert calculate_floor_target_level(13, "linear") == 13

    def test_exponential(self):
        assert calculate_floor_target_level(3, "exponential") == 9
        assert calculate_floor_target_level(40, "exponential") == 50

    def test_unknown_curve(self):
        with pytest.raises(ValueError):
            calculate_floor_target_level(3, "cubic")

    @pytest.mark.parametrize("curve", ["stepped", "linear", "exponential"])
    def test_never_decreases(self, curve):
        levels = [calculate_floor_target_level(f, curve) for f in SWEEP_FLOORS]
        assert all(a <= b for a, b in zip(levels, levels[1:]))

    def test_exponential_capped(self):
        levels = [calculate_floor_target_level(f, "exponential") for f in SWEEP_FLOORS]
        assert max(levels) == EXPONENTIAL_LEVEL_CAP
        assert min(levels) >= 6

    def test_stepped_changes_only_after_multiples_of_five(self):
        """The stepped level is a multiple of 5 and rises right after floors 5, 10, 15, ..."""
        for floor in SWEEP_FLOORS:
            level = calculate_floor_target_level(floor)
            assert level % 5 == 0
            assert floor <= level < floor + 5
            if floor > 1:
                changed = level != calculate_floor_target_level(floor - 1)
                assert changed == ((floor - 1) % 5 == 0)

    def test_linear_is_floor_number(self):
        assert all(calculate_floor_target_level(f, "linear") == f for f in SWEEP_FLOORS)


class TestLevelScaledStats:
    """Tests for the stat rescaling helpers."""

    def test_scale_up(self):
        base = Stats(hp=20, pp=10, atk=10, def_=10, mag=10, spd=10)
        scaled = calculate_level_scaled_stats(base, 3, 10)
        assert scaled == Stats(hp=55, pp=20, atk=27, def_=27, mag=27, spd=20)

    def test_scale_down_respects_minimums(self):
        """Scaling down never pushes a stat below its floor (def stays at least 1)."""
        base = Stats(hp=20, pp=2, atk=5, def_=3, mag=5, spd=4)
        scaled = calculate_level_scaled_stats(base, 10, 1)
        assert scaled.hp == 1
        assert scaled.pp == 0
        assert scaled.def_ == 1
        assert scaled.spd == 1

    def test_same_level_unchanged(self):
        base = Stats(hp=20, pp=10, atk=10, def_=10, mag=10, spd=10)
        assert calculate_level_scaled_stats(base, 4, 4) is base

    @pytest.mark.parametrize("from_level", [1, 5, 10, 20])
    def test_flat_scaling_never_decreases(self, from_level):
        base = Stats(hp=20, pp=3, atk=5, def_=4, mag=5, spd=3)
        scaled = [calculate_level_scaled_stats(base, from_level, level) for level in range(1, 51)]
        assert all(_not_lower(a, b) for a, b in zip(scaled, scaled[1:]))

    @pytest.mark.parametrize("from_level", [1, 10])
    def test_growth_rate_scaling_never_decreases(self, adept, from_level):
        scaled = [
            calculate_stats_with_growth_rates(adept.base_stats, adept.growth_rates, from_level, level)
            for level in range(1, 51)
        ]
        assert all(_not_lower(a, b) for a, b in zip(scaled, scaled[1:]))

    def test_stats_at_level_never_decrease(self, adept, mystic):
        for unit in (adept, mystic):
            stats = [calculate_stats_at_level(unit.base_stats, unit.growth_rates, level) for level in range(1, 21)]
            assert all(_not_lower(a, b) for a, b in zip(stats, stats[1:]))

    def test_growth_rates(self):
        base = Stats(hp=100, pp=20, atk=14, def_=10, mag=6, spd=10)
        growth = Stats(hp=10, pp=2, atk=3, def_=2, mag=1, spd=1)
        scaled = calculate_stats_with_growth_rates(base, growth, 1, 4)
        assert (scaled.hp, scaled.atk, scaled.spd) == (130, 23, 13)

    def test_max_hp_at_level(self):
        assert calculate_max_hp_at_level(100, 10, 5) == 140


class TestNormalizeUnit:
    """Tests for normalize_unit_for_floor."""

    def test_normalize_to_floor_level(self, adept):
        normalized = normalize_unit_for_floor(adept, FLOOR_7)
        assert normalized.level == 10
        assert normalized.original_level == 1
        assert normalized.normalized_level == 10
        assert normalized.base_stats.hp == 145
        assert normalized.base_stats.atk == 36

    def test_current_hp_untouched(self, adept):
        """Normalization rescales stats but leaves current HP for the caller."""
        assert normalize_unit_for_floor(adept, FLOOR_7).current_hp == adept.current_hp

    def test_floor_override_wins(self, adept):
        floor = NormalFloor(id="floor-007", floor_number=7, encounter_id="slime-pit", normalized_level=3)
        assert normalize_unit_for_floor(adept, floor).level == 3

    def test_original_level_kept_across_floors(self):
        veteran = create_unit(ADEPT, level=12)
        once = normalize_unit_for_floor(veteran, FLOOR_7)
        twice = normalize_unit_for_floor(once, NormalFloor(id="floor-011", floor_number=11, encounter_id="x"))
        assert twice.level == 15
        assert twice.original_level == 12

    def test_party(self, team):
        party = normalize_party_for_floor(team.units, FLOOR_7, "linear")
        assert [u.level for u in party] == [7, 7]
        assert all(is_normalized_unit(u) for u in party)
        assert not is_normalized_unit(team.units[0])
