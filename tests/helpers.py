"""
Test helpers for the Vale Core test suite.

Provides fixture content built in code (so tests do not depend on the
packaged JSON tables) and small builders for teams and battles.
"""

from dataclasses import replace
from typing import Iterable, Optional

from vale_core.battle.battle_state import BattleConfig, BattleState, create_battle_state
from vale_core.content.repository import ContentRepository
from vale_core.content.schemas import (
    Ability,
    BossFloor,
    Djinn,
    Encounter,
    Enemy,
    Equipment,
    NormalFloor,
    RestFloor,
    TowerReward,
    UnitDefinition,
)
from vale_core.team.djinn import collect_djinn, equip_djinn
from vale_core.team.team import Team, create_team
from vale_core.units.conversion import enemy_to_unit
from vale_core.units.unit import Unit, create_unit


# =============================================================================
# ABILITIES
# =============================================================================

STRIKE = Ability(id="strike", name="Strike", type="physical", targets="single-enemy")
HEAVY_STRIKE = Ability(
    id="heavy-strike", name="Heavy Strike", type="physical", base_power=15,
    targets="single-enemy", unlock_level=2,
)
FIREBALL = Ability(
    id="fireball", name="Fireball", type="psynergy", element="Mars", mana_cost=2,
    base_power=35, targets="single-enemy",
)
QUAKE = Ability(
    id="quake", name="Quake", type="psynergy", element="Venus", mana_cost=3,
    base_power=30, targets="all-enemies",
)
HEAL = Ability(
    id="heal", name="Heal", type="healing", mana_cost=2, base_power=40, targets="single-ally",
)
STONE_FIST = Ability(
    id="flint-stone-fist", name="Stone Fist", type="physical", element="Venus", mana_cost=1,
    base_power=20, targets="single-enemy",
)
PARALYZE_SHOCK = Ability(
    id="paralyze-shock", name="Paralyze Shock", type="psynergy", element="Jupiter", mana_cost=2,
    base_power=15, targets="single-enemy",
)


# =============================================================================
# UNITS AND ENEMIES
# =============================================================================

ADEPT = UnitDefinition(
    id="adept",
    name="Adept",
    element="Venus",
    role="Balanced Warrior",
    base_stats={"hp": 100, "pp": 20, "atk": 14, "def": 10, "mag": 6, "spd": 10},
    growth_rates={"hp": 10, "pp": 2, "atk": 3, "def": 2, "mag": 1, "spd": 1},
    mana_contribution=1,
    abilities=[STRIKE, HEAVY_STRIKE, QUAKE],
)
MYSTIC = UnitDefinition(
    id="mystic",
    name="Mystic",
    element="Mercury",
    role="Healer",
    base_stats={"hp": 80, "pp": 30, "atk": 7, "def": 8, "mag": 14, "spd": 12},
    growth_rates={"hp": 8, "pp": 3, "atk": 1, "def": 2, "mag": 2, "spd": 1},
    mana_contribution=2,
    abilities=[STRIKE, HEAL, FIREBALL],
)
RANGER = UnitDefinition(
    id="ranger",
    name="Ranger",
    element="Jupiter",
    role="Rogue Assassin",
    base_stats={"hp": 85, "pp": 18, "atk": 13, "def": 7, "mag": 8, "spd": 16},
    growth_rates={"hp": 8, "pp": 2, "atk": 3, "def": 1, "mag": 1, "spd": 2},
    abilities=[STRIKE],
)

SLIME = Enemy(
    id="slime", name="Slime", level=1, element="Mercury",
    stats={"hp": 40, "pp": 8, "atk": 8, "def": 4, "mag": 6, "spd": 5},
    abilities=[STRIKE], base_xp=12, base_gold=6,
    drops=[{"equipment_id": "bronze-sword", "chance": 1.0}],
)
WOLF = Enemy(
    id="wolf", name="Wolf", level=2, element="Venus",
    stats={"hp": 60, "pp": 8, "atk": 12, "def": 6, "mag": 3, "spd": 14},
    abilities=[STRIKE, HEAVY_STRIKE], base_xp=15, base_gold=8,
)


# =============================================================================
# EQUIPMENT AND DJINN
# =============================================================================

BRONZE_SWORD = Equipment(id="bronze-sword", name="Bronze Sword", slot="weapon", stat_bonus={"atk": 6})
HERMES_SANDALS = Equipment(
    id="hermes-sandals", name="Hermes' Sandals", slot="boots", stat_bonus={"spd": 2}, always_first_turn=True,
)
MAGIC_ROD = Equipment(
    id="magic-rod", name="Magic Rod", slot="weapon", stat_bonus={"mag": 8}, unlocks_ability="paralyze-shock",
)

FLINT = Djinn(
    id="flint", name="Flint", element="Venus", tier=1,
    summon_effect={"type": "damage", "damage": 80},
    granted_abilities={"adept": {"same": ["flint-stone-fist"]}},
)
FIZZ = Djinn(id="fizz", name="Fizz", element="Mercury", tier=1, summon_effect={"type": "heal", "heal_amount": 50})
GRANITE = Djinn(
    id="granite", name="Granite", element="Venus", tier=1,
    summon_effect={"type": "buff", "stat_bonus": {"def": 8}},
)
BREEZE = Djinn(id="breeze", name="Breeze", element="Jupiter", tier=1, summon_effect={"type": "special"})
FORGE = Djinn(id="forge", name="Forge", element="Mars", tier=1, summon_effect={"type": "damage"})


# =============================================================================
# ENCOUNTERS AND TOWER
# =============================================================================

SLIME_PIT = Encounter(
    id="slime-pit", name="Slime Pit", enemies=["slime", "slime"], difficulty="easy",
    reward={"xp": 60, "gold": 20, "equipment": {"type": "fixed", "item_id": "bronze-sword"}},
)
WOLF_DEN = Encounter(
    id="wolf-den", name="Wolf Den", enemies=["wolf", "slime"], difficulty="boss",
    reward={"xp": 120, "gold": 40, "djinn": "fizz", "unlock_unit": "ranger"},
)


def build_tower_floors(count: int = 10) -> list:
    """Floors 1..count: rest every 4th floor, boss every 5th, otherwise normal."""
    floors = []
    for number in range(1, count + 1):
        floor_id = f"floor-{number:03d}"
        if number % 4 == 0:
            floors.append(RestFloor(id=floor_id, floor_number=number))
        elif number % 5 == 0:
            floors.append(BossFloor(id=floor_id, floor_number=number, encounter_id="wolf-den"))
        else:
            floors.append(NormalFloor(id=floor_id, floor_number=number, encounter_id="slime-pit"))
    return floors


def build_repository(
    floors: Optional[list] = None,
    enemies: Iterable[Enemy] = (SLIME, WOLF),
    encounters: Iterable[Encounter] = (SLIME_PIT, WOLF_DEN),
    tower_rewards: Optional[list] = None,
) -> ContentRepository:
    """Content repository over the fixture tables."""
    if tower_rewards is None:
        tower_rewards = [TowerReward(floor_number=3, rewards=[{"type": "equipment", "ids": ["hermes-sandals"]}])]
    return ContentRepository(
        abilities=[STRIKE, HEAVY_STRIKE, FIREBALL, QUAKE, HEAL, STONE_FIST, PARALYZE_SHOCK],
        equipment=[BRONZE_SWORD, HERMES_SANDALS, MAGIC_ROD],
        djinn=[FLINT, FIZZ, GRANITE, BREEZE, FORGE],
        enemies=list(enemies),
        units=[ADEPT, MYSTIC, RANGER],
        encounters=list(encounters),
        tower_floors=floors if floors is not None else build_tower_floors(10),
        tower_rewards=tower_rewards,
    )


# =============================================================================
# BUILDERS
# =============================================================================


def make_team(*units: Unit) -> Team:
    """Team of the given units, or a level 1 adept and mystic."""
    if not units:
        units = (create_unit(ADEPT), create_unit(MYSTIC))
    return create_team(units)


def make_slimes(count: int = 2) -> list[Unit]:
    """Slime units with positional ids (slime_0, slime_1, ...)."""
    return [replace(enemy_to_unit(SLIME), id=f"slime_{i}") for i in range(count)]


def make_battle(
    team: Optional[Team] = None,
    enemies: Optional[list[Unit]] = None,
    config: Optional[BattleConfig] = None,
) -> BattleState:
    """Planning-phase battle, by default adept and mystic against two slimes."""
    return create_battle_state(
        team or make_team(),
        enemies if enemies is not None else make_slimes(),
        config=config,
        encounter_id="slime-pit",
    )


def equip_team_djinn(team: Team, repository: ContentRepository, *djinn_ids: str) -> Team:
    """Collect and equip each Djinn in order."""
    for djinn_id in djinn_ids:
        team = collect_djinn(team, djinn_id, repository).team
        result = equip_djinn(team, djinn_id, repository)
        assert result.success, result.error
        team = result.team
    return team


def set_hp(state: BattleState, unit_id: str, hp: int) -> BattleState:
    """Return a battle state with one unit's current HP replaced."""
    from vale_core.battle.actions import put_unit

    return put_unit(state, replace(state.get_unit(unit_id), current_hp=hp))
