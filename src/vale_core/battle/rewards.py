"""
Post-battle rewards.

Rewards are fixed by the encounter: XP and gold come from its reward table
and XP is split evenly between the units that survived. Only enemy drops are
rolled, through the battle's seeded rng.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from vale_core.content.schemas import Encounter, EquipmentReward, Enemy
from vale_core.data_models import MAX_LEVEL, MAX_PARTY_SIZE, STAT_KEYS, Stats
from vale_core.rng import BattleRng
from vale_core.team.team import Team
from vale_core.units.unit import Unit, is_unit_ko
from vale_core.units.xp import add_xp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BattleRewards:
    """Rewards earned by winning one encounter."""

    total_xp: int
    total_gold: int
    xp_per_unit: int
    survivor_count: int
    all_survived: bool
    enemies_defeated: int
    equipment_reward: EquipmentReward

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_xp": self.total_xp,
            "total_gold": self.total_gold,
            "xp_per_unit": self.xp_per_unit,
            "survivor_count": self.survivor_count,
            "all_survived": self.all_survived,
            "enemies_defeated": self.enemies_defeated,
            "equipment_reward": self.equipment_reward.model_dump(),
        }


@dataclass(frozen=True)
class StatGains:
    hp: int = 0
    pp: int = 0
    atk: int = 0
    def_: int = 0
    mag: int = 0
    spd: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "hp": self.hp,
            "pp": self.pp,
            "atk": self.atk,
            "def": self.def_,
            "mag": self.mag,
            "spd": self.spd,
        }


@dataclass(frozen=True)
class LevelUpEvent:
    unit_id: str
    unit_name: str
    old_level: int
    new_level: int
    stat_gains: StatGains
    new_abilities: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RewardDistribution:
    """Result of handing battle rewards to a team."""

    rewards: BattleRewards
    updated_team: Team
    level_ups: list[LevelUpEvent] = field(default_factory=list)

    @property
    def gold_earned(self) -> int:
        return self.rewards.total_gold


def calculate_battle_rewards(encounter: Encounter, survivor_count: int) -> BattleRewards:
    """
    Rewards for an encounter won with survivor_count units standing.

    Args:
        encounter: The encounter that was won
        survivor_count: Party members not knocked out at the end

    Returns:
        BattleRewards; xp_per_unit is 0 when nobody survived
    """
    reward = encounter.reward
    xp_per_unit = reward.xp // survivor_count if survivor_count > 0 else 0
    return BattleRewards(
        total_xp=reward.xp,
        total_gold=reward.gold,
        xp_per_unit=xp_per_unit,
        survivor_count=survivor_count,
        all_survived=survivor_count == MAX_PARTY_SIZE,
        enemies_defeated=len(encounter.enemies),
        equipment_reward=reward.equipment,
    )


def calculate_stat_gains(unit: Unit, old_level: int, new_level: int) -> StatGains:
    """Stat gains across a level-up: growth rate times levels gained."""
    diff = new_level - old_level
    growth: Stats = unit.growth_rates
    gains = {key: growth.get(key) * diff for key in STAT_KEYS}
    return StatGains(
        hp=gains["hp"],
        pp=gains["pp"],
        atk=gains["atk"],
        def_=gains["def"],
        mag=gains["mag"],
        spd=gains["spd"],
    )


def distribute_rewards(team: Team, rewards: BattleRewards) -> RewardDistribution:
    """
    Give XP to every surviving unit below the level cap.

    Returns:
        RewardDistribution with the updated team and any level-ups
    """
    level_ups: list[LevelUpEvent] = []
    units: list[Unit] = []

    for unit in team.units:
        if is_unit_ko(unit) or unit.level >= MAX_LEVEL:
            units.append(unit)
            continue

        old_level = unit.level
        result = add_xp(unit, rewards.xp_per_unit)
        units.append(result.unit)

        if result.leveled_up:
            level_ups.append(
                LevelUpEvent(
                    unit_id=unit.id,
                    unit_name=unit.name,
                    old_level=old_level,
                    new_level=result.new_level,
                    stat_gains=calculate_stat_gains(result.unit, old_level, result.new_level),
                    new_abilities=list(result.unlocked_abilities),
                )
            )
            logger.info(f"{unit.name} reached level {result.new_level}")

    return RewardDistribution(
        rewards=rewards,
        updated_team=replace(team, units=tuple(units)),
        level_ups=level_ups,
    )


def roll_drops(enemy: Enemy, rng: BattleRng) -> list[str]:
    """Roll each of an enemy's drops by its chance; returns equipment ids."""
    dropped = []
    for drop in enemy.drops:
        if rng.chance(drop.chance, reason=f"drop {enemy.id}:{drop.equipment_id}"):
            dropped.append(drop.equipment_id)
    return dropped
