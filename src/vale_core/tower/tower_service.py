"""
Battle Tower run state machine.

A TowerRunState is an immutable run record with a cursor (floor_index) over
an ordered floor list. Reducers take a run and return a new one:

    create_tower_run -> record_battle_result / complete_rest_floor -> ...

A run ends when every floor is cleared, the party is defeated (failed) or the
player retreats (completed, not failed). Once completed, every reducer
returns the run unchanged, and floor_index never moves backwards.

Rewards earned on floors accumulate in pending_rewards until the caller
claims them with clear_pending_rewards.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional, Sequence, Union

from vale_core.battle.battle_state import BattleConfig, BattleState, create_battle_state
from vale_core.battle.events import AbilityUsed
from vale_core.content.repository import ContentRepository
from vale_core.content.schemas import RestFloor, TowerFloor, TowerReward, TowerRewardEntry
from vale_core.data_models import FloorOutcome, FloorType, Stats, TowerDifficulty
from vale_core.observability import get_run_log
from vale_core.team.djinn import reset_all_djinn
from vale_core.team.team import Team
from vale_core.tower.config import DEFAULT_TOWER_CONFIG, TowerConfig
from vale_core.units.conversion import enemy_to_unit
from vale_core.units.stats import get_effective_max_hp
from vale_core.units.unit import Unit

logger = logging.getLogger(__name__)

HARD_DIFFICULTY_STAT_BONUS = 0.25
HARD_DIFFICULTY_LEVEL_RATE = 1.5
MAX_SCALED_ENEMY_LEVEL = 99


class TowerRunError(ValueError):
    """Raised when a tower reducer is called against the wrong kind of floor."""

    pass


# =============================================================================
# RUN RECORDS
# =============================================================================


@dataclass(frozen=True)
class TowerBattleSummary:
    turns_taken: int = 0
    damage_dealt: int = 0
    damage_taken: int = 0
    mana_spent: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "turns_taken": self.turns_taken,
            "damage_dealt": self.damage_dealt,
            "damage_taken": self.damage_taken,
            "mana_spent": self.mana_spent,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TowerBattleSummary":
        return cls(**{k: data.get(k, 0) for k in ("turns_taken", "damage_dealt", "damage_taken", "mana_spent")})


@dataclass(frozen=True)
class TowerRestSummary:
    healed_fraction: float
    loadout_adjusted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"healed_fraction": self.healed_fraction, "loadout_adjusted": self.loadout_adjusted}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TowerRestSummary":
        return cls(healed_fraction=data["healed_fraction"], loadout_adjusted=data.get("loadout_adjusted", False))


@dataclass(frozen=True)
class TowerHistoryEntry:
    """What happened on one floor of the run."""

    floor_id: str
    floor_number: int
    type: FloorType
    outcome: FloorOutcome = FloorOutcome.PENDING
    rewards_granted: tuple[TowerRewardEntry, ...] = ()
    rest_summary: Optional[TowerRestSummary] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "floor_id": self.floor_id,
            "floor_number": self.floor_number,
            "type": self.type.value,
            "outcome": self.outcome.value,
            "rewards_granted": [r.model_dump() for r in self.rewards_granted],
            "rest_summary": self.rest_summary.to_dict() if self.rest_summary else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TowerHistoryEntry":
        rest = data.get("rest_summary")
        return cls(
            floor_id=data["floor_id"],
            floor_number=data["floor_number"],
            type=FloorType(data["type"]),
            outcome=FloorOutcome(data.get("outcome", "pending")),
            rewards_granted=tuple(TowerRewardEntry.model_validate(r) for r in data.get("rewards_granted", [])),
            rest_summary=TowerRestSummary.from_dict(rest) if rest else None,
        )


@dataclass(frozen=True)
class TowerRunStats:
    highest_floor: int = 0
    total_battles: int = 0
    victories: int = 0
    defeats: int = 0
    retreats: int = 0
    turns_taken: int = 0
    total_damage_dealt: int = 0
    total_damage_taken: int = 0

    def to_dict(self) -> dict[str, int]:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TowerRunStats":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class TowerRunState:
    """
    One Battle Tower run.

    Invariants:
        - 0 <= floor_index <= len(floor_ids)
        - is_failed implies is_completed
        - history has one entry per floor id, in floor order
    """

    seed: int
    difficulty: TowerDifficulty
    floor_ids: tuple[str, ...]
    floor_index: int = 0
    is_completed: bool = False
    is_failed: bool = False
    stats: TowerRunStats = field(default_factory=TowerRunStats)
    history: tuple[TowerHistoryEntry, ...] = ()
    pending_rewards: tuple[TowerRewardEntry, ...] = ()
    config: TowerConfig = DEFAULT_TOWER_CONFIG


@dataclass(frozen=True)
class EnemyScaling:
    stat_multiplier: float
    level_delta: int


# =============================================================================
# FLOOR LOOKUP
# =============================================================================


def get_floor_by_id(floors: Iterable[TowerFloor], floor_id: str) -> TowerFloor:
    """
    Raises:
        TowerRunError: If no floor has the id
    """
    for floor in floors:
        if floor.id == floor_id:
            return floor
    raise TowerRunError(f"Tower floor {floor_id} not found")


def get_current_floor(run: TowerRunState, floors: Iterable[TowerFloor]) -> Optional[TowerFloor]:
    """The floor under the cursor, or None once past the last floor."""
    if run.floor_index >= len(run.floor_ids):
        return None
    return get_floor_by_id(floors, run.floor_ids[run.floor_index])


def is_rest_floor(floor: Optional[TowerFloor]) -> bool:
    return isinstance(floor, RestFloor)


# =============================================================================
# REDUCERS
# =============================================================================


def create_tower_run(
    seed: int,
    difficulty: Union[TowerDifficulty, str],
    floors: Sequence[TowerFloor],
    config: TowerConfig = DEFAULT_TOWER_CONFIG,
) -> TowerRunState:
    """
    Start a run over the given floors.

    Floors are ordered by floor_number; every history entry starts pending
    and all stats start at zero.

    Raises:
        TowerRunError: If floors is empty
    """
    if not floors:
        raise TowerRunError("Tower run requires at least one floor")

    ordered = sorted(floors, key=lambda f: f.floor_number)
    run = TowerRunState(
        seed=seed,
        difficulty=TowerDifficulty(difficulty),
        floor_ids=tuple(f.id for f in ordered),
        history=tuple(
            TowerHistoryEntry(floor_id=f.id, floor_number=f.floor_number, type=FloorType(f.type)) for f in ordered
        ),
        config=config,
    )
    logger.info(f"Tower run created: seed={seed}, difficulty={run.difficulty.value}, {len(ordered)} floors")
    get_run_log().log_tower("created", None, floor_index=0)
    return run


def advance_to_next_floor(run: TowerRunState) -> TowerRunState:
    """Move the cursor forward one floor; completes the run past the last floor."""
    if run.is_completed:
        return run
    next_index = min(run.floor_index + 1, len(run.floor_ids))
    advanced = replace(run, floor_index=next_index, is_completed=next_index >= len(run.floor_ids))
    get_run_log().log_tower("advanced", None, floor_index=next_index)
    return advanced


def _update_history(run: TowerRunState, floor_id: str, **changes: Any) -> tuple[TowerHistoryEntry, ...]:
    return tuple(replace(entry, **changes) if entry.floor_id == floor_id else entry for entry in run.history)


def _stats_after_battle(
    stats: TowerRunStats,
    floor_number: int,
    outcome: FloorOutcome,
    summary: TowerBattleSummary,
) -> TowerRunStats:
    won = outcome == FloorOutcome.VICTORY
    return TowerRunStats(
        highest_floor=max(stats.highest_floor, floor_number) if won else stats.highest_floor,
        total_battles=stats.total_battles + 1,
        victories=stats.victories + (1 if won else 0),
        defeats=stats.defeats + (1 if outcome == FloorOutcome.DEFEAT else 0),
        retreats=stats.retreats + (1 if outcome == FloorOutcome.RETREAT else 0),
        turns_taken=stats.turns_taken + summary.turns_taken,
        total_damage_dealt=stats.total_damage_dealt + summary.damage_dealt,
        total_damage_taken=stats.total_damage_taken + summary.damage_taken,
    )


def record_battle_result(
    run: TowerRunState,
    floors: Sequence[TowerFloor],
    outcome: Union[FloorOutcome, str],
    summary: TowerBattleSummary,
    rewards: Iterable[TowerRewardEntry] = (),
) -> TowerRunState:
    """
    Record the result of the current floor's battle.

    Victory advances the cursor (completing the run after the last floor).
    Defeat fails and completes the run. Retreat completes it without failing.

    Args:
        run: Current run
        floors: Floor definitions for the run
        outcome: "victory", "defeat" or "retreat"
        summary: Battle statistics to accumulate
        rewards: Reward entries granted for this floor

    Returns:
        Updated run

    Raises:
        TowerRunError: If the current floor is a rest floor or the outcome is not a battle outcome
    """
    if run.is_completed:
        return run
    floor = get_current_floor(run, floors)
    if floor is None:
        return run
    if is_rest_floor(floor):
        raise TowerRunError(f"Cannot record battle result for rest floor {floor.id}")

    outcome = FloorOutcome(outcome)
    if outcome not in (FloorOutcome.VICTORY, FloorOutcome.DEFEAT, FloorOutcome.RETREAT):
        raise TowerRunError(f"Not a battle outcome: {outcome.value}")

    rewards = tuple(rewards)
    won = outcome == FloorOutcome.VICTORY
    next_index = min(run.floor_index + 1, len(run.floor_ids)) if won else run.floor_index
    failed = outcome == FloorOutcome.DEFEAT
    completed = next_index >= len(run.floor_ids) or failed or outcome == FloorOutcome.RETREAT

    updated = replace(
        run,
        stats=_stats_after_battle(run.stats, floor.floor_number, outcome, summary),
        history=_update_history(run, floor.id, outcome=outcome, rewards_granted=rewards),
        floor_index=next_index,
        is_completed=completed,
        is_failed=failed,
        pending_rewards=run.pending_rewards + rewards,
    )
    logger.info(f"Floor {floor.floor_number} ({floor.id}): {outcome.value}")
    get_run_log().log_tower("battle_recorded", floor.floor_number, outcome.value, next_index)
    return updated


def complete_rest_floor(
    run: TowerRunState,
    floors: Sequence[TowerFloor],
    rest_summary: TowerRestSummary,
) -> TowerRunState:
    """
    Close the current rest floor and move on.

    Raises:
        TowerRunError: If the current floor is not a rest floor
    """
    if run.is_completed:
        return run
    floor = get_current_floor(run, floors)
    if floor is None:
        return run
    if not is_rest_floor(floor):
        raise TowerRunError(f"complete_rest_floor called for non-rest floor {floor.id}")

    next_index = min(run.floor_index + 1, len(run.floor_ids))
    updated = replace(
        run,
        history=_update_history(
            run, floor.id, outcome=FloorOutcome.RESTED, rewards_granted=(), rest_summary=rest_summary
        ),
        floor_index=next_index,
        is_completed=next_index >= len(run.floor_ids),
        stats=replace(run.stats, highest_floor=max(run.stats.highest_floor, floor.floor_number)),
    )
    get_run_log().log_tower("rest_completed", floor.floor_number, FloorOutcome.RESTED.value, next_index)
    return updated


def clear_pending_rewards(run: TowerRunState) -> TowerRunState:
    if not run.pending_rewards:
        return run
    return replace(run, pending_rewards=())


def quit_tower_run(run: TowerRunState) -> TowerRunState:
    """End the run early at a floor boundary. Progress so far is kept."""
    if run.is_completed:
        return run
    get_run_log().log_tower("quit", None, floor_index=run.floor_index)
    return replace(run, is_completed=True)


# =============================================================================
# SCALING AND REWARDS
# =============================================================================


def calculate_enemy_scaling(
    floor_number: int,
    difficulty: Union[TowerDifficulty, str],
    config: TowerConfig = DEFAULT_TOWER_CONFIG,
) -> EnemyScaling:
    """
    Enemy scaling for a floor.

    stat_multiplier = 1 + (floor - 1) * enemy_scaling_per_floor (+ 0.25 on hard)
    level_delta = floor((floor - 1) * (1.5 on hard, else 1)), never negative

    Example:
        calculate_enemy_scaling(6, "hard") -> EnemyScaling(1.45, 7)
    """
    hard = TowerDifficulty(difficulty) == TowerDifficulty.HARD
    multiplier = 1 + (floor_number - 1) * config.enemy_scaling_per_floor
    if hard:
        multiplier += HARD_DIFFICULTY_STAT_BONUS
    level_rate = HARD_DIFFICULTY_LEVEL_RATE if hard else 1
    level_delta = max(0, math.floor((floor_number - 1) * level_rate))
    return EnemyScaling(stat_multiplier=multiplier, level_delta=level_delta)


def scale_enemy_for_floor(enemy: Unit, scaling: EnemyScaling) -> Unit:
    """Scale an enemy unit's stats and level; it starts at its new full HP."""
    stats = Stats.from_values({key: value * scaling.stat_multiplier for key, value in enemy.base_stats.to_dict().items()})
    scaled = replace(
        enemy,
        base_stats=stats,
        level=min(MAX_SCALED_ENEMY_LEVEL, enemy.level + scaling.level_delta),
    )
    return replace(scaled, current_hp=get_effective_max_hp(scaled))


def get_rewards_for_floor(rewards: Iterable[TowerReward], floor_number: int) -> list[TowerRewardEntry]:
    for entry in rewards:
        if entry.floor_number == floor_number:
            return list(entry.rewards)
    return []


def summarize_battle(state: BattleState) -> TowerBattleSummary:
    """Battle statistics for the run record, taken from a finished battle."""
    units = state.player_team.units
    player_ids = {u.id for u in units}
    mana_spent = sum(
        event.mana_cost for event in state.log if isinstance(event, AbilityUsed) and event.actor_id in player_ids
    )
    return TowerBattleSummary(
        turns_taken=state.round_number,
        damage_dealt=sum(u.battle_stats.damage_dealt for u in units),
        damage_taken=sum(u.battle_stats.damage_taken for u in units),
        mana_spent=mana_spent,
    )


def heal_team_at_rest(team: Team, fraction: float) -> Team:
    """
    Rest-floor recovery.

    Every unit heals floor(max HP * fraction), capped at max HP, and every
    equipped Djinn returns to Set.
    """
    units = []
    for unit in team.units:
        max_hp = get_effective_max_hp(unit, team)
        healed = min(max_hp, unit.current_hp + math.floor(max_hp * fraction))
        units.append(replace(unit, current_hp=healed))
    return reset_all_djinn(replace(team, units=tuple(units)))


# =============================================================================
# RECORDS
# =============================================================================


@dataclass(frozen=True)
class TowerRecord:
    """Best results across all runs."""

    highest_floor_ever: int = 0
    total_runs: int = 0
    best_run_turns: Optional[int] = None
    best_run_damage_dealt: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TowerRecord":
        return cls(
            highest_floor_ever=data.get("highest_floor_ever", 0),
            total_runs=data.get("total_runs", 0),
            best_run_turns=data.get("best_run_turns"),
            best_run_damage_dealt=data.get("best_run_damage_dealt"),
        )


def update_tower_record(record: TowerRecord, run: TowerRunState) -> TowerRecord:
    """Fold a finished run into the all-time record."""
    turns = run.stats.turns_taken
    damage = run.stats.total_damage_dealt

    best_turns = record.best_run_turns
    if turns > 0:
        best_turns = turns if best_turns is None else min(best_turns, turns)

    best_damage = damage if record.best_run_damage_dealt is None else max(record.best_run_damage_dealt, damage)

    return TowerRecord(
        highest_floor_ever=max(record.highest_floor_ever, run.stats.highest_floor),
        total_runs=record.total_runs + 1,
        best_run_turns=best_turns,
        best_run_damage_dealt=best_damage,
    )


# =============================================================================
# ENCOUNTERS
# =============================================================================


def create_battle_from_encounter(
    encounter_id: str,
    team: Team,
    repository: ContentRepository,
    scaling: Optional[EnemyScaling] = None,
    config: Optional[BattleConfig] = None,
) -> BattleState:
    """
    Build a battle against an encounter's enemies.

    Each enemy gets a positional id suffix (wolf_0, wolf_1) so repeated
    enemies stay distinct.

    Raises:
        ContentNotFoundError: If the encounter or one of its enemies is unknown
    """
    encounter = repository.get_encounter(encounter_id)
    enemies = []
    for index, enemy_id in enumerate(encounter.enemies):
        unit = enemy_to_unit(repository.get_enemy(enemy_id))
        if scaling is not None:
            unit = scale_enemy_for_floor(unit, scaling)
        enemies.append(replace(unit, id=f"{unit.id}_{index}"))

    return create_battle_state(
        team,
        enemies,
        config=config,
        encounter_id=encounter.id,
        is_boss_battle=encounter.difficulty == "boss",
    )
