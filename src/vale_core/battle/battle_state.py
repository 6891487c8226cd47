"""
Battle state for Vale Core.

BattleState is an immutable snapshot of one battle. Every operation in the
battle package takes a state and returns a new one; the previous snapshot is
never modified, so a round can be inspected, logged or replayed from any
point.

unit_by_id is derived from player_team and enemies whenever a state is
constructed and is never serialized.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional

from vale_core.battle.events import BattleEvent
from vale_core.battle.turn_order import calculate_turn_order
from vale_core.data_models import BattlePhase, BattleStatus
from vale_core.team.djinn import DEFAULT_DJINN_RULES, DjinnRules
from vale_core.team.team import Team
from vale_core.units.unit import Unit, is_unit_ko

logger = logging.getLogger(__name__)

MAX_QUEUED_MANA_COST = 10
MAX_QUEUED_DJINN = 3


@dataclass(frozen=True)
class BattleConfig:
    """
    Tunable battle rules.

    Attributes:
        mana_per_basic_attack: Mana a player basic attack generates
        djinn_rules: Djinn lifecycle rules
        status_tick_timing: When poison, burn and regen tick ("round_end")
    """

    mana_per_basic_attack: int = 1
    djinn_rules: DjinnRules = DEFAULT_DJINN_RULES
    status_tick_timing: str = "round_end"


DEFAULT_BATTLE_CONFIG = BattleConfig()


@dataclass(frozen=True)
class QueuedAction:
    """One planned action. ability_id None is a basic attack."""

    unit_id: str
    ability_id: Optional[str]
    target_ids: tuple[str, ...]
    mana_cost: int = 0

    def __post_init__(self):
        if not 0 <= self.mana_cost <= MAX_QUEUED_MANA_COST:
            raise ValueError(f"mana_cost must be 0-{MAX_QUEUED_MANA_COST}, got: {self.mana_cost}")

    @property
    def is_basic_attack(self) -> bool:
        return self.ability_id is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "ability_id": self.ability_id,
            "target_ids": list(self.target_ids),
            "mana_cost": self.mana_cost,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QueuedAction":
        return cls(
            unit_id=data["unit_id"],
            ability_id=data.get("ability_id"),
            target_ids=tuple(data.get("target_ids", [])),
            mana_cost=data.get("mana_cost", 0),
        )


@dataclass(frozen=True)
class UnitIndexEntry:
    unit: Unit
    is_player: bool


def build_unit_index(team: Team, enemies: Iterable[Unit]) -> dict[str, UnitIndexEntry]:
    index = {unit.id: UnitIndexEntry(unit=unit, is_player=True) for unit in team.units}
    index.update({unit.id: UnitIndexEntry(unit=unit, is_player=False) for unit in enemies})
    return index


@dataclass(frozen=True)
class BattleState:
    """
    Complete state of one battle.

    The queue holds one slot per player unit (None when not yet planned).
    log is append-only across the whole battle.
    """

    player_team: Team
    enemies: tuple[Unit, ...]
    current_turn: int = 0
    round_number: int = 1
    phase: BattlePhase = BattlePhase.PLANNING
    status: BattleStatus = BattleStatus.ONGOING
    turn_order: tuple[str, ...] = ()
    current_actor_index: int = 0
    log: tuple[BattleEvent, ...] = ()
    current_queue_index: int = 0
    queued_actions: tuple[Optional[QueuedAction], ...] = ()
    queued_djinn: tuple[str, ...] = ()
    remaining_mana: int = 0
    max_mana: int = 0
    execution_index: int = 0
    djinn_recovery_timers: dict[str, int] = field(default_factory=dict)
    is_boss_battle: bool = False
    encounter_id: Optional[str] = None
    config: BattleConfig = DEFAULT_BATTLE_CONFIG
    unit_by_id: dict[str, UnitIndexEntry] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "unit_by_id", build_unit_index(self.player_team, self.enemies))

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_unit(self, unit_id: str) -> Optional[Unit]:
        entry = self.unit_by_id.get(unit_id)
        return entry.unit if entry else None

    def is_player_unit(self, unit_id: str) -> bool:
        entry = self.unit_by_id.get(unit_id)
        return bool(entry and entry.is_player)

    def living_players(self) -> list[Unit]:
        return [u for u in self.player_team.units if not is_unit_ko(u)]

    def living_enemies(self) -> list[Unit]:
        return [u for u in self.enemies if not is_unit_ko(u)]

    def team_for(self, unit_id: str) -> Optional[Team]:
        """Team whose Djinn affect the unit's stats (None for enemies)."""
        return self.player_team if self.is_player_unit(unit_id) else None

    @property
    def is_over(self) -> bool:
        return self.status != BattleStatus.ONGOING


def rebuild_unit_index(state: BattleState) -> BattleState:
    """Return a state whose unit_by_id is re-derived from its teams."""
    return replace(state)


def update_battle_state(state: BattleState, **changes: Any) -> BattleState:
    """Return a copy of state with the given fields replaced; unit_by_id is rebuilt."""
    return replace(state, **changes)


def create_battle_state(
    team: Team,
    enemies: Iterable[Unit],
    config: Optional[BattleConfig] = None,
    encounter_id: Optional[str] = None,
    is_boss_battle: bool = False,
) -> BattleState:
    """
    Start a battle in the planning phase.

    Args:
        team: Player team
        enemies: Enemy units (at least one)
        config: Battle rules
        encounter_id: Encounter the battle was built from
        is_boss_battle: Whether this is a boss fight

    Returns:
        New BattleState with an empty queue and full mana

    Raises:
        ValueError: If there are no enemies or unit ids collide
    """
    enemies = tuple(enemies)
    if not enemies:
        raise ValueError("Battle requires at least one enemy")

    ids = [u.id for u in team.units] + [u.id for u in enemies]
    duplicates = sorted({unit_id for unit_id in ids if ids.count(unit_id) > 1})
    if duplicates:
        raise ValueError(f"Duplicate unit ids in battle: {duplicates}")

    max_mana = sum(u.mana_contribution for u in team.units)
    state = BattleState(
        player_team=team,
        enemies=enemies,
        turn_order=calculate_turn_order(team, enemies),
        queued_actions=(None,) * len(team.units),
        remaining_mana=max_mana,
        max_mana=max_mana,
        is_boss_battle=is_boss_battle,
        encounter_id=encounter_id,
        config=config or DEFAULT_BATTLE_CONFIG,
    )
    logger.info(
        f"Battle started: {len(team.units)} units vs {len(enemies)} enemies"
        f"{' (boss)' if is_boss_battle else ''}, max mana {max_mana}"
    )
    return state
