"""
Pydantic schemas for save payloads.

These mirror the dictionaries produced by the to_dict helpers of Unit, Team,
TowerRunState, TowerRecord and BattleState. load_save validates a migrated
payload against SavePayload before any live object is rebuilt from it.
Unknown keys are ignored so that newer fields survive older readers.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from vale_core.content.schemas import Ability
from vale_core.data_models import (
    MAX_COLLECTED_DJINN,
    MAX_EQUIPPED_DJINN,
    MAX_PARTY_SIZE,
    MIN_PARTY_SIZE,
    BattlePhase,
    BattleStatus,
    DjinnState,
    Element,
    Stats,
    TowerDifficulty,
)


class PayloadModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class UnitPayload(PayloadModel):
    id: str
    name: str
    element: Element
    role: str
    base_stats: Stats
    growth_rates: Stats
    level: int = Field(default=1, ge=1)
    xp: int = Field(default=0, ge=0)
    current_hp: int = Field(default=0, ge=0)
    description: str = ""
    mana_contribution: int = Field(default=1, ge=0)
    equipment: dict[str, Optional[dict[str, Any]]] = Field(default_factory=dict)
    djinn: list[str] = Field(default_factory=list)
    djinn_states: dict[str, DjinnState] = Field(default_factory=dict)
    abilities: list[Ability] = Field(default_factory=list)
    unlocked_ability_ids: list[str] = Field(default_factory=list)
    status_effects: list[dict[str, Any]] = Field(default_factory=list)
    actions_taken: int = Field(default=0, ge=0)
    battle_stats: dict[str, int] = Field(default_factory=dict)
    original_level: Optional[int] = None
    normalized_level: Optional[int] = None


class DjinnTrackerPayload(PayloadModel):
    djinn_id: str
    element: Element
    state: DjinnState = DjinnState.SET
    last_activated_turn: int = -1


class TeamPayload(PayloadModel):
    units: list[UnitPayload] = Field(min_length=MIN_PARTY_SIZE, max_length=MAX_PARTY_SIZE)
    equipped_djinn: list[str] = Field(default_factory=list, max_length=MAX_EQUIPPED_DJINN)
    djinn_trackers: dict[str, DjinnTrackerPayload] = Field(default_factory=dict)
    collected_djinn: list[str] = Field(default_factory=list, max_length=MAX_COLLECTED_DJINN)
    current_turn: int = Field(default=0, ge=0)
    activations_this_turn: dict[str, int] = Field(default_factory=dict)


class TowerRunPayload(PayloadModel):
    seed: int
    difficulty: TowerDifficulty
    floor_ids: list[str] = Field(min_length=1)
    floor_index: int = Field(default=0, ge=0)
    is_completed: bool = False
    is_failed: bool = False
    stats: dict[str, int] = Field(default_factory=dict)
    history: list[dict[str, Any]] = Field(default_factory=list)
    pending_rewards: list[dict[str, Any]] = Field(default_factory=list)
    config: dict[str, Any] = Field(default_factory=dict)


class TowerRecordPayload(PayloadModel):
    highest_floor_ever: int = Field(default=0, ge=0)
    total_runs: int = Field(default=0, ge=0)
    best_run_turns: Optional[int] = None
    best_run_damage_dealt: Optional[int] = None


class QueuedActionPayload(PayloadModel):
    unit_id: str
    ability_id: Optional[str] = None
    target_ids: list[str] = Field(default_factory=list)
    mana_cost: int = Field(default=0, ge=0)


class BattlePayload(PayloadModel):
    player_team: TeamPayload
    enemies: list[UnitPayload] = Field(min_length=1)
    current_turn: int = Field(default=0, ge=0)
    round_number: int = Field(default=1, ge=1)
    phase: BattlePhase = BattlePhase.PLANNING
    status: BattleStatus = BattleStatus.ONGOING
    turn_order: list[str] = Field(default_factory=list)
    current_actor_index: int = Field(default=0, ge=0)
    log: list[dict[str, Any]] = Field(default_factory=list)
    current_queue_index: int = Field(default=0, ge=0)
    queued_actions: list[Optional[QueuedActionPayload]] = Field(default_factory=list)
    queued_djinn: list[str] = Field(default_factory=list)
    remaining_mana: int = Field(default=0, ge=0)
    max_mana: int = Field(default=0, ge=0)
    execution_index: int = Field(default=0, ge=0)
    djinn_recovery_timers: dict[str, int] = Field(default_factory=dict)
    is_boss_battle: bool = False
    encounter_id: Optional[str] = None
    config: dict[str, Any] = Field(default_factory=dict)


class SavePayload(PayloadModel):
    """Everything a save carries; only the team is required."""

    team: TeamPayload
    tower_run: Optional[TowerRunPayload] = None
    tower_record: Optional[TowerRecordPayload] = None
    battle: Optional[BattlePayload] = None
