"""Battle Tower: run state, level normalization and the floor-by-floor session."""

from vale_core.tower.config import DEFAULT_TOWER_CONFIG, TowerConfig
from vale_core.tower.normalization import (
    calculate_floor_target_level,
    calculate_level_scaled_stats,
    calculate_max_hp_at_level,
    calculate_stats_with_growth_rates,
    is_normalized_unit,
    normalize_party_for_floor,
    normalize_unit_for_floor,
)
from vale_core.tower.tower_service import (
    EnemyScaling,
    TowerBattleSummary,
    TowerHistoryEntry,
    TowerRecord,
    TowerRestSummary,
    TowerRunError,
    TowerRunState,
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
    scale_enemy_for_floor,
    summarize_battle,
    update_tower_record,
)
from vale_core.tower.session import BasicPlayerPolicy, FloorResult, PlayerPolicy, TowerSession

__all__ = [
    "DEFAULT_TOWER_CONFIG",
    "TowerConfig",
    "calculate_floor_target_level",
    "calculate_level_scaled_stats",
    "calculate_max_hp_at_level",
    "calculate_stats_with_growth_rates",
    "is_normalized_unit",
    "normalize_party_for_floor",
    "normalize_unit_for_floor",
    "EnemyScaling",
    "TowerBattleSummary",
    "TowerHistoryEntry",
    "TowerRecord",
    "TowerRestSummary",
    "TowerRunError",
    "TowerRunState",
    "TowerRunStats",
    "advance_to_next_floor",
    "calculate_enemy_scaling",
    "clear_pending_rewards",
    "complete_rest_floor",
    "create_battle_from_encounter",
    "create_tower_run",
    "get_current_floor",
    "get_floor_by_id",
    "get_rewards_for_floor",
    "heal_team_at_rest",
    "is_rest_floor",
    "quit_tower_run",
    "record_battle_result",
    "scale_enemy_for_floor",
    "summarize_battle",
    "update_tower_record",
    "BasicPlayerPolicy",
    "FloorResult",
    "PlayerPolicy",
    "TowerSession",
]
