"""Queue-based battle engine for Vale Core."""

from vale_core.battle.battle_state import (
    DEFAULT_BATTLE_CONFIG,
    BattleConfig,
    BattleState,
    QueuedAction,
    create_battle_state,
    rebuild_unit_index,
    update_battle_state,
)
from vale_core.battle.state_machine import (
    BATTLE_TRANSITIONS,
    InvalidTransitionError,
    PhaseTransition,
    can_transition,
    get_valid_triggers,
    is_terminal_phase,
    transition_phase,
)
from vale_core.battle.events import BattleEvent, event_from_dict, event_to_dict
from vale_core.battle.turn_order import calculate_turn_order
from vale_core.battle.actions import execute_ability, resolve_targets
from vale_core.battle.ai import EnemyPolicy, ScriptedEnemyPolicy
from vale_core.battle.queue_battle import (
    BattleActionResult,
    RoundResult,
    check_battle_end,
    clear_queued_action,
    execute_round,
    get_planning_turn_order,
    queue_action,
    queue_djinn,
    refresh_mana,
    release_djinn,
    unqueue_djinn,
    validate_queue_for_execution,
)
from vale_core.battle.invariants import BattleStateInvariantError, assert_battle_state_invariants
from vale_core.battle.rewards import (
    BattleRewards,
    LevelUpEvent,
    RewardDistribution,
    StatGains,
    calculate_battle_rewards,
    calculate_stat_gains,
    distribute_rewards,
    roll_drops,
)

__all__ = [
    "DEFAULT_BATTLE_CONFIG",
    "BattleConfig",
    "BattleState",
    "QueuedAction",
    "create_battle_state",
    "rebuild_unit_index",
    "update_battle_state",
    "BATTLE_TRANSITIONS",
    "InvalidTransitionError",
    "PhaseTransition",
    "can_transition",
    "get_valid_triggers",
    "is_terminal_phase",
    "transition_phase",
    "BattleEvent",
    "event_from_dict",
    "event_to_dict",
    "calculate_turn_order",
    "execute_ability",
    "resolve_targets",
    "EnemyPolicy",
    "ScriptedEnemyPolicy",
    "BattleActionResult",
    "RoundResult",
    "check_battle_end",
    "clear_queued_action",
    "execute_round",
    "get_planning_turn_order",
    "queue_action",
    "queue_djinn",
    "refresh_mana",
    "release_djinn",
    "unqueue_djinn",
    "validate_queue_for_execution",
    "BattleStateInvariantError",
    "assert_battle_state_invariants",
    "BattleRewards",
    "LevelUpEvent",
    "RewardDistribution",
    "StatGains",
    "calculate_battle_rewards",
    "calculate_stat_gains",
    "distribute_rewards",
    "roll_drops",
]
