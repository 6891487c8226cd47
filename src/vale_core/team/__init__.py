"""Team and Djinn model for Vale Core."""

from vale_core.team.team import (
    DjinnTracker,
    Team,
    advance_team_turn,
    create_team,
    replace_unit,
    sync_unit_djinn,
    update_team,
)
from vale_core.team.djinn import (
    DEFAULT_DJINN_RULES,
    DJINN_TRANSITIONS,
    DjinnResult,
    DjinnRules,
    collect_djinn,
    equip_djinn,
    get_djinn_granted_abilities,
    get_djinn_in_state,
    get_djinn_transitions,
    get_set_djinn,
    reset_all_djinn,
    transition_djinn,
    unequip_djinn,
)

__all__ = [
    "DjinnTracker",
    "Team",
    "advance_team_turn",
    "create_team",
    "replace_unit",
    "sync_unit_djinn",
    "update_team",
    "DEFAULT_DJINN_RULES",
    "DJINN_TRANSITIONS",
    "DjinnResult",
    "DjinnRules",
    "collect_djinn",
    "equip_djinn",
    "get_djinn_granted_abilities",
    "get_djinn_in_state",
    "get_djinn_transitions",
    "get_set_djinn",
    "reset_all_djinn",
    "transition_djinn",
    "unequip_djinn",
]
