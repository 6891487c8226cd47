"""Save files: checksummed, versioned JSON envelopes for team and tower progress."""

from vale_core.persistence.save import (
    SAVE_VERSION,
    SaveFile,
    battle_state_from_dict,
    battle_state_to_dict,
    calculate_checksum,
    create_save,
    load_save,
    read_save,
    restore_battle,
    restore_team,
    restore_tower_record,
    restore_tower_run,
    tower_run_from_dict,
    tower_run_to_dict,
    write_save,
)

__all__ = [
    "SAVE_VERSION",
    "SaveFile",
    "battle_state_from_dict",
    "battle_state_to_dict",
    "calculate_checksum",
    "create_save",
    "load_save",
    "read_save",
    "restore_battle",
    "restore_team",
    "restore_tower_record",
    "restore_tower_run",
    "tower_run_from_dict",
    "tower_run_to_dict",
    "write_save",
]
