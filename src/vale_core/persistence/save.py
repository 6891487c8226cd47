"""
Save files.

A save is a JSON envelope around a payload (team, tower run, tower record
and an optional in-progress battle). The envelope carries a format version
and an FNV-1a checksum of the payload; load_save validates the envelope
shape, migrates old versions forward, rejects tampered payloads and checks
that every payload section can be rebuilt into live objects. Like
content loading, failures come back as a ValidationResult rather than as
exceptions.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from vale_core.battle.battle_state import BattleConfig, BattleState, QueuedAction
from vale_core.battle.events import event_from_dict, event_to_dict
from vale_core.content.schemas import TowerRewardEntry
from vale_core.content.validation import ValidationIssue, ValidationResult, validate_model
from vale_core.data_models import BattlePhase, BattleStatus, DjinnState, TowerDifficulty
from vale_core.persistence.schemas import SavePayload
from vale_core.rng import FNV_OFFSET_BASIS, FNV_PRIME
from vale_core.team.djinn import DjinnRules
from vale_core.team.team import Team
from vale_core.tower.config import TowerConfig
from vale_core.tower.tower_service import TowerHistoryEntry, TowerRecord, TowerRunState, TowerRunStats
from vale_core.units.unit import Unit

logger = logging.getLogger(__name__)

SAVE_VERSION = 1


def calculate_checksum(data: Any) -> str:
    """
    FNV-1a 32-bit hash of the canonical JSON form of data.

    Returns:
        8-digit lowercase hex string
    """
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
    h = FNV_OFFSET_BASIS
    for byte in canonical.encode("utf-8"):
        h ^= byte
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return f"{h:08x}"


# =============================================================================
# BATTLE STATE
# =============================================================================


def _battle_config_to_dict(config: BattleConfig) -> dict[str, Any]:
    rules = config.djinn_rules
    return {
        "mana_per_basic_attack": config.mana_per_basic_attack,
        "status_tick_timing": config.status_tick_timing,
        "djinn_rules": {
            "state_on_equip": rules.state_on_equip.value,
            "summonable_states": [s.value for s in rules.summonable_states],
            "recovery_target": rules.recovery_target.value,
            "recovery_rounds": rules.recovery_rounds,
        },
    }


def _battle_config_from_dict(data: dict[str, Any]) -> BattleConfig:
    rules = data.get("djinn_rules", {})
    defaults = DjinnRules()
    return BattleConfig(
        mana_per_basic_attack=data.get("mana_per_basic_attack", 1),
        status_tick_timing=data.get("status_tick_timing", "round_end"),
        djinn_rules=DjinnRules(
            state_on_equip=DjinnState(rules.get("state_on_equip", defaults.state_on_equip.value)),
            summonable_states=tuple(
                DjinnState(s) for s in rules.get("summonable_states", [s.value for s in defaults.summonable_states])
            ),
            recovery_target=DjinnState(rules.get("recovery_target", defaults.recovery_target.value)),
            recovery_rounds=rules.get("recovery_rounds"),
        ),
    )


def battle_state_to_dict(state: BattleState) -> dict[str, Any]:
    """Serialize a battle. The unit index is derived and left out."""
    return {
        "player_team": state.player_team.to_dict(),
        "enemies": [u.to_dict() for u in state.enemies],
        "current_turn": state.current_turn,
        "round_number": state.round_number,
        "phase": state.phase.value,
        "status": state.status.value,
        "turn_order": list(state.turn_order),
        "current_actor_index": state.current_actor_index,
        "log": [event_to_dict(e) for e in state.log],
        "current_queue_index": state.current_queue_index,
        "queued_actions": [a.to_dict() if a is not None else None for a in state.queued_actions],
        "queued_djinn": list(state.queued_djinn),
        "remaining_mana": state.remaining_mana,
        "max_mana": state.max_mana,
        "execution_index": state.execution_index,
        "djinn_recovery_timers": dict(state.djinn_recovery_timers),
        "is_boss_battle": state.is_boss_battle,
        "encounter_id": state.encounter_id,
        "config": _battle_config_to_dict(state.config),
    }


def battle_state_from_dict(data: dict[str, Any]) -> BattleState:
    """Rebuild a battle; unit_by_id is re-derived from the team and enemies."""
    return BattleState(
        player_team=Team.from_dict(data["player_team"]),
        enemies=tuple(Unit.from_dict(u) for u in data["enemies"]),
        current_turn=data.get("current_turn", 0),
        round_number=data.get("round_number", 1),
        phase=BattlePhase(data.get("phase", BattlePhase.PLANNING.value)),
        status=BattleStatus(data.get("status", BattleStatus.ONGOING.value)),
        turn_order=tuple(data.get("turn_order", [])),
        current_actor_index=data.get("current_actor_index", 0),
        log=tuple(event_from_dict(e) for e in data.get("log", [])),
        current_queue_index=data.get("current_queue_index", 0),
        queued_actions=tuple(
            QueuedAction.from_dict(a) if a is not None else None for a in data.get("queued_actions", [])
        ),
        queued_djinn=tuple(data.get("queued_djinn", [])),
        remaining_mana=data.get("remaining_mana", 0),
        max_mana=data.get("max_mana", 0),
        execution_index=data.get("execution_index", 0),
        djinn_recovery_timers=dict(data.get("djinn_recovery_timers", {})),
        is_boss_battle=data.get("is_boss_battle", False),
        encounter_id=data.get("encounter_id"),
        config=_battle_config_from_dict(data.get("config", {})),
    )


# =============================================================================
# TOWER RUN
# =============================================================================


def tower_run_to_dict(run: TowerRunState) -> dict[str, Any]:
    return {
        "seed": run.seed,
        "difficulty": run.difficulty.value,
        "floor_ids": list(run.floor_ids),
        "floor_index": run.floor_index,
        "is_completed": run.is_completed,
        "is_failed": run.is_failed,
        "stats": run.stats.to_dict(),
        "history": [h.to_dict() for h in run.history],
        "pending_rewards": [r.model_dump() for r in run.pending_rewards],
        "config": run.config.to_dict(),
    }


def tower_run_from_dict(data: dict[str, Any]) -> TowerRunState:
    return TowerRunState(
        seed=data["seed"],
        difficulty=TowerDifficulty(data["difficulty"]),
        floor_ids=tuple(data["floor_ids"]),
        floor_index=data.get("floor_index", 0),
        is_completed=data.get("is_completed", False),
        is_failed=data.get("is_failed", False),
        stats=TowerRunStats.from_dict(data.get("stats", {})),
        history=tuple(TowerHistoryEntry.from_dict(h) for h in data.get("history", [])),
        pending_rewards=tuple(TowerRewardEntry.model_validate(r) for r in data.get("pending_rewards", [])),
        config=TowerConfig.from_dict(data.get("config", {})),
    )


# =============================================================================
# SAVE ENVELOPE
# =============================================================================


class SaveFile(BaseModel):
    """Versioned, checksummed save envelope."""

    version: int = Field(ge=0)
    timestamp: str
    checksum: str = Field(pattern=r"^[0-9a-f]{8}$")
    payload: dict[str, Any]


def _migrate_v0(payload: dict[str, Any]) -> dict[str, Any]:
    # Version 0 saves stored the record under "record" and had no battle slot
    migrated = dict(payload)
    if "record" in migrated and "tower_record" not in migrated:
        migrated["tower_record"] = migrated.pop("record")
    migrated.setdefault("battle", None)
    return migrated


MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    0: _migrate_v0,
}


def create_save(
    team: Team,
    tower_run: Optional[TowerRunState] = None,
    tower_record: Optional[TowerRecord] = None,
    battle: Optional[BattleState] = None,
    timestamp: Optional[str] = None,
) -> SaveFile:
    """Build a current-version save from live objects."""
    payload = {
        "team": team.to_dict(),
        "tower_run": tower_run_to_dict(tower_run) if tower_run is not None else None,
        "tower_record": tower_record.to_dict() if tower_record is not None else None,
        "battle": battle_state_to_dict(battle) if battle is not None else None,
    }
    return SaveFile(
        version=SAVE_VERSION,
        timestamp=timestamp or datetime.now(timezone.utc).isoformat(),
        checksum=calculate_checksum(payload),
        payload=payload,
    )


def load_save(data: Any) -> ValidationResult[SaveFile]:
    """
    Validate a raw save dict.

    The checksum is verified against the payload as stored, then older
    versions are migrated forward one step at a time.

    Returns:
        ValidationResult holding a current-version SaveFile, or the
        "schema", "checksum" or "version" issue that stopped loading
    """
    result = validate_model(SaveFile, data, prefix="save")
    if not result.success:
        return result
    save: SaveFile = result.value

    if save.version > SAVE_VERSION:
        return ValidationResult.fail(
            [ValidationIssue("version", "save.version", f"Unsupported save version {save.version} (max {SAVE_VERSION})")]
        )

    actual = calculate_checksum(save.payload)
    if actual != save.checksum:
        logger.warning(f"Save checksum mismatch: expected {save.checksum}, got {actual}")
        return ValidationResult.fail(
            [ValidationIssue("checksum", "save.checksum", f"Checksum mismatch: expected {save.checksum}, got {actual}")]
        )

    payload = save.payload
    version = save.version
    while version < SAVE_VERSION:
        migrate = MIGRATIONS.get(version)
        if migrate is None:
            return ValidationResult.fail(
                [ValidationIssue("version", "save.version", f"No migration from version {version}")]
            )
        payload = migrate(payload)
        version += 1
        logger.info(f"Migrated save to version {version}")

    validated = validate_model(SavePayload, payload, prefix="save.payload")
    if not validated.success:
        return validated

    issues = _restore_issues(payload)
    if issues:
        return ValidationResult.fail(issues)

    return ValidationResult.ok(
        SaveFile(version=version, timestamp=save.timestamp, checksum=calculate_checksum(payload), payload=payload)
    )


def _restore_issues(payload: dict[str, Any]) -> list[ValidationIssue]:
    """Rebuild each payload section once, reporting the ones that cannot be restored."""
    restorers: dict[str, Callable[[dict[str, Any]], Any]] = {
        "team": Team.from_dict,
        "tower_run": tower_run_from_dict,
        "tower_record": TowerRecord.from_dict,
        "battle": battle_state_from_dict,
    }
    issues = []
    for section, restore in restorers.items():
        data = payload.get(section)
        if data is None:
            continue
        try:
            restore(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Save section {section} could not be restored: {e}")
            issues.append(ValidationIssue("schema", f"save.payload.{section}", str(e)))
    return issues


def restore_team(save: SaveFile) -> Team:
    return Team.from_dict(save.payload["team"])


def restore_tower_run(save: SaveFile) -> Optional[TowerRunState]:
    data = save.payload.get("tower_run")
    return tower_run_from_dict(data) if data else None


def restore_tower_record(save: SaveFile) -> TowerRecord:
    data = save.payload.get("tower_record")
    return TowerRecord.from_dict(data) if data else TowerRecord()


def restore_battle(save: SaveFile) -> Optional[BattleState]:
    data = save.payload.get("battle")
    return battle_state_from_dict(data) if data else None


def write_save(path: Path, save: SaveFile) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(save.model_dump(), f, indent=2)
    logger.info(f"Wrote save to {path}")


def read_save(path: Path) -> ValidationResult[SaveFile]:
    """Read and validate a save file from disk."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return ValidationResult.fail([ValidationIssue("schema", str(path), f"Invalid JSON: {e}")])
    except OSError as e:
        logger.warning(f"Could not read save {path}: {e}")
        return ValidationResult.fail([ValidationIssue("io", str(path), f"Could not read save: {e}")])
    return load_save(data)
