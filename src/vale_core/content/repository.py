"""
Content repository for Vale Core.

Provides read-only lookup of abilities, equipment, Djinn, enemies, unit
definitions, encounters and tower data by id. The repository is injected into
the services that need content, so tests can build one from fixture data and
the CLI can load the packaged JSON tables.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from vale_core.content.schemas import (
    TOWER_FLOOR_LIST,
    Ability,
    Djinn,
    Encounter,
    Enemy,
    Equipment,
    FixedEquipmentReward,
    ChoiceEquipmentReward,
    TowerFloor,
    TowerReward,
    UnitDefinition,
)
from vale_core.content.validation import (
    ValidationIssue,
    ValidationResult,
    validate_model,
)

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


class ContentNotFoundError(KeyError):
    """Raised when content is looked up by an id that is not registered."""


class ContentRepository:
    """
    In-memory registry of validated content tables.

    Usage:
        # From the packaged JSON data
        repository = ContentRepository.create_default()

        # From fixture objects
        repository = ContentRepository(abilities=[strike], enemies=[goblin])

        enemy = repository.get_enemy("goblin")
    """

    def __init__(
        self,
        abilities: Iterable[Ability] = (),
        equipment: Iterable[Equipment] = (),
        djinn: Iterable[Djinn] = (),
        enemies: Iterable[Enemy] = (),
        units: Iterable[UnitDefinition] = (),
        encounters: Iterable[Encounter] = (),
        tower_floors: Iterable[TowerFloor] = (),
        tower_rewards: Iterable[TowerReward] = (),
    ):
        self._abilities: dict[str, Ability] = {a.id: a for a in abilities}
        self._equipment: dict[str, Equipment] = {e.id: e for e in equipment}
        self._djinn: dict[str, Djinn] = {d.id: d for d in djinn}
        self._enemies: dict[str, Enemy] = {e.id: e for e in enemies}
        self._units: dict[str, UnitDefinition] = {u.id: u for u in units}
        self._encounters: dict[str, Encounter] = {e.id: e for e in encounters}
        self._tower_floors: list[TowerFloor] = sorted(tower_floors, key=lambda f: f.floor_number)
        self._tower_rewards: list[TowerReward] = list(tower_rewards)

    # =========================================================================
    # LOOKUP
    # =========================================================================

    @staticmethod
    def _lookup(table: dict[str, Any], kind: str, content_id: str) -> Any:
        try:
            return table[content_id]
        except KeyError:
            raise ContentNotFoundError(f"{kind} not found: {content_id}") from None

    def get_ability(self, ability_id: str) -> Ability:
        return self._lookup(self._abilities, "Ability", ability_id)

    def get_equipment(self, equipment_id: str) -> Equipment:
        return self._lookup(self._equipment, "Equipment", equipment_id)

    def get_djinn(self, djinn_id: str) -> Djinn:
        return self._lookup(self._djinn, "Djinn", djinn_id)

    def get_enemy(self, enemy_id: str) -> Enemy:
        return self._lookup(self._enemies, "Enemy", enemy_id)

    def get_unit_definition(self, unit_id: str) -> UnitDefinition:
        return self._lookup(self._units, "Unit definition", unit_id)

    def get_encounter(self, encounter_id: str) -> Encounter:
        return self._lookup(self._encounters, "Encounter", encounter_id)

    def has_djinn(self, djinn_id: str) -> bool:
        return djinn_id in self._djinn

    def find_ability(self, ability_id: str) -> Optional[Ability]:
        return self._abilities.get(ability_id)

    def get_tower_floors(self) -> list[TowerFloor]:
        return list(self._tower_floors)

    def get_tower_rewards(self) -> list[TowerReward]:
        return list(self._tower_rewards)

    @property
    def abilities(self) -> dict[str, Ability]:
        return dict(self._abilities)

    @property
    def equipment(self) -> dict[str, Equipment]:
        return dict(self._equipment)

    @property
    def djinn(self) -> dict[str, Djinn]:
        return dict(self._djinn)

    @property
    def enemies(self) -> dict[str, Enemy]:
        return dict(self._enemies)

    @property
    def units(self) -> dict[str, UnitDefinition]:
        return dict(self._units)

    @property
    def encounters(self) -> dict[str, Encounter]:
        return dict(self._encounters)

    def get_counts(self) -> dict[str, int]:
        """Get the number of entries per table."""
        return {
            "abilities": len(self._abilities),
            "equipment": len(self._equipment),
            "djinn": len(self._djinn),
            "enemies": len(self._enemies),
            "units": len(self._units),
            "encounters": len(self._encounters),
            "tower_floors": len(self._tower_floors),
            "tower_rewards": len(self._tower_rewards),
        }

    # =========================================================================
    # CROSS-REFERENCE CHECKS
    # =========================================================================

    def check_references(self) -> list[ValidationIssue]:
        """
        Verify that every id referenced between tables exists.

        Returns:
            List of "reference" issues (empty when consistent)
        """
        issues: list[ValidationIssue] = []

        def missing(path: str, kind: str, ref: str) -> None:
            issues.append(ValidationIssue("reference", path, f"Unknown {kind}: {ref}"))

        for item in self._equipment.values():
            if item.unlocks_ability and item.unlocks_ability not in self._abilities:
                missing(f"equipment.{item.id}.unlocks_ability", "ability", item.unlocks_ability)

        for djinn in self._djinn.values():
            for unit_id, granted in djinn.granted_abilities.items():
                for bucket in ("same", "counter", "neutral"):
                    for ability_id in getattr(granted, bucket):
                        if ability_id not in self._abilities:
                            missing(f"djinn.{djinn.id}.granted_abilities.{unit_id}.{bucket}", "ability", ability_id)

        for enemy in self._enemies.values():
            for drop in enemy.drops:
                if drop.equipment_id not in self._equipment:
                    missing(f"enemies.{enemy.id}.drops", "equipment", drop.equipment_id)

        for encounter in self._encounters.values():
            for enemy_id in encounter.enemies:
                if enemy_id not in self._enemies:
                    missing(f"encounters.{encounter.id}.enemies", "enemy", enemy_id)
            reward = encounter.reward
            item_ids: list[str] = []
            if isinstance(reward.equipment, FixedEquipmentReward):
                item_ids = [reward.equipment.item_id]
            elif isinstance(reward.equipment, ChoiceEquipmentReward):
                item_ids = list(reward.equipment.options)
            for item_id in item_ids:
                if item_id not in self._equipment:
                    missing(f"encounters.{encounter.id}.reward.equipment", "equipment", item_id)
            if reward.djinn and reward.djinn not in self._djinn:
                missing(f"encounters.{encounter.id}.reward.djinn", "djinn", reward.djinn)
            if reward.unlock_unit and reward.unlock_unit not in self._units:
                missing(f"encounters.{encounter.id}.reward.unlock_unit", "unit", reward.unlock_unit)

        for floor in self._tower_floors:
            encounter_id = getattr(floor, "encounter_id", None)
            if encounter_id and encounter_id not in self._encounters:
                missing(f"tower_floors.{floor.id}.encounter_id", "encounter", encounter_id)

        reward_tables = {"equipment": self._equipment, "djinn": self._djinn, "recruit": self._units}
        for reward in self._tower_rewards:
            for entry in reward.rewards:
                for content_id in entry.ids:
                    if content_id not in reward_tables[entry.type]:
                        missing(f"tower_rewards.{reward.floor_number}", entry.type, content_id)

        return issues

    # =========================================================================
    # LOADING
    # =========================================================================

    @classmethod
    def load_from_directory(cls, data_dir: Path) -> ValidationResult["ContentRepository"]:
        """
        Load and validate all content tables from a directory of JSON files.

        Units and enemies reference abilities by id; those ids are resolved
        against abilities.json before schema validation.

        Args:
            data_dir: Directory containing the content JSON files

        Returns:
            ValidationResult holding the repository, or every issue found
        """
        data_dir = Path(data_dir)
        issues: list[ValidationIssue] = []

        def read_table(name: str) -> list[Any]:
            path = data_dir / f"{name}.json"
            if not path.exists():
                logger.warning(f"Content table not found: {path}")
                return []
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                issues.append(ValidationIssue("schema", name, f"Invalid JSON: {e}"))
                return []
            if not isinstance(data, list):
                issues.append(ValidationIssue("schema", name, "Expected a list of entries"))
                return []
            return data

        def validate_table(name: str, model: Any, raw_entries: list[Any]) -> list[Any]:
            parsed = []
            for index, raw in enumerate(raw_entries):
                result = validate_model(model, raw, prefix=f"{name}.{index}")
                if result.success:
                    parsed.append(result.value)
                else:
                    issues.extend(result.errors)
            return parsed

        abilities = validate_table("abilities", Ability, read_table("abilities"))
        ability_index = {a.id: a for a in abilities}

        def resolve_abilities(name: str, raw_entries: list[Any]) -> list[Any]:
            resolved = []
            for index, raw in enumerate(raw_entries):
                if isinstance(raw, dict) and isinstance(raw.get("abilities"), list):
                    refs = []
                    for ref in raw["abilities"]:
                        if isinstance(ref, str):
                            if ref not in ability_index:
                                issues.append(
                                    ValidationIssue("reference", f"{name}.{index}.abilities", f"Unknown ability: {ref}")
                                )
                                continue
                            refs.append(ability_index[ref].model_dump())
                        else:
                            refs.append(ref)
                    raw = {**raw, "abilities": refs}
                resolved.append(raw)
            return resolved

        equipment = validate_table("equipment", Equipment, read_table("equipment"))
        djinn = validate_table("djinn", Djinn, read_table("djinn"))
        enemies = validate_table("enemies", Enemy, resolve_abilities("enemies", read_table("enemies")))
        units = validate_table("units", UnitDefinition, resolve_abilities("units", read_table("units")))
        encounters = validate_table("encounters", Encounter, read_table("encounters"))
        tower_rewards = validate_table("tower_rewards", TowerReward, read_table("tower_rewards"))

        tower_floors: list[TowerFloor] = []
        floors_result = validate_model(TOWER_FLOOR_LIST, read_table("tower_floors"), prefix="tower_floors")
        if floors_result.success:
            tower_floors = floors_result.value
        else:
            issues.extend(floors_result.errors)

        repository = cls(
            abilities=abilities,
            equipment=equipment,
            djinn=djinn,
            enemies=enemies,
            units=units,
            encounters=encounters,
            tower_floors=tower_floors,
            tower_rewards=tower_rewards,
        )
        issues.extend(repository.check_references())

        if issues:
            logger.error(f"Content validation failed for {data_dir}: {len(issues)} issue(s)")
            return ValidationResult.fail(issues)

        logger.info(f"Loaded content from {data_dir}: {repository.get_counts()}")
        return ValidationResult.ok(repository)

    @classmethod
    def create_default(cls) -> "ContentRepository":
        """
        Load the packaged content tables.

        Raises:
            ValueError: If the packaged content fails validation
        """
        result = cls.load_from_directory(DEFAULT_DATA_DIR)
        if not result.success:
            raise ValueError(f"Packaged content is invalid:\n{result.format_errors()}")
        return result.value
