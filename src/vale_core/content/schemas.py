"""
Pydantic schemas for Vale content tables.

Every content table (abilities, equipment, Djinn, enemies, unit definitions,
encounters, tower floors and tower rewards) is validated against these models
once, at load time. The battle and tower engines assume validated input and
never re-check it.

Models are frozen: content is read-only once loaded.
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from vale_core.data_models import (
    STAT_KEYS,
    AbilityType,
    Element,
    EquipmentSlot,
    Stats,
    StatusType,
    TargetType,
)

ABILITY_ID_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"

# Statuses an ability may inflict on hit
InflictableStatus = Literal["poison", "burn", "freeze", "paralyze", "stun"]
CleansableStatus = Literal["poison", "burn", "freeze", "paralyze", "stun", "debuff"]


class ContentModel(BaseModel):
    """Base for all content models: immutable, no unknown keys."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


def _check_stat_keys(value: Optional[dict[str, int]]) -> Optional[dict[str, int]]:
    if value is None:
        return value
    unknown = [key for key in value if key not in STAT_KEYS]
    if unknown:
        raise ValueError(f"Unknown stat keys: {unknown}")
    return value


# =============================================================================
# ABILITIES
# =============================================================================


class AITarget(str, Enum):
    """Target preference hints for the scripted enemy policy."""

    WEAKEST = "weakest"
    RANDOM = "random"
    LOWEST_RES = "lowest_res"
    HEALER_FIRST = "healer_first"
    HIGHEST_DEF = "highest_def"


class AIHints(ContentModel):
    priority: float = Field(default=0, ge=0, le=3)
    target: Optional[AITarget] = None
    avoid_overkill: bool = False
    opener: bool = False


class AbilityStatusEffect(ContentModel):
    type: InflictableStatus
    duration: int = Field(ge=1)
    chance: float = Field(default=1.0, ge=0, le=1)


class HealOverTimeSpec(ContentModel):
    amount: int = Field(ge=1)
    duration: int = Field(ge=1)


class RemoveStatusSpec(ContentModel):
    mode: Literal["all", "negative", "by_type"]
    statuses: list[CleansableStatus] = Field(default_factory=list)


class ElementalResistanceSpec(ContentModel):
    element: Element
    modifier: float
    duration: int = Field(ge=1)


class ImmunitySpec(ContentModel):
    all: bool
    types: list[CleansableStatus] = Field(default_factory=list)
    duration: int = Field(ge=1)

    def status_types(self) -> tuple[StatusType, ...]:
        return tuple(StatusType(t) for t in self.types)


class Ability(ContentModel):
    """An ability usable by units and enemies."""

    id: str = Field(pattern=ABILITY_ID_PATTERN)
    name: str = Field(min_length=1)
    type: AbilityType
    element: Optional[Element] = None
    mana_cost: int = Field(default=0, ge=0, le=5)
    base_power: int = Field(default=0, ge=0)
    targets: TargetType
    unlock_level: int = Field(default=1, ge=1, le=20)
    description: str = ""

    status_effect: Optional[AbilityStatusEffect] = None
    buff_effect: Optional[dict[str, int]] = None
    debuff_effect: Optional[dict[str, int]] = None
    duration: Optional[int] = Field(default=None, ge=1)
    heal_over_time: Optional[HealOverTimeSpec] = None
    hit_count: Optional[int] = Field(default=None, ge=1, le=10)
    revive: bool = False
    revive_hp_percent: Optional[float] = Field(default=None, ge=0, le=1)
    ignore_defense_percent: Optional[float] = Field(default=None, ge=0, le=1)
    splash_damage_percent: Optional[float] = Field(default=None, ge=0, le=1)
    shield_charges: Optional[int] = Field(default=None, ge=1, le=99)
    remove_status_effects: Optional[RemoveStatusSpec] = None
    damage_reduction_percent: Optional[float] = Field(default=None, ge=0, le=1)
    elemental_resistance: Optional[ElementalResistanceSpec] = None
    grant_immunity: Optional[ImmunitySpec] = None
    ai_hints: Optional[AIHints] = None

    @field_validator("buff_effect", "debuff_effect")
    @classmethod
    def stat_keys_known(cls, value: Optional[dict[str, int]]) -> Optional[dict[str, int]]:
        return _check_stat_keys(value)

    @property
    def targets_allies(self) -> bool:
        return self.targets in (TargetType.SINGLE_ALLY, TargetType.ALL_ALLIES, TargetType.SELF)

    @property
    def targets_all(self) -> bool:
        return self.targets in (TargetType.ALL_ENEMIES, TargetType.ALL_ALLIES)


# =============================================================================
# EQUIPMENT
# =============================================================================


class Equipment(ContentModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    slot: EquipmentSlot
    tier: str = "basic"
    cost: int = Field(default=0, ge=0)
    allowed_elements: list[Element] = Field(default_factory=list)
    stat_bonus: Stats = Field(default_factory=Stats)
    unlocks_ability: Optional[str] = None
    elemental_resist: Optional[float] = Field(default=None, ge=0, le=1)
    always_first_turn: bool = False


# =============================================================================
# DJINN
# =============================================================================


class DamageSummon(ContentModel):
    type: Literal["damage"] = "damage"
    damage: Optional[int] = Field(default=None, ge=1)
    description: str = ""


class HealSummon(ContentModel):
    type: Literal["heal"] = "heal"
    heal_amount: int = Field(ge=1)
    description: str = ""


class BuffSummon(ContentModel):
    type: Literal["buff"] = "buff"
    stat_bonus: dict[str, int]
    description: str = ""

    @field_validator("stat_bonus")
    @classmethod
    def stat_keys_known(cls, value: dict[str, int]) -> dict[str, int]:
        return _check_stat_keys(value)


class SpecialSummon(ContentModel):
    type: Literal["special"] = "special"
    description: str = ""


SummonEffect = Annotated[
    Union[DamageSummon, HealSummon, BuffSummon, SpecialSummon],
    Field(discriminator="type"),
]


class GrantedAbilities(ContentModel):
    """Ability ids granted to one unit, bucketed by element relationship."""

    same: list[str] = Field(default_factory=list, max_length=4)
    counter: list[str] = Field(default_factory=list, max_length=4)
    neutral: list[str] = Field(default_factory=list, max_length=4)


class Djinn(ContentModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    element: Element
    tier: Literal[1, 2, 3]
    summon_effect: SummonEffect
    granted_abilities: dict[str, GrantedAbilities] = Field(default_factory=dict)
    description: str = ""


# =============================================================================
# UNITS AND ENEMIES
# =============================================================================


class UnitDefinition(ContentModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    element: Element
    role: str
    base_stats: Stats
    growth_rates: Stats
    description: str = ""
    mana_contribution: int = Field(default=1, ge=0)
    abilities: list[Ability] = Field(default_factory=list)


class EnemyDrop(ContentModel):
    equipment_id: str = Field(min_length=1)
    chance: float = Field(ge=0, le=1)


class Enemy(ContentModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    level: int = Field(ge=1, le=20)
    element: Element
    stats: Stats
    abilities: list[Ability] = Field(min_length=1)
    base_xp: int = Field(default=0, ge=0)
    base_gold: int = Field(default=0, ge=0)
    drops: list[EnemyDrop] = Field(default_factory=list)
    description: str = ""


# =============================================================================
# ENCOUNTERS
# =============================================================================


class NoEquipmentReward(ContentModel):
    type: Literal["none"] = "none"


class FixedEquipmentReward(ContentModel):
    type: Literal["fixed"] = "fixed"
    item_id: str = Field(min_length=1)


class ChoiceEquipmentReward(ContentModel):
    type: Literal["choice"] = "choice"
    options: list[str] = Field(min_length=2, max_length=4)

    @field_validator("options")
    @classmethod
    def options_unique(cls, value: list[str]) -> list[str]:
        if len(set(value)) != len(value):
            raise ValueError("Choice options must be unique")
        return value


EquipmentReward = Annotated[
    Union[NoEquipmentReward, FixedEquipmentReward, ChoiceEquipmentReward],
    Field(discriminator="type"),
]


class EncounterReward(ContentModel):
    xp: int = Field(ge=0)
    gold: int = Field(ge=0)
    equipment: EquipmentReward = Field(default_factory=NoEquipmentReward)
    djinn: Optional[str] = None
    unlock_unit: Optional[str] = None


class Encounter(ContentModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    enemies: list[str] = Field(min_length=1)
    difficulty: Optional[Literal["easy", "medium", "hard", "boss"]] = None
    reward: EncounterReward


# =============================================================================
# TOWER
# =============================================================================


class TowerFloorBase(ContentModel):
    id: str = Field(min_length=1)
    floor_number: int = Field(ge=1)
    difficulty_tier: Optional[int] = Field(default=None, ge=1)
    normalized_level: Optional[int] = Field(default=None, ge=1, le=99)
    tags: list[str] = Field(default_factory=list)


class NormalFloor(TowerFloorBase):
    type: Literal["normal"] = "normal"
    encounter_id: str = Field(min_length=1)


class BossFloor(TowerFloorBase):
    type: Literal["boss"] = "boss"
    encounter_id: str = Field(min_length=1)


class RestOptions(ContentModel):
    allow_loadout_change: bool = True
    heal_fraction_override: Optional[float] = Field(default=None, ge=0, le=1)


class RestFloor(TowerFloorBase):
    type: Literal["rest"] = "rest"
    rest: RestOptions = Field(default_factory=RestOptions)


TowerFloor = Annotated[Union[NormalFloor, BossFloor, RestFloor], Field(discriminator="type")]
TOWER_FLOOR_LIST = TypeAdapter(list[TowerFloor])


class TowerRewardEntry(ContentModel):
    type: Literal["equipment", "djinn", "recruit"]
    ids: list[str] = Field(min_length=1)
    notes: Optional[str] = None


class TowerReward(ContentModel):
    floor_number: int = Field(ge=1)
    rewards: list[TowerRewardEntry] = Field(min_length=1)
