"""
Core data models for Vale Core.

Defines the enums, the Stats value type, the status effect variants and the
shared constants used by the unit, team, battle and tower modules.

All value types here are immutable. Derived values (effective stats, scaled
stats) are always recomputed and never written back in place.
"""

import math
from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMERATIONS
# =============================================================================


class Element(str, Enum):
    """Elemental affinity of units, abilities, equipment and Djinn."""

    VENUS = "Venus"
    MARS = "Mars"
    MERCURY = "Mercury"
    JUPITER = "Jupiter"
    NEUTRAL = "Neutral"


class AbilityType(str, Enum):
    PHYSICAL = "physical"
    PSYNERGY = "psynergy"
    HEALING = "healing"
    BUFF = "buff"
    DEBUFF = "debuff"
    SUMMON = "summon"


class TargetType(str, Enum):
    SINGLE_ENEMY = "single-enemy"
    ALL_ENEMIES = "all-enemies"
    SINGLE_ALLY = "single-ally"
    ALL_ALLIES = "all-allies"
    SELF = "self"


class EquipmentSlot(str, Enum):
    WEAPON = "weapon"
    ARMOR = "armor"
    HELM = "helm"
    BOOTS = "boots"
    ACCESSORY = "accessory"


class DjinnState(str, Enum):
    """
    Lifecycle state of an equipped Djinn.

    SET contributes passive stat bonuses, STANDBY is ready to summon and
    RECOVERY is cooling down after a summon.
    """

    SET = "Set"
    STANDBY = "Standby"
    RECOVERY = "Recovery"


class BattlePhase(str, Enum):
    PLANNING = "planning"
    EXECUTING = "executing"
    VICTORY = "victory"
    DEFEAT = "defeat"


class BattleStatus(str, Enum):
    ONGOING = "ongoing"
    PLAYER_VICTORY = "PLAYER_VICTORY"
    PLAYER_DEFEAT = "PLAYER_DEFEAT"


class TowerDifficulty(str, Enum):
    NORMAL = "normal"
    HARD = "hard"


class FloorType(str, Enum):
    NORMAL = "normal"
    BOSS = "boss"
    REST = "rest"


class FloorOutcome(str, Enum):
    PENDING = "pending"
    VICTORY = "victory"
    DEFEAT = "defeat"
    RETREAT = "retreat"
    RESTED = "rested"


class ProgressionCurve(str, Enum):
    """Level progression curves used by tower normalization."""

    STEPPED = "stepped"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class StatusType(str, Enum):
    BUFF = "buff"
    DEBUFF = "debuff"
    POISON = "poison"
    BURN = "burn"
    FREEZE = "freeze"
    PARALYZE = "paralyze"
    STUN = "stun"
    HEAL_OVER_TIME = "healOverTime"
    ELEMENTAL_RESISTANCE = "elementalResistance"
    DAMAGE_REDUCTION = "damageReduction"
    SHIELD = "shield"
    INVULNERABLE = "invulnerable"
    IMMUNITY = "immunity"
    AUTO_REVIVE = "autoRevive"


# =============================================================================
# CONSTANTS
# =============================================================================

STAT_KEYS: tuple[str, ...] = ("hp", "pp", "atk", "def", "mag", "spd")

MIN_LEVEL = 1
MAX_LEVEL = 20

MIN_PARTY_SIZE = 1
MAX_PARTY_SIZE = 4
MAX_EQUIPPED_DJINN = 3
MAX_COLLECTED_DJINN = 12

# Floors applied to every derived stat block
STAT_MINIMUMS: dict[str, int] = {"hp": 1, "pp": 0, "atk": 1, "def": 0, "mag": 1, "spd": 1}

ENEMY_ROLE = "Pure DPS"

REVIVE_HP_PERCENTAGE = 0.5
POISON_DAMAGE_PERCENT = 0.08
BURN_DAMAGE_PERCENT = 0.10
FREEZE_BREAK_CHANCE = 0.3
PARALYZE_FAILURE_CHANCE = 0.25
DEFAULT_STATUS_DURATION = 3

# Summon damage keyed by number of Djinn summoned together
SUMMON_DAMAGE: dict[int, int] = {1: 80, 2: 150, 3: 300}

# Djinn passive bonuses by element relationship with the unit
DJINN_SAME_ELEMENT_BONUS = {"atk": 4, "def": 3}
DJINN_COUNTER_ELEMENT_BONUS = {"atk": -3, "def": -2}
DJINN_NEUTRAL_BONUS = {"atk": 2, "def": 2}

COUNTER_ELEMENTS: dict[Element, Element] = {
    Element.VENUS: Element.JUPITER,
    Element.JUPITER: Element.VENUS,
    Element.MARS: Element.MERCURY,
    Element.MERCURY: Element.MARS,
}


# =============================================================================
# STATS
# =============================================================================


class Stats(BaseModel):
    """
    Six-stat block shared by units, enemies and equipment bonuses.

    Serialized with the key "def"; the attribute is ``def_`` because ``def``
    is reserved in Python.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    hp: int = Field(default=0, ge=0)
    pp: int = Field(default=0, ge=0)
    atk: int = Field(default=0, ge=0)
    def_: int = Field(default=0, ge=0, alias="def")
    mag: int = Field(default=0, ge=0)
    spd: int = Field(default=0, ge=0)

    def get(self, stat: str) -> int:
        """Get a stat by its serialized key."""
        if stat not in STAT_KEYS:
            raise KeyError(f"Unknown stat: {stat}")
        return getattr(self, "def_" if stat == "def" else stat)

    def to_dict(self) -> dict[str, int]:
        return {key: self.get(key) for key in STAT_KEYS}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Stats":
        return cls.model_validate(dict(data))

    @classmethod
    def from_values(cls, values: Mapping[str, float]) -> "Stats":
        """
        Build a Stats block from possibly negative or fractional values.

        Each value is floored, then clamped to STAT_MINIMUMS. Used wherever
        stats are derived rather than authored.
        """
        clamped = {
            key: max(STAT_MINIMUMS[key], math.floor(values.get(key, 0)))
            for key in STAT_KEYS
        }
        return cls.model_validate(clamped)

    def __add__(self, other: "Stats") -> "Stats":
        return Stats.model_validate(
            {key: self.get(key) + other.get(key) for key in STAT_KEYS}
        )


ZERO_STATS = Stats()


# =============================================================================
# STATUS EFFECTS
# =============================================================================


@dataclass(frozen=True)
class Buff:
    stat: str
    modifier: int
    duration: int
    type: ClassVar[StatusType] = StatusType.BUFF


@dataclass(frozen=True)
class Debuff:
    stat: str
    modifier: int
    duration: int
    type: ClassVar[StatusType] = StatusType.DEBUFF


@dataclass(frozen=True)
class Poison:
    damage_per_turn: int
    duration: int
    type: ClassVar[StatusType] = StatusType.POISON


@dataclass(frozen=True)
class Burn:
    damage_per_turn: int
    duration: int
    type: ClassVar[StatusType] = StatusType.BURN


@dataclass(frozen=True)
class Freeze:
    duration: int
    type: ClassVar[StatusType] = StatusType.FREEZE


@dataclass(frozen=True)
class Paralyze:
    duration: int
    type: ClassVar[StatusType] = StatusType.PARALYZE


@dataclass(frozen=True)
class Stun:
    duration: int
    type: ClassVar[StatusType] = StatusType.STUN


@dataclass(frozen=True)
class HealOverTime:
    heal_per_turn: int
    duration: int
    type: ClassVar[StatusType] = StatusType.HEAL_OVER_TIME


@dataclass(frozen=True)
class ElementalResistance:
    element: Element
    modifier: float
    duration: int
    type: ClassVar[StatusType] = StatusType.ELEMENTAL_RESISTANCE


@dataclass(frozen=True)
class DamageReduction:
    percent: float
    duration: int
    type: ClassVar[StatusType] = StatusType.DAMAGE_REDUCTION


@dataclass(frozen=True)
class Shield:
    remaining_charges: int
    duration: int
    type: ClassVar[StatusType] = StatusType.SHIELD


@dataclass(frozen=True)
class Invulnerable:
    duration: int
    type: ClassVar[StatusType] = StatusType.INVULNERABLE


@dataclass(frozen=True)
class Immunity:
    """Blocks negative statuses: every one when blocks_all, else the listed types."""

    blocks_all: bool
    types: tuple[StatusType, ...]
    duration: int
    type: ClassVar[StatusType] = StatusType.IMMUNITY


@dataclass(frozen=True)
class AutoRevive:
    """Revives the unit on KO; limited by uses rather than duration."""

    hp_percent: float
    uses_remaining: int
    type: ClassVar[StatusType] = StatusType.AUTO_REVIVE


StatusEffect = Union[
    Buff,
    Debuff,
    Poison,
    Burn,
    Freeze,
    Paralyze,
    Stun,
    HealOverTime,
    ElementalResistance,
    DamageReduction,
    Shield,
    Invulnerable,
    Immunity,
    AutoRevive,
]

STATUS_CLASSES: dict[StatusType, type] = {
    StatusType.BUFF: Buff,
    StatusType.DEBUFF: Debuff,
    StatusType.POISON: Poison,
    StatusType.BURN: Burn,
    StatusType.FREEZE: Freeze,
    StatusType.PARALYZE: Paralyze,
    StatusType.STUN: Stun,
    StatusType.HEAL_OVER_TIME: HealOverTime,
    StatusType.ELEMENTAL_RESISTANCE: ElementalResistance,
    StatusType.DAMAGE_REDUCTION: DamageReduction,
    StatusType.SHIELD: Shield,
    StatusType.INVULNERABLE: Invulnerable,
    StatusType.IMMUNITY: Immunity,
    StatusType.AUTO_REVIVE: AutoRevive,
}

NEGATIVE_STATUS_TYPES: frozenset[StatusType] = frozenset(
    {
        StatusType.POISON,
        StatusType.BURN,
        StatusType.FREEZE,
        StatusType.PARALYZE,
        StatusType.STUN,
        StatusType.DEBUFF,
    }
)


def is_negative_status(effect: StatusEffect) -> bool:
    return effect.type in NEGATIVE_STATUS_TYPES


def status_to_dict(effect: StatusEffect) -> dict[str, Any]:
    """Serialize a status effect with its type tag."""
    data: dict[str, Any] = {"type": effect.type.value}
    for key, value in asdict(effect).items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, tuple):
            value = [v.value if isinstance(v, Enum) else v for v in value]
        data[key] = value
    return data


def status_from_dict(data: Mapping[str, Any]) -> StatusEffect:
    """
    Deserialize a status effect from its tagged dictionary form.

    Raises:
        ValueError: If the type tag is unknown
    """
    try:
        status_type = StatusType(data["type"])
    except (KeyError, ValueError) as e:
        raise ValueError(f"Unknown status effect: {data.get('type')!r}") from e

    cls = STATUS_CLASSES[status_type]
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        value = data[f.name]
        if f.name == "element":
            value = Element(value)
        elif f.name == "types":
            value = tuple(StatusType(v) for v in value)
        kwargs[f.name] = value
    return cls(**kwargs)


def status_duration(effect: StatusEffect) -> Optional[int]:
    """Remaining duration in rounds, or None for use-limited effects."""
    if isinstance(effect, AutoRevive):
        return None
    return effect.duration
