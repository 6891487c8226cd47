"""Content schemas, validation and the read-only content repository."""

from vale_core.content.schemas import (
    Ability,
    AIHints,
    AITarget,
    BossFloor,
    Djinn,
    Encounter,
    Enemy,
    Equipment,
    NormalFloor,
    RestFloor,
    RestOptions,
    TowerFloor,
    TowerReward,
    TowerRewardEntry,
    UnitDefinition,
)
from vale_core.content.validation import ValidationIssue, ValidationResult, validate_model
from vale_core.content.repository import ContentNotFoundError, ContentRepository
from vale_core.content.balance import BalanceWarning, validate_content_balance

__all__ = [
    "Ability",
    "AIHints",
    "AITarget",
    "BossFloor",
    "Djinn",
    "Encounter",
    "Enemy",
    "Equipment",
    "NormalFloor",
    "RestFloor",
    "RestOptions",
    "TowerFloor",
    "TowerReward",
    "TowerRewardEntry",
    "UnitDefinition",
    "ValidationIssue",
    "ValidationResult",
    "validate_model",
    "ContentNotFoundError",
    "ContentRepository",
    "BalanceWarning",
    "validate_content_balance",
]
