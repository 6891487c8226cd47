"""
Advisory balance checks for content tables.

Flags stat ratios and costs outside the recommended ranges. Warnings are
collected and reported; they never block loading.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from vale_core.content.repository import ContentRepository
from vale_core.content.schemas import Ability, Encounter, Enemy, Equipment
from vale_core.data_models import AbilityType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceWarning:
    """A single balance diagnostic."""

    type: str  # enemy, ability, equipment, encounter
    id: str
    severity: str  # minor, moderate, severe
    issue: str
    details: dict[str, Any] = field(default_factory=dict)


def _enemy_warnings(enemy: Enemy) -> list[BalanceWarning]:
    warnings = []
    stats = enemy.stats

    def warn(severity: str, issue: str, **details: Any) -> None:
        warnings.append(BalanceWarning("enemy", enemy.id, severity, issue, details))

    if stats.atk > stats.hp * 0.5:
        warn("minor", "Very high ATK relative to HP (glass cannon)", hp=stats.hp, atk=stats.atk)
    if stats.atk < 5 and enemy.level > 3:
        warn("moderate", "Very low ATK for level (no threat)", level=enemy.level, atk=stats.atk)
    if stats.def_ > stats.atk * 2:
        warn("moderate", "Very high DEF relative to ATK (slow fight)", atk=stats.atk, defense=stats.def_)
    if stats.hp < 10 and enemy.level > 1:
        warn("minor", "Very low HP (may die in one hit)", level=enemy.level, hp=stats.hp)
    if stats.hp > 500:
        warn("minor", "Very high HP (potentially tedious)", hp=stats.hp)
    if len(enemy.abilities) > 6:
        warn("minor", "Many abilities (AI may not use effectively)", ability_count=len(enemy.abilities))
    if stats.spd < 5:
        warn("minor", "Very low SPD (always acts last)", spd=stats.spd)
    if stats.spd > 30:
        warn("minor", "Very high SPD (always acts first)", spd=stats.spd)
    return warnings


def _ability_warnings(ability: Ability) -> list[BalanceWarning]:
    warnings = []

    def warn(severity: str, issue: str, **details: Any) -> None:
        warnings.append(BalanceWarning("ability", ability.id, severity, issue, details))

    if ability.type in (AbilityType.PHYSICAL, AbilityType.PSYNERGY):
        if ability.base_power > 25 and ability.mana_cost == 0:
            warn("moderate", "High damage for zero mana cost", base_power=ability.base_power)
        if ability.base_power < 10 and ability.unlock_level > 10:
            warn(
                "moderate",
                "Low damage for high unlock level",
                base_power=ability.base_power,
                unlock_level=ability.unlock_level,
            )

    if ability.type == AbilityType.HEALING:
        if ability.base_power == 0 and not ability.revive:
            warn("severe", "Healing ability has no base power")
        if ability.mana_cost == 0:
            warn("moderate", "Healing ability costs no mana")

    if ability.buff_effect:
        total = sum(abs(ability.buff_effect.get(stat, 0)) for stat in ("atk", "def", "spd"))
        if total > 20:
            warn("moderate", "Very large stat buff/debuff", total=total)
        if not ability.duration:
            warn("severe", "Buff has no duration (permanent?)")
    return warnings


def _equipment_warnings(item: Equipment) -> list[BalanceWarning]:
    warnings = []
    bonus = item.stat_bonus
    total = bonus.hp + bonus.atk + bonus.def_ + bonus.spd

    def warn(severity: str, issue: str, **details: Any) -> None:
        warnings.append(BalanceWarning("equipment", item.id, severity, issue, details))

    if total > 50:
        warn("moderate", "Very high total stat bonus", total=total)
    if total == 0 and bonus.mag == 0 and not item.unlocks_ability:
        warn("minor", "Equipment has no stat bonus or unlocked ability")
    if bonus.hp > 30:
        warn("minor", "Very high HP bonus", hp=bonus.hp)
    for stat in ("atk", "def", "spd"):
        if bonus.get(stat) > 15:
            warn("minor", f"Very high {stat.upper()} bonus", **{stat: bonus.get(stat)})
    return warnings


def _encounter_warnings(encounter: Encounter, repository: ContentRepository) -> list[BalanceWarning]:
    warnings = []
    enemies = repository.enemies
    total_power = 0
    for enemy_id in encounter.enemies:
        enemy = enemies.get(enemy_id)
        if enemy:
            total_power += enemy.stats.hp + enemy.stats.atk + enemy.stats.def_

    count = len(encounter.enemies)
    if total_power < 50:
        warnings.append(
            BalanceWarning("encounter", encounter.id, "minor", "Very weak encounter (trivial fight)",
                           {"total_power": total_power, "enemy_count": count})
        )
    if total_power > 1000:
        warnings.append(
            BalanceWarning("encounter", encounter.id, "moderate", "Very strong encounter (potentially unwinnable)",
                           {"total_power": total_power, "enemy_count": count})
        )
    if count > 5:
        warnings.append(
            BalanceWarning("encounter", encounter.id, "minor", "Many enemies (complex battle)",
                           {"enemy_count": count})
        )
    return warnings


def validate_content_balance(repository: ContentRepository) -> list[BalanceWarning]:
    """
    Run every balance check over the repository.

    Returns:
        List of warnings (empty when nothing stands out)
    """
    warnings: list[BalanceWarning] = []
    for enemy in repository.enemies.values():
        warnings.extend(_enemy_warnings(enemy))
    for ability in repository.abilities.values():
        warnings.extend(_ability_warnings(ability))
    for item in repository.equipment.values():
        warnings.extend(_equipment_warnings(item))
    for encounter in repository.encounters.values():
        warnings.extend(_encounter_warnings(encounter, repository))

    if warnings:
        logger.info(f"Balance check produced {len(warnings)} warning(s)")
    return warnings


def format_balance_warnings(warnings: list[BalanceWarning]) -> str:
    """Format warnings grouped by severity for display."""
    if not warnings:
        return "No balance issues detected"

    lines = []
    for severity in ("severe", "moderate", "minor"):
        group = [w for w in warnings if w.severity == severity]
        if not group:
            continue
        lines.append(f"{severity.upper()} ({len(group)}):")
        for w in group:
            lines.append(f"  - [{w.type}] {w.id}: {w.issue}")
    return "\n".join(lines)
