"""Battle Tower configuration."""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class TowerConfig:
    """
    Tunable tower rules.

    Attributes:
        rest_floor_interval: Floors between rest floors when generating a tower
        target_max_floor: Highest floor a run is designed to reach
        heal_fraction_at_rest: Share of max HP restored on a rest floor
        enemy_scaling_per_floor: Enemy stat multiplier added per floor climbed
        boss_floor_interval: Floors between boss floors
        max_team_size: Units a party may bring into the tower
        max_rounds_per_battle: Rounds before an unresolved battle counts as a retreat
    """

    rest_floor_interval: int = 4
    target_max_floor: int = 100
    heal_fraction_at_rest: float = 0.5
    enemy_scaling_per_floor: float = 0.04
    boss_floor_interval: int = 5
    max_team_size: int = 4
    max_rounds_per_battle: int = 50

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TowerConfig":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


DEFAULT_TOWER_CONFIG = TowerConfig()
