"""
Battle events.

Every observable step of round execution appends one of these to the battle
log. Events are immutable and carry a human-readable message for display.
"""

from dataclasses import dataclass, fields
from typing import Any, ClassVar, Optional, Union


@dataclass(frozen=True)
class TurnStart:
    actor_id: str
    turn: int
    type: ClassVar[str] = "turn-start"

    @property
    def message(self) -> str:
        return f"Turn {self.turn}: {self.actor_id} acts"


@dataclass(frozen=True)
class AbilityUsed:
    actor_id: str
    ability_id: Optional[str]  # None for a basic attack
    target_ids: tuple[str, ...]
    mana_cost: int = 0
    type: ClassVar[str] = "ability"

    @property
    def message(self) -> str:
        name = self.ability_id or "attack"
        return f"{self.actor_id} uses {name} on {', '.join(self.target_ids)}"


@dataclass(frozen=True)
class Hit:
    target_id: str
    amount: int
    source_id: Optional[str] = None
    blocked_by: Optional[str] = None  # "shield" or "invulnerable"
    type: ClassVar[str] = "hit"

    @property
    def message(self) -> str:
        if self.blocked_by:
            return f"{self.target_id}'s {self.blocked_by} blocks the attack"
        return f"{self.target_id} takes {self.amount} damage"


@dataclass(frozen=True)
class Heal:
    target_id: str
    amount: int
    revived: bool = False
    type: ClassVar[str] = "heal"

    @property
    def message(self) -> str:
        if self.revived:
            return f"{self.target_id} is revived with {self.amount} HP"
        return f"{self.target_id} recovers {self.amount} HP"


@dataclass(frozen=True)
class ManaGenerated:
    source_id: str
    amount: int
    new_total: int
    type: ClassVar[str] = "mana-generated"

    @property
    def message(self) -> str:
        return f"{self.source_id} generates {self.amount} mana ({self.new_total} total)"


@dataclass(frozen=True)
class StatusApplied:
    target_id: str
    status_type: str
    duration: Optional[int] = None
    type: ClassVar[str] = "status-applied"

    @property
    def message(self) -> str:
        suffix = f" for {self.duration} rounds" if self.duration is not None else ""
        return f"{self.target_id} is affected by {self.status_type}{suffix}"


@dataclass(frozen=True)
class StatusExpired:
    target_id: str
    status_type: str
    type: ClassVar[str] = "status-expired"

    @property
    def message(self) -> str:
        return f"{self.status_type} on {self.target_id} wore off"


@dataclass(frozen=True)
class StatusTick:
    target_id: str
    status_type: str
    amount: int
    type: ClassVar[str] = "status-tick"

    @property
    def message(self) -> str:
        verb = "recovers" if self.status_type == "healOverTime" else "takes"
        return f"{self.target_id} {verb} {self.amount} from {self.status_type}"


@dataclass(frozen=True)
class ActionSkipped:
    actor_id: str
    reason: str
    type: ClassVar[str] = "action-skipped"

    @property
    def message(self) -> str:
        return f"{self.actor_id} cannot act ({self.reason})"


@dataclass(frozen=True)
class KnockedOut:
    unit_id: str
    by_id: Optional[str] = None
    type: ClassVar[str] = "ko"

    @property
    def message(self) -> str:
        return f"{self.unit_id} is knocked out"


@dataclass(frozen=True)
class DjinnStandby:
    djinn_id: str
    type: ClassVar[str] = "djinn-standby"

    @property
    def message(self) -> str:
        return f"Djinn {self.djinn_id} is on standby"


@dataclass(frozen=True)
class DjinnRecovered:
    djinn_id: str
    state: str
    type: ClassVar[str] = "djinn-recovered"

    @property
    def message(self) -> str:
        return f"Djinn {self.djinn_id} recovered ({self.state})"


@dataclass(frozen=True)
class Summon:
    djinn_ids: tuple[str, ...]
    effect_type: str
    amount: int = 0
    type: ClassVar[str] = "summon"

    @property
    def message(self) -> str:
        names = ", ".join(self.djinn_ids)
        if self.amount:
            return f"Summon ({names}): {self.effect_type} {self.amount}"
        return f"Summon ({names}): {self.effect_type}"


@dataclass(frozen=True)
class BattleEnd:
    result: str
    type: ClassVar[str] = "battle-end"

    @property
    def message(self) -> str:
        return "Victory!" if self.result == "PLAYER_VICTORY" else "The party has fallen..."


BattleEvent = Union[
    TurnStart,
    AbilityUsed,
    Hit,
    Heal,
    ManaGenerated,
    StatusApplied,
    StatusExpired,
    StatusTick,
    ActionSkipped,
    KnockedOut,
    DjinnStandby,
    DjinnRecovered,
    Summon,
    BattleEnd,
]

EVENT_CLASSES: dict[str, type] = {
    cls.type: cls
    for cls in (
        TurnStart,
        AbilityUsed,
        Hit,
        Heal,
        ManaGenerated,
        StatusApplied,
        StatusExpired,
        StatusTick,
        ActionSkipped,
        KnockedOut,
        DjinnStandby,
        DjinnRecovered,
        Summon,
        BattleEnd,
    )
}


def event_to_dict(event: BattleEvent) -> dict[str, Any]:
    data: dict[str, Any] = {"type": event.type}
    for f in fields(event):
        value = getattr(event, f.name)
        data[f.name] = list(value) if isinstance(value, tuple) else value
    data["message"] = event.message
    return data


def event_from_dict(data: dict[str, Any]) -> BattleEvent:
    """
    Rebuild an event from event_to_dict output.

    Raises:
        ValueError: If the event type is unknown
    """
    cls = EVENT_CLASSES.get(data.get("type", ""))
    if cls is None:
        raise ValueError(f"Unknown battle event: {data.get('type')!r}")
    kwargs = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        kwargs[f.name] = tuple(value) if isinstance(value, list) else value
    return cls(**kwargs)
