"""
Run Log for battle and tower event tracking.

Captures deterministic events (RNG draws, phase transitions, resolved rounds,
tower floor changes) so that a tower run can be inspected and replayed from
its seed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional
import json
import logging

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Types of events that can be logged."""

    RNG = "rng"  # Random draw
    TRANSITION = "transition"  # Battle phase or Djinn state change
    ROUND = "round"  # Resolved battle round
    TOWER = "tower"  # Tower run reducer call


@dataclass
class LogEvent:
    """Base class for all logged events."""

    # Set by each subclass in __post_init__
    event_type: EventType = field(init=False)
    timestamp: datetime = field(default_factory=datetime.now)
    sequence_number: int = 0
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "sequence_number": self.sequence_number,
            "context": self.context,
        }


def _base_kwargs(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "timestamp": datetime.fromisoformat(data["timestamp"]),
        "sequence_number": data.get("sequence_number", 0),
        "context": data.get("context", {}),
    }


@dataclass
class RngEvent(LogEvent):
    """A random draw."""

    kind: str = ""  # random, randint, choice
    value: Any = None
    reason: str = ""
    draw: int = 0

    def __post_init__(self):
        self.event_type = EventType.RNG

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update({"kind": self.kind, "value": self.value, "reason": self.reason, "draw": self.draw})
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RngEvent":
        return cls(
            **_base_kwargs(data),
            kind=data.get("kind", ""),
            value=data.get("value"),
            reason=data.get("reason", ""),
            draw=data.get("draw", 0),
        )

    def __str__(self) -> str:
        return f"[{self.sequence_number}] RNG #{self.draw} {self.kind} = {self.value} ({self.reason})"


@dataclass
class TransitionEvent(LogEvent):
    """A battle phase or Djinn state transition."""

    machine: str = ""  # "battle" or "djinn:<id>"
    from_state: str = ""
    to_state: str = ""
    trigger: str = ""

    def __post_init__(self):
        self.event_type = EventType.TRANSITION

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "machine": self.machine,
                "from_state": self.from_state,
                "to_state": self.to_state,
                "trigger": self.trigger,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransitionEvent":
        return cls(
            **_base_kwargs(data),
            machine=data.get("machine", ""),
            from_state=data.get("from_state", ""),
            to_state=data.get("to_state", ""),
            trigger=data.get("trigger", ""),
        )

    def __str__(self) -> str:
        return (
            f"[{self.sequence_number}] TRANSITION {self.machine}: "
            f"{self.from_state} -> {self.to_state} ({self.trigger})"
        )


@dataclass
class RoundEvent(LogEvent):
    """A fully resolved battle round."""

    round_number: int = 0
    status: str = ""
    battle_events: int = 0
    remaining_mana: int = 0

    def __post_init__(self):
        self.event_type = EventType.ROUND

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "round_number": self.round_number,
                "status": self.status,
                "battle_events": self.battle_events,
                "remaining_mana": self.remaining_mana,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RoundEvent":
        return cls(
            **_base_kwargs(data),
            round_number=data.get("round_number", 0),
            status=data.get("status", ""),
            battle_events=data.get("battle_events", 0),
            remaining_mana=data.get("remaining_mana", 0),
        )

    def __str__(self) -> str:
        return (
            f"[{self.sequence_number}] ROUND {self.round_number}: {self.status} "
            f"({self.battle_events} events, mana {self.remaining_mana})"
        )


@dataclass
class TowerEvent(LogEvent):
    """A tower run reducer call."""

    action: str = ""  # created, battle_recorded, rest_completed, advanced
    floor_number: Optional[int] = None
    outcome: str = ""
    floor_index: int = 0

    def __post_init__(self):
        self.event_type = EventType.TOWER

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "action": self.action,
                "floor_number": self.floor_number,
                "outcome": self.outcome,
                "floor_index": self.floor_index,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TowerEvent":
        return cls(
            **_base_kwargs(data),
            action=data.get("action", ""),
            floor_number=data.get("floor_number"),
            outcome=data.get("outcome", ""),
            floor_index=data.get("floor_index", 0),
        )

    def __str__(self) -> str:
        floor = f"floor {self.floor_number}" if self.floor_number is not None else "no floor"
        return f"[{self.sequence_number}] TOWER {self.action} {floor} {self.outcome}".rstrip()


_EVENT_CLASSES: dict[EventType, type[LogEvent]] = {
    EventType.RNG: RngEvent,
    EventType.TRANSITION: TransitionEvent,
    EventType.ROUND: RoundEvent,
    EventType.TOWER: TowerEvent,
}


class RunLog:
    """
    Central run log for battle and tower events.

    Singleton pattern - use get_run_log() to access.
    """

    _instance: Optional["RunLog"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._initialized = True
        self._events: list[LogEvent] = []
        self._sequence: int = 0
        self._seed: Optional[int] = None
        self._session_start: datetime = datetime.now()

    def reset(self) -> None:
        """Reset the log for a new run."""
        self._events = []
        self._sequence = 0
        self._seed = None
        self._session_start = datetime.now()
        logger.info("RunLog reset")

    def set_seed(self, seed: int) -> None:
        """Record the seed used for this run."""
        self._seed = seed
        logger.info(f"RunLog seed set: {seed}")

    def get_seed(self) -> Optional[int]:
        return self._seed

    def _log_event(self, event: LogEvent) -> None:
        self._sequence += 1
        event.sequence_number = self._sequence
        self._events.append(event)

    def log_rng(self, kind: str, value: Any, reason: str = "", draw: int = 0) -> None:
        self._log_event(RngEvent(kind=kind, value=value, reason=reason, draw=draw))

    def log_transition(
        self,
        machine: str,
        from_state: str,
        to_state: str,
        trigger: str,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        self._log_event(
            TransitionEvent(
                machine=machine,
                from_state=from_state,
                to_state=to_state,
                trigger=trigger,
                context=context or {},
            )
        )

    def log_round(self, round_number: int, status: str, battle_events: int, remaining_mana: int) -> None:
        self._log_event(
            RoundEvent(
                round_number=round_number,
                status=status,
                battle_events=battle_events,
                remaining_mana=remaining_mana,
            )
        )

    def log_tower(
        self,
        action: str,
        floor_number: Optional[int],
        outcome: str = "",
        floor_index: int = 0,
    ) -> None:
        self._log_event(
            TowerEvent(action=action, floor_number=floor_number, outcome=outcome, floor_index=floor_index)
        )

    def get_events(self, event_type: Optional[EventType] = None) -> list[LogEvent]:
        """Get logged events, optionally filtered by type."""
        if event_type is None:
            return list(self._events)
        return [e for e in self._events if e.event_type == event_type]

    def get_transitions(self) -> list[TransitionEvent]:
        return [e for e in self._events if isinstance(e, TransitionEvent)]

    def get_rounds(self) -> list[RoundEvent]:
        return [e for e in self._events if isinstance(e, RoundEvent)]

    def get_event_count(self) -> int:
        return len(self._events)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_start": self._session_start.isoformat(),
            "seed": self._seed,
            "sequence": self._sequence,
            "events": [e.to_dict() for e in self._events],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def save(self, filepath: str) -> None:
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(self.to_json())
        logger.info(f"RunLog saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> "RunLog":
        """Load a log from a file, replacing the current contents."""
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)

        log = get_run_log()
        log.reset()
        log._session_start = datetime.fromisoformat(data["session_start"])
        log._seed = data.get("seed")
        log._sequence = data.get("sequence", 0)

        for event_data in data.get("events", []):
            event_cls = _EVENT_CLASSES[EventType(event_data["event_type"])]
            log._events.append(event_cls.from_dict(event_data))

        logger.info(f"RunLog loaded from {filepath}: {len(log._events)} events")
        return log

    def format_log(self, event_types: Optional[list[EventType]] = None, max_events: Optional[int] = None) -> str:
        """Format the log as a human-readable string."""
        lines = [
            "=== Run Log ===",
            f"Session: {self._session_start.isoformat()}",
            f"Seed: {self._seed if self._seed is not None else 'not set'}",
            f"Total Events: {len(self._events)}",
            "",
        ]
        events = self._events
        if event_types:
            events = [e for e in events if e.event_type in event_types]
        if max_events:
            events = events[-max_events:]
        lines.extend(str(event) for event in events)
        return "\n".join(lines)


_run_log: Optional[RunLog] = None


def get_run_log() -> RunLog:
    """Get the global RunLog instance."""
    global _run_log
    if _run_log is None:
        _run_log = RunLog()
    return _run_log


def reset_run_log() -> RunLog:
    """Reset and return the global RunLog instance."""
    log = get_run_log()
    log.reset()
    return log
