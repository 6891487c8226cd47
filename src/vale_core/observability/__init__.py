"""
Observability for Vale Core.

Records RNG draws, battle phase transitions, resolved rounds and tower floor
changes so that a tower run can be inspected after the fact.
"""

from vale_core.observability.run_log import (
    RunLog,
    LogEvent,
    EventType,
    RngEvent,
    TransitionEvent,
    RoundEvent,
    TowerEvent,
    get_run_log,
    reset_run_log,
)

__all__ = [
    "RunLog",
    "LogEvent",
    "EventType",
    "RngEvent",
    "TransitionEvent",
    "RoundEvent",
    "TowerEvent",
    "get_run_log",
    "reset_run_log",
]
