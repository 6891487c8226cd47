"""
Vale Core - battle and Battle Tower engine.

A deterministic, queue-based RPG battle engine (plan a round, then resolve it
in speed order) with Djinn summons, status effects and enemy AI, plus a
Battle Tower run driver that normalizes party levels per floor.
"""

__version__ = "0.1.0"
