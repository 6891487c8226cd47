"""
Seeded randomness for Vale Core.

All nondeterministic choices (summon targets, status chance rolls, freeze
breaks, paralysis failures, drop rolls, AI target picks) go through a
BattleRng passed in by the caller. There is no module-level random state, so
a tower run replays exactly from its seed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF
_WARMUP_STEPS = 10

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193


@dataclass(frozen=True)
class RngSnapshot:
    """Serializable generator position."""

    state: int
    initial_seed: int
    draws: int

    def to_dict(self) -> dict[str, int]:
        return {"state": self.state, "initial_seed": self.initial_seed, "draws": self.draws}

    @classmethod
    def from_dict(cls, data: dict[str, int]) -> "RngSnapshot":
        return cls(state=data["state"], initial_seed=data["initial_seed"], draws=data["draws"])


class XorShift32:
    """
    32-bit xorshift generator.

    A seed of 0 is promoted to 1 (xorshift has no zero state), and the first
    ten outputs are discarded so that nearby seeds diverge quickly.
    """

    def __init__(self, seed: int):
        """
        Initialize the generator.

        Args:
            seed: Non-negative integer seed; values wider than 32 bits are masked

        Raises:
            ValueError: If seed is negative
        """
        if seed < 0:
            raise ValueError(f"PRNG seed must be non-negative, got: {seed}")
        self._initial_seed = (seed & _MASK32) or 1
        self._state = self._initial_seed
        self._draws = 0
        for _ in range(_WARMUP_STEPS):
            self._step()

    def _step(self) -> int:
        x = self._state
        x ^= (x << 13) & _MASK32
        x ^= x >> 17
        x ^= (x << 5) & _MASK32
        self._state = x & _MASK32
        return self._state

    def next_u32(self) -> int:
        self._draws += 1
        return self._step()

    def next(self) -> float:
        """Return a float in [0, 1)."""
        return self.next_u32() / 0x1_0000_0000

    def next_int(self, low: int, high: int) -> int:
        """Return an integer in [low, high], inclusive."""
        if high < low:
            raise ValueError(f"Empty range: next_int({low}, {high})")
        return low + int(self.next() * (high - low + 1))

    @property
    def seed(self) -> int:
        return self._initial_seed

    @property
    def draw_count(self) -> int:
        return self._draws

    def clone(self) -> "XorShift32":
        copy = XorShift32(self._initial_seed)
        copy._state = self._state
        copy._draws = self._draws
        return copy

    def snapshot(self) -> RngSnapshot:
        return RngSnapshot(state=self._state, initial_seed=self._initial_seed, draws=self._draws)

    @classmethod
    def restore(cls, snapshot: RngSnapshot) -> "XorShift32":
        prng = cls(snapshot.initial_seed)
        prng._state = snapshot.state & _MASK32
        prng._draws = snapshot.draws
        return prng


def derive_seed(parent_seed: int, label: str) -> int:
    """
    Derive an independent child seed from a parent seed and a label.

    Used to give each tower floor its own stream, e.g.
    derive_seed(run.seed, "floor-3").
    """
    h = (FNV_OFFSET_BASIS ^ (parent_seed & _MASK32)) & _MASK32
    for char in label:
        h ^= ord(char)
        h = (h * FNV_PRIME) & _MASK32
    return h


class BattleRng:
    """
    random.Random-style adapter over XorShift32.

    Exposes random(), randint(a, b) and choice(seq). When record is set,
    every draw is written to the run log with its reason.

    Usage:
        rng = BattleRng(seed=42)
        if rng.random() < 0.25:
            ...
        target = rng.choice(alive_enemies, reason="summon target")
    """

    def __init__(
        self,
        seed: int = 0,
        prng: Optional[XorShift32] = None,
        record: bool = False,
    ):
        self._prng = prng if prng is not None else XorShift32(seed)
        self._record = record

    @property
    def prng(self) -> XorShift32:
        return self._prng

    @property
    def seed(self) -> int:
        return self._prng.seed

    def _log(self, kind: str, value: object, reason: str) -> None:
        if not self._record:
            return
        from vale_core.observability.run_log import get_run_log

        get_run_log().log_rng(kind=kind, value=value, reason=reason, draw=self._prng.draw_count)

    def random(self, reason: str = "") -> float:
        value = self._prng.next()
        self._log("random", value, reason)
        return value

    def randint(self, a: int, b: int, reason: str = "") -> int:
        """Return an integer in [a, b], inclusive."""
        value = self._prng.next_int(a, b)
        self._log("randint", value, reason)
        return value

    def choice(self, seq: Sequence[T], reason: str = "") -> T:
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        index = int(self._prng.next() * len(seq))
        self._log("choice", index, reason)
        return seq[index]

    def chance(self, probability: float, reason: str = "") -> bool:
        """Return True with the given probability."""
        return self.random(reason) < probability

    def clone(self) -> "BattleRng":
        return BattleRng(prng=self._prng.clone(), record=self._record)
