"""Seeded random source shared by every stochastic decision in a simulation.

A single SeededRandom instance is owned by the Orchestrator and consumed as one
sequential stream. Identical seeds reproduce identical histories only when the
draws happen in the same order, so the per-tick draw order is part of the
engine contract:

1. lifecycle shuffle
2. per agent: elder mortality draw, then birth draws (child id, gender, traits)
3. dispatch shuffle
4. fallback heuristic draws, in dispatch order
5. weather draw
"""

from __future__ import annotations

import random
from typing import List, Sequence, TypeVar

T = TypeVar("T")

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    """Encode a non-negative integer in lowercase base36."""

    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits: List[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


class SeededRandom:
    """Deterministic pseudo-random stream.

    Wraps a private ``random.Random`` so nothing else in the process can
    perturb the sequence (the module-level ``random`` functions share global
    state and are never used by the engine).
    """

    def __init__(self, seed: int = 42) -> None:
        self.seed = seed
        self._rng = random.Random(seed)

    def random(self) -> float:
        """Return a float in [0, 1)."""
        return self._rng.random()

    def random_int(self, low: int, high: int) -> int:
        """Return an integer in [low, high). ``high`` is exclusive."""
        if high <= low:
            raise ValueError(f"empty range [{low}, {high})")
        return low + int(self._rng.random() * (high - low))

    def random_float(self, low: float, high: float) -> float:
        return low + self._rng.random() * (high - low)

    def random_bool(self, probability: float = 0.5) -> bool:
        """Return True with the given probability."""
        return self._rng.random() < probability

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise IndexError("cannot choose from an empty sequence")
        return items[self.random_int(0, len(items))]

    def shuffle(self, items: Sequence[T]) -> List[T]:
        """Return a shuffled copy of ``items`` (Fisher-Yates); the input is untouched."""
        result = list(items)
        for i in range(len(result) - 1, 0, -1):
            j = self.random_int(0, i + 1)
            result[i], result[j] = result[j], result[i]
        return result

    def base36_token(self, length: int = 8) -> str:
        """Return a random base36 token, used for generated ids."""
        return to_base36(self.random_int(0, 36**length)).rjust(length, "0")

    def getstate(self) -> object:
        return self._rng.getstate()

    def setstate(self, state: object) -> None:
        self._rng.setstate(state)


__all__ = ["SeededRandom", "to_base36"]
