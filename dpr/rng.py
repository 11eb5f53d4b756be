"""
Seeded pseudo-random source for reproducible Monte Carlo runs.

A linear congruential generator with the Numerical Recipes constants. It is
not a good generator by modern standards, but it is tiny, portable, and its
output is a pure function of the seed, which is the property the simulator
needs: the same (seed, iterations, scenario) must replay bit for bit.

Every simulation run constructs its own SeededRandom; instances are never
shared between runs or threads.
"""

from __future__ import annotations

from dpr.errors import ValidationError
from dpr.types import AdvantageState


class SeededRandom:
    """LCG: state = (a * state + c) mod m."""

    a: int = 1664525
    c: int = 1013904223
    m: int = 2 ** 32

    def __init__(self, seed: int) -> None:
        if isinstance(seed, bool) or not isinstance(seed, int):
            raise ValidationError("seed", seed, "an explicit integer seed is required")
        self.seed = seed
        self.state = seed % self.m

    def next(self) -> float:
        """Advance the generator and return a float in [0, 1)."""
        self.state = (self.a * self.state + self.c) % self.m
        return self.state / self.m

    def randint(self, low: int, high: int) -> int:
        """Uniform integer in [low, high], both inclusive."""
        return int(self.next() * (high - low + 1)) + low

    def roll_die(self, sides: int) -> int:
        return self.randint(1, sides)

    def roll_d20(self, state: AdvantageState = "normal", halfling_luck: bool = False) -> int:
        """Roll the d20 for an attack or save under an advantage state.

        With halfling luck each die that shows a 1 is rerolled once.
        """
        if state == "advantage":
            return max(self._d20(halfling_luck), self._d20(halfling_luck))
        if state == "disadvantage":
            return min(self._d20(halfling_luck), self._d20(halfling_luck))
        if state == "elven_accuracy":
            return max(self._d20(halfling_luck), self._d20(halfling_luck), self._d20(halfling_luck))
        return self._d20(halfling_luck)

    def _d20(self, halfling_luck: bool) -> int:
        face = self.roll_die(20)
        if halfling_luck and face == 1:
            face = self.roll_die(20)
        return face
