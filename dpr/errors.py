"""Exceptions raised by the DPR engine."""

from __future__ import annotations

from typing import Any


class ValidationError(ValueError):
    """An input record or parameter violates the engine's numeric contract.

    Raised by record constructors and by the strict evaluation paths
    (evaluator, power-attack solver, allocator, Monte Carlo parameters).
    ``field`` names the offending input and ``value`` is what was received.
    """

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"invalid {field}={value!r}: {reason}")


class SimulationCancelled(RuntimeError):
    """A Monte Carlo run was cancelled before any trial completed."""
