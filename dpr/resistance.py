"""
Damage-type resolution against a target's immunities, resistances and
vulnerabilities.

The precedence is fixed: immunity, then resistance, then vulnerability. Only
the first matching branch applies, so a target listed as both resistant and
vulnerable to a type takes half damage.
"""

from __future__ import annotations

from math import floor
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dpr.records import Target


def apply_resistance(damage: float, damage_type: str, target: Target) -> float:
    """Damage after the target's defences against ``damage_type``.

    Resistance halves and rounds down: 7 becomes 3.
    """
    damage_type = damage_type.lower()
    if damage_type in target.immunities:
        return 0
    if damage_type in target.resistances:
        return floor(damage / 2)
    if damage_type in target.vulnerabilities:
        return damage * 2
    return damage


def is_modified(damage_type: str, target: Target) -> bool:
    """Whether any of the three sets mentions ``damage_type``."""
    damage_type = damage_type.lower()
    return (
        damage_type in target.immunities
        or damage_type in target.resistances
        or damage_type in target.vulnerabilities
    )
