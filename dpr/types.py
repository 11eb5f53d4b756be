"""
Domain-specific type aliases for the DPR engine.

These aren't used for runtime type checking by themselves; the record
constructors in ``dpr.records`` validate against the tuples defined here.
They exist to make signatures self-documenting: a parameter typed as
AdvantageState is one of the recognized d20 rolling modes, not an
arbitrary string.
"""

from typing import Literal, TypeAlias

# How the d20 is rolled for an attack or a save.
AdvantageState: TypeAlias = Literal[
    "normal",
    "advantage",
    "disadvantage",
    # Roll three d20s and keep the best. Only reachable through advantage,
    # so builds opt in with Build.elven_accuracy.
    "elven_accuracy",
]

ADVANTAGE_STATES: tuple[AdvantageState, ...] = (
    "normal", "advantage", "disadvantage", "elven_accuracy",
)

DamageType: TypeAlias = Literal[
    "acid",
    "bludgeoning",
    "cold",
    "fire",
    "force",
    "lightning",
    "necrotic",
    "piercing",
    "poison",
    "psychic",
    "radiant",
    "slashing",
    "thunder",
]

DAMAGE_TYPES: tuple[DamageType, ...] = (
    "acid", "bludgeoning", "cold", "fire", "force", "lightning",
    "necrotic", "piercing", "poison", "psychic", "radiant", "slashing",
    "thunder",
)

Ability: TypeAlias = Literal["str", "dex", "con", "int", "wis", "cha"]

ABILITIES: tuple[Ability, ...] = ("str", "dex", "con", "int", "wis", "cha")

# Which once-per-turn rider wins when several qualify.
RiderPolicy: TypeAlias = Literal[
    "optimal",  # highest expected damage among satisfied riders
    "always",  # first satisfied rider in the configured order
    "priority",  # first satisfied rider by descending Rider.priority
]

RIDER_POLICIES: tuple[RiderPolicy, ...] = ("optimal", "always", "priority")

# Whether the evaluator trades to-hit for damage on eligible attacks.
PowerAttackPolicy: TypeAlias = Literal["never", "always", "optimal"]

POWER_ATTACK_POLICIES: tuple[PowerAttackPolicy, ...] = ("never", "always", "optimal")

Recommendation: TypeAlias = Literal["use", "avoid", "neutral"]

SimulationStatus: TypeAlias = Literal["completed", "cancelled"]
