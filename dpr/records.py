"""Structured input and result records for the DPR engine.

Inputs (AttackProfile, Target, Rider, Build, CombatContext, ...) are frozen
dataclasses whose constructors validate the numeric contract and raise
ValidationError naming the offending field. Loose dictionaries are only
accepted through ``dpr.adapters``.

Results (DPRResult, PowerAttackAnalysis, MonteCarloResult, ...) are plain
dataclasses built fresh for every call. They carry enough detail for both the
TextRenderer and the Streamlit page to explain where the numbers came from.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Callable, Literal

from dpr.dice import DamageDice, parse_damage_strict
from dpr.errors import ValidationError
from dpr.types import (
    ABILITIES,
    ADVANTAGE_STATES,
    DAMAGE_TYPES,
    POWER_ATTACK_POLICIES,
    RIDER_POLICIES,
    AdvantageState,
    PowerAttackPolicy,
    Recommendation,
    RiderPolicy,
    SimulationStatus,
)

RIDER_CONDITIONS: dict[str, Callable[[AdvantageState], bool]] = {
    "always": lambda state: True,
    "advantage": lambda state: state in ("advantage", "elven_accuracy"),
    "no_disadvantage": lambda state: state != "disadvantage",
}
"""Named activation conditions for once-per-turn riders, evaluated against
the advantage state of the attack the rider would land on. Conditions are
referenced by name so records stay plain data."""


def _check_int(name: str, value: object, low: int | None = None, high: int | None = None) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(name, value, "must be an integer")
    if low is not None and value < low:
        raise ValidationError(name, value, f"must be at least {low}")
    if high is not None and value > high:
        raise ValidationError(name, value, f"must be at most {high}")


def _check_choice(name: str, value: object, choices: Iterable[object]) -> None:
    choices = tuple(choices)
    if value not in choices:
        raise ValidationError(name, value, f"expected one of {choices}")


def _damage_types(name: str, values: Iterable[str]) -> frozenset[str]:
    if isinstance(values, str):
        values = [values]
    result = frozenset(v.lower() for v in values)
    for v in result:
        _check_choice(name, v, DAMAGE_TYPES)
    return result


def _uses(name: str, value: int | None) -> None:
    if value is not None:
        _check_int(name, value, low=0)


# -----------------------------------------------------------
# Inputs
# -----------------------------------------------------------


@dataclass(frozen=True)
class AttackProfile:
    """One attack roll a build makes each turn."""

    name: str
    to_hit: int
    """Added to the d20."""

    damage: str
    """Dice expression, e.g. "1d8+3"."""

    damage_type: str = "slashing"

    crit_range: int = 1
    """How many of the top d20 faces crit: 1 is 20 only, 2 is 19-20."""

    advantage: AdvantageState = "normal"

    great_weapon_fighting: bool = False
    """Reroll 1s and 2s on damage dice once."""

    power_attack: bool = False
    """Eligible for the −5 to hit / +10 damage trade."""

    tags: frozenset[str] = frozenset()
    """Free-form descriptors ("melee", "finesse", "ranged", ...) that riders
    can require."""

    halfling_luck: bool = False
    """Reroll a natural 1 on the attack d20 once."""

    elemental_adept: bool = False
    """Damage dice that roll a 1 count as a 2."""

    def __post_init__(self) -> None:
        _check_int("to_hit", self.to_hit)
        _check_int("crit_range", self.crit_range, 1, 20)
        _check_choice("advantage", self.advantage, ADVANTAGE_STATES)
        parse_damage_strict(self.damage, "damage")
        object.__setattr__(self, "damage_type", self.damage_type.lower())
        _check_choice("damage_type", self.damage_type, DAMAGE_TYPES)
        object.__setattr__(self, "tags", frozenset(self.tags))

    @property
    def dice(self) -> DamageDice:
        return parse_damage_strict(self.damage, "damage")


@dataclass(frozen=True)
class Target:
    """The creature being attacked. Immutable for the whole evaluation."""

    armor_class: int
    resistances: frozenset[str] = frozenset()
    immunities: frozenset[str] = frozenset()
    vulnerabilities: frozenset[str] = frozenset()
    save_bonus: Mapping[str, int] = field(default_factory=dict)
    """Ability -> saving throw bonus. Missing abilities save at +0."""

    magic_resistance: bool = False
    """Advantage on saves against spells."""

    legendary_resistances: int = 0
    """Failed saves the target may turn into successes, once each per encounter."""

    name: str = "Target"

    def __post_init__(self) -> None:
        _check_int("armor_class", self.armor_class, low=1)
        _check_int("legendary_resistances", self.legendary_resistances, low=0)
        for name in ("resistances", "immunities", "vulnerabilities"):
            object.__setattr__(self, name, _damage_types(name, getattr(self, name)))
        bonuses = dict(self.save_bonus)
        for ability, bonus in bonuses.items():
            _check_choice("save_bonus", ability, ABILITIES)
            _check_int(f"save_bonus[{ability}]", bonus)
        object.__setattr__(self, "save_bonus", bonuses)

    def save(self, ability: str) -> int:
        return self.save_bonus.get(ability, 0)


@dataclass(frozen=True)
class Rider:
    """Bonus damage usable at most once per turn (Sneak Attack, Divine Smite)."""

    name: str
    damage: str
    damage_type: str | None = None
    """None means "whatever the attack it lands on deals"."""

    doubles_on_crit: bool = True
    condition: str = "always"
    """Key into RIDER_CONDITIONS."""

    requires_tags: frozenset[str] = frozenset()
    """The attack must carry all of these tags for the rider to land on it."""

    crit_only: bool = False
    """Only spent on a critical hit (a smite-on-crit policy)."""

    priority: int = 0
    """Higher goes first under the "priority" policy."""

    uses: int | None = None
    """Per-encounter limit (spell slots, superiority dice). None is unlimited."""

    def __post_init__(self) -> None:
        parse_damage_strict(self.damage, f"riders[{self.name}].damage")
        if self.damage_type is not None:
            object.__setattr__(self, "damage_type", self.damage_type.lower())
            _check_choice("damage_type", self.damage_type, DAMAGE_TYPES)
        _check_choice("condition", self.condition, RIDER_CONDITIONS)
        _check_int("priority", self.priority)
        _uses("uses", self.uses)
        object.__setattr__(self, "requires_tags", frozenset(self.requires_tags))

    @property
    def dice(self) -> DamageDice:
        return parse_damage_strict(self.damage)

    def qualifies(self, attack: AttackProfile, state: AdvantageState) -> bool:
        """Whether this rider may land on ``attack`` rolled under ``state``."""
        return self.requires_tags <= attack.tags and RIDER_CONDITIONS[self.condition](state)


@dataclass(frozen=True)
class PerHitBonus:
    """Extra damage on every hit (Hunter's Mark, Hex)."""

    name: str
    damage: str
    damage_type: str | None = None
    doubles_on_crit: bool = True

    def __post_init__(self) -> None:
        parse_damage_strict(self.damage, f"per_hit[{self.name}].damage")
        if self.damage_type is not None:
            object.__setattr__(self, "damage_type", self.damage_type.lower())
            _check_choice("damage_type", self.damage_type, DAMAGE_TYPES)

    @property
    def dice(self) -> DamageDice:
        return parse_damage_strict(self.damage)


@dataclass(frozen=True)
class SaveEffect:
    """A damaging spell the target saves against, usually for half."""

    name: str
    dc: int
    ability: str
    damage: str
    damage_type: str
    half_on_save: bool = True
    uses: int | None = None
    """Casts available in the encounter; None casts every round."""

    elemental_adept: bool = False
    """Damage dice that roll a 1 count as a 2."""

    def __post_init__(self) -> None:
        _check_int("dc", self.dc, low=1)
        _check_choice("ability", self.ability, ABILITIES)
        parse_damage_strict(self.damage, f"spells[{self.name}].damage")
        object.__setattr__(self, "damage_type", self.damage_type.lower())
        _check_choice("damage_type", self.damage_type, DAMAGE_TYPES)
        _uses("uses", self.uses)

    @property
    def dice(self) -> DamageDice:
        return parse_damage_strict(self.damage)


@dataclass(frozen=True)
class Build:
    """Everything a character does in one turn."""

    name: str
    attacks: tuple[AttackProfile, ...] = ()
    riders: tuple[Rider, ...] = ()
    per_hit: tuple[PerHitBonus, ...] = ()
    spells: tuple[SaveEffect, ...] = ()
    elven_accuracy: bool = False
    """Advantage on this build's attacks becomes a roll of three d20s."""

    def __post_init__(self) -> None:
        for name, kind in (
            ("attacks", AttackProfile),
            ("riders", Rider),
            ("per_hit", PerHitBonus),
            ("spells", SaveEffect),
        ):
            items = tuple(getattr(self, name))
            for item in items:
                if not isinstance(item, kind):
                    raise ValidationError(name, item, f"expected {kind.__name__}")
            object.__setattr__(self, name, items)


@dataclass(frozen=True)
class CombatContext:
    """Tactical settings for one evaluation."""

    advantage: AdvantageState | None = None
    """Overrides every attack's own advantage state when set."""

    rounds: int = 1
    bonus_dice: tuple[str, ...] = ()
    """Dice added to every attack roll, e.g. ("1d4",) for Bless."""

    approximate: bool = False
    """Use expectation shortcuts for bonus dice and GWF instead of exact
    distributions."""

    include_crits: bool = True
    """When False, critical hits are not modelled: every hit deals normal
    damage."""

    power_attack: PowerAttackPolicy = "never"
    rider_policy: RiderPolicy = "optimal"
    rider_order: tuple[str, ...] = ()
    """Rider names in preference order for the "always" policy."""

    def __post_init__(self) -> None:
        if self.advantage is not None:
            _check_choice("advantage", self.advantage, ADVANTAGE_STATES)
        _check_int("rounds", self.rounds, low=1)
        bonus = tuple(self.bonus_dice)
        for expr in bonus:
            parse_damage_strict(expr, "bonus_dice")
        object.__setattr__(self, "bonus_dice", bonus)
        _check_choice("power_attack", self.power_attack, POWER_ATTACK_POLICIES)
        _check_choice("rider_policy", self.rider_policy, RIDER_POLICIES)
        object.__setattr__(self, "rider_order", tuple(self.rider_order))

    @property
    def bonus(self) -> tuple[DamageDice, ...]:
        return tuple(parse_damage_strict(expr, "bonus_dice") for expr in self.bonus_dice)

    def state_for(self, attack: AttackProfile, elven_accuracy: bool = False) -> AdvantageState:
        """The advantage state ``attack`` is actually rolled with."""
        state = self.advantage or attack.advantage
        if state == "advantage" and elven_accuracy:
            return "elven_accuracy"
        return state


# -----------------------------------------------------------
# Deterministic results
# -----------------------------------------------------------


@dataclass
class AttackBreakdown:
    """Expected damage of one attack, with the pieces it was built from."""

    name: str
    hit_chance: float
    crit_chance: float
    normal_damage: float
    """Damage of a non-critical hit after resistances."""

    crit_damage: float
    """Damage of a critical hit after resistances."""

    expected_damage: float
    damage_type: str = ""
    state: AdvantageState = "normal"
    power_attack: bool = False


@dataclass
class DPRBreakdown:
    weapon_damage: float = 0.0
    once_per_turn: float = 0.0
    spell_damage: float = 0.0
    other_sources: float = 0.0

    @property
    def total(self) -> float:
        return self.weapon_damage + self.once_per_turn + self.spell_damage + self.other_sources


@dataclass
class DPRConditions:
    """Total DPR recomputed with every attack forced to each state."""

    normal: float
    advantage: float
    disadvantage: float
    elven_accuracy: float | None = None


@dataclass
class RiderCandidate:
    name: str
    satisfied: bool
    expected_damage: float


@dataclass
class RiderSelection:
    """Which once-per-turn rider the allocator applied, and why."""

    selected: str | None
    expected_damage: float
    policy: RiderPolicy
    candidates: list[RiderCandidate] = field(default_factory=list)
    reasoning: str = ""


@dataclass
class PowerAttackAnalysis:
    normal_dpr: float
    power_attack_dpr: float
    break_even_ac: int
    recommendation: Recommendation
    threshold: float
    method: Literal["closed_form", "sweep"] = "closed_form"

    @property
    def delta(self) -> float:
        return self.power_attack_dpr - self.normal_dpr


@dataclass
class PowerAttackRow:
    """One AC of a power attack sweep."""

    ac: int
    normal_dpr: float
    power_attack_dpr: float
    recommendation: Recommendation

    @property
    def delta(self) -> float:
        return self.power_attack_dpr - self.normal_dpr


@dataclass
class DPRResult:
    total: float
    by_round: list[float]
    breakdown: DPRBreakdown
    conditions: DPRConditions
    attacks: list[AttackBreakdown] = field(default_factory=list)
    """Per-attack trace for the explain view."""

    once_per_turn: RiderSelection | None = None
    power_attack: PowerAttackAnalysis | None = None
    hit_chances: dict[str, float] = field(default_factory=dict)
    crit_chances: dict[str, float] = field(default_factory=dict)


# -----------------------------------------------------------
# Monte Carlo results
# -----------------------------------------------------------


@dataclass
class TrialResult:
    """One simulated encounter."""

    damage_by_round: list[float] = field(default_factory=list)
    hits: int = 0
    crits: int = 0
    attacks: int = 0

    @property
    def total(self) -> float:
        return sum(self.damage_by_round)


@dataclass
class ConfidenceInterval:
    lower: float
    upper: float
    margin: float


@dataclass
class RoundStats:
    mean: list[float] = field(default_factory=list)
    confidence_interval: list[ConfidenceInterval] = field(default_factory=list)


@dataclass
class DamageStats:
    mean: float
    median: float
    variance: float
    standard_deviation: float
    percentiles: dict[int, float]
    confidence_interval: ConfidenceInterval
    by_round: RoundStats = field(default_factory=RoundStats)


@dataclass
class AccuracyStats:
    hit_rate: float = 0.0
    crit_rate: float = 0.0


@dataclass
class Insights:
    """Presentation heuristics, not statistical claims."""

    optimal_rounds: list[int] = field(default_factory=list)
    weakest_rounds: list[int] = field(default_factory=list)
    best_strategies: list[str] = field(default_factory=list)
    risk_factors: list[str] = field(default_factory=list)


@dataclass
class MonteCarloResult:
    runs: int
    """Trials actually completed; less than ``iterations`` if cancelled."""

    seed: int
    iterations: int
    damage: DamageStats
    accuracy: AccuracyStats
    insights: Insights
    status: SimulationStatus = "completed"
    samples: list[float] = field(default_factory=list)
    """Per-trial totals in trial order."""


@dataclass
class SimulationProgress:
    completed: int
    total: int

    @property
    def fraction(self) -> float:
        return self.completed / self.total if self.total else 1.0
