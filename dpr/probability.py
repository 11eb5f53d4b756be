"""
Probability algebra for d20 attack rolls, critical hits and saving throws.

Everything here is closed form. A single d20 against a target number gives a
linear hit chance, floored at 5% and capped at 95% because a natural 1
always misses and a natural 20 always hits. Rolling several d20s and keeping
one is then a transform of that single-die chance:

    advantage(p)      = 1 − (1 − p)²     keep the higher of two
    disadvantage(p)   = p²                keep the lower of two
    elven_accuracy(p) = 1 − (1 − p)³     keep the highest of three

The clamp belongs to the single die. The transforms are applied after it and
are exact, so advantage against an AC you only miss on a natural 1 is
1 − 0.05² = 0.9975, not 0.95.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Callable

from dpr.cache import MemoCache, cached_call
from dpr.dice import DamageDice, dice_distribution
from dpr.errors import ValidationError
from dpr.types import ADVANTAGE_STATES, AdvantageState

MIN_CHANCE = 0.05
MAX_CHANCE = 0.95


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def hit_chance(to_hit: float, ac: float) -> float:
    """Chance one d20 plus ``to_hit`` meets or beats ``ac``.

    The needed face is bounded to [2, 20]: a 1 never hits and a 20 always
    does, whatever the numbers say.
    """
    needed = max(2, min(20, ac - to_hit))
    return clamp((21 - needed) / 20, MIN_CHANCE, MAX_CHANCE)


def advantage(p: float) -> float:
    return 1 - (1 - p) ** 2


def disadvantage(p: float) -> float:
    return p * p


def elven_accuracy(p: float) -> float:
    return 1 - (1 - p) ** 3


TRANSFORMS: dict[AdvantageState, Callable[[float], float]] = {
    "normal": lambda p: p,
    "advantage": advantage,
    "disadvantage": disadvantage,
    "elven_accuracy": elven_accuracy,
}


def apply_state(p: float, state: AdvantageState) -> float:
    """Turn a single-die chance into the chance under ``state``."""
    try:
        return TRANSFORMS[state](p)
    except KeyError:
        raise ValidationError("advantage", state, f"expected one of {ADVANTAGE_STATES}") from None


def crit_chance(crit_range: int, state: AdvantageState = "normal") -> float:
    """Chance of a critical hit when the top ``crit_range`` faces crit."""
    if isinstance(crit_range, bool) or not isinstance(crit_range, int) or not 1 <= crit_range <= 20:
        raise ValidationError("crit_range", crit_range, "must be an integer in [1, 20]")
    return apply_state(crit_range / 20, state)


def calculate_hit_probability(
    to_hit: float,
    ac: float,
    state: AdvantageState = "normal",
    cache: MemoCache | None = None,
    halfling_luck: bool = False,
) -> float:
    """Hit chance for one attack roll under an advantage state."""
    if cache is not None:
        return cached_call(cache, _hit_probability, to_hit, ac, state, halfling_luck)
    return _hit_probability(to_hit, ac, state, halfling_luck)


def _hit_probability(to_hit: float, ac: float, state: AdvantageState, halfling_luck: bool = False) -> float:
    base = halfling_luck_hit_chance(to_hit, ac) if halfling_luck else hit_chance(to_hit, ac)
    return apply_state(base, state)


def bonus_distribution(bonus_dice: Sequence[DamageDice]) -> dict[int, float]:
    """Distribution of the summed bonus dice (and their flat parts)."""
    dist = {0: 1.0}
    for dice in bonus_dice:
        single = dice_distribution(dice.count, dice.die_size) if dice.count else {0: 1.0}
        nxt: dict[int, float] = {}
        for total, p in dist.items():
            for value, q in single.items():
                key = total + value + dice.modifier
                nxt[key] = nxt.get(key, 0.0) + p * q
        dist = nxt
    return dist


def hit_chance_with_bonus(
    to_hit: float,
    ac: float,
    bonus_dice: Sequence[DamageDice] = (),
    state: AdvantageState = "normal",
    approximate: bool = False,
    halfling_luck: bool = False,
) -> float:
    """Hit chance when dice such as Bless are added to the attack roll.

    The exact form weighs the hit chance at every possible bonus total by
    that total's probability. Natural 1s and 20s are properties of the d20
    face, so they still hold for every term. The approximate form just adds
    the bonus's expectation to ``to_hit``; it is off wherever the bonus
    straddles the 5%/95% bounds.
    """
    if not bonus_dice:
        return _hit_probability(to_hit, ac, state, halfling_luck)
    if approximate:
        expected = sum(d.average for d in bonus_dice)
        return _hit_probability(to_hit + expected, ac, state, halfling_luck)
    return sum(
        q * _hit_probability(to_hit + bonus, ac, state, halfling_luck)
        for bonus, q in bonus_distribution(bonus_dice).items()
    )


def save_success_chance(dc: int, save_bonus: int, magic_resistance: bool = False) -> float:
    """Chance the target makes its save; magic resistance rolls it with advantage."""
    base = hit_chance(save_bonus, dc)
    return advantage(base) if magic_resistance else base


def save_failure_chance(dc: int, save_bonus: int, magic_resistance: bool = False) -> float:
    return 1 - save_success_chance(dc, save_bonus, magic_resistance)


def halfling_luck_hit_chance(to_hit: float, ac: float) -> float:
    """Hit chance when a natural 1 is rerolled once.

    The 1/20 of rolls that come up 1 get a second try at the same chance.
    When only a natural 20 hits, the chance stays at the 5% floor.
    """
    if ac - to_hit >= 20:
        return MIN_CHANCE
    p = hit_chance(to_hit, ac)
    return p + p / 20
