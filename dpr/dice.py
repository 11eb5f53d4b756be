"""
Dice expressions and their expected values.

All damage in this engine is written in NdM+K notation: roll N dice with M
faces, sum them, and add a flat K (which may be negative). A bare number is a
flat amount with no dice. Critical hits double the dice, never the flat part,
so the two halves are kept apart in DamageDice.

There are two parsers. ``parse_damage`` is lenient: it is fed raw text a user
is still typing, so anything it cannot read becomes FALLBACK_DAMAGE (flagged
so traces can tell it apart from a real zero) instead of an exception.
``parse_damage_strict`` backs the typed records and raises ValidationError.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dpr.errors import ValidationError

if TYPE_CHECKING:
    from dpr.rng import SeededRandom

logger = logging.getLogger(__name__)

DICE_RE = re.compile(r"^\s*(\d*)\s*[dD]\s*(\d+)\s*(?:([+-])\s*(\d+))?\s*$")
FLAT_RE = re.compile(r"^\s*([+-]?\d+)\s*$")


@dataclass(frozen=True)
class DamageDice:
    """A parsed NdM+K expression."""

    count: int
    """N: how many dice are rolled. 0 for a flat amount."""

    die_size: int
    """M: faces per die. 0 when count is 0."""

    modifier: int = 0
    """K: flat amount added once, never doubled on a critical hit."""

    fallback: bool = False
    """True only for FALLBACK_DAMAGE, the lenient parser's stand-in for
    unreadable input. Lets a trace distinguish "could not parse" from a
    genuine 0."""

    @property
    def dice_average(self) -> float:
        """Expected total of the dice alone."""
        if self.count == 0:
            return 0.0
        return self.count * (self.die_size + 1) / 2

    @property
    def average(self) -> float:
        return self.dice_average + self.modifier

    @property
    def crit_average(self) -> float:
        """Expected damage on a critical hit: dice twice, modifier once."""
        return 2 * self.dice_average + self.modifier

    @property
    def variance(self) -> float:
        """Variance of the sum, from the uniform-die identity (M² − 1) / 12.

        The flat modifier shifts the distribution and contributes nothing.
        """
        if self.count == 0:
            return 0.0
        return self.count * (self.die_size ** 2 - 1) / 12

    @property
    def minimum(self) -> int:
        return max(0, self.count + self.modifier)

    @property
    def maximum(self) -> int:
        return self.count * self.die_size + self.modifier


FALLBACK_DAMAGE = DamageDice(0, 0, 0, fallback=True)
"""What the lenient parser returns for text it cannot read."""


def _match(expr: str) -> DamageDice | None:
    m = DICE_RE.match(expr)
    if m:
        count = int(m.group(1)) if m.group(1) else 1
        size = int(m.group(2))
        modifier = int(m.group(4) or 0)
        if m.group(3) == "-":
            modifier = -modifier
        if count < 1 or size < 1:
            return None
        return DamageDice(count, size, modifier)

    m = FLAT_RE.match(expr)
    if m:
        return DamageDice(0, 0, int(m.group(1)))
    return None


def parse_damage(expr: str | int | DamageDice | None) -> DamageDice:
    """Parse a damage expression, degrading to FALLBACK_DAMAGE on bad input.

    Accepts "2d6+3", "1d8-1", "d12", "2D6 + 3" and plain integers. Never
    raises, so a form bound to this function stays usable mid-edit.
    """
    if isinstance(expr, DamageDice):
        return expr
    if isinstance(expr, int) and not isinstance(expr, bool):
        return DamageDice(0, 0, expr)
    if isinstance(expr, str):
        parsed = _match(expr)
        if parsed is not None:
            return parsed
    logger.warning("unparseable damage expression %r, using fallback", expr)
    return FALLBACK_DAMAGE


def parse_damage_strict(expr: str | int | DamageDice, field: str = "damage") -> DamageDice:
    """Parse a damage expression, raising ValidationError on bad input."""
    if isinstance(expr, DamageDice):
        if expr.fallback:
            raise ValidationError(field, expr, "fallback damage is not a valid value")
        return expr
    if isinstance(expr, int) and not isinstance(expr, bool):
        return DamageDice(0, 0, expr)
    if isinstance(expr, str):
        parsed = _match(expr)
        if parsed is not None:
            return parsed
    raise ValidationError(field, expr, "expected a dice expression like '2d6+3'")


def format_damage(dice: DamageDice) -> str:
    """Inverse of parse_damage for well-formed expressions."""
    if dice.count == 0:
        return str(dice.modifier)
    text = f"{dice.count}d{dice.die_size}"
    if dice.modifier > 0:
        text += f"+{dice.modifier}"
    elif dice.modifier < 0:
        text += str(dice.modifier)
    return text


def average(expr: str | DamageDice) -> float:
    """count * (die_size + 1) / 2 + modifier."""
    return parse_damage(expr).average


def variance(expr: str | DamageDice) -> float:
    """count * (die_size² − 1) / 12."""
    return parse_damage(expr).variance


def die_distribution(size: int) -> dict[int, float]:
    """Face -> probability for one fair die."""
    return {face: 1 / size for face in range(1, size + 1)}


def gwf_die_distribution(size: int) -> dict[int, float]:
    """Face -> probability for one die under Great Weapon Fighting.

    A 1 or 2 is rerolled once and the new result kept, even if it is another
    1 or 2. So every face keeps its share of fresh rerolls, and faces above 2
    also keep their own first-roll share.
    """
    rerolled = min(2, size) / size
    return {
        face: (1 / size if face > 2 else 0.0) + rerolled / size
        for face in range(1, size + 1)
    }


def gwf_average_approx(size: int) -> float:
    """The shortcut formula ((n−2)/n)·avg + (2/n)·avg.

    Approximation: the two terms add back up to the plain average, so this
    never shows any Great Weapon Fighting gain. It exists for the approximate
    evaluation mode; gwf_average models the reroll exactly.
    """
    avg = (size + 1) / 2
    return ((size - 2) / size) * avg + (2 / size) * avg


def gwf_average(dice: DamageDice, approximate: bool = False) -> float:
    """Expected value of the dice part plus modifier with GWF rerolls."""
    if dice.count == 0:
        return float(dice.modifier)
    if approximate:
        per_die = gwf_average_approx(dice.die_size)
    else:
        per_die = sum(f * p for f, p in gwf_die_distribution(dice.die_size).items())
    return dice.count * per_die + dice.modifier


def dice_only_average(
    dice: DamageDice,
    gwf: bool = False,
    approximate: bool = False,
    elemental_adept: bool = False,
) -> float:
    """Expected total of the dice, without the modifier."""
    if elemental_adept:
        if dice.count == 0:
            return 0.0
        if not gwf:
            return elemental_adept_average(dice) - dice.modifier
        single = face_distribution(dice.die_size, gwf, elemental_adept)
        return dice.count * sum(f * p for f, p in single.items())
    if gwf:
        return gwf_average(dice, approximate) - dice.modifier
    return dice.dice_average


def elemental_adept_average(dice: DamageDice) -> float:
    """Expected damage when every 1 on a die counts as a 2."""
    if dice.count == 0:
        return float(dice.modifier)
    face_sum = dice.die_size * (dice.die_size + 1) / 2
    return dice.count * (face_sum + 1) / dice.die_size + dice.modifier


def face_distribution(size: int, gwf: bool = False, elemental_adept: bool = False) -> dict[int, float]:
    """Face -> probability for one die, with GWF rerolls applied before the
    Elemental Adept floor of 2."""
    single = gwf_die_distribution(size) if gwf else die_distribution(size)
    if not elemental_adept:
        return single
    floored: dict[int, float] = {}
    for face, p in single.items():
        floored[max(face, 2)] = floored.get(max(face, 2), 0.0) + p
    return floored


def dice_distribution(
    count: int, size: int, gwf: bool = False, elemental_adept: bool = False
) -> dict[int, float]:
    """Total -> probability for ``count`` dice of ``size`` faces.

    Built by repeated convolution of the single-die distribution. Used for
    bonus dice on attack rolls (Bless, Bardic Inspiration) where the exact
    spread matters at the hit threshold, and for damage against a resistant
    target, where halving floors every roll.
    """
    if count == 0:
        return {0: 1.0}
    single = face_distribution(size, gwf, elemental_adept)
    dist = {0: 1.0}
    for _ in range(count):
        nxt: dict[int, float] = {}
        for total, p in dist.items():
            for face, q in single.items():
                if q:
                    nxt[total + face] = nxt.get(total + face, 0.0) + p * q
        dist = nxt
    return dist


def roll_dice(
    dice: DamageDice,
    rng: SeededRandom,
    gwf: bool = False,
    crit: bool = False,
    elemental_adept: bool = False,
) -> int:
    """Roll an expression with a seeded source.

    On a critical hit the dice are rolled twice as many times; the modifier
    is added once. Under GWF a 1 or 2 is rerolled once. With Elemental Adept
    a 1 counts as a 2.
    """
    total = dice.modifier
    for _ in range(dice.count * (2 if crit else 1)):
        face = rng.roll_die(dice.die_size)
        if gwf and face <= 2:
            face = rng.roll_die(dice.die_size)
        if elemental_adept:
            face = max(face, 2)
        total += face
    return total
