"""
Power attack analysis (Great Weapon Master, Sharpshooter).

A power attack trades a flat penalty to hit for flat extra damage, −5/+10 by
default. Whether that pays depends on the target's AC, and the AC where both
options have equal expected damage is the break-even AC.

With hit chance p = (21 − AC + to_hit) / 20 and per-hit damage d, the two
expectations meet where

    p · d = (p − penalty/20) · (d + bonus)

which solves to

    AC = to_hit + 21 − penalty · (d + bonus) / bonus

Critical hits drop out of the comparison since the penalty never changes
the crit chance and the bonus is not doubled. The relation only holds on the
linear stretch of the d20, so the closed form is used only when nothing bends
it (advantage, bonus dice, resistance, the 5%/95% bounds); otherwise the AC
range is swept for the sign change.
"""

from __future__ import annotations

import dataclasses
import logging
from math import floor

from dpr.damage import evaluate_attack, resolved_damage
from dpr.records import AttackProfile, Build, CombatContext, PowerAttackAnalysis, PowerAttackRow, Target
from dpr.resistance import is_modified
from dpr.types import ADVANTAGE_STATES, AdvantageState, Recommendation

logger = logging.getLogger(__name__)

PENALTY = 5
BONUS = 10

MIN_AC = 1
MAX_AC = 30

DEFAULT_THRESHOLD = 0.5
"""Expected damage gain needed before a power attack is recommended."""


def closed_form_break_even(
    to_hit: int,
    damage_average: float,
    penalty: int = PENALTY,
    bonus: int = BONUS,
) -> int:
    """Break-even AC from the linear hit-chance relation, rounded half up and
    clamped to [1, 30]."""
    exact = to_hit + 21 - penalty * (damage_average + bonus) / bonus
    return max(MIN_AC, min(MAX_AC, floor(exact + 0.5)))


def recommend(delta: float, threshold: float = DEFAULT_THRESHOLD) -> Recommendation:
    if delta > threshold:
        return "use"
    if delta < -threshold:
        return "avoid"
    return "neutral"


def compare(
    attack: AttackProfile,
    target: Target,
    context: CombatContext | None = None,
    *,
    penalty: int = PENALTY,
    bonus: int = BONUS,
    elven_accuracy: bool = False,
) -> tuple[float, float]:
    """(normal, power attack) expected damage of one attack."""
    normal = evaluate_attack(attack, target, context, elven_accuracy=elven_accuracy)
    power = evaluate_attack(
        attack,
        target,
        context,
        to_hit_delta=-penalty,
        damage_bonus=bonus,
        elven_accuracy=elven_accuracy,
    )
    return normal.expected_damage, power.expected_damage


def _linear(attack: AttackProfile, ac: int, penalty: int, include_crits: bool) -> bool:
    """Whether both hit chances at ``ac`` sit on the unbounded d20 line."""
    for to_hit in (attack.to_hit, attack.to_hit - penalty):
        needed = ac - to_hit
        if not 2 <= needed <= 20:
            return False
        if include_crits and (21 - needed) < attack.crit_range:
            return False
    return True


def break_even_ac(
    attack: AttackProfile,
    target: Target,
    context: CombatContext | None = None,
    *,
    penalty: int = PENALTY,
    bonus: int = BONUS,
    elven_accuracy: bool = False,
) -> tuple[int, str]:
    """The AC where the two options cross, and how it was found.

    The sweep returns the first AC where the power attack no longer gains.
    The closed form rounds the exact crossing to the nearest AC, so it can
    land one below the sweep: at that AC the power attack may still be
    slightly ahead. If it is better across the whole range the result is 30,
    if never better it is 1.
    """
    context = context or CombatContext()
    if (
        context.state_for(attack, elven_accuracy) == "normal"
        and not context.bonus_dice
        and not attack.halfling_luck
        and not is_modified(attack.damage_type, target)
    ):
        damage = resolved_damage(
            attack.dice,
            attack.damage_type,
            target,
            gwf=attack.great_weapon_fighting,
            approximate=context.approximate,
            elemental_adept=attack.elemental_adept,
        )
        ac = closed_form_break_even(attack.to_hit, damage, penalty, bonus)
        if _linear(attack, ac, penalty, context.include_crits):
            return ac, "closed_form"

    for ac in range(MIN_AC, MAX_AC + 1):
        normal, power = compare(
            attack,
            dataclasses.replace(target, armor_class=ac),
            context,
            penalty=penalty,
            bonus=bonus,
            elven_accuracy=elven_accuracy,
        )
        if power - normal <= 1e-9:
            return ac, "sweep"
    return MAX_AC, "sweep"


def analyze_power_attack(
    attack: AttackProfile,
    target: Target,
    context: CombatContext | None = None,
    threshold: float = DEFAULT_THRESHOLD,
    *,
    penalty: int = PENALTY,
    bonus: int = BONUS,
    elven_accuracy: bool = False,
) -> PowerAttackAnalysis:
    """Compare one attack with and without the power attack trade."""
    normal, power = compare(
        attack, target, context, penalty=penalty, bonus=bonus, elven_accuracy=elven_accuracy
    )
    ac, method = break_even_ac(
        attack, target, context, penalty=penalty, bonus=bonus, elven_accuracy=elven_accuracy
    )
    analysis = PowerAttackAnalysis(
        normal_dpr=normal,
        power_attack_dpr=power,
        break_even_ac=ac,
        recommendation=recommend(power - normal, threshold),
        threshold=threshold,
        method=method,
    )
    logger.debug(
        "power attack for %s vs AC %d: %+.3f (%s), break-even AC %d via %s",
        attack.name, target.armor_class, analysis.delta, analysis.recommendation, ac, method,
    )
    return analysis


def power_attack_sweep(
    attack: AttackProfile,
    target: Target,
    context: CombatContext | None = None,
    ac_range: tuple[int, int] = (10, 25),
    threshold: float = DEFAULT_THRESHOLD,
) -> list[PowerAttackRow]:
    """Normal and power attack damage at every AC in ``ac_range`` (inclusive)."""
    low, high = ac_range
    rows = []
    for ac in range(low, high + 1):
        normal, power = compare(attack, dataclasses.replace(target, armor_class=ac), context)
        rows.append(PowerAttackRow(ac, normal, power, recommend(power - normal, threshold)))
    return rows


def break_even_by_state(
    attack: AttackProfile,
    target: Target,
    context: CombatContext | None = None,
) -> dict[AdvantageState, int]:
    """Break-even AC under each way of rolling the d20."""
    context = context or CombatContext()
    return {
        state: break_even_ac(attack, target, dataclasses.replace(context, advantage=state))[0]
        for state in ADVANTAGE_STATES
    }


def plan_power_attacks(
    build: Build,
    target: Target,
    context: CombatContext | None = None,
    threshold: float = DEFAULT_THRESHOLD,
) -> tuple[list[bool], PowerAttackAnalysis | None]:
    """Which of ``build``'s attacks take the trade under the context's policy.

    The returned analysis is for the first eligible attack, so callers see the
    recommendation even under the "never" policy.
    """
    context = context or CombatContext()
    analysis = None
    plan = []
    for attack in build.attacks:
        if not attack.power_attack:
            plan.append(False)
            continue
        attack_analysis = analyze_power_attack(
            attack, target, context, threshold, elven_accuracy=build.elven_accuracy
        )
        if analysis is None:
            analysis = attack_analysis
        if context.power_attack == "always":
            plan.append(True)
        elif context.power_attack == "optimal":
            plan.append(attack_analysis.recommendation == "use")
        else:
            plan.append(False)
    return plan, analysis
