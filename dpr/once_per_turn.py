"""
Once-per-turn rider allocation.

Riders such as Sneak Attack or a smite add damage to one hit per turn. The
allocator picks at most one of them for the turn, never more, so two riders
can never double count. Riders that are not mutually exclusive should be
modelled as per-hit bonuses instead.

A rider lands on the first attack that both qualifies for it and hits, so its
expected value across an attack sequence is

    Σ  P(no earlier qualifying attack hit) · E[rider damage on attack i]

For a crit-only rider "hit" reads "crit".
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from dpr.damage import resolved_damage
from dpr.errors import ValidationError
from dpr.records import AttackBreakdown, AttackProfile, Rider, RiderCandidate, RiderSelection, Target
from dpr.types import RIDER_POLICIES, RiderPolicy

logger = logging.getLogger(__name__)


def rider_expected_damage(
    rider: Rider,
    attacks: Sequence[AttackProfile],
    rows: Sequence[AttackBreakdown],
    target: Target,
) -> float:
    """Expected damage ``rider`` adds over one turn of ``attacks``.

    ``rows`` are the evaluated attacks in the same order, giving each attack's
    hit and crit chance and the advantage state it was rolled under.
    """
    dice = rider.dice
    none_yet = 1.0
    total = 0.0
    for attack, row in zip(attacks, rows):
        if not rider.qualifies(attack, row.state):
            continue
        damage_type = rider.damage_type or row.damage_type
        critical = resolved_damage(dice, damage_type, target, crit=rider.doubles_on_crit)
        if rider.crit_only:
            total += none_yet * row.crit_chance * critical
            none_yet *= 1 - row.crit_chance
        else:
            normal = resolved_damage(dice, damage_type, target)
            total += none_yet * ((row.hit_chance - row.crit_chance) * normal + row.crit_chance * critical)
            none_yet *= 1 - row.hit_chance
    return total


def select_rider(
    candidates: Sequence[RiderCandidate],
    policy: RiderPolicy = "optimal",
    order: Sequence[str] = (),
    priorities: Mapping[str, int] | None = None,
) -> tuple[RiderCandidate | None, str]:
    """Pick one satisfied candidate under ``policy``.

    * optimal: the highest expected damage; ties go to the earlier candidate.
    * always: the first satisfied candidate in ``order``, then in list order
      for names ``order`` does not mention.
    * priority: the highest ``priorities`` value; ties go to list order.
    """
    if policy not in RIDER_POLICIES:
        raise ValidationError("rider_policy", policy, f"expected one of {RIDER_POLICIES}")

    eligible = [c for c in candidates if c.satisfied]
    if not eligible:
        return None, "no rider's condition is met"

    if policy == "optimal":
        best = max(eligible, key=lambda c: c.expected_damage)
        return best, f"highest expected damage ({best.expected_damage:.2f}) of {len(eligible)} eligible"

    if policy == "always":
        rank = {name: i for i, name in enumerate(order)}
        best = min(enumerate(eligible), key=lambda ic: (rank.get(ic[1].name, len(rank)), ic[0]))[1]
        return best, "first eligible rider in preference order"

    priorities = priorities or {}
    best = min(enumerate(eligible), key=lambda ic: (-priorities.get(ic[1].name, 0), ic[0]))[1]
    return best, f"highest priority ({priorities.get(best.name, 0)}) among eligible"


def allocate(
    riders: Sequence[Rider],
    attacks: Sequence[AttackProfile],
    rows: Sequence[AttackBreakdown],
    target: Target,
    policy: RiderPolicy = "optimal",
    order: Sequence[str] = (),
    available: Mapping[str, int | None] | None = None,
) -> RiderSelection:
    """Choose the single rider applied this turn.

    ``available`` maps rider names to remaining uses; a rider at zero is
    listed as a candidate but never satisfied.
    """
    candidates = []
    for rider in riders:
        remaining = available.get(rider.name, rider.uses) if available is not None else rider.uses
        qualifies = any(rider.qualifies(a, r.state) for a, r in zip(attacks, rows))
        candidates.append(
            RiderCandidate(
                name=rider.name,
                satisfied=qualifies and (remaining is None or remaining > 0),
                expected_damage=rider_expected_damage(rider, attacks, rows, target),
            )
        )

    best, reasoning = select_rider(
        candidates,
        policy,
        order,
        priorities={r.name: r.priority for r in riders},
    )
    if best is not None:
        logger.debug("rider %s selected under %s: %s", best.name, policy, reasoning)
    return RiderSelection(
        selected=best.name if best else None,
        expected_damage=best.expected_damage if best else 0.0,
        policy=policy,
        candidates=candidates,
        reasoning=f"{best.name}: {reasoning}" if best else reasoning,
    )
