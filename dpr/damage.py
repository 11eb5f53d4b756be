"""
Expected damage of single attacks and of the things that ride on them.

An attack's expected damage blends its two outcomes:

    expected = (hit − crit) · normal + crit · critical

where ``normal`` and ``critical`` are resolved against the target's
resistances separately, and a critical hit doubles the dice but never the
flat modifier. A widened crit range can exceed the plain hit chance against a
high AC (a 19 crits and a crit always hits), so the hit chance used is
``max(hit, crit)``.

Per-hit bonuses (Hunter's Mark) and save-for-half spells are resolved here
too, since they share the same resolve-then-blend shape.
"""

from __future__ import annotations

from math import floor

from dpr.dice import DamageDice, dice_distribution, dice_only_average, elemental_adept_average
from dpr.probability import crit_chance, hit_chance_with_bonus, save_failure_chance
from dpr.records import AttackBreakdown, AttackProfile, CombatContext, PerHitBonus, SaveEffect, Target
from dpr.resistance import apply_resistance
from dpr.types import AdvantageState


def attack_chances(
    attack: AttackProfile,
    target: Target,
    context: CombatContext,
    state: AdvantageState,
    to_hit_delta: int = 0,
) -> tuple[float, float]:
    """(hit, crit) probabilities for one attack roll."""
    hit = hit_chance_with_bonus(
        attack.to_hit + to_hit_delta,
        target.armor_class,
        context.bonus,
        state,
        context.approximate,
        attack.halfling_luck,
    )
    crit = crit_chance(attack.crit_range, state) if context.include_crits else 0.0
    return max(hit, crit), crit


def resolved_damage(
    dice: DamageDice,
    damage_type: str,
    target: Target,
    *,
    crit: bool = False,
    gwf: bool = False,
    approximate: bool = False,
    flat_bonus: int = 0,
    elemental_adept: bool = False,
) -> float:
    """Average damage of one hit after resistances.

    Resistance floors every roll, so against a resisted type the exact form
    averages floor(total / 2) over the whole damage distribution. The
    approximate form halves the average instead.
    """
    flat = dice.modifier + flat_bonus
    if not approximate and dice.count and damage_type in target.resistances:
        dist = dice_distribution(dice.count * (2 if crit else 1), dice.die_size, gwf, elemental_adept)
        return sum(p * apply_resistance(total + flat, damage_type, target) for total, p in dist.items())
    dice_avg = dice_only_average(dice, gwf, approximate, elemental_adept)
    raw = dice_avg * (2 if crit else 1) + flat
    return apply_resistance(raw, damage_type, target)


def evaluate_attack(
    attack: AttackProfile,
    target: Target,
    context: CombatContext | None = None,
    *,
    state: AdvantageState | None = None,
    to_hit_delta: int = 0,
    damage_bonus: int = 0,
    elven_accuracy: bool = False,
) -> AttackBreakdown:
    """Expected damage of ``attack`` against ``target``.

    ``to_hit_delta`` and ``damage_bonus`` apply a flat trade such as a power
    attack; the damage bonus is part of the flat modifier and is not doubled
    on a crit.
    """
    context = context or CombatContext()
    state = state or context.state_for(attack, elven_accuracy)
    hit, crit = attack_chances(attack, target, context, state, to_hit_delta)

    dice = attack.dice
    kwargs = dict(
        gwf=attack.great_weapon_fighting,
        approximate=context.approximate,
        flat_bonus=damage_bonus,
        elemental_adept=attack.elemental_adept,
    )
    normal = resolved_damage(dice, attack.damage_type, target, **kwargs)
    critical = resolved_damage(dice, attack.damage_type, target, crit=True, **kwargs)

    return AttackBreakdown(
        name=attack.name,
        hit_chance=hit,
        crit_chance=crit,
        normal_damage=normal,
        crit_damage=critical,
        expected_damage=(hit - crit) * normal + crit * critical,
        damage_type=attack.damage_type,
        state=state,
        power_attack=bool(to_hit_delta or damage_bonus),
    )


def evaluate_sequence(
    attacks: list[AttackProfile] | tuple[AttackProfile, ...],
    target: Target,
    context: CombatContext | None = None,
    elven_accuracy: bool = False,
) -> tuple[float, list[AttackBreakdown]]:
    """Sum of expected damage over an ordered attack sequence, plus the trace."""
    rows = [evaluate_attack(a, target, context, elven_accuracy=elven_accuracy) for a in attacks]
    return sum(r.expected_damage for r in rows), rows


def on_hit_expected(
    dice: DamageDice,
    damage_type: str,
    doubles_on_crit: bool,
    row: AttackBreakdown,
    target: Target,
    approximate: bool = False,
) -> float:
    """Expected damage of bonus dice added to one attack's hit."""
    normal = resolved_damage(dice, damage_type, target, approximate=approximate)
    critical = resolved_damage(dice, damage_type, target, crit=doubles_on_crit, approximate=approximate)
    return (row.hit_chance - row.crit_chance) * normal + row.crit_chance * critical


def per_hit_expected(
    bonus: PerHitBonus, rows: list[AttackBreakdown], target: Target, approximate: bool = False
) -> float:
    """Expected damage of a per-hit bonus across every attack in the turn."""
    return sum(
        on_hit_expected(
            bonus.dice, bonus.damage_type or row.damage_type, bonus.doubles_on_crit, row, target, approximate
        )
        for row in rows
    )


def fresh_legendary(target: Target) -> dict[int, float]:
    """Legendary resistances left -> probability, before anything is cast."""
    return {target.legendary_resistances: 1.0}


def _spell_outcomes(effect: SaveEffect, target: Target, approximate: bool) -> tuple[float, float]:
    """(damage on a failed save, damage on a successful one) after resistances."""
    dice = effect.dice
    if approximate or not dice.count:
        avg = elemental_adept_average(dice) if effect.elemental_adept else dice.average
        full = apply_resistance(avg, effect.damage_type, target)
        saved = apply_resistance(floor(avg / 2), effect.damage_type, target) if effect.half_on_save else 0
        return full, saved
    full = saved = 0.0
    for total, p in dice_distribution(dice.count, dice.die_size, elemental_adept=effect.elemental_adept).items():
        full += p * apply_resistance(total + dice.modifier, effect.damage_type, target)
        if effect.half_on_save:
            saved += p * apply_resistance((total + dice.modifier) // 2, effect.damage_type, target)
    return full, saved


def spends_legendary(effect: SaveEffect, target: Target) -> bool:
    """Whether a failed save against ``effect`` is worth a legendary resistance."""
    return effect.damage_type not in target.immunities


def spell_expected(
    effect: SaveEffect,
    target: Target,
    legendary: dict[int, float] | None = None,
    approximate: bool = False,
) -> float:
    """Expected damage of a save spell: full on a failed save, half (rounded
    down) or nothing on a success.

    ``legendary`` is the distribution of legendary resistances the target
    still holds. While one is left, a failed save becomes a success.
    """
    legendary = fresh_legendary(target) if legendary is None else legendary
    fail = save_failure_chance(effect.dc, target.save(effect.ability), target.magic_resistance)
    full, saved = _spell_outcomes(effect, target, approximate)
    spared = sum(p for left, p in legendary.items() if left > 0) if spends_legendary(effect, target) else 0.0
    return spared * saved + (1 - spared) * (fail * full + (1 - fail) * saved)


def legendary_after(effect: SaveEffect, target: Target, legendary: dict[int, float]) -> dict[int, float]:
    """Legendary resistances left after one cast; one is spent on each failed save."""
    if not spends_legendary(effect, target):
        return dict(legendary)
    fail = save_failure_chance(effect.dc, target.save(effect.ability), target.magic_resistance)
    after: dict[int, float] = {}
    for left, p in legendary.items():
        if left > 0:
            after[left - 1] = after.get(left - 1, 0.0) + p * fail
            after[left] = after.get(left, 0.0) + p * (1 - fail)
        else:
            after[left] = after.get(left, 0.0) + p
    return after
