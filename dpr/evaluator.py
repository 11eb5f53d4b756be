"""
Deterministic DPR evaluation: orchestrates attacks, riders, per-hit bonuses
and spells into one expected damage-per-round figure.

Each round the evaluator resolves every attack in order, lets the once-per-
turn allocator pick a single rider for the turn, adds per-hit bonuses across
all attacks and save spells on top. The first round is reported as ``total``
and ``breakdown``; later rounds differ only when a limited resource (rider or
spell uses) has run out, which the deterministic model counts as one use per
round in which the resource was chosen.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from collections.abc import Iterable

from dpr.cache import MemoCache, cached_call, make_key
from dpr.damage import evaluate_attack, fresh_legendary, legendary_after, per_hit_expected, spell_expected
from dpr.errors import ValidationError
from dpr.once_per_turn import allocate
from dpr.power_attack import BONUS, PENALTY, plan_power_attacks
from dpr.records import (
    AttackBreakdown,
    AttackProfile,
    Build,
    CombatContext,
    DPRBreakdown,
    DPRConditions,
    DPRResult,
    RiderSelection,
    Target,
)
from dpr.renderers import TextRenderer
from dpr.types import AdvantageState

logger = logging.getLogger(__name__)

Request = tuple[Build, Target, CombatContext | None]


class Evaluator:
    """Computes DPRResult records for builds against targets.

    Holds an optional MemoCache; identical (build, target, context) inputs
    return equal results whether the cache is present or not.
    """

    power_attack_threshold: float = 0.5
    """Expected damage gain needed before power attack is used or recommended."""

    default_rounds: int = 1
    """Rounds evaluated when no CombatContext is given."""

    def __init__(
        self,
        cache: MemoCache | None = None,
        renderer: TextRenderer | None = None,
        power_attack_threshold: float | None = None,
    ) -> None:
        self.cache = cache
        self.renderer = renderer or TextRenderer()
        if power_attack_threshold is not None:
            self.power_attack_threshold = power_attack_threshold

    def evaluate(self, build: Build, target: Target, context: CombatContext | None = None) -> DPRResult:
        if not isinstance(build, Build):
            raise ValidationError("build", build, "expected a Build; use dpr.adapters for mappings")
        if not isinstance(target, Target):
            raise ValidationError("target", target, "expected a Target; use dpr.adapters for mappings")
        if context is not None and not isinstance(context, CombatContext):
            raise ValidationError("context", context, "expected a CombatContext")
        context = context or CombatContext(rounds=self.default_rounds)

        if self.cache is not None:
            return cached_call(self.cache, self._evaluate, build, target, context, self.power_attack_threshold)
        return self._evaluate(build, target, context, self.power_attack_threshold)

    def evaluate_batch(self, requests: Iterable[Request]) -> list[DPRResult]:
        """Evaluate many requests, computing each distinct one once."""
        results: list[DPRResult] = []
        seen: dict[str, DPRResult] = {}
        for build, target, context in requests:
            try:
                key = make_key(build, target, context)
            except (TypeError, ValueError) as exc:
                logger.debug("batch key failed, evaluating directly: %s", exc)
                results.append(self.evaluate(build, target, context))
                continue
            if key not in seen:
                seen[key] = self.evaluate(build, target, context)
                results.append(seen[key])
            else:
                results.append(copy.deepcopy(seen[key]))
        return results

    def explain(self, result: DPRResult) -> list[str]:
        return self.renderer.render_dpr(result)

    def _evaluate(self, build: Build, target: Target, context: CombatContext, threshold: float) -> DPRResult:
        logger.debug("evaluating %s vs %s (AC %d)", build.name, target.name, target.armor_class)
        power, analysis = plan_power_attacks(build, target, context, threshold)

        rider_uses = {r.name: r.uses for r in build.riders}
        spell_uses = {s.name: s.uses for s in build.spells}
        legendary = fresh_legendary(target)
        by_round: list[float] = []
        first: tuple[DPRBreakdown, RiderSelection, list[AttackBreakdown]] | None = None

        for round_num in range(1, context.rounds + 1):
            breakdown, selection, rows, legendary = self._round(
                build, target, context, power, build.elven_accuracy, rider_uses, spell_uses, legendary
            )
            by_round.append(breakdown.total)
            if first is None:
                first = (breakdown, selection, rows)

            if selection.selected is not None and rider_uses[selection.selected] is not None:
                rider_uses[selection.selected] -= 1
            for name, uses in spell_uses.items():
                if uses:
                    spell_uses[name] = uses - 1
            logger.debug("round %d of %s: %.3f", round_num, build.name, breakdown.total)

        breakdown, selection, rows = first
        hit_chances, crit_chances = self._chances_by_state(build, target, context, power)
        return DPRResult(
            total=breakdown.total,
            by_round=by_round,
            breakdown=breakdown,
            conditions=self._conditions(build, target, context, threshold),
            attacks=rows,
            once_per_turn=selection if build.riders else None,
            power_attack=analysis,
            hit_chances=hit_chances,
            crit_chances=crit_chances,
        )

    def _rows(
        self,
        build: Build,
        target: Target,
        context: CombatContext,
        power: list[bool],
        elven_accuracy: bool,
    ) -> list[AttackBreakdown]:
        return [
            evaluate_attack(
                attack,
                target,
                context,
                to_hit_delta=-PENALTY if use else 0,
                damage_bonus=BONUS if use else 0,
                elven_accuracy=elven_accuracy,
            )
            for attack, use in zip(build.attacks, power)
        ]

    def _round(
        self,
        build: Build,
        target: Target,
        context: CombatContext,
        power: list[bool],
        elven_accuracy: bool,
        rider_uses: dict[str, int | None] | None = None,
        spell_uses: dict[str, int | None] | None = None,
        legendary: dict[int, float] | None = None,
    ) -> tuple[DPRBreakdown, RiderSelection, list[AttackBreakdown], dict[int, float]]:
        """One round's breakdown, plus the legendary resistances left after it."""
        rows = self._rows(build, target, context, power, elven_accuracy)
        selection = allocate(
            build.riders,
            build.attacks,
            rows,
            target,
            context.rider_policy,
            context.rider_order,
            rider_uses,
        )
        legendary = fresh_legendary(target) if legendary is None else legendary
        spell_damage = 0.0
        for spell in build.spells:
            if spell_uses is not None and spell_uses[spell.name] is not None and spell_uses[spell.name] <= 0:
                continue
            spell_damage += spell_expected(spell, target, legendary, context.approximate)
            legendary = legendary_after(spell, target, legendary)
        breakdown = DPRBreakdown(
            weapon_damage=sum(r.expected_damage for r in rows),
            once_per_turn=selection.expected_damage,
            spell_damage=spell_damage,
            other_sources=sum(per_hit_expected(b, rows, target, context.approximate) for b in build.per_hit),
        )
        return breakdown, selection, rows, legendary

    def _conditions(
        self, build: Build, target: Target, context: CombatContext, threshold: float
    ) -> DPRConditions:
        """First-round DPR with every attack forced to each advantage state.

        The power attack plan is redone for each state, since the trade that
        pays with advantage may not pay without it.
        """
        plain = dataclasses.replace(build, elven_accuracy=False)

        def total(state: AdvantageState) -> float:
            forced = dataclasses.replace(context, advantage=state)
            power, _ = plan_power_attacks(plain, target, forced, threshold)
            return self._round(build, target, forced, power, elven_accuracy=False)[0].total

        return DPRConditions(
            normal=total("normal"),
            advantage=total("advantage"),
            disadvantage=total("disadvantage"),
            elven_accuracy=total("elven_accuracy") if build.elven_accuracy else None,
        )

    def _chances_by_state(
        self, build: Build, target: Target, context: CombatContext, power: list[bool]
    ) -> tuple[dict[str, float], dict[str, float]]:
        """Hit and crit chance of the build's first attack under each state."""
        if not build.attacks:
            return {}, {}
        attack: AttackProfile = build.attacks[0]
        states: list[AdvantageState] = ["normal", "advantage", "disadvantage"]
        if build.elven_accuracy:
            states.append("elven_accuracy")
        hits, crits = {}, {}
        for state in states:
            row = evaluate_attack(
                attack,
                target,
                context,
                state=state,
                to_hit_delta=-PENALTY if power[0] else 0,
            )
            hits[state] = row.hit_chance
            crits[state] = row.crit_chance
        return hits, crits


def evaluate_dpr(
    build: Build,
    target: Target,
    context: CombatContext | None = None,
    cache: MemoCache | None = None,
) -> DPRResult:
    """Expected damage per round of ``build`` against ``target``."""
    return Evaluator(cache=cache).evaluate(build, target, context)
