"""
Monte Carlo simulation of DPR scenarios.

Where the evaluator returns the exact expectation, the simulator rolls every
d20 and every damage die with a SeededRandom and reports the distribution:
mean, spread, percentiles and a confidence interval, plus per-round figures
and a few tactical notes.

A run is a pure function of (scenario, iterations, seed). Progress callbacks
and cancellation checks sit between trials and never touch the generator, so
they cannot change the numbers.

Runs can be pushed to a worker thread with ``run_monte_carlo`` or
``submit``: a SimulationRequest goes in, and a SimulationTask comes back
holding the future result, a queue of progress messages and the cancel
event. Each run builds its own generator, so concurrent runs share nothing.
"""

from __future__ import annotations

import logging
import math
import queue
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from numbers import Real
from typing import Union

from dpr.damage import evaluate_attack, spends_legendary
from dpr.dice import roll_dice
from dpr.errors import SimulationCancelled, ValidationError
from dpr.once_per_turn import allocate
from dpr.power_attack import BONUS, PENALTY, plan_power_attacks
from dpr.records import (
    AccuracyStats,
    Build,
    CombatContext,
    DamageStats,
    Insights,
    MonteCarloResult,
    RoundStats,
    SimulationProgress,
    Target,
    TrialResult,
)
from dpr.resistance import apply_resistance
from dpr.rng import SeededRandom
from dpr.stats import PERCENTILES, Z_95, RunningStats, confidence_interval, mean, percentile, variance

logger = logging.getLogger(__name__)

Scenario = Callable[[SeededRandom], Union[TrialResult, float]]
ProgressCallback = Callable[[SimulationProgress], None]


class AttackScenario:
    """One encounter of ``build`` against ``target``, rolled die by die.

    Each round every attack rolls its d20 under the state the evaluator
    would use, plus any bonus dice. A natural 20 or a crit always hits and a
    natural 1 always misses. Hits roll weapon dice (doubled on a crit),
    per-hit bonuses and at most one once-per-turn rider, chosen each round by
    the same allocator the evaluator uses. A limited rider spends a use only
    when it actually lands. Save spells roll the target's save each round
    while uses remain.
    """

    def __init__(
        self,
        build: Build,
        target: Target,
        context: CombatContext | None = None,
        power_attack_threshold: float = 0.5,
    ) -> None:
        self.build = build
        self.target = target
        self.context = context or CombatContext()
        self.power, _ = plan_power_attacks(build, target, self.context, power_attack_threshold)
        self.rows = [
            evaluate_attack(
                attack,
                target,
                self.context,
                to_hit_delta=-PENALTY if use else 0,
                damage_bonus=BONUS if use else 0,
                elven_accuracy=build.elven_accuracy,
            )
            for attack, use in zip(build.attacks, self.power)
        ]

    def __call__(self, rng: SeededRandom) -> TrialResult:
        build, target, context = self.build, self.target, self.context
        trial = TrialResult()
        rider_uses = {r.name: r.uses for r in build.riders}
        spell_uses = {s.name: s.uses for s in build.spells}
        riders = {r.name: r for r in build.riders}
        legendary = target.legendary_resistances

        for _ in range(context.rounds):
            damage = 0
            selected = allocate(
                build.riders, build.attacks, self.rows, target,
                context.rider_policy, context.rider_order, rider_uses,
            ).selected
            rider = riders[selected] if selected else None

            for attack, row, use in zip(build.attacks, self.rows, self.power):
                trial.attacks += 1
                face = rng.roll_d20(row.state, attack.halfling_luck)
                crit = context.include_crits and face >= 21 - attack.crit_range
                bonus = sum(roll_dice(d, rng) for d in context.bonus)
                to_hit = attack.to_hit - (PENALTY if use else 0)
                if not (face == 20 or crit or (face != 1 and face + to_hit + bonus >= target.armor_class)):
                    continue

                trial.hits += 1
                trial.crits += crit
                weapon = roll_dice(attack.dice, rng, attack.great_weapon_fighting, crit, attack.elemental_adept)
                damage += apply_resistance(weapon + (BONUS if use else 0), attack.damage_type, target)

                for extra in build.per_hit:
                    rolled = roll_dice(extra.dice, rng, crit=crit and extra.doubles_on_crit)
                    damage += apply_resistance(rolled, extra.damage_type or attack.damage_type, target)

                if rider and rider.qualifies(attack, row.state) and (crit or not rider.crit_only):
                    rolled = roll_dice(rider.dice, rng, crit=crit and rider.doubles_on_crit)
                    damage += apply_resistance(rolled, rider.damage_type or attack.damage_type, target)
                    if rider_uses[rider.name] is not None:
                        rider_uses[rider.name] -= 1
                    rider = None

            for spell in build.spells:
                if spell_uses[spell.name] == 0:
                    continue
                if spell_uses[spell.name] is not None:
                    spell_uses[spell.name] -= 1
                face = rng.roll_d20("advantage" if target.magic_resistance else "normal")
                saved = face == 20 or (face != 1 and face + target.save(spell.ability) >= spell.dc)
                if not saved and legendary and spends_legendary(spell, target):
                    legendary -= 1
                    saved = True
                rolled = roll_dice(spell.dice, rng, elemental_adept=spell.elemental_adept)
                if saved:
                    rolled = rolled // 2 if spell.half_on_save else 0
                damage += apply_resistance(rolled, spell.damage_type, target)

            trial.damage_by_round.append(damage)
        return trial


def _as_trial(value: TrialResult | float) -> TrialResult:
    if isinstance(value, TrialResult):
        return value
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError("scenario", value, "must return a number or a TrialResult")
    return TrialResult(damage_by_round=[float(value)])


class MonteCarloSimulator:
    """Runs ``iterations`` seeded trials of a scenario and summarizes them."""

    cancel_check_every: int = 1000
    """Trials between checks of the cancel event."""

    progress_fraction: float = 0.01
    """Progress is reported each time this fraction of the trials completes."""

    percentile_keys: tuple[int, ...] = PERCENTILES
    z_score: float = Z_95

    strong_round_margin: float = 0.1
    """Rounds within this fraction of the best round mean are optimal rounds."""

    weak_round_margin: float = 0.1
    """Rounds within this fraction of the worst round mean are weakest rounds,
    when the spread between best and worst exceeds it."""

    low_hit_rate: float = 0.5
    """Hit rates below this are a risk factor."""

    high_variance_ratio: float = 0.75
    """Standard deviation over mean above this is a risk factor."""

    crit_heavy_rate: float = 0.1
    """Crit rates at or above this favour crit-doubling riders."""

    def __init__(
        self,
        iterations: int,
        seed: int,
        on_progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations <= 0:
            raise ValidationError("iterations", iterations, "must be a positive integer")
        if isinstance(seed, bool) or not isinstance(seed, int):
            raise ValidationError("seed", seed, "an explicit integer seed is required")
        self.iterations = iterations
        self.seed = seed
        self.on_progress = on_progress
        self.cancel = cancel

    def run(self, scenario: Scenario) -> MonteCarloResult:
        if not callable(scenario):
            raise ValidationError("scenario", scenario, "must be callable")

        rng = SeededRandom(self.seed)
        step = max(1, int(self.iterations * self.progress_fraction))
        samples: list[float] = []
        rounds: list[RunningStats] = []
        hits = crits = attacks = 0
        status = "completed"

        for i in range(self.iterations):
            if i % self.cancel_check_every == 0 and self.cancel is not None and self.cancel.is_set():
                status = "cancelled"
                break
            trial = _as_trial(scenario(rng))
            samples.append(trial.total)
            for r, damage in enumerate(trial.damage_by_round):
                if r == len(rounds):
                    rounds.append(RunningStats())
                rounds[r].push(damage)
            hits += trial.hits
            crits += trial.crits
            attacks += trial.attacks

            done = i + 1
            if self.on_progress is not None and (done % step == 0 or done == self.iterations):
                self.on_progress(SimulationProgress(done, self.iterations))

        if not samples:
            raise SimulationCancelled(f"simulation (seed {self.seed}) cancelled before any trial ran")
        if status == "cancelled":
            logger.info("simulation cancelled after %d of %d trials", len(samples), self.iterations)

        damage = self._damage_stats(samples, rounds)
        accuracy = AccuracyStats(
            hit_rate=hits / attacks if attacks else 0.0,
            crit_rate=crits / attacks if attacks else 0.0,
        )
        return MonteCarloResult(
            runs=len(samples),
            seed=self.seed,
            iterations=self.iterations,
            damage=damage,
            accuracy=accuracy,
            insights=self.insights(damage, accuracy, attacks),
            status=status,
            samples=samples,
        )

    def _damage_stats(self, samples: list[float], rounds: list[RunningStats]) -> DamageStats:
        n = len(samples)
        mu = mean(samples)
        var = variance(samples, mu)
        sd = math.sqrt(var)
        ordered = sorted(samples)
        return DamageStats(
            mean=mu,
            median=percentile(ordered, 50),
            variance=var,
            standard_deviation=sd,
            percentiles={p: percentile(ordered, p) for p in self.percentile_keys},
            confidence_interval=confidence_interval(mu, sd, n, self.z_score),
            by_round=RoundStats(
                mean=[r.mean for r in rounds],
                confidence_interval=[r.confidence_interval(self.z_score) for r in rounds],
            ),
        )

    def insights(self, damage: DamageStats, accuracy: AccuracyStats, attacks: int) -> Insights:
        """Rule-of-thumb notes read off the aggregate numbers."""
        insights = Insights()
        means = damage.by_round.mean
        if means:
            best, worst = max(means), min(means)
            insights.optimal_rounds = [
                i + 1 for i, m in enumerate(means) if m >= best * (1 - self.strong_round_margin)
            ]
            if best > worst * (1 + self.weak_round_margin):
                insights.weakest_rounds = [
                    i + 1 for i, m in enumerate(means) if m <= worst * (1 + self.weak_round_margin)
                ]
                if means[-1] < means[0] * (1 - self.weak_round_margin):
                    insights.risk_factors.append("Damage falls off in later rounds as resources run out")

        if attacks:
            if accuracy.hit_rate < self.low_hit_rate:
                insights.risk_factors.append(
                    f"Low hit rate ({accuracy.hit_rate:.0%}): look for advantage or a better bonus to hit"
                )
            else:
                insights.best_strategies.append(
                    f"Reliable hit rate ({accuracy.hit_rate:.0%}): accuracy trades such as power attack can pay"
                )
            if accuracy.crit_rate >= self.crit_heavy_rate:
                insights.best_strategies.append(
                    f"Crits are frequent ({accuracy.crit_rate:.0%}): save dice-heavy riders for critical hits"
                )

        if damage.mean > 0 and damage.standard_deviation / damage.mean > self.high_variance_ratio:
            insights.risk_factors.append("High variance: damage swings widely from fight to fight")
        return insights


@dataclass(frozen=True)
class SimulationRequest:
    """Everything a worker needs to run one simulation."""

    scenario: Scenario
    iterations: int
    seed: int


@dataclass
class SimulationTask:
    """Handle on a simulation running in the background.

    Progress messages are put on ``progress``; ``cancel()`` asks the run to
    stop at its next check, after which the future resolves to a partial
    result or raises SimulationCancelled.
    """

    request: SimulationRequest
    future: Future
    progress: queue.Queue = field(default_factory=queue.Queue)
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def cancel(self) -> None:
        self.cancel_event.set()

    def result(self, timeout: float | None = None) -> MonteCarloResult:
        return self.future.result(timeout)

    def progress_updates(self) -> list[SimulationProgress]:
        """Drain the progress messages received so far."""
        updates = []
        while True:
            try:
                updates.append(self.progress.get_nowait())
            except queue.Empty:
                return updates


def _run_request(
    request: SimulationRequest,
    progress: queue.Queue,
    cancel: threading.Event,
    on_progress: ProgressCallback | None,
) -> MonteCarloResult:
    def report(update: SimulationProgress) -> None:
        progress.put(update)
        if on_progress is not None:
            on_progress(update)

    simulator = MonteCarloSimulator(request.iterations, request.seed, on_progress=report, cancel=cancel)
    return simulator.run(request.scenario)


def submit(
    request: SimulationRequest,
    executor: ThreadPoolExecutor | None = None,
    on_progress: ProgressCallback | None = None,
    cancel: threading.Event | None = None,
) -> SimulationTask:
    """Run ``request`` on ``executor`` (a fresh single worker if None).

    Parameters are validated here, before anything is queued.
    """
    MonteCarloSimulator(request.iterations, request.seed)
    if not callable(request.scenario):
        raise ValidationError("scenario", request.scenario, "must be callable")

    progress: queue.Queue = queue.Queue()
    cancel = cancel or threading.Event()
    owned = executor is None
    pool = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="dpr-sim")
    future = pool.submit(_run_request, request, progress, cancel, on_progress)
    if owned:
        pool.shutdown(wait=False)
    return SimulationTask(request, future, progress, cancel)


def run_monte_carlo(
    scenario: Scenario,
    iterations: int,
    seed: int,
    on_progress: ProgressCallback | None = None,
    cancel: threading.Event | None = None,
    executor: ThreadPoolExecutor | None = None,
) -> Future:
    """Simulate ``scenario`` in the background; the future yields a
    MonteCarloResult."""
    return submit(SimulationRequest(scenario, iterations, seed), executor, on_progress, cancel).future


def simulate(scenario: Scenario, iterations: int, seed: int, **kwargs) -> MonteCarloResult:
    """Synchronous form of run_monte_carlo."""
    return MonteCarloSimulator(iterations, seed, **kwargs).run(scenario)


def convergence(
    scenario: Scenario,
    seed: int,
    sizes: Sequence[int] = (100, 1000, 10000),
) -> dict[int, float]:
    """Simulated mean at each iteration count, for checking against the
    analytic DPR."""
    return {n: simulate(scenario, n, seed).damage.mean for n in sizes}
