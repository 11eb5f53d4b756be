"""Tests for the Monte Carlo simulator."""

import threading

import pytest

from dpr import evaluate_dpr, run_monte_carlo
from dpr.errors import SimulationCancelled, ValidationError
from dpr.montecarlo import (
    AttackScenario,
    MonteCarloSimulator,
    SimulationRequest,
    convergence,
    simulate,
    submit,
)
from dpr.records import AttackProfile, Build, CombatContext, Rider, SaveEffect, Target, TrialResult
from dpr.rng import SeededRandom
from dpr.stats import PERCENTILES

LONGSWORD = Build("Longsword", attacks=(AttackProfile("Longsword", 5, "1d8+3"),))


def scenario(build=LONGSWORD, ac=15, **context):
    return AttackScenario(build, Target(ac), CombatContext(**context))


def constant(rng: SeededRandom) -> float:
    return 5


def die(rng: SeededRandom) -> float:
    return rng.roll_die(6)


class TestDeterminism:
    def test_same_seed_same_result(self) -> None:
        a = simulate(scenario(), 1000, 42)
        b = simulate(scenario(), 1000, 42)
        assert a.samples == b.samples
        assert a.damage == b.damage

    def test_different_seeds(self) -> None:
        assert simulate(scenario(), 1000, 1).samples != simulate(scenario(), 1000, 2).samples

    def test_progress_does_not_change_result(self) -> None:
        seen = []
        with_progress = simulate(die, 1000, 7, on_progress=seen.append)
        assert with_progress.samples == simulate(die, 1000, 7).samples
        assert len(seen) == 100
        assert seen[-1].completed == 1000
        assert seen[-1].fraction == 1.0

    def test_small_runs_report_every_trial(self) -> None:
        seen = []
        simulate(die, 10, 7, on_progress=seen.append)
        assert [p.completed for p in seen] == list(range(1, 11))


class TestStatistics:
    def test_constant_scenario(self) -> None:
        result = simulate(constant, 500, 1)
        assert result.runs == 500
        assert result.status == "completed"
        assert result.damage.mean == 5
        assert result.damage.median == 5
        assert result.damage.variance == 0
        assert result.damage.confidence_interval.margin == 0
        assert result.accuracy.hit_rate == 0.0

    def test_percentiles(self) -> None:
        damage = simulate(die, 2000, 3).damage
        assert list(damage.percentiles) == list(PERCENTILES)
        values = [damage.percentiles[p] for p in PERCENTILES]
        assert values == sorted(values)
        assert damage.percentiles[5] == 1
        assert damage.percentiles[95] == 6

    def test_confidence_interval_contains_mean(self) -> None:
        damage = simulate(scenario(), 2000, 9).damage
        ci = damage.confidence_interval
        assert ci.lower <= damage.mean <= ci.upper
        assert ci.margin == pytest.approx(1.96 * damage.standard_deviation / 2000 ** 0.5)

    def test_agrees_with_expected_dpr(self) -> None:
        expected = evaluate_dpr(LONGSWORD, Target(15)).total
        result = simulate(scenario(), 20000, 42)
        assert result.damage.mean == pytest.approx(expected, abs=0.25)
        assert result.accuracy.hit_rate == pytest.approx(0.55, abs=0.02)
        assert result.accuracy.crit_rate == pytest.approx(0.05, abs=0.01)

    def test_convergence(self) -> None:
        """Every size lands within three confidence margins of the exact DPR,
        and the margin narrows as trials grow."""
        exact = evaluate_dpr(LONGSWORD, Target(15)).total
        sizes = (100, 1000, 20000)
        means = convergence(scenario(), 42, sizes=sizes)
        assert list(means) == list(sizes)
        margins = [simulate(scenario(), n, 42).damage.confidence_interval.margin for n in sizes]
        for n, margin in zip(sizes, margins):
            assert means[n] == pytest.approx(exact, abs=3 * margin)
        assert margins == sorted(margins, reverse=True)
        assert 3 * margins[-1] < 0.25

    def test_by_round(self) -> None:
        result = simulate(scenario(rounds=3), 1000, 5)
        assert len(result.damage.by_round.mean) == 3
        assert len(result.damage.by_round.confidence_interval) == 3
        assert result.damage.mean == pytest.approx(sum(result.damage.by_round.mean))


class TestAttackScenario:
    def test_limited_rider_lands_once(self) -> None:
        build = Build(
            "Jabber",
            attacks=(AttackProfile("Jab", 0, "1d1"),),
            riders=(Rider("Big Hit", "1d1+99", uses=1),),
        )
        result = simulate(scenario(build, ac=1, rounds=3, include_crits=False), 2000, 11)
        assert max(result.samples) <= 103
        assert result.damage.mean > 95

    def test_unlimited_rider_every_round(self) -> None:
        build = Build(
            "Jabber",
            attacks=(AttackProfile("Jab", 0, "1d1"),),
            riders=(Rider("Big Hit", "1d1+99"),),
        )
        result = simulate(scenario(build, ac=1, rounds=3, include_crits=False), 2000, 11)
        assert max(result.samples) == 303

    def test_immune_target_takes_nothing(self) -> None:
        scene = AttackScenario(LONGSWORD, Target(10, immunities={"slashing"}))
        result = simulate(scene, 500, 4)
        assert result.damage.mean == 0
        assert result.accuracy.hit_rate > 0

    def test_resisted_damage_matches_expected(self) -> None:
        target = Target(15, resistances={"slashing"})
        expected = evaluate_dpr(LONGSWORD, target).total
        result = simulate(AttackScenario(LONGSWORD, target), 20000, 42)
        assert result.damage.mean == pytest.approx(expected, abs=0.1)

    def test_halfling_luck(self) -> None:
        build = Build("Lucky", attacks=(AttackProfile("Shortsword", 5, "1d8+3", halfling_luck=True),))
        expected = evaluate_dpr(build, Target(15)).total
        result = simulate(scenario(build), 20000, 42)
        assert result.accuracy.hit_rate == pytest.approx(0.5775, abs=0.015)
        assert result.damage.mean == pytest.approx(expected, abs=0.15)

    def test_elemental_adept(self) -> None:
        build = Build("Adept", attacks=(AttackProfile("Fire Bolt", 5, "2d10", "fire", elemental_adept=True),))
        expected = evaluate_dpr(build, Target(15)).total
        result = simulate(scenario(build), 20000, 42)
        assert result.damage.mean == pytest.approx(expected, abs=0.15)

    def test_legendary_resistance(self) -> None:
        build = Build("Evoker", spells=(SaveEffect("Fireball", 15, "dex", "8d6", "fire"),))
        target = Target(15, save_bonus={"dex": 2}, legendary_resistances=1)
        context = CombatContext(rounds=3)
        expected = evaluate_dpr(build, target, context).by_round
        result = simulate(AttackScenario(build, target, context), 20000, 42)
        assert result.damage.by_round.mean == pytest.approx(expected, abs=0.3)

    def test_immune_target_keeps_legendary_resistance(self) -> None:
        build = Build(
            "Evoker",
            spells=(SaveEffect("Fireball", 15, "dex", "8d6", "fire"), SaveEffect("Cone", 15, "dex", "8d8", "cold")),
        )
        target = Target(15, immunities={"fire"}, save_bonus={"dex": 2}, legendary_resistances=1)
        result = simulate(AttackScenario(build, target), 5000, 3)
        assert result.damage.mean == pytest.approx(evaluate_dpr(build, target).total, abs=0.3)

    def test_natural_one_always_misses(self) -> None:
        build = Build("Sure", attacks=(AttackProfile("Sure", 50, "1d1"),))
        result = simulate(scenario(build, ac=10, include_crits=False), 4000, 2)
        assert result.accuracy.hit_rate == pytest.approx(0.95, abs=0.02)


class TestValidation:
    @pytest.mark.parametrize("iterations", [0, -5, 2.5, True, None])
    def test_iterations(self, iterations: object) -> None:
        with pytest.raises(ValidationError) as exc_info:
            simulate(constant, iterations, 1)
        assert exc_info.value.field == "iterations"

    @pytest.mark.parametrize("seed", [None, "1", 1.5, False])
    def test_seed(self, seed: object) -> None:
        with pytest.raises(ValidationError) as exc_info:
            simulate(constant, 10, seed)
        assert exc_info.value.field == "seed"

    def test_scenario_not_callable(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            simulate("not a scenario", 10, 1)
        assert exc_info.value.field == "scenario"

    def test_scenario_returns_garbage(self) -> None:
        with pytest.raises(ValidationError):
            simulate(lambda rng: "lots", 10, 1)

    def test_submit_validates_before_queueing(self) -> None:
        with pytest.raises(ValidationError):
            submit(SimulationRequest(constant, 0, 1))


class TestCancellation:
    def test_cancelled_before_start(self) -> None:
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(SimulationCancelled):
            simulate(constant, 100, 1, cancel=cancel)

    def test_partial_result(self) -> None:
        cancel = threading.Event()

        def stop_midway(progress) -> None:
            if progress.completed >= 1500:
                cancel.set()

        result = simulate(die, 5000, 1, on_progress=stop_midway, cancel=cancel)
        assert result.status == "cancelled"
        assert result.runs == 2000
        assert result.iterations == 5000
        assert len(result.samples) == 2000

    def test_check_interval(self) -> None:
        cancel = threading.Event()

        def stop_early(progress) -> None:
            cancel.set()

        class Frequent(MonteCarloSimulator):
            cancel_check_every = 10

        result = Frequent(100, 1, on_progress=stop_early, cancel=cancel).run(die)
        assert result.runs == 10


class TestBackground:
    def test_future(self) -> None:
        future = run_monte_carlo(die, 1000, 42)
        result = future.result(timeout=30)
        assert result.samples == simulate(die, 1000, 42).samples

    def test_task_progress(self) -> None:
        task = submit(SimulationRequest(die, 500, 3))
        result = task.result(timeout=30)
        updates = task.progress_updates()
        assert result.runs == 500
        assert len(updates) == 100
        assert updates[-1].completed == 500
        assert task.progress_updates() == []

    def test_task_cancel(self) -> None:
        started = threading.Event()
        release = threading.Event()

        def slow(rng: SeededRandom) -> float:
            started.set()
            release.wait(5)
            return 1

        task = submit(SimulationRequest(slow, 10, 1))
        started.wait(5)
        task.cancel()
        release.set()
        # the default check interval only looks at trial 0, so the run completes
        assert task.result(timeout=30).runs == 10


class TestInsights:
    def test_falling_rounds(self) -> None:
        result = simulate(lambda rng: TrialResult([10, 2, 2]), 50, 1)
        insights = result.insights
        assert insights.optimal_rounds == [1]
        assert insights.weakest_rounds == [2, 3]
        assert insights.risk_factors == ["Damage falls off in later rounds as resources run out"]
        assert insights.best_strategies == []

    def test_flat_rounds(self) -> None:
        result = simulate(lambda rng: TrialResult([4, 4]), 50, 1)
        assert result.insights.optimal_rounds == [1, 2]
        assert result.insights.weakest_rounds == []

    def test_low_hit_rate(self) -> None:
        result = simulate(scenario(ac=22), 1000, 6)
        assert any(r.startswith("Low hit rate") for r in result.insights.risk_factors)

    def test_reliable_hit_rate(self) -> None:
        result = simulate(scenario(ac=8), 1000, 6)
        assert any(s.startswith("Reliable hit rate") for s in result.insights.best_strategies)
