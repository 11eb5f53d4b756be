"""Tests for hit, crit and save probabilities."""

import pytest

from dpr.cache import MemoCache
from dpr.dice import parse_damage
from dpr.errors import ValidationError
from dpr.probability import (
    MAX_CHANCE,
    MIN_CHANCE,
    advantage,
    apply_state,
    bonus_distribution,
    calculate_hit_probability,
    crit_chance,
    disadvantage,
    elven_accuracy,
    halfling_luck_hit_chance,
    hit_chance,
    hit_chance_with_bonus,
    save_failure_chance,
    save_success_chance,
)

BLESS = (parse_damage("1d4"),)


class TestHitChance:
    def test_linear_region(self) -> None:
        """+5 against AC 15 needs a 10: 11 faces of 20."""
        assert hit_chance(5, 15) == pytest.approx(0.55)

    def test_natural_20_always_hits(self) -> None:
        assert hit_chance(0, 30) == MIN_CHANCE
        assert hit_chance(5, 1000) == MIN_CHANCE

    def test_natural_1_always_misses(self) -> None:
        assert hit_chance(5, 1) == MAX_CHANCE
        assert hit_chance(30, 10) == MAX_CHANCE

    def test_monotone_in_ac(self) -> None:
        chances = [calculate_hit_probability(5, ac) for ac in range(1, 31)]
        assert chances == sorted(chances, reverse=True)

    def test_monotone_in_to_hit(self) -> None:
        chances = [calculate_hit_probability(b, 15) for b in range(-5, 25)]
        assert chances == sorted(chances)

    def test_bounded_for_normal_rolls(self) -> None:
        for ac in range(1, 31):
            for to_hit in range(-10, 31):
                assert MIN_CHANCE <= calculate_hit_probability(to_hit, ac) <= MAX_CHANCE


class TestAdvantageStates:
    def test_advantage(self) -> None:
        assert calculate_hit_probability(5, 15, "advantage") == pytest.approx(0.7975)

    def test_disadvantage(self) -> None:
        assert calculate_hit_probability(5, 15, "disadvantage") == pytest.approx(0.3025)

    def test_elven_accuracy(self) -> None:
        assert calculate_hit_probability(5, 15, "elven_accuracy") == pytest.approx(1 - 0.45 ** 3)

    def test_ordering(self) -> None:
        for i in range(0, 21):
            p = i / 20
            assert disadvantage(p) <= p <= advantage(p) <= elven_accuracy(p)

    def test_transforms_apply_after_the_clamp(self) -> None:
        """Advantage against a sure hit still misses only on double 1s."""
        assert calculate_hit_probability(10, 2, "advantage") == pytest.approx(1 - 0.05 ** 2)

    def test_unknown_state(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            apply_state(0.5, "double_advantage")
        assert exc_info.value.field == "advantage"


class TestCritChance:
    def test_default_range(self) -> None:
        assert crit_chance(1) == pytest.approx(0.05)

    def test_improved_critical(self) -> None:
        assert crit_chance(2) == pytest.approx(0.10)
        assert crit_chance(3) == pytest.approx(0.15)

    def test_with_advantage(self) -> None:
        assert crit_chance(1, "advantage") == pytest.approx(0.0975)
        assert crit_chance(2, "advantage") == pytest.approx(0.19)

    def test_invalid_range(self) -> None:
        for bad in (0, 21, 1.5, True):
            with pytest.raises(ValidationError):
                crit_chance(bad)


class TestCachedHitProbability:
    def test_cache_does_not_change_values(self) -> None:
        cache = MemoCache()
        for ac in (10, 15, 20):
            for state in ("normal", "advantage", "disadvantage"):
                uncached = calculate_hit_probability(6, ac, state)
                assert calculate_hit_probability(6, ac, state, cache=cache) == uncached
                assert calculate_hit_probability(6, ac, state, cache=cache) == uncached
        assert cache.hits == 9
        assert len(cache) == 9


class TestBonusDice:
    def test_bless_distribution(self) -> None:
        dist = bonus_distribution(BLESS)
        assert dist == pytest.approx({1: 0.25, 2: 0.25, 3: 0.25, 4: 0.25})

    def test_no_bonus_is_plain_chance(self) -> None:
        assert hit_chance_with_bonus(5, 15) == hit_chance(5, 15)

    def test_exact_bless_in_linear_region(self) -> None:
        """+1..+4 each move the needed face by one step of 5%."""
        assert hit_chance_with_bonus(5, 15, BLESS) == pytest.approx(0.675)

    def test_exact_and_approximate_differ_at_the_bounds(self) -> None:
        """Against AC 22 with +0, Bless only helps on a 3 or 4."""
        exact = hit_chance_with_bonus(0, 22, BLESS)
        approx = hit_chance_with_bonus(0, 22, BLESS, approximate=True)
        assert exact == pytest.approx(0.0875)
        assert approx == pytest.approx(0.075)

    def test_bless_with_advantage(self) -> None:
        expected = sum(0.25 * advantage(hit_chance(5 + b, 15)) for b in range(1, 5))
        assert hit_chance_with_bonus(5, 15, BLESS, "advantage") == pytest.approx(expected)


class TestSaves:
    def test_success(self) -> None:
        """+2 against DC 15 needs a 13."""
        assert save_success_chance(15, 2) == pytest.approx(0.40)
        assert save_failure_chance(15, 2) == pytest.approx(0.60)

    def test_magic_resistance_rolls_with_advantage(self) -> None:
        assert save_success_chance(15, 2, magic_resistance=True) == pytest.approx(0.64)

    def test_bounds(self) -> None:
        assert save_success_chance(30, 0) == MIN_CHANCE
        assert save_success_chance(5, 10) == MAX_CHANCE


class TestHelpers:
    def test_halfling_luck(self) -> None:
        assert halfling_luck_hit_chance(5, 15) == pytest.approx(0.55 * 21 / 20)


    def test_halfling_luck_only_natural_twenty(self) -> None:
        assert halfling_luck_hit_chance(0, 30) == MIN_CHANCE
        assert halfling_luck_hit_chance(0, 20) == MIN_CHANCE

    def test_halfling_luck_near_certain(self) -> None:
        assert halfling_luck_hit_chance(10, 5) == pytest.approx(0.9975)

    def test_halfling_luck_never_lowers_chance(self) -> None:
        for ac in range(1, 31):
            assert halfling_luck_hit_chance(5, ac) >= hit_chance(5, ac)

    def test_halfling_luck_then_advantage(self) -> None:
        lucky = 0.55 * 21 / 20
        assert calculate_hit_probability(5, 15, "advantage", halfling_luck=True) == pytest.approx(
            1 - (1 - lucky) ** 2
        )

    def test_halfling_luck_with_bless(self) -> None:
        plain = hit_chance_with_bonus(5, 15, BLESS)
        assert hit_chance_with_bonus(5, 15, BLESS, halfling_luck=True) == pytest.approx(plain * 21 / 20)
