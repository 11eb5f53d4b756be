"""Tests for the text renderer."""

from dpr import evaluate_dpr
from dpr.data import BUILDS, TARGETS
from dpr.montecarlo import AttackScenario, simulate
from dpr.power_attack import analyze_power_attack, power_attack_sweep
from dpr.records import AttackProfile, Build, CombatContext, RiderCandidate, RiderSelection, Target
from dpr.renderers import TextRenderer, pct

renderer = TextRenderer()


class TestPct:
    def test_format(self) -> None:
        assert pct(0.55) == "55.0%"
        assert pct(0.125) == "12.5%"


class TestRenderDPR:
    def test_headline(self) -> None:
        build = Build("Longsword", attacks=(AttackProfile("Longsword", 5, "1d8+3"),))
        lines = renderer.render_dpr(evaluate_dpr(build, Target(15)))
        assert lines[0] == "DPR: 4.35"
        assert any(line.strip().startswith("Longsword: 55.0% hit, 5.0% crit [normal]") for line in lines)

    def test_rounds_and_rider(self) -> None:
        result = evaluate_dpr(BUILDS["Paladin"], TARGETS["Ogre"], CombatContext(rounds=3))
        text = "\n".join(renderer.render_dpr(result))
        assert "once per turn (optimal)" in text
        assert "by round:" in text

    def test_elven_accuracy_column(self) -> None:
        build = Build("Elf", attacks=(AttackProfile("Bow", 7, "1d8+4"),), elven_accuracy=True)
        text = "\n".join(renderer.render_dpr(evaluate_dpr(build, Target(15))))
        assert "elven accuracy" in text


class TestRenderSelection:
    def test_marks(self) -> None:
        selection = RiderSelection(
            selected="Smite",
            expected_damage=6.3,
            policy="optimal",
            candidates=[RiderCandidate("Smite", True, 6.3), RiderCandidate("Sneak", False, 7.0),
                        RiderCandidate("Hex", True, 2.0)],
            reasoning="Smite: highest expected damage (6.30) of 2 eligible",
        )
        lines = renderer.render_selection(selection)
        assert lines == [
            "once per turn (optimal): Smite: highest expected damage (6.30) of 2 eligible",
            "  * Smite: 6.30",
            "  x Sneak: 7.00",
            "  - Hex: 2.00",
        ]

    def test_none(self) -> None:
        selection = RiderSelection(None, 0.0, "always", [], "no rider's condition is met")
        assert renderer.render_selection(selection, indent=2) == [
            "  once per turn (always): none, no rider's condition is met"
        ]


class TestRenderPowerAttack:
    attack = AttackProfile("Greatsword", 7, "2d6+5", power_attack=True)

    def test_analysis(self) -> None:
        lines = renderer.render_power_attack(analyze_power_attack(self.attack, Target(12)))
        assert lines == [
            "power attack: use (9.95 -> 12.45, +2.50)",
            "  break-even AC 17 (closed_form)",
        ]

    def test_table(self) -> None:
        rows = power_attack_sweep(self.attack, Target(15), ac_range=(12, 14))
        lines = renderer.render_power_attack_table(rows)
        assert len(lines) == 4
        assert lines[1].split()[0] == "12"
        assert lines[1].split()[-1] == "use"


class TestRenderMonteCarlo:
    def test_summary(self) -> None:
        build = Build("Longsword", attacks=(AttackProfile("Longsword", 5, "1d8+3"),))
        result = simulate(AttackScenario(build, Target(15), CombatContext(rounds=2)), 500, 42)
        lines = renderer.render_monte_carlo(result)
        assert lines[0] == "Monte Carlo: 500/500 trials (seed 42, completed)"
        assert lines[2].startswith("  percentiles: p5 ")
        assert any(line.startswith("  by round: ") for line in lines)
