"""Renderers that convert structured DPR records into text output.

The TextRenderer produces terminal-friendly lines for the demo tools and the
evaluator's explain view. The Streamlit page consumes the same record types
for its own display.
"""

from __future__ import annotations

from dpr.records import (
    AttackBreakdown,
    DPRResult,
    MonteCarloResult,
    PowerAttackAnalysis,
    PowerAttackRow,
    RiderSelection,
)


def pct(p: float) -> str:
    return f"{p * 100:.1f}%"


class TextRenderer:
    """Renders DPRResult and MonteCarloResult records to text lines.

    Each render_* method returns a list of strings, one per output line.
    """

    def render_dpr(self, result: DPRResult) -> list[str]:
        lines: list[str] = [f"DPR: {result.total:.2f}"]
        b = result.breakdown
        lines.append(
            f"  weapon {b.weapon_damage:.2f}, once per turn {b.once_per_turn:.2f}, "
            f"spells {b.spell_damage:.2f}, other {b.other_sources:.2f}"
        )
        for row in result.attacks:
            lines.append(self.render_attack(row, indent=2))
        if result.once_per_turn:
            lines.extend(self.render_selection(result.once_per_turn, indent=2))
        if len(result.by_round) > 1:
            lines.append("  by round: " + ", ".join(f"{d:.2f}" for d in result.by_round))
        c = result.conditions
        states = f"  normal {c.normal:.2f}, advantage {c.advantage:.2f}, disadvantage {c.disadvantage:.2f}"
        if c.elven_accuracy is not None:
            states += f", elven accuracy {c.elven_accuracy:.2f}"
        lines.append(states)
        if result.power_attack:
            lines.extend(self.render_power_attack(result.power_attack, indent=2))
        return lines

    def render_attack(self, record: AttackBreakdown, indent: int = 0) -> str:
        prefix = " " * indent
        tag = " (power attack)" if record.power_attack else ""
        return (
            f"{prefix}{record.name}{tag}: {pct(record.hit_chance)} hit, {pct(record.crit_chance)} crit "
            f"[{record.state}], {record.normal_damage:g}/{record.crit_damage:g} {record.damage_type} "
            f"-> {record.expected_damage:.2f}"
        )

    def render_selection(self, record: RiderSelection, indent: int = 0) -> list[str]:
        prefix = " " * indent
        if record.selected is None:
            return [f"{prefix}once per turn ({record.policy}): none, {record.reasoning}"]
        lines = [f"{prefix}once per turn ({record.policy}): {record.reasoning}"]
        for c in record.candidates:
            mark = "*" if c.name == record.selected else ("-" if c.satisfied else "x")
            lines.append(f"{prefix}  {mark} {c.name}: {c.expected_damage:.2f}")
        return lines

    def render_power_attack(self, record: PowerAttackAnalysis, indent: int = 0) -> list[str]:
        prefix = " " * indent
        return [
            f"{prefix}power attack: {record.recommendation} "
            f"({record.normal_dpr:.2f} -> {record.power_attack_dpr:.2f}, {record.delta:+.2f})",
            f"{prefix}  break-even AC {record.break_even_ac} ({record.method})",
        ]

    def render_power_attack_table(self, rows: list[PowerAttackRow]) -> list[str]:
        lines = [" AC  normal   power   delta  advice"]
        for r in rows:
            lines.append(
                f"{r.ac:3d} {r.normal_dpr:7.2f} {r.power_attack_dpr:7.2f} {r.delta:+7.2f}  {r.recommendation}"
            )
        return lines

    def render_monte_carlo(self, result: MonteCarloResult) -> list[str]:
        d = result.damage
        ci = d.confidence_interval
        lines = [
            f"Monte Carlo: {result.runs}/{result.iterations} trials (seed {result.seed}, {result.status})",
            f"  mean {d.mean:.2f} +/- {ci.margin:.2f}, median {d.median:.2f}, sd {d.standard_deviation:.2f}",
            "  percentiles: " + ", ".join(f"p{k} {v:g}" for k, v in d.percentiles.items()),
            f"  hit rate {pct(result.accuracy.hit_rate)}, crit rate {pct(result.accuracy.crit_rate)}",
        ]
        if len(d.by_round.mean) > 1:
            lines.append("  by round: " + ", ".join(f"{m:.2f}" for m in d.by_round.mean))
        for note in result.insights.best_strategies + result.insights.risk_factors:
            lines.append(f"  - {note}")
        return lines
