"""
Damage-per-round math for d20 tabletop combat.

The public entry points:

* ``evaluate_dpr(build, target, context)``: exact expected damage per round.
* ``run_monte_carlo(scenario, iterations, seed)``: seeded simulation in the
  background, returning a Future of a MonteCarloResult.
* ``analyze_power_attack(attack, target, context)``: whether the −5/+10
  trade pays against this target.
* ``calculate_hit_probability(to_hit, ac, state)``: one attack roll's hit
  chance.

Everything else is importable from its module.
"""

from dpr.evaluator import evaluate_dpr
from dpr.montecarlo import run_monte_carlo
from dpr.power_attack import analyze_power_attack
from dpr.probability import calculate_hit_probability

__all__ = [
    "analyze_power_attack",
    "calculate_hit_probability",
    "evaluate_dpr",
    "run_monte_carlo",
]
