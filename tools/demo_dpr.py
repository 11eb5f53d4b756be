#!/usr/bin/env python3
"""Run a quick demo: every preset build against every preset target.

Usage:
    python tools/demo_dpr.py [build name] [target name]

With a build and target named, also runs a 10,000 trial Monte Carlo
simulation of that matchup (seed 42).
"""

import logging
import sys

from dpr.data import BUILDS, TARGETS
from dpr.evaluator import Evaluator
from dpr.montecarlo import AttackScenario, simulate


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    evaluator = Evaluator()
    names = sys.argv[1:3]
    if len(names) == 2:
        build, target = BUILDS[names[0]], TARGETS[names[1]]
        result = evaluator.evaluate(build, target)
        print("\n".join(evaluator.explain(result)))
        sim = simulate(AttackScenario(build, target), 10000, 42)
        print("\n".join(evaluator.renderer.render_monte_carlo(sim)))
        return

    print(f"{'':24}" + "".join(f"{t[:10]:>11}" for t in TARGETS))
    for name, build in BUILDS.items():
        row = [evaluator.evaluate(build, target).total for target in TARGETS.values()]
        print(f"{name:24}" + "".join(f"{dpr:11.2f}" for dpr in row))


if __name__ == "__main__":
    main()
