#!/usr/bin/env python3
"""Print power attack break-even ACs for a range of attack bonuses and
damage expressions, plus the per-AC sweep for one of them.

Usage:
    python tools/power_attack_table.py [to_hit] [damage]

Defaults to +7 with 2d6+4 (a greatsword at level 5).
"""

import sys

from dpr.power_attack import break_even_by_state, power_attack_sweep
from dpr.records import AttackProfile, Target
from dpr.renderers import TextRenderer

DAMAGES = ("1d8+3", "1d10+4", "2d6+4", "1d12+5")


def main() -> None:
    to_hit = int(sys.argv[1]) if len(sys.argv) > 1 else 7
    damage = sys.argv[2] if len(sys.argv) > 2 else "2d6+4"

    print("break-even AC by attack bonus (normal/advantage/disadvantage/elven)")
    for dmg in DAMAGES:
        cells = []
        for bonus in range(4, 13, 2):
            states = break_even_by_state(AttackProfile("Attack", bonus, dmg), Target(15))
            cells.append("/".join(str(ac) for ac in states.values()))
        print(f"{dmg:>8}: " + "  ".join(f"+{b}: {c:>11}" for b, c in zip(range(4, 13, 2), cells)))

    print()
    attack = AttackProfile("Attack", to_hit, damage, power_attack=True)
    rows = power_attack_sweep(attack, Target(15), ac_range=(10, 25))
    print("\n".join(TextRenderer().render_power_attack_table(rows)))


if __name__ == "__main__":
    main()
