"""Streamlit DPR calculator UI.

Run with: PYTHONPATH=. streamlit run ui/app.py
"""

from __future__ import annotations

from typing import Callable

import streamlit as st

from dpr.adapters import build_from_dict, context_from_dict, target_from_dict
from dpr.data import BUILDS, TARGETS
from dpr.dice import format_damage, parse_damage
from dpr.evaluator import Evaluator
from dpr.montecarlo import AttackScenario, simulate
from dpr.power_attack import power_attack_sweep
from dpr.records import Build, CombatContext, Target
from dpr.types import ADVANTAGE_STATES, DAMAGE_TYPES

CUSTOM = "Custom"
BUILD_NAMES = [CUSTOM, *BUILDS]
TARGET_NAMES = [CUSTOM, *TARGETS]


def attack_config(label: str = "Attack") -> dict:
    """Render sidebar controls for one attack profile and return config dict."""
    st.sidebar.subheader(label)
    return {
        "name": st.sidebar.text_input("Name", "Longsword", key=f"{label}_name"),
        "to_hit": st.sidebar.number_input("To hit", -5, 20, 7, key=f"{label}_to_hit"),
        "damage": st.sidebar.text_input("Damage", "1d8+4", key=f"{label}_damage"),
        "damage_type": st.sidebar.selectbox(
            "Damage type", DAMAGE_TYPES, index=DAMAGE_TYPES.index("slashing"), key=f"{label}_type",
        ),
        "crit_range": st.sidebar.slider("Crit range", 1, 3, 1, key=f"{label}_crit"),
        "great_weapon_fighting": st.sidebar.checkbox("Great Weapon Fighting", key=f"{label}_gwf"),
        "power_attack": st.sidebar.checkbox("Power attack eligible", key=f"{label}_pa"),
        "halfling_luck": st.sidebar.checkbox("Halfling luck", key=f"{label}_luck"),
        "elemental_adept": st.sidebar.checkbox("Elemental Adept", key=f"{label}_adept"),
        "attacks": st.sidebar.slider("Attacks per turn", 1, 4, 1, key=f"{label}_count"),
    }


def target_config() -> dict:
    st.sidebar.subheader("Target")
    return {
        "armor_class": st.sidebar.slider("AC", 5, 30, 15),
        "resistances": st.sidebar.multiselect("Resistances", DAMAGE_TYPES),
        "immunities": st.sidebar.multiselect("Immunities", DAMAGE_TYPES),
        "vulnerabilities": st.sidebar.multiselect("Vulnerabilities", DAMAGE_TYPES),
        "legendary_resistances": st.sidebar.number_input("Legendary resistances", 0, 5, 0),
    }


def context_config() -> dict:
    st.sidebar.subheader("Situation")
    advantage = st.sidebar.selectbox("Advantage", ("per attack", *ADVANTAGE_STATES))
    return {
        "advantage": None if advantage == "per attack" else advantage,
        "rounds": st.sidebar.slider("Rounds", 1, 10, 1),
        "bonus_dice": ["1d4"] if st.sidebar.checkbox("Bless") else [],
        "power_attack": st.sidebar.selectbox("Power attack", ("never", "always", "optimal")),
        "rider_policy": st.sidebar.selectbox("Once-per-turn rider", ("optimal", "always", "priority")),
    }


def custom_build(attack: dict, warn: Callable[[str], object] | None = None) -> Build:
    """A Build making one attack profile ``attack["attacks"]`` times a turn.

    The damage box is free text, so it goes through the lenient parser: text
    it cannot read becomes 0 damage and ``warn`` is told.
    """
    attack = dict(attack)
    count = attack.pop("attacks", 1)
    dice = parse_damage(attack.get("damage", ""))
    if dice.fallback and warn is not None:
        warn(f"Could not read damage {attack.get('damage')!r}; using 0.")
    attack["damage"] = format_damage(dice)
    return build_from_dict({"name": attack.get("name", "Attack"), "attacks": [attack] * count})


def build_inputs(
    attack: dict, target: dict, context: dict, warn: Callable[[str], object] | None = None
) -> tuple[Build, Target, CombatContext]:
    """Turn the sidebar dicts into validated records."""
    return custom_build(attack, warn), target_from_dict(target), context_from_dict(context)


def choose_inputs() -> tuple[Build, Target, CombatContext]:
    build_name = st.sidebar.selectbox("Build", BUILD_NAMES)
    target_name = st.sidebar.selectbox("Target preset", TARGET_NAMES)
    attack = attack_config() if build_name == CUSTOM else {}
    target = target_config() if target_name == CUSTOM else {}
    context = context_config()

    build = custom_build(attack, st.sidebar.warning) if build_name == CUSTOM else BUILDS[build_name]
    tgt = target_from_dict(target) if target_name == CUSTOM else TARGETS[target_name]
    return build, tgt, context_from_dict(context)


def show_dpr(evaluator: Evaluator, build: Build, target: Target, context: CombatContext) -> None:
    result = evaluator.evaluate(build, target, context)
    cols = st.columns(4)
    cols[0].metric("DPR", f"{result.total:.2f}")
    cols[1].metric("Advantage", f"{result.conditions.advantage:.2f}")
    cols[2].metric("Disadvantage", f"{result.conditions.disadvantage:.2f}")
    if result.power_attack:
        cols[3].metric(
            "Power attack", result.power_attack.recommendation, f"{result.power_attack.delta:+.2f}",
        )
    st.code("\n".join(evaluator.explain(result)))

    if build.attacks and build.attacks[0].power_attack:
        rows = power_attack_sweep(build.attacks[0], target, context)
        st.subheader("Power attack by AC")
        st.dataframe(
            [
                {"AC": r.ac, "normal": r.normal_dpr, "power": r.power_attack_dpr, "advice": r.recommendation}
                for r in rows
            ],
            hide_index=True,
        )


def show_simulation(evaluator: Evaluator, build: Build, target: Target, context: CombatContext,
                    iterations: int, seed: int) -> None:
    bar = st.progress(0.0)
    result = simulate(
        AttackScenario(build, target, context),
        iterations,
        seed,
        on_progress=lambda p: bar.progress(p.fraction),
    )
    d = result.damage
    cols = st.columns(3)
    cols[0].metric("Mean", f"{d.mean:.2f}", f"±{d.confidence_interval.margin:.2f}")
    cols[1].metric("Median", f"{d.median:g}")
    cols[2].metric("Std dev", f"{d.standard_deviation:.2f}")
    st.code("\n".join(evaluator.renderer.render_monte_carlo(result)))


def main() -> None:
    st.set_page_config(page_title="DPR Calculator", layout="wide")
    st.title("DPR Calculator")

    st.sidebar.header("Configuration")
    build, target, context = choose_inputs()

    st.sidebar.divider()
    st.sidebar.subheader("Simulation")
    iterations = st.sidebar.select_slider("Trials", (1000, 5000, 10000, 50000), 10000)
    seed = st.sidebar.number_input("Seed", 0, 2 ** 31, 42)
    simulate_clicked = st.sidebar.button("Simulate", type="primary")

    evaluator = Evaluator()
    st.subheader(f"{build.name} vs {target.name} (AC {target.armor_class})")
    show_dpr(evaluator, build, target, context)

    if simulate_clicked:
        st.divider()
        st.subheader("Monte Carlo")
        show_simulation(evaluator, build, target, context, iterations, int(seed))


if __name__ == "__main__":
    main()
