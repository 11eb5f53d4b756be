"""
Ready-made targets and builds for the UI and the command-line tools.

Targets are SRD monsters plus four AC benchmarks (11, 15, 18, 22) covering
unarmoured through magically armoured foes. Builds are level-5 style
characters that each exercise one part of the engine:

* great weapon fighter: two attacks with GWF and a power attack option;
* rogue: one finesse attack carrying Sneak Attack;
* paladin: two attacks, a slot-limited smite and a cheaper once-per-turn
  rider that compete for the same turn;
* ranger: two bow attacks with Hunter's Mark on every hit;
* evoker: a save-for-half spell with limited casts.

Everything is a validated record, so the presets double as fixtures.
"""

from __future__ import annotations

from dpr.records import AttackProfile, Build, PerHitBonus, Rider, SaveEffect, Target

TARGETS: dict[str, Target] = {
    "Low AC Target": Target(11, name="Low AC Target"),
    "Medium AC Target": Target(15, name="Medium AC Target"),
    "High AC Target": Target(18, name="High AC Target"),
    "Very High AC Target": Target(22, name="Very High AC Target"),
    "Goblin": Target(15, save_bonus={"dex": 2}, name="Goblin"),
    "Orc": Target(13, save_bonus={"str": 3, "con": 3}, name="Orc"),
    "Ogre": Target(11, save_bonus={"str": 4, "con": 3}, name="Ogre"),
    "Owlbear": Target(13, save_bonus={"str": 5, "dex": 1}, name="Owlbear"),
    "Hill Giant": Target(13, save_bonus={"str": 5, "con": 4}, name="Hill Giant"),
    "Skeleton": Target(
        13,
        immunities={"poison"},
        vulnerabilities={"bludgeoning"},
        save_bonus={"dex": 2},
        name="Skeleton",
    ),
    "Adult Red Dragon": Target(
        19,
        immunities={"fire"},
        save_bonus={"dex": 8, "con": 13, "wis": 7, "cha": 11},
        legendary_resistances=3,
        name="Adult Red Dragon",
    ),
    "Rakshasa": Target(
        16,
        resistances={"bludgeoning", "piercing", "slashing"},
        vulnerabilities={"piercing"},
        magic_resistance=True,
        save_bonus={"wis": 5},
        name="Rakshasa",
    ),
}

_greatsword = AttackProfile(
    "Greatsword", to_hit=7, damage="2d6+4", great_weapon_fighting=True,
    power_attack=True, tags={"melee", "heavy"},
)
_longsword = AttackProfile("Longsword", to_hit=7, damage="1d8+4", tags={"melee"})
_longbow = AttackProfile(
    "Longbow", to_hit=9, damage="1d8+4", damage_type="piercing", tags={"ranged"},
)

BUILDS: dict[str, Build] = {
    "Great Weapon Fighter": Build("Great Weapon Fighter", attacks=(_greatsword, _greatsword)),
    "Rogue": Build(
        "Rogue",
        attacks=(
            AttackProfile(
                "Rapier", to_hit=7, damage="1d8+4", damage_type="piercing",
                tags={"melee", "finesse"},
            ),
        ),
        riders=(Rider("Sneak Attack", "3d6", requires_tags={"finesse"}, condition="advantage"),),
    ),
    "Paladin": Build(
        "Paladin",
        attacks=(_longsword, _longsword),
        riders=(
            Rider("Divine Smite", "2d8", damage_type="radiant", uses=4, priority=1),
            Rider("Searing Smite", "1d6", damage_type="fire", uses=2),
        ),
    ),
    "Ranger": Build(
        "Ranger",
        attacks=(_longbow, _longbow),
        per_hit=(PerHitBonus("Hunter's Mark", "1d6"),),
    ),
    "Evoker": Build(
        "Evoker",
        spells=(SaveEffect("Fireball", dc=15, ability="dex", damage="8d6", damage_type="fire", uses=2),),
    ),
}
