"""
Translate loose mappings (form state, JSON, YAML) into validated records.

This is the only place the engine accepts untyped dictionaries. Keys may be
given in snake_case or in the camelCase common in JSON payloads
("toHit", "critRange", "armorClass"); unknown keys are rejected rather than
ignored so a typo cannot silently drop a setting.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from dpr.errors import ValidationError
from dpr.records import AttackProfile, Build, CombatContext, PerHitBonus, Rider, SaveEffect, Target

ALIASES = {
    "toHit": "to_hit",
    "attackBonus": "to_hit",
    "damageType": "damage_type",
    "critRange": "crit_range",
    "advantageState": "advantage",
    "greatWeaponFighting": "great_weapon_fighting",
    "gwf": "great_weapon_fighting",
    "powerAttack": "power_attack",
    "halflingLuck": "halfling_luck",
    "elementalAdept": "elemental_adept",
    "ac": "armor_class",
    "armorClass": "armor_class",
    "saveBonus": "save_bonus",
    "saves": "save_bonus",
    "magicResistance": "magic_resistance",
    "legendaryResistances": "legendary_resistances",
    "doublesOnCrit": "doubles_on_crit",
    "requiresTags": "requires_tags",
    "critOnly": "crit_only",
    "halfOnSave": "half_on_save",
    "perHit": "per_hit",
    "elvenAccuracy": "elven_accuracy",
    "bonusDice": "bonus_dice",
    "includeCrits": "include_crits",
    "powerAttackPolicy": "power_attack",
    "riderPolicy": "rider_policy",
    "riderOrder": "rider_order",
}


def normalize(data: Mapping[str, Any], kind: type, allowed: set[str]) -> dict[str, Any]:
    """Map aliases to field names and reject anything else."""
    if not isinstance(data, Mapping):
        raise ValidationError(kind.__name__, data, "expected a mapping")
    result: dict[str, Any] = {}
    for key, value in data.items():
        name = ALIASES.get(key, key)
        if name not in allowed:
            raise ValidationError(f"{kind.__name__}.{key}", value, "unknown field")
        result[name] = value
    return result


def _fields(kind: type) -> set[str]:
    return set(kind.__dataclass_fields__)


def _build(kind: type, data: Mapping[str, Any], **defaults: Any) -> Any:
    kwargs = {**defaults, **normalize(data, kind, _fields(kind))}
    try:
        return kind(**kwargs)
    except TypeError as exc:
        raise ValidationError(kind.__name__, dict(data), str(exc)) from exc


def attack_from_dict(data: Mapping[str, Any]) -> AttackProfile:
    return _build(AttackProfile, data, name="Attack")


def target_from_dict(data: Mapping[str, Any]) -> Target:
    return _build(Target, data)


def rider_from_dict(data: Mapping[str, Any]) -> Rider:
    return _build(Rider, data)


def per_hit_from_dict(data: Mapping[str, Any]) -> PerHitBonus:
    return _build(PerHitBonus, data)


def spell_from_dict(data: Mapping[str, Any]) -> SaveEffect:
    return _build(SaveEffect, data)


def build_from_dict(data: Mapping[str, Any]) -> Build:
    """A Build from a mapping whose list entries may themselves be mappings."""
    kwargs = normalize(data, Build, _fields(Build))
    converters = {
        "attacks": (AttackProfile, attack_from_dict),
        "riders": (Rider, rider_from_dict),
        "per_hit": (PerHitBonus, per_hit_from_dict),
        "spells": (SaveEffect, spell_from_dict),
    }
    for name, (kind, convert) in converters.items():
        if name in kwargs:
            kwargs[name] = tuple(
                item if isinstance(item, kind) else convert(item) for item in kwargs[name]
            )
    kwargs.setdefault("name", "Build")
    return Build(**kwargs)


def context_from_dict(data: Mapping[str, Any] | None) -> CombatContext:
    if not data:
        return CombatContext()
    return _build(CombatContext, data)
