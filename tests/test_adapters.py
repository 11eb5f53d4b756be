"""Tests for mapping-to-record adapters."""

import pytest

from dpr.adapters import (
    attack_from_dict,
    build_from_dict,
    context_from_dict,
    rider_from_dict,
    spell_from_dict,
    target_from_dict,
)
from dpr.errors import ValidationError
from dpr.records import AttackProfile, CombatContext, Rider


class TestAttackFromDict:
    def test_camel_case(self) -> None:
        attack = attack_from_dict(
            {"name": "Bow", "toHit": 8, "damage": "1d8+4", "damageType": "piercing", "critRange": 2}
        )
        assert attack == AttackProfile("Bow", 8, "1d8+4", damage_type="piercing", crit_range=2)

    def test_default_name(self) -> None:
        assert attack_from_dict({"to_hit": 5, "damage": "1d6"}).name == "Attack"

    def test_unknown_key(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            attack_from_dict({"to_hit": 5, "damage": "1d6", "toHitt": 6})
        assert exc_info.value.field == "AttackProfile.toHitt"

    def test_missing_field(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            attack_from_dict({"damage": "1d6"})
        assert exc_info.value.field == "AttackProfile"

    def test_invalid_value(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            attack_from_dict({"to_hit": 5, "damage": "lots"})
        assert exc_info.value.field == "damage"

    def test_not_a_mapping(self) -> None:
        with pytest.raises(ValidationError):
            attack_from_dict(["to_hit", 5])


class TestTargetFromDict:
    def test_aliases(self) -> None:
        target = target_from_dict({"ac": 17, "resistances": ["Fire"], "saves": {"dex": 3}})
        assert target.armor_class == 17
        assert target.resistances == frozenset({"fire"})
        assert target.save("dex") == 3
        assert target.save("wis") == 0


class TestBuildFromDict:
    def test_nested(self) -> None:
        build = build_from_dict(
            {
                "name": "Paladin",
                "attacks": [{"name": "Longsword", "toHit": 7, "damage": "1d8+4"}] * 2,
                "riders": [{"name": "Smite", "damage": "2d8", "damageType": "radiant", "uses": 2}],
                "perHit": [{"name": "Improved Smite", "damage": "1d8", "damage_type": "radiant"}],
                "spells": [
                    {"name": "Fireball", "dc": 15, "ability": "dex", "damage": "8d6", "damage_type": "fire"}
                ],
                "elvenAccuracy": True,
            }
        )
        assert len(build.attacks) == 2
        assert build.riders == (Rider("Smite", "2d8", "radiant", uses=2),)
        assert build.per_hit[0].name == "Improved Smite"
        assert build.spells[0].dc == 15
        assert build.elven_accuracy is True

    def test_records_pass_through(self) -> None:
        attack = AttackProfile("Axe", 5, "1d12+3")
        build = build_from_dict({"attacks": [attack]})
        assert build.attacks == (attack,)
        assert build.name == "Build"

    def test_nested_error(self) -> None:
        with pytest.raises(ValidationError):
            build_from_dict({"attacks": [{"to_hit": 5, "damage": "1d6", "colour": "red"}]})


class TestOthers:
    def test_rider(self) -> None:
        rider = rider_from_dict({"name": "Sneak", "damage": "3d6", "requiresTags": ["finesse"]})
        assert rider.requires_tags == frozenset({"finesse"})

    def test_spell_half_on_save(self) -> None:
        spell = spell_from_dict(
            {"name": "Ray", "dc": 14, "ability": "con", "damage": "4d8", "damageType": "necrotic",
             "halfOnSave": False}
        )
        assert spell.half_on_save is False

    def test_context(self) -> None:
        context = context_from_dict({"bonusDice": ["1d4"], "powerAttackPolicy": "optimal", "rounds": 3})
        assert context == CombatContext(bonus_dice=("1d4",), power_attack="optimal", rounds=3)

    @pytest.mark.parametrize("data", [None, {}])
    def test_empty_context(self, data) -> None:
        assert context_from_dict(data) == CombatContext()

    def test_invalid_context(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            context_from_dict({"rider_policy": "greedy"})
        assert exc_info.value.field == "rider_policy"

    def test_feat_aliases(self) -> None:
        attack = attack_from_dict({"toHit": 5, "damage": "1d8+3", "halflingLuck": True})
        spell = spell_from_dict(
            {"name": "Fireball", "dc": 15, "ability": "dex", "damage": "8d6", "damageType": "fire",
             "elementalAdept": True}
        )
        target = target_from_dict({"ac": 18, "legendaryResistances": 3})
        assert attack.halfling_luck is True
        assert spell.elemental_adept is True
        assert target.legendary_resistances == 3
