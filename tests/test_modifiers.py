"""Tests for modifiers.py"""

import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ttklab.schemas.catalog import WeaponDefinition
from ttklab.services.errors import ConfigurationError, NonInvertibleModifierError
from ttklab.services.modifiers import (
    AttachmentCombo, Modifier, ModifierKind, TierMods, WeaponProfile,
    apply_attachment_combo, apply_modifiers, apply_tier_modifiers,
    best_matching_key, build_base_profile, combos_for_slots, group_by_slot,
    match_rank, patches_for_weapon, resolve_compatibility, unapply_modifiers,
)


def make_profile(**overrides):
    stats = dict(
        weapon="Test Rifle",
        damage_per_bullet=20.0,
        fire_rate_bps=10.0,
        mag_size=30.0,
        reload_time_s=2.0,
        reload_amount=0.0,
    )
    stats.update(overrides)
    return WeaponProfile(**stats)


def attachment(name, slot="misc", compatible=("Test Rifle",), **ops):
    return Modifier.from_fields(
        name=name, kind=ModifierKind.ATTACHMENT, values=ops, compatible=compatible, slot=slot,
    )


def patch(name, compatible, **ops):
    return Modifier.from_fields(name=name, kind=ModifierKind.PATCH, values=ops, compatible=compatible)


class TestBaseProfile:
    """Tests for building canonical tier-I stats."""

    def test_defaults_filled(self):
        """Missing optional fields get the documented defaults."""
        weapon = WeaponDefinition(name="Plain", damage=10, fire_rate=5, mag_size=5, reload_time_s=1)
        profile = build_base_profile(weapon)

        assert profile.headshot_mult == 2.0
        assert profile.limbs_mult == 0.75
        assert profile.bullets_per_shot == 1
        assert profile.burst_delay_s == 0.0
        assert profile.reload_amount == 0.0
        assert profile.tier == 1
        assert profile.attachments == "none"

    def test_non_positive_multipliers_fall_back(self):
        """Zero or negative zone multipliers are treated as missing."""
        weapon = WeaponDefinition(
            name="Odd", damage=10, fire_rate=5, mag_size=5, reload_time_s=1,
            headshot_mult=0, limbs_mult=-1,
        )
        profile = build_base_profile(weapon)
        assert profile.headshot_mult == 2.0
        assert profile.limbs_mult == 0.75

    def test_burst_detection(self):
        """Only multi-bullet weapons with a burst delay are true bursts."""
        burst = make_profile(bullets_per_shot=3, burst_delay_s=0.05)
        shotgun = make_profile(bullets_per_shot=8)

        assert burst.is_burst
        assert burst.ammo_per_shot == 3
        assert burst.burst_duration_s == pytest.approx(0.1)
        assert not shotgun.is_burst
        assert shotgun.ammo_per_shot == 1

    def test_shot_interval_covers_burst(self):
        """A long burst stretches the cadence beyond 1 / fire rate."""
        profile = make_profile(fire_rate_bps=10.0, bullets_per_shot=4, burst_delay_s=0.1)
        assert profile.shot_interval_s == pytest.approx(0.3)

    def test_full_reload_flag(self):
        """Reload amount 0 or >= magazine means full reload."""
        assert make_profile(reload_amount=0).full_reload
        assert make_profile(reload_amount=30).full_reload
        assert not make_profile(reload_amount=1).full_reload


class TestTierModifiers:
    """Tests for upgrade tiers."""

    def test_tier_one_unmodified(self):
        profile = make_profile(tier_mods=TierMods(fire_rate_pct=(10,)))
        assert apply_tier_modifiers(profile, 1) == profile

    def test_tier_two_applies_all_deltas(self):
        """Reload reduction, magazine add and fire-rate boost apply at index tier-2."""
        profile = make_profile(tier_mods=TierMods(
            fire_rate_pct=(10, 20),
            reload_time_reduction_pct=(25, 50),
            mag_add=(5, 10),
        ))
        tier2 = apply_tier_modifiers(profile, 2)

        assert tier2.tier == 2
        assert tier2.fire_rate_bps == pytest.approx(11.0)
        assert tier2.reload_time_s == pytest.approx(1.5)
        assert tier2.mag_size == pytest.approx(35.0)

    def test_negative_deltas_clamped(self):
        """An upgrade never makes a stat worse."""
        profile = make_profile(tier_mods=TierMods(
            fire_rate_pct=(-10,),
            reload_time_reduction_pct=(-20,),
            mag_add=(-5,),
        ))
        tier2 = apply_tier_modifiers(profile, 2)
        assert tier2.fire_rate_bps == profile.fire_rate_bps
        assert tier2.reload_time_s == profile.reload_time_s
        assert tier2.mag_size == profile.mag_size

    def test_reload_reduction_capped(self):
        profile = make_profile(tier_mods=TierMods(reload_time_reduction_pct=(150,)))
        assert apply_tier_modifiers(profile, 2).reload_time_s == 0.0

    def test_missing_entries_leave_stats(self):
        """A tier past the end of one array still applies the others."""
        profile = make_profile(tier_mods=TierMods(fire_rate_pct=(10, 20), mag_add=(5,)))
        tier3 = apply_tier_modifiers(profile, 3)
        assert tier3.fire_rate_bps == pytest.approx(12.0)
        assert tier3.mag_size == profile.mag_size

    def test_max_tier(self):
        assert TierMods().max_tier == 1
        assert TierMods(fire_rate_pct=(1,), mag_add=(1, 2, 3)).max_tier == 4

    def test_invalid_tier(self):
        with pytest.raises(ConfigurationError):
            apply_tier_modifiers(make_profile(), 0)


class TestCompatibility:
    """Tests for weapon-name matching."""

    def test_exact_match(self):
        assert match_rank("Kettle", "Kettle") == (True, 6)

    def test_case_and_whitespace_insensitive(self):
        assert match_rank("  il   TORO ", "Il Toro") == (True, 7)

    def test_containment_either_direction(self):
        assert match_rank("Kett", "Kettle") == (False, 4)
        assert match_rank("Kettle II", "Kettle") == (False, 9)

    def test_no_match(self):
        assert match_rank("Anvil", "Kettle") is None

    def test_blank_pattern_never_matches(self):
        assert match_rank("", "Kettle") is None
        assert match_rank("   ", "Kettle") is None

    def test_resolve_compatibility_keeps_order(self):
        mods = [
            attachment("B", compatible=("Test",)),
            attachment("A", compatible=("Other",)),
            attachment("C", compatible=("Test Rifle",)),
        ]
        assert [m.name for m in resolve_compatibility(mods, "Test Rifle")] == ["B", "C"]

    def test_best_key_prefers_exact(self):
        keys = ["Kettle Mk II", "Kettle", "Kett"]
        assert best_matching_key(keys, "Kettle") == "Kettle"

    def test_best_key_prefers_longest(self):
        assert best_matching_key(["Kett", "Kettle Mk II"], "Kettle") == "Kettle Mk II"

    def test_best_key_tie_is_order_independent(self):
        """Equal-length matches resolve lexicographically, not by input order."""
        keys = ["abd", "abc"]
        weapon = "xabcabdx"
        assert best_matching_key(keys, weapon) == "abc"
        assert best_matching_key(list(reversed(keys)), weapon) == "abc"

    def test_best_key_none(self):
        assert best_matching_key(["Anvil"], "Kettle") is None

    def test_patches_for_weapon_uses_best_key(self):
        """Only deltas listing the winning key apply."""
        patches = [
            patch("generic", ["Kett"], damage_add=1),
            patch("specific", ["Kettle"], damage_add=2),
        ]
        assert [p.name for p in patches_for_weapon(patches, "Kettle")] == ["specific"]
        assert patches_for_weapon(patches, "Anvil") == []


class TestAttachmentCombos:
    """Tests for "none or one per slot" enumeration."""

    def test_no_attachments_single_combo(self):
        combos = combos_for_slots({})
        assert combos == [AttachmentCombo()]
        assert combos[0].label == "none"

    def test_cartesian_product(self):
        mods = [
            attachment("Mag I", slot="magazine"),
            attachment("Mag II", slot="magazine"),
            attachment("Grip", slot="underbarrel"),
        ]
        combos = combos_for_slots(group_by_slot(mods))
        labels = [c.label for c in combos]

        assert len(combos) == 3 * 2
        assert labels[0] == "none"
        assert "Mag II + Grip" in labels
        assert "Mag I + Mag II" not in labels

    def test_missing_slot_defaults_to_misc(self):
        assert list(group_by_slot([attachment("X", slot="")])) == ["misc"]

    def test_combo_applied_with_label(self):
        combo = AttachmentCombo(items=(attachment("Mag", mag_add=5), attachment("Brake", fire_rate_pct=10)))
        out = apply_attachment_combo(make_profile(), combo)
        assert out.attachments == "Mag + Brake"
        assert out.mag_size == pytest.approx(35.0)
        assert out.fire_rate_bps == pytest.approx(11.0)


class TestApplyModifiers:
    """Tests for applying and reversing modifiers."""

    def test_pct_is_signed_change(self):
        out = apply_modifiers(make_profile(), [attachment("Slow", reload_time_pct=-25)])
        assert out.reload_time_s == pytest.approx(1.5)

    def test_operation_order_within_modifier(self):
        """Add runs before mult for the same stat."""
        out = apply_modifiers(make_profile(), [attachment("M", fire_rate_add=2, fire_rate_mult=2)])
        assert out.fire_rate_bps == pytest.approx(24.0)

    def test_set_and_scale(self):
        mods = [attachment("M", reload_amount_set=1, headshot_mult_scale=1.5, limbs_mult_scale=0.5)]
        out = apply_modifiers(make_profile(), mods)
        assert out.reload_amount == 1
        assert out.headshot_mult == pytest.approx(3.0)
        assert out.limbs_mult == pytest.approx(0.375)

    def test_unknown_operation_rejected(self):
        with pytest.raises(ConfigurationError):
            Modifier.from_fields("Typo", ModifierKind.ATTACHMENT, {"mad_add": 2})

    def test_roundtrip_additive_multiplicative(self):
        """Reversing add/mult/pct modifiers restores the profile."""
        profile = make_profile()
        mods = [
            patch("p1", ["Test Rifle"], damage_add=3, fire_rate_pct=-12.5, mag_mult=1.2),
            patch("p2", ["Test Rifle"], damage_pct=10, reload_time_add=0.3, headshot_mult_scale=1.1),
        ]
        restored = unapply_modifiers(apply_modifiers(profile, mods), mods)

        assert not restored.approximate
        for attr in ("damage_per_bullet", "fire_rate_bps", "mag_size", "reload_time_s", "headshot_mult"):
            assert getattr(restored.profile, attr) == pytest.approx(getattr(profile, attr))

    def test_set_reported_as_skipped(self):
        """Absolute sets cannot be reversed; the baseline is flagged approximate."""
        mods = [patch("rework", ["Test Rifle"], reload_amount_set=1, damage_add=2)]
        result = unapply_modifiers(apply_modifiers(make_profile(), mods), mods)

        assert result.approximate
        assert result.skipped == ("rework.reload_amount_set",)
        assert result.profile.damage_per_bullet == pytest.approx(20.0)
        assert result.profile.reload_amount == 1

    def test_set_strict_raises(self):
        mods = [patch("rework", ["Test Rifle"], reload_amount_set=1)]
        with pytest.raises(NonInvertibleModifierError):
            unapply_modifiers(make_profile(), mods, strict=True)

    def test_zero_multiplier_not_invertible(self):
        mod = patch("zero", ["Test Rifle"], damage_mult=0)
        result = unapply_modifiers(make_profile(), [mod])
        assert result.approximate
        assert result.skipped == ("zero.damage_mult",)
