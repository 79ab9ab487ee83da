"""Modifier resolution for weapon loadouts.

Builds canonical per-weapon stats from catalog entries, applies upgrade tiers,
matches attachments/patch deltas to weapons and enumerates attachment combos.
Attachments and patch deltas share one modifier model, so the same code
applies a balance change and reverses it to rebuild a pre-patch baseline.
"""

import itertools
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import ConfigurationError, NonInvertibleModifierError

DEFAULT_HEADSHOT_MULT = 2.0
DEFAULT_LIMBS_MULT = 0.75
NONE_LABEL = "none"


@dataclass(frozen=True)
class TierMods:
    """Per-weapon upgrade deltas; index 0 is tier II."""
    fire_rate_pct: Tuple[Optional[float], ...] = ()
    reload_time_reduction_pct: Tuple[Optional[float], ...] = ()
    mag_add: Tuple[Optional[float], ...] = ()

    @staticmethod
    def _at(values: Tuple[Optional[float], ...], idx: int) -> Optional[float]:
        if 0 <= idx < len(values):
            return values[idx]
        return None

    def fire_rate_at(self, idx: int) -> Optional[float]:
        return self._at(self.fire_rate_pct, idx)

    def reload_reduction_at(self, idx: int) -> Optional[float]:
        return self._at(self.reload_time_reduction_pct, idx)

    def mag_add_at(self, idx: int) -> Optional[float]:
        return self._at(self.mag_add, idx)

    @property
    def max_tier(self) -> int:
        longest = max(
            len(self.fire_rate_pct),
            len(self.reload_time_reduction_pct),
            len(self.mag_add),
        )
        return 1 + longest


@dataclass(frozen=True)
class WeaponProfile:
    """Resolved stats for one (weapon, tier, attachment combo)."""
    weapon: str
    damage_per_bullet: float
    fire_rate_bps: float  # shots per second
    mag_size: float
    reload_time_s: float
    reload_amount: float = 0.0  # 0 or >= mag_size means full reload
    headshot_mult: float = DEFAULT_HEADSHOT_MULT
    limbs_mult: float = DEFAULT_LIMBS_MULT
    bullets_per_shot: int = 1
    burst_delay_s: float = 0.0
    tier: int = 1
    attachments: str = NONE_LABEL
    tier_mods: TierMods = field(default_factory=TierMods)

    @property
    def is_burst(self) -> bool:
        """True bursts spend one ammo per bullet; shotguns spend one per shot."""
        return self.burst_delay_s > 0 and self.bullets_per_shot > 1

    @property
    def ammo_per_shot(self) -> int:
        return self.bullets_per_shot if self.is_burst else 1

    @property
    def burst_duration_s(self) -> float:
        if not self.is_burst:
            return 0.0
        return (self.bullets_per_shot - 1) * self.burst_delay_s

    @property
    def shot_interval_s(self) -> float:
        """Cadence between two shots fired from the same magazine."""
        base = 1.0 / self.fire_rate_bps if self.fire_rate_bps > 0 else 0.0
        return max(base, self.burst_duration_s)

    @property
    def full_reload(self) -> bool:
        return self.reload_amount <= 0 or self.reload_amount >= self.mag_size

    def stats_dict(self) -> Dict[str, float]:
        return {
            "damage_per_bullet": self.damage_per_bullet,
            "fire_rate_bps": self.fire_rate_bps,
            "mag_size": self.mag_size,
            "reload_time_s": self.reload_time_s,
            "reload_amount": self.reload_amount,
            "headshot_mult": self.headshot_mult,
            "limbs_mult": self.limbs_mult,
            "bullets_per_shot": self.bullets_per_shot,
            "burst_delay_s": self.burst_delay_s,
        }


class ModifierKind(str, Enum):
    ATTACHMENT = "attachment"
    PATCH = "patch"


# Operation kinds
ADD = "add"
MULT = "mult"
PCT = "pct"
SET = "set"

# field name -> (profile attribute, operation); dict order is application order
MODIFIER_OPS: Dict[str, Tuple[str, str]] = {
    "fire_rate_add": ("fire_rate_bps", ADD),
    "fire_rate_mult": ("fire_rate_bps", MULT),
    "fire_rate_pct": ("fire_rate_bps", PCT),
    "reload_time_add": ("reload_time_s", ADD),
    "reload_time_mult": ("reload_time_s", MULT),
    "reload_time_pct": ("reload_time_s", PCT),
    "damage_add": ("damage_per_bullet", ADD),
    "damage_mult": ("damage_per_bullet", MULT),
    "damage_pct": ("damage_per_bullet", PCT),
    "mag_add": ("mag_size", ADD),
    "mag_mult": ("mag_size", MULT),
    "mag_pct": ("mag_size", PCT),
    "reload_amount_set": ("reload_amount", SET),
    "reload_amount_add": ("reload_amount", ADD),
    "headshot_mult_scale": ("headshot_mult", MULT),
    "limbs_mult_scale": ("limbs_mult", MULT),
}


@dataclass(frozen=True)
class Modifier:
    """An attachment or a patch delta: a named, sparse list of stat operations."""
    name: str
    kind: ModifierKind
    ops: Tuple[Tuple[str, float], ...] = ()
    compatible: Tuple[str, ...] = ()
    slot: str = "misc"

    def __post_init__(self):
        for field_name, _ in self.ops:
            if field_name not in MODIFIER_OPS:
                raise ConfigurationError(
                    f"Modifier '{self.name}' has unknown operation '{field_name}'"
                )

    @classmethod
    def from_fields(
        cls,
        name: str,
        kind: ModifierKind,
        values: Dict[str, Optional[float]],
        compatible: Sequence[str] = (),
        slot: str = "misc",
    ) -> "Modifier":
        """Build a modifier from a sparse field mapping, keeping declared op order."""
        unknown = set(values) - set(MODIFIER_OPS)
        if unknown:
            raise ConfigurationError(
                f"Modifier '{name}' has unknown operations: {sorted(unknown)}"
            )
        ops = tuple(
            (field_name, float(values[field_name]))
            for field_name in MODIFIER_OPS
            if values.get(field_name) is not None
        )
        return cls(name=name, kind=kind, ops=ops, compatible=tuple(compatible), slot=slot)


@dataclass(frozen=True)
class AttachmentCombo:
    """One chosen attachment per slot; slots left out mean "none"."""
    items: Tuple[Modifier, ...] = ()

    @property
    def label(self) -> str:
        if not self.items:
            return NONE_LABEL
        return " + ".join(m.name for m in self.items)


@dataclass(frozen=True)
class BaselineReconstruction:
    """Result of reversing modifiers; ``skipped`` lists operations left in place."""
    profile: WeaponProfile
    skipped: Tuple[str, ...] = ()

    @property
    def approximate(self) -> bool:
        return bool(self.skipped)


def _positive_or(value: Optional[float], default: float) -> float:
    if value is None or value <= 0:
        return default
    return float(value)


def build_base_profile(weapon_def) -> WeaponProfile:
    """Map a validated weapon definition to tier-I stats, filling defaults."""
    tm = weapon_def.tier_mods
    tier_mods = TierMods(
        fire_rate_pct=tuple(tm.fire_rate_pct),
        reload_time_reduction_pct=tuple(tm.reload_time_reduction_pct),
        mag_add=tuple(tm.mag_add),
    ) if tm is not None else TierMods()

    bullets = weapon_def.nb_bullets
    burst_delay = weapon_def.burst_delay

    return WeaponProfile(
        weapon=weapon_def.name,
        damage_per_bullet=float(weapon_def.damage),
        fire_rate_bps=float(weapon_def.fire_rate),
        mag_size=float(weapon_def.mag_size),
        reload_time_s=float(weapon_def.reload_time_s),
        reload_amount=float(weapon_def.reload_amount or 0.0),
        headshot_mult=_positive_or(weapon_def.headshot_mult, DEFAULT_HEADSHOT_MULT),
        limbs_mult=_positive_or(weapon_def.limbs_mult, DEFAULT_LIMBS_MULT),
        bullets_per_shot=bullets if bullets is not None and bullets > 0 else 1,
        burst_delay_s=float(burst_delay) if burst_delay is not None and burst_delay > 0 else 0.0,
        tier=1,
        tier_mods=tier_mods,
    )


def apply_tier_modifiers(profile: WeaponProfile, tier: int) -> WeaponProfile:
    """Apply the tier deltas stored on the profile.

    Tier I is unmodified. Negative deltas clamp to zero so an upgrade never
    makes the weapon worse; missing entries leave the stat untouched.
    """
    if tier < 1:
        raise ConfigurationError(f"Tier must be >= 1, got {tier}")

    idx = tier - 2
    if idx < 0:
        return replace(profile, tier=tier)

    tm = profile.tier_mods
    reload_time = profile.reload_time_s
    mag_size = profile.mag_size
    fire_rate = profile.fire_rate_bps

    reduction = tm.reload_reduction_at(idx)
    if reduction is not None:
        pct = min(100.0, max(0.0, reduction))
        reload_time *= (1 - pct / 100)

    mag_add = tm.mag_add_at(idx)
    if mag_add is not None:
        mag_size += max(0.0, mag_add)

    boost = tm.fire_rate_at(idx)
    if boost is not None:
        fire_rate *= (1 + max(0.0, boost) / 100)

    return replace(
        profile,
        tier=tier,
        reload_time_s=reload_time,
        mag_size=mag_size,
        fire_rate_bps=fire_rate,
    )


# ---------------------------------------------------------------------------
# Compatibility matching
# ---------------------------------------------------------------------------

def _fold(name: str) -> str:
    return " ".join(name.split()).casefold()


def match_rank(pattern: str, weapon_name: str) -> Optional[Tuple[bool, int]]:
    """Rank how ``pattern`` matches ``weapon_name``.

    Returns ``(exact, len(pattern))`` or None. Matching is case-insensitive
    and whitespace-normalized; a pattern matches when it equals the weapon
    name or either string contains the other. Blank patterns never match.
    """
    p = _fold(pattern)
    w = _fold(weapon_name)
    if not p or not w:
        return None
    if p == w:
        return (True, len(p))
    if p in w or w in p:
        return (False, len(p))
    return None


def matches_weapon(pattern: str, weapon_name: str) -> bool:
    return match_rank(pattern, weapon_name) is not None


def resolve_compatibility(modifiers: Iterable[Modifier], weapon_name: str) -> List[Modifier]:
    """Modifiers whose compatibility list matches the weapon, in input order."""
    return [
        m for m in modifiers
        if any(matches_weapon(pattern, weapon_name) for pattern in m.compatible)
    ]


def best_matching_key(keys: Iterable[str], weapon_name: str) -> Optional[str]:
    """Pick the one key a weapon resolves to in a keyed lookup.

    Exact matches win, then the longest matching key, then the
    lexicographically smallest key so the choice never depends on input order.
    """
    candidates = []
    for key in keys:
        rank = match_rank(key, weapon_name)
        if rank is not None:
            exact, length = rank
            candidates.append((not exact, -length, _fold(key), key))
    if not candidates:
        return None
    return min(candidates)[3]


def patches_for_weapon(patches: Sequence[Modifier], weapon_name: str) -> List[Modifier]:
    """Patch deltas keyed by the best matching compatibility entry for a weapon."""
    keys = [k for p in patches for k in p.compatible]
    best = best_matching_key(keys, weapon_name)
    if best is None:
        return []
    folded = _fold(best)
    return [p for p in patches if any(_fold(k) == folded for k in p.compatible)]


# ---------------------------------------------------------------------------
# Attachment combos
# ---------------------------------------------------------------------------

def group_by_slot(modifiers: Iterable[Modifier]) -> Dict[str, List[Modifier]]:
    slots: Dict[str, List[Modifier]] = {}
    for m in modifiers:
        slots.setdefault(m.slot or "misc", []).append(m)
    return slots


def combos_for_slots(slot_map: Dict[str, List[Modifier]]) -> List[AttachmentCombo]:
    """Every "none or one per slot" combination, slots in sorted order.

    A weapon without attachments yields a single empty combo.
    """
    choices = [[None] + list(slot_map[slot]) for slot in sorted(slot_map)]
    combos = []
    for picked in itertools.product(*choices):
        combos.append(AttachmentCombo(items=tuple(m for m in picked if m is not None)))
    return combos


# ---------------------------------------------------------------------------
# Applying / reversing modifiers
# ---------------------------------------------------------------------------

def _apply_op(value: float, op: str, amount: float) -> float:
    if op == ADD:
        return value + amount
    if op == MULT:
        return value * amount
    if op == PCT:
        return value * (1 + amount / 100)
    if op == SET:
        return amount
    raise ValueError(f"Unknown modifier operation: {op}")


def _invert_op(value: float, op: str, amount: float) -> Optional[float]:
    """Reverse one operation; None when the previous value cannot be recovered."""
    if op == ADD:
        return value - amount
    if op == MULT:
        return value / amount if amount != 0 else None
    if op == PCT:
        factor = 1 + amount / 100
        return value / factor if factor != 0 else None
    if op == SET:
        return None
    raise ValueError(f"Unknown modifier operation: {op}")


def _stat_values(profile: WeaponProfile) -> Dict[str, float]:
    return {attr: getattr(profile, attr) for attr, _ in MODIFIER_OPS.values()}


def apply_modifiers(profile: WeaponProfile, modifiers: Sequence[Modifier]) -> WeaponProfile:
    """Apply each modifier's operations in list order."""
    values = _stat_values(profile)
    for modifier in modifiers:
        for field_name, amount in modifier.ops:
            attr, op = MODIFIER_OPS[field_name]
            values[attr] = _apply_op(values[attr], op, amount)
    return replace(profile, **values)


def unapply_modifiers(
    profile: WeaponProfile,
    modifiers: Sequence[Modifier],
    strict: bool = False,
) -> BaselineReconstruction:
    """Reverse ``apply_modifiers``, walking modifiers and operations backwards.

    Absolute sets and zero multipliers cannot be reversed. They are left in
    place and listed in ``skipped`` (the baseline is then approximate), or
    raise ``NonInvertibleModifierError`` when ``strict`` is set.
    """
    values = _stat_values(profile)
    skipped = []
    for modifier in reversed(modifiers):
        for field_name, amount in reversed(modifier.ops):
            attr, op = MODIFIER_OPS[field_name]
            restored = _invert_op(values[attr], op, amount)
            if restored is None:
                if strict:
                    raise NonInvertibleModifierError(modifier.name, field_name)
                skipped.append(f"{modifier.name}.{field_name}")
                continue
            values[attr] = restored
    return BaselineReconstruction(profile=replace(profile, **values), skipped=tuple(skipped))


def apply_attachment_combo(profile: WeaponProfile, combo: AttachmentCombo) -> WeaponProfile:
    out = apply_modifiers(profile, combo.items)
    return replace(out, attachments=combo.label)
