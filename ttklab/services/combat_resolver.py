"""Combat resolution: bullets-to-kill for one engagement.

A target keeps ``(hp, shield, dr)``. While the shield holds, a bullet drains the
shield by its full damage and the HP by the mitigated damage; once the shield
is gone HP takes full damage. An engagement may chain several targets (a
squad): a kill mid-shot carries the remaining bullets of that shot into the
next target's fresh state.

Two resolvers share the mechanics:
- ``simulate_shots`` rolls miss and hit-zone per bullet (Monte Carlo)
- ``simulate_shots_fixed`` reads zones from a precomputed interleaved sequence
"""

import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .errors import ConfigurationError
from .modifiers import WeaponProfile

# Kill test: hp is settled to KILL_DIGITS decimals with an epsilon-biased
# ceiling before comparing against KILL_THRESHOLD.
KILL_DIGITS = 8
KILL_EPSILON = 1e-6
KILL_THRESHOLD = 1.0

DEFAULT_MAX_SHOTS = 200000  # per target
ZONE_SEQUENCE_LENGTH = 100
ZONE_STRIDE = 7

BODY = "body"
HEAD = "head"
LIMBS = "limbs"
ZONES = (BODY, HEAD, LIMBS)


@dataclass(frozen=True)
class TargetProfile:
    """A shield class: hit points, shield points and damage reduction."""
    name: str
    hp: float
    shield: float = 0.0
    dr: float = 0.0
    label: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.label or self.name


# Back-to-back kills within one engagement
TargetSequence = Tuple[TargetProfile, ...]
Targets = Union[TargetProfile, Sequence[TargetProfile]]


def as_sequence(targets: Targets) -> TargetSequence:
    if isinstance(targets, TargetProfile):
        return (targets,)
    seq = tuple(targets)
    if not seq:
        raise ConfigurationError("An engagement needs at least one target")
    return seq


def sequence_label(targets: Targets) -> str:
    return " > ".join(t.name for t in as_sequence(targets))


def clamp01(x: float) -> float:
    if not math.isfinite(x) or x < 0:
        return 0.0
    if x > 1:
        return 1.0
    return x


@dataclass(frozen=True)
class AccuracyProfile:
    """Normalized hit-zone distribution plus an independent miss chance."""
    body: float
    head: float
    limbs: float
    miss: float = 0.0
    name: str = "Custom"

    @classmethod
    def from_weights(
        cls,
        body: float,
        head: float,
        limbs: float,
        miss: float = 0.0,
        name: str = "Custom",
    ) -> "AccuracyProfile":
        """Clamp weights to [0, 1] and normalize them to sum to 1."""
        b, h, l = clamp01(body), clamp01(head), clamp01(limbs)
        total = b + h + l
        if total <= 0:
            raise ConfigurationError("Accuracy weights must not all be zero")
        return cls(body=b / total, head=h / total, limbs=l / total, miss=clamp01(miss), name=name)


@dataclass
class TargetState:
    hp: float
    shield: float
    dr: float

    @classmethod
    def from_target(cls, target: TargetProfile) -> "TargetState":
        return cls(hp=target.hp, shield=target.shield, dr=target.dr)


@dataclass(frozen=True)
class TrialOutcome:
    """Shots fired, index of the killing bullet within its shot, bullets to kill."""
    shots: float
    kill_bullet: int = 0
    bullets_to_kill: float = 0

    @property
    def resolved(self) -> bool:
        return math.isfinite(self.shots)


UNRESOLVED = TrialOutcome(shots=math.inf, kill_bullet=0, bullets_to_kill=math.inf)


@dataclass(frozen=True)
class BulletTrace:
    """One bullet of a traced engagement (after damage is applied)."""
    shot: int
    bullet: int
    target_index: int
    zone: str
    damage: float
    hp: float
    shield: float
    killed: bool


def settle_hp(hp: float) -> float:
    """Round hp to KILL_DIGITS decimals with an epsilon-biased ceiling.

    Float residue just under a whole value (100 - 3 * 33.333...) settles back
    to that value, while anything a full unit of the last digit below it
    (0.999999999) rounds down.
    """
    scale = 10 ** KILL_DIGITS
    return math.ceil(hp * scale - (1 - KILL_EPSILON)) / scale


def is_dead(hp: float) -> bool:
    return settle_hp(hp) < KILL_THRESHOLD


def apply_bullet(state: TargetState, damage: float) -> None:
    """Apply one bullet to the target state in place."""
    if state.shield > 0:
        state.shield = max(0.0, state.shield - damage)
        state.hp -= damage * (1 - state.dr)
    else:
        state.hp -= damage


def zone_multiplier(profile: WeaponProfile, zone: str) -> float:
    if zone == HEAD:
        return profile.headshot_mult
    if zone == LIMBS:
        return profile.limbs_mult
    return 1.0


def _next_alive(seq: TargetSequence, idx: int) -> Tuple[int, Optional[TargetState]]:
    while idx < len(seq):
        state = TargetState.from_target(seq[idx])
        if not is_dead(state.hp):
            return idx, state
        idx += 1
    return idx, None


def _outcome(profile: WeaponProfile, shots: int, kill_bullet: int) -> TrialOutcome:
    if profile.is_burst:
        bullets = (shots - 1) * profile.bullets_per_shot + (kill_bullet + 1)
    else:
        bullets = shots
    return TrialOutcome(shots=shots, kill_bullet=kill_bullet, bullets_to_kill=bullets)


def _resolve(
    profile: WeaponProfile,
    targets: Targets,
    next_zone: Callable[[], Optional[str]],
    max_shots: int,
    trace: Optional[List[BulletTrace]] = None,
) -> TrialOutcome:
    """Shot loop shared by both resolvers; ``next_zone`` returns None on a miss."""
    seq = as_sequence(targets)
    idx, state = _next_alive(seq, 0)
    if state is None:
        return TrialOutcome(shots=0, kill_bullet=0, bullets_to_kill=0)
    if profile.damage_per_bullet <= 0:
        return UNRESOLVED

    bullets_per_shot = max(1, profile.bullets_per_shot)
    shots = 0
    target_shots = 0

    while True:
        shots += 1
        target_shots += 1
        if target_shots > max_shots:
            return UNRESOLVED

        for b in range(bullets_per_shot):
            zone = next_zone()
            if zone is None:
                continue

            damage = profile.damage_per_bullet * zone_multiplier(profile, zone)
            apply_bullet(state, damage)
            killed = is_dead(state.hp)

            if trace is not None:
                trace.append(BulletTrace(
                    shot=shots, bullet=b, target_index=idx, zone=zone,
                    damage=damage, hp=state.hp, shield=state.shield, killed=killed,
                ))

            if killed:
                idx, state = _next_alive(seq, idx + 1)
                if state is None:
                    return _outcome(profile, shots, b)
                target_shots = 0


def simulate_shots(
    profile: WeaponProfile,
    targets: Targets,
    accuracy: AccuracyProfile,
    rng,
    max_shots: int = DEFAULT_MAX_SHOTS,
) -> TrialOutcome:
    """Monte Carlo resolution of one engagement.

    Every bullet draws once for the miss check and, if it lands, once more
    for the hit zone against cumulative body/head/limbs thresholds.

    Args:
        profile: Resolved weapon stats
        targets: A single target or an ordered squad
        accuracy: Normalized zone weights and miss chance
        rng: Object with a ``random()`` method returning floats in [0, 1)
        max_shots: Shots allowed per target before giving up

    Returns:
        TrialOutcome, or UNRESOLVED when a target survives ``max_shots``
    """
    miss = accuracy.miss
    if miss >= 1.0:
        return UNRESOLVED
    body_cut = accuracy.body
    head_cut = accuracy.body + accuracy.head

    def roll() -> Optional[str]:
        if rng.random() < miss:
            return None
        r = rng.random()
        if r < body_cut:
            return BODY
        if r < head_cut:
            return HEAD
        return LIMBS

    return _resolve(profile, targets, roll, max_shots)


def make_zone_sequence(
    body: float,
    head: float,
    limbs: float,
    length: int = ZONE_SEQUENCE_LENGTH,
) -> List[str]:
    """Build a repeating zone sequence for deterministic presets.

    Zone counts are allocated proportionally over ``length`` slots (the
    rounding remainder goes to the dominant zone), then placed with a fixed
    stride so minority zones are spread out instead of clustered at the start.
    """
    parts = [(z, w) for z, w in ((BODY, body), (HEAD, head), (LIMBS, limbs)) if w > 0]
    if not parts or length <= 0:
        return [BODY]

    total = sum(w for _, w in parts)
    ranked = sorted(((z, w / total) for z, w in parts), key=lambda p: -p[1])

    counts = {z: int(math.floor(w * length + 0.5)) for z, w in ranked}
    counts[ranked[0][0]] += length - sum(counts.values())

    bag: List[str] = []
    for z, _ in ranked:
        bag.extend([z] * max(0, counts[z]))
    if not bag:
        return [BODY]

    out: List[Optional[str]] = [None] * len(bag)
    i = 0
    for item in bag:
        while out[i] is not None:
            i = (i + 1) % len(out)
        out[i] = item
        i = (i + ZONE_STRIDE) % len(out)
    return out


def _cycle(zone_sequence: Sequence[str]) -> Callable[[], str]:
    zones = list(zone_sequence) or [BODY]
    for z in zones:
        if z not in ZONES:
            raise ConfigurationError(f"Unknown hit zone '{z}'")
    position = [0]

    def next_zone() -> str:
        z = zones[position[0] % len(zones)]
        position[0] += 1
        return z

    return next_zone


def simulate_shots_fixed(
    profile: WeaponProfile,
    targets: Targets,
    zone_sequence: Sequence[str],
    max_shots: int = DEFAULT_MAX_SHOTS,
) -> TrialOutcome:
    """Deterministic resolution: no misses, zones read cyclically from the sequence."""
    return _resolve(profile, targets, _cycle(zone_sequence), max_shots)


def trace_fixed_shots(
    profile: WeaponProfile,
    targets: Targets,
    zone_sequence: Sequence[str],
    max_shots: int = DEFAULT_MAX_SHOTS,
) -> Tuple[TrialOutcome, List[BulletTrace]]:
    """Like ``simulate_shots_fixed`` but also returns the per-bullet HP/shield log."""
    trace: List[BulletTrace] = []
    outcome = _resolve(profile, targets, _cycle(zone_sequence), max_shots, trace)
    return outcome, trace
