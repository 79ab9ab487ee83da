"""Configuration sweep driver.

Enumerates weapon x tier x attachment combo x target, resolves each
configuration's stats and runs it through combat resolution, timing and
aggregation. Every configuration owns its own random stream seeded from its
identity, so configurations are independent of enumeration order and of
each other.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .combat_resolver import (
    DEFAULT_MAX_SHOTS,
    AccuracyProfile,
    TargetSequence,
    make_zone_sequence,
    sequence_label,
)
from .data_loader import DataCatalog
from .errors import ConfigurationError, SimulationError, SweepCancelled
from .modifiers import (
    AttachmentCombo,
    WeaponProfile,
    apply_attachment_combo,
    apply_tier_modifiers,
    build_base_profile,
    combos_for_slots,
    group_by_slot,
    patches_for_weapon,
    resolve_compatibility,
    unapply_modifiers,
)
from .statistics import AggregateStats, derive_seed, evaluate_fixed, run_trials, z_for_confidence

logger = logging.getLogger(__name__)

ALL_TARGETS = "ALL"
PREPATCH_SALT = "prepatch"


class SimulationMode(str, Enum):
    MONTE_CARLO = "monte_carlo"
    DETERMINISTIC = "deterministic"


@dataclass(frozen=True)
class SweepParams:
    """Everything a sweep needs; the engine reads no ambient configuration."""
    targets: Union[str, Tuple[str, ...]] = ALL_TARGETS
    squad: Optional[Tuple[str, ...]] = None  # ordered target ids, one engagement
    tiers: Optional[Tuple[int, ...]] = None  # None = every tier the weapon supports
    body: float = 1.0
    head: float = 0.0
    limbs: float = 0.0
    miss: float = 0.0
    trials: int = 10000
    seed: int = 1337
    confidence: float = 0.95
    mode: SimulationMode = SimulationMode.MONTE_CARLO
    weapons: Optional[Tuple[str, ...]] = None
    profile_name: str = "Custom"
    max_shots: int = DEFAULT_MAX_SHOTS
    progress_every: int = 10

    def accuracy(self) -> AccuracyProfile:
        return AccuracyProfile.from_weights(
            self.body, self.head, self.limbs, miss=self.miss, name=self.profile_name
        )

    def validate(self) -> None:
        if self.trials < 1:
            raise ConfigurationError(f"trials must be >= 1, got {self.trials}")
        if self.max_shots < 1:
            raise ConfigurationError(f"max_shots must be >= 1, got {self.max_shots}")
        if self.progress_every < 1:
            raise ConfigurationError(f"progress_every must be >= 1, got {self.progress_every}")
        if self.tiers is not None and any(t < 1 for t in self.tiers):
            raise ConfigurationError(f"tiers must be >= 1, got {list(self.tiers)}")
        if self.squad is not None and not self.squad:
            raise ConfigurationError("squad must list at least one target id")
        if self.mode == SimulationMode.MONTE_CARLO:
            z_for_confidence(self.confidence)
        self.accuracy()


@dataclass(frozen=True)
class ConfigSpec:
    """One planned configuration with its fully resolved weapon stats."""
    weapon: str
    tier: int
    combo: AttachmentCombo
    targets: TargetSequence
    profile: WeaponProfile
    prepatch: bool = False
    baseline_approximate: bool = False

    @property
    def target_label(self) -> str:
        return sequence_label(self.targets)

    def identity(self, profile_name: str) -> Tuple[str, ...]:
        parts = (profile_name, self.weapon, str(self.tier), self.combo.label, self.target_label)
        if self.prepatch:
            parts = parts + (PREPATCH_SALT,)
        return parts


@dataclass(frozen=True)
class ConfigRow:
    """Aggregated result for one (weapon, tier, attachments, target)."""
    weapon: str
    tier: int
    attachments: str
    target: str
    targets: TargetSequence
    accuracy: AccuracyProfile
    mode: SimulationMode
    ci_level: Optional[float]
    stats: AggregateStats
    profile: WeaponProfile
    bullets_to_kill: Optional[float] = None
    prepatch: bool = False
    baseline_approximate: bool = False

    @property
    def key(self) -> Tuple[str, int, str, str]:
        return (self.weapon, self.tier, self.attachments, self.target)

    def to_dict(self) -> Dict[str, Any]:
        first = self.targets[0]
        row: Dict[str, Any] = {
            "weapon": self.weapon,
            "tier": self.tier,
            "attachments": self.attachments,
            "accuracy_profile": self.accuracy.name,
            "acc_body": self.accuracy.body,
            "acc_head": self.accuracy.head,
            "acc_limbs": self.accuracy.limbs,
            "miss": self.accuracy.miss,
            "target": self.target,
            "target_hp": first.hp,
            "target_shield": first.shield,
            "target_dr": first.dr,
            "squad_size": len(self.targets),
            "mode": self.mode.value,
            "n_trials": self.stats.n_trials,
            "ci_level": self.ci_level,
            "unresolved_trials": self.stats.unresolved,
        }
        row.update(self.stats.flatten())
        if self.mode == SimulationMode.DETERMINISTIC:
            row["ttk_s"] = self.stats.ttk.mean
            row["bullets_to_kill"] = self.bullets_to_kill
            row["reloads"] = self.stats.reloads.mean
        row.update(self.profile.stats_dict())
        row["prepatch"] = self.prepatch
        row["baseline_approximate"] = self.baseline_approximate
        return row


@dataclass(frozen=True)
class RowFailure:
    weapon: str
    tier: int
    attachments: str
    target: str
    error: str


@dataclass(frozen=True)
class SweepProgress:
    done: int
    total: int


@dataclass
class SweepResult:
    rows: List[ConfigRow] = field(default_factory=list)
    failures: List[RowFailure] = field(default_factory=list)
    total: int = 0


ProgressCallback = Callable[[SweepProgress], None]
StopCheck = Callable[[], bool]


def _resolve_targets(catalog: DataCatalog, params: SweepParams) -> List[TargetSequence]:
    if params.squad is not None:
        return [tuple(catalog.target(t) for t in params.squad)]
    if isinstance(params.targets, str):
        if params.targets == ALL_TARGETS:
            return [(t,) for t in catalog.targets.values()]
        return [(catalog.target(params.targets),)]
    if not params.targets:
        raise ConfigurationError("No targets selected")
    return [(catalog.target(t),) for t in params.targets]


def _select_weapons(catalog: DataCatalog, names: Optional[Sequence[str]]):
    if names is None:
        return list(catalog.weapons)
    selected = []
    for name in names:
        weapon = catalog.weapon(name)
        if weapon is None:
            raise ConfigurationError(f"Unknown weapon: {name}")
        selected.append(weapon)
    return selected


def affected_weapons(catalog: DataCatalog) -> List[str]:
    """Weapons that at least one patch delta resolves to."""
    return [w.name for w in catalog.weapons if patches_for_weapon(catalog.patches, w.name)]


def plan_configurations(
    catalog: DataCatalog,
    params: SweepParams,
    prepatch: bool = False,
) -> List[ConfigSpec]:
    """Enumerate and resolve every configuration of the sweep.

    Raises ConfigurationError for invalid parameters or unknown ids before
    any trial runs. With ``prepatch`` set, only weapons touched by a patch
    delta are planned, starting from their reconstructed pre-patch stats.
    """
    params.validate()
    target_seqs = _resolve_targets(catalog, params)
    weapons = _select_weapons(catalog, params.weapons)

    specs: List[ConfigSpec] = []
    for weapon_def in weapons:
        base = build_base_profile(weapon_def)
        approximate = False

        if prepatch:
            deltas = patches_for_weapon(catalog.patches, weapon_def.name)
            if not deltas:
                continue
            baseline = unapply_modifiers(base, deltas)
            if baseline.approximate:
                logger.warning(
                    f"Pre-patch baseline for {weapon_def.name} is approximate, "
                    f"skipped: {', '.join(baseline.skipped)}"
                )
            base = baseline.profile
            approximate = baseline.approximate

        compatible = resolve_compatibility(catalog.attachments, weapon_def.name)
        combos = combos_for_slots(group_by_slot(compatible))
        max_tier = base.tier_mods.max_tier
        tiers = params.tiers or tuple(range(1, max_tier + 1))
        dropped = [t for t in tiers if t > max_tier]
        if dropped:
            logger.debug(f"{weapon_def.name} has no tier above {max_tier}, skipping tiers {dropped}")
            tiers = [t for t in tiers if t <= max_tier]

        for tier in tiers:
            tiered = apply_tier_modifiers(base, tier)
            for combo in combos:
                profile = apply_attachment_combo(tiered, combo)
                for seq in target_seqs:
                    specs.append(ConfigSpec(
                        weapon=weapon_def.name,
                        tier=tier,
                        combo=combo,
                        targets=seq,
                        profile=profile,
                        prepatch=prepatch,
                        baseline_approximate=approximate,
                    ))
    return specs


def evaluate_config(
    spec: ConfigSpec,
    params: SweepParams,
    accuracy: AccuracyProfile,
    zone_sequence: Optional[List[str]] = None,
) -> ConfigRow:
    """Run one configuration: a seeded trial batch, or one fixed-sequence pass."""
    bullets_to_kill = None
    if params.mode == SimulationMode.DETERMINISTIC:
        stats, outcome = evaluate_fixed(spec.profile, spec.targets, zone_sequence or [], params.max_shots)
        bullets_to_kill = outcome.bullets_to_kill
        ci_level = None
    else:
        seed = derive_seed(params.seed, *spec.identity(params.profile_name))
        stats = run_trials(
            spec.profile,
            spec.targets,
            accuracy,
            trials=params.trials,
            seed=seed,
            confidence=params.confidence,
            max_shots=params.max_shots,
        )
        ci_level = params.confidence

    return ConfigRow(
        weapon=spec.weapon,
        tier=spec.tier,
        attachments=spec.combo.label,
        target=spec.target_label,
        targets=spec.targets,
        accuracy=accuracy,
        mode=params.mode,
        ci_level=ci_level,
        stats=stats,
        profile=spec.profile,
        bullets_to_kill=bullets_to_kill,
        prepatch=spec.prepatch,
        baseline_approximate=spec.baseline_approximate,
    )


def iter_sweep(
    catalog: DataCatalog,
    params: SweepParams,
    prepatch: bool = False,
    should_stop: Optional[StopCheck] = None,
) -> Iterator[Union[SweepProgress, SweepResult]]:
    """Run a sweep, yielding progress every ``progress_every`` configurations.

    The last item is the SweepResult. A failing configuration is logged and
    recorded in ``failures``; the sweep carries on with the next one.
    ``should_stop`` is polled between configurations.
    """
    specs = plan_configurations(catalog, params, prepatch=prepatch)
    accuracy = params.accuracy()
    zone_sequence = None
    if params.mode == SimulationMode.DETERMINISTIC:
        zone_sequence = make_zone_sequence(accuracy.body, accuracy.head, accuracy.limbs)

    total = len(specs)
    result = SweepResult(total=total)
    logger.info(
        f"Sweep '{params.profile_name}' ({params.mode.value}, prepatch={prepatch}): "
        f"{total} configurations x {params.trials if params.mode == SimulationMode.MONTE_CARLO else 1} trials"
    )

    for done, spec in enumerate(specs, start=1):
        if should_stop is not None and should_stop():
            logger.info(f"Sweep cancelled after {done - 1}/{total} configurations")
            raise SweepCancelled(done - 1, total)

        try:
            result.rows.append(evaluate_config(spec, params, accuracy, zone_sequence))
        except (SimulationError, ArithmeticError, ValueError) as e:
            logger.warning(
                f"Configuration {spec.weapon} T{spec.tier} [{spec.combo.label}] "
                f"vs {spec.target_label} failed: {e}"
            )
            result.failures.append(RowFailure(
                weapon=spec.weapon,
                tier=spec.tier,
                attachments=spec.combo.label,
                target=spec.target_label,
                error=str(e),
            ))

        if done % params.progress_every == 0:
            yield SweepProgress(done=done, total=total)

    logger.info(f"Sweep finished: {len(result.rows)} rows, {len(result.failures)} failures")
    yield result


def run_sweep(
    catalog: DataCatalog,
    params: SweepParams,
    on_progress: Optional[ProgressCallback] = None,
    should_stop: Optional[StopCheck] = None,
    prepatch: bool = False,
) -> SweepResult:
    """Blocking wrapper around ``iter_sweep``."""
    for event in iter_sweep(catalog, params, prepatch=prepatch, should_stop=should_stop):
        if isinstance(event, SweepResult):
            return event
        if on_progress is not None:
            on_progress(event)
    raise SimulationError("Sweep ended without a result")


def run_prepatch_comparison(
    catalog: DataCatalog,
    params: SweepParams,
    on_progress: Optional[ProgressCallback] = None,
    should_stop: Optional[StopCheck] = None,
) -> Tuple[SweepResult, SweepResult]:
    """Current and pre-patch sweeps over the weapons touched by the patch deltas.

    The pre-patch run uses a stream salted independently of the current
    run, both derived deterministically from the same base seed.
    """
    affected = affected_weapons(catalog)
    if params.weapons is not None:
        wanted = {name.casefold() for name in params.weapons}
        affected = [name for name in affected if name.casefold() in wanted]

    scoped = replace(params, weapons=tuple(affected))
    current = run_sweep(catalog, scoped, on_progress=on_progress, should_stop=should_stop)
    baseline = run_sweep(catalog, scoped, on_progress=on_progress, should_stop=should_stop, prepatch=True)
    return current, baseline
