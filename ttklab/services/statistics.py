"""Statistical aggregation of trial batches.

Each configuration runs ``trials`` independent engagements on its own seeded
stream and reports, per metric (ttk, shots, reloads, reload_time, fire_time):
mean, population standard deviation, a normal-approximation confidence
interval for the mean, the median (linear-interpolation percentile) and a
distribution-free confidence interval for the median taken from order
statistics.
"""

import hashlib
import math
import random
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
from scipy.stats import norm

from .combat_resolver import (
    DEFAULT_MAX_SHOTS,
    AccuracyProfile,
    Targets,
    TrialOutcome,
    simulate_shots,
    simulate_shots_fixed,
)
from .errors import ConfigurationError
from .modifiers import WeaponProfile
from .timing_model import TimingResult, resolve_timing

METRICS = ("ttk", "shots", "reloads", "reload_time", "fire_time")


@dataclass(frozen=True)
class MetricStats:
    mean: float
    std: float
    mean_ci_low: float
    mean_ci_high: float
    median: float
    median_ci_low: float
    median_ci_high: float

    @property
    def std_pct(self) -> Optional[float]:
        """Coefficient of variation; None when the mean is not positive."""
        if not math.isfinite(self.mean) or self.mean <= 0:
            return None
        return self.std / self.mean


@dataclass(frozen=True)
class AggregateStats:
    ttk: MetricStats
    shots: MetricStats
    reloads: MetricStats
    reload_time: MetricStats
    fire_time: MetricStats
    n_trials: int
    unresolved: int = 0

    def metric(self, name: str) -> MetricStats:
        if name not in METRICS:
            raise KeyError(name)
        return getattr(self, name)

    def flatten(self) -> Dict[str, Optional[float]]:
        """Row fields in the published preset schema (``ttk_mean``, ``ttk_p50_ci_low``, ...)."""
        out: Dict[str, Optional[float]] = {}
        for name in METRICS:
            m = self.metric(name)
            out[f"{name}_mean"] = m.mean
            out[f"{name}_mean_ci_low"] = m.mean_ci_low
            out[f"{name}_mean_ci_high"] = m.mean_ci_high
            out[f"{name}_std"] = m.std
            out[f"{name}_std_pct"] = m.std_pct
            out[f"{name}_p50"] = m.median
            out[f"{name}_p50_ci_low"] = m.median_ci_low
            out[f"{name}_p50_ci_high"] = m.median_ci_high
        return out


def z_for_confidence(level: float) -> float:
    """Two-sided normal quantile, e.g. 0.95 -> 1.959964."""
    if not math.isfinite(level) or not (0.5 < level < 1):
        raise ConfigurationError(f"Confidence level must be in (0.5, 1), got {level}")
    return float(norm.ppf(0.5 + level / 2))


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Linear-interpolation percentile of already sorted samples."""
    n = len(sorted_values)
    if n == 0:
        return math.nan
    if p <= 0:
        return float(sorted_values[0])
    if p >= 1:
        return float(sorted_values[n - 1])
    idx = (n - 1) * p
    lo = math.floor(idx)
    hi = math.ceil(idx)
    if lo == hi:
        return float(sorted_values[lo])
    t = idx - lo
    return float(sorted_values[lo] * (1 - t) + sorted_values[hi] * t)


def mean_confidence_interval(mean: float, sd: float, n: int, z: float) -> Tuple[float, float]:
    if n <= 0:
        return (math.nan, math.nan)
    half = z * sd / math.sqrt(n)
    return (mean - half, mean + half)


def median_confidence_interval(
    sorted_values: Sequence[float],
    z: float,
    q: float = 0.5,
) -> Tuple[float, float]:
    """Order-statistic interval for the q-quantile.

    Uses the normal approximation to the binomial rank distribution:
    ranks ``n*q -/+ z*sqrt(n*q*(1-q))``, floored/ceiled and clamped.
    """
    n = len(sorted_values)
    if n == 0:
        return (math.nan, math.nan)
    if n == 1:
        return (float(sorted_values[0]), float(sorted_values[0]))

    mu = n * q
    sigma = math.sqrt(n * q * (1 - q))
    k_low = max(0, min(n - 1, math.floor(mu - z * sigma)))
    k_high = max(0, min(n - 1, math.ceil(mu + z * sigma)))
    if k_high < k_low:
        k_low, k_high = k_high, k_low
    return (float(sorted_values[k_low]), float(sorted_values[k_high]))


def summarize_metric(samples: Sequence[float], z: float) -> MetricStats:
    arr = np.sort(np.asarray(samples, dtype=float))
    n = int(arr.size)
    if n == 0:
        nan = math.nan
        return MetricStats(nan, nan, nan, nan, nan, nan, nan)

    median = percentile(arr, 0.5)
    median_lo, median_hi = median_confidence_interval(arr, z)

    if not np.all(np.isfinite(arr)):
        # unresolved trials make every moment infinite
        inf = math.inf
        return MetricStats(inf, inf, inf, inf, median, median_lo, median_hi)

    mean = float(np.mean(arr))
    sd = float(np.std(arr))
    mean_lo, mean_hi = mean_confidence_interval(mean, sd, n, z)
    return MetricStats(mean, sd, mean_lo, mean_hi, median, median_lo, median_hi)


def point_metric(value: float) -> MetricStats:
    """Deterministic rows: zero dispersion, every interval collapses to the point."""
    v = float(value)
    return MetricStats(v, 0.0, v, v, v, v, v)


def derive_seed(base_seed: int, *identity) -> int:
    """Per-configuration seed from a base seed and a stable identity.

    The identity (profile, weapon, tier, attachments, target, ...) is hashed,
    so regenerating a subset of a sweep reproduces the same streams as a
    full run.
    """
    key = "|".join(str(part) for part in (int(base_seed),) + identity)
    digest = hashlib.md5(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def run_trials(
    profile: WeaponProfile,
    targets: Targets,
    accuracy: AccuracyProfile,
    trials: int,
    seed: int,
    confidence: float,
    max_shots: int = DEFAULT_MAX_SHOTS,
) -> AggregateStats:
    """Run ``trials`` Monte Carlo engagements on a private stream and aggregate them."""
    if trials < 1:
        raise ConfigurationError(f"Trial count must be >= 1, got {trials}")
    z = z_for_confidence(confidence)
    rng = random.Random(seed)

    columns = {name: np.empty(trials, dtype=float) for name in METRICS}
    timings: Dict[Tuple[float, int], TimingResult] = {}
    unresolved = 0

    for k in range(trials):
        outcome = simulate_shots(profile, targets, accuracy, rng, max_shots)
        key = (outcome.shots, outcome.kill_bullet)
        timing = timings.get(key)
        if timing is None:
            timing = resolve_timing(outcome, profile)
            timings[key] = timing
        if not (outcome.resolved and timing.resolved):
            unresolved += 1

        columns["ttk"][k] = timing.ttk
        columns["shots"][k] = outcome.shots
        columns["reloads"][k] = timing.reloads
        columns["reload_time"][k] = timing.reload_time
        columns["fire_time"][k] = timing.fire_time

    summaries = {name: summarize_metric(columns[name], z) for name in METRICS}
    return AggregateStats(n_trials=trials, unresolved=unresolved, **summaries)


def evaluate_fixed(
    profile: WeaponProfile,
    targets: Targets,
    zone_sequence: Sequence[str],
    max_shots: int = DEFAULT_MAX_SHOTS,
) -> Tuple[AggregateStats, TrialOutcome]:
    """Single deterministic engagement, reported with the aggregate schema."""
    outcome = simulate_shots_fixed(profile, targets, zone_sequence, max_shots)
    timing = resolve_timing(outcome, profile)
    values = {
        "ttk": timing.ttk,
        "shots": outcome.shots,
        "reloads": timing.reloads,
        "reload_time": timing.reload_time,
        "fire_time": timing.fire_time,
    }
    stats = AggregateStats(
        n_trials=1,
        unresolved=0 if outcome.resolved and timing.resolved else 1,
        **{name: point_metric(values[name]) for name in METRICS},
    )
    return stats, outcome

