"""Shield impact analysis over result rows.

For each shielded target: the average extra TTK against the first
(unshielded) target, the average relative increase against it, and the
average relative increase against the previous shield tier.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence


@dataclass
class ShieldImpact:
    count_base: int = 0
    sum_diff_base: float = 0.0
    sum_rel_base: float = 0.0
    count_prev: int = 0
    sum_rel_prev: float = 0.0

    def add_base(self, diff: float, rel: float) -> None:
        self.count_base += 1
        self.sum_diff_base += diff
        self.sum_rel_base += rel

    def add_prev(self, rel: float) -> None:
        self.count_prev += 1
        self.sum_rel_prev += rel

    def merge(self, other: "ShieldImpact") -> None:
        self.count_base += other.count_base
        self.sum_diff_base += other.sum_diff_base
        self.sum_rel_base += other.sum_rel_base
        self.count_prev += other.count_prev
        self.sum_rel_prev += other.sum_rel_prev

    @property
    def avg_diff_base(self) -> Optional[float]:
        return self.sum_diff_base / self.count_base if self.count_base else None

    @property
    def avg_rel_base(self) -> Optional[float]:
        return self.sum_rel_base / self.count_base if self.count_base else None

    @property
    def avg_rel_prev(self) -> Optional[float]:
        return self.sum_rel_prev / self.count_prev if self.count_prev else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count_base": self.count_base,
            "avg_diff_base_s": self.avg_diff_base,
            "avg_rel_base": self.avg_rel_base,
            "count_prev": self.count_prev,
            "avg_rel_prev": self.avg_rel_prev,
        }


@dataclass
class ShieldEffectReport:
    targets: List[str]
    impacts: Dict[str, ShieldImpact] = field(default_factory=dict)


def row_ttk(row: Mapping[str, Any]) -> Optional[float]:
    """First numeric TTK field of a row; None for unresolved rows."""
    for name in ("ttk_mean", "ttk_p50", "ttk_s"):
        value = row.get(name)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    return None


def _usable(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def shield_effect(rows: Iterable[Mapping[str, Any]], target_order: Sequence[str]) -> ShieldEffectReport:
    """Aggregate shield impact for one row set.

    ``target_order`` lists targets from unshielded to heaviest; rows are
    grouped by (weapon, tier, attachments, accuracy profile).
    """
    order = list(target_order)
    report = ShieldEffectReport(targets=order, impacts={t: ShieldImpact() for t in order[1:]})
    if len(order) < 2:
        return report

    setups: Dict[tuple, Dict[str, Optional[float]]] = {}
    for row in rows:
        target = row.get("target")
        if target not in order:
            continue
        key = (row["weapon"], row["tier"], row["attachments"], row.get("accuracy_profile") or "")
        setups.setdefault(key, {})[target] = row_ttk(row)

    for ttks in setups.values():
        base = ttks.get(order[0])
        if not _usable(base):
            continue
        for i, target in enumerate(order[1:], start=1):
            value = ttks.get(target)
            if not _usable(value):
                continue
            impact = report.impacts[target]
            impact.add_base(value - base, value / base - 1)
            prev = ttks.get(order[i - 1])
            if _usable(prev):
                impact.add_prev(value / prev - 1)
    return report


def combine_reports(reports: Iterable[ShieldEffectReport]) -> ShieldEffectReport:
    reports = list(reports)
    if not reports:
        return ShieldEffectReport(targets=[])
    combined = ShieldEffectReport(
        targets=reports[0].targets,
        impacts={t: ShieldImpact() for t in reports[0].targets[1:]},
    )
    for report in reports:
        for target, impact in report.impacts.items():
            combined.impacts.setdefault(target, ShieldImpact()).merge(impact)
    return combined
