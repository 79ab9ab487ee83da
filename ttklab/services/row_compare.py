"""Row-level comparisons between two sweeps of the same configurations."""

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

RowKey = Tuple[str, int, str, str]

# Metrics reported in before/after deltas
DELTA_FIELDS = ("ttk_mean", "ttk_p50", "shots_mean", "shots_p50", "reloads_mean")


def row_key(row: Mapping[str, Any]) -> RowKey:
    return (row["weapon"], int(row["tier"]), row["attachments"], row["target"])


def _ttk(row: Mapping[str, Any]) -> Optional[float]:
    for name in ("ttk_p50", "ttk_s", "ttk_mean"):
        value = row.get(name)
        if value is not None:
            return value
    return None


def _shots(row: Mapping[str, Any]) -> Optional[float]:
    for name in ("shots_p50", "bullets_to_kill"):
        value = row.get(name)
        if value is not None:
            return value
    return None


def _delta(after: Optional[float], before: Optional[float]) -> Optional[float]:
    if after is None or before is None:
        return None
    if not (math.isfinite(after) and math.isfinite(before)):
        return None
    return after - before


def patch_deltas(
    current: Iterable[Mapping[str, Any]],
    baseline: Iterable[Mapping[str, Any]],
) -> List[Dict[str, Any]]:
    """Before/after values per configuration present in both row sets.

    Rows are matched on (weapon, tier, attachments, target); ``before`` is
    the pre-patch baseline, ``after`` the current stats. Deltas that involve
    an unresolved value are None.
    """
    before_by_key = {row_key(r): r for r in baseline}
    out = []
    for row in current:
        key = row_key(row)
        before = before_by_key.get(key)
        if before is None:
            continue
        entry: Dict[str, Any] = {
            "weapon": key[0],
            "tier": key[1],
            "attachments": key[2],
            "target": key[3],
            "baseline_approximate": bool(before.get("baseline_approximate", False)),
        }
        for name in DELTA_FIELDS:
            b, a = before.get(name), row.get(name)
            entry[f"{name}_before"] = b
            entry[f"{name}_after"] = a
            entry[f"{name}_delta"] = _delta(a, b)
        out.append(entry)
    return out


def count_differences(
    rows: Iterable[Mapping[str, Any]],
    reference: Iterable[Mapping[str, Any]],
    tolerance: float = 1e-9,
) -> Tuple[int, int]:
    """Count rows whose median TTK or shots differ from the matching reference row.

    Returns ``(differing, total)`` where total is the number of rows checked.
    """
    ref_by_key = {row_key(r): r for r in reference}
    differing = 0
    total = 0
    for row in rows:
        ref = ref_by_key.get(row_key(row))
        if ref is None:
            continue
        total += 1
        ttk_a, ttk_b = _ttk(row) or 0.0, _ttk(ref) or 0.0
        if math.isinf(ttk_a) and math.isinf(ttk_b):
            ttk_differs = False
        else:
            ttk_differs = not abs(ttk_a - ttk_b) <= tolerance
        if ttk_differs or _shots(row) != _shots(ref):
            differing += 1
    return differing, total
