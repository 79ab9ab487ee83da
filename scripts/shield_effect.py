#!/usr/bin/env python3
"""
Average extra TTK caused by each shield, per precomputed preset and overall.

For every shield: the mean TTK added over the unshielded target, the mean
relative increase over it, and the mean relative increase over the previous
shield tier. Averages cover weapon/tier/attachment setups where both rows exist.

Usage:
    python scripts/shield_effect.py --presets data/presets
"""

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from ttklab.config import get_settings
from ttklab.services.data_loader import load_catalog_from_dir
from ttklab.services.shield_effect import ShieldEffectReport, combine_reports, shield_effect


def format_pct(x):
    return "(n/a)" if x is None else f"{x * 100:.1f}%"


def format_sec(x):
    return "(n/a)" if x is None else f"{x:.3f}s"


def print_report(title: str, report: ShieldEffectReport):
    print(f"\n{title}")
    print("Shield      N(base)  dTTK vs none   d% vs none   N(prev)  d% vs prev")
    print("-" * 69)
    for target in report.targets[1:]:
        s = report.impacts[target]
        print(
            f"{target:<10} {s.count_base:>6}   {format_sec(s.avg_diff_base):>12}   "
            f"{format_pct(s.avg_rel_base):>10}   {s.count_prev:>6}   {format_pct(s.avg_rel_prev):>9}"
        )


def main():
    parser = argparse.ArgumentParser(description='Shield impact on TTK')
    parser.add_argument('--presets', type=Path, default=Path('data/presets'), help='Directory with presets.json')
    parser.add_argument('--data-dir', type=Path, default=get_settings().data_dir)
    args = parser.parse_args()

    index_path = args.presets / 'presets.json'
    if not index_path.exists():
        print(f"Cannot find {index_path}")
        sys.exit(1)

    with open(index_path, encoding='utf-8') as f:
        presets = [p for p in json.load(f) if p.get('kind') == 'precomputed']

    target_order = load_catalog_from_dir(args.data_dir).target_ids

    reports = {}
    for preset in presets:
        path = args.presets / (preset.get('file') or f"{preset['id']}.json")
        if not path.exists():
            print(f"Skipping missing preset file: {path}")
            continue
        with open(path, encoding='utf-8') as f:
            rows = json.load(f)
        reports[preset.get('name') or preset['id']] = shield_effect(rows, target_order)

    print(f"Overall TTK impact of shields vs {target_order[0]} (all precomputed presets)")
    for name, report in reports.items():
        print_report(f"Preset: {name}", report)
    print_report("OVERALL (all presets combined)", combine_reports(reports.values()))
    print("\nDone.")


if __name__ == '__main__':
    main()
