#!/usr/bin/env python3
"""
Precompute the accuracy presets over the whole catalog.

Writes one row file per preset plus a presets.json index. With --prepatch,
also writes a parallel <preset>_prepatch.json row set for every weapon a
patch delta touches, and <preset>_patch_deltas.json with before/after values.

Usage:
    python scripts/generate_presets.py
    python scripts/generate_presets.py --trials 20000 --seed 7 --out out/presets
    python scripts/generate_presets.py --weapons Kettle,Stitcher --prepatch
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from datetime import datetime

sys.path.insert(0, str(Path(__file__).parent.parent))

from ttklab.config import get_settings
from ttklab.services.data_loader import load_catalog_from_dir
from ttklab.services.presets import PRESETS, PRESET_TRIALS, preset_params
from ttklab.services.row_compare import count_differences, patch_deltas
from ttklab.services.streaming import finite_or_none
from ttklab.services.sweep_driver import run_sweep


def write_json(path: Path, obj) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(finite_or_none(obj), f, indent=2)
    suffix = f" ({len(obj)} rows)" if isinstance(obj, list) else ""
    print(f"Wrote {path}{suffix}")


def parse_args():
    settings = get_settings()
    parser = argparse.ArgumentParser(description='Generate precomputed TTK presets')
    parser.add_argument('--trials', type=int, default=PRESET_TRIALS, help='Trials per Monte Carlo configuration')
    parser.add_argument('--confidence', type=float, default=settings.default_confidence, help='CI level, e.g. 0.95')
    parser.add_argument('--seed', type=int, default=settings.default_seed, help='Base seed')
    parser.add_argument('--data-dir', type=Path, default=settings.data_dir, help='Catalog directory')
    parser.add_argument('--out', type=Path, default=Path('data/presets'), help='Output directory')
    parser.add_argument('--weapons', type=str, default=None, help='Comma-separated weapon names (default: all)')
    parser.add_argument('--prepatch', action='store_true', help='Also write pre-patch row sets for patched weapons')
    return parser.parse_args()


def main():
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    catalog = load_catalog_from_dir(args.data_dir)
    weapons = [w.strip() for w in args.weapons.split(',') if w.strip()] if args.weapons else None

    print(f"\n{'='*70}")
    print("PRESET GENERATION")
    print(f"{'='*70}")
    print(f"Trials: {args.trials} | Confidence: {args.confidence} | Seed: {args.seed}")
    print(f"Weapons: {', '.join(weapons) if weapons else 'all'} | Pre-patch: {args.prepatch}")
    print(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print()

    write_json(args.out / 'presets.json', [p.meta(args.trials, args.confidence) for p in PRESETS])

    rows_by_profile = {}
    for preset in PRESETS:
        params = preset_params(preset, trials=args.trials, confidence=args.confidence,
                               seed=args.seed, weapons=weapons)

        def report(progress, name=preset.profile):
            print(f"  [{name}] {progress.done}/{progress.total}", end="\r")

        result = run_sweep(catalog, params, on_progress=report)
        rows = [row.to_dict() for row in result.rows]
        write_json(args.out / preset.file, rows)
        for failure in result.failures:
            print(f"  FAILED {failure.weapon} T{failure.tier} [{failure.attachments}] vs {failure.target}: {failure.error}")
        rows_by_profile[preset.profile] = rows

        if args.prepatch and catalog.patches:
            baseline = run_sweep(catalog, params, prepatch=True)
            baseline_rows = [row.to_dict() for row in baseline.rows]
            write_json(args.out / f"{preset.id}_prepatch.json", baseline_rows)
            write_json(args.out / f"{preset.id}_patch_deltas.json", patch_deltas(rows, baseline_rows))
            approximate = sorted({r['weapon'] for r in baseline_rows if r['baseline_approximate']})
            if approximate:
                print(f"  Approximate pre-patch baselines: {', '.join(approximate)}")

    # Sanity check: a mixed-aim profile should not reproduce pure body shots
    body = rows_by_profile.get('Body only')
    typical = rows_by_profile.get('Typical')
    if body and typical:
        differing, checked = count_differences(typical, body)
        print(f"\nTypical vs Body differences: {differing}/{checked}")

    print(f"\nDone: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")


if __name__ == '__main__':
    main()
