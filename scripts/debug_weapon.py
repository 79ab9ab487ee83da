#!/usr/bin/env python3
"""
Trace one deterministic engagement bullet by bullet.

Prints HP and shield after every bullet of a fixed zone sequence (headshots
only by default), then the shots-to-kill, TTK and reload count.

Usage:
    python scripts/debug_weapon.py Anvil
    python scripts/debug_weapon.py Anvil --target Heavy --tier 4
    python scripts/debug_weapon.py Kettle --zones body,body,head
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from ttklab.config import get_settings
from ttklab.services.combat_resolver import HEAD, ZONES, trace_fixed_shots
from ttklab.services.data_loader import load_catalog_from_dir
from ttklab.services.errors import SimulationError
from ttklab.services.modifiers import apply_tier_modifiers, build_base_profile
from ttklab.services.timing_model import resolve_timing


def parse_args():
    parser = argparse.ArgumentParser(description='Bullet-by-bullet trace for one weapon')
    parser.add_argument('weapon', help='Weapon name (case-insensitive)')
    parser.add_argument('--target', default='Light', help='Target id (default: Light)')
    parser.add_argument('--tier', type=int, default=1, help='Upgrade tier (default: 1)')
    parser.add_argument('--zones', default=HEAD, help=f"Comma-separated zone cycle from {', '.join(ZONES)}")
    parser.add_argument('--data-dir', type=Path, default=get_settings().data_dir)
    return parser.parse_args()


def main():
    args = parse_args()
    catalog = load_catalog_from_dir(args.data_dir)

    weapon_def = catalog.weapon(args.weapon)
    if weapon_def is None:
        print(f'Weapon "{args.weapon}" not found')
        sys.exit(1)

    try:
        target = catalog.target(args.target)
        stats = apply_tier_modifiers(build_base_profile(weapon_def), args.tier)
        zones = [z.strip() for z in args.zones.split(',') if z.strip()]
        outcome, trace = trace_fixed_shots(stats, target, zones)
    except SimulationError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Target={target.name} (hp={target.hp}, shield={target.shield}, dr={target.dr}) | Tier={args.tier}")
    print(f"Weapon={stats.weapon} | damage_per_bullet={stats.damage_per_bullet} | "
          f"headshot_mult={stats.headshot_mult} | limbs_mult={stats.limbs_mult} | "
          f"bullets_per_shot={stats.bullets_per_shot}")

    for step in trace:
        marker = "  KILL" if step.killed else ""
        print(f"Shot {step.shot} bullet {step.bullet} ({step.zone}): "
              f"dmg={step.damage:.3f} hp={step.hp:.3f} shield={step.shield:.3f}{marker}")

    if not outcome.resolved:
        print("\nResult: target survives (unresolved)")
        return

    timing = resolve_timing(outcome, stats)
    print(f"\nResult: shots={outcome.shots}, bullets_to_kill={outcome.bullets_to_kill}, "
          f"kill_bullet={outcome.kill_bullet}, ttk={timing.ttk:.4f}s, reloads={timing.reloads}")


if __name__ == '__main__':
    main()
