"""Ammo/reload timing: turns a shots-to-kill outcome into elapsed time.

Ammo is shot-based: one unit per shot, or ``bullets_per_shot`` units for true
burst weapons. Shot cadence is only paid between shots fired from the same
magazine; a reload replaces the cadence wait instead of adding to it.
"""

import math
from dataclasses import dataclass

from .combat_resolver import TrialOutcome
from .modifiers import WeaponProfile


@dataclass(frozen=True)
class TimingResult:
    ttk: float
    reloads: float  # reload actions, each costing reload_time_s
    reload_time: float
    fire_time: float

    @property
    def resolved(self) -> bool:
        return math.isfinite(self.ttk)


UNRESOLVED_TIMING = TimingResult(ttk=math.inf, reloads=math.inf, reload_time=math.inf, fire_time=math.inf)


def _reload_chunks(profile: WeaponProfile, ammo_in_mag: float, remaining_shots: int) -> int:
    """Partial-reload actions needed to cover the ammo still required, not a full top-off."""
    needed = remaining_shots * profile.ammo_per_shot
    missing = max(0.0, min(profile.mag_size - ammo_in_mag, needed - ammo_in_mag))
    return max(1, math.ceil(missing / profile.reload_amount))


def resolve_timing(outcome: TrialOutcome, profile: WeaponProfile) -> TimingResult:
    """Elapsed time and reload actions for the shots in ``outcome``.

    Worked example: magazine 5, 5 shots/s, 1 s full reload, 7 shots gives
    4 x 0.2 s + 1.0 s + 0.2 s = 2.0 s with one reload.
    """
    if not outcome.resolved:
        return UNRESOLVED_TIMING

    ammo_per_shot = profile.ammo_per_shot
    if ammo_per_shot > profile.mag_size:
        return UNRESOLVED_TIMING

    shots_needed = int(outcome.shots)
    shot_interval = profile.shot_interval_s
    kill_bullet = max(0, min(profile.bullets_per_shot - 1, outcome.kill_bullet))

    ammo_in_mag = profile.mag_size
    reloads = 0
    elapsed = 0.0
    shots_done = 0

    while shots_done < shots_needed:
        ammo_in_mag -= ammo_per_shot
        shots_done += 1

        if shots_done < shots_needed:
            need_reload = ammo_in_mag < ammo_per_shot
            if need_reload:
                if profile.full_reload:
                    elapsed += profile.reload_time_s
                    ammo_in_mag = profile.mag_size
                    reloads += 1
                else:
                    chunks = _reload_chunks(profile, ammo_in_mag, shots_needed - shots_done)
                    elapsed += chunks * profile.reload_time_s
                    ammo_in_mag = min(profile.mag_size, ammo_in_mag + chunks * profile.reload_amount)
                    reloads += chunks
            elif shot_interval > 0:
                elapsed += shot_interval
        elif profile.is_burst:
            # the kill can land mid-burst on the last shot
            elapsed += kill_bullet * profile.burst_delay_s

    reload_time = reloads * profile.reload_time_s
    return TimingResult(
        ttk=elapsed,
        reloads=reloads,
        reload_time=reload_time,
        fire_time=elapsed - reload_time,
    )
