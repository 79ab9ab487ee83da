"""Precomputed accuracy presets.

Two deterministic presets (pure body, pure head) and three Monte Carlo
presets with realistic zone mixes and miss chances.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import ConfigurationError
from .sweep_driver import SimulationMode, SweepParams

PRESET_TRIALS = 100000


@dataclass(frozen=True)
class Preset:
    id: str
    name: str
    profile: str
    mode: SimulationMode
    body: float
    head: float
    limbs: float
    miss: float = 0.0

    @property
    def file(self) -> str:
        return f"{self.id}.json"

    def meta(self, trials: int, confidence: float) -> Dict[str, Any]:
        """Entry of the presets index file."""
        mc = self.mode == SimulationMode.MONTE_CARLO
        return {
            "id": self.id,
            "name": self.name,
            "file": self.file,
            "kind": "precomputed",
            "mode": self.mode.value,
            "miss": self.miss if mc else None,
            "n_trials": trials if mc else None,
            "ci_level": confidence if mc else None,
        }


PRESETS: List[Preset] = [
    Preset("preset_body_only", "Body only (precomputed)", "Body only",
           SimulationMode.DETERMINISTIC, body=1.0, head=0.0, limbs=0.0),
    Preset("preset_head_only", "Head only (precomputed)", "Head only",
           SimulationMode.DETERMINISTIC, body=0.0, head=1.0, limbs=0.0),
    Preset("preset_typical", "Typical 70/10/20/5 (precomputed)", "Typical",
           SimulationMode.MONTE_CARLO, body=0.70, head=0.10, limbs=0.20, miss=0.05),
    Preset("preset_good_aim", "Good Aim 45/50/5/0 (precomputed)", "Good Aim",
           SimulationMode.MONTE_CARLO, body=0.45, head=0.50, limbs=0.05, miss=0.0),
    Preset("preset_bad_aim", "Bad Aim 55/5/40/20 (precomputed)", "Bad Aim",
           SimulationMode.MONTE_CARLO, body=0.55, head=0.05, limbs=0.40, miss=0.20),
]


def get_preset(preset_id: str) -> Preset:
    for preset in PRESETS:
        if preset.id == preset_id or preset.profile.casefold() == preset_id.casefold():
            return preset
    raise ConfigurationError(f"Unknown preset: {preset_id}")


def preset_params(
    preset: Preset,
    trials: int = PRESET_TRIALS,
    confidence: float = 0.95,
    seed: int = 1337,
    weapons: Optional[List[str]] = None,
) -> SweepParams:
    """Sweep parameters for a preset over every target and tier."""
    return SweepParams(
        body=preset.body,
        head=preset.head,
        limbs=preset.limbs,
        miss=preset.miss,
        trials=trials if preset.mode == SimulationMode.MONTE_CARLO else 1,
        seed=seed,
        confidence=confidence,
        mode=preset.mode,
        weapons=tuple(weapons) if weapons else None,
        profile_name=preset.profile,
    )
