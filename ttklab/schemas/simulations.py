from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union

from ..config import Settings
from ..services.errors import ConfigurationError
from ..services.sweep_driver import ALL_TARGETS, SimulationMode, SweepParams


class SimulationRequest(BaseModel):
    """Sweep request; unset numeric fields fall back to the server defaults."""
    targets: Union[str, List[str]] = ALL_TARGETS  # "ALL", one id, or a list of ids
    squad: Optional[List[str]] = None  # ordered ids killed back to back
    tiers: Optional[List[int]] = None
    weapons: Optional[List[str]] = None

    # Accuracy: zone weights are normalized, miss is independent
    body: float = Field(1.0, ge=0)
    head: float = Field(0.0, ge=0)
    limbs: float = Field(0.0, ge=0)
    miss: float = Field(0.0, ge=0, le=1)
    profile_name: str = "Custom"

    mode: SimulationMode = SimulationMode.MONTE_CARLO
    trials: Optional[int] = Field(None, ge=1)
    seed: Optional[int] = None
    confidence: Optional[float] = Field(None, gt=0.5, lt=1)

    def to_params(self, settings: Settings) -> SweepParams:
        trials = self.trials or settings.default_trials
        if trials > settings.max_trials:
            raise ConfigurationError(
                f"trials must be <= {settings.max_trials}, got {trials}"
            )
        targets = self.targets if isinstance(self.targets, str) else tuple(self.targets)
        return SweepParams(
            targets=targets,
            squad=tuple(self.squad) if self.squad is not None else None,
            tiers=tuple(self.tiers) if self.tiers else None,
            body=self.body,
            head=self.head,
            limbs=self.limbs,
            miss=self.miss,
            trials=trials,
            seed=self.seed if self.seed is not None else settings.default_seed,
            confidence=self.confidence or settings.default_confidence,
            mode=self.mode,
            weapons=tuple(self.weapons) if self.weapons else None,
            profile_name=self.profile_name,
            max_shots=settings.max_shots_per_target,
            progress_every=settings.progress_every,
        )


class RowFailureResponse(BaseModel):
    weapon: str
    tier: int
    attachments: str
    target: str
    error: str


class SimulationResponse(BaseModel):
    total: int
    rows: List[Dict[str, Any]]
    failures: List[RowFailureResponse] = []


class PrepatchResponse(BaseModel):
    current: SimulationResponse
    baseline: SimulationResponse
    deltas: List[Dict[str, Any]]


class WeaponResponse(BaseModel):
    name: str
    damage: float
    fire_rate: float
    mag_size: float
    reload_time_s: float
    reload_amount: float
    headshot_mult: float
    limbs_mult: float
    bullets_per_shot: int
    burst_delay_s: float
    max_tier: int
    attachments: List[str] = []
    patched: bool = False


class TargetResponse(BaseModel):
    id: str
    label: str
    hp: float
    shield: float
    dr: float


class PresetResponse(BaseModel):
    id: str
    name: str
    file: str
    kind: str
    mode: str
    miss: Optional[float] = None
    n_trials: Optional[int] = None
    ci_level: Optional[float] = None
