"""Input schemas for the static catalog (weapons, attachments, shields, patch deltas).

Every model forbids unknown keys and non-finite numbers, so a typo such as
``mad_add`` or a ``NaN`` reload time fails when the catalog is loaded
instead of silently changing a sweep.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", allow_inf_nan=False, frozen=True)


class TierModsDefinition(StrictModel):
    """Per-tier deltas, index 0 is tier II."""
    fire_rate_pct: List[Optional[float]] = []
    reload_time_reduction_pct: List[Optional[float]] = []
    mag_add: List[Optional[float]] = []


class WeaponDefinition(StrictModel):
    name: str = Field(min_length=1)
    damage: float = Field(ge=0)
    fire_rate: float = Field(ge=0)  # shots per second
    mag_size: float = Field(ge=0)
    reload_time_s: float = Field(ge=0)
    reload_amount: Optional[float] = Field(default=None, ge=0)
    headshot_mult: Optional[float] = None
    limbs_mult: Optional[float] = None
    nb_bullets: Optional[int] = None
    burst_delay: Optional[float] = None
    tier_mods: Optional[TierModsDefinition] = None


class ModifierFields(StrictModel):
    """Sparse stat operations shared by attachments and patch deltas.

    ``*_pct`` values are signed percentage changes (+10 means x1.10).
    """
    fire_rate_add: Optional[float] = None
    fire_rate_mult: Optional[float] = Field(default=None, ge=0)
    fire_rate_pct: Optional[float] = None
    reload_time_add: Optional[float] = None
    reload_time_mult: Optional[float] = Field(default=None, ge=0)
    reload_time_pct: Optional[float] = None
    damage_add: Optional[float] = None
    damage_mult: Optional[float] = Field(default=None, ge=0)
    damage_pct: Optional[float] = None
    mag_add: Optional[float] = None
    mag_mult: Optional[float] = Field(default=None, ge=0)
    mag_pct: Optional[float] = None
    reload_amount_set: Optional[float] = Field(default=None, ge=0)
    reload_amount_add: Optional[float] = None
    headshot_mult_scale: Optional[float] = Field(default=None, ge=0)
    limbs_mult_scale: Optional[float] = Field(default=None, ge=0)

    @field_validator("fire_rate_pct", "reload_time_pct", "damage_pct", "mag_pct")
    @classmethod
    def pct_above_floor(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < -100:
            raise ValueError("percentage change cannot go below -100")
        return v


class AttachmentDefinition(ModifierFields):
    name: str = Field(min_length=1)
    type: str = "misc"
    compatible: List[str] = []


class PatchDeltaDefinition(ModifierFields):
    name: Optional[str] = None
    compatible: List[str] = Field(min_length=1)


class ShieldDefinition(StrictModel):
    id: Optional[str] = None
    name: Optional[str] = None
    label: Optional[str] = None
    hp: float = Field(gt=0)
    shield: float = Field(default=0, ge=0)
    dr: float = Field(default=0, ge=0, le=1)

    @model_validator(mode="after")
    def require_identifier(self):
        if not (self.id or self.name):
            raise ValueError("shield entry needs an 'id' or a 'name'")
        return self

    @property
    def key(self) -> str:
        return self.id or self.name
