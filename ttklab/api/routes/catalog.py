from fastapi import APIRouter, Depends
from typing import List

from ...config import get_settings
from ...dependencies import get_catalog
from ...schemas.simulations import PresetResponse, TargetResponse, WeaponResponse
from ...services.data_loader import DataCatalog
from ...services.modifiers import build_base_profile, patches_for_weapon, resolve_compatibility
from ...services.presets import PRESETS

router = APIRouter()


@router.get("/weapons", response_model=List[WeaponResponse])
async def list_weapons(catalog: DataCatalog = Depends(get_catalog)):
    """Weapons with their base stats and compatible attachments."""
    weapons = []
    for weapon_def in catalog.weapons:
        profile = build_base_profile(weapon_def)
        weapons.append(WeaponResponse(
            name=profile.weapon,
            damage=profile.damage_per_bullet,
            fire_rate=profile.fire_rate_bps,
            mag_size=profile.mag_size,
            reload_time_s=profile.reload_time_s,
            reload_amount=profile.reload_amount,
            headshot_mult=profile.headshot_mult,
            limbs_mult=profile.limbs_mult,
            bullets_per_shot=profile.bullets_per_shot,
            burst_delay_s=profile.burst_delay_s,
            max_tier=profile.tier_mods.max_tier,
            attachments=[m.name for m in resolve_compatibility(catalog.attachments, profile.weapon)],
            patched=bool(patches_for_weapon(catalog.patches, profile.weapon)),
        ))
    return weapons


@router.get("/targets", response_model=List[TargetResponse])
async def list_targets(catalog: DataCatalog = Depends(get_catalog)):
    """Shield classes in catalog order."""
    return [
        TargetResponse(id=t.name, label=t.display_name, hp=t.hp, shield=t.shield, dr=t.dr)
        for t in catalog.targets.values()
    ]


@router.get("/presets", response_model=List[PresetResponse])
async def list_presets():
    """Precomputed accuracy presets."""
    settings = get_settings()
    return [p.meta(settings.default_trials, settings.default_confidence) for p in PRESETS]
