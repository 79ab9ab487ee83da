# Catalog input schemas; request/response models live in .simulations
from .catalog import (
    WeaponDefinition, TierModsDefinition, ModifierFields,
    AttachmentDefinition, PatchDeltaDefinition, ShieldDefinition
)
