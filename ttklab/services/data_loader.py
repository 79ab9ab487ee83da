"""Catalog loader for weapon, attachment, shield and patch-delta definitions.

Usage:
    from ttklab.services.data_loader import load_catalog_from_dir

    catalog = load_catalog_from_dir(Path("data"))
    profile = build_base_profile(catalog.weapon("Bobcat"))

All validation happens here, so a malformed entry fails before a sweep
starts rather than half way through it.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..schemas.catalog import (
    AttachmentDefinition,
    PatchDeltaDefinition,
    ShieldDefinition,
    WeaponDefinition,
)
from .combat_resolver import TargetProfile
from .errors import ConfigurationError, DataValidationError
from .modifiers import MODIFIER_OPS, Modifier, ModifierKind

logger = logging.getLogger(__name__)

WEAPONS_FILE = "weapons.json"
ATTACHMENTS_FILE = "attachments.json"
SHIELDS_FILE = "shields.json"
PATCH_FILE = "patch.json"

# Used when no shield list is supplied
DEFAULT_TARGETS: Dict[str, TargetProfile] = {
    "NoShield": TargetProfile(name="NoShield", hp=100, shield=0, dr=0.0),
    "Light": TargetProfile(name="Light", hp=100, shield=40, dr=0.4),
    "Medium": TargetProfile(name="Medium", hp=100, shield=70, dr=0.425),
    "Heavy": TargetProfile(name="Heavy", hp=100, shield=80, dr=0.525),
}


@dataclass
class DataCatalog:
    """Validated catalog contents, in file order."""
    weapons: List[WeaponDefinition] = field(default_factory=list)
    attachments: List[Modifier] = field(default_factory=list)
    targets: Dict[str, TargetProfile] = field(default_factory=lambda: dict(DEFAULT_TARGETS))
    patches: List[Modifier] = field(default_factory=list)

    def weapon(self, name: str) -> Optional[WeaponDefinition]:
        """Look up a weapon by exact name, case-insensitive."""
        folded = name.strip().casefold()
        for w in self.weapons:
            if w.name.casefold() == folded:
                return w
        return None

    def target(self, target_id: str) -> TargetProfile:
        target = self.targets.get(target_id)
        if target is None:
            raise ConfigurationError(
                f"Unknown target: {target_id} (known: {', '.join(self.targets)})"
            )
        return target

    @property
    def target_ids(self) -> List[str]:
        return list(self.targets)


def _validate_entries(model, entries: Any, source: str) -> list:
    if not isinstance(entries, list):
        raise DataValidationError(source, message="expected a JSON array")
    out = []
    for i, entry in enumerate(entries):
        try:
            out.append(model.model_validate(entry))
        except ValidationError as e:
            errors = [{**err, "loc": (i,) + tuple(err["loc"])} for err in e.errors()]
            raise DataValidationError(source, errors) from e
    return out


def _modifier_values(definition) -> Dict[str, Optional[float]]:
    return {name: getattr(definition, name) for name in MODIFIER_OPS}


def attachment_to_modifier(definition: AttachmentDefinition) -> Modifier:
    return Modifier.from_fields(
        name=definition.name,
        kind=ModifierKind.ATTACHMENT,
        values=_modifier_values(definition),
        compatible=definition.compatible,
        slot=definition.type or "misc",
    )


def patch_to_modifier(definition: PatchDeltaDefinition) -> Modifier:
    return Modifier.from_fields(
        name=definition.name or " / ".join(definition.compatible),
        kind=ModifierKind.PATCH,
        values=_modifier_values(definition),
        compatible=definition.compatible,
    )


def shield_to_target(definition: ShieldDefinition) -> TargetProfile:
    return TargetProfile(
        name=definition.key,
        label=definition.label or definition.key,
        hp=definition.hp,
        shield=definition.shield,
        dr=definition.dr,
    )


def load_weapons(entries: Any) -> List[WeaponDefinition]:
    weapons = _validate_entries(WeaponDefinition, entries, "weapon")
    seen = set()
    for w in weapons:
        key = w.name.casefold()
        if key in seen:
            raise DataValidationError("weapon", message=f"duplicate weapon name '{w.name}'")
        seen.add(key)
    return weapons


def load_attachments(entries: Any) -> List[Modifier]:
    return [attachment_to_modifier(a) for a in _validate_entries(AttachmentDefinition, entries, "attachment")]


def load_patches(entries: Any) -> List[Modifier]:
    return [patch_to_modifier(p) for p in _validate_entries(PatchDeltaDefinition, entries, "patch")]


def load_targets(entries: Any) -> Dict[str, TargetProfile]:
    """Shield list as an array of ``{id|name, ...}`` or an object keyed by id."""
    if isinstance(entries, dict):
        keyed = []
        for key, value in entries.items():
            if not isinstance(value, dict):
                raise DataValidationError("shield", message=f"entry '{key}' is not an object")
            if value.get("id") is None and value.get("name") is None:
                value = {**value, "id": key}
            keyed.append(value)
        entries = keyed

    shields = _validate_entries(ShieldDefinition, entries, "shield")
    targets: Dict[str, TargetProfile] = {}
    for s in shields:
        if s.key in targets:
            raise DataValidationError("shield", message=f"duplicate shield id '{s.key}'")
        targets[s.key] = shield_to_target(s)
    return targets


def load_catalog(
    weapons: Any,
    attachments: Any = None,
    shields: Any = None,
    patches: Any = None,
) -> DataCatalog:
    """Build a catalog from already parsed JSON contents."""
    return DataCatalog(
        weapons=load_weapons(weapons),
        attachments=load_attachments(attachments) if attachments is not None else [],
        targets=load_targets(shields) if shields is not None else dict(DEFAULT_TARGETS),
        patches=load_patches(patches) if patches is not None else [],
    )


def _read_json(filepath: Path) -> Any:
    with open(filepath, encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise DataValidationError(filepath.name, message=f"invalid JSON: {e}") from e


def load_catalog_from_dir(data_dir: Path) -> DataCatalog:
    """Load the catalog files from a directory; only weapons.json is required."""
    data_dir = Path(data_dir)
    weapons_path = data_dir / WEAPONS_FILE
    if not weapons_path.exists():
        raise DataValidationError("weapon", message=f"{weapons_path} not found")

    optional = {}
    for name in (ATTACHMENTS_FILE, SHIELDS_FILE, PATCH_FILE):
        path = data_dir / name
        optional[name] = _read_json(path) if path.exists() else None

    catalog = load_catalog(
        weapons=_read_json(weapons_path),
        attachments=optional[ATTACHMENTS_FILE],
        shields=optional[SHIELDS_FILE],
        patches=optional[PATCH_FILE],
    )
    logger.info(
        f"Loaded catalog from {data_dir}: {len(catalog.weapons)} weapons, "
        f"{len(catalog.attachments)} attachments, {len(catalog.targets)} targets, "
        f"{len(catalog.patches)} patch deltas"
    )
    return catalog
