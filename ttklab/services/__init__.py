# Engine modules (pure, no web dependencies)
from .errors import (
    SimulationError, ConfigurationError, DataValidationError,
    NonInvertibleModifierError, SweepCancelled
)
from .modifiers import WeaponProfile, TierMods, Modifier, ModifierKind, AttachmentCombo
from .combat_resolver import TargetProfile, AccuracyProfile, TrialOutcome
from .timing_model import TimingResult
from .statistics import MetricStats, AggregateStats
from .data_loader import DataCatalog, load_catalog, load_catalog_from_dir
from .sweep_driver import SweepParams, SimulationMode, ConfigRow, SweepResult, run_sweep, iter_sweep

__all__ = [
    "SimulationError",
    "ConfigurationError",
    "DataValidationError",
    "NonInvertibleModifierError",
    "SweepCancelled",
    "WeaponProfile",
    "TierMods",
    "Modifier",
    "ModifierKind",
    "AttachmentCombo",
    "TargetProfile",
    "AccuracyProfile",
    "TrialOutcome",
    "TimingResult",
    "MetricStats",
    "AggregateStats",
    "DataCatalog",
    "load_catalog",
    "load_catalog_from_dir",
    "SweepParams",
    "SimulationMode",
    "ConfigRow",
    "SweepResult",
    "run_sweep",
    "iter_sweep",
]
