"""Exceptions raised by the simulation engine and the catalog loader."""

from typing import List, Optional


class SimulationError(Exception):
    """Base class for every engine error."""


class ConfigurationError(SimulationError):
    """Simulation parameters are invalid or reference unknown ids.

    Raised while planning a sweep, before any trial runs.
    """


class DataValidationError(SimulationError):
    """A weapon/attachment/shield/patch entry failed validation at load time."""

    def __init__(self, source: str, errors: Optional[List[dict]] = None, message: str = ""):
        self.source = source
        self.errors = errors or []
        detail = message or "; ".join(
            f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg', '')}"
            for e in self.errors
        )
        super().__init__(f"Invalid {source} data: {detail}")


class NonInvertibleModifierError(SimulationError):
    """A modifier operation cannot be reversed (absolute set, zero multiplier)."""

    def __init__(self, modifier_name: str, field_name: str):
        self.modifier_name = modifier_name
        self.field_name = field_name
        super().__init__(
            f"Modifier '{modifier_name}' uses non-invertible operation '{field_name}'"
        )


class SweepCancelled(SimulationError):
    """The host asked the sweep to stop between configurations."""

    def __init__(self, done: int, total: int):
        self.done = done
        self.total = total
        super().__init__(f"Sweep cancelled after {done}/{total} configurations")
