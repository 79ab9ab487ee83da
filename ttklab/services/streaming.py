"""Server-Sent Events for streamed sweeps."""

import json
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class StreamEventType(str, Enum):
    """Types of streaming events."""
    PROGRESS = "progress"
    DONE = "done"
    ERROR = "error"


@dataclass
class StreamEvent:
    """A single streaming event."""
    event_type: StreamEventType
    data: Any
    done: Optional[int] = None
    total: Optional[int] = None

    def to_sse(self) -> str:
        """Format as Server-Sent Event."""
        payload = {
            "type": self.event_type.value,
            "data": self.data,
        }
        if self.done is not None:
            payload["done"] = self.done
        if self.total is not None:
            payload["total"] = self.total

        return f"event: {self.event_type.value}\ndata: {json.dumps(finite_or_none(payload))}\n\n"


def finite_or_none(value: Any) -> Any:
    """Replace non-finite floats with None, recursively; JSON has no Infinity."""
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: finite_or_none(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [finite_or_none(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value
