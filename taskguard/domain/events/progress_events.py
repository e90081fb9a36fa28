"""Progress events emitted by the retrier and the throttler.

Each event carries a human-readable ``message`` plus a mapping of diagnostic
fields. The message strings below are stable and safe to match on.
"""

from dataclasses import dataclass, field
import time
from types import MappingProxyType
from typing import Any, Mapping

# --- Retrier messages ---
RETRY_EXHAUSTED = "Retry failed definitively"
RETRY_PAUSING = "Retry failed, pausing..."
RETRY_RESUMING = "Cooldown complete, continuing..."

# --- Throttler messages ---
BATCH_STARTED = "Batch started"
BATCH_FINISHED = "Batch finished"
TASK_ADMITTED = "Task admitted"
TASK_COMPLETED = "Task completed"
TASK_FAILED = "Task failed"
FAIL_FAST_TRIGGERED = "Fail-fast triggered, halting admissions"


@dataclass(frozen=True)
class ProgressEvent:
    """A structured, observational progress message."""
    message: str
    data: Mapping[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time, compare=False)

    def __post_init__(self) -> None:
        # Sinks must not be able to mutate the payload other sinks will see
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    def as_dict(self) -> dict:
        return {"message": self.message, "data": dict(self.data)}
