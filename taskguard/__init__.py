"""taskguard: retry, throttle and deadline primitives for asyncio tasks."""

from taskguard.domain.errors import (
    TaskGuardError,
    InvalidTaskError,
    InvalidPolicyError,
    DeadlineExceededError,
)
from taskguard.domain.models.common import (
    RetryPolicy,
    ThrottlePolicy,
    TaskOutcome,
    BatchResult,
    TIMED_OUT,
)
from taskguard.domain.events.progress_events import ProgressEvent
from taskguard.infrastructure.resilience.retrier import make_retryable, compute_cooldown_ms
from taskguard.infrastructure.resilience.throttler import Throttler, throttle_and_retry
from taskguard.infrastructure.resilience.deadline import promise_timeout, with_deadline
from taskguard.infrastructure.resilience.timing import wait

__version__ = "0.3.0"

__all__ = [
    "TaskGuardError",
    "InvalidTaskError",
    "InvalidPolicyError",
    "DeadlineExceededError",
    "RetryPolicy",
    "ThrottlePolicy",
    "TaskOutcome",
    "BatchResult",
    "TIMED_OUT",
    "ProgressEvent",
    "make_retryable",
    "compute_cooldown_ms",
    "Throttler",
    "throttle_and_retry",
    "promise_timeout",
    "with_deadline",
    "wait",
]
