"""Defines the Value Objects shared by the retry, throttle and deadline components.

Policies are immutable and validated on construction. Batch outcomes are
index-addressed so that result slot ``i`` always belongs to input task ``i``.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterator, List, Optional, Sequence, Tuple, Union, overload

from taskguard.domain.errors import InvalidPolicyError

# === Core Value Objects ===

# A task is an uncalled, zero-argument callable. Calling it may return an
# awaitable, a plain value, or raise synchronously.
Task = Callable[[], Union[Awaitable[Any], Any]]

DEFAULT_RETRY_TIMES = 5
DEFAULT_BASE_COOLDOWN_SECONDS = 10.0
DEFAULT_MAX_CONCURRENCY = 2
DEFAULT_TIMEOUT_MS = 60_000


# --- Policies ---

@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration applied to a single task.

    ``retry_times`` counts the additional attempts after the first, so a task
    is invoked at most ``retry_times + 1`` times.
    """
    retry_times: int = DEFAULT_RETRY_TIMES
    base_cooldown_seconds: float = DEFAULT_BASE_COOLDOWN_SECONDS
    jitter_enabled: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.retry_times, bool) or not isinstance(self.retry_times, int):
            raise InvalidPolicyError(f"retry_times must be an integer, got {self.retry_times!r}")
        if self.retry_times < 0:
            raise InvalidPolicyError(f"retry_times must be >= 0, got {self.retry_times}")
        if isinstance(self.base_cooldown_seconds, bool) or not isinstance(self.base_cooldown_seconds, (int, float)):
            raise InvalidPolicyError(f"base_cooldown_seconds must be a number, got {self.base_cooldown_seconds!r}")
        if self.base_cooldown_seconds <= 0:
            raise InvalidPolicyError(f"base_cooldown_seconds must be > 0, got {self.base_cooldown_seconds}")

    @property
    def max_attempts(self) -> int:
        return self.retry_times + 1


@dataclass(frozen=True)
class ThrottlePolicy:
    """Batch configuration: concurrency bound, failure policy and per-task retry."""
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    fail_fast: bool = True
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        if isinstance(self.max_concurrency, bool) or not isinstance(self.max_concurrency, int):
            raise InvalidPolicyError(f"max_concurrency must be an integer, got {self.max_concurrency!r}")
        if self.max_concurrency < 1:
            raise InvalidPolicyError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        if not isinstance(self.retry, RetryPolicy):
            raise InvalidPolicyError(f"retry must be a RetryPolicy, got {type(self.retry).__name__}")


# --- Outcomes ---

@dataclass(frozen=True)
class TaskOutcome:
    """The settled result of one task in a batch: a value or a captured failure."""
    index: int
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, index: int, value: Any) -> "TaskOutcome":
        return cls(index=index, value=value)

    @classmethod
    def failure(cls, index: int, error: BaseException) -> "TaskOutcome":
        return cls(index=index, error=error)


class BatchResult(Sequence[TaskOutcome]):
    """Immutable, input-ordered sequence of task outcomes."""

    __slots__ = ("_outcomes",)

    def __init__(self, outcomes: Sequence[TaskOutcome] = ()):
        self._outcomes: Tuple[TaskOutcome, ...] = tuple(outcomes)
        for position, outcome in enumerate(self._outcomes):
            if outcome.index != position:
                raise ValueError(f"Outcome at position {position} belongs to task {outcome.index}")

    @overload
    def __getitem__(self, index: int) -> TaskOutcome: ...

    @overload
    def __getitem__(self, index: slice) -> Tuple[TaskOutcome, ...]: ...

    def __getitem__(self, index):
        return self._outcomes[index]

    def __len__(self) -> int:
        return len(self._outcomes)

    def __iter__(self) -> Iterator[TaskOutcome]:
        return iter(self._outcomes)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, BatchResult):
            return self._outcomes == other._outcomes
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._outcomes)

    def __repr__(self) -> str:
        return f"BatchResult({list(self._outcomes)!r})"

    def values(self) -> List[Any]:
        """Returns each task's value, or its exception for failed slots."""
        return [outcome.value if outcome.ok else outcome.error for outcome in self._outcomes]

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self._outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return len(self._outcomes) - self.succeeded

    @property
    def all_ok(self) -> bool:
        return self.failed == 0


# --- Sentinels ---

class _TimedOut:
    """Marker returned by the deadline guard when it is told not to raise."""

    _instance: Optional["_TimedOut"] = None

    def __new__(cls) -> "_TimedOut":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "TIMED_OUT"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "TIMED_OUT"


TIMED_OUT = _TimedOut()
