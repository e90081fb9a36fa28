"""Retry wrapper for a single task.

A failing task is re-invoked after a cooldown that grows linearly with the
retry number: ``(base_cooldown_seconds + entropy) * 1000 * attempt`` where
``entropy`` is drawn from ``[0.1, 1.1)`` when jitter is enabled. Once all
retries are spent the original exception is re-raised untouched.
"""

import inspect
import random
from typing import Any, Awaitable, Callable, Optional

from taskguard.domain.events.progress_events import RETRY_EXHAUSTED, RETRY_PAUSING, RETRY_RESUMING
from taskguard.domain.interfaces.collaborators import DelayFunction, OptionalSink, RandomSource
from taskguard.domain.models.common import RetryPolicy, Task
from taskguard.infrastructure.monitoring.progress import emit_progress
from taskguard.infrastructure.resilience.timing import wait

JITTER_FLOOR = 0.1


def compute_cooldown_ms(
    attempt: int,
    base_cooldown_seconds: float,
    jitter_enabled: bool = True,
    rng: Optional[RandomSource] = None,
) -> float:
    """Computes the pause before a retry.

    Args:
        attempt: 1-indexed number of the retry about to be made.
        base_cooldown_seconds: Base cooldown shared by every retry.
        jitter_enabled: Adds a random 0.1-1.1s to the base when True.
        rng: Source of uniform floats in [0, 1); defaults to ``random.random``.

    Returns:
        The cooldown in milliseconds.
    """
    if attempt < 1:
        raise ValueError(f"attempt is 1-indexed, got {attempt}")
    entropy = JITTER_FLOOR + (rng or random.random)() if jitter_enabled else 0.0
    return (base_cooldown_seconds + entropy) * 1000 * attempt


async def invoke_task(task: Task) -> Any:
    """Calls a task and awaits its result when it returns an awaitable."""
    result = task()
    if inspect.isawaitable(result):
        result = await result
    return result


def make_retryable(
    task: Task,
    policy: Optional[RetryPolicy] = None,
    *,
    logger: OptionalSink = None,
    delay: Optional[DelayFunction] = None,
    rng: Optional[RandomSource] = None,
) -> Callable[[], Awaitable[Any]]:
    """Wraps an uncalled task with retry-on-failure and linear backoff.

    Args:
        task: Zero-argument callable. It may raise synchronously, return an
            awaitable, or return a plain value.
        policy: Retry configuration; defaults to ``RetryPolicy()``.
        logger: Progress sink receiving the retry events.
        delay: Awaitable sleep taking milliseconds; defaults to :func:`wait`.
        rng: Uniform [0, 1) source used for jitter.

    Returns:
        A zero-argument coroutine function running ``task`` with retries.
    """
    if not callable(task):
        raise TypeError(f"task must be callable, got {type(task).__name__}")
    policy = policy or RetryPolicy()
    sleep = delay or wait
    sink = logger

    async def retryable_task() -> Any:
        attempts_made = 0
        while True:
            attempts_made += 1
            try:
                return await invoke_task(task)
            except Exception as e:
                if attempts_made >= policy.max_attempts:
                    emit_progress(sink, RETRY_EXHAUSTED, attempt=attempts_made, retry_times=policy.retry_times)
                    raise

                cooldown_ms = compute_cooldown_ms(
                    attempts_made, policy.base_cooldown_seconds, policy.jitter_enabled, rng
                )
                emit_progress(
                    sink,
                    RETRY_PAUSING,
                    attempt=attempts_made,
                    retry_times=policy.retry_times,
                    base_cooldown_seconds=policy.base_cooldown_seconds,
                    cooldown_ms=cooldown_ms,
                    error=repr(e),
                )
            await sleep(cooldown_ms)
            emit_progress(sink, RETRY_RESUMING, attempt=attempts_made, retry_times=policy.retry_times)

    return retryable_task
