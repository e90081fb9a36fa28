"""Bounded-concurrency batch execution with per-task retries.

A fixed pool of workers pulls task indices from one ordered queue, so tasks
are admitted in input order and at most ``max_concurrency`` run at once.
Every outcome is written into a pre-sized, index-addressed slot list, which
keeps ``BatchResult[i]`` tied to input task ``i`` whatever the completion order.
"""

import asyncio
import inspect
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, List, Optional, Sequence

from taskguard.domain.errors import InvalidTaskError
from taskguard.domain.events.progress_events import (
    BATCH_FINISHED,
    BATCH_STARTED,
    FAIL_FAST_TRIGGERED,
    TASK_ADMITTED,
    TASK_COMPLETED,
    TASK_FAILED,
)
from taskguard.domain.interfaces.collaborators import DelayFunction, OptionalSink, RandomSource
from taskguard.domain.models.common import BatchResult, Task, TaskOutcome, ThrottlePolicy
from taskguard.infrastructure.monitoring.progress import emit_progress
from taskguard.infrastructure.resilience.retrier import make_retryable

logger = logging.getLogger(__name__)


def validate_tasks(tasks: Any) -> None:
    """Checks that ``tasks`` is an ordered sequence of zero-argument callables.

    Raises:
        InvalidTaskError: On the first violation found; no task has been called.
    """
    if isinstance(tasks, (str, bytes, bytearray)) or not isinstance(tasks, Sequence):
        raise InvalidTaskError(
            f"tasks must be an ordered sequence of callables, got {type(tasks).__name__}"
        )
    for index, task in enumerate(tasks):
        if not callable(task):
            raise InvalidTaskError(
                f"Task at index {index} is not callable (got {type(task).__name__}); "
                "pass the function itself, not the result of calling it",
                index=index,
            )
        try:
            signature = inspect.signature(task)
        except (TypeError, ValueError):
            # Some builtins expose no signature; they are accepted as-is
            continue
        try:
            signature.bind()
        except TypeError:
            raise InvalidTaskError(
                f"Task at index {index} requires arguments {signature}; tasks must take none",
                index=index,
            ) from None


class _BatchRun:
    """State for one execution of a batch. Only its own workers touch it."""

    def __init__(self, retryables: List[Callable[[], Awaitable[Any]]], policy: ThrottlePolicy, sink: OptionalSink):
        self.retryables = retryables
        self.policy = policy
        self.sink = sink
        self.pending: Deque[int] = deque(range(len(retryables)))
        self.slots: List[Optional[TaskOutcome]] = [None] * len(retryables)
        self.in_flight = 0
        self.completed = 0
        self.first_failure: Optional[int] = None

    @property
    def halted(self) -> bool:
        return self.policy.fail_fast and self.first_failure is not None

    async def worker(self, worker_id: int) -> None:
        while self.pending and not self.halted:
            index = self.pending.popleft()
            self.in_flight += 1
            emit_progress(self.sink, TASK_ADMITTED, index=index, worker=worker_id, in_flight=self.in_flight)
            try:
                value = await self.retryables[index]()
            except Exception as e:
                self.in_flight -= 1
                self.completed += 1
                self.slots[index] = TaskOutcome.failure(index, e)
                emit_progress(
                    self.sink,
                    TASK_FAILED,
                    index=index,
                    error=repr(e),
                    in_flight=self.in_flight,
                    completed=self.completed,
                    task_count=len(self.slots),
                )
                if self.policy.fail_fast and self.first_failure is None:
                    self.first_failure = index
                    emit_progress(
                        self.sink,
                        FAIL_FAST_TRIGGERED,
                        index=index,
                        error=repr(e),
                        in_flight=self.in_flight,
                        not_admitted=len(self.pending),
                    )
            else:
                self.in_flight -= 1
                self.completed += 1
                self.slots[index] = TaskOutcome.success(index, value)
                emit_progress(
                    self.sink,
                    TASK_COMPLETED,
                    index=index,
                    in_flight=self.in_flight,
                    completed=self.completed,
                    task_count=len(self.slots),
                )


class Throttler:
    """Runs batches of tasks under a ThrottlePolicy.

    Every call to :meth:`run` gets its own queue and result slots, so one
    instance can serve many batches in turn.

    After a fail-fast abort, ``last_failed_index`` holds the input position
    of the task whose exception :meth:`run` raised. It is reset when a run
    starts and stays None for runs that return normally.
    """

    def __init__(
        self,
        policy: Optional[ThrottlePolicy] = None,
        *,
        logger: OptionalSink = None,
        delay: Optional[DelayFunction] = None,
        rng: Optional[RandomSource] = None,
    ):
        self.policy = policy or ThrottlePolicy()
        self.sink = logger
        self.delay = delay
        self.rng = rng
        self.last_failed_index: Optional[int] = None

    async def run(self, tasks: Sequence[Task]) -> BatchResult:
        """Executes ``tasks`` and returns their outcomes in input order.

        Raises:
            InvalidTaskError: If ``tasks`` is malformed (before anything runs).
            Exception: Under fail-fast, the first exhausted task failure, re-raised
                unchanged after all in-flight tasks have settled. The
                failing position is available as ``last_failed_index`` and in
                the "Fail-fast triggered" progress event.
        """
        self.last_failed_index = None
        validate_tasks(tasks)
        policy = self.policy
        emit_progress(
            self.sink,
            BATCH_STARTED,
            task_count=len(tasks),
            max_concurrency=policy.max_concurrency,
            fail_fast=policy.fail_fast,
        )

        retryables = [
            make_retryable(task, policy.retry, logger=self.sink, delay=self.delay, rng=self.rng)
            for task in tasks
        ]
        batch = _BatchRun(retryables, policy, self.sink)
        worker_count = min(policy.max_concurrency, len(retryables))
        logger.debug(f"Running {len(retryables)} tasks on {worker_count} workers (fail_fast={policy.fail_fast})")

        if worker_count:
            await asyncio.gather(*(batch.worker(worker_id) for worker_id in range(worker_count)))

        outcomes = [outcome for outcome in batch.slots if outcome is not None]
        failed = sum(1 for outcome in outcomes if not outcome.ok)
        emit_progress(
            self.sink,
            BATCH_FINISHED,
            task_count=len(tasks),
            succeeded=len(outcomes) - failed,
            failed=failed,
            aborted=batch.halted,
        )

        if batch.halted:
            failure = batch.slots[batch.first_failure]
            self.last_failed_index = batch.first_failure
            logger.debug(f"Batch aborted by task {batch.first_failure}; {len(batch.pending)} tasks never admitted")
            raise failure.error
        return BatchResult(batch.slots)


async def throttle_and_retry(
    tasks: Sequence[Task],
    policy: Optional[ThrottlePolicy] = None,
    *,
    logger: OptionalSink = None,
    delay: Optional[DelayFunction] = None,
    rng: Optional[RandomSource] = None,
) -> BatchResult:
    """Runs ``tasks`` with retries under a concurrency bound.

    Convenience wrapper around ``Throttler(policy, ...).run(tasks)``.
    """
    return await Throttler(policy, logger=logger, delay=delay, rng=rng).run(tasks)
