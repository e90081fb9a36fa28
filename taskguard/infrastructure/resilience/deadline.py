"""Deadline guard: races one operation against a timer.

The losing operation is abandoned, never cancelled. Tasks in this model have
no cancellation hook, so whatever an abandoned operation holds (sockets,
subprocesses, files) must be cleaned up by the caller.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Set, Union

from taskguard.domain.errors import DeadlineExceededError
from taskguard.domain.interfaces.collaborators import DelayFunction
from taskguard.domain.models.common import DEFAULT_TIMEOUT_MS, TIMED_OUT, Task
from taskguard.infrastructure.resilience.timing import wait

logger = logging.getLogger(__name__)

Operation = Union[Awaitable[Any], Callable[[], Awaitable[Any]]]

# Strong references to abandoned operations; the event loop only keeps weak ones
_abandoned: Set["asyncio.Future[Any]"] = set()


def _settle_abandoned(future: "asyncio.Future[Any]") -> None:
    _abandoned.discard(future)
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.debug(f"Abandoned operation finished after its deadline with {error!r}")


def _as_awaitable(operation: Operation) -> Awaitable[Any]:
    if inspect.isawaitable(operation):
        return operation
    if callable(operation):
        produced = operation()
        if not inspect.isawaitable(produced):
            raise TypeError(f"Operation factory returned {type(produced).__name__}, expected an awaitable")
        return produced
    raise TypeError(f"operation must be an awaitable or a callable producing one, got {type(operation).__name__}")


async def promise_timeout(
    operation: Operation,
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
    throw_on_timeout: bool = True,
    *,
    delay: Optional[DelayFunction] = None,
) -> Any:
    """Awaits ``operation`` for at most ``timeout_ms`` milliseconds.

    Args:
        operation: An awaitable, or a zero-argument callable producing one.
        timeout_ms: Deadline in milliseconds.
        throw_on_timeout: Raise on timeout when True, otherwise return ``TIMED_OUT``.
        delay: Timer primitive taking milliseconds; defaults to :func:`wait`.

    Returns:
        The operation's result, or ``TIMED_OUT`` if the timer won and
        ``throw_on_timeout`` is False.

    Raises:
        DeadlineExceededError: The timer won and ``throw_on_timeout`` is True.
        Exception: Whatever the operation raised, unchanged, if it settled first.
    """
    pending_operation = asyncio.ensure_future(_as_awaitable(operation))
    timer = asyncio.ensure_future((delay or wait)(timeout_ms))
    try:
        done, _ = await asyncio.wait({pending_operation, timer}, return_when=asyncio.FIRST_COMPLETED)
    except BaseException:
        # The guard itself was cancelled; the operation is abandoned like on a timeout
        timer.cancel()
        _abandon(pending_operation)
        raise

    if pending_operation in done:
        timer.cancel()
        return pending_operation.result()

    _abandon(pending_operation)
    timer.result()  # surfaces a failing delay primitive instead of reporting a timeout
    logger.debug(f"Deadline of {timeout_ms}ms reached; operation abandoned")
    if throw_on_timeout:
        raise DeadlineExceededError(timeout_ms)
    return TIMED_OUT


def _abandon(future: "asyncio.Future[Any]") -> None:
    if future.done():
        _settle_abandoned(future)
        return
    _abandoned.add(future)
    future.add_done_callback(_settle_abandoned)


def with_deadline(
    task: Task,
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
    throw_on_timeout: bool = True,
    *,
    delay: Optional[DelayFunction] = None,
) -> Callable[[], Awaitable[Any]]:
    """Returns a task that runs ``task`` under :func:`promise_timeout`.

    Wrapping before handing the task to the retrier makes each attempt
    individually bounded, with a timeout counting as a retryable failure.
    """
    async def guarded_task() -> Any:
        result = task()
        if not inspect.isawaitable(result):
            return result
        return await promise_timeout(result, timeout_ms, throw_on_timeout, delay=delay)

    return guarded_task
