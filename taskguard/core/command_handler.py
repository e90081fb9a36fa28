"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), turns them into
taskguard tasks and policies, runs them through the resilience engine and
reports the outcome through the injected UserInterface.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from taskguard.domain.errors import DeadlineExceededError
from taskguard.domain.interfaces.collaborators import DelayFunction
from taskguard.domain.interfaces.user_interface import UserInterface
from taskguard.domain.models.common import BatchResult, RetryPolicy, ThrottlePolicy
from taskguard.infrastructure.monitoring.progress import fan_out, logging_sink
from taskguard.infrastructure.resilience.deadline import promise_timeout
from taskguard.infrastructure.resilience.retrier import JITTER_FLOOR, compute_cooldown_ms
from taskguard.infrastructure.resilience.throttler import Throttler
from taskguard.infrastructure.tasks.shell import ShellCommandTask

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1


def build_cooldown_schedule(policy: RetryPolicy) -> List[Dict[str, Any]]:
    """Lists the cooldown bounds for every retry allowed by ``policy``.

    With jitter the real cooldown lies in ``[min_ms, max_ms)``; without it
    both bounds are equal.
    """
    rows = []
    cumulative_max = 0.0
    for attempt in range(1, policy.retry_times + 1):
        low = compute_cooldown_ms(attempt, policy.base_cooldown_seconds, policy.jitter_enabled, rng=lambda: 0.0)
        high = compute_cooldown_ms(attempt, policy.base_cooldown_seconds, policy.jitter_enabled, rng=lambda: 1.0)
        cumulative_max += high
        rows.append({"attempt": attempt, "min_ms": low, "max_ms": high, "cumulative_max_ms": cumulative_max})
    return rows


class CommandHandler:
    """Handles incoming commands and delegates to the resilience engine."""

    def __init__(self, ui: UserInterface, delay: Optional[DelayFunction] = None):
        """Initializes the CommandHandler.

        Args:
            ui: Where progress, results and errors are shown.
            delay: Optional backoff delay primitive forwarded to the retrier.
                Deadlines always use real time.
        """
        self.ui = ui
        self.delay = delay

    async def handle_run(
        self,
        commands: Sequence[str],
        policy: ThrottlePolicy,
        task_timeout_ms: Optional[float] = None,
        batch_timeout_ms: Optional[float] = None,
        cwd: Optional[str] = None,
    ) -> int:
        """Handles the 'run' command: executes shell commands as one batch.

        Returns:
            The process exit code: 0 if every command succeeded, 1 otherwise.
        """
        logger.info(
            f"Handling 'run' for {len(commands)} commands "
            f"(max_concurrency={policy.max_concurrency}, fail_fast={policy.fail_fast}, "
            f"retry_times={policy.retry.retry_times})"
        )
        if not commands:
            self.ui.display_warning("No commands given; nothing to run.")
            return EXIT_OK

        # Commands enforce their own deadline and kill a timed-out attempt
        tasks = [ShellCommandTask(command, cwd=cwd, timeout_ms=task_timeout_ms or None) for command in commands]
        self.ui.display_info(
            f"Running {len(tasks)} command(s), at most {policy.max_concurrency} at a time, "
            f"up to {policy.retry.max_attempts} attempt(s) each."
        )

        sink = fan_out(self.ui.display_event, logging_sink(logger, logging.DEBUG))
        throttler = Throttler(policy, logger=sink, delay=self.delay)

        try:
            if batch_timeout_ms:
                # An abandoned batch keeps running until the event loop closes; its commands are killed then
                result: BatchResult = await promise_timeout(throttler.run(tasks), batch_timeout_ms)
            else:
                result = await throttler.run(tasks)
        except Exception as e:
            index = throttler.last_failed_index
            if index is not None:
                logger.info(f"Batch aborted by command {index}: {e}")
                self.ui.display_error(f"Batch aborted: command {index} ('{commands[index]}') failed: {e}")
            elif isinstance(e, DeadlineExceededError):
                logger.error(f"Batch deadline exceeded: {e}")
                self.ui.display_error(f"Batch did not finish within {e.timeout_ms:g}ms.")
            else:
                logger.error(f"Batch failed unexpectedly: {e}", exc_info=True)
                self.ui.display_error(f"Batch failed: {e}")
            return EXIT_FAILED

        self.ui.display_batch_result(list(commands), result)
        return EXIT_OK if result.all_ok else EXIT_FAILED

    def handle_schedule(self, policy: RetryPolicy) -> None:
        """Handles the 'schedule' command: previews the cooldowns of a retry policy."""
        logger.info(f"Handling 'schedule' for {policy}")
        rows = build_cooldown_schedule(policy)
        jitter = f"jitter +{JITTER_FLOOR:g}s..+{JITTER_FLOOR + 1:g}s" if policy.jitter_enabled else "no jitter"
        self.ui.display_cooldown_schedule(
            rows,
            title=f"{policy.retry_times} retries, base {policy.base_cooldown_seconds:g}s, {jitter}",
        )
