"""Interface for presenting engine activity to the user.

Defines the contract for displaying informational messages, errors,
progress events and batch summaries, allowing different UI implementations
(e.g., rich console, plain logs, tests).
"""

import abc
from typing import Any, Sequence

from taskguard.domain.events.progress_events import ProgressEvent
from taskguard.domain.models.common import BatchResult


class UserInterface(abc.ABC):
    """Abstract Base Class for user-facing output."""

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_event(self, event: ProgressEvent) -> None:
        """Renders a single progress event as it happens.

        Implementations are used as progress sinks and must not raise.
        """
        pass

    @abc.abstractmethod
    def display_batch_result(self, labels: Sequence[str], result: BatchResult) -> None:
        """Renders the outcome of a batch, one row per task.

        Args:
            labels: Human-readable label for each task, in input order.
            result: The batch outcomes, aligned with ``labels``.
        """
        pass

    @abc.abstractmethod
    def display_cooldown_schedule(self, rows: Sequence[dict], **kwargs: Any) -> None:
        """Renders a preview of the retry cooldown schedule.

        Args:
            rows: One mapping per retry attempt with ``attempt``, ``min_ms``,
                ``max_ms`` and ``cumulative_max_ms`` keys.
        """
        pass
