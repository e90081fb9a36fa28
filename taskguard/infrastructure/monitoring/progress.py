"""Plumbing between the engine and injected progress sinks.

The engine only ever calls :func:`emit_progress`. Sinks are plain callables;
this module also provides adapters to route events into stdlib logging and
to broadcast one event to several sinks.
"""

import logging
from typing import Any

from taskguard.domain.events.progress_events import ProgressEvent
from taskguard.domain.interfaces.collaborators import OptionalSink, ProgressSink

logger = logging.getLogger(__name__)


def emit_progress(sink: OptionalSink, message: str, **data: Any) -> ProgressEvent:
    """Builds a ProgressEvent and hands it to the sink.

    A sink that raises is reported through logging and otherwise ignored, so a
    misbehaving observer can never change the outcome of a task or batch.

    Returns:
        The emitted event (also when no sink is configured).
    """
    event = ProgressEvent(message=message, data=data)
    if sink is None:
        return event
    try:
        sink(event)
    except Exception as e:
        logger.warning(f"Progress sink {sink!r} raised while handling '{message}': {e}", exc_info=True)
    return event


def logging_sink(target: logging.Logger = logger, level: int = logging.INFO) -> ProgressSink:
    """Creates a sink that writes each event as a log record.

    Args:
        target: The logger to write to.
        level: Log level used for every event.
    """
    def _sink(event: ProgressEvent) -> None:
        if not target.isEnabledFor(level):
            return
        details = ", ".join(f"{key}={value}" for key, value in event.data.items())
        target.log(level, f"{event.message} ({details})" if details else event.message)

    return _sink


def fan_out(*sinks: OptionalSink) -> ProgressSink:
    """Combines several sinks into one; ``None`` entries are skipped.

    Each sink is isolated from the others: one raising does not prevent the
    rest from seeing the event.
    """
    active = [sink for sink in sinks if sink is not None]

    def _sink(event: ProgressEvent) -> None:
        for sink in active:
            try:
                sink(event)
            except Exception as e:
                logger.warning(f"Progress sink {sink!r} raised while handling '{event.message}': {e}", exc_info=True)

    return _sink
