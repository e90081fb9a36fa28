"""Call signatures for the collaborators injected into the engine.

The engine never reaches for ambient globals: the progress sink and the
delay primitive are always passed in by the caller.
"""

from typing import Awaitable, Callable, Optional

from taskguard.domain.events.progress_events import ProgressEvent

# Invoked synchronously with every progress event. None means "discard".
ProgressSink = Callable[[ProgressEvent], None]
OptionalSink = Optional[ProgressSink]

# Suspends the caller for the given number of milliseconds.
DelayFunction = Callable[[float], Awaitable[None]]

# Returns a float uniformly drawn from [0.0, 1.0).
RandomSource = Callable[[], float]
