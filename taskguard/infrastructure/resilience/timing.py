"""Default delay primitive used for backoff waits and deadline timers."""

import asyncio


async def wait(ms: float) -> None:
    """Suspends the caller for ``ms`` milliseconds (negative values count as zero)."""
    await asyncio.sleep(max(0.0, ms) / 1000)
