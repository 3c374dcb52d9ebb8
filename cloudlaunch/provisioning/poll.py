"""Generic bounded, fixed-interval polling."""

import asyncio
import inspect
import logging

logger = logging.getLogger(__name__)


class PollTimeout(Exception):
    """Raised when a probe never produced a satisfying result."""

    def __init__(self, attempts, last_result=None):
        super().__init__(f"Condition not met after {attempts} attempts (last: {last_result!r})")
        self.attempts = attempts
        self.last_result = last_result


async def poll(probe, attempts, interval, accept=bool, retry_on=(), sleep_first=False):
    """Call *probe* until *accept* holds for its result.

    Fixed interval, no backoff and no jitter: total wait is bounded by
    attempts * interval.

    Args:
        probe: zero-argument callable, sync or async.
        attempts: maximum number of probe calls.
        interval: seconds to sleep between calls.
        accept: predicate applied to each probe result.
        retry_on: exception types that count as a failed attempt instead
            of propagating.
        sleep_first: sleep before the first call as well.

    Returns:
        The first accepted probe result.

    Raises:
        PollTimeout: after *attempts* calls without an accepted result.
    """
    last = None
    for attempt in range(1, attempts + 1):
        if sleep_first or attempt > 1:
            await asyncio.sleep(interval)
        try:
            result = probe()
            if inspect.isawaitable(result):
                result = await result
        except retry_on as e:
            logger.debug(f"Poll attempt {attempt}/{attempts} failed: {e}")
            continue
        last = result
        if accept(result):
            return result
    raise PollTimeout(attempts, last)
