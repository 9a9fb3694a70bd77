"""
Deferred-callback scheduling.

The core needs exactly one facility: ``call_later(delay_s, callback)``
returning a handle whose ``cancel()`` is idempotent. An asyncio event
loop provides this as-is (``loop.call_later`` / ``TimerHandle.cancel``).

ManualScheduler implements the same interface on a virtual clock for
tests and track replays, so 30 s of silence can be simulated instantly.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional
import heapq
import itertools
import logging

logger = logging.getLogger(__name__)


@dataclass(order=True)
class ScheduledCall:
    """
    Pending callback on a ManualScheduler.

    Attributes:
        when: Virtual time at which the callback fires (s)
        seq: Tie-breaker preserving scheduling order
        callback: Function to call
        cancelled: True once cancel() was called
    """

    when: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self):
        """Cancel the call. Cancelling twice, or after it fired, is a no-op."""
        self.cancelled = True


class ManualScheduler:
    """
    Virtual-clock scheduler.

    Usage:
        scheduler = ManualScheduler()
        handle = scheduler.call_later(30.0, on_timeout)
        scheduler.advance(29.0)   # nothing fires
        scheduler.advance(1.0)    # on_timeout fires
    """

    def __init__(self, start_time: float = 0.0):
        self._now = start_time
        self._queue: List[ScheduledCall] = []
        self._seq = itertools.count()

    def time(self) -> float:
        """Current virtual time (s)."""
        return self._now

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> ScheduledCall:
        """
        Schedule callback after delay_s seconds of virtual time.

        Returns:
            ScheduledCall handle (cancel() to disarm)
        """
        if delay_s < 0:
            delay_s = 0.0
        call = ScheduledCall(when=self._now + delay_s, seq=next(self._seq), callback=callback)
        heapq.heappush(self._queue, call)
        return call

    @property
    def pending_count(self) -> int:
        """Number of scheduled, not cancelled, not yet fired calls."""
        return sum(1 for call in self._queue if not call.cancelled)

    def next_deadline(self) -> Optional[float]:
        """Virtual time of the next live call, or None."""
        live = [call.when for call in self._queue if not call.cancelled]
        return min(live) if live else None

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward, firing every call that becomes due.

        Calls scheduled by a firing callback fire in the same advance if
        they fall inside the window.

        Args:
            seconds: Amount of virtual time to advance (s)

        Returns:
            Number of callbacks fired
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance by a negative amount: {seconds}")
        return self.advance_to(self._now + seconds)

    def advance_to(self, t: float) -> int:
        """Move the clock to absolute virtual time t (never backwards)."""
        fired = 0
        while self._queue and self._queue[0].when <= t:
            call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            self._now = max(self._now, call.when)
            call.cancelled = True
            call.callback()
            fired += 1
        self._now = max(self._now, t)
        return fired
