"""
Staleness Watchdog.

One deferred callback, rearmed (cancel, then reschedule) on every reading
that proves the signal is alive. If it ever fires, nothing live arrived
within the timeout and the signal is flagged stale.
"""

from typing import Any, Callable, Optional
import asyncio
import logging

from geo_core.metrics import MetricsCollector, get_metrics

logger = logging.getLogger(__name__)

DEFAULT_STALENESS_TIMEOUT_S = 30.0


class StalenessWatchdog:
    """
    Restartable liveness timer.

    Usage:
        watchdog = StalenessWatchdog(on_stale, timeout_s=30.0, scheduler=loop)
        watchdog.rearm()     # on every live reading
        watchdog.disarm()    # on teardown

    The scheduler is anything with ``call_later(delay_s, callback)``
    returning a handle with ``cancel()``. When None, ``bind_scheduler()``
    must be called from inside a running asyncio loop before the first
    rearm; rearm itself never looks the loop up.
    """

    def __init__(
        self,
        on_stale: Callable[[], None],
        timeout_s: float = DEFAULT_STALENESS_TIMEOUT_S,
        scheduler: Optional[Any] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize watchdog.

        Args:
            on_stale: Called once when the timeout elapses without a rearm
            timeout_s: Silence tolerated before flagging stale (s)
            scheduler: call_later provider (see bind_scheduler if None)
            metrics: Metrics collector (uses the default collector if None)
        """
        if timeout_s <= 0:
            raise ValueError(f"timeout_s must be positive: {timeout_s}")

        self.on_stale = on_stale
        self.timeout_s = timeout_s
        self.metrics = metrics or get_metrics()
        self._scheduler = scheduler
        self._handle = None

    @property
    def is_armed(self) -> bool:
        """True while a timeout is pending."""
        return self._handle is not None

    def rearm(self):
        """Cancel any pending timeout and start a new one."""
        self.disarm()
        if self._scheduler is None:
            raise RuntimeError("StalenessWatchdog has no scheduler; call bind_scheduler() first")
        self._handle = self._scheduler.call_later(self.timeout_s, self._fire)

    def disarm(self):
        """Cancel the pending timeout. Idempotent."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self):
        self._handle = None
        self.metrics.increment('stale_events')
        logger.warning(f"No live reading for {self.timeout_s:.0f}s, signal marked stale")
        self.on_stale()

    def bind_scheduler(self):
        """
        Resolve the scheduler, defaulting to the running asyncio loop.

        Raises:
            RuntimeError: No scheduler was given and no event loop is running
        """
        if self._scheduler is not None:
            return self._scheduler
        try:
            self._scheduler = asyncio.get_running_loop()
        except RuntimeError as e:
            raise RuntimeError(
                "No scheduler given and no running asyncio loop; "
                "pass scheduler= or start inside the event loop"
            ) from e
        return self._scheduler
