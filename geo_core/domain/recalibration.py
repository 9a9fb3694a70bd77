"""
Recalibration Controller.

On demand, asks the platform for one fresh high-accuracy fix (no cached
value allowed) and feeds it into the same gate pipeline as watch readings.
Recalibration bypasses the platform's fix cache, not the gates.
"""

from dataclasses import replace
from typing import Callable, Optional
import logging

from geo_core.proto.position import RawReading
from geo_core.proto.public_state import ErrorKind, MSG_RECALIBRATION_FAILED
from geo_core.io.platform import (
    LocationPlatform,
    PositionError,
    PositionOptions,
    RECALIBRATE_OPTIONS,
)
from geo_core.domain.state_store import StateStore
from geo_core.metrics import MetricsCollector, get_metrics

logger = logging.getLogger(__name__)


class RecalibrationController:
    """
    One-shot fresh-fix requests.

    Usage:
        recal = RecalibrationController(platform, store, on_reading=pipeline_entry)
        recal.start()
        recal.request()   # loading=True until the platform answers
        recal.stop()      # outstanding answers are ignored afterwards

    A failed request only sets an error; it never touches permission state
    or the continuous subscription.
    """

    def __init__(
        self,
        platform: LocationPlatform,
        store: StateStore,
        on_reading: Callable[[RawReading], None],
        options: PositionOptions = RECALIBRATE_OPTIONS,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.platform = platform
        self.store = store
        self.on_reading = on_reading
        self.options = options
        self.metrics = metrics or get_metrics()

        self._active = False
        self._generation = 0
        self._outstanding = 0

    @property
    def outstanding(self) -> int:
        """Number of requests still waiting for the platform."""
        return self._outstanding

    def start(self):
        self._active = True

    def stop(self):
        """Ignore every outstanding answer from now on. Idempotent."""
        self._active = False
        self._generation += 1
        self._outstanding = 0

    def request(self):
        """Request one fresh fix. No-op when stopped or unsupported."""
        if not self._active:
            logger.debug("Recalibration ignored, controller stopped")
            return
        if not self.platform.is_supported():
            logger.debug("Recalibration ignored, no location capability")
            return

        self.metrics.increment('recalibrations')
        self.store.update(lambda prev: replace(
            prev, loading=True, error=None, error_kind=None, stale=False,
        ))

        generation = self._generation
        self._outstanding += 1

        def on_success(reading: RawReading):
            if not self._finish(generation):
                return
            logger.info("Recalibration fix received")
            self.on_reading(reading)
            # The request is over whatever the gates decided
            self.store.update(lambda prev: replace(prev, loading=False) if prev.loading else prev)

        def on_error(error: PositionError):
            if not self._finish(generation):
                return
            logger.warning(f"Recalibration failed ({error.code}): {error.message}")
            self.store.update(lambda prev: prev.with_error(
                ErrorKind.RECALIBRATION_FAILED,
                MSG_RECALIBRATION_FAILED.format(message=error.message),
                loading=False,
            ))

        self.platform.request_once(on_success, on_error, self.options)

    def _finish(self, generation: int) -> bool:
        if not self._active or generation != self._generation:
            self.metrics.increment_drop('late_callback')
            return False
        self._outstanding = max(0, self._outstanding - 1)
        return True
