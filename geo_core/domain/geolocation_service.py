"""
Geolocation Service.

Wires the components into the public surface:

    platform watch ──┐
                     ├─> ReadingGatePipeline ─> watchdog rearm / PublicState
    recalibration ───┘

- PermissionController decides whether a continuous watch exists
- Every reading, from the watch or a recalibration, goes through
  on_reading and the same gate pipeline
- StalenessWatchdog flags the signal stale after a silent period
- StateStore holds PublicState and notifies consumers

Usage (inside a running asyncio loop, or with an explicit scheduler):
    service = GeolocationService(platform)
    unsubscribe = service.subscribe(render)
    service.start()      # binds the running loop for the staleness timer
    ...
    service.recalibrate()
    ...
    service.stop()
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional
import logging

from geo_core.proto.position import RawReading
from geo_core.proto.public_state import (
    ErrorKind,
    PermissionState,
    PublicState,
    MSG_SIGNAL_LOST,
)
from geo_core.localization.reading_gate import (
    GateResult,
    ReadingGateConfig,
    ReadingGatePipeline,
)
from geo_core.io.platform import (
    LocationPlatform,
    PositionError,
    PositionOptions,
    WATCH_OPTIONS,
    RECALIBRATE_OPTIONS,
)
from geo_core.domain.state_store import StateStore
from geo_core.domain.staleness_watchdog import StalenessWatchdog, DEFAULT_STALENESS_TIMEOUT_S
from geo_core.domain.permission_controller import PermissionController
from geo_core.domain.recalibration import RecalibrationController
from geo_core.domain.distance_to_target import DistanceToTarget, distance_to
from geo_core.metrics import MetricsCollector, get_metrics

logger = logging.getLogger(__name__)


@dataclass
class GeolocationConfig:
    """
    Configuration for the geolocation service.

    Attributes:
        gate: Reading gate pipeline configuration (alpha, thresholds)
        staleness_timeout_s: Silence before the signal is flagged stale (s)
        watch_options: Platform options for the continuous watch
        recalibrate_options: Platform options for recalibration (no cached fix)
    """

    gate: ReadingGateConfig = field(default_factory=ReadingGateConfig)
    staleness_timeout_s: float = DEFAULT_STALENESS_TIMEOUT_S
    watch_options: PositionOptions = WATCH_OPTIONS
    recalibrate_options: PositionOptions = RECALIBRATE_OPTIONS

    def __post_init__(self):
        """Validate configuration."""
        if self.staleness_timeout_s <= 0:
            raise ValueError(f"staleness_timeout_s must be positive: {self.staleness_timeout_s}")
        if self.recalibrate_options.max_cached_age_ms != 0:
            raise ValueError("Recalibration must not accept a cached fix (max_cached_age_ms=0)")

    @classmethod
    def from_dict(
        cls,
        filter_config: Optional[dict] = None,
        watch_config: Optional[dict] = None,
        recalibrate_config: Optional[dict] = None,
    ) -> 'GeolocationConfig':
        """
        Build a configuration from plain dict settings (see config.py).

        Args:
            filter_config: Gate thresholds and staleness timeout
            watch_config: Continuous watch PositionOptions fields
            recalibrate_config: Recalibration PositionOptions fields

        Returns:
            GeolocationConfig with defaults for missing keys
        """
        filter_config = dict(filter_config or {})
        staleness_timeout_s = filter_config.pop('staleness_timeout_s', DEFAULT_STALENESS_TIMEOUT_S)

        return cls(
            gate=ReadingGateConfig(**filter_config),
            staleness_timeout_s=staleness_timeout_s,
            watch_options=PositionOptions(**watch_config) if watch_config else WATCH_OPTIONS,
            recalibrate_options=(
                PositionOptions(**recalibrate_config) if recalibrate_config else RECALIBRATE_OPTIONS
            ),
        )


class GeolocationService:
    """
    Stable, rate-limited position signal with permission tracking.

    Each instance owns its own pipeline state, timer and subscription;
    any number of independent services can coexist.

    Args:
        platform: Platform location capability
        config: Service configuration (uses defaults if None)
        scheduler: call_later provider; if None, start() must run inside an
            asyncio loop, and platform callbacks must arrive on that loop's thread
        metrics: Metrics collector (uses the default collector if None)
    """

    def __init__(
        self,
        platform: LocationPlatform,
        config: Optional[GeolocationConfig] = None,
        scheduler: Optional[Any] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.platform = platform
        self.config = config or GeolocationConfig()
        self.metrics = metrics or get_metrics()

        self.store = StateStore()
        self.pipeline = ReadingGatePipeline(self.config.gate, metrics=self.metrics)
        self.watchdog = StalenessWatchdog(
            self._on_stale,
            timeout_s=self.config.staleness_timeout_s,
            scheduler=scheduler,
            metrics=self.metrics,
        )
        self.permissions = PermissionController(
            platform,
            self.store,
            on_reading=self.on_reading,
            watch_options=self.config.watch_options,
            metrics=self.metrics,
        )
        self.recalibration = RecalibrationController(
            platform,
            self.store,
            on_reading=self.on_reading,
            options=self.config.recalibrate_options,
            metrics=self.metrics,
        )

        self._running = False

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> PublicState:
        """Current consumer-visible state."""
        return self.store.state

    def subscribe(self, listener: Callable[[PublicState], None]) -> Callable[[], None]:
        """Register a state listener; returns an unsubscribe function."""
        return self.store.subscribe(listener)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_watching(self) -> bool:
        return self.permissions.is_watching

    def start(self):
        """
        Probe permission and start the continuous watch.

        Raises:
            RuntimeError: No scheduler was given and no asyncio loop is running
        """
        if self._running:
            return
        self.watchdog.bind_scheduler()
        self._running = True
        logger.info("Geolocation service starting")
        self.recalibration.start()
        self.permissions.start()

    def stop(self):
        """
        Tear down: cancel the watch, disarm the watchdog, detach listeners.

        Idempotent; no state update happens after it returns.
        """
        if self._running:
            logger.info("Geolocation service stopping")
        self._running = False
        self.permissions.stop()
        self.recalibration.stop()
        self.watchdog.disarm()

    def __enter__(self) -> 'GeolocationService':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def recalibrate(self):
        """Request one fresh high-accuracy fix; effects show up in state."""
        self.recalibration.request()

    def distance_to(self, target_lat: float, target_lng: float) -> Optional[float]:
        """Distance from the published position to a target (None if unknown)."""
        state = self.store.state
        return distance_to(state.latitude, state.longitude, target_lat, target_lng)

    def track_distance_to(
        self,
        target_lat: float,
        target_lng: float,
        on_change: Optional[Callable[[Optional[float]], None]] = None,
    ) -> DistanceToTarget:
        """Reactive distance to a target, re-evaluated on every position change."""
        return DistanceToTarget(self.store, target_lat, target_lng, on_change=on_change)

    # ------------------------------------------------------------------
    # Entry points (platform callbacks)
    # ------------------------------------------------------------------

    def on_reading(self, reading: RawReading) -> Optional[GateResult]:
        """
        Run a reading through the gate pipeline and apply the result.

        Args:
            reading: Raw reading from the watch or a recalibration

        Returns:
            GateResult, or None if the service is stopped
        """
        if not self._running:
            self.metrics.increment_drop('late_callback')
            return None

        result = self.pipeline.process(reading)

        if result.signal_alive:
            self.watchdog.rearm()

        if result.is_published:
            position = result.published
            self.store.update(lambda prev: replace(
                prev,
                latitude=position.latitude,
                longitude=position.longitude,
                accuracy_m=position.accuracy_m,
                error=None,
                error_kind=None,
                loading=False,
                permission_state=PermissionState.GRANTED,
                stale=False,
            ))
        elif result.signal_alive:
            self.store.update(lambda prev: prev.with_live_signal())

        return result

    def on_reading_error(self, error: PositionError):
        """Handle an error from the continuous watch."""
        self.permissions.on_reading_error(error)

    def on_permission_changed(self):
        """Handle a platform permission change notification."""
        self.permissions.on_permission_changed()

    def _on_stale(self):
        if not self._running:
            return
        self.store.update(self._apply_stale)

    @staticmethod
    def _apply_stale(prev: PublicState) -> PublicState:
        if prev.error_kind in (ErrorKind.PERMISSION_DENIED, ErrorKind.PERMISSION_REVOKED):
            # The permission message already explains the silence
            return replace(prev, stale=True)
        return prev.with_error(ErrorKind.SIGNAL_STALE, MSG_SIGNAL_LOST, stale=True)
