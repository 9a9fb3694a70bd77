"""
Permission & Subscription Controller.

Owns the continuous watch subscription and the permission state machine:

    prompt --query denied------------------> denied   (never subscribes)
    prompt --query granted/prompt----------> subscribe, state from query
    prompt --no introspection / query err--> subscribe optimistically
    any    --no capability-----------------> unsupported (terminal)
    watching --PERMISSION_DENIED error-----> denied, unsubscribe
    watching --change to denied------------> denied (revoked), unsubscribe
    any    --change to granted-------------> granted, subscribe if not watching

Transient errors (unavailable, timeout) never change permission state;
the platform keeps retrying the watch on its own.

Entry points: on_reading_error(error) and on_permission_changed().
Readings are forwarded to the on_reading callback given at construction.
"""

from dataclasses import replace
from typing import Callable, Optional
import logging

from geo_core.proto.position import RawReading
from geo_core.proto.public_state import (
    ErrorKind,
    PermissionState,
    PublicState,
    MSG_ACQUIRING,
    MSG_PERMISSION_DENIED,
    MSG_PERMISSION_REVOKED,
    MSG_UNSUPPORTED,
)
from geo_core.io.platform import (
    LocationPlatform,
    PermissionStatus,
    PositionError,
    PositionOptions,
    WATCH_OPTIONS,
    classify_error,
)
from geo_core.domain.state_store import StateStore
from geo_core.metrics import MetricsCollector, get_metrics

logger = logging.getLogger(__name__)


class PermissionController:
    """
    Permission probe and continuous-subscription lifecycle.

    Usage:
        controller = PermissionController(platform, store, on_reading=pipeline_entry)
        controller.start()
        ...
        controller.stop()   # unsubscribe, detach permission listener

    Invariant: a watch handle exists only while permission is granted or
    not yet known (optimistic subscription). ``denied`` implies no handle.
    """

    def __init__(
        self,
        platform: LocationPlatform,
        store: StateStore,
        on_reading: Callable[[RawReading], None],
        watch_options: PositionOptions = WATCH_OPTIONS,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize controller.

        Args:
            platform: Platform location capability
            store: Public state store
            on_reading: Called with every reading from the watch
            watch_options: Options for the continuous subscription
            metrics: Metrics collector (uses the default collector if None)
        """
        self.platform = platform
        self.store = store
        self.on_reading = on_reading
        self.watch_options = watch_options
        self.metrics = metrics or get_metrics()

        self._running = False
        self._handle = None
        self._status: Optional[PermissionStatus] = None

        # Bumped on every (un)subscribe; callbacks from older watches are ignored
        self._watch_generation = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_watching(self) -> bool:
        """True while a continuous subscription exists."""
        return self._handle is not None

    @property
    def has_permission_listener(self) -> bool:
        return self._status is not None

    def start(self):
        """Probe capability/permission and start watching if allowed."""
        if self._running:
            return
        self._running = True

        if not self.platform.is_supported():
            logger.warning("Platform has no location capability")
            self.store.update(lambda prev: prev.with_error(
                ErrorKind.UNSUPPORTED,
                MSG_UNSUPPORTED,
                loading=False,
                permission_state=PermissionState.UNSUPPORTED,
            ))
            return

        if self.platform.supports_permission_query():
            self.platform.query_permission(self._on_query_result, self._on_query_error)
        else:
            # Outcome is inferred from the watch callbacks
            logger.info("No permission introspection, subscribing optimistically")
            self._start_watching()

    def stop(self):
        """Tear down: unsubscribe and detach the permission listener. Idempotent."""
        self._running = False
        self._stop_watching()

        if self._status is not None:
            self._status.remove_change_listener(self.on_permission_changed)
            self._status = None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def on_reading_error(self, error: PositionError):
        """
        Handle an error from the continuous subscription.

        Args:
            error: Platform error
        """
        if not self._running:
            self.metrics.increment_drop('late_callback')
            return

        kind = classify_error(error.code)

        if kind == ErrorKind.PERMISSION_DENIED:
            logger.warning(f"Location permission denied: {error.message}")
            self.metrics.increment_drop('permission_denied')
            self._stop_watching()
            self.store.update(lambda prev: prev.with_error(
                ErrorKind.PERMISSION_DENIED,
                MSG_PERMISSION_DENIED,
                loading=False,
                permission_state=PermissionState.DENIED,
            ))
            return

        # Transient: keep the watch, only surface it before the first fix
        self.metrics.increment_drop('transient_error')
        logger.debug(f"Transient location error ({error.code}): {error.message}")
        self.store.update(self._apply_transient_error)

    def on_permission_changed(self):
        """Handle a permission change notification from the platform."""
        if not self._running or self._status is None:
            return

        state = self._status.state
        self.metrics.increment('permission_changes')
        logger.info(f"Permission changed to {state.value}")

        if state == PermissionState.DENIED:
            self._stop_watching()
            self.store.update(lambda prev: prev.with_error(
                ErrorKind.PERMISSION_REVOKED,
                MSG_PERMISSION_REVOKED,
                loading=False,
                permission_state=PermissionState.DENIED,
            ))
        elif state == PermissionState.GRANTED:
            self.store.update(self._apply_regrant)
            # No-op while a watch already exists
            self._start_watching()

    # ------------------------------------------------------------------
    # Permission query callbacks
    # ------------------------------------------------------------------

    def _on_query_result(self, status: PermissionStatus):
        if not self._running:
            self.metrics.increment_drop('late_callback')
            return

        self._status = status
        status.add_change_listener(self.on_permission_changed)

        if status.state == PermissionState.DENIED:
            # Some platforms never re-prompt once denied; subscribing would hang
            logger.warning("Location permission previously denied, not subscribing")
            self.store.update(lambda prev: prev.with_error(
                ErrorKind.PERMISSION_DENIED,
                MSG_PERMISSION_DENIED,
                loading=False,
                permission_state=PermissionState.DENIED,
            ))
            return

        # granted or prompt: the platform shows its own consent prompt if needed
        self.store.update(lambda prev: replace(prev, permission_state=status.state))
        self._start_watching()

    def _on_query_error(self, exc: Exception):
        if not self._running:
            self.metrics.increment_drop('late_callback')
            return
        logger.info(f"Permission query failed ({exc}), subscribing optimistically")
        self._start_watching()

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def _start_watching(self):
        if not self._running or self._handle is not None:
            return

        self._watch_generation += 1
        generation = self._watch_generation

        def on_success(reading: RawReading):
            if not self._is_current(generation):
                self.metrics.increment_drop('late_callback')
                return
            self.on_reading(reading)

        def on_error(error: PositionError):
            if not self._is_current(generation):
                self.metrics.increment_drop('late_callback')
                return
            self.on_reading_error(error)

        self._handle = self.platform.subscribe(on_success, on_error, self.watch_options)
        self.metrics.increment('watch_started')
        logger.info("Continuous location watch started")

    def _stop_watching(self):
        self._watch_generation += 1
        if self._handle is None:
            return

        handle = self._handle
        self._handle = None
        self.platform.unsubscribe(handle)
        self.metrics.increment('watch_stopped')
        logger.info("Continuous location watch stopped")

    def _is_current(self, generation: int) -> bool:
        return self._running and generation == self._watch_generation

    @staticmethod
    def _apply_transient_error(prev: PublicState) -> PublicState:
        if prev.has_position:
            # Suppressed once a position exists, avoids flapping a working display
            return prev
        return prev.with_error(ErrorKind.TRANSIENT, MSG_ACQUIRING, loading=True)

    @staticmethod
    def _apply_regrant(prev: PublicState) -> PublicState:
        denied_kinds = (ErrorKind.PERMISSION_DENIED, ErrorKind.PERMISSION_REVOKED)
        if prev.error_kind in denied_kinds:
            return replace(
                prev,
                permission_state=PermissionState.GRANTED,
                error=None,
                error_kind=None,
                loading=not prev.has_position,
            )
        return replace(prev, permission_state=PermissionState.GRANTED)
