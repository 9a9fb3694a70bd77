"""
Platform location capability contract.

The core never talks to a concrete location API. Adapters implement
LocationPlatform; the core only relies on:
- is_supported()
- subscribe(on_success, on_error, options) -> handle / unsubscribe(handle)
- request_once(on_success, on_error, options)
- optional permission introspection with change notification

All completions are delivered as later callback invocations on the same
thread (cooperative, single-threaded model).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, List, Optional
import logging

from geo_core.proto.position import RawReading
from geo_core.proto.public_state import PermissionState, ErrorKind

logger = logging.getLogger(__name__)


class ErrorCode(IntEnum):
    """Platform error codes (W3C Geolocation numbering)."""

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


@dataclass(frozen=True)
class PositionError:
    """
    Error delivered by the platform to an error callback.

    Attributes:
        code: ErrorCode (or an unknown int from an adapter)
        message: Platform-provided description
    """

    code: int
    message: str = ''


@dataclass(frozen=True)
class PositionOptions:
    """
    Options for a subscription or one-shot request.

    Attributes:
        high_accuracy: Ask the platform for its best (e.g. GNSS) fix
        max_cached_age_ms: Oldest cached fix the platform may return (ms)
        timeout_ms: Platform-level timeout before a TIMEOUT error (ms)
    """

    high_accuracy: bool = True
    max_cached_age_ms: int = 5000
    timeout_ms: int = 20000

    def __post_init__(self):
        """Validate options."""
        if self.max_cached_age_ms < 0:
            raise ValueError(f"max_cached_age_ms cannot be negative: {self.max_cached_age_ms}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive: {self.timeout_ms}")


# Continuous watch: allow a slightly cached fix
WATCH_OPTIONS = PositionOptions(high_accuracy=True, max_cached_age_ms=5000, timeout_ms=20000)

# Recalibration: force a fresh fix
RECALIBRATE_OPTIONS = PositionOptions(high_accuracy=True, max_cached_age_ms=0, timeout_ms=20000)


ReadingCallback = Callable[[RawReading], None]
ErrorCallback = Callable[[PositionError], None]
WatchHandle = Any


def classify_error(code: int) -> ErrorKind:
    """
    Map a platform error code to the core's error taxonomy.

    Args:
        code: Platform error code

    Returns:
        ErrorKind.PERMISSION_DENIED for PERMISSION_DENIED, else ErrorKind.TRANSIENT
        (POSITION_UNAVAILABLE, TIMEOUT and unknown codes)
    """
    if code == ErrorCode.PERMISSION_DENIED:
        return ErrorKind.PERMISSION_DENIED
    return ErrorKind.TRANSIENT


class PermissionStatus:
    """
    Observable permission state returned by a permission query.

    Adapters call ``set_state`` when the platform reports a change; the
    core registers a listener with ``add_change_listener``.
    """

    def __init__(self, state: PermissionState):
        self._state = state
        self._listeners: List[Callable[[], None]] = []

    @property
    def state(self) -> PermissionState:
        return self._state

    def add_change_listener(self, listener: Callable[[], None]):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_change_listener(self, listener: Callable[[], None]):
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def set_state(self, state: PermissionState):
        """Update state and notify listeners if it changed."""
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener()


class LocationPlatform(ABC):
    """
    Abstract platform location capability.

    Usage:
        platform = MyPlatformAdapter()
        if platform.is_supported():
            handle = platform.subscribe(on_reading, on_error, WATCH_OPTIONS)
            ...
            platform.unsubscribe(handle)
    """

    @abstractmethod
    def is_supported(self) -> bool:
        """True if any location capability exists."""

    @abstractmethod
    def subscribe(
        self,
        on_success: ReadingCallback,
        on_error: ErrorCallback,
        options: PositionOptions,
    ) -> WatchHandle:
        """Start a continuous subscription and return its handle."""

    @abstractmethod
    def unsubscribe(self, handle: WatchHandle):
        """Cancel a subscription. Unknown or already-cancelled handles are a no-op."""

    @abstractmethod
    def request_once(
        self,
        on_success: ReadingCallback,
        on_error: ErrorCallback,
        options: PositionOptions,
    ):
        """Request a single fix."""

    def supports_permission_query(self) -> bool:
        """True if the platform can report permission state up front."""
        return False

    def query_permission(
        self,
        on_result: Callable[[PermissionStatus], None],
        on_error: Callable[[Exception], None],
    ):
        """
        Query permission state.

        Args:
            on_result: Called with a PermissionStatus
            on_error: Called if the platform rejects the query itself
        """
        on_error(NotImplementedError("Permission query not supported"))
