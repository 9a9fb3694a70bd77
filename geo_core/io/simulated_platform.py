"""
In-memory LocationPlatform for tests and track replays.

Behaves like a browser-style location service whose inputs are driven by
the caller: readings and errors are pushed into every active watch,
one-shot requests stay pending until answered, and the permission state
can be changed to exercise change notifications.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List
import itertools
import logging

from geo_core.proto.position import RawReading
from geo_core.proto.public_state import PermissionState
from geo_core.io.platform import (
    ErrorCode,
    ErrorCallback,
    LocationPlatform,
    PermissionStatus,
    PositionError,
    PositionOptions,
    ReadingCallback,
)

logger = logging.getLogger(__name__)


@dataclass
class _Watch:
    on_success: ReadingCallback
    on_error: ErrorCallback
    options: PositionOptions


@dataclass
class _OneShot:
    on_success: ReadingCallback
    on_error: ErrorCallback
    options: PositionOptions


def _default_message(code: int) -> str:
    try:
        return ErrorCode(code).name.lower()
    except ValueError:
        return f"error {code}"


class SimulatedLocationPlatform(LocationPlatform):
    """
    Scriptable location platform.

    Usage:
        platform = SimulatedLocationPlatform(permission=PermissionState.GRANTED)
        service = GeolocationService(platform, scheduler=ManualScheduler())
        service.start()

        platform.emit_reading(RawReading(22.29, 114.17, 8.0))
        platform.emit_error(ErrorCode.TIMEOUT)
        platform.set_permission(PermissionState.DENIED)

    Attributes:
        supported: Whether any location capability exists
        introspection: Whether permission queries are available
        query_fails: Make the permission query itself fail
        defer_query: Hold query results until resolve_query() is called
    """

    def __init__(
        self,
        supported: bool = True,
        introspection: bool = True,
        permission: PermissionState = PermissionState.PROMPT,
        query_fails: bool = False,
        defer_query: bool = False,
    ):
        self.supported = supported
        self.introspection = introspection
        self.query_fails = query_fails
        self.defer_query = defer_query

        self.permission_status = PermissionStatus(permission)

        self._watches: Dict[int, _Watch] = {}
        self._handle_ids = itertools.count(1)
        self._pending_once: List[_OneShot] = []
        self._pending_queries: List[Callable[[PermissionStatus], None]] = []

        # History, for assertions
        self.subscribe_calls = 0
        self.unsubscribe_calls = 0
        self.once_options: List[PositionOptions] = []

    # ------------------------------------------------------------------
    # LocationPlatform
    # ------------------------------------------------------------------

    def is_supported(self) -> bool:
        return self.supported

    def subscribe(
        self,
        on_success: ReadingCallback,
        on_error: ErrorCallback,
        options: PositionOptions,
    ) -> int:
        handle = next(self._handle_ids)
        self._watches[handle] = _Watch(on_success, on_error, options)
        self.subscribe_calls += 1
        logger.debug(f"Simulated watch {handle} started")
        return handle

    def unsubscribe(self, handle: int):
        self.unsubscribe_calls += 1
        if self._watches.pop(handle, None) is not None:
            logger.debug(f"Simulated watch {handle} cleared")

    def request_once(
        self,
        on_success: ReadingCallback,
        on_error: ErrorCallback,
        options: PositionOptions,
    ):
        self.once_options.append(options)
        self._pending_once.append(_OneShot(on_success, on_error, options))

    def supports_permission_query(self) -> bool:
        return self.introspection

    def query_permission(
        self,
        on_result: Callable[[PermissionStatus], None],
        on_error: Callable[[Exception], None],
    ):
        if not self.introspection or self.query_fails:
            on_error(RuntimeError("Permission query rejected"))
            return
        if self.defer_query:
            self._pending_queries.append(on_result)
            return
        on_result(self.permission_status)

    # ------------------------------------------------------------------
    # Driving the simulation
    # ------------------------------------------------------------------

    @property
    def active_watch_count(self) -> int:
        return len(self._watches)

    @property
    def pending_request_count(self) -> int:
        return len(self._pending_once)

    def watch_options(self) -> List[PositionOptions]:
        """Options of every active watch."""
        return [watch.options for watch in self._watches.values()]

    def emit_reading(self, reading: RawReading) -> int:
        """
        Deliver a reading to every active watch.

        Returns:
            Number of watches that received it
        """
        watches = list(self._watches.values())
        for watch in watches:
            watch.on_success(reading)
        return len(watches)

    def emit_error(self, code: int, message: str = '') -> int:
        """Deliver an error to every active watch."""
        error = PositionError(code=code, message=message or _default_message(code))
        watches = list(self._watches.values())
        for watch in watches:
            watch.on_error(error)
        return len(watches)

    def respond_once(self, reading: RawReading) -> bool:
        """Answer the oldest pending one-shot request with a reading."""
        if not self._pending_once:
            return False
        request = self._pending_once.pop(0)
        request.on_success(reading)
        return True

    def fail_once(self, code: int, message: str = '') -> bool:
        """Answer the oldest pending one-shot request with an error."""
        if not self._pending_once:
            return False
        request = self._pending_once.pop(0)
        request.on_error(PositionError(code=code, message=message or _default_message(code)))
        return True

    def resolve_query(self) -> int:
        """Deliver deferred permission query results."""
        pending = self._pending_queries
        self._pending_queries = []
        for on_result in pending:
            on_result(self.permission_status)
        return len(pending)

    def set_permission(self, state: PermissionState):
        """Change permission state, notifying change listeners."""
        logger.debug(f"Simulated permission -> {state.value}")
        self.permission_status.set_state(state)
