"""
I/O Module: Platform location contract and scheduling.

- LocationPlatform: abstract platform capability (subscribe, one-shot,
  permission introspection)
- ManualScheduler: virtual-clock call_later for tests and replays
  (an asyncio event loop is the production scheduler)
- SimulatedLocationPlatform: scriptable in-memory platform
"""

from .platform import (
    ErrorCode,
    PositionError,
    PositionOptions,
    PermissionStatus,
    LocationPlatform,
    WATCH_OPTIONS,
    RECALIBRATE_OPTIONS,
    classify_error,
)
from .scheduler import ManualScheduler, ScheduledCall
from .simulated_platform import SimulatedLocationPlatform

__all__ = [
    'ErrorCode',
    'PositionError',
    'PositionOptions',
    'PermissionStatus',
    'LocationPlatform',
    'WATCH_OPTIONS',
    'RECALIBRATE_OPTIONS',
    'classify_error',
    'ManualScheduler',
    'ScheduledCall',
    'SimulatedLocationPlatform',
]
