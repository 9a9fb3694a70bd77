"""
Public state schema.

PublicState is the only data surface exposed to consumers. Every update
produces a new instance; listeners compare instances to decide whether
anything changed.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class PermissionState(str, Enum):
    """Location permission as seen by the core."""

    PROMPT = 'prompt'
    GRANTED = 'granted'
    DENIED = 'denied'
    UNSUPPORTED = 'unsupported'


class ErrorKind(str, Enum):
    """Classification of the error currently shown in PublicState."""

    UNSUPPORTED = 'unsupported'                  # No location capability (terminal)
    PERMISSION_DENIED = 'permission_denied'      # Refused or previously denied
    PERMISSION_REVOKED = 'permission_revoked'    # Denied via change notification
    TRANSIENT = 'transient'                      # Unavailable / timed out
    SIGNAL_STALE = 'signal_stale'                # No accepted reading within bound
    RECALIBRATION_FAILED = 'recalibration_failed'


MSG_UNSUPPORTED = 'Location services are not supported on this platform.'
MSG_PERMISSION_DENIED = 'Location access denied. Please enable location in your device settings to play.'
MSG_PERMISSION_REVOKED = 'Location access revoked.'
MSG_ACQUIRING = 'Acquiring location… Please ensure GPS is enabled.'
MSG_SIGNAL_LOST = 'Location signal lost. Move to an open area.'
MSG_RECALIBRATION_FAILED = 'Recalibration failed: {message}'


@dataclass(frozen=True)
class PublicState:
    """
    Consumer-visible geolocation state.

    Attributes:
        latitude: Published latitude (degrees), None until the first publish
        longitude: Published longitude (degrees), None until the first publish
        accuracy_m: Published accuracy radius (m)
        error: Human-readable error message, None when healthy
        loading: True while waiting for a first fix or a recalibration
        permission_state: Current PermissionState
        stale: True when no accepted reading arrived within the staleness bound
        error_kind: Classification of ``error`` (None when error is None)
    """

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy_m: Optional[float] = None
    error: Optional[str] = None
    loading: bool = True
    permission_state: PermissionState = PermissionState.PROMPT
    stale: bool = False
    error_kind: Optional[ErrorKind] = None

    @property
    def has_position(self) -> bool:
        """True once any position has been published."""
        return self.latitude is not None and self.longitude is not None

    @property
    def is_healthy(self) -> bool:
        """True when nothing needs clearing after a live reading."""
        return (
            not self.loading
            and self.error is None
            and not self.stale
            and self.permission_state == PermissionState.GRANTED
        )

    def with_live_signal(self) -> 'PublicState':
        """
        Clear error/loading/stale flags after a live reading.

        Returns self unchanged if there is nothing to clear, so listeners
        are not notified for no-op updates.
        """
        if self.is_healthy:
            return self
        return replace(
            self,
            error=None,
            error_kind=None,
            loading=False,
            permission_state=PermissionState.GRANTED,
            stale=False,
        )

    def with_error(self, kind: ErrorKind, message: str, **changes) -> 'PublicState':
        """Return a copy carrying an error of the given kind."""
        return replace(self, error=message, error_kind=kind, **changes)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'latitude': self.latitude,
            'longitude': self.longitude,
            'accuracy_m': self.accuracy_m,
            'error': self.error,
            'error_kind': self.error_kind.value if self.error_kind else None,
            'loading': self.loading,
            'permission_state': self.permission_state.value,
            'stale': self.stale,
        }


def create_initial_state() -> PublicState:
    """
    Create the state a service starts in.

    Returns:
        PublicState with no position, loading, permission PROMPT
    """
    return PublicState()
