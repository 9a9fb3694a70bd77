"""
Protocol Module: Reading and state schemas.

- RawReading: one fix as delivered by the platform location service
- SmoothedPosition: EMA accumulator / published position
- PublicState: the only surface consumers observe
"""

from .position import (
    RawReading,
    SmoothedPosition,
)
from .public_state import (
    PublicState,
    PermissionState,
    ErrorKind,
    create_initial_state,
    MSG_UNSUPPORTED,
    MSG_PERMISSION_DENIED,
    MSG_PERMISSION_REVOKED,
    MSG_ACQUIRING,
    MSG_SIGNAL_LOST,
    MSG_RECALIBRATION_FAILED,
)

__all__ = [
    'RawReading',
    'SmoothedPosition',
    'PublicState',
    'PermissionState',
    'ErrorKind',
    'create_initial_state',
    'MSG_UNSUPPORTED',
    'MSG_PERMISSION_DENIED',
    'MSG_PERMISSION_REVOKED',
    'MSG_ACQUIRING',
    'MSG_SIGNAL_LOST',
    'MSG_RECALIBRATION_FAILED',
]
