"""
Domain Module: Permission/subscription control and the public service.

Implements:
- PermissionController: permission probe + continuous watch lifecycle
- StalenessWatchdog: liveness timeout
- RecalibrationController: one-shot fresh fix through the same gates
- GeolocationService: public facade (state, recalibrate, distance)
- DistanceToTarget: reactive distance derivation
"""

from .state_store import StateStore
from .staleness_watchdog import StalenessWatchdog, DEFAULT_STALENESS_TIMEOUT_S
from .permission_controller import PermissionController
from .recalibration import RecalibrationController
from .distance_to_target import DistanceToTarget, distance_to
from .geolocation_service import GeolocationService, GeolocationConfig

__all__ = [
    'StateStore',
    'StalenessWatchdog',
    'DEFAULT_STALENESS_TIMEOUT_S',
    'PermissionController',
    'RecalibrationController',
    'DistanceToTarget',
    'distance_to',
    'GeolocationService',
    'GeolocationConfig',
]
