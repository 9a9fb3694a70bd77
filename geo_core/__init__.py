"""
Geolocation Signal Core (geo_core).

Turns the noisy, intermittent fix stream of a platform location service
into a stable, rate-limited position signal and tracks the permission
lifecycle needed to receive that stream.

Package structure:
- proto: Reading, position and public state schemas
- localization: Distance, EMA smoothing, reading gate pipeline
- domain: Permission/subscription control, staleness watchdog,
  recalibration, public service facade
- io: Platform location contract, schedulers, simulated platform
- metrics: Counters, drop reasons, histograms
"""

__version__ = "0.1.0"

from .localization import haversine_m
from .domain import (
    GeolocationService,
    GeolocationConfig,
    DistanceToTarget,
    distance_to,
)
from .proto import PublicState, PermissionState, ErrorKind

__all__ = [
    'haversine_m',
    'GeolocationService',
    'GeolocationConfig',
    'DistanceToTarget',
    'distance_to',
    'PublicState',
    'PermissionState',
    'ErrorKind',
]
