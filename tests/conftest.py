"""
Pytest configuration and shared fixtures for the geolocation core tests.

Provides a virtual-clock scheduler, a scriptable platform, an isolated
metrics collector and a service factory, plus helpers to build readings
at known offsets from a reference point.
"""

import sys
import math
from pathlib import Path
from typing import Callable, Optional

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from geo_core.proto import RawReading, PermissionState
from geo_core.io import ManualScheduler, SimulatedLocationPlatform
from geo_core.domain import GeolocationService, GeolocationConfig
from geo_core.metrics import MetricsCollector


# Reference point (Hong Kong harbour front)
BASE_LAT = 22.2900
BASE_LNG = 114.1700

# Metres per degree of latitude on a 6,371 km sphere
METERS_PER_DEG_LAT = math.pi * 6371000.0 / 180.0


# =============================================================================
# Helper Functions
# =============================================================================


def offset(lat: float, lng: float, north_m: float = 0.0, east_m: float = 0.0):
    """
    Move a point by a number of metres north/east (small offsets).

    Returns:
        (lat, lng) tuple in degrees
    """
    d_lat = north_m / METERS_PER_DEG_LAT
    d_lng = east_m / (METERS_PER_DEG_LAT * math.cos(math.radians(lat)))
    return lat + d_lat, lng + d_lng


def make_reading(
    north_m: float = 0.0,
    east_m: float = 0.0,
    accuracy_m: float = 10.0,
    speed_m_s: Optional[float] = None,
    t: float = 0.0,
) -> RawReading:
    """Build a reading at a metric offset from the reference point."""
    lat, lng = offset(BASE_LAT, BASE_LNG, north_m, east_m)
    return RawReading(
        latitude=lat,
        longitude=lng,
        accuracy_m=accuracy_m,
        speed_m_s=speed_m_s,
        timestamp=t,
    )


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def scheduler() -> ManualScheduler:
    """Virtual-clock scheduler starting at t=0."""
    return ManualScheduler()


@pytest.fixture
def metrics() -> MetricsCollector:
    """Isolated metrics collector (not the process default)."""
    return MetricsCollector()


@pytest.fixture
def platform() -> SimulatedLocationPlatform:
    """Platform with introspection and permission already granted."""
    return SimulatedLocationPlatform(permission=PermissionState.GRANTED)


@pytest.fixture
def make_service(scheduler, metrics) -> Callable[..., GeolocationService]:
    """
    Factory for services bound to the shared scheduler and metrics.

    Every service created here is stopped at teardown.
    """
    created = []

    def factory(platform: SimulatedLocationPlatform, config: Optional[GeolocationConfig] = None,
                start: bool = True) -> GeolocationService:
        service = GeolocationService(platform, config=config, scheduler=scheduler, metrics=metrics)
        created.append(service)
        if start:
            service.start()
        return service

    yield factory

    for service in created:
        service.stop()


@pytest.fixture
def service(platform, make_service) -> GeolocationService:
    """Started service on a granted platform."""
    return make_service(platform)
