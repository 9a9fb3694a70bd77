"""
Great-circle distance helpers.

Spherical Earth model (R = 6,371 km); at the scale the gate pipeline
works with (metres to kilometres) the difference to WGS84 is negligible.
"""

import math
from typing import Optional

# Mean Earth radius (m)
EARTH_RADIUS_M = 6371000.0


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Great-circle distance between two points.

    Args:
        lat1: Latitude of first point (degrees)
        lng1: Longitude of first point (degrees)
        lat2: Latitude of second point (degrees)
        lng2: Longitude of second point (degrees)

    Returns:
        Distance in meters (symmetric, 0 for identical points)
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)

    a = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    )
    # Clamp: rounding can push a a hair above 1 for antipodal points
    a = min(1.0, max(0.0, a))

    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def optional_distance_m(
    lat1: Optional[float],
    lng1: Optional[float],
    lat2: Optional[float],
    lng2: Optional[float],
) -> Optional[float]:
    """
    Distance that tolerates unknown endpoints.

    Returns:
        Distance in meters, or None if any coordinate is None
    """
    if lat1 is None or lng1 is None or lat2 is None or lng2 is None:
        return None
    return haversine_m(lat1, lng1, lat2, lng2)
