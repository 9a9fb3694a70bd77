"""
Position reading schemas.

RawReading is what the platform location service delivers for one fix.
SmoothedPosition is the EMA accumulator kept by the reading gate pipeline;
the last one that cleared the movement threshold is the published position.
"""

from dataclasses import dataclass
from typing import Optional
import math
import time


@dataclass(frozen=True)
class RawReading:
    """
    One raw fix from the platform location service.

    Attributes:
        latitude: Latitude in degrees
        longitude: Longitude in degrees
        accuracy_m: Reported 68% confidence radius (m)
        speed_m_s: Reported ground speed (m/s), None when the platform
            does not know it
        timestamp: Fix time (seconds, epoch or monotonic)

    Notes:
        - Never retained beyond one pass through the gate pipeline
        - speed_m_s may be negative or NaN on some platforms; the gate
          pipeline treats those as unknown
    """

    latitude: float
    longitude: float
    accuracy_m: float
    speed_m_s: Optional[float] = None
    timestamp: float = 0.0

    def __post_init__(self):
        """Validate reading."""
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude out of range: {self.latitude}")

        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude out of range: {self.longitude}")

        if not math.isfinite(self.accuracy_m) or self.accuracy_m < 0:
            raise ValueError(f"Accuracy must be a finite, non-negative radius: {self.accuracy_m}")

    @property
    def has_speed(self) -> bool:
        """True if the platform reported a usable speed."""
        return self.speed_m_s is not None and not math.isnan(self.speed_m_s)

    def to_position(self) -> 'SmoothedPosition':
        """Project to the three fields the smoother combines."""
        return SmoothedPosition(
            latitude=self.latitude,
            longitude=self.longitude,
            accuracy_m=self.accuracy_m,
        )

    @classmethod
    def from_dict(cls, data: dict) -> 'RawReading':
        """
        Build a reading from a plain dict (e.g. one JSON line of a track).

        Accepts the short keys ``lat``/``lng``/``lon`` and ``accuracy``/``speed``
        as well as the attribute names.
        """
        lat = data.get('latitude', data.get('lat'))
        lng = data.get('longitude', data.get('lng', data.get('lon')))
        accuracy = data.get('accuracy_m', data.get('accuracy'))
        speed = data.get('speed_m_s', data.get('speed'))

        if lat is None or lng is None or accuracy is None:
            raise ValueError(f"Reading requires latitude, longitude and accuracy: {data}")

        return cls(
            latitude=float(lat),
            longitude=float(lng),
            accuracy_m=float(accuracy),
            speed_m_s=float(speed) if speed is not None else None,
            timestamp=float(data.get('timestamp', data.get('t', time.time()))),
        )


@dataclass(frozen=True)
class SmoothedPosition:
    """
    Smoothed position (EMA accumulator).

    Replaced on every accepted reading, never mutated.

    Attributes:
        latitude: Latitude in degrees
        longitude: Longitude in degrees
        accuracy_m: Smoothed accuracy radius (m)
    """

    latitude: float
    longitude: float
    accuracy_m: float

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'latitude': self.latitude,
            'longitude': self.longitude,
            'accuracy_m': self.accuracy_m,
        }
