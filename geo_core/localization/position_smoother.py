"""
Exponential moving average (EMA) position smoother.

Combines the previous smoothed position with a new raw reading:

    smoothed = alpha * raw + (1 - alpha) * previous

applied independently to latitude, longitude and accuracy radius. Higher
alpha tracks the raw input faster but passes more jitter; lower alpha lags
real movement but suppresses more noise.
"""

from typing import Optional
import numpy as np

from geo_core.proto.position import SmoothedPosition

DEFAULT_ALPHA = 0.15


def smooth(
    previous: Optional[SmoothedPosition],
    raw: SmoothedPosition,
    alpha: float = DEFAULT_ALPHA,
) -> SmoothedPosition:
    """
    Apply one EMA step.

    Args:
        previous: Previous smoothed position (None before the first reading)
        raw: New reading projected to (latitude, longitude, accuracy)
        alpha: Smoothing factor in (0, 1]

    Returns:
        New SmoothedPosition (raw unchanged when there is no previous)
    """
    if previous is None:
        return raw

    prev_vec = np.array([previous.latitude, previous.longitude, previous.accuracy_m])
    raw_vec = np.array([raw.latitude, raw.longitude, raw.accuracy_m])

    blended = alpha * raw_vec + (1.0 - alpha) * prev_vec

    return SmoothedPosition(
        latitude=float(blended[0]),
        longitude=float(blended[1]),
        accuracy_m=float(blended[2]),
    )


class PositionSmoother:
    """
    Holds the EMA accumulator around ``smooth``.

    Usage:
        smoother = PositionSmoother(alpha=0.15)
        position = smoother.update(reading.to_position())
    """

    def __init__(self, alpha: float = DEFAULT_ALPHA):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1]: {alpha}")
        self.alpha = alpha
        self._current: Optional[SmoothedPosition] = None

    @property
    def current(self) -> Optional[SmoothedPosition]:
        """Current smoothed position (None before the first update)."""
        return self._current

    def is_initialized(self) -> bool:
        """Check if a baseline exists."""
        return self._current is not None

    def update(self, raw: SmoothedPosition) -> SmoothedPosition:
        """Blend raw into the accumulator and return the new value."""
        self._current = smooth(self._current, raw, self.alpha)
        return self._current

    def reset(self):
        """Drop the baseline."""
        self._current = None
