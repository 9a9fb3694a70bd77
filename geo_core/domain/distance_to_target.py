"""
Reactive distance from the observer to a fixed target.

Consumers use this for proximity decisions ("within claim range?").
The value is None while the observer position is unknown and is
re-evaluated whenever the published position or the target changes.
"""

from typing import Callable, Optional
import logging

from geo_core.proto.public_state import PublicState
from geo_core.localization.geodesy import optional_distance_m

logger = logging.getLogger(__name__)


def distance_to(
    user_lat: Optional[float],
    user_lng: Optional[float],
    target_lat: Optional[float],
    target_lng: Optional[float],
) -> Optional[float]:
    """
    Distance from the user to a target.

    Returns:
        Distance in meters, or None if either endpoint is unknown
    """
    return optional_distance_m(user_lat, user_lng, target_lat, target_lng)


class DistanceToTarget:
    """
    Derived distance that follows a state source.

    Usage:
        tracker = DistanceToTarget(service, 22.2855, 114.1577)
        tracker.value                    # None until the first fix
        tracker.set_target(22.30, 114.18)
        tracker.close()

    The source is anything with a ``state`` (PublicState) and
    ``subscribe(listener) -> unsubscribe`` (GeolocationService, StateStore).
    """

    def __init__(
        self,
        source,
        target_lat: float,
        target_lng: float,
        on_change: Optional[Callable[[Optional[float]], None]] = None,
    ):
        """
        Initialize derivation.

        Args:
            source: State source to follow
            target_lat: Target latitude (degrees)
            target_lng: Target longitude (degrees)
            on_change: Optional callback with the new value when it changes
        """
        self.on_change = on_change
        self._target = (target_lat, target_lng)
        self._observer = (source.state.latitude, source.state.longitude)
        self._value = self._compute()
        self._unsubscribe = source.subscribe(self._on_state)

    @property
    def value(self) -> Optional[float]:
        """Current distance in meters (None while the observer is unknown)."""
        return self._value

    @property
    def target(self):
        return self._target

    def set_target(self, target_lat: float, target_lng: float):
        """Move the target and re-evaluate."""
        if (target_lat, target_lng) == self._target:
            return
        self._target = (target_lat, target_lng)
        self._recompute()

    def close(self):
        """Stop following the source. Idempotent."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_state(self, state: PublicState):
        observer = (state.latitude, state.longitude)
        if observer == self._observer:
            return
        self._observer = observer
        self._recompute()

    def _recompute(self):
        value = self._compute()
        if value == self._value:
            return
        self._value = value
        if self.on_change is not None:
            self.on_change(value)

    def _compute(self) -> Optional[float]:
        return distance_to(self._observer[0], self._observer[1], self._target[0], self._target[1])
