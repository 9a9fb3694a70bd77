"""
Localization Module: Distance, smoothing and reading gating.

Key pieces:
- haversine_m: Great-circle distance (m)
- smooth / PositionSmoother: EMA over lat/lng/accuracy
- ReadingGatePipeline: Accuracy, stationary, smoothing and movement gates
"""

from .geodesy import (
    EARTH_RADIUS_M,
    haversine_m,
    optional_distance_m,
)
from .position_smoother import (
    DEFAULT_ALPHA,
    PositionSmoother,
    smooth,
)
from .reading_gate import (
    GateOutcome,
    GateResult,
    ReadingGateConfig,
    ReadingGatePipeline,
)

__all__ = [
    'EARTH_RADIUS_M',
    'haversine_m',
    'optional_distance_m',
    'DEFAULT_ALPHA',
    'PositionSmoother',
    'smooth',
    'GateOutcome',
    'GateResult',
    'ReadingGateConfig',
    'ReadingGatePipeline',
]
