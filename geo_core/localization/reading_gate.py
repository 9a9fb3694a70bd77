"""
Reading Gate Pipeline.

Decides, for every raw reading, whether it changes the smoothed position
and whether the change is large enough to publish.

Gates, in order (a rejecting gate stops processing):
1. Accuracy: drop readings with a radius above the ceiling once a
   baseline exists. The first reading is always accepted.
2. Stationary: near-zero reported speed with a baseline bumps the stable
   count; once the run-length is reached the displayed position is frozen.
3. Smoothing: EMA over the last smoothed position.
4. (caller) Watchdog rearm: every reading reaching this point is live.
5. Movement: publish only when the smoothed position moved at least the
   threshold away from the last published one.

The pipeline owns only the smoothed/published positions and the stable
count. It reports what happened as a GateResult; the caller rearms the
watchdog and updates public state from it, so watch and recalibration
readings go through exactly the same code.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging

from geo_core.proto.position import RawReading, SmoothedPosition
from geo_core.localization.geodesy import haversine_m
from geo_core.localization.position_smoother import PositionSmoother, DEFAULT_ALPHA
from geo_core.metrics import MetricsCollector, get_metrics

logger = logging.getLogger(__name__)


@dataclass
class ReadingGateConfig:
    """
    Configuration for the reading gate pipeline.

    Attributes:
        ema_alpha: EMA smoothing factor (0 = ignore new readings, 1 = no smoothing)
        max_acceptable_accuracy_m: Accuracy ceiling once a baseline exists (m)
        stationary_speed_m_s: Reported speed below which the device is stationary (m/s)
        snap_after_stable_count: Consecutive stationary readings before freezing
        min_movement_m: Minimum smoothed movement before publishing (m)
    """

    ema_alpha: float = DEFAULT_ALPHA
    max_acceptable_accuracy_m: float = 100.0
    stationary_speed_m_s: float = 0.3
    snap_after_stable_count: int = 3
    min_movement_m: float = 5.0

    def __post_init__(self):
        """Validate configuration."""
        if not 0.0 < self.ema_alpha <= 1.0:
            raise ValueError(f"ema_alpha must be in (0, 1]: {self.ema_alpha}")
        if self.max_acceptable_accuracy_m <= 0:
            raise ValueError(f"max_acceptable_accuracy_m must be positive: {self.max_acceptable_accuracy_m}")
        if self.stationary_speed_m_s < 0:
            raise ValueError(f"stationary_speed_m_s cannot be negative: {self.stationary_speed_m_s}")
        if self.snap_after_stable_count < 1:
            raise ValueError(f"snap_after_stable_count must be >= 1: {self.snap_after_stable_count}")
        if self.min_movement_m < 0:
            raise ValueError(f"min_movement_m cannot be negative: {self.min_movement_m}")


class GateOutcome(Enum):
    """What the pipeline did with a reading."""

    REJECTED_LOW_ACCURACY = 'rejected_low_accuracy'  # Gate 1: nothing changed
    SNAPPED = 'snapped'                              # Gate 2: position frozen, signal alive
    HELD = 'held'                                    # Gate 5: smoothed, below movement threshold
    PUBLISHED = 'published'                          # Gate 5: new published position


@dataclass(frozen=True)
class GateResult:
    """
    Result of one pass through the pipeline.

    Attributes:
        outcome: GateOutcome
        smoothed: Smoothed position after this reading (None if rejected)
        published: Newly published position (only for PUBLISHED)
        movement_m: Distance from the previous published position (m),
            None when nothing had been published yet or gate 5 was not reached
    """

    outcome: GateOutcome
    smoothed: Optional[SmoothedPosition] = None
    published: Optional[SmoothedPosition] = None
    movement_m: Optional[float] = None

    @property
    def signal_alive(self) -> bool:
        """True if the reading proves the signal is alive (rearm the watchdog)."""
        return self.outcome != GateOutcome.REJECTED_LOW_ACCURACY

    @property
    def is_published(self) -> bool:
        return self.outcome == GateOutcome.PUBLISHED


class ReadingGatePipeline:
    """
    Accuracy / stationary / smoothing / movement gate pipeline.

    Usage:
        pipeline = ReadingGatePipeline(ReadingGateConfig())

        result = pipeline.process(reading)
        if result.signal_alive:
            watchdog.rearm()
        if result.is_published:
            show(result.published)

    Each instance keeps its own state; instances never share anything
    except an explicitly passed metrics collector.
    """

    def __init__(
        self,
        config: Optional[ReadingGateConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize pipeline.

        Args:
            config: Gate configuration (uses defaults if None)
            metrics: Metrics collector (uses the default collector if None)
        """
        self.config = config or ReadingGateConfig()
        self.metrics = metrics or get_metrics()

        self._smoother = PositionSmoother(self.config.ema_alpha)
        self._published: Optional[SmoothedPosition] = None
        self._stable_count = 0

    @property
    def smoothed(self) -> Optional[SmoothedPosition]:
        """Current smoothed position (EMA accumulator)."""
        return self._smoother.current

    @property
    def published(self) -> Optional[SmoothedPosition]:
        """Last published position."""
        return self._published

    @property
    def stable_count(self) -> int:
        """Consecutive readings classified stationary by reported speed."""
        return self._stable_count

    def has_baseline(self) -> bool:
        """True once a first reading has been accepted."""
        return self._smoother.is_initialized()

    def process(self, reading: RawReading) -> GateResult:
        """
        Run one reading through all gates.

        Args:
            reading: Raw platform reading

        Returns:
            GateResult describing what happened
        """
        cfg = self.config
        self.metrics.increment('readings_in')
        self.metrics.record_histogram('reading_accuracy_m', reading.accuracy_m)

        # Gate 1: accuracy ceiling (only once a baseline exists)
        if self.has_baseline() and reading.accuracy_m > cfg.max_acceptable_accuracy_m:
            self.metrics.increment_drop('low_accuracy')
            logger.debug(f"Dropped reading: accuracy {reading.accuracy_m:.1f}m > "
                         f"{cfg.max_acceptable_accuracy_m:.1f}m")
            return GateResult(outcome=GateOutcome.REJECTED_LOW_ACCURACY)

        # Gate 2: stationary by reported speed
        if self._is_stationary(reading) and self.has_baseline():
            self._stable_count += 1
            if self._stable_count >= cfg.snap_after_stable_count:
                self.metrics.increment_drop('stationary_snap')
                logger.debug(f"Stationary (count={self._stable_count}), position frozen")
                return GateResult(outcome=GateOutcome.SNAPPED, smoothed=self.smoothed)
        else:
            self._stable_count = 0

        # Gate 3: smoothing
        smoothed = self._smoother.update(reading.to_position())
        self.metrics.increment('readings_accepted')

        # Gate 5: movement threshold (gate 4 is the caller's watchdog rearm)
        if self._published is None:
            return self._publish(smoothed, movement_m=None)

        movement_m = haversine_m(
            self._published.latitude, self._published.longitude,
            smoothed.latitude, smoothed.longitude,
        )

        if movement_m >= cfg.min_movement_m:
            return self._publish(smoothed, movement_m)

        self.metrics.increment_drop('below_movement_threshold')
        logger.debug(f"Held: moved {movement_m:.2f}m < {cfg.min_movement_m:.2f}m")
        return GateResult(outcome=GateOutcome.HELD, smoothed=smoothed, movement_m=movement_m)

    def reset(self):
        """Drop all pipeline state (baseline, published position, stable count)."""
        self._smoother.reset()
        self._published = None
        self._stable_count = 0

    def _is_stationary(self, reading: RawReading) -> bool:
        """True if the platform reports a non-negative speed below the threshold."""
        if not reading.has_speed:
            return False
        return 0.0 <= reading.speed_m_s < self.config.stationary_speed_m_s

    def _publish(self, smoothed: SmoothedPosition, movement_m: Optional[float]) -> GateResult:
        self._published = smoothed
        self.metrics.increment('positions_published')
        if movement_m is not None:
            self.metrics.record_histogram('published_movement_m', movement_m)

        logger.debug(f"Published ({smoothed.latitude:.6f}, {smoothed.longitude:.6f}) "
                     f"±{smoothed.accuracy_m:.1f}m")

        return GateResult(
            outcome=GateOutcome.PUBLISHED,
            smoothed=smoothed,
            published=smoothed,
            movement_m=movement_m,
        )
