"""
Unit tests for the Reading Gate Pipeline.

Tests cover:
- Accuracy gate (first reading always accepted, ceiling afterwards)
- Non-finite readings rejected before the gates
- Stationary gate (stable count, snap/freeze, counter reset)
- Movement threshold (hold vs publish, accumulated drift)
- Idempotence on repeated readings
- Configuration validation
"""

import math

import pytest

from geo_core.localization import (
    GateOutcome,
    GateResult,
    ReadingGateConfig,
    ReadingGatePipeline,
)
from geo_core.metrics import MetricsCollector
from geo_core.proto import RawReading
from tests.conftest import make_reading


@pytest.fixture
def pipeline(metrics) -> ReadingGatePipeline:
    return ReadingGatePipeline(ReadingGateConfig(), metrics=metrics)


# =============================================================================
# Accuracy Gate
# =============================================================================


class TestAccuracyGate:
    """Tests for the accuracy ceiling."""

    def test_first_reading_accepted_regardless_of_accuracy(self, pipeline):
        """With no baseline, even a 500 m reading is accepted and published."""
        result = pipeline.process(make_reading(accuracy_m=500.0))

        assert result.outcome == GateOutcome.PUBLISHED
        assert pipeline.smoothed.accuracy_m == 500.0
        assert pipeline.published == pipeline.smoothed

    def test_inaccurate_reading_after_baseline_discarded(self, pipeline, metrics):
        """A 500 m reading after a baseline changes nothing."""
        pipeline.process(make_reading(accuracy_m=10.0))
        smoothed_before = pipeline.smoothed
        published_before = pipeline.published

        result = pipeline.process(make_reading(north_m=50.0, accuracy_m=500.0))

        assert result.outcome == GateOutcome.REJECTED_LOW_ACCURACY
        assert not result.signal_alive
        assert pipeline.smoothed == smoothed_before
        assert pipeline.published == published_before
        assert metrics.get_drop_count('low_accuracy') == 1

    def test_accuracy_at_ceiling_accepted(self, pipeline):
        """The ceiling is exclusive: exactly 100 m passes."""
        pipeline.process(make_reading())
        result = pipeline.process(make_reading(accuracy_m=100.0))
        assert result.outcome != GateOutcome.REJECTED_LOW_ACCURACY

    def test_rejected_reading_does_not_touch_stable_count(self, pipeline):
        """Gate 1 runs before the stationary gate."""
        pipeline.process(make_reading())
        pipeline.process(make_reading(speed_m_s=0.0))
        assert pipeline.stable_count == 1

        pipeline.process(make_reading(speed_m_s=0.0, accuracy_m=300.0))
        assert pipeline.stable_count == 1


# =============================================================================
# Non-finite Readings
# =============================================================================


class TestNonFiniteReadings:
    """Non-finite values never reach the gates."""

    @pytest.mark.parametrize("kwargs", [
        {"accuracy_m": float("nan")},
        {"accuracy_m": float("inf")},
        {"latitude": float("nan")},
        {"longitude": float("inf")},
    ])
    def test_non_finite_reading_rejected(self, kwargs):
        values = {"latitude": 22.29, "longitude": 114.17, "accuracy_m": 10.0}
        values.update(kwargs)
        with pytest.raises(ValueError):
            RawReading(**values)

    def test_smoothed_accuracy_stays_finite(self, pipeline):
        """A NaN accuracy cannot poison the EMA accumulator."""
        pipeline.process(make_reading(accuracy_m=10.0))
        with pytest.raises(ValueError):
            make_reading(accuracy_m=float("nan"))
        pipeline.process(make_reading(accuracy_m=20.0))

        assert math.isfinite(pipeline.smoothed.accuracy_m)
        assert pipeline.smoothed.accuracy_m == pytest.approx(11.5)


# =============================================================================
# Stationary Gate
# =============================================================================


class TestStationaryGate:
    """Tests for speed-based stationary detection."""

    def test_three_stationary_readings_snap(self, pipeline):
        """Third consecutive stationary reading freezes the position."""
        pipeline.process(make_reading())
        published = pipeline.published

        outcomes = [
            pipeline.process(make_reading(north_m=2.0, speed_m_s=0.0)).outcome
            for _ in range(3)
        ]

        assert outcomes == [GateOutcome.HELD, GateOutcome.HELD, GateOutcome.SNAPPED]
        assert pipeline.published == published
        assert pipeline.stable_count == 3

    def test_snapped_keeps_position_frozen(self, pipeline):
        """Once snapped, further stationary readings never move the smoothed position."""
        pipeline.process(make_reading())
        for _ in range(3):
            pipeline.process(make_reading(speed_m_s=0.1))
        smoothed = pipeline.smoothed

        result = pipeline.process(make_reading(north_m=500.0, speed_m_s=0.0))

        assert result.outcome == GateOutcome.SNAPPED
        assert result.signal_alive
        assert pipeline.smoothed == smoothed

    def test_moving_reading_resets_counter(self, pipeline):
        """A 5 m/s reading after two stationary ones resets the count and is processed."""
        pipeline.process(make_reading())
        pipeline.process(make_reading(speed_m_s=0.0))
        pipeline.process(make_reading(speed_m_s=0.0))
        assert pipeline.stable_count == 2

        result = pipeline.process(make_reading(north_m=100.0, speed_m_s=5.0))

        assert pipeline.stable_count == 0
        assert result.outcome == GateOutcome.PUBLISHED

    def test_unknown_speed_resets_counter(self, pipeline):
        """Readings without speed are treated as potential motion."""
        pipeline.process(make_reading())
        pipeline.process(make_reading(speed_m_s=0.0))
        pipeline.process(make_reading(speed_m_s=None))
        assert pipeline.stable_count == 0

    def test_negative_speed_treated_as_unknown(self, pipeline):
        """Negative reported speed is not stationary."""
        pipeline.process(make_reading())
        pipeline.process(make_reading(speed_m_s=0.0))
        pipeline.process(make_reading(speed_m_s=-1.0))
        assert pipeline.stable_count == 0

    def test_speed_at_threshold_is_moving(self, pipeline):
        """Threshold is exclusive: 0.3 m/s counts as moving."""
        pipeline.process(make_reading())
        pipeline.process(make_reading(speed_m_s=0.3))
        assert pipeline.stable_count == 0

    def test_no_baseline_not_stationary(self, pipeline):
        """A stationary first reading is still the baseline."""
        result = pipeline.process(make_reading(speed_m_s=0.0))
        assert result.outcome == GateOutcome.PUBLISHED
        assert pipeline.stable_count == 0


# =============================================================================
# Movement Threshold
# =============================================================================


class TestMovementThreshold:
    """Tests for the publish threshold."""

    def test_small_movement_held(self, pipeline, metrics):
        """Raw 20 m jump smooths to ~3 m: held, published unchanged."""
        pipeline.process(make_reading())
        published = pipeline.published

        result = pipeline.process(make_reading(north_m=20.0))

        assert result.outcome == GateOutcome.HELD
        assert result.signal_alive
        assert result.movement_m == pytest.approx(3.0, abs=0.01)
        assert pipeline.published == published
        assert pipeline.smoothed != published
        assert metrics.get_drop_count('below_movement_threshold') == 1

    def test_large_movement_published_once(self, pipeline, metrics):
        """Raw 40 m jump smooths to ~6 m: published exactly once."""
        pipeline.process(make_reading())
        published_before = metrics.get_counter('positions_published')

        result = pipeline.process(make_reading(north_m=40.0))

        assert result.outcome == GateOutcome.PUBLISHED
        assert result.movement_m == pytest.approx(6.0, abs=0.01)
        assert pipeline.published == result.published == pipeline.smoothed
        assert metrics.get_counter('positions_published') == published_before + 1

    def test_accumulated_drift_eventually_published(self, pipeline):
        """Held movement accumulates in the EMA until it crosses the threshold."""
        pipeline.process(make_reading())

        first = pipeline.process(make_reading(north_m=20.0))   # smoothed ~3.0 m
        second = pipeline.process(make_reading(north_m=20.0))  # smoothed ~5.55 m

        assert first.outcome == GateOutcome.HELD
        assert second.outcome == GateOutcome.PUBLISHED
        assert second.movement_m == pytest.approx(5.55, abs=0.01)

    def test_threshold_is_inclusive(self, metrics):
        """Movement equal to the threshold publishes."""
        pipeline = ReadingGatePipeline(ReadingGateConfig(min_movement_m=0.0), metrics=metrics)
        pipeline.process(make_reading())

        result = pipeline.process(make_reading())

        assert result.outcome == GateOutcome.PUBLISHED
        assert result.movement_m == pytest.approx(0.0, abs=1e-6)


class TestIdempotence:
    """Repeated identical readings."""

    def test_repeated_reading_changes_nothing(self, pipeline):
        """Re-feeding the same reading only proves liveness."""
        reading = make_reading(north_m=3.0, east_m=-4.0, accuracy_m=7.0)
        pipeline.process(reading)
        smoothed = pipeline.smoothed
        published = pipeline.published

        for _ in range(5):
            result = pipeline.process(reading)
            assert result.outcome == GateOutcome.HELD
            assert result.signal_alive

        # EMA of identical input is a fixed point (up to float rounding)
        assert pipeline.smoothed.latitude == pytest.approx(smoothed.latitude, abs=1e-12)
        assert pipeline.smoothed.longitude == pytest.approx(smoothed.longitude, abs=1e-12)
        assert pipeline.smoothed.accuracy_m == pytest.approx(smoothed.accuracy_m, abs=1e-12)
        assert pipeline.published == published


class TestPipelineIsolation:
    """Independent pipelines never share state."""

    def test_two_pipelines_independent(self):
        """Feeding one pipeline leaves the other untouched."""
        a = ReadingGatePipeline(metrics=MetricsCollector())
        b = ReadingGatePipeline(metrics=MetricsCollector())

        a.process(make_reading())

        assert a.has_baseline()
        assert not b.has_baseline()
        assert b.published is None

    def test_reset(self, pipeline):
        """reset() clears baseline, published position and count."""
        pipeline.process(make_reading())
        pipeline.process(make_reading(speed_m_s=0.0))
        pipeline.reset()

        assert pipeline.smoothed is None
        assert pipeline.published is None
        assert pipeline.stable_count == 0


class TestGateResult:
    """Tests for GateResult flags."""

    @pytest.mark.parametrize("outcome,alive,published", [
        (GateOutcome.REJECTED_LOW_ACCURACY, False, False),
        (GateOutcome.SNAPPED, True, False),
        (GateOutcome.HELD, True, False),
        (GateOutcome.PUBLISHED, True, True),
    ])
    def test_flags(self, outcome, alive, published):
        result = GateResult(outcome=outcome)
        assert result.signal_alive == alive
        assert result.is_published == published


class TestReadingGateConfig:
    """Tests for configuration validation."""

    def test_defaults(self):
        """Defaults match the documented design values."""
        config = ReadingGateConfig()
        assert config.ema_alpha == 0.15
        assert config.max_acceptable_accuracy_m == 100.0
        assert config.stationary_speed_m_s == 0.3
        assert config.snap_after_stable_count == 3
        assert config.min_movement_m == 5.0

    @pytest.mark.parametrize("kwargs", [
        {"ema_alpha": 0.0},
        {"ema_alpha": 1.2},
        {"max_acceptable_accuracy_m": 0.0},
        {"stationary_speed_m_s": -0.1},
        {"snap_after_stable_count": 0},
        {"min_movement_m": -1.0},
    ])
    def test_invalid_rejected(self, kwargs):
        with pytest.raises(ValueError):
            ReadingGateConfig(**kwargs)
