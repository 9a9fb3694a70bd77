"""
Unit tests for on-demand recalibration.

Tests cover:
- Fresh-fix request options (no cached fix)
- Loading/error/stale flags around a request
- Recalibrated readings go through the same gates
- Failure reporting leaves permission and watch alone
- Answers arriving after teardown
"""

import pytest

from geo_core.io import ErrorCode, RECALIBRATE_OPTIONS, SimulatedLocationPlatform
from geo_core.proto import ErrorKind, PermissionState
from tests.conftest import make_reading


class TestRecalibrationRequest:
    """Tests for issuing a request."""

    def test_requests_fresh_fix(self, service, platform, metrics):
        """Recalibration never accepts a cached fix."""
        service.recalibrate()

        assert platform.once_options == [RECALIBRATE_OPTIONS]
        assert platform.once_options[0].max_cached_age_ms == 0
        assert platform.once_options[0].high_accuracy
        assert metrics.get_counter('recalibrations') == 1

    def test_sets_loading_and_clears_error(self, service, platform, scheduler):
        """A request clears stale/error flags and shows loading."""
        platform.emit_reading(make_reading())
        scheduler.advance(30.0)
        assert service.state.stale

        service.recalibrate()

        state = service.state
        assert state.loading
        assert state.error is None
        assert state.error_kind is None
        assert not state.stale
        assert state.has_position

    def test_ignored_when_stopped(self, make_service, platform):
        service = make_service(platform, start=False)
        service.recalibrate()
        assert platform.pending_request_count == 0

    def test_ignored_when_unsupported(self, make_service):
        platform = SimulatedLocationPlatform(supported=False)
        service = make_service(platform)
        before = service.state

        service.recalibrate()

        assert platform.pending_request_count == 0
        assert service.state == before


class TestRecalibrationSuccess:
    """Tests for a successful fresh fix."""

    def test_first_fix_published(self, make_service):
        """With no baseline, a recalibrated fix is published directly."""
        platform = SimulatedLocationPlatform(introspection=False)
        service = make_service(platform)
        service.recalibrate()

        assert platform.respond_once(make_reading(accuracy_m=4.0))

        state = service.state
        assert state.has_position
        assert state.accuracy_m == 4.0
        assert not state.loading

    def test_goes_through_movement_gate(self, service, platform):
        """A fresh fix close to the published position is held like any other."""
        platform.emit_reading(make_reading())
        published = (service.state.latitude, service.state.longitude)

        service.recalibrate()
        platform.respond_once(make_reading(north_m=10.0, accuracy_m=3.0))

        state = service.state
        assert (state.latitude, state.longitude) == published
        assert not state.loading

    def test_large_jump_published(self, service, platform):
        platform.emit_reading(make_reading())
        before = service.state.latitude

        service.recalibrate()
        platform.respond_once(make_reading(north_m=100.0, accuracy_m=3.0))

        assert service.state.latitude > before
        assert not service.state.loading

    def test_rejected_fix_still_ends_loading(self, service, platform):
        """An inaccurate fresh fix is discarded but the request is over."""
        platform.emit_reading(make_reading())
        service.recalibrate()

        platform.respond_once(make_reading(north_m=500.0, accuracy_m=400.0))

        assert not service.state.loading
        assert service.recalibration.outstanding == 0


class TestRecalibrationFailure:
    """Tests for a failed fresh fix."""

    def test_failure_sets_error(self, service, platform):
        service.recalibrate()

        platform.fail_once(ErrorCode.TIMEOUT, "GPS timed out")

        state = service.state
        assert state.error == "Recalibration failed: GPS timed out"
        assert state.error_kind == ErrorKind.RECALIBRATION_FAILED
        assert not state.loading

    def test_failure_keeps_permission_and_watch(self, service, platform):
        """Even a permission-style failure does not tear the watch down."""
        platform.emit_reading(make_reading())
        service.recalibrate()

        platform.fail_once(ErrorCode.PERMISSION_DENIED, "denied")

        assert service.state.permission_state == PermissionState.GRANTED
        assert platform.active_watch_count == 1
        assert service.state.has_position

    def test_live_reading_clears_failure(self, service, platform):
        platform.emit_reading(make_reading())
        service.recalibrate()
        platform.fail_once(ErrorCode.POSITION_UNAVAILABLE, "no fix")

        platform.emit_reading(make_reading())

        assert service.state.error is None


class TestRecalibrationTeardown:
    """Tests for answers arriving after stop()."""

    @pytest.mark.parametrize("answer", ["success", "error"])
    def test_answer_after_stop_ignored(self, service, platform, metrics, answer):
        service.recalibrate()
        service.stop()
        before = service.state

        if answer == "success":
            platform.respond_once(make_reading())
        else:
            platform.fail_once(ErrorCode.TIMEOUT)

        assert service.state == before
        assert metrics.get_drop_count('late_callback') == 1
