"""
Integration tests for the position estimator pipeline.

Tests cover:
- Scenario A: cold start without GNSS
- Scenario B: clean straight-line alignment
- Scenario C: single GNSS outlier
- Scenario D: anchor starvation with dead-reckoning fallback
- Estimation preconditions (speed, heading, saturation, decimation)
- Velocity-event decimation and input handling
"""

import numpy as np
import pytest

from dr_core.localization import (
    PositionEstimator,
    PositionEstimatorConfig,
    create_default_estimator,
)
from dr_core.metrics import get_metrics
from dr_core.proto import EstimatorMode, GnssFix, VelocityReport
from tests.conftest import StraightDrive, truth_at


def no_gnss(tick):
    return None


def aligned(outputs):
    return [o for o in outputs if o.raw_estimate_valid]


def config_with(fast_config: PositionEstimatorConfig, **overrides) -> PositionEstimatorConfig:
    values = dict(fast_config.__dict__)
    values.update(overrides)
    return PositionEstimatorConfig(**values)


# =============================================================================
# Scenarios
# =============================================================================


class TestScenarios:
    """End-to-end scenarios on a synthetic straight-line drive."""

    def test_cold_start_without_gnss(self, drive: StraightDrive):
        """Scenario A: no estimate is ever valid without GNSS."""
        outputs = drive.run(10, gnss=no_gnss)

        assert len(outputs) == 10
        for output in outputs:
            assert not output.estimate_valid
            assert not output.raw_estimate_valid
            assert output.mode == EstimatorMode.UNINITIALIZED
            assert output.pos_enu == (0.0, 0.0, 0.0)

        metrics = get_metrics()
        assert metrics.get_drop_count('first_tick') == 1
        assert metrics.get_drop_count('short_travel') == 9

    def test_clean_alignment(self, drive: StraightDrive, estimator: PositionEstimator):
        """Scenario B: exact fixes align in one iteration to the true position."""
        outputs = drive.run(60)

        # Estimation waits until the drive has covered the 50 m span
        assert not any(o.estimate_valid for o in outputs[:50])

        hits = aligned(outputs)
        assert len(hits) >= 5
        for output in hits:
            tick = int(round(output.timestamp / 0.1))
            np.testing.assert_allclose(output.pos_enu, truth_at(tick), atol=1e-6)
            assert output.residual_m == pytest.approx(0.0, abs=1e-6)

        result = estimator.last_alignment
        assert result.success
        assert result.iterations == 1
        assert result.rejected == []
        assert estimator.started

    def test_single_outlier(self, fast_config):
        """Scenario C: one fix 10x past the threshold is rejected, the rest align."""
        estimator = PositionEstimator(fast_config)
        drive = StraightDrive(estimator)
        bias = np.array([10 * fast_config.outlier_threshold_m, 0.0, 0.0])

        def gnss(tick):
            return truth_at(tick) + bias if tick == 45 else truth_at(tick)

        results = []
        for _ in range(60):
            output = drive.step(gnss(drive.tick))
            if output.raw_estimate_valid:
                results.append((output, estimator.last_alignment))

        assert results
        for output, result in results:
            assert result.success
            assert len(result.rejected) == 1
            assert result.iterations == 2
            assert result.max_residual_m == pytest.approx(0.0, abs=1e-6)
            tick = int(round(output.timestamp / 0.1))
            np.testing.assert_allclose(output.pos_enu, truth_at(tick), atol=1e-6)

    def test_starvation_falls_back(self, fast_config):
        """Scenario D: too few anchors gives up and the output dead-reckons."""
        config = config_with(fast_config, giveup_fraction=0.2)
        estimator = PositionEstimator(config)
        drive = StraightDrive(estimator)

        drive.run(60)
        assert estimator.started

        # Outage long enough to flush every clean anchor from the window
        outage = drive.run(60, gnss=no_gnss)
        assert all(o.is_dead_reckoned for o in outage)

        sparse = drive.run(60, gnss=lambda k: truth_at(k) if k % 10 == 0 else None)

        for output in sparse:
            assert output.is_dead_reckoned
            assert output.estimate_valid
            assert not output.raw_estimate_valid
            tick = int(round(output.timestamp / 0.1))
            np.testing.assert_allclose(output.pos_enu, truth_at(tick), atol=1e-6)

        assert get_metrics().get_counter('alignment_giveup') == 5
        assert get_metrics().get_drop_count('insufficient_anchors') == 1

    def test_fallback_after_outage(self, drive: StraightDrive):
        """Test extrapolation after alignment is exactly the constant-velocity step."""
        drive.run(60)
        outage = drive.run(20, gnss=no_gnss)

        previous = drive.outputs[-21]
        assert previous.is_aligned
        for output in outage:
            dt = output.timestamp - previous.timestamp
            expected = np.asarray(previous.pos_enu) + np.asarray(drive.velocity) * dt
            assert output.pos_enu == tuple(float(v) for v in expected)
            previous = output

    def test_recovers_after_outage(self, drive: StraightDrive):
        drive.run(60)
        drive.run(20, gnss=no_gnss)

        recovered = drive.run(5)

        assert recovered[-1].is_aligned
        np.testing.assert_allclose(recovered[-1].pos_enu, truth_at(drive.tick - 1), atol=1e-6)


# =============================================================================
# Preconditions
# =============================================================================


class TestPreconditions:
    """Each failing precondition suppresses the aligned estimate."""

    def test_low_speed(self, drive: StraightDrive):
        drive.reported_speed = 0.5

        outputs = drive.run(60)

        assert not aligned(outputs)
        assert get_metrics().get_drop_count('low_speed') > 0

    def test_no_heading_support(self, estimator: PositionEstimator):
        drive = StraightDrive(estimator, heading=False)

        outputs = drive.run(60)

        assert not aligned(outputs)
        assert get_metrics().get_drop_count('no_heading_support') > 0

    def test_heading_must_predate_window(self, estimator: PositionEstimator):
        """Test heading support that only starts inside the window is not enough."""
        drive = StraightDrive(estimator, heading=False)
        drive.run(40)
        drive.heading = True

        outputs = drive.run(20)

        assert not aligned(outputs)
        assert get_metrics().get_drop_count('no_heading_support') > 0

    def test_saturated_window(self, fast_config):
        """Test a buffer too small to cover the span suppresses estimation."""
        estimator = PositionEstimator(config_with(fast_config, buffer_capacity=40))
        drive = StraightDrive(estimator)

        outputs = drive.run(80)

        assert not aligned(outputs)
        assert get_metrics().get_drop_count('insufficient_history') > 0
        assert len(estimator.buffer) == 40

    def test_gnss_decimation(self, fast_config):
        """Test alignment only on every Nth fresh GNSS fix."""
        estimator = PositionEstimator(config_with(fast_config, gnss_decimation=5))
        drive = StraightDrive(estimator)

        outputs = drive.run(60)

        # Fix count at tick k is k + 1; ticks 54 and 59 are multiples of 5
        assert len(aligned(outputs)) == 2
        assert get_metrics().get_drop_count('decimated') == 7

    def test_insufficient_anchors(self, fast_config):
        """Test the minimum-anchor fraction gate."""
        estimator = PositionEstimator(config_with(fast_config, min_anchor_fraction=0.5))
        drive = StraightDrive(estimator)

        outputs = drive.run(60, gnss=lambda k: truth_at(k) if k % 4 == 0 else None)

        assert not aligned(outputs)
        assert get_metrics().get_drop_count('insufficient_anchors') > 0


# =============================================================================
# Tick handling
# =============================================================================


class TestTickHandling:
    """Velocity-event decimation and input handling."""

    def test_update_modulus(self):
        config = PositionEstimatorConfig(imu_rate_hz=100.0, estimation_rate_hz=50.0)
        estimator = PositionEstimator(config)

        outputs = [
            estimator.on_velocity(VelocityReport(timestamp=0.01 * i, vel_enu=(1.0, 0.0, 0.0)))
            for i in range(1, 11)
        ]

        assert config.update_modulus == 2
        assert [o is None for o in outputs] == [True, False] * 5
        assert len(estimator.buffer) == 5

    def test_gnss_freshness_by_sequence(self, estimator: PositionEstimator):
        """Test a repeated sequence number is not a fresh fix."""
        estimator.on_gnss(GnssFix(seq=7, pos_enu=(1.0, 2.0, 3.0)))
        for i in range(3):
            estimator.on_velocity(VelocityReport(timestamp=float(i), vel_enu=(1.0, 0.0, 0.0)))

        samples = list(estimator.buffer)
        assert [s.gnss_valid for s in samples] == [True, False, False]
        assert samples[0].gnss_position == (1.0, 2.0, 3.0)
        assert samples[1].gnss_position == (0.0, 0.0, 0.0)
        assert get_metrics().get_counter('gnss_fresh') == 1

    def test_out_of_order_velocity(self, estimator: PositionEstimator):
        assert estimator.on_velocity(VelocityReport(timestamp=5.0, vel_enu=(1.0, 0.0, 0.0)))

        output = estimator.on_velocity(VelocityReport(timestamp=4.0, vel_enu=(1.0, 0.0, 0.0)))

        assert output is None
        assert len(estimator.buffer) == 1
        assert get_metrics().get_drop_count('out_of_order') == 1

    def test_reset(self, drive: StraightDrive, estimator: PositionEstimator):
        drive.run(60)
        assert estimator.started

        estimator.reset()

        assert not estimator.started
        assert len(estimator.buffer) == 0
        assert estimator.last_alignment is None
        assert get_metrics().get_counter('estimator_resets') == 1

    def test_statistics(self, drive: StraightDrive, estimator: PositionEstimator):
        drive.run(60)

        stats = estimator.get_statistics()

        assert stats['ticks'] == 60
        assert stats['successes'] == stats['attempts']
        assert stats['buffer_length'] == 60
        assert stats['started']

    def test_default_estimator(self):
        estimator = create_default_estimator()

        assert estimator.config.update_modulus == 2
        assert estimator.config.estimation_span_m == 500.0
        assert estimator.buffer.capacity == 50000

    def test_config_from_dict(self):
        config = PositionEstimatorConfig.from_dict({'estimation_span_m': 250.0, 'bogus': 1})

        assert config.estimation_span_m == 250.0

    def test_invalid_config(self):
        with pytest.raises(AssertionError):
            PositionEstimatorConfig(gnss_decimation=0)
