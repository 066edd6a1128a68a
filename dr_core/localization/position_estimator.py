"""
Dead-Reckoning / GNSS Alignment Position Estimator.

Runs the full per-tick pipeline on every processed velocity event:

    SampleBuffer.append -> WindowSelector.select -> precondition gates
    -> AnchorSelector.select -> TrajectoryIntegrator.integrate
    -> RobustAligner.align -> EstimatorStateMachine.update

Usage:
    estimator = PositionEstimator(config)

    # Asynchronous producers only update latest-value slots
    estimator.on_gnss(GnssFix(seq=42, pos_enu=(e, n, u)))
    estimator.on_speed(12.3)
    estimator.on_distance(1520.0)
    estimator.on_heading(True)

    # Velocity events drive the pipeline
    output = estimator.on_velocity(VelocityReport(t, (ve, vn, vu)))
    if output is not None and output.estimate_valid:
        print(f"Position: {output.pos_enu} ({output.mode.name})")

Any failing precondition only suppresses the aligned estimate for the
tick; the output then falls back to dead reckoning (or stays invalid
before the first accepted estimate). Nothing here raises on degraded input.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from dr_core.io.input_slots import InputSnapshot, SensorInputs
from dr_core.metrics import get_metrics
from dr_core.proto.position_output import PositionOutput
from dr_core.proto.sample import Sample, ZERO_ENU
from dr_core.proto.sensor_inputs import GnssFix, VelocityReport

from .anchor_selector import AnchorSelector
from .estimator_state import EstimatorStateMachine
from .robust_aligner import AlignmentResult, RobustAligner, RobustAlignerConfig
from .sample_buffer import SampleBuffer
from .trajectory_integrator import TrajectoryIntegrator
from .window_selector import Window, WindowSelector

logger = logging.getLogger(__name__)


@dataclass
class PositionEstimatorConfig:
    """
    Configuration for the position estimator.

    Attributes:
        buffer_capacity: Maximum samples kept in history
        estimation_span_m: Traveled distance covered by the estimation window (m)
        speed_threshold_m_s: Minimum corrected speed for anchors and estimation (m/s)
        outlier_threshold_m: Max anchor residual after alignment (m)
        giveup_fraction: Abandon alignment below this share of moving samples
        min_anchor_fraction: Require more anchors than this share of moving samples
        gnss_decimation: Attempt alignment on every Nth fresh GNSS fix
        imu_rate_hz: Velocity event rate (Hz)
        estimation_rate_hz: Processed tick rate (Hz)
    """

    buffer_capacity: int = 50000
    estimation_span_m: float = 500.0
    speed_threshold_m_s: float = 10.0 / 3.6
    outlier_threshold_m: float = 3.0
    giveup_fraction: float = 1.0 / 100
    min_anchor_fraction: float = 1.0 / 20 / 2.5
    gnss_decimation: int = 10
    imu_rate_hz: float = 100.0
    estimation_rate_hz: float = 50.0

    def __post_init__(self):
        """Validate configuration."""
        assert self.buffer_capacity > 1, "buffer capacity must exceed 1"
        assert self.estimation_span_m > 0, "estimation span must be positive"
        assert self.speed_threshold_m_s >= 0, "speed threshold cannot be negative"
        assert self.outlier_threshold_m > 0, "outlier threshold must be positive"
        assert 0 <= self.giveup_fraction <= 1, "giveup fraction must be in [0, 1]"
        assert 0 <= self.min_anchor_fraction <= 1, "min anchor fraction must be in [0, 1]"
        assert self.gnss_decimation >= 1, "gnss decimation must be at least 1"
        assert self.estimation_rate_hz > 0, "estimation rate must be positive"
        assert self.imu_rate_hz >= self.estimation_rate_hz, \
            "imu rate must be at least the estimation rate"

    @property
    def update_modulus(self) -> int:
        """Process every Nth velocity event."""
        return max(1, int(round(self.imu_rate_hz / self.estimation_rate_hz)))

    @classmethod
    def from_dict(cls, values: dict) -> 'PositionEstimatorConfig':
        """Build from a config dict, ignoring unknown keys."""
        known = {k: v for k, v in values.items() if k in cls.__dataclass_fields__}
        unknown = set(values) - set(known)
        if unknown:
            logger.warning(f"Ignoring unknown estimator options: {sorted(unknown)}")
        return cls(**known)


class PositionEstimator:
    """
    Robust dead-reckoning position estimator.

    Pipeline stages per processed tick:
    1. Build a Sample from the velocity event and the latest input slots
    2. Select the distance window from the sample history
    3. Check the estimation preconditions
    4. Select anchors, integrate the trajectory, run robust alignment
    5. Publish the aligned estimate or extrapolate

    Features:
    - Rejects GNSS multipath outliers one at a time
    - Holds through GNSS outages by constant-velocity extrapolation
    - Every skipped estimation attempt is counted by reason code
    """

    def __init__(self, config: Optional[PositionEstimatorConfig] = None):
        """
        Initialize estimator.

        Args:
            config: Estimator configuration (uses defaults if None)
        """
        self.config = config or PositionEstimatorConfig()
        self.metrics = get_metrics()

        self.inputs = SensorInputs()
        self.buffer = SampleBuffer(self.config.buffer_capacity)
        self.window_selector = WindowSelector(self.config.estimation_span_m)
        self.integrator = TrajectoryIntegrator()
        self.anchor_selector = AnchorSelector(self.config.speed_threshold_m_s)
        self.aligner = RobustAligner(RobustAlignerConfig(
            outlier_threshold_m=self.config.outlier_threshold_m,
            giveup_fraction=self.config.giveup_fraction,
        ))
        self.state_machine = EstimatorStateMachine()

        self._velocity_count = 0
        self._gnss_fresh_count = 0
        self._last_gnss_seq: Optional[int] = None
        self._last_alignment: Optional[AlignmentResult] = None

    # ------------------------------------------------------------------
    # Asynchronous input slots
    # ------------------------------------------------------------------

    def on_gnss(self, fix: GnssFix):
        self.inputs.update_gnss(fix)

    def on_speed(self, speed_m_s: float):
        self.inputs.update_speed(speed_m_s)

    def on_distance(self, distance_m: float):
        self.inputs.update_distance(distance_m)

    def on_heading(self, available: bool):
        self.inputs.update_heading(available)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def on_velocity(self, report: VelocityReport) -> Optional[PositionOutput]:
        """
        Handle a velocity event; every update_modulus-th event runs a tick.

        Args:
            report: ENU velocity report

        Returns:
            PositionOutput for processed ticks, None for decimated or
            out-of-order events
        """
        self._velocity_count += 1
        self.metrics.increment('velocity_events')

        if self._velocity_count % self.config.update_modulus != 0:
            return None

        latest = self.buffer.latest
        if latest is not None and report.timestamp <= latest.timestamp:
            logger.warning(
                f"Out-of-order velocity event ({report.timestamp:.3f} <= "
                f"{latest.timestamp:.3f}), dropping tick"
            )
            self.metrics.increment_drop('out_of_order')
            return None

        return self._process_tick(report, self.inputs.snapshot())

    def _process_tick(self, report: VelocityReport, inputs: InputSnapshot) -> PositionOutput:
        self.metrics.increment('estimation_ticks')

        gnss_fresh = inputs.gnss is not None and inputs.gnss.seq != self._last_gnss_seq
        if gnss_fresh:
            self._gnss_fresh_count += 1
            self.metrics.increment('gnss_fresh')

        sample = Sample(
            timestamp=report.timestamp,
            gnss_valid=gnss_fresh,
            gnss_position=inputs.gnss.pos_enu if gnss_fresh else ZERO_ENU,
            velocity_enu=report.vel_enu,
            corrected_speed=inputs.corrected_speed,
            traveled_distance=inputs.traveled_distance,
            raw_heading_available=inputs.raw_heading_available,
        )
        self.buffer.append(sample)

        window = self.window_selector.select(self.buffer)
        self.metrics.record_histogram('window_size', len(window))

        result = self._estimate(window, sample)
        self._last_alignment = result

        if result is not None and result.success:
            output = self.state_machine.update(
                sample.timestamp,
                sample.velocity_enu,
                raw_position=result.position_enu,
                num_anchors=result.num_anchors,
                residual_m=result.max_residual_m,
                window_size=len(window),
            )
        else:
            output = self.state_machine.update(
                sample.timestamp,
                sample.velocity_enu,
                window_size=len(window),
            )

        if inputs.gnss is not None:
            self._last_gnss_seq = inputs.gnss.seq

        return output

    def _estimate(self, window: Window, sample: Sample) -> Optional[AlignmentResult]:
        """
        Check preconditions and run robust alignment.

        Returns:
            AlignmentResult if alignment was attempted, None if a gate failed
        """
        reason = self._check_preconditions(window, sample)
        if reason is not None:
            logger.debug(f"Estimation skipped at t={sample.timestamp:.3f}: {reason}")
            self.metrics.increment_drop(reason)
            return None

        selection = self.anchor_selector.select(window)
        self.metrics.record_histogram('anchor_count', len(selection))

        if not selection.has_minimum_fraction(self.config.min_anchor_fraction):
            logger.debug(
                f"Insufficient anchors: {len(selection)} of "
                f"{selection.speed_qualified_count} moving samples"
            )
            self.metrics.increment_drop('insufficient_anchors')
            return None

        trajectory = self.integrator.integrate(window)

        self.metrics.increment('alignment_attempts')
        result = self.aligner.align(
            trajectory,
            window.gnss_positions,
            selection.anchors,
            selection.speed_qualified_count,
        )

        if result.success:
            self.metrics.increment('alignment_success')
        else:
            self.metrics.increment('alignment_giveup')
            self.metrics.increment_drop('alignment_giveup')

        return result

    def _check_preconditions(self, window: Window, sample: Sample) -> Optional[str]:
        """
        Evaluate the estimation gates in order.

        Returns:
            Reason code of the first failing gate, or None if all pass
        """
        config = self.config

        if self._velocity_count <= 1:
            return 'first_tick'

        if sample.traveled_distance <= config.estimation_span_m:
            return 'short_travel'

        if not sample.gnss_valid:
            return 'stale_gnss'

        if sample.corrected_speed <= config.speed_threshold_m_s:
            return 'low_speed'

        if window.saturated:
            logger.debug(f"Window saturated at {len(window)} samples")
            return 'insufficient_history'

        # Heading support must predate the window cutoff
        heading_index = self.buffer.first_heading_index()
        if heading_index is None or heading_index >= window.start_index:
            return 'no_heading_support'

        if self._gnss_fresh_count % config.gnss_decimation != 0:
            return 'decimated'

        return None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def started(self) -> bool:
        return self.state_machine.started

    @property
    def last_alignment(self) -> Optional[AlignmentResult]:
        """Alignment result of the most recent tick (None if not attempted)."""
        return self._last_alignment

    def reset(self):
        """Clear history and return to UNINITIALIZED."""
        self.buffer.clear()
        self.state_machine.reset()
        self._velocity_count = 0
        self._gnss_fresh_count = 0
        self._last_gnss_seq = None
        self._last_alignment = None
        self.metrics.increment('estimator_resets')

    def get_statistics(self) -> dict:
        """Get estimator statistics."""
        return {
            'ticks': self.metrics.get_counter('estimation_ticks'),
            'attempts': self.metrics.get_counter('alignment_attempts'),
            'successes': self.metrics.get_counter('alignment_success'),
            'giveups': self.metrics.get_counter('alignment_giveup'),
            'anchors_rejected': self.metrics.get_counter('anchors_rejected'),
            'buffer_length': len(self.buffer),
            'started': self.started,
        }


def create_default_estimator() -> PositionEstimator:
    """
    Create position estimator with default configuration.

    Returns:
        Configured PositionEstimator (100 Hz velocity in, 50 Hz estimates out)
    """
    config = PositionEstimatorConfig(
        buffer_capacity=50000,
        estimation_span_m=500.0,
        speed_threshold_m_s=10.0 / 3.6,
        outlier_threshold_m=3.0,
        giveup_fraction=1.0 / 100,
        min_anchor_fraction=1.0 / 20 / 2.5,
        gnss_decimation=10,
        imu_rate_hz=100.0,
        estimation_rate_hz=50.0,
    )

    return PositionEstimator(config)
