"""
Pytest configuration and shared fixtures for the position estimator tests.

Provides a small, fast estimator configuration and a synthetic straight-line
drive generator used by the pipeline scenarios.
"""

import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dr_core.metrics import reset_metrics
from dr_core.localization import PositionEstimator, PositionEstimatorConfig
from dr_core.proto import GnssFix, PositionOutput, Sample, VelocityReport, ZERO_ENU


# =============================================================================
# Global fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def fresh_metrics():
    """Give every test its own global metrics collector."""
    reset_metrics()
    yield


@pytest.fixture
def fast_config() -> PositionEstimatorConfig:
    """
    Estimator configuration scaled down for unit tests.

    Every velocity event is a tick (10 Hz in, 10 Hz out), the window spans
    50 m and alignment runs on every fresh GNSS fix.
    """
    return PositionEstimatorConfig(
        buffer_capacity=1000,
        estimation_span_m=50.0,
        speed_threshold_m_s=1.0,
        outlier_threshold_m=3.0,
        giveup_fraction=0.01,
        min_anchor_fraction=0.02,
        gnss_decimation=1,
        imu_rate_hz=10.0,
        estimation_rate_hz=10.0,
    )


@pytest.fixture
def estimator(fast_config: PositionEstimatorConfig) -> PositionEstimator:
    return PositionEstimator(fast_config)


# =============================================================================
# Synthetic drive
# =============================================================================


ORIGIN = np.array([100.0, 200.0, 5.0])
VELOCITY = (10.0, 0.0, 0.0)
DT = 0.1


def truth_at(tick: int, velocity: Tuple[float, float, float] = VELOCITY) -> np.ndarray:
    """True ENU position at a tick of the constant-velocity drive."""
    return ORIGIN + np.asarray(velocity) * (tick * DT)


class StraightDrive:
    """
    Feed a constant-velocity straight-line drive into an estimator.

    Ticks are numbered from 0; tick k happens at t = k * DT with traveled
    distance |v| * k * DT.

    Usage:
        drive = StraightDrive(estimator)
        outputs = drive.run(60)                              # GNSS every tick
        outputs = drive.run(20, gnss=lambda k: None)         # outage
        outputs = drive.run(20, gnss=lambda k: truth_at(k) + bias)
    """

    def __init__(
        self,
        estimator: PositionEstimator,
        velocity: Tuple[float, float, float] = VELOCITY,
        heading: bool = True,
    ):
        self.estimator = estimator
        self.velocity = velocity
        self.speed = float(np.linalg.norm(velocity))
        self.reported_speed: Optional[float] = None
        self.heading = heading
        self.tick = 0
        self.seq = 0
        self.outputs: List[PositionOutput] = []

    def default_gnss(self, tick: int) -> Optional[np.ndarray]:
        return truth_at(tick, self.velocity)

    def step(self, gnss_position: Optional[np.ndarray] = None) -> Optional[PositionOutput]:
        """Run one tick, optionally delivering a new GNSS fix first."""
        k = self.tick
        t = k * DT

        self.estimator.on_speed(self.speed if self.reported_speed is None else self.reported_speed)
        self.estimator.on_distance(self.speed * t)
        self.estimator.on_heading(self.heading)
        if gnss_position is not None:
            self.seq += 1
            self.estimator.on_gnss(GnssFix(seq=self.seq, pos_enu=tuple(gnss_position)))

        output = self.estimator.on_velocity(VelocityReport(timestamp=t, vel_enu=self.velocity))
        if output is not None:
            self.outputs.append(output)
        self.tick += 1
        return output

    def run(
        self,
        n_ticks: int,
        gnss: Optional[Callable[[int], Optional[np.ndarray]]] = None,
    ) -> List[PositionOutput]:
        """Run n ticks; gnss(k) returns the fix for tick k or None."""
        gnss = gnss or self.default_gnss
        produced = []
        for _ in range(n_ticks):
            output = self.step(gnss(self.tick))
            if output is not None:
                produced.append(output)
        return produced


@pytest.fixture
def drive(estimator: PositionEstimator) -> StraightDrive:
    return StraightDrive(estimator)


# =============================================================================
# Sample helpers
# =============================================================================


def make_sample(
    timestamp: float,
    distance: float = 0.0,
    gnss: Optional[Tuple[float, float, float]] = None,
    velocity: Tuple[float, float, float] = VELOCITY,
    speed: float = 10.0,
    heading: bool = True,
) -> Sample:
    """Build a Sample; gnss=None means no fresh fix."""
    return Sample(
        timestamp=timestamp,
        gnss_valid=gnss is not None,
        gnss_position=tuple(gnss) if gnss is not None else ZERO_ENU,
        velocity_enu=velocity,
        corrected_speed=speed,
        traveled_distance=distance,
        raw_heading_available=heading,
    )


def straight_line_arrays(n: int, dt: float = DT) -> Dict[str, np.ndarray]:
    """Trajectory and exact GNSS fixes for n samples of the straight drive."""
    t = np.arange(n) * dt
    velocity = np.asarray(VELOCITY)
    trajectory = np.outer(t - t[0], velocity)
    gnss = ORIGIN + np.outer(t, velocity)
    return {'t': t, 'trajectory': trajectory, 'gnss': gnss}
