"""
Position Output Schema.

Defines the per-tick output of the dead-reckoning / GNSS alignment
position estimator.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
from enum import IntEnum


class EstimatorMode(IntEnum):
    """Estimator state for one tick."""

    UNINITIALIZED = 0   # No estimate ever accepted
    DEAD_RECKONING = 1  # Extrapolating from the previous tick
    ALIGNED = 2         # Fresh robust estimate this tick


@dataclass
class PositionOutput:
    """
    Position estimate published on every processed tick.

    Attributes:
        timestamp: Tick time (seconds)
        pos_enu: Absolute position (E, N, U) in meters, zeroed when invalid
        estimate_valid: True once any aligned estimate has been accepted
        raw_estimate_valid: True only when this tick produced an aligned estimate
        mode: EstimatorMode for this tick
        num_anchors: Anchors surviving outlier rejection (aligned ticks only)
        residual_m: Largest surviving anchor residual (aligned ticks only)
        window_size: Number of samples in the estimation window
    """

    timestamp: float
    pos_enu: Tuple[float, float, float]
    estimate_valid: bool
    raw_estimate_valid: bool
    mode: EstimatorMode

    num_anchors: int = 0
    residual_m: Optional[float] = None
    window_size: int = 0

    def __post_init__(self):
        """Validate flag consistency."""
        if self.raw_estimate_valid and not self.estimate_valid:
            raise ValueError("raw_estimate_valid implies estimate_valid")

        if self.num_anchors < 0:
            raise ValueError(f"Num anchors cannot be negative: {self.num_anchors}")

    @property
    def is_aligned(self) -> bool:
        """Check if this tick carries a fresh aligned estimate."""
        return self.mode == EstimatorMode.ALIGNED

    @property
    def is_dead_reckoned(self) -> bool:
        """Check if this tick was extrapolated from the previous one."""
        return self.mode == EstimatorMode.DEAD_RECKONING

    @property
    def position_2d(self) -> Tuple[float, float]:
        """Get 2D position (E, N) in meters."""
        return (self.pos_enu[0], self.pos_enu[1])

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'timestamp': self.timestamp,
            'pos_enu': list(self.pos_enu),
            'estimate_valid': self.estimate_valid,
            'raw_estimate_valid': self.raw_estimate_valid,
            'mode': self.mode.name,
            'num_anchors': self.num_anchors,
            'residual_m': self.residual_m,
            'window_size': self.window_size,
        }


def create_invalid_output(timestamp: float, window_size: int = 0) -> PositionOutput:
    """
    Create the output published before any estimate has been accepted.

    Args:
        timestamp: Tick time
        window_size: Current window size

    Returns:
        PositionOutput with zeroed position and both flags False
    """
    return PositionOutput(
        timestamp=timestamp,
        pos_enu=(0.0, 0.0, 0.0),
        estimate_valid=False,
        raw_estimate_valid=False,
        mode=EstimatorMode.UNINITIALIZED,
        window_size=window_size,
    )
