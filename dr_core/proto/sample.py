"""
Fused per-tick sample.

One Sample is created on every processed velocity tick from the latest
value of each input stream, and appended to the SampleBuffer. Samples are
immutable once created.
"""

from dataclasses import dataclass
from typing import Tuple
import math


ZERO_ENU: Tuple[float, float, float] = (0.0, 0.0, 0.0)


@dataclass(frozen=True)
class Sample:
    """
    Snapshot of every input stream at one velocity tick.

    Attributes:
        timestamp: Tick time (seconds)
        gnss_valid: True iff a new, distinct GNSS fix arrived since the previous tick
        gnss_position: GNSS position in ENU frame (E, N, U) meters, zeroed when not valid
        velocity_enu: Velocity in ENU frame (vE, vN, vU) m/s
        corrected_speed: Scalar speed after velocity-scale correction (m/s)
        traveled_distance: Cumulative odometer value (m)
        raw_heading_available: True if an upstream heading estimate was usable
    """

    timestamp: float
    gnss_valid: bool
    gnss_position: Tuple[float, float, float]
    velocity_enu: Tuple[float, float, float]
    corrected_speed: float
    traveled_distance: float
    raw_heading_available: bool

    def __post_init__(self):
        """Validate sample fields."""
        if len(self.gnss_position) != 3 or len(self.velocity_enu) != 3:
            raise ValueError("ENU vectors must have 3 components")

        if not math.isfinite(self.timestamp):
            raise ValueError(f"Timestamp must be finite: {self.timestamp}")

        if not all(math.isfinite(v) for v in (*self.gnss_position, *self.velocity_enu)):
            raise ValueError("ENU vectors must be finite")

        if not math.isfinite(self.corrected_speed) or self.corrected_speed < 0:
            raise ValueError(f"Corrected speed must be finite and non-negative: {self.corrected_speed}")

        if not math.isfinite(self.traveled_distance) or self.traveled_distance < 0:
            raise ValueError(f"Traveled distance must be finite and non-negative: {self.traveled_distance}")

        if not self.gnss_valid and tuple(self.gnss_position) != ZERO_ENU:
            raise ValueError("GNSS position must be zeroed when gnss_valid is False")
