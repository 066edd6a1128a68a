"""
Input message schemas consumed by the position estimator.

The velocity report is the tick driver; the other streams only update a
latest-value slot (see dr_core.io.input_slots).
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import math


def _check_vector(name: str, vec: Tuple[float, float, float]):
    """Raise ValueError unless vec is a finite 3-vector."""
    if len(vec) != 3:
        raise ValueError(f"{name} must have 3 components: {vec}")
    if not all(math.isfinite(v) for v in vec):
        raise ValueError(f"{name} must be finite: {vec}")


@dataclass
class VelocityReport:
    """
    ENU velocity from the dead-reckoning front end.

    Attributes:
        timestamp: Measurement time (seconds)
        vel_enu: Velocity (vE, vN, vU) in m/s
    """

    timestamp: float
    vel_enu: Tuple[float, float, float]

    def __post_init__(self):
        if not math.isfinite(self.timestamp):
            raise ValueError(f"Timestamp must be finite: {self.timestamp}")
        _check_vector("vel_enu", self.vel_enu)
        self.vel_enu = tuple(float(v) for v in self.vel_enu)


@dataclass
class GnssFix:
    """
    Absolute GNSS position already converted to the local ENU frame.

    Attributes:
        seq: Receiver sequence number, incremented on every new fix
        pos_enu: Position (E, N, U) in meters
        timestamp: Fix time (seconds, optional)

    Notes:
        A tick treats the fix as fresh iff seq differs from the one seen
        on the previous tick.
    """

    seq: int
    pos_enu: Tuple[float, float, float]
    timestamp: Optional[float] = None

    def __post_init__(self):
        _check_vector("pos_enu", self.pos_enu)
        self.pos_enu = tuple(float(v) for v in self.pos_enu)
