"""
Latest-value input slots.

GNSS fixes, corrected speed, traveled distance and heading availability
arrive asynchronously from upstream estimators. Each stream overwrites a
single slot; the velocity tick reads all slots at once through
SensorInputs.snapshot().
"""

import logging
import math
import threading
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from dr_core.proto.sensor_inputs import GnssFix

logger = logging.getLogger(__name__)

T = TypeVar('T')


class LatestValue(Generic[T]):
    """Thread-safe single-value slot. Writers overwrite, readers never block for long."""

    def __init__(self, initial: Optional[T] = None):
        self._lock = threading.Lock()
        self._value = initial
        self._updates = 0

    def set(self, value: T):
        with self._lock:
            self._value = value
            self._updates += 1

    def get(self) -> Optional[T]:
        with self._lock:
            return self._value

    @property
    def update_count(self) -> int:
        with self._lock:
            return self._updates


@dataclass(frozen=True)
class InputSnapshot:
    """
    Latest value of every non-tick input stream.

    Attributes:
        gnss: Latest GNSS fix, or None if none has arrived
        corrected_speed: Latest corrected speed (m/s)
        traveled_distance: Latest odometer value (m)
        raw_heading_available: Latest heading-availability flag
    """

    gnss: Optional[GnssFix]
    corrected_speed: float
    traveled_distance: float
    raw_heading_available: bool


class SensorInputs:
    """
    Collection of latest-value slots feeding the tick handler.

    Usage:
        inputs = SensorInputs()
        inputs.update_gnss(GnssFix(seq=1, pos_enu=(10.0, 2.0, 0.0)))
        inputs.update_speed(12.5)
        snapshot = inputs.snapshot()
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.gnss: LatestValue[GnssFix] = LatestValue()
        self.corrected_speed: LatestValue[float] = LatestValue(0.0)
        self.traveled_distance: LatestValue[float] = LatestValue(0.0)
        self.raw_heading_available: LatestValue[bool] = LatestValue(False)

    def update_gnss(self, fix: GnssFix):
        with self._lock:
            self.gnss.set(fix)

    def update_speed(self, speed_m_s: float):
        if not math.isfinite(speed_m_s) or speed_m_s < 0:
            raise ValueError(f"Corrected speed must be finite and non-negative: {speed_m_s}")
        with self._lock:
            self.corrected_speed.set(float(speed_m_s))

    def update_distance(self, distance_m: float):
        """
        Update the odometer slot.

        Notes:
            The odometer is non-decreasing by contract. A regression is
            clamped to the previous value and logged.
        """
        if not math.isfinite(distance_m):
            raise ValueError(f"Traveled distance must be finite: {distance_m}")

        with self._lock:
            previous = self.traveled_distance.get()
            if distance_m < previous:
                logger.warning(
                    f"Traveled distance regressed ({distance_m:.3f} < {previous:.3f} m), clamping"
                )
                distance_m = previous
            self.traveled_distance.set(float(distance_m))

    def update_heading(self, available: bool):
        with self._lock:
            self.raw_heading_available.set(bool(available))

    def snapshot(self) -> InputSnapshot:
        """Read every slot under one lock so the tick sees a consistent set."""
        with self._lock:
            return InputSnapshot(
                gnss=self.gnss.get(),
                corrected_speed=self.corrected_speed.get(),
                traveled_distance=self.traveled_distance.get(),
                raw_heading_available=self.raw_heading_available.get(),
            )
