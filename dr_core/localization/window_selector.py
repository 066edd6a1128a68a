"""
Estimation window selection.

The window is the trailing part of the sample history that covers the
configured estimation span of traveled distance. It is derived on every
tick and never persisted.
"""

from dataclasses import dataclass, field
from typing import List

import numpy as np

from dr_core.proto.sample import Sample
from .sample_buffer import SampleBuffer


@dataclass
class Window:
    """
    Trailing window of samples used for one estimation attempt.

    Attributes:
        samples: Window samples, oldest first (ESTNUM == len(samples))
        start_index: Buffer index of the first window sample
        buffer_length: Buffer length when the window was selected
        saturated: True if the window covers the whole buffer at capacity,
            meaning history older than the window may have been evicted
    """

    samples: List[Sample] = field(default_factory=list)
    start_index: int = 0
    buffer_length: int = 0
    saturated: bool = False

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def is_empty(self) -> bool:
        return not self.samples

    @property
    def timestamps(self) -> np.ndarray:
        return np.array([s.timestamp for s in self.samples], dtype=np.float64)

    @property
    def velocities(self) -> np.ndarray:
        """(N, 3) ENU velocities."""
        return np.array([s.velocity_enu for s in self.samples], dtype=np.float64).reshape(-1, 3)

    @property
    def gnss_positions(self) -> np.ndarray:
        """(N, 3) ENU GNSS positions (zero rows where not valid)."""
        return np.array([s.gnss_position for s in self.samples], dtype=np.float64).reshape(-1, 3)

    @property
    def gnss_valid(self) -> np.ndarray:
        return np.array([s.gnss_valid for s in self.samples], dtype=bool)

    @property
    def speeds(self) -> np.ndarray:
        return np.array([s.corrected_speed for s in self.samples], dtype=np.float64)

    @property
    def distance_span_m(self) -> float:
        """Traveled distance from the first to the last window sample."""
        if not self.samples:
            return 0.0
        return self.samples[-1].traveled_distance - self.samples[0].traveled_distance


class WindowSelector:
    """
    Select the estimation window from a SampleBuffer.

    Usage:
        selector = WindowSelector(estimation_span_m=500.0)
        window = selector.select(buffer)
        if window.saturated:
            ...  # dead reckoning only this tick
    """

    def __init__(self, estimation_span_m: float):
        if estimation_span_m <= 0:
            raise ValueError(f"Estimation span must be positive: {estimation_span_m}")
        self.estimation_span_m = estimation_span_m

    def select(self, buffer: SampleBuffer) -> Window:
        """
        Compute ESTNUM via distance lookback and extract the window.

        Args:
            buffer: Sample history

        Returns:
            Window (empty if the buffer is empty)
        """
        estnum = buffer.distance_lookback(self.estimation_span_m)
        length = len(buffer)

        return Window(
            samples=buffer.window(estnum),
            start_index=length - estnum,
            buffer_length=length,
            saturated=estnum > 0 and estnum == buffer.capacity,
        )
