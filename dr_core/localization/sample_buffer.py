"""
Bounded, time-ordered sample history.

Holds one fused Sample per processed velocity tick. Pure storage: the
window logic only selects from the buffer, samples leave it only through
capacity eviction.
"""

from collections import deque
from itertools import islice
from typing import Deque, List, Optional

from dr_core.proto.sample import Sample


class SampleBuffer:
    """
    Ring buffer of Samples in strict timestamp order.

    Usage:
        buffer = SampleBuffer(capacity=50000)
        buffer.append(sample)
        n = buffer.distance_lookback(500.0)
        window_samples = buffer.window(n)
    """

    def __init__(self, capacity: int):
        """
        Initialize buffer.

        Args:
            capacity: Maximum number of samples kept (oldest evicted first)
        """
        if capacity < 1:
            raise ValueError(f"Capacity must be positive: {capacity}")
        self._capacity = capacity
        self._samples: Deque[Sample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._samples)

    def __getitem__(self, index: int) -> Sample:
        return self._samples[index]

    def __iter__(self):
        return iter(self._samples)

    @property
    def is_full(self) -> bool:
        return len(self._samples) == self._capacity

    @property
    def latest(self) -> Optional[Sample]:
        """Most recent sample, or None if empty."""
        return self._samples[-1] if self._samples else None

    def append(self, sample: Sample):
        """
        Append a sample at the tail, evicting the oldest when full.

        Raises:
            ValueError: If sample is not strictly newer than the tail
        """
        if self._samples and sample.timestamp <= self._samples[-1].timestamp:
            raise ValueError(
                f"Out-of-order sample: {sample.timestamp} <= {self._samples[-1].timestamp}"
            )
        self._samples.append(sample)

    def distance_lookback(self, span_m: float) -> int:
        """
        Count of trailing samples needed to cover span_m of travel.

        Returns the smallest n such that the traveled-distance increments
        of the last n samples sum to at least span_m, i.e.
        d[-1] - d[-n-1] >= span_m. Returns the full buffer length if the
        buffer does not span that far, and 0 for an empty buffer.
        """
        if not self._samples:
            return 0

        d_last = self._samples[-1].traveled_distance
        # reversed() walks a deque from the tail without random access
        for n, sample in enumerate(islice(reversed(self._samples), 1, None), start=1):
            if d_last - sample.traveled_distance >= span_m:
                return n
        return len(self._samples)

    def first_heading_index(self) -> Optional[int]:
        """Buffer index of the oldest heading-available sample, or None."""
        for index, sample in enumerate(self._samples):
            if sample.raw_heading_available:
                return index
        return None

    def window(self, n: int) -> List[Sample]:
        """Last n samples, oldest first."""
        if n <= 0:
            return []
        tail = list(islice(reversed(self._samples), n))
        tail.reverse()
        return tail

    def clear(self):
        self._samples.clear()
