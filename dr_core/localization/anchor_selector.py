"""
Alignment anchor selection.

An anchor is a window sample whose GNSS fix is trusted enough to constrain
alignment: the fix is fresh and the vehicle is moving. Fixes taken while
(nearly) stationary are excluded because near-zero dynamics make them
prone to multipath and weaken the velocity-integration assumptions.
"""

from dataclasses import dataclass, field
from typing import List

import numpy as np

from .window_selector import Window


@dataclass
class AnchorSelection:
    """
    Candidate anchors for one window.

    Attributes:
        anchors: Ascending window-local indices that are GNSS-valid and moving
        speed_qualified_count: Number of window samples above the speed threshold
    """

    anchors: List[int] = field(default_factory=list)
    speed_qualified_count: int = 0

    def __len__(self) -> int:
        return len(self.anchors)

    def has_minimum_fraction(self, fraction: float) -> bool:
        """True if |anchors| > speed_qualified_count * fraction."""
        return len(self.anchors) > self.speed_qualified_count * fraction


class AnchorSelector:
    """
    Intersect the GNSS-valid and above-speed predicates over a window.

    Usage:
        selector = AnchorSelector(speed_threshold_m_s=10 / 3.6)
        selection = selector.select(window)
    """

    def __init__(self, speed_threshold_m_s: float):
        self.speed_threshold_m_s = speed_threshold_m_s

    def select(self, window: Window) -> AnchorSelection:
        if window.is_empty:
            return AnchorSelection()

        moving = window.speeds > self.speed_threshold_m_s
        anchors = np.flatnonzero(window.gnss_valid & moving)

        return AnchorSelection(
            anchors=[int(i) for i in anchors],
            speed_qualified_count=int(np.count_nonzero(moving)),
        )
