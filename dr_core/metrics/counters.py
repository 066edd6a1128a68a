"""
Estimator funnel counters and diagnostic distributions.

Every velocity event is accounted for on its way through the estimator:

    velocity_events
      -> estimation_ticks        (after velocity-event decimation)
      -> skips by gate            (first failing precondition per tick)
      -> alignment_attempts
           -> alignment_success | alignment_giveup

Outputs are counted by mode (aligned / dead reckoned / invalid), and the
alignment diagnostics keep a bounded window of recent values.
"""

import logging
import threading
from collections import Counter, deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Recent values kept per distribution
DISTRIBUTION_WINDOW = 5000


@dataclass(frozen=True)
class CounterSnapshot:
    """Point-in-time copy of all metrics."""

    counters: Dict[str, int]
    skips: Dict[str, int]
    distributions: Dict[str, Tuple[float, ...]]

    @property
    def total_skipped(self) -> int:
        return sum(self.skips.values())


class MetricsCollector:
    """
    Thread-safe estimator metrics.

    Usage:
        metrics = MetricsCollector()
        metrics.increment('estimation_ticks')
        metrics.increment_drop('stale_gnss')
        metrics.record_histogram('alignment_iterations', 2)
        print(metrics.format_summary())
    """

    # Skip reasons in the order the estimator evaluates them
    DROP_REASONS = {
        'out_of_order': 'Velocity timestamp did not advance',
        'first_tick': 'No previous velocity event to integrate from',
        'short_travel': 'Traveled distance below estimation span',
        'stale_gnss': 'No fresh GNSS fix this tick',
        'low_speed': 'Corrected speed below threshold',
        'insufficient_history': 'Window saturates buffer capacity',
        'no_heading_support': 'No heading-available sample before window start',
        'decimated': 'Skipped by fresh-GNSS decimation',
        'insufficient_anchors': 'Too few anchors relative to moving samples',
        'alignment_giveup': 'Outlier rejection left too few anchors',
    }

    STANDARD_COUNTERS = (
        'velocity_events',
        'estimation_ticks',
        'gnss_fresh',
        'alignment_attempts',
        'alignment_success',
        'alignment_giveup',
        'anchors_rejected',
        'estimates_aligned',
        'estimates_dead_reckoned',
        'estimates_invalid',
        'estimator_resets',
    )

    def __init__(self, window: int = DISTRIBUTION_WINDOW):
        self._lock = threading.Lock()
        self._window = window
        self._counters: Counter = Counter(dict.fromkeys(self.STANDARD_COUNTERS, 0))
        self._skips: Counter = Counter(dict.fromkeys(self.DROP_REASONS, 0))
        self._distributions: Dict[str, Deque[float]] = {}

    def increment(self, counter_name: str, value: int = 1):
        with self._lock:
            self._counters[counter_name] += value

    def increment_drop(self, reason: str, value: int = 1):
        """Count a skipped estimation attempt under its reason code."""
        if reason not in self.DROP_REASONS:
            logger.warning(f"Unknown drop reason '{reason}'")
        with self._lock:
            self._skips[reason] += value

    def get_counter(self, counter_name: str) -> int:
        with self._lock:
            return self._counters[counter_name]

    def get_drop_count(self, reason: str) -> int:
        with self._lock:
            return self._skips[reason]

    def record_histogram(self, name: str, value: float):
        """Record a diagnostic value; only the most recent window is kept."""
        with self._lock:
            values = self._distributions.get(name)
            if values is None:
                values = self._distributions[name] = deque(maxlen=self._window)
            values.append(float(value))

    def get_histogram_stats(self, name: str) -> Optional[Dict[str, float]]:
        """
        Summary statistics of a recorded distribution.

        Returns:
            Dict with count, mean, p50, p95, max; None if nothing recorded
        """
        with self._lock:
            values = np.array(self._distributions.get(name, ()), dtype=np.float64)

        if values.size == 0:
            return None

        p50, p95 = np.percentile(values, [50, 95])
        return {
            'count': int(values.size),
            'mean': float(values.mean()),
            'p50': float(p50),
            'p95': float(p95),
            'max': float(values.max()),
        }

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(
                counters=dict(self._counters),
                skips={k: v for k, v in self._skips.items() if v},
                distributions={k: tuple(v) for k, v in self._distributions.items()},
            )

    def reset(self):
        with self._lock:
            self._counters = Counter(dict.fromkeys(self.STANDARD_COUNTERS, 0))
            self._skips = Counter(dict.fromkeys(self.DROP_REASONS, 0))
            self._distributions = {}

    def format_summary(self) -> str:
        """Render the estimation funnel followed by output modes and diagnostics."""
        snap = self.snapshot()
        c = snap.counters

        def row(label: str, value: int, indent: int = 2) -> str:
            return f"{' ' * indent}{label:<{30 - indent}s}{value:>10d}"

        lines = [
            "=" * 60,
            "  ESTIMATOR FUNNEL",
            "=" * 60,
            row('velocity events', c['velocity_events']),
            row('processed ticks', c['estimation_ticks']),
            row('skipped', snap.total_skipped),
        ]
        # Gate order, then anything unexpected
        reasons = list(self.DROP_REASONS) + sorted(set(snap.skips) - set(self.DROP_REASONS))
        for reason in reasons:
            if reason in snap.skips:
                lines.append(row(reason, snap.skips[reason], indent=4))

        lines += [
            row('alignment attempts', c['alignment_attempts']),
            row('success', c['alignment_success'], indent=4),
            row('give-up', c['alignment_giveup'], indent=4),
            row('anchors rejected', c['anchors_rejected']),
            "OUTPUTS:",
            row('aligned', c['estimates_aligned']),
            row('dead reckoned', c['estimates_dead_reckoned']),
            row('invalid', c['estimates_invalid']),
            row('resets', c['estimator_resets']),
        ]

        if snap.distributions:
            lines.append("DIAGNOSTICS:")
            for name in sorted(snap.distributions):
                stats = self.get_histogram_stats(name)
                lines.append(
                    f"  {name}: n={stats['count']} mean={stats['mean']:.3f} "
                    f"p95={stats['p95']:.3f} max={stats['max']:.3f}"
                )
        lines.append("=" * 60)
        return "\n".join(lines)
