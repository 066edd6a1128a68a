"""
Robust trajectory-to-GNSS alignment.

Fits a single rigid translation that places the integrated (relative)
trajectory onto the absolute GNSS fixes it overlaps, rejecting the worst
fix one at a time until every surviving fix agrees with the trajectory
shape within a distance threshold.

Algorithm (one iteration, L = most recent anchor):
    base[k]     = gnss[L] - traj[L] + traj[k]
    residual[i] = base[i] - gnss[i]                  (i in anchors)
    refined_L   = gnss[L] - mean(residual)
    base2[k]    = refined_L - traj[L] + traj[k]
    r[i]        = |base2[i] - gnss[i]|
    if max(r) > threshold: drop argmax anchor, repeat

The loop has two exits that stay distinct:
- success: the largest residual is within threshold
- give-up: the anchor set is below giveup_fraction of the moving samples
  (checked before every iteration, including the first)

Each rejecting iteration removes exactly one anchor, so the loop runs at
most len(anchors) times. A single remaining anchor always has zero
residual, so the anchor set never empties.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from dr_core.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass
class RobustAlignerConfig:
    """
    Configuration for robust alignment.

    Attributes:
        outlier_threshold_m: Max residual norm for an anchor to survive (m)
        giveup_fraction: Give up once anchors < moving samples * this fraction
    """

    outlier_threshold_m: float = 3.0
    giveup_fraction: float = 1.0 / 100

    def __post_init__(self):
        """Validate configuration."""
        assert self.outlier_threshold_m > 0, "outlier threshold must be positive"
        assert 0 <= self.giveup_fraction <= 1, "giveup fraction must be in [0, 1]"


@dataclass
class AlignmentResult:
    """
    Outcome of one robust alignment call.

    Attributes:
        success: True if residuals converged within threshold
        position_enu: Aligned position at the window end (None on give-up)
        anchors: Surviving anchor indices (ascending)
        rejected: Anchor indices removed as outliers, in removal order
        iterations: Number of alignment iterations run
        max_residual_m: Largest residual norm of the last iteration
        anchor_history: Anchor count at the start of every iteration
    """

    success: bool
    position_enu: Optional[Tuple[float, float, float]] = None
    anchors: List[int] = field(default_factory=list)
    rejected: List[int] = field(default_factory=list)
    iterations: int = 0
    max_residual_m: float = 0.0
    anchor_history: List[int] = field(default_factory=list)

    @property
    def gave_up(self) -> bool:
        return not self.success

    @property
    def num_anchors(self) -> int:
        return len(self.anchors)


class RobustAligner:
    """
    Iterative trimmed-mean alignment of a relative trajectory to GNSS fixes.

    Usage:
        aligner = RobustAligner(RobustAlignerConfig(outlier_threshold_m=3.0))
        result = aligner.align(trajectory, gnss_positions, anchors, moving_count)
        if result.success:
            print(f"Position: {result.position_enu}")

    Notes:
        The anchor list passed in is copied; the caller's list is not modified.
    """

    def __init__(self, config: Optional[RobustAlignerConfig] = None):
        self.config = config or RobustAlignerConfig()
        self.metrics = get_metrics()

    def align(
        self,
        trajectory: np.ndarray,
        gnss_positions: np.ndarray,
        anchors: List[int],
        speed_qualified_count: int,
    ) -> AlignmentResult:
        """
        Align trajectory to the GNSS fixes at the anchor indices.

        Args:
            trajectory: (N, 3) relative displacements from TrajectoryIntegrator
            gnss_positions: (N, 3) ENU GNSS positions for the same window
            anchors: Ascending window indices of candidate anchors
            speed_qualified_count: Moving-sample population for the give-up gate

        Returns:
            AlignmentResult
        """
        trajectory = np.asarray(trajectory, dtype=np.float64)
        gnss_positions = np.asarray(gnss_positions, dtype=np.float64)

        if trajectory.shape != gnss_positions.shape:
            raise ValueError(
                f"Trajectory/GNSS shape mismatch: {trajectory.shape} vs {gnss_positions.shape}"
            )

        remaining = list(anchors)
        result = AlignmentResult(success=False, anchors=remaining)
        if not remaining:
            return result

        giveup_count = speed_qualified_count * self.config.giveup_fraction
        refined_last = None

        for _ in range(len(anchors)):
            if len(remaining) < giveup_count:
                break

            result.iterations += 1
            result.anchor_history.append(len(remaining))

            idx = np.asarray(remaining)
            last = remaining[-1]
            offset = gnss_positions[last] - trajectory[last]

            # First pass: hypothesis anchored at the most recent fix
            residual = (offset + trajectory[idx]) - gnss_positions[idx]
            refined_last = gnss_positions[last] - residual.mean(axis=0)

            # Second pass: residuals against the centered hypothesis
            offset2 = refined_last - trajectory[last]
            norms = np.linalg.norm((offset2 + trajectory[idx]) - gnss_positions[idx], axis=1)

            worst = int(np.argmax(norms))
            result.max_residual_m = float(norms[worst])

            if result.max_residual_m <= self.config.outlier_threshold_m:
                result.success = True
                break

            removed = remaining.pop(worst)
            result.rejected.append(removed)
            self.metrics.increment('anchors_rejected')
            logger.debug(
                f"Rejected anchor {removed} (residual {norms[worst]:.2f} m, "
                f"{len(remaining)} left)"
            )

            if not remaining:
                break

        self.metrics.record_histogram('alignment_iterations', result.iterations)

        if not result.success:
            logger.debug(
                f"Alignment gave up after {result.iterations} iterations "
                f"({len(remaining)} anchors < {giveup_count:.1f})"
            )
            return result

        last = remaining[-1]
        end_position = refined_last + (trajectory[-1] - trajectory[last])
        result.position_enu = (
            float(end_position[0]),
            float(end_position[1]),
            float(end_position[2]),
        )
        self.metrics.record_histogram('alignment_max_residual_m', result.max_residual_m)
        return result
