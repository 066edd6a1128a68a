"""
Estimator state machine (aligned estimate vs. dead-reckoning holdover).

UNINITIALIZED -> ALIGNED on the first accepted estimate. Afterwards every
tick is either ALIGNED (fresh robust estimate) or DEAD_RECKONING
(constant-velocity extrapolation from the previous tick's output). The
started flag is sticky for the lifetime of the estimator.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from dr_core.proto.position_output import PositionOutput, EstimatorMode, create_invalid_output
from dr_core.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass
class EstimatorState:
    """
    Cross-tick estimator state.

    Attributes:
        started: True once any aligned estimate has been accepted
        raw_estimate_valid: True if the current tick produced an aligned estimate
        last_position: Position published on the previous tick
        last_timestamp: Timestamp of the previous tick
        last_accepted_position: Most recent aligned estimate
        last_accepted_timestamp: Time of the most recent aligned estimate
    """

    started: bool = False
    raw_estimate_valid: bool = False
    last_position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    last_timestamp: Optional[float] = None
    last_accepted_position: Optional[Tuple[float, float, float]] = None
    last_accepted_timestamp: Optional[float] = None

    @property
    def mode(self) -> EstimatorMode:
        if not self.started:
            return EstimatorMode.UNINITIALIZED
        if self.raw_estimate_valid:
            return EstimatorMode.ALIGNED
        return EstimatorMode.DEAD_RECKONING


class EstimatorStateMachine:
    """
    Decide per tick between the aligned estimate and extrapolation.

    Usage:
        machine = EstimatorStateMachine()
        output = machine.update(timestamp, vel_enu, raw_position)
        if output.estimate_valid:
            publish(output.pos_enu)
    """

    def __init__(self):
        self.state = EstimatorState()
        self.metrics = get_metrics()

    @property
    def started(self) -> bool:
        return self.state.started

    def update(
        self,
        timestamp: float,
        vel_enu: Tuple[float, float, float],
        raw_position: Optional[Tuple[float, float, float]] = None,
        num_anchors: int = 0,
        residual_m: Optional[float] = None,
        window_size: int = 0,
    ) -> PositionOutput:
        """
        Advance the state machine by one tick.

        Args:
            timestamp: Tick time
            vel_enu: Current ENU velocity (used for extrapolation)
            raw_position: Aligned estimate for this tick, or None
            num_anchors: Surviving anchors of the alignment (for reporting)
            residual_m: Largest surviving residual (for reporting)
            window_size: Window size (for reporting)

        Returns:
            PositionOutput for this tick
        """
        state = self.state
        state.raw_estimate_valid = raw_position is not None

        if state.raw_estimate_valid:
            if not state.started:
                logger.info(f"First aligned estimate at t={timestamp:.3f}: {raw_position}")
            position = tuple(float(v) for v in raw_position)
            state.started = True
            state.last_accepted_position = position
            state.last_accepted_timestamp = timestamp
        elif state.started:
            position = self.extrapolate(timestamp, vel_enu)
        else:
            position = None

        state.last_timestamp = timestamp

        if position is None:
            state.last_position = (0.0, 0.0, 0.0)
            self.metrics.increment('estimates_invalid')
            return create_invalid_output(timestamp, window_size)

        state.last_position = position

        if state.raw_estimate_valid:
            self.metrics.increment('estimates_aligned')
            return PositionOutput(
                timestamp=timestamp,
                pos_enu=position,
                estimate_valid=True,
                raw_estimate_valid=True,
                mode=EstimatorMode.ALIGNED,
                num_anchors=num_anchors,
                residual_m=residual_m,
                window_size=window_size,
            )

        self.metrics.increment('estimates_dead_reckoned')
        return PositionOutput(
            timestamp=timestamp,
            pos_enu=position,
            estimate_valid=True,
            raw_estimate_valid=False,
            mode=EstimatorMode.DEAD_RECKONING,
            window_size=window_size,
        )

    def extrapolate(
        self,
        timestamp: float,
        vel_enu: Tuple[float, float, float],
    ) -> Tuple[float, float, float]:
        """
        Constant-velocity step from the previous tick's output.

        position = last_position + vel_enu * (timestamp - last_timestamp)
        """
        state = self.state
        dt = timestamp - state.last_timestamp
        position = np.asarray(state.last_position, dtype=np.float64) + \
            np.asarray(vel_enu, dtype=np.float64) * dt
        return (float(position[0]), float(position[1]), float(position[2]))

    def reset(self):
        """Return to UNINITIALIZED."""
        self.state = EstimatorState()
        logger.info("Estimator state reset")
