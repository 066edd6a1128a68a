"""
Localization Module: Windowed dead-reckoning / GNSS alignment.

Key classes:
- SampleBuffer: Bounded, time-ordered history of fused samples
- WindowSelector: Trailing window covering the estimation span
- TrajectoryIntegrator: Relative trajectory from ENU velocity
- AnchorSelector: GNSS-valid, moving samples usable as anchors
- RobustAligner: Iterative outlier-rejecting trajectory alignment
- EstimatorStateMachine: Aligned estimate vs. dead-reckoning holdover
- PositionEstimator: Per-tick pipeline tying the above together
"""

from .sample_buffer import SampleBuffer
from .window_selector import Window, WindowSelector
from .trajectory_integrator import TrajectoryIntegrator, integrate_velocity
from .anchor_selector import AnchorSelection, AnchorSelector
from .robust_aligner import (
    RobustAligner,
    RobustAlignerConfig,
    AlignmentResult,
)
from .estimator_state import EstimatorState, EstimatorStateMachine
from .position_estimator import (
    PositionEstimator,
    PositionEstimatorConfig,
    create_default_estimator,
)

__all__ = [
    # History and windowing
    'SampleBuffer',
    'Window',
    'WindowSelector',
    # Trajectory and anchors
    'TrajectoryIntegrator',
    'integrate_velocity',
    'AnchorSelection',
    'AnchorSelector',
    # Alignment
    'RobustAligner',
    'RobustAlignerConfig',
    'AlignmentResult',
    # State and pipeline
    'EstimatorState',
    'EstimatorStateMachine',
    'PositionEstimator',
    'PositionEstimatorConfig',
    'create_default_estimator',
]
