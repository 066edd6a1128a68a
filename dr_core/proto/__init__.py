"""
Protocol Module: Message schemas for estimator inputs and outputs.

- Sample: fused per-tick record stored in the SampleBuffer
- VelocityReport / GnssFix: input messages
- PositionOutput: per-tick estimator output
"""

from .sample import Sample, ZERO_ENU
from .sensor_inputs import VelocityReport, GnssFix
from .position_output import (
    PositionOutput,
    EstimatorMode,
    create_invalid_output,
)

__all__ = [
    'Sample',
    'ZERO_ENU',
    'VelocityReport',
    'GnssFix',
    'PositionOutput',
    'EstimatorMode',
    'create_invalid_output',
]
