"""
Relative trajectory from velocity integration.

trajectory[0] = 0
trajectory[k] = trajectory[k-1] + velocity_enu[k] * (t[k] - t[k-1])

The trajectory is recomputed in full on every tick from the window
contents and has no absolute meaning until aligned.
"""

import numpy as np

from .window_selector import Window


class TrajectoryIntegrator:
    """Forward (rectangular) integration of ENU velocity over a window."""

    def integrate(self, window: Window) -> np.ndarray:
        """
        Integrate window velocities into displacements from the window start.

        Args:
            window: Estimation window

        Returns:
            (N, 3) float64 array of ENU displacements, first row zero
        """
        if window.is_empty:
            return np.zeros((0, 3), dtype=np.float64)

        return integrate_velocity(window.timestamps, window.velocities)


def integrate_velocity(timestamps: np.ndarray, velocities: np.ndarray) -> np.ndarray:
    """
    Integrate velocity samples against their timestamp deltas.

    Args:
        timestamps: (N,) sample times
        velocities: (N, 3) ENU velocities

    Returns:
        (N, 3) cumulative displacement, anchored at zero
    """
    timestamps = np.asarray(timestamps, dtype=np.float64)
    velocities = np.asarray(velocities, dtype=np.float64).reshape(-1, 3)

    trajectory = np.zeros_like(velocities)
    if len(timestamps) < 2:
        return trajectory

    dt = np.diff(timestamps)
    steps = velocities[1:] * dt[:, np.newaxis]
    trajectory[1:] = np.cumsum(steps, axis=0)
    return trajectory
