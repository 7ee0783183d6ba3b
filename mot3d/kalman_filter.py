# kalman_filter.py

"""
Kalman filter implementation for 3D object tracking.
Constant-velocity model over 3D position and velocity.
"""
import numpy as np
from typing import Sequence, Tuple

SINGULARITY_EPS = 1e-10


class SingularMatrixError(np.linalg.LinAlgError):
    """Raised when the innovation covariance cannot be inverted."""


def _invert_3x3(matrix: np.ndarray) -> np.ndarray:
    """
    Invert a 3x3 matrix by cofactor expansion.

    Raises:
        SingularMatrixError: if |det| is below SINGULARITY_EPS
    """
    a = matrix
    det = (a[0, 0] * (a[1, 1] * a[2, 2] - a[1, 2] * a[2, 1])
           - a[0, 1] * (a[1, 0] * a[2, 2] - a[1, 2] * a[2, 0])
           + a[0, 2] * (a[1, 0] * a[2, 1] - a[1, 1] * a[2, 0]))

    if abs(det) < SINGULARITY_EPS:
        raise SingularMatrixError(f"Matrix is singular (det={det:.3e})")

    inv_det = 1.0 / det
    return np.array([
        [(a[1, 1] * a[2, 2] - a[1, 2] * a[2, 1]) * inv_det,
         (a[0, 2] * a[2, 1] - a[0, 1] * a[2, 2]) * inv_det,
         (a[0, 1] * a[1, 2] - a[0, 2] * a[1, 1]) * inv_det],
        [(a[1, 2] * a[2, 0] - a[1, 0] * a[2, 2]) * inv_det,
         (a[0, 0] * a[2, 2] - a[0, 2] * a[2, 0]) * inv_det,
         (a[0, 2] * a[1, 0] - a[0, 0] * a[1, 2]) * inv_det],
        [(a[1, 0] * a[2, 1] - a[1, 1] * a[2, 0]) * inv_det,
         (a[0, 1] * a[2, 0] - a[0, 0] * a[2, 1]) * inv_det,
         (a[0, 0] * a[1, 1] - a[0, 1] * a[1, 0]) * inv_det],
    ])


class ConstantVelocityKalmanFilter:
    """
    Kalman filter for tracking one object in 3D space.

    State vector: [x, y, z, vx, vy, vz] (position and velocity)
    Measurement vector: [x, y, z] (position only)
    """

    def __init__(self,
                 initial_position: Sequence[float],
                 process_noise: float = 0.1,
                 measurement_noise: float = 0.1):
        """
        Initialize filter at a measured position with zero velocity.

        Args:
            initial_position: Position (x, y, z) of the spawning detection
            process_noise: Scalar q of the white-noise-acceleration model
            measurement_noise: Variance of each position measurement axis
        """
        self.dim_x = 6  # State dimension: [x, y, z, vx, vy, vz]
        self.dim_z = 3  # Measurement dimension: [x, y, z]

        self.q = process_noise
        self.measurement_noise = measurement_noise

        # Measurement matrix (observe position only)
        self.H = np.hstack([np.eye(3), np.zeros((3, 3))])

        # Measurement noise covariance matrix
        self.R = np.eye(3) * measurement_noise

        x, y, z = initial_position
        self.state = np.array([x, y, z, 0.0, 0.0, 0.0], dtype=float)
        self.covariance = np.eye(self.dim_x)

    def _get_F_matrix(self, dt: float) -> np.ndarray:
        """Get state transition matrix for given time step."""
        F = np.eye(self.dim_x)
        F[0, 3] = dt
        F[1, 4] = dt
        F[2, 5] = dt
        return F

    def _get_Q_matrix(self, dt: float) -> np.ndarray:
        """Get process noise matrix for given time step."""
        dt2 = dt * dt
        dt3 = dt2 * dt
        dt4 = dt3 * dt

        Q = np.zeros((self.dim_x, self.dim_x))
        for axis in range(3):
            pos, vel = axis, axis + 3
            Q[pos, pos] = dt4 / 4
            Q[pos, vel] = dt3 / 2
            Q[vel, pos] = dt3 / 2
            Q[vel, vel] = dt2
        return Q * self.q

    def predict(self, dt: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
        """
        Propagate the state one step with the constant-velocity model.

        Args:
            dt: Time step (frames)

        Returns:
            Tuple of (predicted_state, predicted_covariance)
        """
        F = self._get_F_matrix(dt)
        Q = self._get_Q_matrix(dt)

        # x_{k|k-1} = F * x_{k-1|k-1}
        self.state = F @ self.state
        # P_{k|k-1} = F * P_{k-1|k-1} * F^T + Q
        self.covariance = F @ self.covariance @ F.T + Q

        return self.state.copy(), self.covariance.copy()

    def update(self, measurement: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
        """
        Correct the state with a position measurement.

        Args:
            measurement: Measured position (x, y, z)

        Returns:
            Tuple of (updated_state, updated_covariance)

        Raises:
            SingularMatrixError: if the innovation covariance is near-singular.
                State and covariance are left untouched in that case.
        """
        z = np.asarray(measurement, dtype=float)

        # Innovation: y = z - H * x_{k|k-1}
        innovation = z - self.H @ self.state

        # Innovation covariance: S = H * P_{k|k-1} * H^T + R
        innovation_cov = self.H @ self.covariance @ self.H.T + self.R

        # Kalman gain: K = P_{k|k-1} * H^T * S^{-1}
        kalman_gain = self.covariance @ self.H.T @ _invert_3x3(innovation_cov)

        self.state = self.state + kalman_gain @ innovation

        # P_{k|k} = (I - K * H) * P_{k|k-1}
        I_KH = np.eye(self.dim_x) - kalman_gain @ self.H
        self.covariance = I_KH @ self.covariance

        return self.state.copy(), self.covariance.copy()

    @property
    def position(self) -> Tuple[float, float, float]:
        return (float(self.state[0]), float(self.state[1]), float(self.state[2]))

    @property
    def velocity(self) -> Tuple[float, float, float]:
        return (float(self.state[3]), float(self.state[4]), float(self.state[5]))

    def get_state(self) -> Tuple[np.ndarray, np.ndarray]:
        """Get copies of (state, covariance) for diagnostics."""
        return self.state.copy(), self.covariance.copy()
