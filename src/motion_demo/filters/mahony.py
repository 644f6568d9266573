from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..quaternion import IDENTITY, q_mul, q_normalize, q_rotate, q_rotate_inv
from .base import EstimatorOutput


@dataclass
class MahonyParams:
    kp: float = 1.5
    ki: float = 0.05


class MahonyAHRS:
    """
    Mahony nonlinear complementary filter (6D/9D).
    Quaternion order: [w, x, y, z]

    With `uses_mag` the world x axis is magnetic north (z up); without it
    yaw starts at zero and drifts with the gyro.
    """

    def __init__(self, sample_rate_hz: float, params: Optional[MahonyParams] = None, uses_mag: bool = False):
        self.dt = 1.0 / float(sample_rate_hz)
        self.params = params or MahonyParams()
        self.uses_mag = uses_mag
        self.q = IDENTITY.copy()
        self.e_int = np.zeros(3, dtype=float)

    def reset(self) -> None:
        self.q = IDENTITY.copy()
        self.e_int[:] = 0.0

    def _output(self) -> EstimatorOutput:
        # the integral term converges to minus the gyro bias
        return EstimatorOutput(quat_wxyz=self.q.copy(), bias_rad_s=-self.e_int.copy())

    def update(self, gyr_rad_s: np.ndarray, acc_m_s2: np.ndarray, mag_uT: Optional[np.ndarray] = None) -> EstimatorOutput:
        gyr = np.asarray(gyr_rad_s, dtype=float).reshape(3)
        acc = np.asarray(acc_m_s2, dtype=float).reshape(3)

        a_norm = float(np.linalg.norm(acc))
        if a_norm < 1e-9:
            return self._output()
        acc = acc / a_norm

        q = self.q
        # accelerometer at rest reads +g along world up
        g_est = q_rotate_inv(q, np.array([0.0, 0.0, 1.0]))
        e = np.cross(acc, g_est)

        if self.uses_mag and mag_uT is not None:
            m = np.asarray(mag_uT, dtype=float).reshape(3)
            m_norm = float(np.linalg.norm(m))
            if m_norm > 1e-9:
                m = m / m_norm
                # reference field: horizontal part along world x (north), keep inclination
                h = q_rotate(q, m)
                b = np.array([math.hypot(h[0], h[1]), 0.0, h[2]], dtype=float)
                e = e + np.cross(m, q_rotate_inv(q, b))

        self.e_int += e * self.params.ki * self.dt
        omega = gyr + self.params.kp * e + self.e_int

        q_dot = 0.5 * q_mul(q, np.array([0.0, omega[0], omega[1], omega[2]], dtype=float))
        self.q = q_normalize(q + q_dot * self.dt)
        return self._output()
