from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
from vqf import VQF

from ..quaternion import q_from_axis_angle, q_mul, q_normalize
from .base import EstimatorOutput

# VQF's 9D earth frame is ENU; rotate it to x=north, z=up
_ENU_TO_NORTH_UP = q_from_axis_angle(np.array([0.0, 0.0, 1.0]), -np.pi / 2.0)


class VQFWrapper:
    """
    Thin wrapper around the official VQF implementation.
    - 6D (uses_mag=False): magnetometer-free, drift-free roll/pitch, yaw drifts slowly.
    - 9D (uses_mag=True): yaw referenced to magnetic north, with disturbance detection.
    """

    def __init__(self, sample_rate_hz: float, *, uses_mag: bool = False, params: Optional[Dict[str, Any]] = None):
        self.Ts = 1.0 / float(sample_rate_hz)
        self.uses_mag = uses_mag
        self.params = params or {}
        self.vqf = VQF(self.Ts, **self.params)

    def reset(self) -> None:
        self.vqf.resetState()

    def update(self, gyr_rad_s: np.ndarray, acc_m_s2: np.ndarray, mag_uT: Optional[np.ndarray] = None) -> EstimatorOutput:
        gyr = np.ascontiguousarray(gyr_rad_s, dtype=float).reshape(3)
        acc = np.ascontiguousarray(acc_m_s2, dtype=float).reshape(3)

        if self.uses_mag and mag_uT is not None:
            mag = np.ascontiguousarray(mag_uT, dtype=float).reshape(3)
            self.vqf.update(gyr, acc, mag)
        else:
            self.vqf.update(gyr, acc)

        if self.uses_mag:
            q = q_mul(_ENU_TO_NORTH_UP, np.asarray(self.vqf.getQuat9D(), dtype=float))
        else:
            q = np.asarray(self.vqf.getQuat6D(), dtype=float)

        bias, _sigma = self.vqf.getBiasEstimate()
        return EstimatorOutput(
            quat_wxyz=q_normalize(q),
            bias_rad_s=np.asarray(bias, dtype=float).reshape(3).copy(),
            mag_disturbed=bool(self.vqf.getMagDistDetected()) if self.uses_mag else False,
        )
