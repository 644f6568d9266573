from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np


@dataclass
class EstimatorOutput:
    quat_wxyz: np.ndarray  # (4,) body -> world
    bias_rad_s: np.ndarray  # (3,) gyro bias estimate
    mag_disturbed: bool = False


class AttitudeEstimator(Protocol):
    uses_mag: bool

    def update(self, gyr_rad_s: np.ndarray, acc_m_s2: np.ndarray, mag_uT: Optional[np.ndarray] = None) -> EstimatorOutput:
        ...

    def reset(self) -> None:
        ...
