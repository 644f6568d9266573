from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np

G = 9.80665


class SensorError(RuntimeError):
    """A motion sensor could not be opened or read."""


@dataclass
class IMUSample:
    t: float
    acc_m_s2: np.ndarray  # (3,)
    gyr_rad_s: np.ndarray  # (3,)
    mag_uT: Optional[np.ndarray]  # (3,) or None


class IMUDevice(Protocol):
    name: str
    has_mag: bool

    def read(self) -> Optional[IMUSample]:
        """Next sample, or None when nothing new is available yet."""
        ...

    def close(self) -> None:
        ...
