from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


class ReferenceFrame(enum.Enum):
    X_ARBITRARY_Z_VERTICAL = "x_arbitrary_z_vertical"
    X_MAGNETIC_NORTH_Z_VERTICAL = "x_magnetic_north_z_vertical"

    @property
    def needs_mag(self) -> bool:
        return self is ReferenceFrame.X_MAGNETIC_NORTH_Z_VERTICAL


@dataclass(frozen=True)
class Vector3:
    x: float
    y: float
    z: float

    @classmethod
    def from_array(cls, v: np.ndarray) -> "Vector3":
        a = np.asarray(v, dtype=float).reshape(3)
        return cls(float(a[0]), float(a[1]), float(a[2]))


@dataclass(frozen=True)
class Attitude:
    pitch: float  # rad, about X
    roll: float   # rad, about Y
    yaw: float    # rad, about Z
    quaternion: Tuple[float, float, float, float]  # (w, x, y, z)


@dataclass(frozen=True)
class MotionReading:
    """One fused device-motion snapshot. Angles in rad, accelerations in g, field in uT."""
    timestamp: float
    attitude: Attitude
    rotation_rate: Vector3
    user_acceleration: Vector3
    gravity: Vector3
    magnetic_field: Optional[Vector3]
    heading: Optional[float]  # degrees [0, 360), clockwise from magnetic north
