from __future__ import annotations

import numpy as np

from ..sensors.imu_base import IMUSample


def remap_vec3(v: np.ndarray, axis_map: np.ndarray, axis_sign: np.ndarray) -> np.ndarray:
    """
    v: (3,) in sensor raw axis order
    axis_map: e.g. [0,1,2] keeps x,y,z ; [1,0,2] swaps x/y
    axis_sign: e.g. [1,-1,1] flips y
    """
    vv = np.asarray(v, dtype=float).reshape(3)
    return vv[np.asarray(axis_map, dtype=int).reshape(3)] * np.asarray(axis_sign, dtype=int).reshape(3)


def remap_sample(s: IMUSample, axis_map: np.ndarray, axis_sign: np.ndarray) -> IMUSample:
    """Rotate a raw sample from the chip's axes into the body frame (x right, y forward, z up)."""
    return IMUSample(
        t=s.t,
        acc_m_s2=remap_vec3(s.acc_m_s2, axis_map, axis_sign),
        gyr_rad_s=remap_vec3(s.gyr_rad_s, axis_map, axis_sign),
        mag_uT=None if s.mag_uT is None else remap_vec3(s.mag_uT, axis_map, axis_sign),
    )
