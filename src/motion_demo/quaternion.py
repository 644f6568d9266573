from __future__ import annotations

import math
from typing import Tuple

import numpy as np


# Quaternion convention in this project:
# - ndarray shape (4,)
# - order: [w, x, y, z]
# - attitude quaternions are q_WB: they rotate body-frame vectors into the world frame
# - world frame: z up, x along the reference direction (arbitrary or magnetic north)

IDENTITY = np.array([1.0, 0.0, 0.0, 0.0], dtype=float)


def q_normalize(q: np.ndarray) -> np.ndarray:
    q = np.asarray(q, dtype=float).reshape(4)
    n = float(np.linalg.norm(q))
    if n <= 0.0:
        return IDENTITY.copy()
    return q / n


def q_conj(q: np.ndarray) -> np.ndarray:
    q = np.asarray(q, dtype=float).reshape(4)
    return np.array([q[0], -q[1], -q[2], -q[3]], dtype=float)


def q_mul(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    w1, x1, y1, z1 = np.asarray(q1, dtype=float).reshape(4)
    w2, x2, y2, z2 = np.asarray(q2, dtype=float).reshape(4)
    return np.array([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2,
    ], dtype=float)


def q_rotate(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Body -> world: q ⊗ [0,v] ⊗ q*."""
    q = q_normalize(q)
    v = np.asarray(v, dtype=float).reshape(3)
    out = q_mul(q_mul(q, np.array([0.0, v[0], v[1], v[2]])), q_conj(q))
    return out[1:4]


def q_rotate_inv(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """World -> body: q* ⊗ [0,v] ⊗ q."""
    return q_rotate(q_conj(q), v)


def q_from_axis_angle(axis: np.ndarray, angle_rad: float) -> np.ndarray:
    axis = np.asarray(axis, dtype=float).reshape(3)
    n = float(np.linalg.norm(axis))
    if n <= 0.0:
        return IDENTITY.copy()
    a = axis / n
    s = math.sin(angle_rad * 0.5)
    return q_normalize(np.array([math.cos(angle_rad * 0.5), a[0]*s, a[1]*s, a[2]*s], dtype=float))


def q_to_attitude(q: np.ndarray) -> Tuple[float, float, float]:
    """
    Returns (pitch, roll, yaw) in radians for R = Rz(yaw) * Rx(pitch) * Ry(roll).

    pitch: about body X, [-pi/2, pi/2]
    roll:  about body Y, (-pi, pi]
    yaw:   about world Z, (-pi, pi], counter-clockwise seen from above
    """
    w, x, y, z = q_normalize(q)

    r21 = 2.0*(y*z + w*x)
    r20 = 2.0*(x*z - w*y)
    r22 = 1.0 - 2.0*(x*x + y*y)
    r01 = 2.0*(x*y - w*z)
    r11 = 1.0 - 2.0*(x*x + z*z)

    pitch = math.asin(max(-1.0, min(1.0, r21)))
    roll = math.atan2(-r20, r22)
    yaw = math.atan2(-r01, r11)
    return pitch, roll, yaw
