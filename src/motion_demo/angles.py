from __future__ import annotations

import enum
import math
from typing import Optional

DEG_PER_RAD = 180.0 / math.pi


class AngleType(enum.Enum):
    DEGREES = "deg"
    RADIANS = "rad"


def to_degrees(rad: float) -> float:
    return rad * DEG_PER_RAD


def to_radians(deg: float) -> float:
    return deg / DEG_PER_RAD


def format_angle(angle_rad: Optional[float], angle_type: AngleType) -> str:
    """Whole degrees or radians to two places; '--' when there is no value."""
    if angle_type is AngleType.DEGREES:
        if angle_rad is None:
            return "--°"
        return f"{_no_negative_zero(to_degrees(angle_rad), 0):.0f}°"
    if angle_rad is None:
        return "-- rad"
    return f"{_no_negative_zero(angle_rad, 2):.2f} rad"


def format_value(value: Optional[float], precision: int = 0, unit: str = "") -> str:
    if value is None:
        return f"-- {unit}" if unit else "--"
    if precision == 0 and -1.0 < value < 0.0:
        value = 0.0
    text = f"{_no_negative_zero(value, precision):.{precision}f}"
    return f"{text} {unit}" if unit else text


def _no_negative_zero(value: float, precision: int) -> float:
    # -0.004 would print as "-0.00"
    if round(value, precision) == 0.0:
        return 0.0
    return value
