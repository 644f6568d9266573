import math

import pytest

from motion_demo.angles import AngleType, format_angle, format_value, to_degrees, to_radians


@pytest.mark.parametrize("deg", [-720.0, -90.0, 0.0, 1e-9, 45.0, 180.0, 359.999])
def test_conversion_round_trip(deg):
    assert to_degrees(to_radians(deg)) == pytest.approx(deg)


def test_known_conversions():
    assert to_degrees(math.pi) == pytest.approx(180.0)
    assert to_radians(90.0) == pytest.approx(math.pi / 2)


@pytest.mark.parametrize("rad, angle_type, text", [
    (None, AngleType.DEGREES, "--°"),
    (None, AngleType.RADIANS, "-- rad"),
    (math.pi / 4, AngleType.DEGREES, "45°"),
    (math.pi / 4, AngleType.RADIANS, "0.79 rad"),
    (-0.001, AngleType.DEGREES, "0°"),
    (-0.001, AngleType.RADIANS, "0.00 rad"),
    (-math.pi, AngleType.DEGREES, "-180°"),
])
def test_format_angle(rad, angle_type, text):
    assert format_angle(rad, angle_type) == text


@pytest.mark.parametrize("value, precision, unit, text", [
    (None, 0, "", "--"),
    (None, 1, "G", "-- G"),
    (-0.7, 0, "G", "0 G"),
    (-1.2, 0, "", "-1"),
    (-0.04, 1, "G", "0.0 G"),
    (-0.99, 1, "G", "-1.0 G"),
    (42.0, 0, "µT", "42 µT"),
])
def test_format_value(value, precision, unit, text):
    assert format_value(value, precision, unit) == text
