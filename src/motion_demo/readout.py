from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .angles import AngleType, format_angle, format_value, to_radians
from .motion import MotionReading, Vector3

RGB = Tuple[int, int, int]

RED: RGB = (214, 64, 58)
GREEN: RGB = (52, 168, 83)
BLUE: RGB = (48, 110, 220)
GRAY: RGB = (110, 110, 118)
BROWN: RGB = (150, 105, 70)


@dataclass(frozen=True)
class Row:
    title: str
    text: str
    color: RGB


@dataclass(frozen=True)
class Section:
    title: str
    rows: List[Row]


def _xyz(v: Optional[Vector3], precision: int = 0, unit: str = "") -> List[Row]:
    return [
        Row("X", format_value(None if v is None else v.x, precision, unit), GRAY),
        Row("Y", format_value(None if v is None else v.y, precision, unit), GRAY),
        Row("Z", format_value(None if v is None else v.z, precision, unit), GRAY),
    ]


def build_sections(motion: Optional[MotionReading], angle_type: AngleType) -> List[Section]:
    """Formatted dashboard rows for one reading. A None reading gives placeholders everywhere."""
    att = None if motion is None else motion.attitude
    heading = None if motion is None or motion.heading is None else to_radians(motion.heading)

    return [
        Section("Attitude", [
            Row("Pitch", format_angle(None if att is None else att.pitch, angle_type), RED),
            Row("Roll", format_angle(None if att is None else att.roll, angle_type), GREEN),
            Row("Yaw", format_angle(None if att is None else att.yaw, angle_type), BLUE),
        ]),
        Section("Rotation Rate", _xyz(None if motion is None else motion.rotation_rate)),
        Section("User Acceleration", _xyz(None if motion is None else motion.user_acceleration, unit="G")),
        Section("Gravity", _xyz(None if motion is None else motion.gravity, precision=1, unit="G")),
        Section("Magnetic Field", [
            Row("Heading", format_angle(heading, angle_type), BROWN),
            *_xyz(None if motion is None else motion.magnetic_field, unit="µT"),
        ]),
    ]


def render_text(title: str, is_started: bool, sections: List[Section]) -> str:
    lines = [f"== {title} [{'started' if is_started else 'stopped'}] =="]
    for sec in sections:
        lines.append(f"  {sec.title}")
        for row in sec.rows:
            lines.append(f"    {row.title:<8}{row.text:>12}")
    return "\n".join(lines)
