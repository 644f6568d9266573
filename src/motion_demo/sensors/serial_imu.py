from __future__ import annotations

import logging
import time
from typing import List, Optional

import numpy as np
import serial

from .imu_base import IMUSample, SensorError

logger = logging.getLogger(__name__)


def parse_imu_line(line: str, t: float) -> Optional[IMUSample]:
    """
    Parse one line of the headset stream. Returns None for anything malformed.

    Accepted formats:
      - "IMU,ax,ay,az,gx,gy,gz"
      - "IMU,ax,ay,az,gx,gy,gz,mx,my,mz"
      - the same without the "IMU" tag
    Units: acc m/s^2, gyro rad/s, mag uT.
    """
    parts = [p.strip() for p in line.strip().split(",") if p.strip() != ""]
    if parts and parts[0].upper() == "IMU":
        parts = parts[1:]
    if len(parts) not in (6, 9):
        return None
    try:
        values: List[float] = [float(p) for p in parts]
    except ValueError:
        return None
    mag = np.array(values[6:9], dtype=float) if len(values) == 9 else None
    return IMUSample(
        t=t,
        acc_m_s2=np.array(values[0:3], dtype=float),
        gyr_rad_s=np.array(values[3:6], dtype=float),
        mag_uT=mag,
    )


class SerialIMU:
    """
    IMU streamed as text lines over a serial link (e.g. an MCU on a headset).
    A magnetometer is assumed only when `has_mag` is set; lines without mag
    columns are still accepted.
    """

    def __init__(self, name: str, port: str, baud: int = 115200, timeout: float = 0.2, has_mag: bool = False):
        self.name = name
        self.has_mag = bool(has_mag)
        try:
            self.ser = serial.Serial(port, baud, timeout=timeout)
        except serial.SerialException as e:
            raise SensorError(f"{name}: cannot open {port}: {e}") from e

    def read(self) -> Optional[IMUSample]:
        try:
            line = self.ser.readline()
        except serial.SerialException as e:
            raise SensorError(f"{self.name}: serial link lost: {e}") from e
        if not line:
            return None
        s = line.decode("utf-8", errors="ignore")
        sample = parse_imu_line(s, t=time.time())
        if sample is None:
            logger.debug("%s: skipped line %r", self.name, s)
        elif not self.has_mag:
            sample.mag_uT = None
        return sample

    def close(self) -> None:
        try:
            self.ser.close()
        except serial.SerialException:
            pass
