from __future__ import annotations

import csv
import time
from typing import Dict, List, Optional

import numpy as np

from .imu_base import IMUSample, SensorError


def _vec(row: Dict[str, str], keys: List[str]) -> Optional[np.ndarray]:
    vals = [row.get(k) for k in keys]
    if any(v in ("", None) for v in vals):
        return None
    return np.array([float(v) for v in vals], dtype=float)


class CSVReplay:
    """
    Replays a recorded IMU stream as if it were a live device.

    Format:
        t,ax,ay,az,gx,gy,gz[,mx,my,mz]

    Units expected:
        - acc: m/s^2
        - gyro: rad/s
        - mag: uT (optional, per row)

    Sample timestamps are taken at read time; the recorded `t` column only
    orders the rows.
    """

    def __init__(self, name: str, csv_path: str, loop: bool = True):
        self.name = name
        self.csv_path = csv_path
        self.loop = loop
        self._rows = self._load_rows()
        if not self._rows:
            raise SensorError(f"{name}: replay file is empty: {csv_path}")
        self.has_mag = all(r.mag_uT is not None for r in self._rows)
        self._i = 0

    def _load_rows(self) -> List[IMUSample]:
        try:
            with open(self.csv_path, "r", newline="", encoding="utf-8") as f:
                rows = list(csv.DictReader(f))
        except OSError as e:
            raise SensorError(f"{self.name}: cannot open {self.csv_path}: {e}") from e

        samples: List[IMUSample] = []
        for n, row in enumerate(rows, start=2):
            try:
                acc = _vec(row, ["ax", "ay", "az"])
                gyr = _vec(row, ["gx", "gy", "gz"])
                mag = _vec(row, ["mx", "my", "mz"])
                t = float(row.get("t") or 0.0)
            except ValueError as e:
                raise SensorError(f"{self.name}: {self.csv_path}:{n}: {e}") from e
            if acc is None or gyr is None:
                raise SensorError(f"{self.name}: {self.csv_path}:{n}: missing accel/gyro columns")
            samples.append(IMUSample(t=t, acc_m_s2=acc, gyr_rad_s=gyr, mag_uT=mag))
        samples.sort(key=lambda s: s.t)
        return samples

    def read(self) -> IMUSample:
        if self._i >= len(self._rows):
            if not self.loop:
                raise SensorError(f"{self.name}: replay finished")
            self._i = 0
        s = self._rows[self._i]
        self._i += 1
        return IMUSample(
            t=time.time(),
            acc_m_s2=s.acc_m_s2.copy(),
            gyr_rad_s=s.gyr_rad_s.copy(),
            mag_uT=None if s.mag_uT is None else s.mag_uT.copy(),
        )

    def close(self) -> None:
        """Rows are held in memory; there is no file handle to release."""
