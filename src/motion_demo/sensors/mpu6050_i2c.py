from __future__ import annotations

import struct
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np
from smbus2 import SMBus

from .imu_base import G, IMUSample, SensorError

DEG2RAD = np.pi / 180.0


@dataclass
class MPU6050Settings:
    sample_rate_hz: float = 100.0
    accel_fs_g: int = 4      # 2,4,8,16
    gyro_fs_dps: int = 500   # 250,500,1000,2000
    dlpf_cfg: int = 3        # 0~6 (0:260Hz, 3:44Hz)


class MPU6050I2C:
    """
    MPU-6050 (acc+gyro, no magnetometer).
    - i2c address: 0x68 (AD0 low) or 0x69 (AD0 high)
    """

    REG_SMPLRT_DIV = 0x19
    REG_CONFIG = 0x1A
    REG_GYRO_CONFIG = 0x1B
    REG_ACCEL_CONFIG = 0x1C
    REG_ACCEL_XOUT_H = 0x3B
    REG_PWR_MGMT_1 = 0x6B

    ACC_LSB_PER_G = {2: 16384.0, 4: 8192.0, 8: 4096.0, 16: 2048.0}
    GYR_LSB_PER_DPS = {250: 131.0, 500: 65.5, 1000: 32.8, 2000: 16.4}

    has_mag = False

    def __init__(self, name: str, bus: int, addr: int, settings: Optional[MPU6050Settings] = None):
        self.name = name
        self.bus_id = int(bus)
        self.addr = int(addr)
        self.settings = settings or MPU6050Settings()
        if self.settings.accel_fs_g not in self.ACC_LSB_PER_G:
            raise ValueError(f"unsupported accel range: {self.settings.accel_fs_g} g")
        if self.settings.gyro_fs_dps not in self.GYR_LSB_PER_DPS:
            raise ValueError(f"unsupported gyro range: {self.settings.gyro_fs_dps} dps")

        try:
            self.bus = SMBus(self.bus_id)
        except OSError as e:
            raise SensorError(f"{name}: cannot open /dev/i2c-{self.bus_id}: {e}") from e
        try:
            self._init_device()
        except OSError as e:
            self.bus.close()
            raise SensorError(f"{name}: MPU-6050 at 0x{self.addr:02X} did not respond: {e}") from e

    def _init_device(self) -> None:
        self.bus.write_byte_data(self.addr, self.REG_PWR_MGMT_1, 0x00)
        time.sleep(0.02)
        self.bus.write_byte_data(self.addr, self.REG_CONFIG, self.settings.dlpf_cfg & 0x07)

        # 1kHz internal rate with DLPF on
        div = max(0, int(round(1000.0 / float(self.settings.sample_rate_hz) - 1.0)))
        self.bus.write_byte_data(self.addr, self.REG_SMPLRT_DIV, min(div, 255))

        fs_sel = {250: 0, 500: 1, 1000: 2, 2000: 3}[self.settings.gyro_fs_dps]
        self.bus.write_byte_data(self.addr, self.REG_GYRO_CONFIG, fs_sel << 3)
        afs_sel = {2: 0, 4: 1, 8: 2, 16: 3}[self.settings.accel_fs_g]
        self.bus.write_byte_data(self.addr, self.REG_ACCEL_CONFIG, afs_sel << 3)

    def read(self) -> IMUSample:
        t = time.time()
        try:
            b = bytes(self.bus.read_i2c_block_data(self.addr, self.REG_ACCEL_XOUT_H, 14))
        except OSError as e:
            raise SensorError(f"{self.name}: i2c read failed: {e}") from e

        ax, ay, az, _temp, gx, gy, gz = struct.unpack(">hhhhhhh", b)
        acc_lsb = self.ACC_LSB_PER_G[self.settings.accel_fs_g]
        gyr_lsb = self.GYR_LSB_PER_DPS[self.settings.gyro_fs_dps]
        return IMUSample(
            t=t,
            acc_m_s2=np.array([ax, ay, az], dtype=float) / acc_lsb * G,
            gyr_rad_s=np.array([gx, gy, gz], dtype=float) / gyr_lsb * DEG2RAD,
            mag_uT=None,
        )

    def close(self) -> None:
        try:
            self.bus.close()
        except OSError:
            pass
