from __future__ import annotations

import logging
import struct
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np
from smbus2 import SMBus

from .imu_base import G, IMUSample, SensorError

logger = logging.getLogger(__name__)

DEG2RAD = np.pi / 180.0


@dataclass
class ICM20948Settings:
    sample_rate_hz: float = 100.0
    accel_fs_g: int = 4      # 2,4,8,16
    gyro_fs_dps: int = 500   # 250,500,1000,2000
    dlpf_cfg: int = 3        # 0~7 (datasheet table)
    enable_mag: bool = True
    mag_mode: int = 0x08     # AK09916 continuous mode4 (100Hz)


class ICM20948I2C:
    """
    ICM-20948 (acc+gyro) with the AK09916 magnetometer reached through BYPASS mode.
    - main device i2c address: 0x68 or 0x69
    - magnetometer i2c address (bypass): 0x0C
    - outputs: accel [m/s^2], gyro [rad/s], mag [uT]
    """

    REG_BANK_SEL = 0x7F

    # bank 0
    REG_WHO_AM_I = 0x00
    REG_USER_CTRL = 0x03
    REG_PWR_MGMT_1 = 0x06
    REG_PWR_MGMT_2 = 0x07
    REG_INT_PIN_CFG = 0x0F
    REG_ACCEL_XOUT_H = 0x2D  # 0x2D..0x3A covers accel/gyro/temp

    WHO_AM_I_EXPECTED = 0xEA

    # bank 2
    REG_GYRO_SMPLRT_DIV = 0x00
    REG_GYRO_CONFIG_1 = 0x01
    REG_ACCEL_SMPLRT_DIV_1 = 0x10
    REG_ACCEL_SMPLRT_DIV_2 = 0x11
    REG_ACCEL_CONFIG = 0x14

    # AK09916
    MAG_ADDR = 0x0C
    MAG_REG_WIA2 = 0x01
    MAG_WIA2_EXPECTED = 0x09
    MAG_REG_ST1 = 0x10
    MAG_REG_HXL = 0x11
    MAG_REG_CNTL2 = 0x31
    MAG_REG_CNTL3 = 0x32
    MAG_UT_PER_LSB = 0.15

    ACC_LSB_PER_G = {2: 16384.0, 4: 8192.0, 8: 4096.0, 16: 2048.0}
    GYR_LSB_PER_DPS = {250: 131.0, 500: 65.5, 1000: 32.8, 2000: 16.4}

    def __init__(self, name: str, bus: int, addr: int, settings: Optional[ICM20948Settings] = None):
        self.name = name
        self.bus_id = int(bus)
        self.addr = int(addr)
        self.settings = settings or ICM20948Settings()
        if self.settings.accel_fs_g not in self.ACC_LSB_PER_G:
            raise ValueError(f"unsupported accel range: {self.settings.accel_fs_g} g")
        if self.settings.gyro_fs_dps not in self.GYR_LSB_PER_DPS:
            raise ValueError(f"unsupported gyro range: {self.settings.gyro_fs_dps} dps")
        self._acc_lsb_per_g = self.ACC_LSB_PER_G[self.settings.accel_fs_g]
        self._gyr_lsb_per_dps = self.GYR_LSB_PER_DPS[self.settings.gyro_fs_dps]
        self.has_mag = False

        try:
            self.bus = SMBus(self.bus_id)
        except OSError as e:
            raise SensorError(f"{name}: cannot open /dev/i2c-{self.bus_id}: {e}") from e
        try:
            self._init_device()
        except OSError as e:
            self.bus.close()
            raise SensorError(f"{name}: ICM-20948 at 0x{self.addr:02X} did not respond: {e}") from e

    def _write_u8(self, addr: int, reg: int, val: int) -> None:
        self.bus.write_byte_data(addr, reg, val & 0xFF)

    def _select_bank(self, bank: int) -> None:
        self._write_u8(self.addr, self.REG_BANK_SEL, (bank & 0x03) << 4)

    def _init_device(self) -> None:
        self._select_bank(0)
        who = self.bus.read_byte_data(self.addr, self.REG_WHO_AM_I)
        if who != self.WHO_AM_I_EXPECTED:
            # clones report other ids but behave the same
            logger.warning("%s: unexpected WHO_AM_I 0x%02X", self.name, who)

        # wake, auto clock
        self._write_u8(self.addr, self.REG_PWR_MGMT_1, 0x01)
        time.sleep(0.02)
        self._write_u8(self.addr, self.REG_PWR_MGMT_2, 0x00)

        self._select_bank(2)

        # base rate 1.125kHz
        div = max(0, int(round(1125.0 / float(self.settings.sample_rate_hz) - 1.0)))
        self._write_u8(self.addr, self.REG_GYRO_SMPLRT_DIV, min(div, 255))
        adiv = min(div, 4095)
        self._write_u8(self.addr, self.REG_ACCEL_SMPLRT_DIV_1, (adiv >> 8) & 0x0F)
        self._write_u8(self.addr, self.REG_ACCEL_SMPLRT_DIV_2, adiv & 0xFF)

        # DLPFCFG[5:3], FS_SEL[2:1], FCHOICE[0]
        fs_sel = {250: 0, 500: 1, 1000: 2, 2000: 3}[self.settings.gyro_fs_dps]
        self._write_u8(self.addr, self.REG_GYRO_CONFIG_1,
                       ((self.settings.dlpf_cfg & 0x07) << 3) | (fs_sel << 1) | 0x01)
        afs_sel = {2: 0, 4: 1, 8: 2, 16: 3}[self.settings.accel_fs_g]
        self._write_u8(self.addr, self.REG_ACCEL_CONFIG,
                       ((self.settings.dlpf_cfg & 0x07) << 3) | (afs_sel << 1) | 0x01)

        self._select_bank(0)

        if self.settings.enable_mag:
            self._init_mag()

    def _init_mag(self) -> None:
        # I2C master off, bypass on
        self._write_u8(self.addr, self.REG_USER_CTRL, 0x00)
        time.sleep(0.01)
        self._write_u8(self.addr, self.REG_INT_PIN_CFG, 0x02)
        time.sleep(0.01)

        wia2 = self.bus.read_byte_data(self.MAG_ADDR, self.MAG_REG_WIA2)
        if wia2 != self.MAG_WIA2_EXPECTED:
            logger.warning("%s: AK09916 not found (WIA2=0x%02X), running without magnetometer", self.name, wia2)
            return

        self._write_u8(self.MAG_ADDR, self.MAG_REG_CNTL3, 0x01)  # soft reset
        time.sleep(0.01)
        self._write_u8(self.MAG_ADDR, self.MAG_REG_CNTL2, self.settings.mag_mode & 0x1F)
        time.sleep(0.01)
        self.has_mag = True

    def _read_mag_uT(self) -> Optional[np.ndarray]:
        st1 = self.bus.read_byte_data(self.MAG_ADDR, self.MAG_REG_ST1)
        if (st1 & 0x01) == 0:
            return None
        # HXL..HZH + TMPS + ST2; reading ST2 releases the data lock
        b = bytes(self.bus.read_i2c_block_data(self.MAG_ADDR, self.MAG_REG_HXL, 8))
        if b[7] & 0x08:
            # overflow
            return None
        hx, hy, hz = struct.unpack("<hhh", b[:6])
        return np.array([hx, hy, hz], dtype=float) * self.MAG_UT_PER_LSB

    def read(self) -> IMUSample:
        t = time.time()
        try:
            self._select_bank(0)
            b = bytes(self.bus.read_i2c_block_data(self.addr, self.REG_ACCEL_XOUT_H, 12))
            mag = self._read_mag_uT() if self.has_mag else None
        except OSError as e:
            raise SensorError(f"{self.name}: i2c read failed: {e}") from e

        ax, ay, az, gx, gy, gz = struct.unpack(">hhhhhh", b)
        acc = np.array([ax, ay, az], dtype=float) / self._acc_lsb_per_g * G
        gyr = np.array([gx, gy, gz], dtype=float) / self._gyr_lsb_per_dps * DEG2RAD
        return IMUSample(t=t, acc_m_s2=acc, gyr_rad_s=gyr, mag_uT=mag)

    def close(self) -> None:
        try:
            self.bus.close()
        except OSError:
            pass
