from __future__ import annotations

import logging
from typing import Callable

from .config import DashboardConfig, DeviceSensorConfig, FiltersConfig, HeadphoneSensorConfig
from .filters.base import AttitudeEstimator
from .filters.mahony import MahonyAHRS, MahonyParams
from .filters.vqf_wrapper import VQFWrapper
from .motion_service import FusedMotionService, MainQueue
from .sensors.csv_reader import CSVReplay
from .sensors.icm20948_i2c import ICM20948I2C, ICM20948Settings
from .sensors.imu_base import IMUDevice
from .sensors.mpu6050_i2c import MPU6050I2C, MPU6050Settings
from .sensors.serial_imu import SerialIMU

logger = logging.getLogger(__name__)


def estimator_factory(filters: FiltersConfig, sample_rate_hz: float) -> Callable[[bool], AttitudeEstimator]:
    kind = filters.attitude_estimator

    def make(uses_mag: bool) -> AttitudeEstimator:
        if kind == "mahony":
            params = MahonyParams(kp=filters.mahony.kp, ki=filters.mahony.ki)
            return MahonyAHRS(sample_rate_hz, params=params, uses_mag=uses_mag)
        return VQFWrapper(sample_rate_hz, uses_mag=uses_mag)

    return make


def device_opener(sc: DeviceSensorConfig, name: str = "device") -> Callable[[], IMUDevice]:
    def open_device() -> IMUDevice:
        logger.debug("%s: opening %s", name, sc.driver)
        if sc.driver == "replay":
            return CSVReplay(name, sc.csv, loop=sc.loop)
        if sc.driver == "mpu6050":
            return MPU6050I2C(name, bus=sc.i2c_bus, addr=sc.i2c_addr,
                              settings=MPU6050Settings(sample_rate_hz=sc.sample_rate_hz))
        return ICM20948I2C(name, bus=sc.i2c_bus, addr=sc.i2c_addr,
                           settings=ICM20948Settings(sample_rate_hz=sc.sample_rate_hz, enable_mag=True))

    return open_device


def headphone_opener(hc: HeadphoneSensorConfig, name: str = "headphones") -> Callable[[], IMUDevice]:
    def open_device() -> IMUDevice:
        logger.debug("%s: opening %s", name, hc.driver)
        if hc.driver == "replay":
            return CSVReplay(name, hc.csv, loop=hc.loop)
        return SerialIMU(name, port=hc.port, baud=hc.baud, has_mag=hc.has_mag)

    return open_device


def device_motion_service(cfg: DashboardConfig, main_queue: MainQueue) -> FusedMotionService:
    sc = cfg.device
    return FusedMotionService(
        name="device",
        open_device=device_opener(sc),
        main_queue=main_queue,
        make_estimator=estimator_factory(cfg.filters, sc.sample_rate_hz),
        sample_rate_hz=sc.sample_rate_hz,
        axis_map=sc.axis_map,
        axis_sign=sc.axis_sign,
    )


def headphone_motion_service(cfg: DashboardConfig, main_queue: MainQueue) -> FusedMotionService:
    hc = cfg.headphones
    return FusedMotionService(
        name="headphones",
        open_device=headphone_opener(hc),
        main_queue=main_queue,
        make_estimator=estimator_factory(cfg.filters, hc.sample_rate_hz),
        sample_rate_hz=hc.sample_rate_hz,
        axis_map=hc.axis_map,
        axis_sign=hc.axis_sign,
    )
