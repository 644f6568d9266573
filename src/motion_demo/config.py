from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import yaml

DEVICE_DRIVERS = ("icm20948", "mpu6050", "replay")
HEADPHONE_DRIVERS = ("serial", "replay")
ESTIMATORS = ("vqf", "mahony")


def _np3i(x: List[int], what: str) -> np.ndarray:
    a = np.asarray(x, dtype=int).reshape(3)
    if what == "axis_map" and sorted(a.tolist()) != [0, 1, 2]:
        raise ValueError(f"config.yaml: axis_map must be a permutation of [0, 1, 2], got {a.tolist()}")
    if what == "axis_sign" and not all(v in (-1, 1) for v in a.tolist()):
        raise ValueError(f"config.yaml: axis_sign entries must be 1 or -1, got {a.tolist()}")
    return a


def _addr(x: Any) -> int:
    return int(x, 0) if isinstance(x, str) else int(x)


@dataclass
class DeviceSensorConfig:
    driver: str = "icm20948"
    i2c_bus: int = 1
    i2c_addr: int = 0x68
    sample_rate_hz: float = 100.0
    axis_map: np.ndarray = field(default_factory=lambda: np.array([0, 1, 2]))
    axis_sign: np.ndarray = field(default_factory=lambda: np.array([1, 1, 1]))
    csv: Optional[str] = None
    loop: bool = True


@dataclass
class HeadphoneSensorConfig:
    driver: str = "serial"
    port: str = "/dev/ttyUSB0"
    baud: int = 115200
    has_mag: bool = False
    sample_rate_hz: float = 50.0
    axis_map: np.ndarray = field(default_factory=lambda: np.array([0, 1, 2]))
    axis_sign: np.ndarray = field(default_factory=lambda: np.array([1, 1, 1]))
    csv: Optional[str] = None
    loop: bool = True


@dataclass
class MahonyConfig:
    kp: float = 1.5
    ki: float = 0.05


@dataclass
class FiltersConfig:
    attitude_estimator: str = "vqf"  # vqf | mahony
    mahony: MahonyConfig = field(default_factory=MahonyConfig)


@dataclass
class ScreenConfig:
    width: int = 480
    height: int = 800
    fps: int = 60


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_dir: Optional[str] = None


@dataclass
class DashboardConfig:
    device: DeviceSensorConfig = field(default_factory=DeviceSensorConfig)
    headphones: HeadphoneSensorConfig = field(default_factory=HeadphoneSensorConfig)
    filters: FiltersConfig = field(default_factory=FiltersConfig)
    screen: ScreenConfig = field(default_factory=ScreenConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _check_choice(block: str, value: str, choices: tuple) -> str:
    v = value.lower().strip()
    if v not in choices:
        raise ValueError(f"config.yaml: {block} must be one of {', '.join(choices)}, got {value!r}")
    return v


def _check_rate(block: str, value: Any) -> float:
    r = float(value)
    if r <= 0.0:
        raise ValueError(f"config.yaml: {block}.sample_rate_hz must be > 0")
    return r


def parse_config(raw: Optional[Dict[str, Any]]) -> DashboardConfig:
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ValueError("config.yaml: top level must be a mapping")

    dv = raw.get("device", {}) or {}
    device = DeviceSensorConfig(
        driver=_check_choice("device.driver", str(dv.get("driver", "icm20948")), DEVICE_DRIVERS),
        i2c_bus=int(dv.get("i2c_bus", 1)),
        i2c_addr=_addr(dv.get("i2c_addr", 0x68)),
        sample_rate_hz=_check_rate("device", dv.get("sample_rate_hz", 100.0)),
        axis_map=_np3i(dv.get("axis_map", [0, 1, 2]), "axis_map"),
        axis_sign=_np3i(dv.get("axis_sign", [1, 1, 1]), "axis_sign"),
        csv=dv.get("csv"),
        loop=bool(dv.get("loop", True)),
    )
    if device.driver == "replay" and not device.csv:
        raise ValueError("config.yaml: device.csv is required for the replay driver")

    hp = raw.get("headphones", {}) or {}
    headphones = HeadphoneSensorConfig(
        driver=_check_choice("headphones.driver", str(hp.get("driver", "serial")), HEADPHONE_DRIVERS),
        port=str(hp.get("port", "/dev/ttyUSB0")),
        baud=int(hp.get("baud", 115200)),
        has_mag=bool(hp.get("has_mag", False)),
        sample_rate_hz=_check_rate("headphones", hp.get("sample_rate_hz", 50.0)),
        axis_map=_np3i(hp.get("axis_map", [0, 1, 2]), "axis_map"),
        axis_sign=_np3i(hp.get("axis_sign", [1, 1, 1]), "axis_sign"),
        csv=hp.get("csv"),
        loop=bool(hp.get("loop", True)),
    )
    if headphones.driver == "replay" and not headphones.csv:
        raise ValueError("config.yaml: headphones.csv is required for the replay driver")

    fr = raw.get("filters", {}) or {}
    mh = fr.get("mahony", {}) or {}
    filters = FiltersConfig(
        attitude_estimator=_check_choice("filters.attitude_estimator",
                                         str(fr.get("attitude_estimator", "vqf")), ESTIMATORS),
        mahony=MahonyConfig(kp=float(mh.get("kp", 1.5)), ki=float(mh.get("ki", 0.05))),
    )

    sc = raw.get("screen", {}) or {}
    screen = ScreenConfig(
        width=int(sc.get("width", 480)),
        height=int(sc.get("height", 800)),
        fps=int(sc.get("fps", 60)),
    )

    lg = raw.get("logging", {}) or {}
    logging = LoggingConfig(
        level=str(lg.get("level", "INFO")).upper(),
        log_dir=lg.get("log_dir"),
    )

    return DashboardConfig(
        device=device,
        headphones=headphones,
        filters=filters,
        screen=screen,
        logging=logging,
    )


def load_config(path: str) -> DashboardConfig:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    cfg = parse_config(raw)

    # replay files are relative to the config file
    base = os.path.dirname(os.path.abspath(path))
    for sensor in (cfg.device, cfg.headphones):
        if sensor.csv and not os.path.isabs(sensor.csv):
            sensor.csv = os.path.join(base, sensor.csv)
    return cfg
