"""
Shared fixtures: a stub motion service, fake IMUs and reading factories.
No test touches real hardware.
"""
from __future__ import annotations

import time
from typing import List, Optional, Tuple

import numpy as np
import pytest

from motion_demo.motion import Attitude, MotionReading, ReferenceFrame, Vector3
from motion_demo.motion_service import MainQueue
from motion_demo.sensors.imu_base import G, IMUSample, SensorError


class StubMotionService:
    """Records subscriptions and lets the test deliver callbacks by hand."""

    def __init__(self) -> None:
        self.handler = None
        self.start_calls: List[Tuple[Optional[float], Optional[ReferenceFrame]]] = []
        self.stop_calls = 0
        self.delivered = 0

    @property
    def is_active(self) -> bool:
        return self.handler is not None

    def start_updates(self, handler, interval=None, reference_frame=None) -> None:
        self.handler = handler
        self.start_calls.append((interval, reference_frame))

    def stop_updates(self) -> None:
        self.stop_calls += 1
        self.handler = None

    def deliver(self, reading=None, error=None) -> bool:
        if self.handler is None:
            return False
        self.delivered += 1
        self.handler(reading, error)
        return True


class FakeIMU:
    """Lies flat and still. Can be told to fail after a number of reads."""

    def __init__(self, name: str = "fake", has_mag: bool = False, fail_after: Optional[int] = None):
        self.name = name
        self.has_mag = has_mag
        self.fail_after = fail_after
        self.reads = 0
        self.closed = False

    def read(self) -> IMUSample:
        if self.fail_after is not None and self.reads >= self.fail_after:
            raise SensorError(f"{self.name}: unplugged")
        self.reads += 1
        return IMUSample(
            t=time.time(),
            acc_m_s2=np.array([0.0, 0.0, G]),
            gyr_rad_s=np.zeros(3),
            mag_uT=np.array([20.0, 0.0, -40.0]) if self.has_mag else None,
        )

    def close(self) -> None:
        self.closed = True


def make_reading(t: float = 0.0, pitch: float = 0.1, roll: float = -0.2, yaw: float = 0.3,
                 heading: Optional[float] = 45.0, with_field: bool = True) -> MotionReading:
    return MotionReading(
        timestamp=t,
        attitude=Attitude(pitch=pitch, roll=roll, yaw=yaw, quaternion=(1.0, 0.0, 0.0, 0.0)),
        rotation_rate=Vector3(0.5, -0.25, 1.5),
        user_acceleration=Vector3(0.02, -0.4, 1.6),
        gravity=Vector3(0.0, -0.04, -0.99),
        magnetic_field=Vector3(21.5, -3.2, -42.0) if with_field else None,
        heading=heading,
    )


def drain_until(main_queue: MainQueue, predicate, timeout: float = 3.0) -> bool:
    t_end = time.monotonic() + timeout
    while time.monotonic() < t_end:
        main_queue.drain()
        if predicate():
            return True
        time.sleep(0.005)
    return False


@pytest.fixture
def stub_service() -> StubMotionService:
    return StubMotionService()


@pytest.fixture
def main_queue() -> MainQueue:
    return MainQueue()


@pytest.fixture
def reading_factory():
    return make_reading
