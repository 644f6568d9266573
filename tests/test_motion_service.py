from __future__ import annotations

import math
import threading
import time

import numpy as np
import pytest

from conftest import FakeIMU, drain_until
from motion_demo.filters.base import EstimatorOutput
from motion_demo.filters.mahony import MahonyAHRS
from motion_demo.motion import MotionReading, ReferenceFrame
from motion_demo.motion_service import FusedMotionService, MainQueue, compute_reading, heading_deg
from motion_demo.quaternion import IDENTITY, q_from_axis_angle
from motion_demo.sensors.csv_reader import CSVReplay
from motion_demo.sensors.imu_base import G, IMUSample, SensorError
from motion_demo.sources import HeadphoneMotionSource


class Recorder:
    def __init__(self):
        self.calls = []
        self.threads = set()

    def __call__(self, reading, error):
        self.calls.append((reading, error))
        self.threads.add(threading.current_thread())

    @property
    def readings(self):
        return [r for r, _ in self.calls if r is not None]

    @property
    def errors(self):
        return [e for _, e in self.calls if e is not None]


def make_service(main_queue, device_factory, rate=200.0):
    return FusedMotionService(
        name="test",
        open_device=device_factory,
        main_queue=main_queue,
        make_estimator=lambda uses_mag: MahonyAHRS(rate, uses_mag=uses_mag),
        sample_rate_hz=rate,
    )


class TestMainQueue:

    def test_fifo_on_calling_thread(self):
        q = MainQueue()
        order = []
        for i in range(5):
            q.post(lambda i=i: order.append((i, threading.current_thread())))
        assert q.drain() == 5
        assert [i for i, _ in order] == [0, 1, 2, 3, 4]
        assert all(t is threading.current_thread() for _, t in order)

    def test_drain_limit(self):
        q = MainQueue()
        for _ in range(3):
            q.post(lambda: None)
        assert q.drain(max_items=2) == 2
        assert q.drain() == 1
        assert q.drain() == 0


class TestFusedMotionService:

    def test_start_returns_and_readings_arrive_on_main_thread(self, main_queue):
        dev = FakeIMU()
        svc = make_service(main_queue, lambda: dev)
        rec = Recorder()
        try:
            svc.start_updates(rec)
            assert drain_until(main_queue, lambda: len(rec.readings) >= 3)
        finally:
            svc.stop_updates()

        assert rec.errors == []
        assert rec.threads == {threading.current_thread()}
        r = rec.readings[-1]
        assert isinstance(r, MotionReading)
        assert r.gravity.z == pytest.approx(-1.0, abs=1e-3)
        assert r.heading is None
        assert r.magnetic_field is None
        assert dev.closed

    def test_no_delivery_after_stop(self, main_queue):
        dev = FakeIMU()
        svc = make_service(main_queue, lambda: dev)
        rec = Recorder()
        svc.start_updates(rec)
        # let the worker queue up callbacks, then stop before draining
        t_end = time.monotonic() + 2.0
        while dev.reads < 3 and time.monotonic() < t_end:
            time.sleep(0.005)
        svc.stop_updates()
        main_queue.drain()
        time.sleep(0.05)
        main_queue.drain()
        assert rec.calls == []
        assert not svc.is_active

    def test_stop_without_start_is_noop(self, main_queue):
        svc = make_service(main_queue, FakeIMU)
        svc.stop_updates()
        svc.stop_updates()
        assert not svc.is_active

    def test_restart_replaces_subscription(self, main_queue):
        svc = make_service(main_queue, FakeIMU)
        first, second = Recorder(), Recorder()
        try:
            svc.start_updates(first)
            svc.start_updates(second)
            assert drain_until(main_queue, lambda: len(second.readings) >= 2)
            n_first = len(first.calls)
            main_queue.drain()
            assert len(first.calls) == n_first
        finally:
            svc.stop_updates()

    def test_interval_throttles_publication(self, main_queue):
        dev = FakeIMU()
        svc = make_service(main_queue, lambda: dev)
        rec = Recorder()
        try:
            svc.start_updates(rec, interval=10.0)
            assert drain_until(main_queue, lambda: len(rec.readings) >= 1)
            t_end = time.monotonic() + 0.2
            while time.monotonic() < t_end:
                main_queue.drain()
                time.sleep(0.01)
        finally:
            svc.stop_updates()
        assert dev.reads > 5
        assert len(rec.readings) == 1

    def test_open_failure_is_reported_once(self, main_queue):
        def fail():
            raise SensorError("no such bus")

        svc = make_service(main_queue, fail)
        rec = Recorder()
        svc.start_updates(rec)
        assert drain_until(main_queue, lambda: len(rec.errors) == 1)
        time.sleep(0.05)
        main_queue.drain()
        assert len(rec.calls) == 1
        assert "no such bus" in str(rec.errors[0])
        svc.stop_updates()

    def test_read_failure_reports_error_and_closes_device(self, main_queue):
        dev = FakeIMU(fail_after=3)
        svc = make_service(main_queue, lambda: dev)
        rec = Recorder()
        svc.start_updates(rec)
        assert drain_until(main_queue, lambda: len(rec.errors) == 1)
        assert isinstance(rec.errors[0], SensorError)
        assert all(e is None for r, e in rec.calls if r is not None)
        svc.stop_updates()
        assert dev.closed

    def test_unexpected_read_failure_is_reported_as_sensor_error(self, main_queue):
        dev = FakeIMU()

        def broken_read():
            raise ZeroDivisionError("division by zero")

        dev.read = broken_read
        svc = make_service(main_queue, lambda: dev)
        rec = Recorder()
        svc.start_updates(rec)
        assert drain_until(main_queue, lambda: len(rec.errors) == 1)
        err = rec.errors[0]
        assert isinstance(err, SensorError)
        assert isinstance(err.__cause__, ZeroDivisionError)
        svc.stop_updates()
        assert dev.closed

    def test_unexpected_open_failure_is_reported(self, main_queue):
        def bad_baud():
            raise ValueError("Not a valid baudrate: -1")

        svc = make_service(main_queue, bad_baud)
        rec = Recorder()
        svc.start_updates(rec)
        assert drain_until(main_queue, lambda: len(rec.errors) == 1)
        assert isinstance(rec.errors[0], SensorError)
        assert "baudrate" in str(rec.errors[0])
        svc.stop_updates()

    def test_bad_replay_row_stops_the_source(self, main_queue, tmp_path):
        path = tmp_path / "broken.csv"
        path.write_text("t,ax,ay,az,gx,gy,gz\n0,abc,0,9.8,0,0,0\n", encoding="utf-8")
        svc = make_service(main_queue, lambda: CSVReplay("headphones", str(path)))
        source = HeadphoneMotionSource(svc)
        source.start()
        assert drain_until(main_queue, lambda: not source.is_started)
        assert source.motion is None
        source.close()

    def test_north_frame_needs_magnetometer(self, main_queue):
        dev = FakeIMU(has_mag=False)
        svc = make_service(main_queue, lambda: dev)
        rec = Recorder()
        svc.start_updates(rec, reference_frame=ReferenceFrame.X_MAGNETIC_NORTH_Z_VERTICAL)
        assert drain_until(main_queue, lambda: len(rec.errors) == 1)
        assert "magnetometer" in str(rec.errors[0])
        assert rec.readings == []
        svc.stop_updates()
        assert dev.closed

    def test_north_frame_with_magnetometer_reports_heading(self, main_queue):
        svc = make_service(main_queue, lambda: FakeIMU(has_mag=True))
        rec = Recorder()
        try:
            svc.start_updates(rec, reference_frame=ReferenceFrame.X_MAGNETIC_NORTH_Z_VERTICAL)
            assert drain_until(main_queue, lambda: len(rec.readings) >= 2)
        finally:
            svc.stop_updates()
        r = rec.readings[-1]
        assert r.heading is not None
        assert 0.0 <= r.heading < 360.0
        assert r.magnetic_field is not None
        assert r.magnetic_field.x == pytest.approx(20.0)


class TestComputeReading:

    def _sample(self, acc=(0.0, 0.0, G), gyr=(0.0, 0.0, 0.0), mag=None):
        return IMUSample(t=12.5, acc_m_s2=np.array(acc, dtype=float), gyr_rad_s=np.array(gyr, dtype=float),
                         mag_uT=None if mag is None else np.array(mag, dtype=float))

    def test_flat_and_still(self):
        est = EstimatorOutput(quat_wxyz=IDENTITY.copy(), bias_rad_s=np.zeros(3))
        r = compute_reading(self._sample(), est, ReferenceFrame.X_ARBITRARY_Z_VERTICAL)
        assert r.timestamp == 12.5
        assert (r.gravity.x, r.gravity.y, r.gravity.z) == pytest.approx((0.0, 0.0, -1.0))
        assert (r.user_acceleration.x, r.user_acceleration.y, r.user_acceleration.z) == pytest.approx((0.0, 0.0, 0.0), abs=1e-9)
        assert (r.attitude.pitch, r.attitude.roll, r.attitude.yaw) == pytest.approx((0.0, 0.0, 0.0))
        assert r.heading is None

    def test_user_acceleration_excludes_gravity(self):
        est = EstimatorOutput(quat_wxyz=IDENTITY.copy(), bias_rad_s=np.zeros(3))
        # 0.5 g extra on the accelerometer x axis
        r = compute_reading(self._sample(acc=(0.5 * G, 0.0, G)), est, ReferenceFrame.X_ARBITRARY_Z_VERTICAL)
        assert r.user_acceleration.x == pytest.approx(-0.5)
        assert r.user_acceleration.z == pytest.approx(0.0, abs=1e-9)

    def test_rotation_rate_is_bias_corrected(self):
        est = EstimatorOutput(quat_wxyz=IDENTITY.copy(), bias_rad_s=np.array([0.01, -0.02, 0.0]))
        r = compute_reading(self._sample(gyr=(0.11, 0.18, 0.5)), est, ReferenceFrame.X_ARBITRARY_Z_VERTICAL)
        assert (r.rotation_rate.x, r.rotation_rate.y, r.rotation_rate.z) == pytest.approx((0.1, 0.2, 0.5))

    def test_heading_only_in_north_frame_without_disturbance(self):
        q = q_from_axis_angle(np.array([0.0, 0.0, 1.0]), -math.pi / 2)
        ok = EstimatorOutput(quat_wxyz=q, bias_rad_s=np.zeros(3))
        disturbed = EstimatorOutput(quat_wxyz=q, bias_rad_s=np.zeros(3), mag_disturbed=True)
        s = self._sample(mag=(0.0, 20.0, -40.0))

        r = compute_reading(s, ok, ReferenceFrame.X_MAGNETIC_NORTH_Z_VERTICAL, s.mag_uT)
        assert r.heading == pytest.approx(0.0, abs=1e-6)
        assert compute_reading(s, disturbed, ReferenceFrame.X_MAGNETIC_NORTH_Z_VERTICAL).heading is None
        assert compute_reading(s, ok, ReferenceFrame.X_ARBITRARY_Z_VERTICAL).heading is None


@pytest.mark.parametrize("yaw_deg, heading", [(0.0, 270.0), (90.0, 180.0), (-90.0, 0.0), (180.0, 90.0)])
def test_heading_is_clockwise_from_north(yaw_deg, heading):
    q = q_from_axis_angle(np.array([0.0, 0.0, 1.0]), math.radians(yaw_deg))
    assert heading_deg(q) % 360.0 == pytest.approx(heading, abs=1e-6)


def test_heading_undefined_when_pointing_up():
    q = q_from_axis_angle(np.array([1.0, 0.0, 0.0]), math.pi / 2)
    assert heading_deg(q) is None
