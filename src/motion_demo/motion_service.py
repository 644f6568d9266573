"""
Host-side motion service: samples an IMU on a worker thread, fuses it into
MotionReading snapshots and hands them to a subscriber through the main queue.
"""
from __future__ import annotations

import logging
import math
import queue
import threading
import time
from typing import Callable, Optional, Protocol

import numpy as np

from .filters.base import AttitudeEstimator, EstimatorOutput
from .motion import Attitude, MotionReading, ReferenceFrame, Vector3
from .quaternion import q_rotate, q_rotate_inv, q_to_attitude
from .sensors.imu_base import G, IMUDevice, IMUSample, SensorError
from .utils.axis import remap_sample

logger = logging.getLogger(__name__)

MotionHandler = Callable[[Optional[MotionReading], Optional[Exception]], None]


class MotionService(Protocol):
    def start_updates(
        self,
        handler: MotionHandler,
        interval: Optional[float] = None,
        reference_frame: Optional[ReferenceFrame] = None,
    ) -> None:
        ...

    def stop_updates(self) -> None:
        ...


class MainQueue:
    """Serial execution context. Any thread may post; callbacks run in drain() on the caller's thread."""

    def __init__(self) -> None:
        self._q: "queue.SimpleQueue[Callable[[], None]]" = queue.SimpleQueue()

    def post(self, fn: Callable[[], None]) -> None:
        self._q.put(fn)

    def drain(self, max_items: Optional[int] = None) -> int:
        n = 0
        while max_items is None or n < max_items:
            try:
                fn = self._q.get_nowait()
            except queue.Empty:
                break
            fn()
            n += 1
        return n


def heading_deg(q_wb: np.ndarray) -> Optional[float]:
    """Compass bearing of the body +y axis, clockwise from world +x (north)."""
    fwd = q_rotate(q_wb, np.array([0.0, 1.0, 0.0]))
    if math.hypot(fwd[0], fwd[1]) < 1e-6:
        return None
    # world y points west; rounding keeps -1e-15 from wrapping to 360
    return round(math.degrees(math.atan2(-fwd[1], fwd[0])), 9) % 360.0


def compute_reading(
    sample: IMUSample,
    est: EstimatorOutput,
    frame: ReferenceFrame,
    mag_uT: Optional[np.ndarray] = None,
) -> MotionReading:
    q = est.quat_wxyz
    pitch, roll, yaw = q_to_attitude(q)

    # device-motion sign convention: lying flat, face up, gravity reads (0, 0, -1) g
    gravity = q_rotate_inv(q, np.array([0.0, 0.0, -1.0]))
    total = -np.asarray(sample.acc_m_s2, dtype=float) / G

    heading = None
    if frame.needs_mag and not est.mag_disturbed:
        heading = heading_deg(q)

    return MotionReading(
        timestamp=float(sample.t),
        attitude=Attitude(pitch=pitch, roll=roll, yaw=yaw, quaternion=tuple(float(c) for c in q)),
        rotation_rate=Vector3.from_array(np.asarray(sample.gyr_rad_s) - est.bias_rad_s),
        user_acceleration=Vector3.from_array(total - gravity),
        gravity=Vector3.from_array(gravity),
        magnetic_field=None if mag_uT is None else Vector3.from_array(mag_uT),
        heading=heading,
    )


class FusedMotionService:
    """
    MotionService over one IMU.

    start_updates() returns at once; the device is opened on the worker
    thread. Every handler call goes through the main queue and is dropped
    if the subscription it belongs to has since been stopped or replaced.
    """

    def __init__(
        self,
        name: str,
        open_device: Callable[[], IMUDevice],
        main_queue: MainQueue,
        make_estimator: Callable[[bool], AttitudeEstimator],
        sample_rate_hz: float,
        axis_map: Optional[np.ndarray] = None,
        axis_sign: Optional[np.ndarray] = None,
        join_timeout_s: float = 1.0,
    ):
        self.name = name
        self.open_device = open_device
        self.main_queue = main_queue
        self.make_estimator = make_estimator
        self.sample_rate_hz = float(sample_rate_hz)
        self.axis_map = np.array([0, 1, 2]) if axis_map is None else np.asarray(axis_map, dtype=int)
        self.axis_sign = np.array([1, 1, 1]) if axis_sign is None else np.asarray(axis_sign, dtype=int)
        self.join_timeout_s = join_timeout_s

        self._lock = threading.Lock()
        self._generation = 0
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_active(self) -> bool:
        t = self._thread
        return t is not None and t.is_alive()

    def start_updates(
        self,
        handler: MotionHandler,
        interval: Optional[float] = None,
        reference_frame: Optional[ReferenceFrame] = None,
    ) -> None:
        self.stop_updates()
        frame = reference_frame or ReferenceFrame.X_ARBITRARY_Z_VERTICAL
        with self._lock:
            self._generation += 1
            gen = self._generation
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._thread = threading.Thread(
                target=self._run,
                args=(gen, handler, interval, frame, stop_event),
                name=f"motion-{self.name}",
                daemon=True,
            )
            self._thread.start()
        logger.info("%s: updates started (interval=%s, frame=%s)", self.name, interval, frame.value)

    def stop_updates(self) -> None:
        with self._lock:
            self._generation += 1
            stop_event, thread = self._stop_event, self._thread
            self._stop_event = None
            self._thread = None
        if stop_event is None:
            return
        stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(self.join_timeout_s)
            if thread.is_alive():
                logger.warning("%s: worker did not exit within %.1fs", self.name, self.join_timeout_s)
        logger.info("%s: updates stopped", self.name)

    def _post(self, gen: int, handler: MotionHandler,
              reading: Optional[MotionReading], error: Optional[Exception]) -> None:
        def deliver() -> None:
            if gen != self._generation:
                return
            handler(reading, error)
        self.main_queue.post(deliver)

    def _run(self, gen: int, handler: MotionHandler, interval: Optional[float],
             frame: ReferenceFrame, stop_event: threading.Event) -> None:
        try:
            device = self.open_device()
        except Exception as e:
            self._post(gen, handler, None, self._as_sensor_error(e))
            return

        try:
            if frame.needs_mag and not device.has_mag:
                raise SensorError(f"{self.name}: reference frame {frame.value} requires a magnetometer")

            estimator = self.make_estimator(frame.needs_mag)
            period = 1.0 / self.sample_rate_hz
            last_pub: Optional[float] = None
            last_mag: Optional[np.ndarray] = None

            while not stop_event.is_set():
                t_loop = time.monotonic()
                raw = device.read()
                if raw is None:
                    stop_event.wait(min(period, 0.01))
                    continue
                s = remap_sample(raw, self.axis_map, self.axis_sign)
                if s.mag_uT is not None:
                    last_mag = s.mag_uT
                out = estimator.update(s.gyr_rad_s, s.acc_m_s2, s.mag_uT)

                if interval is None or last_pub is None or (t_loop - last_pub) >= interval:
                    last_pub = t_loop
                    self._post(gen, handler, compute_reading(s, out, frame, last_mag), None)

                # pacing
                remaining = period - (time.monotonic() - t_loop)
                if remaining > 0.0:
                    stop_event.wait(remaining)
        except Exception as e:
            logger.debug("%s: worker ending on %s", self.name, type(e).__name__)
            self._post(gen, handler, None, self._as_sensor_error(e))
        finally:
            device.close()

    def _as_sensor_error(self, e: Exception) -> SensorError:
        if isinstance(e, SensorError):
            return e
        logger.exception("%s: unexpected worker failure", self.name)
        err = SensorError(f"{self.name}: {type(e).__name__}: {e}")
        err.__cause__ = e
        return err
