"""
Motion sources: one per sensor channel, each owning its motion service.

A source keeps only the latest reading and a started flag. Observers are
told about every change. Handlers reach the source through a weak
reference, and a finalizer stops the service if the source is dropped
without close().
"""
from __future__ import annotations

import logging
import weakref
from typing import Callable, Optional, Protocol

from .motion import MotionReading, ReferenceFrame
from .motion_service import MotionHandler, MotionService
from .observable import Publisher

logger = logging.getLogger(__name__)

DEVICE_UPDATE_INTERVAL_S = 1.0 / 15.0


class MotionSource(Protocol):
    title: str

    @property
    def motion(self) -> Optional[MotionReading]:
        ...

    @property
    def is_started(self) -> bool:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def subscribe(self, observer: Callable[["MotionSource"], None]) -> Callable[[], None]:
        ...

    def close(self) -> None:
        ...


def _weak_handler(source) -> MotionHandler:
    ref = weakref.ref(source)

    def handler(motion: Optional[MotionReading], error: Optional[Exception]) -> None:
        target = ref()
        if target is None:
            return
        target._handle(motion, error)

    return handler


class DeviceMotionSource:
    """The host's own IMU: 15 Hz, x axis on magnetic north."""

    title = "Device"

    def __init__(self, service: MotionService):
        self.service = service
        self._motion: Optional[MotionReading] = None
        self._is_started = False
        self._changes: Publisher[DeviceMotionSource] = Publisher()
        self._finalizer = weakref.finalize(self, service.stop_updates)

    def _arm_finalizer(self) -> None:
        # close() detaches the guard; a restarted source needs a fresh one
        if not self._finalizer.alive:
            self._finalizer = weakref.finalize(self, self.service.stop_updates)

    @property
    def motion(self) -> Optional[MotionReading]:
        return self._motion

    @property
    def is_started(self) -> bool:
        return self._is_started

    def subscribe(self, observer: Callable[["DeviceMotionSource"], None]) -> Callable[[], None]:
        return self._changes.subscribe(observer)

    def start(self) -> None:
        self._arm_finalizer()
        self.service.start_updates(
            _weak_handler(self),
            interval=DEVICE_UPDATE_INTERVAL_S,
            reference_frame=ReferenceFrame.X_MAGNETIC_NORTH_Z_VERTICAL,
        )
        self._set_started(True)

    def stop(self) -> None:
        self.service.stop_updates()
        self._set_started(False)

    def close(self) -> None:
        self._finalizer()
        self._set_started(False)
        self._changes.clear()

    def __enter__(self) -> "DeviceMotionSource":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _set_started(self, value: bool) -> None:
        if self._is_started != value:
            self._is_started = value
            self._changes.notify(self)

    def _handle(self, motion: Optional[MotionReading], error: Optional[Exception]) -> None:
        if motion is not None:
            self._motion = motion
            self._changes.notify(self)
        elif error is not None:
            logger.error("device motion ran into an error: %s", error)
            self.stop()


class HeadphoneMotionSource:
    """IMU on the headset: service default rate and frame."""

    title = "Headphones"

    def __init__(self, service: MotionService):
        self.service = service
        self._motion: Optional[MotionReading] = None
        self._is_started = False
        self._changes: Publisher[HeadphoneMotionSource] = Publisher()
        self._finalizer = weakref.finalize(self, service.stop_updates)

    def _arm_finalizer(self) -> None:
        # close() detaches the guard; a restarted source needs a fresh one
        if not self._finalizer.alive:
            self._finalizer = weakref.finalize(self, self.service.stop_updates)

    @property
    def motion(self) -> Optional[MotionReading]:
        return self._motion

    @property
    def is_started(self) -> bool:
        return self._is_started

    def subscribe(self, observer: Callable[["HeadphoneMotionSource"], None]) -> Callable[[], None]:
        return self._changes.subscribe(observer)

    def start(self) -> None:
        self._arm_finalizer()
        self.service.start_updates(_weak_handler(self))
        self._set_started(True)

    def stop(self) -> None:
        self.service.stop_updates()
        self._set_started(False)

    def close(self) -> None:
        self._finalizer()
        self._set_started(False)
        self._changes.clear()

    def __enter__(self) -> "HeadphoneMotionSource":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _set_started(self, value: bool) -> None:
        if self._is_started != value:
            self._is_started = value
            self._changes.notify(self)

    def _handle(self, motion: Optional[MotionReading], error: Optional[Exception]) -> None:
        if motion is not None:
            self._motion = motion
            self._changes.notify(self)
        elif error is not None:
            logger.error("headphone motion ran into an error: %s", error)
            self.stop()
