"""Motion sensor and foreground signals consumed by the controller."""

import logging
from typing import Callable, Optional, Protocol

from .errors import SensorUnavailable
from .filters import MotionReading

logger = logging.getLogger(__name__)

MotionCallback = Callable[[MotionReading], None]


class MotionSensor(Protocol):
    def start(self, callback: MotionCallback) -> None: ...

    def stop(self) -> None: ...


class RemoteMotionSensor:
    """Motion sensor fed with readings pushed by a connected front-end.

    Readings pushed while the sensor is stopped are dropped.
    """

    def __init__(self) -> None:
        self._callback: Optional[MotionCallback] = None
        self.available = True

    @property
    def running(self) -> bool:
        return self._callback is not None

    def start(self, callback: MotionCallback) -> None:
        if not self.available:
            raise SensorUnavailable("Front-end reported no motion sensor")
        self._callback = callback
        logger.debug("Remote motion sensor started")

    def stop(self) -> None:
        self._callback = None

    def push(self, x: float, y: float, z: float) -> None:
        if self._callback is not None:
            self._callback(MotionReading(float(x), float(y), float(z)))


class ForegroundSignal:
    """Whether the player is looking at the challenge (window / tab visible)."""

    def __init__(self, visible: bool = True) -> None:
        self.visible = visible

    def set_visible(self, visible: bool) -> None:
        if visible != self.visible:
            logger.info(f"Foreground {'regained' if visible else 'lost'}")
        self.visible = visible

    def __call__(self) -> bool:
        return self.visible
