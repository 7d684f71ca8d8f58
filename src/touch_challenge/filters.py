"""Noise suppression for per-frame touch signals."""

import logging
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)


class FilterConstants:
    """Default thresholds for touch filtering."""

    MIN_TOUCH_COUNT = 4
    SHAKE_THRESHOLD = 1.0
    MOTION_BUFFER_SIZE = 60


@dataclass(frozen=True)
class MotionReading:
    """One motion sensor reading (angular velocity per axis)."""

    x: float
    y: float
    z: float

    @property
    def magnitude(self) -> float:
        return abs(self.x) + abs(self.y) + abs(self.z)


class MotionGuard:
    """Reports device shaking from the peak of the most recent motion samples."""

    def __init__(self, shake_threshold: float = FilterConstants.SHAKE_THRESHOLD, capacity: int = FilterConstants.MOTION_BUFFER_SIZE):
        if capacity < 1:
            raise ValueError("Motion buffer capacity must be at least 1")
        self.shake_threshold = shake_threshold
        self._samples = np.zeros(capacity, dtype=float)
        self._index = 0
        self._is_shaking = False

    @property
    def capacity(self) -> int:
        return len(self._samples)

    @property
    def is_shaking(self) -> bool:
        return self._is_shaking

    def observe(self, sample: float) -> bool:
        """Record a motion magnitude, overwriting the oldest slot."""
        self._samples[self._index] = sample
        self._index = (self._index + 1) % len(self._samples)
        self._is_shaking = bool(self._samples.max() > self.shake_threshold)
        return self._is_shaking

    def observe_reading(self, reading: MotionReading) -> bool:
        return self.observe(reading.magnitude)

    def reset(self) -> None:
        self._samples.fill(0.0)
        self._index = 0
        self._is_shaking = False


class TouchCounter:
    """Counts consecutive touched frames; any touch-free frame resets the count."""

    def __init__(self, min_touch_count: int = FilterConstants.MIN_TOUCH_COUNT):
        if min_touch_count < 1:
            raise ValueError("min_touch_count must be at least 1")
        self.min_touch_count = min_touch_count
        self._count = 0

    @property
    def count(self) -> int:
        return self._count

    def update(self, touched: bool) -> bool:
        """Feed one frame. Returns True exactly when the count reaches the threshold."""
        if not touched:
            self._count = 0
            return False

        # Saturated at the threshold until reset().
        if self._count >= self.min_touch_count:
            return False
        self._count += 1
        if self._count == self.min_touch_count:
            logger.debug(f"Touch threshold reached ({self._count} consecutive frames)")
            return True
        return False

    def reset(self) -> None:
        self._count = 0
