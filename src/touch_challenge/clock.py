"""Pausable countdown anchored to wall-clock time."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ClockReading:
    remaining_seconds: float
    expired: bool
    counting: bool


class ChallengeClock:
    """Countdown that only runs while the face is visible and the app is in the foreground.

    Remaining time is always ``limit - (now - start_timestamp)``. Pausing does
    not set a flag: each paused tick moves ``start_timestamp`` to ``now`` and
    shrinks ``limit`` to the time still left, so paused wall time is never
    counted and resuming continues from the same remaining value.
    """

    def __init__(self) -> None:
        self.limit: float = 0.0
        self.start_timestamp: Optional[float] = None
        self._remaining: float = 0.0

    @property
    def started(self) -> bool:
        return self.start_timestamp is not None

    @property
    def remaining_seconds(self) -> float:
        return self._remaining

    def start(self, limit_seconds: float, now: float) -> None:
        if limit_seconds <= 0:
            raise ValueError("Time limit must be positive")
        self.limit = float(limit_seconds)
        self.start_timestamp = now
        self._remaining = self.limit

    def reset(self, new_limit_seconds: float, now: float) -> None:
        self.start(new_limit_seconds, now)

    def tick(self, now: float, face_visible: bool, is_foreground: bool) -> ClockReading:
        if self.start_timestamp is None:
            raise RuntimeError("Clock has not been started")

        if face_visible and is_foreground:
            elapsed = now - self.start_timestamp
            self._remaining = self.limit - elapsed
            return ClockReading(remaining_seconds=self._remaining, expired=self._remaining <= 0, counting=True)

        # Freeze: re-anchor on the last counted remaining value.
        self.limit = self._remaining
        self.start_timestamp = now
        return ClockReading(remaining_seconds=self._remaining, expired=False, counting=False)
