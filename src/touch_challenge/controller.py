"""Challenge lifecycle: attempt start and stop, analysis and countdown cycles, outcomes."""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Iterable, List, Optional

from .body_parts import SegmentationOptions, SegmentationProvider
from .camera import FrameSource
from .classifier import TouchClassifier, TouchResult
from .clock import ChallengeClock, ClockReading
from .config import ChallengeConfig
from .errors import ChallengeError, ClassificationFailure, InputUnavailable, InvalidStateError, SensorUnavailable
from .filters import MotionGuard, MotionReading, TouchCounter
from .progress import ProgressStore
from .sensors import MotionSensor
from .tiers import format_duration

logger = logging.getLogger(__name__)


class ChallengeState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    RUNNING = "running"
    PAUSED_NO_FACE = "paused_no_face"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    STOPPED = "stopped"


IN_ATTEMPT_STATES = frozenset({ChallengeState.RUNNING, ChallengeState.PAUSED_NO_FACE})
ACTIVE_STATES = IN_ATTEMPT_STATES | {ChallengeState.LOADING}
TERMINAL_STATES = frozenset({ChallengeState.SUCCEEDED, ChallengeState.FAILED, ChallengeState.STOPPED})


class ChallengeListener:
    """Receives challenge lifecycle events. Override what you need."""

    def on_loading_started(self) -> None:
        pass

    def on_running_started(self) -> None:
        pass

    def on_tick(self, remaining_seconds: float) -> None:
        pass

    def on_face_lost(self) -> None:
        pass

    def on_face_regained(self) -> None:
        pass

    def on_shake_detected(self, shaking: bool) -> None:
        pass

    def on_succeeded(self, new_level: int, reward_asset: str, all_cleared: bool) -> None:
        pass

    def on_failed(self, reward_asset: str) -> None:
        pass

    def on_stopped(self, error: Optional[ChallengeError]) -> None:
        pass


class LoggingListener(ChallengeListener):
    """Writes lifecycle events to the log."""

    def on_loading_started(self) -> None:
        logger.info("Loading camera and segmentation model...")

    def on_running_started(self) -> None:
        logger.info("Challenge started - don't touch your face!")

    def on_tick(self, remaining_seconds: float) -> None:
        logger.info(f"Remaining {format_duration(remaining_seconds, for_countdown=True)}")

    def on_face_lost(self) -> None:
        logger.info("No face - countdown paused")

    def on_face_regained(self) -> None:
        logger.info("Face found - countdown resumed")

    def on_shake_detected(self, shaking: bool) -> None:
        if shaking:
            logger.info("Please don't move your device.")

    def on_succeeded(self, new_level: int, reward_asset: str, all_cleared: bool) -> None:
        logger.info(f"{'All Cleared!' if all_cleared else 'Cleared!'} Level {new_level}, reward {reward_asset}")

    def on_failed(self, reward_asset: str) -> None:
        logger.info("Failed! You touched your face.")

    def on_stopped(self, error: Optional[ChallengeError]) -> None:
        if error:
            logger.warning(f"Challenge stopped: {error}")
        else:
            logger.info("Challenge stopped")


class ChallengeController:
    """Owns one challenge at a time and everything scoped to the current attempt.

    All state is read and written on the event loop thread only. Camera open,
    frame reads and segmentation run in worker threads and are the only
    suspension points of an attempt. Every attempt gets a new generation
    number so results from cycles started before a stop are dropped instead of
    being applied to a later attempt.
    """

    def __init__(
        self,
        frame_source: FrameSource,
        segmenter: SegmentationProvider,
        store: ProgressStore,
        config: Optional[ChallengeConfig] = None,
        segmentation_options: Optional[SegmentationOptions] = None,
        listeners: Iterable[ChallengeListener] = (),
        motion_sensor: Optional[MotionSensor] = None,
        is_foreground: Callable[[], bool] = lambda: True,
        now: Callable[[], float] = time.monotonic,
        schedule_cycles: bool = True,
    ):
        self.frame_source = frame_source
        self.segmenter = segmenter
        self.store = store
        self.config = config or ChallengeConfig()
        self.segmentation_options = segmentation_options or SegmentationOptions()
        self.listeners: List[ChallengeListener] = list(listeners)
        self.motion_sensor = motion_sensor
        self.is_foreground = is_foreground
        self.now = now
        self.schedule_cycles = schedule_cycles

        self.tiers = self.config.tier_table()
        self.classifier = TouchClassifier(self.config.face_labels, self.config.hand_labels)

        self.state = ChallengeState.IDLE
        self._attempt = 0
        self._analysis_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._finished: Optional[asyncio.Event] = None
        self._analyzing = False
        self._open_lock: Optional[asyncio.Lock] = None
        self._reset_attempt_state()

    def _reset_attempt_state(self) -> None:
        self.clock = ChallengeClock()
        self.touch_counter = TouchCounter(self.config.min_touch_count)
        self.motion_guard = MotionGuard(self.config.shake_threshold, self.config.motion_buffer_size)
        self._face_visible = False
        self._shaking = False
        self._sensor_active = False
        self.last_error: Optional[ChallengeError] = None

    # Queries

    @property
    def level(self) -> int:
        return self.store.get_level()

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def face_visible(self) -> bool:
        return self._face_visible

    @property
    def is_shaking(self) -> bool:
        return self._shaking

    @property
    def remaining_seconds(self) -> Optional[float]:
        if not self.clock.started:
            return None
        return self.clock.remaining_seconds

    def current_threshold_seconds(self, level: Optional[int] = None) -> int:
        return self.tiers.threshold_for(self.level if level is None else level)

    def reward_asset_for(self, level: int) -> str:
        return self.tiers.reward_for(level)

    def add_listener(self, listener: ChallengeListener) -> None:
        self.listeners.append(listener)

    # Lifecycle

    async def start(self) -> None:
        """Begin a new attempt. Only allowed from IDLE."""
        if self.state is not ChallengeState.IDLE:
            raise InvalidStateError(f"Cannot start a challenge while {self.state.value}")

        self._attempt += 1
        attempt = self._attempt
        self._reset_attempt_state()
        self._finished = asyncio.Event()
        self._set_state(ChallengeState.LOADING)
        self._emit("on_loading_started")

        if self._open_lock is None:
            self._open_lock = asyncio.Lock()

        # Opens are serialised so a stopped attempt never releases a camera
        # that a later attempt has already opened.
        async with self._open_lock:
            if attempt != self._attempt:
                return
            try:
                await asyncio.to_thread(self.frame_source.open)
            except InputUnavailable as e:
                if attempt == self._attempt:
                    self._finish(ChallengeState.STOPPED, e)
                return
            except Exception as e:
                if attempt == self._attempt:
                    logger.exception("Unexpected error while opening the camera")
                    self._finish(ChallengeState.STOPPED, InputUnavailable(str(e)))
                return

            if attempt != self._attempt:
                logger.debug("Attempt stopped while the camera was opening, releasing it")
                self.frame_source.release()
                return

        if self.schedule_cycles:
            self._analysis_task = asyncio.create_task(self._run_analysis(attempt))

    def stop(self, error: Optional[ChallengeError] = None) -> None:
        """Abort the current attempt. No-op when nothing is running."""
        if not self.is_active:
            logger.debug(f"Stop ignored in state {self.state.value}")
            return
        self._finish(ChallengeState.STOPPED, error)

    def acknowledge(self) -> None:
        """Dismiss a finished attempt so a new one can start."""
        if self.state not in TERMINAL_STATES:
            raise InvalidStateError(f"Nothing to acknowledge while {self.state.value}")
        self._set_state(ChallengeState.IDLE)

    async def wait_finished(self) -> ChallengeState:
        if self._finished is None:
            raise InvalidStateError("No attempt has been started")
        await self._finished.wait()
        return self.state

    # Analysis cycle

    async def analyze_once(self) -> Optional[TouchResult]:
        """Run one analysis cycle. Skipped while another cycle is still in flight."""
        if not self.is_active:
            return None
        if self._analyzing:
            logger.debug("Previous analysis still running, skipping cycle")
            return None
        if not self.frame_source.ready:
            return None
        if not self.is_foreground():
            return None

        attempt = self._attempt
        self._analyzing = True
        try:
            try:
                frame = await asyncio.to_thread(self.frame_source.read)
            except InputUnavailable as e:
                if attempt == self._attempt:
                    self._finish(ChallengeState.STOPPED, e)
                return None
            if attempt != self._attempt:
                return None

            try:
                grid = await self.segmenter.segment(frame, self.segmentation_options)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if attempt == self._attempt:
                    logger.exception("Segmentation failed")
                    self._finish(ChallengeState.STOPPED, ClassificationFailure(str(e)))
                return None
        finally:
            self._analyzing = False

        if attempt != self._attempt or not self.is_active:
            logger.debug("Discarding analysis result from a finished attempt")
            return None

        result = self.classifier.classify(grid)
        self._apply_result(result)
        return result

    def _apply_result(self, result: TouchResult) -> None:
        self._update_face(result.face_visible)

        if self.state is ChallengeState.LOADING:
            # First successful frame only starts the attempt; it is not counted.
            self._begin_running()
            return

        touched = result.touched
        if touched and self._shaking:
            logger.debug("Touch ignored while the device is shaking")
            touched = False

        if self.touch_counter.update(touched):
            self._finish(ChallengeState.FAILED)

    def _update_face(self, visible: bool) -> None:
        previous = self._face_visible
        self._face_visible = visible
        if self.state not in IN_ATTEMPT_STATES or previous == visible:
            return
        if visible:
            self._set_state(ChallengeState.RUNNING)
            self._emit("on_face_regained")
        else:
            self._set_state(ChallengeState.PAUSED_NO_FACE)
            self._emit("on_face_lost")

    def _begin_running(self) -> None:
        attempt = self._attempt
        limit = self.current_threshold_seconds()
        self.clock.start(limit, self.now())
        self.touch_counter.reset()
        self.motion_guard.reset()
        self._set_state(ChallengeState.RUNNING if self._face_visible else ChallengeState.PAUSED_NO_FACE)
        logger.info(f"Level {self.level}: stay touch-free for {format_duration(limit)}")
        self._start_motion_sensor()
        self._emit("on_running_started")
        if not self._face_visible:
            self._emit("on_face_lost")

        self.tick_once()
        if self.schedule_cycles and attempt == self._attempt and self.state in IN_ATTEMPT_STATES:
            self._tick_task = asyncio.create_task(self._run_ticks(attempt))

    # Countdown

    def tick_once(self) -> Optional[ClockReading]:
        if self.state not in IN_ATTEMPT_STATES:
            return None
        reading = self.clock.tick(self.now(), self._face_visible, self.is_foreground())
        if reading.counting:
            self._emit("on_tick", max(0.0, reading.remaining_seconds))
            if reading.expired:
                self._finish(ChallengeState.SUCCEEDED)
        return reading

    # Motion

    def _start_motion_sensor(self) -> None:
        if self.motion_sensor is None:
            logger.debug("No motion sensor, shake suppression disabled")
            return
        try:
            self.motion_sensor.start(self.on_motion)
            self._sensor_active = True
        except SensorUnavailable as e:
            logger.warning(f"Motion sensor unavailable, shake suppression disabled: {e}")

    def _stop_motion_sensor(self) -> None:
        if self._sensor_active and self.motion_sensor is not None:
            self.motion_sensor.stop()
        self._sensor_active = False

    def on_motion(self, reading: MotionReading) -> None:
        if self.state not in IN_ATTEMPT_STATES:
            return
        shaking = self.motion_guard.observe_reading(reading)
        if shaking != self._shaking:
            self._shaking = shaking
            self._emit("on_shake_detected", shaking)

    # Scheduled tasks

    def _is_current(self, attempt: int) -> bool:
        return attempt == self._attempt and self.is_active

    async def _run_analysis(self, attempt: int) -> None:
        loop = asyncio.get_running_loop()
        interval = self.config.segmentation_interval_ms / 1000
        try:
            while self._is_current(attempt):
                started = loop.time()
                await self.analyze_once()
                await asyncio.sleep(max(0.0, interval - (loop.time() - started)))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Analysis cycle failed")
            if attempt == self._attempt:
                self.stop(e if isinstance(e, ChallengeError) else ClassificationFailure(str(e)))

    async def _run_ticks(self, attempt: int) -> None:
        interval = self.config.tick_interval_ms / 1000
        try:
            while self._is_current(attempt):
                await asyncio.sleep(interval)
                if not self._is_current(attempt):
                    break
                self.tick_once()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Countdown tick failed")
            if attempt == self._attempt:
                self.stop(e if isinstance(e, ChallengeError) else ChallengeError(str(e)))

    def _cancel_tasks(self) -> None:
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        for task in (self._analysis_task, self._tick_task):
            if task is not None and not task.done() and task is not current:
                task.cancel()
        self._analysis_task = None
        self._tick_task = None

    # Outcomes

    def _finish(self, outcome: ChallengeState, error: Optional[ChallengeError] = None) -> None:
        if not self.is_active:
            return

        self._attempt += 1
        self._cancel_tasks()
        self._stop_motion_sensor()
        if self._open_lock is not None and self._open_lock.locked():
            # The pending open releases the camera once it returns.
            logger.debug("Camera still opening, release deferred")
        else:
            try:
                self.frame_source.release()
            except Exception:
                logger.exception("Failed to release the camera")

        self.last_error = error
        self._set_state(outcome)

        if outcome is ChallengeState.SUCCEEDED:
            level = self.store.get_level() + 1
            self.store.set_level(level)
            self._emit("on_succeeded", level, self.tiers.reward_for(level - 1), self.tiers.is_all_cleared(level))
        elif outcome is ChallengeState.FAILED:
            self._emit("on_failed", self.config.failure_asset)
        else:
            self._emit("on_stopped", error)

        if self._finished is not None:
            self._finished.set()

    def _set_state(self, state: ChallengeState) -> None:
        if state is not self.state:
            logger.info(f"Challenge state: {self.state.value} -> {state.value}")
        self.state = state

    def _emit(self, event: str, *args) -> None:
        for listener in self.listeners:
            try:
                getattr(listener, event)(*args)
            except Exception:
                logger.exception(f"Listener {listener!r} failed handling {event}")
