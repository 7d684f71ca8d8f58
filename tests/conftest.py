"""
Pytest configuration and shared fakes for Touch Challenge tests
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pytest

from touch_challenge.body_parts import BodyPartGrid
from touch_challenge.config import ChallengeConfig
from touch_challenge.controller import ChallengeController, ChallengeListener
from touch_challenge.errors import InputUnavailable
from touch_challenge.progress import ProgressStore

# Configure logging for all tests
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

B = -1
FACE_ONLY = BodyPartGrid.from_rows(
    [
        [B, B, B, B],
        [B, 0, 1, B],
        [B, 0, 1, B],
        [B, B, B, B],
    ]
)
TOUCHING = BodyPartGrid.from_rows(
    [
        [B, B, B, B],
        [B, 0, 1, B],
        [B, 0, 11, B],
        [B, B, 11, B],
    ]
)
NO_FACE = BodyPartGrid.from_rows(
    [
        [B, B, B, B],
        [B, B, B, B],
        [B, B, 10, B],
        [B, B, B, B],
    ]
)


class FakeFrameSource:
    def __init__(self, fail_open: bool = False):
        self.fail_open = fail_open
        self.opened = False
        self.open_calls = 0
        self.release_calls = 0
        self.open_gate: Optional[threading.Event] = None
        self.fail_first_opens = 0
        self.opening = 0
        self.max_concurrent_opens = 0
        self.read_threads: List[int] = []

    def open(self) -> None:
        self.open_calls += 1
        call = self.open_calls
        self.opening += 1
        self.max_concurrent_opens = max(self.max_concurrent_opens, self.opening)
        try:
            if self.open_gate is not None:
                self.open_gate.wait(timeout=5)
        finally:
            self.opening -= 1
        if self.fail_open or call <= self.fail_first_opens:
            raise InputUnavailable("no camera")
        self.opened = True

    @property
    def ready(self) -> bool:
        return self.opened

    def read(self) -> np.ndarray:
        self.read_threads.append(threading.get_ident())
        return np.zeros((8, 8, 3), dtype=np.uint8)

    def release(self) -> None:
        self.opened = False
        self.release_calls += 1


class ScriptedSegmenter:
    """Returns queued grids, then keeps returning ``default``."""

    def __init__(self, default: BodyPartGrid = FACE_ONLY):
        self.default = default
        self.queue: List[BodyPartGrid] = []
        self.calls = 0
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    def push(self, *grids: BodyPartGrid) -> None:
        self.queue.extend(grids)

    async def segment(self, frame, options) -> BodyPartGrid:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.queue:
            return self.queue.pop(0)
        return self.default


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.value = start

    def advance(self, seconds: float) -> None:
        self.value += seconds

    def __call__(self) -> float:
        return self.value


class RecordingListener(ChallengeListener):
    def __init__(self):
        self.events = []

    def names(self):
        return [event[0] for event in self.events]

    def on_loading_started(self):
        self.events.append(("loading_started",))

    def on_running_started(self):
        self.events.append(("running_started",))

    def on_tick(self, remaining_seconds):
        self.events.append(("tick", remaining_seconds))

    def on_face_lost(self):
        self.events.append(("face_lost",))

    def on_face_regained(self):
        self.events.append(("face_regained",))

    def on_shake_detected(self, shaking):
        self.events.append(("shake_detected", shaking))

    def on_succeeded(self, new_level, reward_asset, all_cleared):
        self.events.append(("succeeded", new_level, reward_asset, all_cleared))

    def on_failed(self, reward_asset):
        self.events.append(("failed", reward_asset))

    def on_stopped(self, error):
        self.events.append(("stopped", error))


@dataclass
class Harness:
    controller: ChallengeController
    source: FakeFrameSource
    segmenter: ScriptedSegmenter
    store: ProgressStore
    clock: FakeClock
    listener: RecordingListener
    foreground: dict = field(default_factory=lambda: {"visible": True})


@pytest.fixture
def make_harness(tmp_path):
    """Build a controller wired to fakes. Cycles are stepped by the test unless schedule_cycles=True."""

    def _make(config: Optional[ChallengeConfig] = None, fail_open: bool = False, schedule_cycles: bool = False, **kwargs) -> Harness:
        source = FakeFrameSource(fail_open=fail_open)
        segmenter = ScriptedSegmenter()
        store = ProgressStore(tmp_path / "progress")
        clock = FakeClock()
        listener = RecordingListener()
        foreground = {"visible": True}
        kwargs.setdefault("now", clock)
        kwargs.setdefault("is_foreground", lambda: foreground["visible"])
        controller = ChallengeController(
            source,
            segmenter,
            store,
            config or ChallengeConfig(),
            listeners=[listener],
            schedule_cycles=schedule_cycles,
            **kwargs,
        )
        return Harness(controller, source, segmenter, store, clock, listener, foreground)

    return _make


def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line("markers", "integration: marks tests as integration tests (may be slow)")
    config.addinivalue_line("markers", "websocket: marks tests that test websocket functionality")
