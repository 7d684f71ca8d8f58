"""
Camera utilities: enumeration, selection by label, and the frame source used by the controller
"""

import logging
import threading
from typing import Dict, List, Optional, Protocol

import cv2
import numpy as np

from .config import CameraConfig
from .errors import InputUnavailable

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    """Video input consumed by the controller."""

    def open(self) -> None: ...

    @property
    def ready(self) -> bool: ...

    def read(self) -> np.ndarray: ...

    def release(self) -> None: ...


def camera_label(index: int) -> str:
    """Stable display label for a camera index (OpenCV exposes no device names)"""
    return f"Camera {index}"


class MockCamera:
    """Mock camera for CI/testing environments without hardware camera"""

    def __init__(self, width=640, height=320):
        self.width = width
        self.height = height
        self.frame_count = 0
        self._opened = True
        logger.info(f"MockCamera initialized: {width}x{height}")

    def read(self):
        """Generate a mock frame with a moving face-coloured disc and two hands"""
        if not self._opened:
            return False, None

        frame = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        ramp = (np.arange(self.height, dtype=np.float32) / self.height)[:, None]
        frame[:, :, 0] = (50 + ramp * 100).astype(np.uint8)
        frame[:, :, 1] = (30 + ramp * 80).astype(np.uint8)
        frame[:, :, 2] = (20 + ramp * 60).astype(np.uint8)

        self.frame_count += 1

        face_x = self.width // 2 + int(50 * np.sin(self.frame_count * 0.1))
        face_y = self.height // 3
        cv2.circle(frame, (face_x, face_y), max(10, self.height // 6), (100, 150, 200), -1)

        hand1_x = self.width // 4 + int(30 * np.cos(self.frame_count * 0.08))
        hand1_y = 2 * self.height // 3 + int(20 * np.sin(self.frame_count * 0.12))
        cv2.circle(frame, (hand1_x, hand1_y), max(6, self.height // 12), (150, 100, 100), -1)

        hand2_x = 3 * self.width // 4 + int(25 * np.sin(self.frame_count * 0.09))
        hand2_y = 2 * self.height // 3 + int(30 * np.cos(self.frame_count * 0.11))
        cv2.circle(frame, (hand2_x, hand2_y), max(6, self.height // 12), (150, 100, 100), -1)

        return True, frame

    def release(self):
        self._opened = False
        logger.debug("MockCamera released")

    def isOpened(self):
        return self._opened

    def get(self, prop):
        if prop == cv2.CAP_PROP_FRAME_WIDTH:
            return self.width
        elif prop == cv2.CAP_PROP_FRAME_HEIGHT:
            return self.height
        elif prop == cv2.CAP_PROP_FPS:
            return 30
        return 0

    def set(self, prop, value):
        if prop == cv2.CAP_PROP_FRAME_WIDTH:
            self.width = int(value)
        elif prop == cv2.CAP_PROP_FRAME_HEIGHT:
            self.height = int(value)
        return True


def find_available_cameras(max_index=10) -> List[Dict]:
    """Find all available camera indices"""
    available_cameras = []

    for i in range(max_index):
        cap = cv2.VideoCapture(i)
        if cap.isOpened():
            # Test if we can actually read a frame
            ret, _ = cap.read()
            if ret:
                width = cap.get(cv2.CAP_PROP_FRAME_WIDTH)
                height = cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
                fps = cap.get(cv2.CAP_PROP_FPS)

                available_cameras.append(
                    {"index": i, "label": camera_label(i), "width": int(width), "height": int(height), "fps": int(fps) if fps > 0 else 30}
                )
        cap.release()

    return available_cameras


def get_index_for_label(label: str, cameras: Optional[List[Dict]] = None) -> Optional[int]:
    """Resolve a saved camera label to a device index"""
    for camera in cameras if cameras is not None else find_available_cameras():
        if camera["label"] == label:
            return camera["index"]
    return None


def get_best_camera_index() -> Optional[int]:
    """Get the best available camera (highest resolution preference)"""
    cameras = find_available_cameras()

    if not cameras:
        logger.warning("No cameras found")
        return None

    # Prefer external cameras (usually higher index) with better resolution
    best_camera = max(cameras, key=lambda x: (x["width"] * x["height"], x["index"]))

    logger.info(f"Selected camera {best_camera['index']}: {best_camera['width']}x{best_camera['height']}")
    return best_camera["index"]


def initialize_camera(camera_index=None, width=640, height=320):
    """Initialize camera with given or auto-detected index"""
    if camera_index is None:
        camera_index = get_best_camera_index()
        if camera_index is None:
            return None

    cap = cv2.VideoCapture(camera_index)
    if not cap.isOpened():
        logger.error(f"Could not open camera {camera_index}")
        cap.release()
        return None

    ret, _ = cap.read()
    if not ret:
        logger.error(f"Camera {camera_index} opened but cannot read frames")
        cap.release()
        return None

    cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

    actual_width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    actual_height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    logger.info(f"Camera {camera_index} resolution set to {actual_width}x{actual_height}")
    return cap


class CameraFrameSource:
    """Frame source backed by an OpenCV capture (or MockCamera)."""

    def __init__(self, camera_config: CameraConfig, preferred_label: Optional[str] = None, camera_index: Optional[int] = None, use_mock: bool = False):
        self.camera_config = camera_config
        self.preferred_label = preferred_label
        self.camera_index = camera_index
        self.use_mock = use_mock
        self.cap = None
        # open() and read() run in worker threads while release() runs on the event loop.
        self._lock = threading.Lock()

    def _resolve_index(self) -> Optional[int]:
        if self.camera_index is not None:
            return self.camera_index
        if self.preferred_label:
            index = get_index_for_label(self.preferred_label)
            if index is not None:
                return index
            logger.warning(f"Preferred camera '{self.preferred_label}' not found, using configured device")
        return self.camera_config.device_id

    def open(self) -> None:
        """Acquire the camera. Raises InputUnavailable when no stream can be opened."""
        self.release()
        if self.use_mock:
            cap = MockCamera(self.camera_config.width, self.camera_config.height)
        else:
            cap = initialize_camera(self._resolve_index(), self.camera_config.width, self.camera_config.height)
            if cap is None:
                raise InputUnavailable("This device does not have a usable camera, or camera access was denied")
        with self._lock:
            self.cap = cap

    @property
    def ready(self) -> bool:
        cap = self.cap
        return cap is not None and cap.isOpened()

    def read(self) -> np.ndarray:
        with self._lock:
            if self.cap is None:
                raise InputUnavailable("Camera is not open")
            ret, frame = self.cap.read()
        if not ret:
            raise InputUnavailable("Could not read frame from camera")
        return frame

    def release(self) -> None:
        with self._lock:
            if self.cap is not None:
                self.cap.release()
                self.cap = None
