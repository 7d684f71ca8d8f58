"""Body-part segmentation from MediaPipe face mesh and hand landmarks."""

import asyncio
import logging
from typing import Any, List, Optional, Tuple

import cv2
import mediapipe as mp
import numpy as np

from .body_parts import LEFT_HAND, RIGHT_HAND, BodyPartGrid, SegmentationOptions, rasterize_parts
from .config import SegmentationConfig

logger = logging.getLogger(__name__)

NOSE_TIP_LANDMARK = 1


class LandmarkSegmenter:
    """Segments a frame into face and hand regions.

    The face oval from the face mesh is filled as the face part (split left and
    right at the nose tip) and the convex hull of each detected hand as the
    matching hand part. Output follows the BodyPix part numbering.

    ``segmentation_threshold`` is the detection and tracking confidence of both
    models; a call with a different threshold rebuilds them.
    """

    def __init__(self, config: SegmentationConfig):
        self.config = config
        self.face_oval = sorted({i for edge in mp.solutions.face_mesh.FACEMESH_FACE_OVAL for i in edge})
        self.confidence: Optional[float] = None
        self.face_mesh = None
        self.hands = None
        self._load_models(config.segmentation_threshold)

    def _load_models(self, confidence: float) -> None:
        if self.confidence is not None:
            logger.info(f"Segmentation threshold changed to {confidence}, reloading models")
            self.close()
        self.confidence = confidence
        self.face_mesh = mp.solutions.face_mesh.FaceMesh(
            max_num_faces=1,
            refine_landmarks=False,
            min_detection_confidence=confidence,
            min_tracking_confidence=confidence,
        )
        self.hands = mp.solutions.hands.Hands(
            static_image_mode=False,
            max_num_hands=2,
            min_detection_confidence=confidence,
            min_tracking_confidence=confidence,
        )

    async def segment(self, frame: np.ndarray, options: SegmentationOptions) -> BodyPartGrid:
        return await asyncio.to_thread(self.segment_sync, frame, options)

    def segment_sync(self, frame: np.ndarray, options: SegmentationOptions) -> BodyPartGrid:
        if options.segmentation_threshold != self.confidence:
            self._load_models(options.segmentation_threshold)

        if options.flip_horizontal:
            frame = cv2.flip(frame, 1)

        height, width = frame.shape[:2]
        width = max(1, int(width * options.internal_resolution))
        height = max(1, int(height * options.internal_resolution))
        small = cv2.resize(frame, (width, height), interpolation=cv2.INTER_AREA)
        rgb_frame = cv2.cvtColor(small, cv2.COLOR_BGR2RGB)

        face_results = self.face_mesh.process(rgb_frame)
        hand_results = self.hands.process(rgb_frame)

        face_polygons: List[np.ndarray] = []
        face_split_x = None
        if face_results.multi_face_landmarks:
            face_landmarks = face_results.multi_face_landmarks[0]
            face_polygons.append(_landmark_points(face_landmarks, self.face_oval, width, height))
            face_split_x = face_landmarks.landmark[NOSE_TIP_LANDMARK].x * width

        hand_polygons: List[Tuple[int, np.ndarray]] = []
        if hand_results.multi_hand_landmarks:
            handedness = hand_results.multi_handedness or []
            for i, hand_landmarks in enumerate(hand_results.multi_hand_landmarks):
                label = _hand_label(handedness[i] if i < len(handedness) else None)
                indices = range(len(hand_landmarks.landmark))
                hand_polygons.append((label, _landmark_points(hand_landmarks, indices, width, height)))

        logger.debug(f"Segmented frame {width}x{height}: faces={len(face_polygons)} hands={len(hand_polygons)}")
        return rasterize_parts(width, height, face_polygons, hand_polygons, face_split_x)

    def close(self) -> None:
        self.face_mesh.close()
        self.hands.close()


def _landmark_points(landmarks: Any, indices, width: int, height: int) -> np.ndarray:
    """Convert normalised MediaPipe landmarks to pixel coordinates."""
    points = [
        (landmarks.landmark[i].x * width, landmarks.landmark[i].y * height)
        for i in indices
        if i < len(landmarks.landmark)
    ]
    return np.array(points, dtype=np.float32)


def _hand_label(handedness: Any) -> int:
    if handedness is not None and handedness.classification and handedness.classification[0].label == "Right":
        return RIGHT_HAND
    return LEFT_HAND
