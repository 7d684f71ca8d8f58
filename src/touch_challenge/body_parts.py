"""Body-part label grids produced by the segmentation provider."""

from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

import cv2
import numpy as np

BACKGROUND = -1
LEFT_FACE = 0
RIGHT_FACE = 1
LEFT_HAND = 10
RIGHT_HAND = 11

FACE_LABELS = (LEFT_FACE, RIGHT_FACE)
HAND_LABELS = (LEFT_HAND, RIGHT_HAND)


class BodyPartGrid:
    """Immutable height x width grid of part labels for one analysed frame."""

    def __init__(self, labels: np.ndarray):
        labels = np.asarray(labels)
        if labels.ndim != 2:
            raise ValueError(f"Body part grid must be 2-dimensional, got shape {labels.shape}")
        labels = labels.astype(np.int16, copy=True)
        labels.setflags(write=False)
        self._labels = labels

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[int]]) -> "BodyPartGrid":
        return cls(np.array(rows, dtype=np.int16))

    @classmethod
    def empty(cls, width: int, height: int) -> "BodyPartGrid":
        return cls(np.full((height, width), BACKGROUND, dtype=np.int16))

    @property
    def labels(self) -> np.ndarray:
        return self._labels

    @property
    def width(self) -> int:
        return self._labels.shape[1]

    @property
    def height(self) -> int:
        return self._labels.shape[0]

    def mask(self, labels: Iterable[int]) -> np.ndarray:
        """Boolean mask of pixels carrying any of the given labels."""
        return np.isin(self._labels, list(labels))

    def __repr__(self) -> str:
        return f"BodyPartGrid(width={self.width}, height={self.height})"


def rasterize_parts(width: int, height: int, face_polygons=(), hand_polygons=(), face_split_x=None) -> BodyPartGrid:
    """Paint face and hand polygons into a label grid.

    Polygons are arrays of (x, y) pixel coordinates; ``hand_polygons`` holds
    (label, polygon) pairs. Hands are painted after the
    face so a hand covering the face keeps its own label. When ``face_split_x``
    is given, face pixels right of it become RIGHT_FACE.
    """
    labels = np.full((height, width), BACKGROUND, dtype=np.int16)

    face_mask = np.zeros((height, width), dtype=np.uint8)
    for polygon in face_polygons:
        _fill_hull(face_mask, polygon)
    labels[face_mask > 0] = LEFT_FACE
    if face_split_x is not None:
        right_side = np.zeros_like(face_mask, dtype=bool)
        right_side[:, max(0, int(face_split_x)):] = True
        labels[(face_mask > 0) & right_side] = RIGHT_FACE

    for label, polygon in hand_polygons:
        hand_mask = np.zeros((height, width), dtype=np.uint8)
        _fill_hull(hand_mask, polygon)
        labels[hand_mask > 0] = label

    return BodyPartGrid(labels)


def _fill_hull(mask: np.ndarray, polygon) -> None:
    points = np.asarray(polygon, dtype=np.int32).reshape(-1, 2)
    if len(points) < 3:
        return
    hull = cv2.convexHull(points)
    cv2.fillConvexPoly(mask, hull, 1)


@dataclass(frozen=True)
class SegmentationOptions:
    """Per-call options passed to a segmentation provider."""

    flip_horizontal: bool = False
    internal_resolution: float = 0.5
    segmentation_threshold: float = 0.8


class SegmentationProvider(Protocol):
    """Turns a video frame into a body-part label grid. May be slow."""

    async def segment(self, frame: np.ndarray, options: SegmentationOptions) -> BodyPartGrid: ...


class MockSegmenter:
    """Pairs with MockCamera: one still face in the middle of every frame and no hands.

    Lets ``--mock-camera`` runs reach the end of the countdown without a model.
    """

    async def segment(self, frame: np.ndarray, options: SegmentationOptions) -> BodyPartGrid:
        height, width = frame.shape[:2]
        width = max(1, int(width * options.internal_resolution))
        height = max(1, int(height * options.internal_resolution))

        cx, cy = width / 2, height / 2
        rx, ry = max(1.0, width / 6), max(1.0, height / 4)
        face = np.array([(cx - rx, cy - ry), (cx + rx, cy - ry), (cx + rx, cy + ry), (cx - rx, cy + ry)])
        return rasterize_parts(width, height, [face], face_split_x=cx)

    def close(self) -> None:
        pass
