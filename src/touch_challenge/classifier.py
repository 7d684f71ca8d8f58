"""Touch detection over body-part label grids."""

from dataclasses import dataclass
from typing import Iterable

import numpy as np

from .body_parts import FACE_LABELS, HAND_LABELS, BodyPartGrid


@dataclass(frozen=True)
class TouchResult:
    touched: bool
    face_visible: bool


class TouchClassifier:
    """Flags a touch where face and hand labels meet inside a 2x2 pixel window.

    Every pixel (x, y) anchors a window covering (x..x+1, y..y+1). Cells that
    fall past the right or bottom edge are not sampled, so edge windows are
    truncated rather than wrapping into the next row.
    """

    def __init__(self, face_labels: Iterable[int] = FACE_LABELS, hand_labels: Iterable[int] = HAND_LABELS):
        self.face_labels = tuple(face_labels)
        self.hand_labels = tuple(hand_labels)

    def classify(self, grid: BodyPartGrid) -> TouchResult:
        face = grid.mask(self.face_labels)
        face_visible = bool(face.any())
        if not face_visible:
            return TouchResult(touched=False, face_visible=False)

        hand = grid.mask(self.hand_labels)
        if not hand.any():
            return TouchResult(touched=False, face_visible=True)

        touched = bool(np.any(_window_any(face) & _window_any(hand)))
        return TouchResult(touched=touched, face_visible=True)


def _window_any(mask: np.ndarray) -> np.ndarray:
    """For each anchor pixel, whether any cell of its 2x2 window is set."""
    padded = np.zeros((mask.shape[0] + 1, mask.shape[1] + 1), dtype=bool)
    padded[:-1, :-1] = mask
    return padded[:-1, :-1] | padded[:-1, 1:] | padded[1:, :-1] | padded[1:, 1:]
