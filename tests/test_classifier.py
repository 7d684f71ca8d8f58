"""Tests for touch classification over body-part grids"""

import numpy as np
import pytest

from touch_challenge.body_parts import BACKGROUND, LEFT_FACE, LEFT_HAND, RIGHT_FACE, RIGHT_HAND, BodyPartGrid, rasterize_parts
from touch_challenge.classifier import TouchClassifier, TouchResult

B = BACKGROUND


@pytest.fixture
def classifier():
    return TouchClassifier()


def test_all_background_grid(classifier):
    assert classifier.classify(BodyPartGrid.empty(16, 9)) == TouchResult(touched=False, face_visible=False)


def test_random_grids_without_face_or_hand_labels(classifier):
    rng = np.random.default_rng(7)
    for _ in range(20):
        labels = rng.choice([B, 2, 3, 4, 5, 12, 13, 23], size=(12, 17))
        assert classifier.classify(BodyPartGrid(labels)) == TouchResult(False, False)


def test_face_only(classifier):
    grid = BodyPartGrid.from_rows([[B, B, B], [B, LEFT_FACE, RIGHT_FACE], [B, B, B]])
    assert classifier.classify(grid) == TouchResult(touched=False, face_visible=True)


def test_hand_only(classifier):
    grid = BodyPartGrid.from_rows([[LEFT_HAND, RIGHT_HAND], [B, B]])
    assert classifier.classify(grid) == TouchResult(touched=False, face_visible=False)


@pytest.mark.parametrize(
    "rows",
    [
        [[LEFT_FACE, LEFT_HAND]],  # horizontal neighbours
        [[RIGHT_FACE], [RIGHT_HAND]],  # vertical neighbours
        [[LEFT_FACE, B], [B, RIGHT_HAND]],  # diagonal
        [[B, RIGHT_FACE], [LEFT_HAND, B]],  # anti-diagonal
    ],
)
def test_adjacent_face_and_hand_touch(classifier, rows):
    assert classifier.classify(BodyPartGrid.from_rows(rows)) == TouchResult(touched=True, face_visible=True)


def test_face_and_hand_two_pixels_apart_do_not_touch(classifier):
    grid = BodyPartGrid.from_rows([[LEFT_FACE, B, LEFT_HAND], [B, B, B]])
    assert classifier.classify(grid) == TouchResult(touched=False, face_visible=True)


def test_adjacency_found_anywhere_in_large_grid(classifier):
    labels = np.full((48, 64), B)
    labels[10:20, 10:20] = LEFT_FACE
    labels[40:45, 50:60] = LEFT_HAND
    assert classifier.classify(BodyPartGrid(labels)).touched is False

    labels[20, 20] = RIGHT_HAND
    assert classifier.classify(BodyPartGrid(labels)).touched is True


def test_right_edge_window_does_not_wrap_into_next_row(classifier):
    # Face at the end of row 0, hand at the start of row 1: not neighbours.
    grid = BodyPartGrid.from_rows([[B, B, LEFT_FACE], [LEFT_HAND, B, B]])
    assert classifier.classify(grid) == TouchResult(touched=False, face_visible=True)


def test_bottom_right_corner_adjacency(classifier):
    grid = BodyPartGrid.from_rows([[B, B, B], [B, B, LEFT_FACE], [B, LEFT_HAND, B]])
    assert classifier.classify(grid).touched is True


def test_custom_label_sets():
    classifier = TouchClassifier(face_labels=[5], hand_labels=[7])
    assert classifier.classify(BodyPartGrid.from_rows([[5, 7]])).touched is True
    assert classifier.classify(BodyPartGrid.from_rows([[LEFT_FACE, LEFT_HAND]])) == TouchResult(False, False)


def test_grid_is_immutable():
    grid = BodyPartGrid.from_rows([[B, LEFT_FACE]])
    with pytest.raises(ValueError):
        grid.labels[0, 0] = LEFT_HAND


def test_grid_requires_two_dimensions():
    with pytest.raises(ValueError):
        BodyPartGrid(np.zeros(5))


def test_rasterized_hand_over_face_is_a_touch(classifier):
    face = [(10, 10), (30, 10), (30, 30), (10, 30)]
    hand = [(25, 20), (40, 20), (40, 35), (25, 35)]
    grid = rasterize_parts(50, 40, face_polygons=[face], hand_polygons=[(RIGHT_HAND, hand)], face_split_x=20)

    assert grid.width == 50 and grid.height == 40
    assert grid.labels[15, 12] == LEFT_FACE
    assert grid.labels[15, 22] == RIGHT_FACE
    assert grid.labels[30, 35] == RIGHT_HAND
    assert grid.labels[0, 0] == BACKGROUND
    assert classifier.classify(grid) == TouchResult(touched=True, face_visible=True)


def test_rasterized_separate_regions_do_not_touch(classifier):
    face = [(2, 2), (10, 2), (10, 10), (2, 10)]
    hand = [(30, 30), (38, 30), (38, 38), (30, 38)]
    grid = rasterize_parts(40, 40, face_polygons=[face], hand_polygons=[(LEFT_HAND, hand)])
    assert classifier.classify(grid) == TouchResult(touched=False, face_visible=True)


def test_rasterize_ignores_degenerate_polygons():
    grid = rasterize_parts(5, 5, face_polygons=[[(1, 1), (2, 2)]])
    assert not grid.mask([LEFT_FACE, RIGHT_FACE]).any()
