"""
Corner extraction and quad shape-pattern tests.
"""
from __future__ import annotations
import numpy as np

from framefit.core.contracts import Corners
from framefit.geometry.corners import corners_from_dict, find_corners, order_corners_clockwise, quad_size
from framefit.geometry.shape import analyze_shape, detect_shape_pattern, shape_modifiers


def _corners(pts) -> Corners:
    return Corners(pts=np.asarray(pts, np.float32))

# ---------- Tests ---------- #

def test_order_corners_clockwise_basic():
    pts = np.array([[100, 50], [400, 60], [420, 500], [90, 480]], dtype=np.float32)
    np.random.default_rng(0).shuffle(pts)
    ordered = order_corners_clockwise(pts)
    assert ordered.tolist() == [[100, 50], [400, 60], [420, 500], [90, 480]]


def test_find_corners_on_rectangle_mask():
    m = np.zeros((60, 100), np.uint8)
    m[10:50, 20:80] = 1
    c = find_corners(m, offset=(5, 7))
    assert c is not None
    expected = np.array([[25, 17], [84, 17], [84, 56], [25, 56]], np.float32)
    assert np.abs(c.pts - expected).max() <= 1.0


def test_find_corners_empty_mask():
    assert find_corners(np.zeros((10, 10), np.uint8)) is None


def test_quad_size_and_dict_form():
    c = corners_from_dict({"tl": [0, 0], "tr": [100, 0], "br": [100, 50], "bl": [0, 50]})
    assert quad_size(c) == (100.0, 50.0)
    assert c.shifted(10, 5).as_tuple()[0] == (-10.0, -5.0)


def test_rectangle_pattern():
    a = analyze_shape(_corners([[0, 0], [200, 0], [200, 100], [0, 100]]))
    assert a.pattern == "rectangle"
    assert not a.tilted
    assert all(abs(x - 90.0) < 1e-6 for x in a.angles)


def test_parallelogram_pattern():
    # same-length opposite sides, ~79 degree corners
    a = analyze_shape(_corners([[0, 0], [200, 0], [220, 100], [20, 100]]))
    assert a.pattern == "parallelogram"
    assert a.tilted


def test_trapezoid_pattern():
    assert detect_shape_pattern(_corners([[50, 0], [150, 0], [200, 100], [0, 100]])) == "trapezoid"


def test_shape_modifiers():
    assert shape_modifiers("rectangle") == {"laptop": 1.0, "smartphone": 1.0, "tablet": 1.0}
    assert shape_modifiers(None)["smartphone"] == 1.0
    tilted = shape_modifiers("trapezoid")
    assert tilted["smartphone"] == 0.5
    assert tilted["laptop"] == tilted["tablet"] == 1.2
