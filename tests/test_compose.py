"""
Compositor tests: rotation, destination-in clipping, rounded corners,
frame-detail overlay and the perspective mesh.
"""
from __future__ import annotations
import cv2
import numpy as np
import pytest

from framefit.core.contracts import DeviceClassification, DeviceSignals, OrientationResult
from framefit.classify.device import classify_device
from framefit.compose.compositor import clip_alpha, composite, rotate_image, round_corners
from framefit.compose.perspective import draw_perspective, homography, transform_points
from framefit.geometry.corners import find_corners
from framefit.geometry.orient import resolve_orientation
from framefit.geometry.segment import segment

# ---------- Utilities ---------- #

def _frame(w: int, h: int) -> np.ndarray:
    f = np.zeros((h, w, 4), np.uint8)
    f[..., :3] = 30
    f[..., 3] = 255
    return f

def _solid(w: int, h: int, rgb=(200, 40, 40)) -> np.ndarray:
    img = np.zeros((h, w, 4), np.uint8)
    img[..., :3] = rgb
    img[..., 3] = 255
    return img

def _gradient(w: int, h: int) -> np.ndarray:
    img = np.zeros((h, w, 4), np.uint8)
    img[..., 0] = np.linspace(0, 255, w, dtype=np.uint8)[None, :]
    img[..., 1] = np.linspace(0, 255, h, dtype=np.uint8)[:, None]
    img[..., 2] = 90
    img[..., 3] = 255
    return img

def _cls(kind: str) -> DeviceClassification:
    return DeviceClassification(type=kind, confidence=0.8, signals=DeviceSignals())

# ---------- Raster steps ---------- #

def test_rotate_quarter_turn_swaps_dims():
    img = _solid(20, 10)
    img[0, 0] = (0, 255, 0, 255)
    out = rotate_image(img, 90)
    assert out.shape == (20, 10, 4)
    # counter-clockwise: top-left goes to bottom-left
    assert tuple(out[19, 0]) == (0, 255, 0, 255)
    assert rotate_image(img, -90).shape == (20, 10, 4)
    assert rotate_image(img, 180).shape == (10, 20, 4)
    assert rotate_image(img, 0) is img


def test_rotate_arbitrary_angle_grows_canvas():
    out = rotate_image(_solid(100, 50), 30)
    assert out.shape[1] > 100 and out.shape[0] > 50
    assert out[0, 0, 3] == 0
    assert out[out.shape[0] // 2, out.shape[1] // 2, 3] == 255


def test_clip_alpha_is_destination_in():
    img = _solid(4, 1)
    img[0, :, 3] = (255, 255, 100, 0)
    alpha = np.array([[0, 128, 255, 255]], np.uint8)
    out = clip_alpha(img, alpha)
    assert out[0, :, 3].tolist() == [0, 128, 100, 0]
    assert tuple(out[0, 0]) == (0, 0, 0, 0)
    assert tuple(out[0, 1, :3]) == (200, 40, 40)
    with pytest.raises(ValueError):
        clip_alpha(img, np.zeros((2, 2), np.uint8))


def test_round_corners_clears_corner_pixels():
    out = round_corners(_solid(100, 60), 14)
    assert out[0, 0, 3] == 0 and out[59, 99, 3] == 0
    assert out[30, 50, 3] == 255
    assert out[0, 50, 3] == 255
    assert round_corners(_solid(10, 10), 0)[0, 0, 3] == 255

# ---------- composite() ---------- #

def test_laptop_end_to_end():
    frame = _frame(1000, 1000)
    frame[100:500, 100:900] = (255, 255, 255, 255)
    region, rmask = segment(frame, (500, 300))
    c = classify_device(region, rmask, frame)
    o = resolve_orientation(c, rmask, region, image_size=(640, 480))
    assert c.type == "laptop"
    assert o.rotation_degrees == 0.0

    res = composite(_gradient(640, 480), rmask, region, c, o, frame=frame)
    assert res.image.shape == (400, 800, 4)
    assert res.bleed_pct == 12
    assert res.corner_radius == pytest.approx(14.0)
    assert res.fit.left < 0 and res.fit.top < 0
    assert res.image[0, 0, 3] == 0
    assert res.image[200, 400, 3] == 255
    assert not res.image.flags.writeable
    assert not res.overlay.any()


def test_cutout_stays_transparent_and_goes_to_overlay():
    frame = _frame(400, 700)
    frame[..., 3] = 0
    frame[100:600, 100:300] = (255, 255, 255, 255)
    frame[105:115, 170:230] = (10, 10, 10, 255)
    region, rmask = segment(frame, (200, 300))
    c = classify_device(region, rmask, frame)
    o = resolve_orientation(c, rmask, region, image_size=(300, 500))
    res = composite(_solid(300, 500), rmask, region, c, o, "cover", 0, frame=frame)

    cut = rmask.cutout > 0
    assert cut.sum() == 600
    assert (res.image[cut][:, 3] == 0).all()
    assert (res.overlay[cut][:, :3] == 10).all()
    assert (res.overlay[~cut][:, 3] == 0).all()
    assert res.bleed_pct == 0


def test_contain_leaves_letterbox_transparent():
    frame = _frame(300, 200)
    frame[50:150, 50:250] = (255, 255, 255, 255)
    region, rmask = segment(frame, (100, 100))
    res = composite(_solid(50, 50), rmask, region, _cls("unknown"), OrientationResult(0.0), "contain", 0)
    assert (res.fit.w, res.fit.h, res.fit.left) == (100.0, 100.0, 50.0)
    assert res.image[50, 10, 3] == 0
    assert res.image[50, 100, 3] == 255
    assert res.corner_radius == pytest.approx(5.0)


def test_mask_box_mismatch_rejected():
    frame = _frame(300, 200)
    frame[50:150, 50:250] = (255, 255, 255, 255)
    region, rmask = segment(frame, (100, 100))
    _, other = segment(_frame(50, 50) + np.array([225, 225, 225, 0], np.uint8), (10, 10))
    with pytest.raises(ValueError):
        composite(_solid(50, 50), other, region, _cls("tablet"), OrientationResult(0.0))

# ---------- Perspective ---------- #

def test_homography_maps_corners():
    src = [(0, 0), (100, 0), (100, 50), (0, 50)]
    dst = [(10, 5), (120, 20), (110, 90), (5, 70)]
    H = homography(src, dst)
    assert np.allclose(transform_points(src, H), np.array(dst, np.float32), atol=1e-3)


def test_identity_mesh_copies_image():
    img = _gradient(64, 64)
    quad = [(0, 0), (64, 0), (64, 64), (0, 64)]
    out = draw_perspective(np.zeros_like(img), img, quad, quad, mesh_size=4)
    diff = np.abs(out[4:60, 4:60].astype(int) - img[4:60, 4:60].astype(int))
    assert diff.max() <= 1


def test_tilted_quad_uses_perspective():
    frame = _frame(500, 400)
    trap = np.array([[150, 100], [350, 100], [400, 300], [100, 300]], np.int32)
    cv2.fillConvexPoly(frame, trap, (255, 255, 255, 255))
    region, rmask = segment(frame, (250, 200))
    corners = find_corners(rmask.mask, offset=(region.x, region.y))
    assert corners is not None

    c = classify_device(region, rmask, frame, corners)
    assert c.shape_pattern == "trapezoid"
    res = composite(_gradient(300, 200), rmask, region, c, OrientationResult(0.0), "cover", 0, corners=corners)
    assert res.perspective
    h, w = res.image.shape[:2]
    assert res.image[h // 2, w // 2, 3] == 255
    assert res.image[0, 0, 3] == 0           # outside the quad
    assert res.image[0, w - 1, 3] == 0

    flat = composite(_gradient(300, 200), rmask, region, c, OrientationResult(0.0), "cover", 0)
    assert not flat.perspective
