# framefit/compose/perspective.py
"""
Perspective drawing for tilted frames.

The destination quad is cut into an N x N mesh. Each cell's corners are sent
back through the inverse homography to find the matching source cell, and the
cell is drawn as two affine triangles. A coarse mesh is faster, a fine mesh
tracks the true projective warp more closely.
"""
from __future__ import annotations
from typing import Sequence
import cv2
import numpy as np

_TRANSPARENT = (0, 0, 0, 0)


def _quad(pts) -> np.ndarray:
    return np.asarray(pts, np.float32).reshape(4, 2)


def homography(src_corners, dst_corners) -> np.ndarray:
    """3x3 projective transform sending the 4 src corners onto the 4 dst corners."""
    return cv2.getPerspectiveTransform(_quad(src_corners), _quad(dst_corners))


def transform_points(points, matrix: np.ndarray) -> np.ndarray:
    pts = np.asarray(points, np.float32).reshape(-1, 1, 2)
    return cv2.perspectiveTransform(pts, np.asarray(matrix, np.float64)).reshape(-1, 2)


def bilinear_point(corners, u: float, v: float) -> np.ndarray:
    """Point at (u, v) in [0, 1]^2 of a TL, TR, BR, BL quad."""
    tl, tr, br, bl = _quad(corners)
    top = tl + (tr - tl) * u
    bottom = bl + (br - bl) * u
    return top + (bottom - top) * v


def _triangle_area(tri: np.ndarray) -> float:
    a, b, c = tri
    return abs(float((b[0] - a[0]) * (c[1] - a[1]) - (c[0] - a[0]) * (b[1] - a[1]))) / 2.0


def draw_triangle(dst: np.ndarray, src: np.ndarray, src_tri, dst_tri) -> None:
    """Affine-map ``src_tri`` of ``src`` onto ``dst_tri`` of ``dst`` (in place)."""
    s_tri = np.asarray(src_tri, np.float32).reshape(3, 2)
    d_tri = np.asarray(dst_tri, np.float32).reshape(3, 2)
    if _triangle_area(s_tri) < 1e-6 or _triangle_area(d_tri) < 1e-6:
        return

    H, W = dst.shape[:2]
    x0 = max(0, int(np.floor(d_tri[:, 0].min())))
    y0 = max(0, int(np.floor(d_tri[:, 1].min())))
    x1 = min(W, int(np.ceil(d_tri[:, 0].max())) + 1)
    y1 = min(H, int(np.ceil(d_tri[:, 1].max())) + 1)
    if x1 <= x0 or y1 <= y0:
        return

    local = d_tri - np.array([x0, y0], np.float32)
    M = cv2.getAffineTransform(s_tri, local)
    patch = cv2.warpAffine(src, M, (x1 - x0, y1 - y0), flags=cv2.INTER_LINEAR,
                           borderMode=cv2.BORDER_CONSTANT, borderValue=_TRANSPARENT)
    tri_mask = np.zeros((y1 - y0, x1 - x0), np.uint8)
    cv2.fillConvexPoly(tri_mask, np.round(local).astype(np.int32), 1)
    roi = dst[y0:y1, x0:x1]
    sel = tri_mask > 0
    roi[sel] = patch[sel]


def draw_perspective(dst: np.ndarray, image: np.ndarray, src_corners: Sequence, dst_corners: Sequence,
                     mesh_size: int = 16) -> np.ndarray:
    """
    Warp ``image`` so its ``src_corners`` land on ``dst_corners`` of a copy of
    ``dst``. Both corner sets are TL, TR, BR, BL. Returns the new surface.
    """
    out = np.array(dst, copy=True)
    n = max(1, int(mesh_size))
    inverse = homography(dst_corners, src_corners)
    d = _quad(dst_corners)

    for row in range(n):
        for col in range(n):
            u0, v0 = col / n, row / n
            u1, v1 = (col + 1) / n, (row + 1) / n
            d_cell = np.array([
                bilinear_point(d, u0, v0),
                bilinear_point(d, u1, v0),
                bilinear_point(d, u1, v1),
                bilinear_point(d, u0, v1),
            ], np.float32)
            s_cell = transform_points(d_cell, inverse)
            draw_triangle(out, image, s_cell[[0, 1, 2]], d_cell[[0, 1, 2]])
            draw_triangle(out, image, s_cell[[0, 2, 3]], d_cell[[0, 2, 3]])
    return out
