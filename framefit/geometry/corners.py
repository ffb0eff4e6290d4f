# framefit/geometry/corners.py
from __future__ import annotations
from typing import Dict, Optional, Tuple
import cv2
import numpy as np

from framefit.core.contracts import Corners


def order_corners_clockwise(pts: np.ndarray) -> np.ndarray:
    """Return TL, TR, BR, BL (clockwise) given 4 unordered points."""
    p = np.asarray(pts, dtype=np.float32).reshape(4, 2)
    # sort by y, then split to top/bottom and sort by x within each
    idx = np.argsort(p[:, 1], kind="stable")
    top = p[idx[:2]][np.argsort(p[idx[:2], 0], kind="stable")]
    bot = p[idx[2:]][np.argsort(p[idx[2:], 0], kind="stable")]
    tl, tr = top
    bl, br = bot
    return np.array([tl, tr, br, bl], dtype=np.float32)


def find_corners(mask: np.ndarray, offset: Tuple[int, int] = (0, 0), epsilon_ratio: float = 0.02) -> Optional[Corners]:
    """
    Four outline corners of the largest blob in ``mask`` (frame coordinates
    when ``offset`` is the region origin). Uses a polygon approximation when
    it yields a quad, otherwise the minimum-area rectangle.
    """
    m = (np.asarray(mask) > 0).astype(np.uint8)
    if not m.any():
        return None
    cnts, _ = cv2.findContours(m, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    if not cnts:
        return None
    largest = max(cnts, key=cv2.contourArea)
    approx = cv2.approxPolyDP(largest, epsilon_ratio * cv2.arcLength(largest, True), True)
    if len(approx) == 4:
        quad = approx.reshape(4, 2).astype(np.float32)
    else:
        quad = cv2.boxPoints(cv2.minAreaRect(largest)).astype(np.float32)
    quad = order_corners_clockwise(quad)
    quad += np.array(offset, np.float32)
    return Corners(pts=quad)


def quad_size(corners: Corners) -> Tuple[float, float]:
    """Mean (width, height) of the quad's opposite sides."""
    tl, tr, br, bl = corners.pts
    w = (np.linalg.norm(tr - tl) + np.linalg.norm(br - bl)) / 2.0
    h = (np.linalg.norm(bl - tl) + np.linalg.norm(br - tr)) / 2.0
    return float(w), float(h)


def corners_from_dict(raw: Dict) -> Corners:
    """Accepts {'tl': [x, y], 'tr': ..., 'br': ..., 'bl': ...} or a 4x2 list."""
    if isinstance(raw, dict):
        pts = [raw[k] for k in ("tl", "tr", "br", "bl")]
    else:
        pts = raw
    return Corners(pts=np.asarray(pts, np.float32).reshape(4, 2))
