# framefit/geometry/shape.py
"""
Quad shape patterns: a frontal screen is a rectangle; a tilted (3-D) view
shows up as a parallelogram or trapezoid.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
import math
import numpy as np

from framefit.core.config import merge_cfg
from framefit.core.contracts import Corners


@dataclass(frozen=True)
class ShapeAnalysis:
    pattern: str
    sides: Tuple[float, float, float, float]      # top, right, bottom, left
    angles: Tuple[float, float, float, float]     # TL, TR, BR, BL interior angles (deg)
    opposite_side_diffs: Tuple[float, float]      # |top-bottom|, |right-left| as ratios

    @property
    def tilted(self) -> bool:
        return self.pattern in ("parallelogram", "trapezoid")


def _dist(a, b) -> float:
    return math.hypot(float(a[0] - b[0]), float(a[1] - b[1]))


def interior_angle(prev, vertex, nxt) -> float:
    v1 = np.asarray(prev, np.float64) - np.asarray(vertex, np.float64)
    v2 = np.asarray(nxt, np.float64) - np.asarray(vertex, np.float64)
    m1, m2 = np.linalg.norm(v1), np.linalg.norm(v2)
    if m1 == 0 or m2 == 0:
        return 0.0
    cos_t = float(np.dot(v1, v2) / (m1 * m2))
    return math.degrees(math.acos(max(-1.0, min(1.0, cos_t))))


def _ratio_diff(a: float, b: float) -> float:
    m = max(a, b)
    return abs(a - b) / m if m > 0 else 0.0


def analyze_shape(corners: Corners, cfg: Optional[Dict] = None) -> ShapeAnalysis:
    s = merge_cfg(cfg)["shape"]
    tl, tr, br, bl = np.asarray(corners.pts, np.float64).reshape(4, 2)
    sides = (_dist(tl, tr), _dist(tr, br), _dist(br, bl), _dist(bl, tl))
    angles = (
        interior_angle(bl, tl, tr),
        interior_angle(tl, tr, br),
        interior_angle(tr, br, bl),
        interior_angle(br, bl, tl),
    )
    d1 = _ratio_diff(sides[0], sides[2])
    d2 = _ratio_diff(sides[1], sides[3])

    r_lo, r_hi = s["right_angle"]
    k_lo, k_hi = s["skew_angle"]
    all_right = all(r_lo <= a <= r_hi for a in angles)
    if all_right and d1 < s["rect_side_tol"] and d2 < s["rect_side_tol"]:
        pattern = "rectangle"
    elif (d1 < s["para_side_tol"] and d2 < s["para_side_tol"]
          and any((k_lo <= a < r_lo) or (r_hi < a <= k_hi) for a in angles)):
        pattern = "parallelogram"
    elif d1 > s["para_side_tol"] or d2 > s["para_side_tol"]:
        pattern = "trapezoid"
    else:
        pattern = "irregular"
    return ShapeAnalysis(pattern=pattern, sides=sides, angles=angles, opposite_side_diffs=(d1, d2))


def detect_shape_pattern(corners: Corners, cfg: Optional[Dict] = None) -> str:
    return analyze_shape(corners, cfg).pattern


def shape_modifiers(pattern: Optional[str], cfg: Optional[Dict] = None) -> Dict[str, float]:
    """Per-category score multipliers; only tilted views change anything."""
    if pattern in ("parallelogram", "trapezoid"):
        return dict(merge_cfg(cfg)["shape"]["tilted_modifiers"])
    return {"laptop": 1.0, "smartphone": 1.0, "tablet": 1.0}
