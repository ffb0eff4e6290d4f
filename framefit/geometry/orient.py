# framefit/geometry/orient.py
"""
Orientation resolver: how far to rotate the uploaded image before fitting.

Angles are counter-clockwise degrees (PIL ``Image.rotate`` / OpenCV
``getRotationMatrix2D`` convention). A notch found at the left edge of a phone
screen means the image top must go to the left, i.e. a 90 degree CCW turn.
"""
from __future__ import annotations
from typing import Dict, Optional, Tuple
import logging
import math
import numpy as np

from framefit.core.config import merge_cfg
from framefit.core.contracts import DeviceClassification, OrientationResult, Region, RegionMask
from framefit.core.logs import trace

log = logging.getLogger(__name__)

EDGE_ROTATION = {"top": 0.0, "bottom": 180.0, "left": 90.0, "right": -90.0}


def get_orientation(width: float, height: float, cfg: Optional[Dict] = None) -> str:
    """'portrait', 'landscape' or 'square' (aspect within the square band)."""
    lo, hi = merge_cfg(cfg)["orientation"]["square_band"]
    aspect = width / float(max(1e-6, height))
    if lo <= aspect <= hi:
        return "square"
    return "landscape" if aspect > 1.0 else "portrait"


def is_orientation_matched(image_size: Tuple[float, float], box_size: Tuple[float, float],
                           cfg: Optional[Dict] = None) -> bool:
    """Square matches anything; otherwise both must be portrait or both landscape."""
    a = get_orientation(*image_size, cfg=cfg)
    b = get_orientation(*box_size, cfg=cfg)
    return a == "square" or b == "square" or a == b


def normalize_degrees(deg: float) -> float:
    """Fold into (-180, 180]."""
    d = math.fmod(deg, 360.0)
    if d <= -180.0:
        d += 360.0
    elif d > 180.0:
        d -= 360.0
    return d


def pca_tilt(mask: np.ndarray) -> Optional[float]:
    """
    Major-axis deviation from the nearest image axis, in degrees within
    [-45, 45). Positive means the axis is turned clockwise on screen
    (image y grows downward). None for an empty mask.
    """
    ys, xs = np.nonzero(np.asarray(mask) > 0)
    if xs.size < 2:
        return None
    x = xs.astype(np.float64) - xs.mean()
    y = ys.astype(np.float64) - ys.mean()
    cov_xx = float(np.mean(x * x))
    cov_yy = float(np.mean(y * y))
    cov_xy = float(np.mean(x * y))
    theta = 0.5 * math.degrees(math.atan2(2.0 * cov_xy, cov_xx - cov_yy))
    return (theta + 45.0) % 90.0 - 45.0


def cutout_centroid(cutout: np.ndarray) -> Optional[Tuple[float, float]]:
    ys, xs = np.nonzero(np.asarray(cutout) > 0)
    if xs.size == 0:
        return None
    return float(xs.mean()), float(ys.mean())


def nearest_edge(point: Tuple[float, float], shape: Tuple[int, int]) -> str:
    """Edge of a (h, w) box closest to ``point``; ties resolve top, bottom, left, right."""
    h, w = shape
    cx, cy = point
    dists = (("top", cy), ("bottom", (h - 1) - cy), ("left", cx), ("right", (w - 1) - cx))
    return min(dists, key=lambda d: d[1])[0]


def vertical_direction(cutout: np.ndarray) -> Optional[str]:
    """
    Which way the phone's top points, read from the notch centroid:
    'up', 'right', 'diagonal-up' or 'diagonal-right'. None without a notch.
    """
    c = cutout_centroid(cutout)
    if c is None:
        return None
    h, w = np.asarray(cutout).shape[:2]
    dx = c[0] / max(1, w - 1) - 0.5
    dy = 0.5 - c[1] / max(1, h - 1)
    if abs(dx) < 0.1 and dy > 0:
        return "up"
    if abs(dy) < 0.1 and dx > 0:
        return "right"
    return "diagonal-up" if abs(dy) >= abs(dx) else "diagonal-right"


def _image_adjust(rotation: float, box: Tuple[int, int], image_size: Tuple[int, int], cfg: Dict) -> bool:
    """True when the image needs a further 90 degrees to match the upright screen."""
    o = cfg["orientation"]
    h, w = box
    if abs(normalize_degrees(rotation)) == 90.0:
        w, h = h, w
    upright = get_orientation(w, h, cfg)
    iw, ih = image_size
    image_aspect = iw / float(max(1, ih))
    if upright == "portrait" and image_aspect > o["landscape_image_min"]:
        return True
    if upright == "landscape" and image_aspect < o["portrait_image_max"]:
        return True
    return False


def resolve_orientation(classification: DeviceClassification, mask: RegionMask,
                        region: Optional[Region] = None, image_size: Optional[Tuple[int, int]] = None,
                        cfg: Optional[Dict] = None) -> OrientationResult:
    """
    Laptops and tablets are never rotated. A smartphone's notch edge decides
    its rotation; with fewer than ``min_cutout_px`` cutout pixels the mask's
    principal axis is used instead. When ``image_size`` (w, h) is given and
    the image does not match the phone's upright orientation, 90 degrees are
    added. Insufficient signal always yields 0.
    """
    cfg = merge_cfg(cfg)
    slot = region.slot if region is not None else 0
    tilt = pca_tilt(mask.mask)
    tilt_deg = 0.0 if tilt is None else float(tilt)

    if classification.type in ("laptop", "tablet"):
        return OrientationResult(rotation_degrees=0.0, device_tilt_degrees=tilt_deg, source="fixed")
    if classification.type != "smartphone":
        return OrientationResult(rotation_degrees=0.0, device_tilt_degrees=tilt_deg, source="default")

    edge = None
    if mask.cutout_pixels >= cfg["orientation"]["min_cutout_px"]:
        edge = nearest_edge(cutout_centroid(mask.cutout), mask.shape)
        rotation, source = EDGE_ROTATION[edge], "notch"
    elif tilt is not None:
        log.info("slot-%d ambiguous orientation: %d cutout px, using principal axis", slot, mask.cutout_pixels)
        rotation, source = -tilt_deg, "pca"
    else:
        log.info("slot-%d ambiguous orientation: empty mask, no rotation", slot)
        return OrientationResult(rotation_degrees=0.0, source="default")

    adjusted = False
    if image_size is not None and _image_adjust(rotation, mask.shape, image_size, cfg):
        rotation += 90.0
        adjusted = True
    rotation = normalize_degrees(rotation)
    if rotation == 0.0:
        rotation = 0.0  # drop -0.0
    trace(log, cfg, "slot-%d orientation: %s edge=%s tilt=%.1f rotation=%.1f adjusted=%s",
          slot, source, edge, tilt_deg, rotation, adjusted)
    return OrientationResult(rotation_degrees=rotation, device_tilt_degrees=tilt_deg, source=source,
                             notch_edge=edge, image_adjusted=adjusted)
