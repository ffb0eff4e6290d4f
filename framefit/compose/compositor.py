# framefit/compose/compositor.py
"""
Compositor: uploaded image -> region-sized RGBA composite.

    rotate -> fit (contain / cover / cover-with-bleed) -> round corners
    -> clip by the alpha mask (destination-in) -> frame-detail overlay

Tilted frames with known corners take the perspective branch instead of the
axis-aligned fit: the image is fitted onto a flat plane of the quad's size and
mesh-warped onto the quad.
"""
from __future__ import annotations
from typing import Dict, Optional, Tuple
import logging
import cv2
import numpy as np
from PIL import Image, ImageDraw

from framefit.core.config import merge_cfg
from framefit.core.contracts import (
    CompositeResult, Corners, DeviceClassification, FitRect, OrientationResult, Region, RegionMask,
)
from framefit.core.logs import trace
from framefit.compose.fit import bleed_for, corner_radius_for, fit_rect
from framefit.compose.perspective import draw_perspective
from framefit.geometry.corners import quad_size
from framefit.geometry.shape import analyze_shape
from framefit.io.ingest import check_surface, freeze
from framefit.mask.process import alpha_mask

log = logging.getLogger(__name__)


# ----------------------------------------------------------------------------- #
# Raster steps                                                                  #
# ----------------------------------------------------------------------------- #

def rotate_image(image: np.ndarray, degrees: float) -> np.ndarray:
    """
    Rotate counter-clockwise onto a canvas sized to hold the whole result
    (width and height swap for +/-90). Uncovered pixels are transparent.
    """
    deg = float(degrees) % 360.0
    if deg == 0.0:
        return image
    if deg % 90.0 == 0.0:
        return np.ascontiguousarray(np.rot90(image, k=int(deg // 90)))

    h, w = image.shape[:2]
    M = cv2.getRotationMatrix2D((w / 2.0, h / 2.0), deg, 1.0)
    cos, sin = abs(M[0, 0]), abs(M[0, 1])
    nw = int(np.ceil(h * sin + w * cos))
    nh = int(np.ceil(h * cos + w * sin))
    M[0, 2] += nw / 2.0 - w / 2.0
    M[1, 2] += nh / 2.0 - h / 2.0
    return cv2.warpAffine(image, M, (nw, nh), flags=cv2.INTER_LINEAR,
                          borderMode=cv2.BORDER_CONSTANT, borderValue=(0, 0, 0, 0))


def draw_fitted(image: np.ndarray, fit: FitRect, box_w: int, box_h: int) -> np.ndarray:
    """Scale ``image`` to the fit size and draw it at the fit offset on a transparent box."""
    canvas = np.zeros((box_h, box_w, 4), np.uint8)
    tw, th = max(1, int(round(fit.w))), max(1, int(round(fit.h)))
    ih, iw = image.shape[:2]
    interp = cv2.INTER_AREA if tw < iw and th < ih else cv2.INTER_LINEAR
    scaled = cv2.resize(image, (tw, th), interpolation=interp)

    left, top = int(round(fit.left)), int(round(fit.top))
    x0, y0 = max(0, left), max(0, top)
    x1, y1 = min(box_w, left + tw), min(box_h, top + th)
    if x1 > x0 and y1 > y0:
        canvas[y0:y1, x0:x1] = scaled[y0 - top:y1 - top, x0 - left:x1 - left]
    return canvas


def rounded_rect_alpha(w: int, h: int, radius: float) -> np.ndarray:
    """255 inside a w x h rounded rectangle, 0 outside."""
    mask = Image.new("L", (w, h), 0)
    r = int(round(min(float(radius), (min(w, h) - 1) / 2.0)))
    ImageDraw.Draw(mask).rounded_rectangle([0, 0, w - 1, h - 1], radius=max(0, r), fill=255)
    return np.asarray(mask, np.uint8)


def round_corners(surface: np.ndarray, radius: float) -> np.ndarray:
    if radius <= 0:
        return surface
    h, w = surface.shape[:2]
    out = np.array(surface, copy=True)
    out[..., 3] = np.minimum(out[..., 3], rounded_rect_alpha(w, h, radius))
    return out


def clip_alpha(surface: np.ndarray, alpha: np.ndarray) -> np.ndarray:
    """
    Destination-in: result alpha is min(image alpha, mask alpha); colour is
    kept where that is positive and cleared elsewhere.
    """
    if surface.shape[:2] != alpha.shape[:2]:
        raise ValueError(f"surface {surface.shape[:2]} and alpha {alpha.shape[:2]} differ")
    out = np.array(surface, copy=True)
    out[..., 3] = np.minimum(out[..., 3], alpha)
    out[out[..., 3] == 0] = 0
    return out


def frame_detail_overlay(region_pixels: Optional[np.ndarray], mask: RegionMask) -> np.ndarray:
    """Frame pixels on the cutout (dark opaque holes), transparent elsewhere."""
    h, w = mask.shape
    overlay = np.zeros((h, w, 4), np.uint8)
    if region_pixels is None:
        return overlay
    sel = mask.cutout > 0
    overlay[sel] = region_pixels[sel]
    return overlay


# ----------------------------------------------------------------------------- #
# Public API                                                                    #
# ----------------------------------------------------------------------------- #

def _use_perspective(corners: Optional[Corners], cfg: Dict) -> bool:
    if corners is None or not cfg["perspective"]["enabled"]:
        return False
    return analyze_shape(corners, cfg).tilted


def _flat(image: np.ndarray, w: int, h: int, fit_mode: str, bleed: float,
          device_type: str, cfg: Dict) -> Tuple[np.ndarray, FitRect, float]:
    ih, iw = image.shape[:2]
    fit = fit_rect(fit_mode, w, h, iw, ih, bleed)
    radius = corner_radius_for(device_type, w, h, cfg)
    return round_corners(draw_fitted(image, fit, w, h), radius), fit, radius


def composite(image: np.ndarray, mask: RegionMask, region: Region, classification: DeviceClassification,
              orientation: OrientationResult, fit_mode: Optional[str] = None, feather_px: Optional[float] = None,
              cfg: Optional[Dict] = None, *, corners: Optional[Corners] = None, frame: Optional[np.ndarray] = None,
              bleed_pct: Optional[float] = None, expand_px: Optional[int] = None) -> CompositeResult:
    """
    Render ``image`` into ``region``'s box.

    ``frame`` is optional: it supplies the luminance gate for mask expansion
    and the pixels of the frame-detail overlay. ``corners`` (frame
    coordinates) enable the perspective branch for tilted quads.
    """
    cfg = merge_cfg(cfg)
    check_surface(image)
    mode = fit_mode or cfg["fit_mode"]
    device = classification.type
    bleed = 0.0
    if mode == "cover-with-bleed":
        bleed = bleed_for(device, cfg) if bleed_pct is None else float(bleed_pct)

    x, y, rw, rh = region.as_xywh()
    if mask.shape != (rh, rw):
        raise ValueError(f"mask {mask.shape} does not match region box {(rh, rw)}")
    crop = None
    if frame is not None:
        check_surface(frame)
        crop = frame[y:y + rh, x:x + rw]

    alpha = alpha_mask(mask, feather_px, expand_px, crop, cfg)
    source = rotate_image(image, orientation.rotation_degrees)

    perspective = _use_perspective(corners, cfg)
    if perspective:
        local = corners.shifted(x, y)
        qw, qh = quad_size(local)
        pw, ph = max(1, int(round(qw))), max(1, int(round(qh)))
        plane, fit, radius = _flat(source, pw, ph, mode, bleed, device, cfg)
        src_quad = [(0, 0), (pw, 0), (pw, ph), (0, ph)]
        drawn = draw_perspective(np.zeros((rh, rw, 4), np.uint8), plane, src_quad, local.pts,
                                 cfg["perspective"]["mesh_size"])
    else:
        drawn, fit, radius = _flat(source, rw, rh, mode, bleed, device, cfg)

    out = clip_alpha(drawn, alpha)
    overlay = frame_detail_overlay(crop, mask)
    trace(log, cfg, "slot-%d composite %dx%d mode=%s bleed=%.1f radius=%.1f rotation=%.1f perspective=%s",
          region.slot, rw, rh, mode, bleed, radius, orientation.rotation_degrees, perspective)
    return CompositeResult(image=freeze(out), overlay=freeze(overlay), fit=fit,
                           rotation=float(orientation.rotation_degrees), corner_radius=radius,
                           bleed_pct=bleed, perspective=perspective)
