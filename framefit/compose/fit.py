# framefit/compose/fit.py
"""
Fit maths: where a (w, h) image lands inside a target box.

Every function returns a FitRect in box coordinates. ``left``/``top`` may be
negative when the image overflows the box (cover modes).
"""
from __future__ import annotations
from typing import Dict, Optional

from framefit.core.config import merge_cfg
from framefit.core.contracts import FitRect

FIT_MODES = ("contain", "cover", "cover-with-bleed")


def contain_size(box_w: float, box_h: float, img_w: float, img_h: float) -> FitRect:
    """Largest centred size that fits entirely inside the box (letterboxed)."""
    img_ar = img_w / float(img_h)
    box_ar = box_w / float(box_h)
    if img_ar > box_ar:
        w = float(box_w)
        h = w / img_ar
    else:
        h = float(box_h)
        w = h * img_ar
    return FitRect(w=w, h=h, left=(box_w - w) / 2.0, top=(box_h - h) / 2.0)


def cover_size(box_w: float, box_h: float, img_w: float, img_h: float) -> FitRect:
    """Smallest centred size that covers the whole box; the overflow is cropped."""
    img_ar = img_w / float(img_h)
    box_ar = box_w / float(box_h)
    if img_ar > box_ar:
        # wider than the box: match height
        h = float(box_h)
        w = h * img_ar
        return FitRect(w=w, h=h, left=(box_w - w) / 2.0, top=0.0)
    # taller than the box: match width
    w = float(box_w)
    h = w / img_ar
    return FitRect(w=w, h=h, left=0.0, top=(box_h - h) / 2.0)


def cover_size_with_bleed(box_w: float, box_h: float, img_w: float, img_h: float, bleed_pct: float) -> FitRect:
    """
    Cover, then overscan by ``bleed_pct`` percent and re-centre so the image
    reaches past every box edge. A bleed of 0 is exactly ``cover_size``.
    """
    base = cover_size(box_w, box_h, img_w, img_h)
    if not bleed_pct:
        return base
    k = 1.0 + float(bleed_pct) / 100.0
    w, h = base.w * k, base.h * k
    return FitRect(w=w, h=h, left=(box_w - w) / 2.0, top=(box_h - h) / 2.0)


def fit_rect(mode: str, box_w: float, box_h: float, img_w: float, img_h: float, bleed_pct: float = 0.0) -> FitRect:
    if box_w <= 0 or box_h <= 0 or img_w <= 0 or img_h <= 0:
        raise ValueError(f"fit needs positive sizes, got box {box_w}x{box_h} image {img_w}x{img_h}")
    if mode == "contain":
        return contain_size(box_w, box_h, img_w, img_h)
    if mode == "cover":
        return cover_size(box_w, box_h, img_w, img_h)
    if mode == "cover-with-bleed":
        return cover_size_with_bleed(box_w, box_h, img_w, img_h, bleed_pct)
    raise ValueError(f"Unknown fit mode {mode!r}; expected one of {FIT_MODES}")


def bleed_for(device_type: str, cfg: Optional[Dict] = None) -> float:
    table = merge_cfg(cfg)["bleed_pct"]
    return float(table.get(device_type, table.get("unknown", 0)))


def corner_radius_for(device_type: str, box_w: float, box_h: float, cfg: Optional[Dict] = None) -> float:
    """min(box) times the device's corner fraction (default profile for anything else)."""
    table = merge_cfg(cfg)["corner_radius"]
    frac = table.get(device_type, table["default"])
    return min(box_w, box_h) * float(frac)
